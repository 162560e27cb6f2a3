# Canonical Schemas for the WeatherCover engine
# These define the records every state transition reads and writes.

from .oracle import OracleRegistration, OracleDataPoint
from .profile import RiskProfile
from .policy import Policy, PolicyStatus, PolicyCondition, ComparisonOperator
from .claim import Claim, ClaimStatus, TERMINAL_CLAIM_STATUSES
from .treasury import TreasuryState
from .events import JournalEvent, EventType

__all__ = [
    # Oracle
    "OracleRegistration",
    "OracleDataPoint",
    # Pricing
    "RiskProfile",
    # Policy
    "Policy",
    "PolicyStatus",
    "PolicyCondition",
    "ComparisonOperator",
    # Claim
    "Claim",
    "ClaimStatus",
    "TERMINAL_CLAIM_STATUSES",
    # Treasury
    "TreasuryState",
    # Journal
    "JournalEvent",
    "EventType",
]
