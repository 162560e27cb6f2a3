"""
Canonical Claim Schema

A Claim is a holder's assertion that the policy condition was met,
bound to one specific, previously published measurement.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ClaimStatus(str, Enum):
    """
    Claims move through exactly one path.
    PENDING -> PAID or PENDING -> REJECTED. Both are terminal.
    """
    PENDING = "pending"
    APPROVED = "approved"       # Reserved; the automated path never stops here
    REJECTED = "rejected"
    PAID = "paid"


TERMINAL_CLAIM_STATUSES = frozenset({ClaimStatus.REJECTED, ClaimStatus.PAID})


class Claim(BaseModel):
    """
    A submitted claim.

    claim_amount is fixed at submission and never recomputed.
    """
    claim_id: int = Field(..., ge=1)
    policy_id: int
    claimant: str

    status: ClaimStatus = ClaimStatus.PENDING
    claim_amount: int = Field(..., ge=0)

    weather_event_type: str
    weather_event_value: int
    condition_index: int = 0
    oracle_data_height: int = Field(..., ge=0)

    submitted_at: int = Field(..., ge=0)
    processed_at: Optional[int] = None
    paid_at: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_CLAIM_STATUSES
