"""
Canonical Journal Event Schema

Every committed call appends one event. Nothing is "edited". Things happen.

Each event:
- Produces a new immutable record
- Is hashed
- Is chained to the previous event
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    """
    All journaled call types.
    You can add more later, never remove.
    """
    # Administrative control
    ADMIN_TRANSFERRED = "ADMIN_TRANSFERRED"
    CONTRACT_PAUSED = "CONTRACT_PAUSED"
    CONTRACT_UNPAUSED = "CONTRACT_UNPAUSED"
    EMERGENCY_WITHDRAWAL = "EMERGENCY_WITHDRAWAL"

    # Oracle directory and feed
    ORACLE_REGISTERED = "ORACLE_REGISTERED"
    ORACLE_DEACTIVATED = "ORACLE_DEACTIVATED"
    ORACLE_REACTIVATED = "ORACLE_REACTIVATED"
    ORACLE_UPDATED = "ORACLE_UPDATED"
    ORACLE_OWNERSHIP_TRANSFERRED = "ORACLE_OWNERSHIP_TRANSFERRED"
    ORACLE_DATA_SUBMITTED = "ORACLE_DATA_SUBMITTED"

    # Pricing
    RISK_PROFILE_CREATED = "RISK_PROFILE_CREATED"

    # Policy lifecycle
    POLICY_CREATED = "POLICY_CREATED"
    POLICY_RENEWED = "POLICY_RENEWED"
    POLICY_CANCELED = "POLICY_CANCELED"
    CONDITION_ATTACHED = "CONDITION_ATTACHED"

    # Claim lifecycle
    CLAIM_SUBMITTED = "CLAIM_SUBMITTED"
    CLAIM_PAID = "CLAIM_PAID"
    CLAIM_REJECTED = "CLAIM_REJECTED"

    # Treasury
    TREASURY_FUNDED = "TREASURY_FUNDED"


class JournalEvent(BaseModel):
    """
    The immutable journal record.

    Chain Integrity Rules:
    - sequence_number must be monotonically increasing (0, 1, 2, ...)
    - previous_event_hash is None for the genesis event (sequence 0) only
    - event_hash must be verifiable from payload + previous_event_hash
    """
    model_config = ConfigDict(frozen=True)

    event_id: UUID
    sequence_number: int = Field(..., ge=0)
    event_type: EventType

    entity_type: str = Field(
        ...,
        description="'policy', 'claim', 'oracle', 'profile', 'treasury' or 'contract'"
    )
    entity_id: str

    caller: str = Field(
        ...,
        description="Verified identity that made the call"
    )
    height: int = Field(..., ge=0)

    payload: dict[str, Any]

    previous_event_hash: Optional[str] = None
    event_hash: str

    created_at: datetime

    @property
    def is_genesis(self) -> bool:
        return self.sequence_number == 0

    def validate_chain_rules(self) -> None:
        """
        Validate chain linkage rules.

        Raises ValueError if rules are violated.
        """
        if self.sequence_number == 0:
            if self.previous_event_hash is not None:
                raise ValueError(
                    f"Genesis event (sequence 0) must have previous_event_hash=None, "
                    f"got: {self.previous_event_hash}"
                )
        else:
            if self.previous_event_hash is None:
                raise ValueError(
                    f"Non-genesis event (sequence {self.sequence_number}) must have "
                    f"previous_event_hash set, got None"
                )
            if len(self.previous_event_hash) != 64:
                raise ValueError(
                    f"previous_event_hash must be 64 hex characters, "
                    f"got {len(self.previous_event_hash)}"
                )
