"""
Canonical Policy Schema

A Policy is a purchased coverage contract with exactly one trigger condition.
Expiry is never stored: it is derived from the stored heights and the
current height.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PolicyStatus(str, Enum):
    """
    Stored policy states.

    EXPIRED is part of the vocabulary (queries report it) but is never
    written: a policy past its end height still stores ACTIVE.
    """
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELED = "canceled"
    CLAIMED = "claimed"         # Retired by a paid claim


class ComparisonOperator(str, Enum):
    """Known trigger comparators."""
    GT = "GT"
    LT = "LT"
    EQ = "EQ"
    GE = "GE"
    LE = "LE"


class Policy(BaseModel):
    """
    Coverage contract between a holder and the treasury.

    Created on purchase; mutated by renewal, cancellation
    and claim settlement; never deleted.
    """
    policy_id: int = Field(..., ge=1)
    holder: str

    risk_profile_id: int
    coverage_amount: int = Field(..., ge=0)
    premium_amount: int = Field(..., ge=0)

    start_height: int = Field(..., ge=0)
    end_height: int = Field(..., ge=0)

    status: PolicyStatus = PolicyStatus.ACTIVE
    renewal_count: int = Field(default=0, ge=0)
    auto_renew: bool = False
    location: str = ""

    created_at: int = Field(..., ge=0)
    last_updated: int = Field(..., ge=0)

    @property
    def duration(self) -> int:
        return self.end_height - self.start_height


class PolicyCondition(BaseModel):
    """
    The single trigger attached to a policy.

    condition_index is always 0. The operator is stored as given so that
    an unknown code simply never triggers.
    """
    model_config = ConfigDict(frozen=True)

    policy_id: int
    condition_index: int = 0
    weather_type: str = Field(..., min_length=1)
    operator: str
    threshold: int
    payout_bps: int = Field(
        ...,
        description="Share of coverage paid when triggered, in basis points"
    )
    oracle_id: str
