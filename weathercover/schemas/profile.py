"""
Risk Profile Schema

Admin-defined pricing template. Immutable once created.
"""

from pydantic import BaseModel, ConfigDict, Field


class RiskProfile(BaseModel):
    """
    Pricing and coverage bounds for a class of policies.

    premium = coverage * (base_rate_bps + risk_factor_bps) // 10000
    """
    model_config = ConfigDict(frozen=True)

    profile_id: int = Field(..., ge=0)
    name: str = Field(..., min_length=1)

    base_rate_bps: int = Field(
        ...,
        ge=0,
        description="Base premium rate in basis points"
    )
    risk_factor_bps: int = Field(
        ...,
        ge=0,
        description="Risk loading in basis points"
    )
    coverage_multiplier: int = Field(
        ...,
        ge=0,
        description="Stored for reporting; not part of the premium formula"
    )

    min_coverage: int = Field(..., ge=0)
    max_coverage: int = Field(..., ge=0)

    description: str = ""

    @property
    def total_rate_bps(self) -> int:
        return self.base_rate_bps + self.risk_factor_bps
