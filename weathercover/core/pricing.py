"""
Risk Profile Catalog & Premium Calculator

Profiles are admin-defined and immutable. The premium formula is a pure
function, used both for quotes and as the authoritative pricing step of
policy creation and renewal.
"""

from typing import TYPE_CHECKING, Optional

from ..schemas import EventType, RiskProfile
from .config import BPS_DENOMINATOR
from .errors import (
    AlreadyRegisteredError,
    InvalidCoverageAmountError,
    InvalidProfileBoundsError,
    InvalidProfileError,
)

if TYPE_CHECKING:
    from ..db.store import CallContext, EngineState


def premium_for(profile: RiskProfile, coverage_amount: int) -> int:
    """
    Price coverage under a profile.

    floor(coverage * (base_rate_bps + risk_factor_bps) / 10000)

    Raises InvalidCoverageAmountError outside [min_coverage, max_coverage].
    """
    if not profile.min_coverage <= coverage_amount <= profile.max_coverage:
        raise InvalidCoverageAmountError(
            f"Coverage {coverage_amount} outside profile {profile.profile_id} bounds "
            f"[{profile.min_coverage}, {profile.max_coverage}]"
        )
    return coverage_amount * profile.total_rate_bps // BPS_DENOMINATOR


class RiskCatalog:
    """Admin-defined pricing templates."""

    def create_profile(
        self,
        ctx: "CallContext",
        profile_id: int,
        name: str,
        base_rate_bps: int,
        risk_factor_bps: int,
        coverage_multiplier: int,
        min_coverage: int,
        max_coverage: int,
        description: str = "",
    ) -> RiskProfile:
        """Create a profile. Caller authorization is checked by the engine."""
        if profile_id in ctx.state.risk_profiles:
            raise AlreadyRegisteredError(f"Risk profile {profile_id} already exists")
        if max_coverage <= min_coverage:
            raise InvalidProfileBoundsError(
                f"max_coverage ({max_coverage}) must exceed min_coverage ({min_coverage})"
            )
        if coverage_multiplier == 0:
            raise InvalidProfileBoundsError("coverage_multiplier must be non-zero")
        if min(profile_id, base_rate_bps, risk_factor_bps, coverage_multiplier, min_coverage) < 0:
            raise InvalidProfileBoundsError("Profile ids, rates and bounds must be non-negative")
        if not name:
            raise InvalidProfileBoundsError("Profile name must not be empty")

        profile = RiskProfile(
            profile_id=profile_id,
            name=name,
            base_rate_bps=base_rate_bps,
            risk_factor_bps=risk_factor_bps,
            coverage_multiplier=coverage_multiplier,
            min_coverage=min_coverage,
            max_coverage=max_coverage,
            description=description,
        )
        ctx.state.risk_profiles[profile_id] = profile
        ctx.record(
            EventType.RISK_PROFILE_CREATED,
            "profile",
            profile_id,
            profile.model_dump(),
        )
        return profile

    def get_profile(self, state: "EngineState", profile_id: int) -> Optional[RiskProfile]:
        return state.risk_profiles.get(profile_id)

    def require_profile(self, state: "EngineState", profile_id: int) -> RiskProfile:
        profile = state.risk_profiles.get(profile_id)
        if profile is None:
            raise InvalidProfileError(f"Risk profile {profile_id} does not exist")
        return profile

    def calculate_premium(self, state: "EngineState", profile_id: int, coverage_amount: int) -> int:
        """Quote (or authoritatively price) coverage under a stored profile."""
        return premium_for(self.require_profile(state, profile_id), coverage_amount)
