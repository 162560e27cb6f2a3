"""
Tests for risk profiles and premium calculation.
"""

import pytest

from weathercover.core import (
    AlreadyRegisteredError,
    InvalidCoverageAmountError,
    InvalidProfileBoundsError,
    InvalidProfileError,
    UnauthorizedError,
    premium_for,
)
from weathercover.schemas import EventType, RiskProfile


def _profile(**overrides):
    values = dict(
        profile_id=1,
        name="Drought",
        base_rate_bps=500,
        risk_factor_bps=200,
        coverage_multiplier=1,
        min_coverage=1_000,
        max_coverage=100_000,
    )
    values.update(overrides)
    return RiskProfile(**values)


class TestPremiumFormula:
    """premium = coverage * (base + risk) // 10000"""

    def test_reference_premium(self):
        assert premium_for(_profile(), 10_000) == 700

    def test_premium_rounds_down(self):
        # 1001 * 700 / 10000 = 70.07
        assert premium_for(_profile(), 1_001) == 70

    def test_bounds_are_inclusive(self):
        profile = _profile()
        assert premium_for(profile, 1_000) == 70
        assert premium_for(profile, 100_000) == 7_000

    def test_coverage_below_minimum_rejected(self):
        with pytest.raises(InvalidCoverageAmountError):
            premium_for(_profile(), 999)

    def test_coverage_above_maximum_rejected(self):
        with pytest.raises(InvalidCoverageAmountError):
            premium_for(_profile(), 100_001)

    def test_multiplier_does_not_affect_price(self):
        assert premium_for(_profile(coverage_multiplier=3), 10_000) == 700


class TestRiskCatalog:
    """Admin-defined profiles through the engine."""

    def test_create_and_read_profile(self, engine, admin):
        profile = engine.create_risk_profile(
            admin, 7, "Flood", 300, 150, 2, 500, 50_000, description="River plain"
        )

        assert engine.get_risk_profile(7) == profile
        assert profile.total_rate_bps == 450
        events = engine.list_journal(entity_type="profile")
        assert [e.event_type for e in events] == [EventType.RISK_PROFILE_CREATED]

    def test_only_admin_creates_profiles(self, engine, holder):
        with pytest.raises(UnauthorizedError):
            engine.create_risk_profile(holder, 1, "Drought", 500, 200, 1, 1_000, 100_000)
        assert engine.get_risk_profile(1) is None

    def test_duplicate_profile_id_rejected(self, market, admin):
        with pytest.raises(AlreadyRegisteredError):
            market.create_risk_profile(admin, 1, "Other", 100, 100, 1, 10, 20)

    @pytest.mark.parametrize(
        "min_coverage,max_coverage,multiplier",
        [
            (1_000, 1_000, 1),   # max must exceed min
            (5_000, 1_000, 1),
            (1_000, 5_000, 0),   # zero multiplier
        ],
    )
    def test_invalid_bounds_rejected(self, engine, admin, min_coverage, max_coverage, multiplier):
        with pytest.raises(InvalidProfileBoundsError):
            engine.create_risk_profile(
                admin, 1, "Bad", 500, 200, multiplier, min_coverage, max_coverage
            )

    def test_quote_uses_stored_profile(self, market):
        assert market.calculate_premium(1, 10_000) == 700

    def test_quote_unknown_profile(self, market):
        with pytest.raises(InvalidProfileError):
            market.calculate_premium(99, 10_000)

    def test_quote_out_of_bounds(self, market):
        with pytest.raises(InvalidCoverageAmountError):
            market.calculate_premium(1, 500)
