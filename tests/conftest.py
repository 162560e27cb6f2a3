"""
Shared fixtures for the WeatherCover test suite.

Every test gets its own engine, clock and settlement layer; nothing is
shared between tests except the process-wide metrics collector.
"""

import pytest

from weathercover.core import (
    EngineConfig,
    InMemorySettlement,
    InsuranceEngine,
    ManualClock,
)


START_HEIGHT = 100


@pytest.fixture
def admin():
    return "admin"


@pytest.fixture
def holder():
    return "holder"


@pytest.fixture
def operator_identity():
    """Controlling identity of the test oracle."""
    return "station-ops"


@pytest.fixture
def clock():
    return ManualClock(start=START_HEIGHT)


@pytest.fixture
def settlement(admin, holder):
    return InMemorySettlement({admin: 1_000_000, holder: 100_000, "stranger": 100_000})


@pytest.fixture
def engine(admin, clock, settlement):
    return InsuranceEngine(
        config=EngineConfig(admin=admin, treasury_account="treasury"),
        clock=clock,
        settlement=settlement,
    )


@pytest.fixture
def market(engine, admin, operator_identity):
    """
    A funded engine with one oracle and one risk profile.

    Profile 1 prices at 500 + 200 bps over coverage [1000, 100000].
    """
    engine.fund_treasury(admin, 50_000)
    engine.register_oracle(
        admin, "station-7", "Valley Station 7", "rain_gauge", controller=operator_identity
    )
    engine.create_risk_profile(
        admin,
        profile_id=1,
        name="Drought - Central Valley",
        base_rate_bps=500,
        risk_factor_bps=200,
        coverage_multiplier=1,
        min_coverage=1_000,
        max_coverage=100_000,
    )
    return engine


@pytest.fixture
def policy(market, holder):
    """Coverage 10000 for 1000 heights, bought at START_HEIGHT."""
    return market.create_policy(holder, 1, 10_000, 1_000, location="Fresno")


@pytest.fixture
def covered_policy(market, holder, policy):
    """The policy with trigger dry_days GT 50 paying 50% of coverage."""
    market.add_condition(holder, policy.policy_id, "dry_days", "GT", 50, 5_000, "station-7")
    return policy
