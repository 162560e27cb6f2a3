"""
Tests for the oracle directory and data feed.
"""

import pytest

from weathercover.core import (
    AlreadyRegisteredError,
    OracleInactiveError,
    OracleNotFoundError,
    UnauthorizedError,
)
from weathercover.schemas import EventType


class TestOracleDirectory:
    """Registration and lifecycle of trusted data providers."""

    def test_register_defaults_controller_to_admin(self, engine, admin):
        oracle = engine.register_oracle(admin, "wx-1", "Station One", "thermometer")

        assert oracle.controlling_identity == admin
        assert oracle.is_active
        assert oracle.registered_at == engine.current_height()
        assert engine.is_oracle_active("wx-1")

    def test_register_with_explicit_controller(self, market, operator_identity):
        assert market.get_oracle("station-7").controlling_identity == operator_identity

    def test_only_admin_registers(self, engine, holder):
        with pytest.raises(UnauthorizedError):
            engine.register_oracle(holder, "wx-1", "Station One", "thermometer")
        assert engine.get_oracle("wx-1") is None

    def test_duplicate_registration_rejected(self, market, admin):
        with pytest.raises(AlreadyRegisteredError):
            market.register_oracle(admin, "station-7", "Again", "rain_gauge")

    def test_deactivate_and_reactivate(self, market, admin):
        market.deactivate_oracle(admin, "station-7")
        assert not market.is_oracle_active("station-7")

        market.reactivate_oracle(admin, "station-7")
        assert market.is_oracle_active("station-7")

        kinds = [e.event_type for e in market.list_journal(entity_type="oracle")]
        assert kinds[-2:] == [EventType.ORACLE_DEACTIVATED, EventType.ORACLE_REACTIVATED]

    def test_deactivate_unknown_oracle(self, engine, admin):
        with pytest.raises(OracleNotFoundError):
            engine.deactivate_oracle(admin, "missing")

    def test_update_info(self, market, admin):
        updated = market.update_oracle_info(admin, "station-7", "Renamed", "satellite")

        assert updated.display_name == "Renamed"
        assert updated.oracle_type == "satellite"

    def test_update_info_requires_admin(self, market, operator_identity):
        with pytest.raises(UnauthorizedError):
            market.update_oracle_info(operator_identity, "station-7", "Renamed", "satellite")

    def test_is_oracle_active_for_unknown_oracle(self, engine):
        assert not engine.is_oracle_active("missing")


class TestOwnershipTransfer:
    """Only the controlling identity hands an oracle over."""

    def test_controller_transfers(self, market, operator_identity, clock):
        market.transfer_oracle_ownership(operator_identity, "station-7", "new-ops")

        assert market.get_oracle("station-7").controlling_identity == "new-ops"
        market.submit_oracle_data("new-ops", "station-7", "dry_days", "Fresno", 10, 1)
        clock.advance(1)
        with pytest.raises(UnauthorizedError):
            market.submit_oracle_data(operator_identity, "station-7", "dry_days", "Fresno", 10, 1)

    def test_admin_cannot_transfer_foreign_oracle(self, market, admin):
        with pytest.raises(UnauthorizedError):
            market.transfer_oracle_ownership(admin, "station-7", admin)


class TestOracleFeed:
    """Measurements keyed by (oracle, height)."""

    def test_submit_stamps_current_height(self, market, operator_identity, clock):
        clock.advance(5)
        point = market.submit_oracle_data(
            operator_identity, "station-7", "rainfall_mm", "Fresno", 12, 1_700_000_000
        )

        assert point.height == clock.current()
        assert market.get_oracle_data("station-7", clock.current()) == point
        assert market.get_latest_oracle_data("station-7") == point

    def test_latest_only_sees_current_height(self, market, operator_identity, clock):
        market.submit_oracle_data(operator_identity, "station-7", "rainfall_mm", "Fresno", 12, 1)
        clock.advance(1)

        assert market.get_latest_oracle_data("station-7") is None
        assert market.get_oracle_data("station-7", clock.current() - 1) is not None

    def test_non_controller_cannot_submit(self, market, admin):
        with pytest.raises(UnauthorizedError):
            market.submit_oracle_data(admin, "station-7", "rainfall_mm", "Fresno", 12, 1)

    def test_inactive_oracle_cannot_submit(self, market, admin, operator_identity):
        market.deactivate_oracle(admin, "station-7")

        with pytest.raises(OracleInactiveError):
            market.submit_oracle_data(operator_identity, "station-7", "rainfall_mm", "Fresno", 12, 1)

    def test_unknown_oracle_cannot_submit(self, market, operator_identity):
        with pytest.raises(OracleNotFoundError):
            market.submit_oracle_data(operator_identity, "missing", "rainfall_mm", "Fresno", 12, 1)

    def test_deactivation_keeps_published_data(self, market, admin, operator_identity, clock):
        point = market.submit_oracle_data(
            operator_identity, "station-7", "rainfall_mm", "Fresno", 12, 1
        )
        market.deactivate_oracle(admin, "station-7")

        assert market.get_oracle_data("station-7", point.height) == point

    def test_same_height_submission_replaces(self, market, operator_identity):
        market.submit_oracle_data(operator_identity, "station-7", "rainfall_mm", "Fresno", 12, 1)
        second = market.submit_oracle_data(
            operator_identity, "station-7", "rainfall_mm", "Fresno", 30, 2
        )

        assert market.get_oracle_data("station-7", second.height).value == 30
        submissions = [
            e for e in market.list_journal(entity_type="oracle")
            if e.event_type == EventType.ORACLE_DATA_SUBMITTED
        ]
        assert [e.payload["replaced"] for e in submissions] == [False, True]

    def test_oracle_submission_allowed_while_paused(self, market, admin, operator_identity):
        market.pause(admin)

        point = market.submit_oracle_data(
            operator_identity, "station-7", "rainfall_mm", "Fresno", 12, 1
        )
        assert point.value == 12
