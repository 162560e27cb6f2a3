"""
Oracle Directory & Feed Store

The directory decides who may publish; the feed stores what was published.

Rules (enforced in code):
- Only the admin registers, (de)activates or re-labels an oracle
- Only the controlling identity may hand the oracle to another identity
- Only the controlling identity of an ACTIVE oracle may submit data
- Directory changes never touch previously published data points
- One data point per (oracle, height); a second submission at the same
  height replaces the first
"""

from typing import TYPE_CHECKING, Optional

from ..schemas import EventType, OracleDataPoint, OracleRegistration
from .errors import (
    AlreadyRegisteredError,
    InvalidInputError,
    OracleInactiveError,
    OracleNotFoundError,
    UnauthorizedError,
)

if TYPE_CHECKING:
    from ..db.store import CallContext, EngineState


class OracleDirectory:
    """Registry of trusted data providers."""

    def register(
        self,
        ctx: "CallContext",
        oracle_id: str,
        name: str,
        oracle_type: str,
        controller: Optional[str] = None,
    ) -> OracleRegistration:
        if not oracle_id:
            raise InvalidInputError("oracle_id must not be empty")
        if oracle_id in ctx.state.oracles:
            raise AlreadyRegisteredError(f"Oracle {oracle_id} is already registered")

        oracle = OracleRegistration(
            oracle_id=oracle_id,
            controlling_identity=controller or ctx.caller,
            display_name=name,
            oracle_type=oracle_type,
            is_active=True,
            registered_at=ctx.height,
        )
        ctx.state.oracles[oracle_id] = oracle
        ctx.record(EventType.ORACLE_REGISTERED, "oracle", oracle_id, oracle.model_dump())
        return oracle

    def set_active(self, ctx: "CallContext", oracle_id: str, active: bool) -> OracleRegistration:
        oracle = self.require(ctx.state, oracle_id)
        updated = oracle.model_copy(update={"is_active": active})
        ctx.state.oracles[oracle_id] = updated
        ctx.record(
            EventType.ORACLE_REACTIVATED if active else EventType.ORACLE_DEACTIVATED,
            "oracle",
            oracle_id,
            {"oracle_id": oracle_id, "is_active": active},
        )
        return updated

    def update_info(
        self,
        ctx: "CallContext",
        oracle_id: str,
        name: str,
        oracle_type: str,
    ) -> OracleRegistration:
        oracle = self.require(ctx.state, oracle_id)
        updated = oracle.model_copy(update={"display_name": name, "oracle_type": oracle_type})
        ctx.state.oracles[oracle_id] = updated
        ctx.record(
            EventType.ORACLE_UPDATED,
            "oracle",
            oracle_id,
            {"oracle_id": oracle_id, "display_name": name, "oracle_type": oracle_type},
        )
        return updated

    def transfer_ownership(
        self,
        ctx: "CallContext",
        oracle_id: str,
        new_identity: str,
    ) -> OracleRegistration:
        oracle = self.require(ctx.state, oracle_id)
        if ctx.caller != oracle.controlling_identity:
            raise UnauthorizedError(
                f"Only the controlling identity of oracle {oracle_id} may transfer it"
            )
        if not new_identity:
            raise InvalidInputError("new_identity must not be empty")

        updated = oracle.model_copy(update={"controlling_identity": new_identity})
        ctx.state.oracles[oracle_id] = updated
        ctx.record(
            EventType.ORACLE_OWNERSHIP_TRANSFERRED,
            "oracle",
            oracle_id,
            {
                "oracle_id": oracle_id,
                "previous_identity": oracle.controlling_identity,
                "new_identity": new_identity,
            },
        )
        return updated

    def get(self, state: "EngineState", oracle_id: str) -> Optional[OracleRegistration]:
        return state.oracles.get(oracle_id)

    def require(self, state: "EngineState", oracle_id: str) -> OracleRegistration:
        oracle = state.oracles.get(oracle_id)
        if oracle is None:
            raise OracleNotFoundError(f"Oracle {oracle_id} is not registered")
        return oracle

    def require_active(self, state: "EngineState", oracle_id: str) -> OracleRegistration:
        oracle = self.require(state, oracle_id)
        if not oracle.is_active:
            raise OracleInactiveError(f"Oracle {oracle_id} is deactivated")
        return oracle


class OracleFeed:
    """Measurements keyed by (oracle_id, height)."""

    def __init__(self, directory: OracleDirectory):
        self._directory = directory

    def submit(
        self,
        ctx: "CallContext",
        oracle_id: str,
        weather_type: str,
        location: str,
        value: int,
        timestamp: int,
    ) -> OracleDataPoint:
        oracle = self._directory.require_active(ctx.state, oracle_id)
        if ctx.caller != oracle.controlling_identity:
            raise UnauthorizedError(
                f"Caller is not the controlling identity of oracle {oracle_id}"
            )
        if not weather_type:
            raise InvalidInputError("weather_type must not be empty")
        if timestamp < 0:
            raise InvalidInputError("timestamp must be non-negative")

        point = OracleDataPoint(
            oracle_id=oracle_id,
            height=ctx.height,
            weather_type=weather_type,
            location=location,
            value=value,
            timestamp=timestamp,
        )
        replaced = (oracle_id, ctx.height) in ctx.state.oracle_data
        ctx.state.oracle_data[(oracle_id, ctx.height)] = point
        ctx.record(
            EventType.ORACLE_DATA_SUBMITTED,
            "oracle",
            oracle_id,
            {**point.model_dump(), "replaced": replaced},
        )
        return point

    def get(self, state: "EngineState", oracle_id: str, height: int) -> Optional[OracleDataPoint]:
        return state.oracle_data.get((oracle_id, height))

    def latest(self, state: "EngineState", oracle_id: str, current_height: int) -> Optional[OracleDataPoint]:
        """
        The point published at the current height, if any.

        This is not a historical scan: callers needing older data must
        ask for the exact height.
        """
        return state.oracle_data.get((oracle_id, current_height))
