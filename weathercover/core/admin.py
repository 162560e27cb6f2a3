"""
Administrative Control

A single mutable admin identity, a pause switch, and the emergency
withdrawal circuit-breaker.

The pause switch gates policy creation and claim submission ONLY. Oracle
submission, queries, renewal, cancellation and claim processing stay
available while paused.
"""

from typing import TYPE_CHECKING

from ..schemas import EventType
from .errors import (
    ContractPausedError,
    InvalidInputError,
    UnauthorizedError,
)
from .treasury import TreasuryLedger

if TYPE_CHECKING:
    from ..db.store import CallContext, EngineState


class AdminControl:
    """Owner identity, pause switch and emergency withdrawal."""

    def __init__(self, treasury: TreasuryLedger):
        self._treasury = treasury

    @staticmethod
    def require_admin(ctx: "CallContext") -> None:
        if ctx.caller != ctx.state.admin:
            raise UnauthorizedError("Caller is not the contract admin")

    @staticmethod
    def require_not_paused(state: "EngineState") -> None:
        if state.paused:
            raise ContractPausedError("Contract is paused")

    def transfer_admin(self, ctx: "CallContext", new_admin: str) -> None:
        self.require_admin(ctx)
        if not new_admin:
            raise InvalidInputError("new admin identity must not be empty")
        if new_admin == self._treasury.account:
            raise InvalidInputError("The treasury account cannot be the admin")
        previous = ctx.state.admin
        ctx.state.admin = new_admin
        ctx.record(
            EventType.ADMIN_TRANSFERRED,
            "contract",
            "admin",
            {"previous_admin": previous, "new_admin": new_admin},
        )

    def set_paused(self, ctx: "CallContext", paused: bool) -> None:
        self.require_admin(ctx)
        ctx.state.paused = paused
        ctx.record(
            EventType.CONTRACT_PAUSED if paused else EventType.CONTRACT_UNPAUSED,
            "contract",
            "pause",
            {"paused": paused},
        )

    def emergency_withdraw(self, ctx: "CallContext", amount: int) -> None:
        self.require_admin(ctx)
        if amount <= 0:
            raise InvalidInputError(f"Withdrawal amount must be positive, got {amount}")
        self._treasury.pay_out(ctx, ctx.caller, amount, "withdrawal")
        ctx.record(
            EventType.EMERGENCY_WITHDRAWAL,
            "treasury",
            self._treasury.account,
            {"amount": amount, "recipient": ctx.caller},
        )
