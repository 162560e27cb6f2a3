"""
Treasury Ledger

Tracks the pooled balance and its running totals. Every outflow is gated
by a solvency check immediately before the transfer, and the transfer is
attempted BEFORE any bookkeeping changes: if the settlement layer rejects
it, no decrement is ever observed.
"""

from typing import TYPE_CHECKING

from ..schemas import TreasuryState
from .errors import InsufficientFundsError, InvalidInputError
from .host import SettlementLayer, TransferError

if TYPE_CHECKING:
    from ..db.store import CallContext


# Outflow kinds -> TreasuryState counter they advance
_OUTFLOW_COUNTERS = {
    "claim": "total_claims_paid",
    "refund": "total_refunds_paid",
    "withdrawal": "total_withdrawn",
}


class TreasuryLedger:
    """Solvency-gated bookkeeping over the host settlement layer."""

    def __init__(self, settlement: SettlementLayer, account: str):
        self._settlement = settlement
        self._account = account

    @property
    def account(self) -> str:
        """Settlement identity that holds pooled funds."""
        return self._account

    # ------------------------------------------------------------
    # Inflows
    # ------------------------------------------------------------

    def collect_premium(self, ctx: "CallContext", payer: str, amount: int) -> None:
        self._collect(ctx, payer, amount, "total_premiums_collected")

    def deposit(self, ctx: "CallContext", depositor: str, amount: int) -> None:
        if amount <= 0:
            raise InvalidInputError(f"Deposit amount must be positive, got {amount}")
        self._collect(ctx, depositor, amount, "total_capital_deposited")

    def _collect(self, ctx: "CallContext", payer: str, amount: int, counter: str) -> None:
        if amount == 0:
            return
        try:
            self._settlement.transfer(amount, payer, self._account)
        except TransferError as e:
            raise InsufficientFundsError(f"Could not collect {amount} from {payer}: {e}") from e

        treasury = ctx.state.treasury
        ctx.state.treasury = treasury.model_copy(update={
            "balance": treasury.balance + amount,
            counter: getattr(treasury, counter) + amount,
        })

    # ------------------------------------------------------------
    # Outflows
    # ------------------------------------------------------------

    def require_solvent(self, treasury: TreasuryState, amount: int) -> None:
        if treasury.balance < amount:
            raise InsufficientFundsError(
                f"Treasury balance {treasury.balance} cannot cover {amount}"
            )

    def pay_out(self, ctx: "CallContext", recipient: str, amount: int, kind: str) -> None:
        """
        Transfer amount from the treasury to recipient.

        kind is one of 'claim', 'refund', 'withdrawal'.
        """
        counter = _OUTFLOW_COUNTERS[kind]
        if amount == 0:
            return

        self.require_solvent(ctx.state.treasury, amount)
        try:
            self._settlement.transfer(amount, self._account, recipient)
        except TransferError as e:
            raise InsufficientFundsError(f"Treasury transfer of {amount} failed: {e}") from e

        treasury = ctx.state.treasury
        ctx.state.treasury = treasury.model_copy(update={
            "balance": treasury.balance - amount,
            counter: getattr(treasury, counter) + amount,
        })
