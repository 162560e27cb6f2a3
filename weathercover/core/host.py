"""
Host Collaborators

The engine does not own time or money. It consumes:
- HeightClock: the host ledger's monotonic logical clock
- SettlementLayer: atomic value transfer between identities

In-memory implementations are provided for development and tests.
Both participate in the call-level unit of work: a settlement savepoint
is taken when a call begins and restored if the call is rejected.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from threading import Lock
from typing import Any


class TransferError(Exception):
    """Raised when a transfer cannot be executed. No partial effect."""
    pass


# ============================================================
# CLOCK
# ============================================================

class HeightClock(ABC):
    """Monotonic height source."""

    @abstractmethod
    def current(self) -> int:
        """Return the current height."""
        pass


class ManualClock(HeightClock):
    """
    Clock advanced explicitly.

    Used in tests and in single-process deployments where the caller
    drives block production.
    """

    def __init__(self, start: int = 0):
        if start < 0:
            raise ValueError("start height must be non-negative")
        self._height = start
        self._lock = Lock()

    def current(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        """Move the clock forward. Heights never go backwards."""
        if blocks < 0:
            raise ValueError("height is monotonic; cannot advance by a negative amount")
        with self._lock:
            self._height += blocks
            return self._height

    def set(self, height: int) -> int:
        if height < self._height:
            raise ValueError(
                f"height is monotonic; cannot move from {self._height} back to {height}"
            )
        with self._lock:
            self._height = height
            return self._height


# ============================================================
# SETTLEMENT
# ============================================================

class SettlementLayer(ABC):
    """
    Atomic value transfer.

    transfer() either fully succeeds or raises TransferError with no effect.
    """

    @abstractmethod
    def transfer(self, amount: int, sender: str, recipient: str) -> None:
        pass

    @abstractmethod
    def balance_of(self, identity: str) -> int:
        pass

    @abstractmethod
    def savepoint(self) -> Any:
        """Opaque marker to restore if the surrounding call is rejected."""
        pass

    @abstractmethod
    def rollback_to(self, savepoint: Any) -> None:
        pass


class InMemorySettlement(SettlementLayer):
    """
    In-memory balances keyed by identity.

    Suitable for development and testing. Not a real ledger.
    """

    def __init__(self, balances: dict[str, int] | None = None):
        self._balances: dict[str, int] = defaultdict(int, balances or {})
        self._transfers: list[tuple[int, str, str]] = []

    def credit(self, identity: str, amount: int) -> None:
        """Mint funds into an account (test and demo helper)."""
        if amount < 0:
            raise ValueError("credit amount must be non-negative")
        self._balances[identity] += amount

    def transfer(self, amount: int, sender: str, recipient: str) -> None:
        if amount <= 0:
            raise TransferError(f"Transfer amount must be positive, got {amount}")
        if sender == recipient:
            raise TransferError("Sender and recipient must differ")
        available = self._balances[sender]
        if available < amount:
            raise TransferError(
                f"{sender} holds {available}, cannot transfer {amount}"
            )
        self._balances[sender] = available - amount
        self._balances[recipient] += amount
        self._transfers.append((amount, sender, recipient))

    def balance_of(self, identity: str) -> int:
        return self._balances.get(identity, 0)

    @property
    def transfers(self) -> list[tuple[int, str, str]]:
        """Executed transfers as (amount, sender, recipient)."""
        return list(self._transfers)

    def savepoint(self) -> Any:
        return dict(self._balances), len(self._transfers)

    def rollback_to(self, savepoint: Any) -> None:
        balances, transfer_count = savepoint
        self._balances = defaultdict(int, balances)
        del self._transfers[transfer_count:]
