"""
State Store and Unit of Work

The StateStore is the persistence collaborator. It is responsible for:
- Holding every mapping the engine reads and writes (EngineState)
- Serialising calls into a strict total order
- All-or-nothing call semantics (commit or roll back state AND journal)
- The append-only, hash-chained call journal

The engine components retain responsibility for:
- Business rule validation
- Policy and claim state machines
- Treasury bookkeeping

TRANSACTION CONTRACT:
Every state-changing call MUST run inside begin_call():

    with store.begin_call(caller, height) as ctx:
        ctx.state.policies[policy_id] = policy
        ctx.record(EventType.POLICY_CREATED, "policy", policy_id, {...})

ctx.state is a private working copy. It replaces the committed state only
when the block exits normally; any exception discards it together with the
journal events recorded during the call.
"""

import copy
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Generator, Optional
from uuid import uuid4

from ..core.hasher import Hasher
from ..schemas import (
    Claim,
    EventType,
    JournalEvent,
    OracleDataPoint,
    OracleRegistration,
    Policy,
    PolicyCondition,
    RiskProfile,
    TreasuryState,
)


# ============================================================
# EXCEPTIONS
# ============================================================

class StoreError(Exception):
    """Base exception for state store errors."""
    pass


class JournalIntegrityError(StoreError):
    """Raised when journal chain validation fails."""
    pass


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass
class EngineState:
    """
    Every mapping the engine owns, plus the platform singletons.

    Passed explicitly to every component; there are no module globals,
    so tests can run isolated engines side by side.
    """
    admin: str
    paused: bool = False
    treasury: TreasuryState = field(default_factory=TreasuryState)

    oracles: dict[str, OracleRegistration] = field(default_factory=dict)
    oracle_data: dict[tuple[str, int], OracleDataPoint] = field(default_factory=dict)

    risk_profiles: dict[int, RiskProfile] = field(default_factory=dict)

    policies: dict[int, Policy] = field(default_factory=dict)
    conditions: dict[tuple[int, int], PolicyCondition] = field(default_factory=dict)
    user_policies: dict[str, list[int]] = field(default_factory=dict)
    last_policy_id: int = 0

    claims: dict[int, Claim] = field(default_factory=dict)
    policy_claims: dict[int, int] = field(default_factory=dict)  # policy_id -> claim_id
    last_claim_id: int = 0


@dataclass
class ChainHead:
    """Current head of the journal."""
    last_sequence: int  # -1 means empty journal
    last_event_hash: Optional[str]

    @property
    def next_sequence(self) -> int:
        return self.last_sequence + 1

    @property
    def is_empty(self) -> bool:
        return self.last_sequence == -1


@dataclass
class CallContext:
    """
    One call's unit of work.

    Holds the working copy of state, the verified caller, the height the
    call executes at, and the journal events recorded so far.
    """
    state: EngineState
    caller: str
    height: int
    head: ChainHead
    _pending: list[JournalEvent] = field(default_factory=list)

    def record(
        self,
        event_type: EventType,
        entity_type: str,
        entity_id: Any,
        payload: dict[str, Any],
    ) -> JournalEvent:
        """Append a hash-chained journal event to this call's pending batch."""
        if self._pending:
            sequence = self._pending[-1].sequence_number + 1
            previous_hash = self._pending[-1].event_hash
        else:
            sequence = self.head.next_sequence
            previous_hash = self.head.last_event_hash

        body = {
            "event_type": event_type,
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "caller": self.caller,
            "height": self.height,
            "payload": payload,
        }
        event = JournalEvent(
            event_id=uuid4(),
            sequence_number=sequence,
            event_type=event_type,
            entity_type=entity_type,
            entity_id=str(entity_id),
            caller=self.caller,
            height=self.height,
            payload=payload,
            previous_event_hash=previous_hash,
            event_hash=Hasher.hash_event(body, previous_hash),
            created_at=datetime.now(timezone.utc),
        )
        event.validate_chain_rules()
        self._pending.append(event)
        return event

    @property
    def events(self) -> list[JournalEvent]:
        return list(self._pending)


def event_hash_body(event: JournalEvent) -> dict[str, Any]:
    """The hashed portion of a journal event."""
    return {
        "event_type": event.event_type,
        "entity_type": event.entity_type,
        "entity_id": event.entity_id,
        "caller": event.caller,
        "height": event.height,
        "payload": event.payload,
    }


def verify_event_chain(events: list[JournalEvent]) -> None:
    """
    Verify a complete journal.

    Raises JournalIntegrityError on the first broken link.
    """
    prev_hash = None
    for expected_sequence, event in enumerate(events):
        if event.sequence_number != expected_sequence:
            raise JournalIntegrityError(
                f"Sequence number gap or out-of-order event. "
                f"Expected {expected_sequence}, got {event.sequence_number}"
            )
        try:
            event.validate_chain_rules()
        except ValueError as e:
            raise JournalIntegrityError(str(e)) from e
        if event.previous_event_hash != prev_hash:
            raise JournalIntegrityError(
                f"Chain linkage broken at sequence {expected_sequence}"
            )
        if not Hasher.verify_chain(event_hash_body(event), event.event_hash, prev_hash):
            raise JournalIntegrityError(
                f"Hash verification failed at sequence {expected_sequence}"
            )
        prev_hash = event.event_hash


# ============================================================
# ABSTRACT BASE CLASS
# ============================================================

class StateStore(ABC):
    """
    Abstract persistence for engine state and journal.

    Implementations must ensure:
    1. Calls are serialised (one completes before the next begins)
    2. A rejected call leaves no trace in state or journal
    3. Journal sequence numbers have no gaps and no duplicates
    """

    @contextmanager
    @abstractmethod
    def begin_call(self, caller: str, height: int) -> Generator[CallContext, None, None]:
        """
        Begin a serialised, all-or-nothing call.

        Yields:
            CallContext with a working copy of state
        """
        pass

    @contextmanager
    @abstractmethod
    def exclusive(self) -> Generator[None, None, None]:
        """
        Hold the call order without opening a call.

        Collaborators outside the store (clock reads, settlement savepoints
        and rollbacks) run inside this so they are ordered with the call.
        Must be re-entrant with begin_call.
        """
        pass

    @property
    @abstractmethod
    def state(self) -> EngineState:
        """Committed state. Read-only by convention."""
        pass

    @abstractmethod
    def list_events(self) -> list[JournalEvent]:
        pass

    @abstractmethod
    def get_head(self) -> ChainHead:
        pass

    def verify_journal(self) -> bool:
        """True if the whole journal chain is intact."""
        try:
            verify_event_chain(self.list_events())
        except JournalIntegrityError:
            return False
        return True


# ============================================================
# IN-MEMORY IMPLEMENTATION
# ============================================================

class InMemoryStateStore(StateStore):
    """
    In-memory implementation of StateStore.

    Suitable for development, testing and single-process deployments.
    NOT durable.
    """

    def __init__(self, admin: str):
        self._state = EngineState(admin=admin)
        self._events: list[JournalEvent] = []
        self._head = ChainHead(last_sequence=-1, last_event_hash=None)
        self._lock = RLock()

    @contextmanager
    def exclusive(self) -> Generator[None, None, None]:
        with self._lock:
            yield

    @contextmanager
    def begin_call(self, caller: str, height: int) -> Generator[CallContext, None, None]:
        with self._lock:
            ctx = CallContext(
                state=copy.deepcopy(self._state),
                caller=caller,
                height=height,
                head=ChainHead(
                    last_sequence=self._head.last_sequence,
                    last_event_hash=self._head.last_event_hash,
                ),
            )
            yield ctx
            # Reached only when the call body did not raise
            self._commit(ctx)

    def _commit(self, ctx: CallContext) -> None:
        events = ctx.events
        if events and events[0].sequence_number != self._head.next_sequence:
            raise JournalIntegrityError(
                f"Sequence mismatch: expected {self._head.next_sequence}, "
                f"got {events[0].sequence_number}"
            )
        self._state = ctx.state
        self._events.extend(events)
        if events:
            self._head = ChainHead(
                last_sequence=events[-1].sequence_number,
                last_event_hash=events[-1].event_hash,
            )

    @property
    def state(self) -> EngineState:
        return self._state

    def list_events(self) -> list[JournalEvent]:
        return list(self._events)

    def get_head(self) -> ChainHead:
        return self._head
