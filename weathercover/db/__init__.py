"""
Persistence Layer for the WeatherCover engine

Provides:
- EngineState: every mapping the engine owns
- StateStore abstraction with call-level unit of work
- Hash-chained call journal
"""

from .store import (
    EngineState,
    StateStore,
    InMemoryStateStore,
    CallContext,
    ChainHead,
    StoreError,
    JournalIntegrityError,
    verify_event_chain,
)

__all__ = [
    "EngineState",
    "StateStore",
    "InMemoryStateStore",
    "CallContext",
    "ChainHead",
    "StoreError",
    "JournalIntegrityError",
    "verify_event_chain",
]
