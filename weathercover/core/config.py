"""
Engine Configuration

Environment Variables:
    WEATHERCOVER_ADMIN: Initial admin identity (default "admin")
    WEATHERCOVER_TREASURY_ACCOUNT: Settlement account holding pooled funds
        (default "treasury")
    WEATHERCOVER_RENEWAL_WINDOW: Heights before end_height during which a
        policy may be renewed (default 100)
    WEATHERCOVER_START_HEIGHT: Initial height of the in-memory clock (default 0)
"""

import os
from dataclasses import dataclass


DEFAULT_RENEWAL_WINDOW = 100
BPS_DENOMINATOR = 10_000


@dataclass(frozen=True)
class EngineConfig:
    """Static engine settings. Mutable platform state lives in EngineState."""
    admin: str = "admin"
    treasury_account: str = "treasury"
    renewal_window: int = DEFAULT_RENEWAL_WINDOW
    start_height: int = 0

    def __post_init__(self):
        if self.renewal_window < 0:
            raise ValueError("renewal_window must be non-negative")
        if self.admin == self.treasury_account:
            raise ValueError("admin identity and treasury account must differ")

    @classmethod
    def from_env(cls) -> "EngineConfig":
        return cls(
            admin=os.getenv("WEATHERCOVER_ADMIN", "admin"),
            treasury_account=os.getenv("WEATHERCOVER_TREASURY_ACCOUNT", "treasury"),
            renewal_window=int(
                os.getenv("WEATHERCOVER_RENEWAL_WINDOW", str(DEFAULT_RENEWAL_WINDOW))
            ),
            start_height=int(os.getenv("WEATHERCOVER_START_HEIGHT", "0")),
        )
