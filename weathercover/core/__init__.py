# Core engine services
from .hasher import Hasher, CanonicalSerializationError
from .signer import Signer
from .config import EngineConfig, BPS_DENOMINATOR, DEFAULT_RENEWAL_WINDOW
from .errors import (
    ErrorKind,
    InsuranceError,
    UnauthorizedError,
    NotFoundError,
    PolicyNotFoundError,
    ClaimNotFoundError,
    InvalidProfileError,
    OracleNotFoundError,
    ConditionNotFoundError,
    InvalidStateError,
    AlreadyRegisteredError,
    AlreadyClaimedError,
    ContractPausedError,
    OracleInactiveError,
    InvalidInputError,
    InvalidCoverageAmountError,
    InvalidPayoutPercentageError,
    InvalidProfileBoundsError,
    InsufficientFundsError,
    DataMismatchError,
)
from .host import (
    HeightClock,
    ManualClock,
    SettlementLayer,
    InMemorySettlement,
    TransferError,
)
from .pricing import premium_for
from .conditions import evaluate
from .claims import payout_amount
from .engine import InsuranceEngine

__all__ = [
    "Hasher",
    "CanonicalSerializationError",
    "Signer",
    "EngineConfig",
    "BPS_DENOMINATOR",
    "DEFAULT_RENEWAL_WINDOW",
    # Errors
    "ErrorKind",
    "InsuranceError",
    "UnauthorizedError",
    "NotFoundError",
    "PolicyNotFoundError",
    "ClaimNotFoundError",
    "InvalidProfileError",
    "OracleNotFoundError",
    "ConditionNotFoundError",
    "InvalidStateError",
    "AlreadyRegisteredError",
    "AlreadyClaimedError",
    "ContractPausedError",
    "OracleInactiveError",
    "InvalidInputError",
    "InvalidCoverageAmountError",
    "InvalidPayoutPercentageError",
    "InvalidProfileBoundsError",
    "InsufficientFundsError",
    "DataMismatchError",
    # Host collaborators
    "HeightClock",
    "ManualClock",
    "SettlementLayer",
    "InMemorySettlement",
    "TransferError",
    # Pure rules
    "premium_for",
    "evaluate",
    "payout_amount",
    "InsuranceEngine",
]
