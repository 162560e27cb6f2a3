"""
Error Taxonomy

Every rejection is a synchronous, typed exception carrying exactly one
ErrorKind. A rejected call leaves state exactly as it was before the call.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """The fixed rejection taxonomy."""
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    INVALID_INPUT = "invalid_input"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    DATA_MISMATCH = "data_mismatch"


class InsuranceError(Exception):
    """Base exception for engine rejections."""
    kind: ErrorKind = ErrorKind.INVALID_STATE

    @property
    def code(self) -> str:
        """Name of the concrete rejection, e.g. 'AlreadyClaimed'."""
        return type(self).__name__.removesuffix("Error")


class UnauthorizedError(InsuranceError):
    """Raised when the caller is not allowed to perform the call."""
    kind = ErrorKind.UNAUTHORIZED


class NotFoundError(InsuranceError):
    """Raised when a referenced record does not exist."""
    kind = ErrorKind.NOT_FOUND


class PolicyNotFoundError(NotFoundError):
    pass


class ClaimNotFoundError(NotFoundError):
    pass


class InvalidProfileError(NotFoundError):
    """Raised when a risk profile id is unknown."""
    pass


class OracleNotFoundError(NotFoundError):
    pass


class ConditionNotFoundError(NotFoundError):
    pass


class InvalidStateError(InsuranceError):
    """Raised when a record is in the wrong status for the transition."""
    kind = ErrorKind.INVALID_STATE


class AlreadyRegisteredError(InvalidStateError):
    pass


class AlreadyClaimedError(InvalidStateError):
    """Raised when a policy's single claim slot is already occupied."""
    pass


class ContractPausedError(InvalidStateError):
    pass


class OracleInactiveError(InvalidStateError):
    pass


class InvalidInputError(InsuranceError):
    """Raised when an argument is out of range or malformed."""
    kind = ErrorKind.INVALID_INPUT


class InvalidCoverageAmountError(InvalidInputError):
    pass


class InvalidPayoutPercentageError(InvalidInputError):
    pass


class InvalidProfileBoundsError(InvalidInputError):
    pass


class InsufficientFundsError(InsuranceError):
    """Raised when a payout, refund, withdrawal or premium cannot be funded."""
    kind = ErrorKind.INSUFFICIENT_FUNDS


class DataMismatchError(InsuranceError):
    """Raised when the bound oracle data is absent or does not match the claim."""
    kind = ErrorKind.DATA_MISMATCH
