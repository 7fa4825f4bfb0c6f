"""
Program-specific exception hierarchy for the greeting program.

Every failure the program can report is a typed exception carrying a stable
integer code, so callers branch on the failure kind rather than message text.
Errors are returned to the host as a whole-invocation failure and are never
retried by the program.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Dict, Optional


class ErrorCode(IntEnum):
    """Stable result codes returned across the invocation boundary."""

    SUCCESS = 0
    INVALID_INSTRUCTION_DATA = 1
    NOT_ENOUGH_ACCOUNT_KEYS = 2
    MISSING_REQUIRED_SIGNATURE = 3
    ACCOUNT_NOT_WRITABLE = 4
    INVALID_ACCOUNT_ADDRESS = 5
    ACCOUNT_ALREADY_INITIALIZED = 6
    ACCOUNT_NOT_INITIALIZED = 7
    FIELD_TOO_LONG = 8
    UNAUTHORIZED = 9
    INVALID_ACCOUNT_DATA = 10
    INCORRECT_PROGRAM_ID = 11
    ALLOCATION_FAILED = 12
    INVALID_SEEDS = 13
    CONFIGURATION_ERROR = 14


class ProgramError(Exception):
    """Base exception for all greeting program errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        code: Stable result code for this failure kind
    """

    code: ErrorCode = ErrorCode.INVALID_INSTRUCTION_DATA

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ==================== Decode Errors ====================


class DecodeError(ProgramError):
    """Raised when instruction or record bytes cannot be decoded.

    Always fatal to the invocation.
    """

    code = ErrorCode.INVALID_INSTRUCTION_DATA


class UnknownVariantError(DecodeError):
    """Raised when the discriminant byte selects no known variant."""

    def __init__(self, tag: int, **kwargs: Any) -> None:
        super().__init__(f"Unknown instruction variant: {tag}", **kwargs)
        self.tag = tag


class TruncatedDataError(DecodeError):
    """Raised when a field extends past the end of the buffer."""

    def __init__(
        self,
        message: str,
        needed: Optional[int] = None,
        remaining: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.needed = needed
        self.remaining = remaining


class MalformedDataError(DecodeError):
    """Raised for empty input, invalid UTF-8, or trailing bytes."""
    pass


# ==================== Validation Errors ====================


class ValidationError(ProgramError):
    """Raised when the supplied accounts or fields break an instruction's rules."""
    pass


class NotEnoughAccountKeysError(ValidationError):
    """Raised when fewer accounts were supplied than the instruction needs."""

    code = ErrorCode.NOT_ENOUGH_ACCOUNT_KEYS


class MissingRequiredSignatureError(ValidationError):
    """Raised when an account that must sign did not."""

    code = ErrorCode.MISSING_REQUIRED_SIGNATURE


class AccountNotWritableError(ValidationError):
    """Raised when an account the instruction writes to is read-only."""

    code = ErrorCode.ACCOUNT_NOT_WRITABLE


class InvalidAccountAddressError(ValidationError):
    """Raised when the record slot is not the derived address."""

    code = ErrorCode.INVALID_ACCOUNT_ADDRESS

    def __init__(
        self,
        message: str,
        expected: Optional[bytes] = None,
        actual: Optional[bytes] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.expected = expected
        self.actual = actual


class AccountAlreadyInitializedError(ValidationError):
    """Raised when creating a record in a slot that already holds data."""

    code = ErrorCode.ACCOUNT_ALREADY_INITIALIZED


class AccountNotInitializedError(ValidationError):
    """Raised when updating a record whose slot was never allocated."""

    code = ErrorCode.ACCOUNT_NOT_INITIALIZED


class FieldTooLongError(ValidationError):
    """Raised when a text field exceeds its maximum byte length."""

    code = ErrorCode.FIELD_TOO_LONG

    def __init__(
        self,
        field_name: str,
        length: int,
        max_length: int,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            f"{field_name} is {length} bytes, maximum is {max_length}", **kwargs
        )
        self.field_name = field_name
        self.length = length
        self.max_length = max_length


class InvalidAccountDataError(ValidationError):
    """Raised when a stored record cannot be decoded."""

    code = ErrorCode.INVALID_ACCOUNT_DATA


class IncorrectProgramIdError(ValidationError):
    """Raised when an account is not owned by, or is not, the expected program."""

    code = ErrorCode.INCORRECT_PROGRAM_ID


# ==================== Authorization Errors ====================


class AuthorizationError(ProgramError):
    """Raised when the signer is not permitted to perform the operation."""

    code = ErrorCode.UNAUTHORIZED


class UnauthorizedError(AuthorizationError):
    """Raised when the signer is not the record's stored authority."""
    pass


# ==================== Host Errors ====================


class AllocationError(ProgramError):
    """Raised by the host allocator when an account cannot be created."""

    code = ErrorCode.ALLOCATION_FAILED


class InvalidSeedsError(ProgramError):
    """Raised when seeds derive an address that lies on the Ed25519 curve."""

    code = ErrorCode.INVALID_SEEDS


class ConfigurationError(ProgramError):
    """Raised when program configuration is missing or invalid."""

    code = ErrorCode.CONFIGURATION_ERROR


# ==================== Utility Functions ====================


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, and any additional details
    """
    context: Dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, ProgramError):
        context["error_code"] = int(exc.code)
        context["error_name"] = exc.code.name
        if exc.details:
            context["details"] = exc.details

    if isinstance(exc, FieldTooLongError):
        context["field"] = exc.field_name
        context["length"] = exc.length
        context["max_length"] = exc.max_length

    if isinstance(exc, InvalidAccountAddressError):
        if exc.expected is not None:
            context["expected_address"] = exc.expected.hex()
        if exc.actual is not None:
            context["actual_address"] = exc.actual.hex()

    if isinstance(exc, UnknownVariantError):
        context["tag"] = exc.tag

    return context
