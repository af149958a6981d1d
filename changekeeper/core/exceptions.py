"""
Custom exception classes for the change runner.

This module provides:
- Error codes for programmatic error handling
- A common base exception carrying its code
- Specific exception classes for lock, ledger, discovery and execution failures
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from changekeeper.migrations.models import ExecutionReport


class ErrorCode:
    """Error codes for programmatic error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "ERR_1000"
    CONFIGURATION_ERROR = "ERR_1001"

    # Discovery errors (2xxx)
    DUPLICATE_CHANGE_ID = "ERR_2001"
    RESERVED_CHANGE_ID = "ERR_2002"
    INVALID_CHANGELOG = "ERR_2003"

    # Lock errors (3xxx)
    LOCK_UNOBTAINABLE = "ERR_3001"

    # Execution errors (4xxx)
    CHANGE_EXECUTION_FAILED = "ERR_4001"

    # Store errors (5xxx)
    STORE_UNAVAILABLE = "ERR_5001"


class ChangeKeeperError(Exception):
    """Base exception for all change runner errors."""

    error_code: str = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, error_code: str | None = None):
        self.error_code = error_code or self.__class__.error_code
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Structured form used by the CLI JSON output."""
        return {
            "error": self.__class__.__name__,
            "code": self.error_code,
            "message": self.message,
        }


class ConfigurationError(ChangeKeeperError):
    """Raised when the runner is misconfigured."""

    error_code = ErrorCode.CONFIGURATION_ERROR


# =============================================================================
# Discovery Errors
# =============================================================================


class DuplicateChangeIdError(ChangeKeeperError):
    """Raised when two change sets declare the same id."""

    error_code = ErrorCode.DUPLICATE_CHANGE_ID

    def __init__(self, change_id: str):
        self.change_id = change_id
        super().__init__(f"Duplicated change set id found: '{change_id}'")


class ReservedChangeIdError(ChangeKeeperError):
    """Raised when a change set uses the id reserved for the lock record."""

    error_code = ErrorCode.RESERVED_CHANGE_ID

    def __init__(self, change_id: str):
        self.change_id = change_id
        super().__init__(f"Change set id '{change_id}' is reserved for the process lock")


class InvalidChangeLogError(ChangeKeeperError):
    """Raised when a changelog file cannot be loaded."""

    error_code = ErrorCode.INVALID_CHANGELOG


# =============================================================================
# Lock Errors
# =============================================================================


class LockUnobtainableError(ChangeKeeperError):
    """Raised when the process lock could not be obtained within the wait policy."""

    error_code = ErrorCode.LOCK_UNOBTAINABLE

    def __init__(self, message: str = "Could not acquire process lock"):
        super().__init__(message)


# =============================================================================
# Execution Errors
# =============================================================================


class ChangeExecutionFailedError(ChangeKeeperError):
    """
    Raised when a change unit's invocation fails.

    Attributes:
        change_id: Id of the change unit that failed.
        cause: The exception raised by the change unit.
        report: What the run did before the failure.
    """

    error_code = ErrorCode.CHANGE_EXECUTION_FAILED

    def __init__(
        self,
        change_id: str,
        cause: BaseException,
        report: "ExecutionReport | None" = None,
    ):
        self.change_id = change_id
        self.cause = cause
        self.report = report
        super().__init__(f"Change set '{change_id}' failed: {cause}")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["change_id"] = self.change_id
        return data


# =============================================================================
# Store Errors
# =============================================================================


class StoreUnavailableError(ChangeKeeperError):
    """Raised when the underlying store fails for reasons other than a key conflict."""

    error_code = ErrorCode.STORE_UNAVAILABLE

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        super().__init__(f"Store operation '{operation}' failed: {detail}")
