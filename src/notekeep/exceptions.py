"""Custom exceptions for the notekeep persistence core.

Provides a structured exception hierarchy with error codes and
machine-readable error information for better error handling.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Argument errors (1xxx)
    INVALID_ARGUMENT = 1001
    INVALID_NOTE_ID = 1002
    INVALID_DATA_ID = 1003

    # Lookup errors (2xxx)
    NOTE_NOT_FOUND = 2001
    NOTE_DATA_NOT_FOUND = 2002

    # Store errors (4xxx)
    STORE_READ_FAILED = 4001
    STORE_WRITE_FAILED = 4002
    STORE_DELETE_FAILED = 4003
    STORE_BATCH_FAILED = 4004
    STORE_ID_ALLOCATION_FAILED = 4005

    # Configuration errors (6xxx)
    CONFIG_INVALID = 6001


class NotekeepError(Exception):
    """Base exception for all notekeep errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INVALID_ARGUMENT,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class InvalidArgumentError(NotekeepError):
    """Raised when a caller passes a malformed argument, e.g. an id <= 0."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.INVALID_ARGUMENT
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value


class NoteNotFoundError(NotekeepError):
    """Raised when a note (or its content rows) cannot be read."""

    def __init__(
        self,
        note_id: int,
        message: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOTE_NOT_FOUND
    ):
        super().__init__(
            message or f"Note with ID {note_id} not found",
            code=code,
            details={"note_id": note_id}
        )
        self.note_id = note_id


class StoreError(NotekeepError):
    """Raised when the record store rejects or fails an operation."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        row_id: Optional[int] = None,
        code: ErrorCode = ErrorCode.STORE_WRITE_FAILED,
        original_error: Optional[Exception] = None
    ):
        details: Dict[str, Any] = {}
        if operation:
            details["operation"] = operation
        if table:
            details["table"] = table
        if row_id is not None:
            details["row_id"] = row_id
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.table = table
        self.row_id = row_id
        self.original_error = original_error


class ConfigurationError(NotekeepError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key
