"""Custom exceptions for Lychee Notes.

Provides a structured exception hierarchy with error codes and
machine-readable error information. Callers can tell the three failure
kinds apart by class: not-found errors, constraint violations and storage
failures.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Note errors (1xxx)
    NOTE_NOT_FOUND = 1001
    NOTE_VALIDATION_FAILED = 1002
    NOTE_CONTENT_REQUIRED = 1005

    # Tag errors (3xxx)
    TAG_NOT_FOUND = 3001
    TAG_INVALID = 3002
    TAG_NAME_CONFLICT = 3003

    # Storage errors (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    STORAGE_DELETE_FAILED = 4003
    CONSTRAINT_VIOLATION = 4010

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001


class LycheeError(Exception):
    """Base exception for all Lychee Notes errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
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


class NoteNotFoundError(LycheeError):
    """Raised when a mutation targets a note that does not exist."""

    def __init__(self, note_id: int, message: Optional[str] = None):
        super().__init__(
            message or f"Note with ID {note_id} not found",
            code=ErrorCode.NOTE_NOT_FOUND,
            details={"note_id": note_id}
        )
        self.note_id = note_id


class TagNotFoundError(LycheeError):
    """Raised when a tag administration call targets a missing tag."""

    def __init__(self, tag_id: int, message: Optional[str] = None):
        super().__init__(
            message or f"Tag with ID {tag_id} not found",
            code=ErrorCode.TAG_NOT_FOUND,
            details={"tag_id": tag_id}
        )
        self.tag_id = tag_id


class NoteValidationError(LycheeError):
    """Raised when note data fails validation."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.NOTE_VALIDATION_FAILED
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]  # Truncate for safety

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value


class ValidationError(LycheeError):
    """Raised for general validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value


class ConstraintViolationError(LycheeError):
    """Raised when a write would break a uniqueness or foreign-key rule.

    The enclosing transaction has been rolled back when this surfaces.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONSTRAINT_VIOLATION,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        details = dict(details or {})
        if operation:
            details["operation"] = operation
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.original_error = original_error


class TagConflictError(ConstraintViolationError):
    """Raised when a rename would give a tag the name of another tag."""

    def __init__(self, tag_id: int, new_name: str, existing_tag_id: int):
        super().__init__(
            f"A different tag is already named '{new_name}'",
            operation="rename_tag",
            code=ErrorCode.TAG_NAME_CONFLICT,
            details={
                "tag_id": tag_id,
                "tag_name": new_name,
                "existing_tag_id": existing_tag_id,
            },
        )
        self.tag_id = tag_id
        self.new_name = new_name
        self.existing_tag_id = existing_tag_id


class StorageError(LycheeError):
    """Raised for storage/persistence errors the engine cannot recover from."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.original_error = original_error

