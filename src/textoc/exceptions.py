"""Exception hierarchy for textoc.

Every error raised by the store, the file mirror and the workspace carries
an ``ErrorCode`` and a small ``details`` dict so front ends can react to the
kind of failure without parsing messages. Git failures stay inside the
sync layer as ``GitError`` and surface only through ``SyncResult``.
"""
from enum import Enum
from typing import Any, Dict, Optional

# Upper bound for exception text copied into ``details``
_MAX_DETAIL = 200


class ErrorCode(Enum):
    """Machine-readable failure kinds, grouped by layer."""

    # Missing rows (1xxx)
    NOTE_NOT_FOUND = 1001
    NOTEBOOK_NOT_FOUND = 1002
    TAG_NOT_FOUND = 1003

    # Store constraints (2xxx)
    INTEGRITY_VIOLATION = 2001
    DUPLICATE_NAME = 2002
    MISSING_REFERENCE = 2003

    # Database and mirror files (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    STORAGE_DELETE_FAILED = 4003
    SCHEMA_MIGRATION_FAILED = 4004

    # Git repository (5xxx)
    SYNC_NOT_CONFIGURED = 5001
    SYNC_PUSH_FAILED = 5002

    # Rejected input (7xxx)
    VALIDATION_FAILED = 7001
    EMPTY_NAME = 7002
    NOTEBOOK_CYCLE = 7003
    PATH_TRAVERSAL_DETECTED = 7004


def _context(
    operation: Optional[str] = None, original_error: Optional[Exception] = None
) -> Dict[str, Any]:
    details: Dict[str, Any] = {}
    if operation:
        details["operation"] = operation
    if original_error is not None:
        details["original_error"] = str(original_error)[:_MAX_DETAIL]
    return details


class TextocError(Exception):
    """Base class for textoc errors.

    Attributes:
        message: Human-readable text
        code: ``ErrorCode`` member
        details: Extra context (ids, operation names, truncated causes)
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict form for logging or a JSON front end."""
        return {
            "error": type(self).__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": dict(self.details),
        }

    def __str__(self) -> str:
        text = f"[{self.code.name}] {self.message}"
        if not self.details:
            return text
        extra = ", ".join(f"{key}={value}" for key, value in self.details.items())
        return f"{text} ({extra})"


class NotFoundError(TextocError):
    """A note, notebook or tag id that names no row."""

    def __init__(
        self, entity: str, entity_id: str, code: ErrorCode = ErrorCode.NOTE_NOT_FOUND
    ):
        super().__init__(
            f"{entity.capitalize()} '{entity_id}' does not exist",
            code=code,
            details={"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(TextocError):
    """Input rejected before the store is touched."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
    ):
        details: Dict[str, Any] = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]
        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value


class DataIntegrityError(TextocError):
    """A write the store refused because of a constraint."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        code: ErrorCode = ErrorCode.INTEGRITY_VIOLATION,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, code=code, details=_context(operation, original_error))
        self.operation = operation
        self.original_error = original_error


class StorageError(TextocError):
    """Database or mirror-file I/O failure."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[Exception] = None,
    ):
        details = _context(operation, original_error)
        if path:
            # File name only; full paths stay out of error output
            details["file"] = str(path).replace("\\", "/").rsplit("/", 1)[-1]
        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.path = path
        self.original_error = original_error


class SyncError(TextocError):
    """The mirror repository could not be prepared for sync."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        code: ErrorCode = ErrorCode.SYNC_PUSH_FAILED,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, code=code, details=_context(operation, original_error))
        self.operation = operation
        self.original_error = original_error
