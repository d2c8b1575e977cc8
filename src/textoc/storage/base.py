"""Shared helpers for the store repositories."""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError

from textoc.exceptions import DataIntegrityError, ErrorCode


class _Unset:
    """Marker for "field not supplied" in partial updates."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()


@contextmanager
def integrity_guard(session, operation: str) -> Iterator[None]:
    """Roll back and re-raise constraint violations as DataIntegrityError."""
    try:
        yield
    except IntegrityError as e:
        session.rollback()
        message = str(e.orig) if e.orig is not None else str(e)
        if "FOREIGN KEY" in message.upper():
            code = ErrorCode.MISSING_REFERENCE
        elif "UNIQUE" in message.upper():
            code = ErrorCode.DUPLICATE_NAME
        else:
            code = ErrorCode.INTEGRITY_VIOLATION
        raise DataIntegrityError(
            f"{operation} violated a store constraint: {message}",
            operation=operation,
            code=code,
            original_error=e,
        ) from e
