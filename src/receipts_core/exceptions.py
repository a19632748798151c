"""Domain-specific exceptions for receipts_core.

This module defines custom exceptions that are part of the public API.
All exceptions inherit from ReceiptsCoreError for easy catching.
"""

from __future__ import annotations

from typing import Any


class ReceiptsCoreError(Exception):
    """Base exception for all receipts_core errors.

    Attributes:
        context: Extra details about the failure (record identifiers,
            offending values). Always a dict, possibly empty.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context: dict[str, Any] = dict(context or {})

    def to_dict(self) -> dict[str, Any]:
        """Return the error as a JSON-friendly dict for logging."""
        return {
            "name": type(self).__name__,
            "message": str(self),
            "context": {k: _safe_repr(v) for k, v in self.context.items()},
        }


class ConfigError(ReceiptsCoreError):
    """Raised when there is a configuration error.

    This exception is raised when:
    - Unknown configuration keys are provided
    - Configuration values have the wrong type
    - Configuration files cannot be loaded or parsed
    """


class DataValidationError(ReceiptsCoreError):
    """Raised when a single record or argument fails validation.

    This exception is raised when:
    - A claimed record has no transaction date or a non-numeric total
    - An online order is cancelled and must be skipped
    - A filter is built with invalid arguments

    Batch operations catch it per record, log it, and keep going.
    """


class UnsupportedRecordError(ReceiptsCoreError):
    """Raised when no normalizer claims a record.

    Batch callers treat this as a no-op: the record is counted as
    unsupported and dropped.
    """


class ArithmeticGuardError(ReceiptsCoreError):
    """Raised when a calculation receives negative or non-numeric input.

    This is a programming error on the caller's side and is never caught
    inside the package.
    """


def _safe_repr(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return repr(value)
