"""
Structured error types for the folio database layer.

Only errors raised by folio itself live here. Errors coming from the
Postgres driver (asyncpg) are never wrapped: callers inspect the driver's
own exception types, e.g. ``asyncpg.UniqueViolationError``.

Manifesto:
    - **Typed hierarchy:** Config problems and transaction misuse are
      distinguishable without parsing messages
    - **Rich context:** Errors carry metadata for structured logging
    - **Error chaining:** The underlying exception is kept as ``cause``

Architecture:
    ::

        FolioError  (category, context, cause)
        ├── ConfigError         (CONFIG)
        └── DatabaseError       (DATABASE)
            └── TransactionError

Examples:
    >>> err = TransactionError("transaction already open")
    >>> err.category
    <ErrorCategory.DATABASE: 'DATABASE'>
    >>> err.with_context(state="active").to_dict()["context"]
    {'state': 'active'}

Tags:
    error-handling, exception-hierarchy, folio, database
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for classification in logs."""

    CONFIG = "CONFIG"
    DATABASE = "DATABASE"
    INTERNAL = "INTERNAL"


class FolioError(Exception):
    """
    Base exception for all folio errors.

    Subclasses set ``default_category``; instances may override it.
    ``context`` is a free-form mapping that ends up in ``to_dict()``.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context: dict[str, Any] = dict(context or {})
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> FolioError:
        """
        Add context to this error (fluent API).

        Usage:
            raise TransactionError("closed").with_context(state="committed")
        """
        self.context.update(kwargs)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        if self.context:
            result["context"] = dict(self.context)
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class ConfigError(FolioError):
    """Invalid or incomplete configuration (pool sizing, connection info)."""

    default_category = ErrorCategory.CONFIG


class DatabaseError(FolioError):
    """Database-layer error raised by folio, not by the driver."""

    default_category = ErrorCategory.DATABASE


class TransactionError(DatabaseError):
    """Transaction used out of order: nested BEGIN, or a finished handle."""


__all__ = [
    "ErrorCategory",
    "FolioError",
    "ConfigError",
    "DatabaseError",
    "TransactionError",
]
