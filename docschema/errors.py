"""Exceptions raised while inferring document schemas."""

from __future__ import annotations

from typing import Any


class SchemaError(Exception):
    """Base class for schema inference failures."""


class UnsupportedTypeError(SchemaError, TypeError):
    """Raised when a value has no counterpart in the classification table."""

    def __init__(self, path: str, value: Any) -> None:
        self.path = path
        self.kind = type(value).__name__
        location = path or "<document>"
        super().__init__(f"Unsupported value of type {self.kind!r} at {location!r}")


class NestingDepthError(SchemaError, ValueError):
    """Raised when a document nests deeper than the configured limit."""

    def __init__(self, path: str, limit: int) -> None:
        self.path = path
        self.limit = limit
        super().__init__(f"Nesting deeper than {limit} levels at {path or '<document>'!r}")


class InvariantViolation(SchemaError, RuntimeError):
    """Raised when an aggregate is used outside its finalize lifecycle."""


class KeyCollisionError(SchemaError, ValueError):
    """Raised when two keys of a document resolve to the same field path."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(f"Key collision at {path!r}: {reason}")


# Data errors that make a single document unusable without touching the aggregate.
DOCUMENT_ERRORS = (UnsupportedTypeError, NestingDepthError, KeyCollisionError)
