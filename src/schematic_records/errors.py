"""
Error types for record construction and parsing.

Construction errors are raised while a record type is being defined and keep
the record type from ever becoming usable. Parse errors are data, returned
inside an ``Err`` result; ``ParseFailed`` is only raised on request.
"""

from __future__ import annotations

from typing import Any


class SchematicError(Exception):
    """Base exception for all schematic-records errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConstructionError(SchematicError):
    """
    Raised when a record type cannot be built.

    Examples:
    - Two fields with the same name
    - A field name that is not an identifier
    - A field type rejected by the record's type fallback
    - Invalid record configuration
    """

    pass


class DuplicateField(ConstructionError, ValueError):
    """Raised when a field name is declared twice in one record."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"the field {name!r} is already set")


class InvalidFieldName(ConstructionError, ValueError):
    """Raised when a field name is not a usable identifier."""

    def __init__(self, name: Any, reason: str = "a field name must be an identifier"):
        self.name = name
        super().__init__(f"{reason}, got {name!r}")


class UnrecognizedType(ConstructionError, TypeError):
    """Raised by a closed type fallback for a type it does not know."""

    def __init__(self, raw: Any):
        self.raw = raw
        super().__init__(f"cannot derive a schema for type {raw!r}")


class UnresolvedReference(ConstructionError):
    """Raised when a record reference cannot be found in the registry."""

    def __init__(self, target: str, referrer: str | None = None):
        self.target = target
        self.referrer = referrer
        where = f" (referenced from {referrer})" if referrer else ""
        super().__init__(f"unknown record {target!r}{where}")


class ParseFailed(SchematicError):
    """
    Structured parse failure.

    Attributes:
        errors: Error structure shaped like the offending data
        data: The original input, unchanged
    """

    def __init__(self, errors: Any, data: Any):
        self.errors = errors
        self.data = data
        super().__init__(f"parse failed: {errors!r}")

    def __repr__(self) -> str:
        return f"ParseFailed(errors={self.errors!r}, data={self.data!r})"
