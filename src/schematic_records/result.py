"""
Result values returned by parse operations.

``parse`` never raises on bad input; it returns ``Ok(value)`` or
``Err(error)``. Both are frozen dataclasses and work with ``match``::

    match Task.parse(payload):
        case Ok(task):
            ...
        case Err(ParseFailed(errors=errors)):
            ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result."""

    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed result holding the error value."""

    error: E

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        """Raise the held error if it is an exception, else wrap it in ValueError."""
        if isinstance(self.error, BaseException):
            raise self.error
        raise ValueError(self.error)


Result = Ok[T] | Err[E]
