"""
Result type for job outcomes.

``Result[T]`` is either ``Ok[T]`` wrapping a value or ``Err[T]`` wrapping
an exception. The job executor returns ``Result[None]`` so callers branch
on the outcome instead of catching exceptions at every call site.

Examples:
    >>> Ok(None).is_ok()
    True
    >>> err = Err(ValueError("disk full"))
    >>> err.is_err()
    True

Tags:
    result-pattern, error-handling, jobhost
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful result containing a value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Get the value. Safe for Ok."""
        return self.value

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """Failed result containing the exception."""

    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Raise the error. Use only when you're sure it's Ok."""
        raise self.error

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Ok[T] | Err[T]


__all__ = ["Ok", "Err", "Result"]
