"""Tagged success/failure value returned by every use case."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from .enums import ErrorKind
from .errors import WorkshopError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a use case.

    Exactly one of ``value`` / ``error`` is meaningful, selected by
    ``is_success``.  Failures keep the original typed exception so callers
    can branch on ``error_kind`` or on the exception class.
    """

    is_success: bool
    value: T | None = None
    error: WorkshopError | None = None

    @classmethod
    def success(cls, value: T) -> Result[T]:
        return cls(is_success=True, value=value)

    @classmethod
    def failure(cls, error: WorkshopError) -> Result[T]:
        return cls(is_success=False, error=error)

    @property
    def is_failure(self) -> bool:
        return not self.is_success

    @property
    def error_kind(self) -> ErrorKind | None:
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> T:
        """Return the value or raise the stored error."""
        if not self.is_success:
            assert self.error is not None
            raise self.error
        return self.value  # type: ignore[return-value]
