"""Use-case boundary: exceptions in, ``Result`` out."""

from __future__ import annotations

from typing import Any, Awaitable, TypeVar

from structlog.contextvars import bound_contextvars

from workshop_lifecycle.core.enums import ErrorKind
from workshop_lifecycle.core.errors import InfrastructureError, WorkshopError
from workshop_lifecycle.core.result import Result
from workshop_lifecycle.observability import metrics
from workshop_lifecycle.observability.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def run_use_case(
    operation: str,
    action: Awaitable[T],
    **context: Any,
) -> Result[T]:
    """Await *action* and convert its outcome into a ``Result``.

    Expected domain failures are logged at warning level.  Infrastructure
    errors and anything unexpected are logged with the traceback; unexpected
    exceptions are wrapped in ``InfrastructureError`` so callers see only
    the documented error kinds.

    Records emitted while *action* runs, including those of handlers it
    triggers, carry ``use_case=operation``.
    """
    with bound_contextvars(use_case=operation):
        try:
            value = await action
        except WorkshopError as exc:
            metrics.record_use_case(operation, exc.kind.value)
            if exc.kind == ErrorKind.INFRASTRUCTURE:
                logger.error(
                    "use_case_failed", operation=operation, error=str(exc),
                    kind=exc.kind.value, exc_info=True, **context,
                )
            else:
                logger.warning(
                    "use_case_rejected", operation=operation, error=str(exc),
                    error_type=type(exc).__name__, kind=exc.kind.value, **context,
                )
            return Result.failure(exc)
        except Exception as exc:
            metrics.record_use_case(operation, ErrorKind.INFRASTRUCTURE.value)
            logger.error(
                "use_case_crashed", operation=operation, error=str(exc),
                exc_info=True, **context,
            )
            return Result.failure(InfrastructureError(operation, exc))

    metrics.record_use_case(operation, "success")
    return Result.success(value)
