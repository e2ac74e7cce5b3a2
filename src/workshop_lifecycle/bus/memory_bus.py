"""In-memory domain event bus.

No external dependencies.  Handlers run sequentially in subscription order
and each one is awaited before the next starts.

Error isolation
---------------
A handler that raises never affects its siblings or the publisher: the
exception is logged, counted per event type, recorded as a dead letter and
passed to the optional ``on_handler_error`` callback.  Only ``Exception``
subclasses are caught, so task cancellation still propagates.

Handler identity
----------------
Subscriptions are compared with ``is``.  Subscribe handler *objects* (or
module-level functions) rather than bound methods or fresh lambdas, which
produce a new object on every access and can never be unsubscribed.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from workshop_lifecycle.core.ids import utc_now
from workshop_lifecycle.core.interfaces import EventHandler
from workshop_lifecycle.domain.events import DomainEvent

logger = logging.getLogger(__name__)


@dataclass
class DeadLetter:
    """Record of a handler failure."""

    event: DomainEvent
    handler: str
    error: str
    timestamp: datetime = field(default_factory=utc_now)


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__qualname__", None) or type(handler).__name__


class InMemoryEventBus:
    """Deterministic, in-process event bus keyed by ``event_type`` strings.

    Parameters
    ----------
    on_handler_error
        Optional ``(event_type, handler_name, exc)`` callback for external
        metrics/alerting.  Failures inside the callback are logged and
        ignored.
    """

    def __init__(
        self,
        on_handler_error: Callable[[str, str, Exception], None] | None = None,
    ) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._history: list[DomainEvent] = []
        self._error_counts: dict[str, int] = defaultdict(int)
        self._dead_letters: list[DeadLetter] = []
        self._messages_processed: int = 0
        self._running = False
        self._on_handler_error = on_handler_error

    # -- Lifecycle ---------------------------------------------------------

    async def start(self) -> None:
        self._running = True

    async def stop(self) -> None:
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    # -- Core API ----------------------------------------------------------

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Register *handler* for *event_type*.  Re-registering is a no-op."""
        handlers = self._handlers[event_type]
        if any(h is handler for h in handlers):
            logger.warning(
                "Handler %s already subscribed to %s",
                _handler_name(handler), event_type,
            )
            return
        handlers.append(handler)
        logger.debug("Subscribed %s to %s", _handler_name(handler), event_type)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        """Remove *handler* from *event_type*; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if not handlers:
            logger.warning("No handlers registered for %s", event_type)
            return
        remaining = [h for h in handlers if h is not handler]
        if len(remaining) == len(handlers):
            logger.warning(
                "Handler %s not subscribed to %s",
                _handler_name(handler), event_type,
            )
            return
        if remaining:
            self._handlers[event_type] = remaining
        else:
            del self._handlers[event_type]

    async def publish(self, event: DomainEvent) -> None:
        """Deliver *event* to every handler subscribed to its type."""
        self._history.append(event)

        # Snapshot: handlers may (un)subscribe while we iterate.
        handlers = list(self._handlers.get(event.event_type, ()))
        if not handlers:
            logger.debug("No handlers for %s", event.event_type)
            return

        for handler in handlers:
            name = _handler_name(handler)
            try:
                if hasattr(handler, "handle"):
                    await handler.handle(event)
                else:
                    await handler(event)
                self._messages_processed += 1
            except Exception as exc:
                self._error_counts[event.event_type] += 1
                self._dead_letters.append(
                    DeadLetter(event=event, handler=name, error=str(exc))
                )
                logger.exception(
                    "Handler error on %s handler=%s event_id=%s",
                    event.event_type, name, event.event_id,
                )
                if self._on_handler_error is not None:
                    try:
                        self._on_handler_error(event.event_type, name, exc)
                    except Exception:
                        logger.warning(
                            "on_handler_error callback failed", exc_info=True,
                        )

    # -- Observability -----------------------------------------------------

    def handler_count(self, event_type: str) -> int:
        return len(self._handlers.get(event_type, ()))

    def get_history(self, event_type: str | None = None) -> list[DomainEvent]:
        """Return published events, optionally filtered by type."""
        if event_type is None:
            return list(self._history)
        return [e for e in self._history if e.event_type == event_type]

    def clear_history(self) -> None:
        """Clear the event history (testing helper)."""
        self._history.clear()

    def get_error_counts(self) -> dict[str, int]:
        """Return ``{event_type: error_count}``."""
        return dict(self._error_counts)

    @property
    def dead_letters(self) -> list[DeadLetter]:
        return list(self._dead_letters)

    def clear_dead_letters(self) -> list[DeadLetter]:
        """Drain and return dead letters."""
        drained = self._dead_letters[:]
        self._dead_letters.clear()
        return drained

    @property
    def messages_processed(self) -> int:
        return self._messages_processed
