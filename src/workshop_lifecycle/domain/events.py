"""Domain events published on the in-process bus.

Design invariants
-----------------
1.  Every event is **immutable** (``frozen=True``).
2.  ``event_type`` is the routing key; values come from ``EventType``.
3.  ``version`` is the aggregate version *after* the change that produced
    the event, so events of one aggregate are monotonically ordered.
4.  Events are published only after the change has been persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from workshop_lifecycle.core.enums import EventType
from workshop_lifecycle.core.ids import new_id as _uuid
from workshop_lifecycle.core.ids import utc_now as _now


@dataclass(frozen=True)
class DomainEvent:
    """Immutable lifecycle event.

    Shared fields
    ~~~~~~~~~~~~~
    event_type      Routing key (``EventType`` value).
    aggregate_id    Id of the aggregate that changed.
    data            Event payload.
    version         Aggregate version after the change.
    event_id        Unique identity (UUID4).
    timestamp       UTC creation time.
    source          Module that produced this event.
    """

    event_type: str
    aggregate_id: str
    data: Mapping[str, Any] = field(default_factory=dict)
    version: int = 1
    event_id: str = field(default_factory=_uuid)
    timestamp: datetime = field(default_factory=_now)
    source: str = ""


def make_event(
    event_type: EventType,
    aggregate_id: str,
    *,
    version: int = 1,
    timestamp: datetime | None = None,
    source: str = "",
    **data: Any,
) -> DomainEvent:
    """Build a ``DomainEvent``; enum payload values are flattened to strings."""
    payload = {k: getattr(v, "value", v) for k, v in data.items()}
    kwargs: dict[str, Any] = {}
    if timestamp is not None:
        kwargs["timestamp"] = timestamp
    return DomainEvent(
        event_type=event_type.value,
        aggregate_id=aggregate_id,
        data=payload,
        version=version,
        source=source,
        **kwargs,
    )
