"""Execution aggregate rules.

An execution is created when its order reaches ``IN_REPAIR``.  It moves
``ASSIGNED -> IN_PROGRESS -> COMPLETED`` and cannot progress without a
mechanic.  Once completed it is immutable.
"""

from __future__ import annotations

from datetime import datetime

from workshop_lifecycle.core.enums import ExecutionStatus, OrderStatus
from workshop_lifecycle.core.errors import (
    ExecutionCompleted,
    ExecutionNotAllowed,
    MechanicNotAssigned,
)
from workshop_lifecycle.core.models import Execution, Order

from .transitions import execution_transitions


def open_execution(order: Order, now: datetime, mechanic_id: str | None = None) -> Execution:
    if order.status != OrderStatus.IN_REPAIR:
        raise ExecutionNotAllowed(order.id, order.status)
    return Execution(
        order_id=order.id,
        mechanic_id=mechanic_id,
        created_at=now,
        updated_at=now,
    )


def assign_mechanic(execution: Execution, mechanic_id: str, now: datetime) -> Execution:
    if execution.status == ExecutionStatus.COMPLETED:
        raise ExecutionCompleted(execution.id)
    return execution.touch(now, mechanic_id=mechanic_id)


def start(execution: Execution, now: datetime) -> Execution:
    execution_transitions.validate_transition(
        execution.status, ExecutionStatus.IN_PROGRESS,
    )
    if not execution.mechanic_id:
        raise MechanicNotAssigned(execution.id)
    return execution.touch(now, status=ExecutionStatus.IN_PROGRESS, started_at=now)


def complete(execution: Execution, now: datetime, notes: str | None = None) -> Execution:
    execution_transitions.validate_transition(
        execution.status, ExecutionStatus.COMPLETED,
    )
    if not execution.mechanic_id:
        raise MechanicNotAssigned(execution.id)
    changes: dict = {"status": ExecutionStatus.COMPLETED, "completed_at": now}
    if notes is not None:
        changes["notes"] = notes
    return execution.touch(now, **changes)
