"""Status state machines and the role gate.

Each machine is a one-step adjacency table: ``status -> frozenset`` of
statuses reachable in a single step.  Terminal statuses map to the empty
set.  The role gate is a separate guard callers evaluate *before* the table
lookup, so an unauthorized request is reported as such even when the
transition itself would also be impossible.
"""

from __future__ import annotations

from typing import Generic, Mapping, TypeVar

from workshop_lifecycle.core.context import ActorContext
from workshop_lifecycle.core.enums import (
    ActorRole,
    BudgetStatus,
    ExecutionStatus,
    OrderStatus,
)
from workshop_lifecycle.core.errors import (
    InvalidStatusTransition,
    UnauthorizedOperation,
)

S = TypeVar("S")

# ---------------------------------------------------------------------------
# Transition tables
# ---------------------------------------------------------------------------

EXECUTION_TRANSITIONS: dict[ExecutionStatus, frozenset[ExecutionStatus]] = {
    ExecutionStatus.ASSIGNED: frozenset({ExecutionStatus.IN_PROGRESS}),
    ExecutionStatus.IN_PROGRESS: frozenset({ExecutionStatus.COMPLETED}),
    ExecutionStatus.COMPLETED: frozenset(),
}

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.REQUESTED: frozenset({
        OrderStatus.RECEIVED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.RECEIVED: frozenset({
        OrderStatus.IN_DIAGNOSIS,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.IN_DIAGNOSIS: frozenset({
        OrderStatus.AWAITING_APPROVAL,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.AWAITING_APPROVAL: frozenset({
        OrderStatus.IN_REPAIR,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.IN_REPAIR: frozenset({
        OrderStatus.FINISHED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.FINISHED: frozenset({
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

BUDGET_TRANSITIONS: dict[BudgetStatus, frozenset[BudgetStatus]] = {
    BudgetStatus.GENERATED: frozenset({BudgetStatus.SENT}),
    BudgetStatus.SENT: frozenset({BudgetStatus.APPROVED, BudgetStatus.REJECTED}),
    BudgetStatus.APPROVED: frozenset(),
    BudgetStatus.REJECTED: frozenset(),
    BudgetStatus.EXPIRED: frozenset(),
}


class StatusTransitionValidator(Generic[S]):
    """Validates single-step status changes against a transition table."""

    def __init__(self, entity: str, table: Mapping[S, frozenset[S]]) -> None:
        self.entity = entity
        self._table = dict(table)

    def allowed_transitions(self, current: S) -> frozenset[S]:
        return self._table.get(current, frozenset())

    def validate_transition(self, current: S, target: S) -> None:
        """Raise ``InvalidStatusTransition`` unless *target* is reachable."""
        allowed = self.allowed_transitions(current)
        if target not in allowed:
            raise InvalidStatusTransition(self.entity, current, target, allowed)

    def is_valid_transition(self, current: S, target: S) -> bool:
        try:
            self.validate_transition(current, target)
        except InvalidStatusTransition:
            return False
        return True

    def is_terminal(self, status: S) -> bool:
        return not self.allowed_transitions(status)

    def statuses(self) -> list[S]:
        return list(self._table)


execution_transitions = StatusTransitionValidator("execution", EXECUTION_TRANSITIONS)
order_transitions = StatusTransitionValidator("order", ORDER_TRANSITIONS)
budget_transitions = StatusTransitionValidator("budget", BUDGET_TRANSITIONS)

VALIDATORS: dict[str, StatusTransitionValidator] = {
    "order": order_transitions,
    "execution": execution_transitions,
    "budget": budget_transitions,
}


# ---------------------------------------------------------------------------
# Role gate
# ---------------------------------------------------------------------------

# role -> target status -> statuses the move may start from (None = any).
ORDER_ROLE_GRANTS: dict[ActorRole, dict[OrderStatus, frozenset[OrderStatus] | None]] = {
    ActorRole.ADMIN: {status: None for status in OrderStatus},
    ActorRole.EMPLOYEE: {
        OrderStatus.RECEIVED: None,
        OrderStatus.IN_DIAGNOSIS: None,
        OrderStatus.AWAITING_APPROVAL: None,
        OrderStatus.IN_REPAIR: None,
        OrderStatus.FINISHED: None,
        OrderStatus.DELIVERED: None,
    },
    ActorRole.CLIENT: {
        OrderStatus.CANCELLED: frozenset({
            OrderStatus.REQUESTED,
            OrderStatus.RECEIVED,
        }),
    },
    ActorRole.SYSTEM: {
        OrderStatus.AWAITING_APPROVAL: None,
        OrderStatus.IN_REPAIR: None,
        OrderStatus.FINISHED: None,
        OrderStatus.CANCELLED: frozenset({OrderStatus.AWAITING_APPROVAL}),
    },
}

EXECUTION_ROLES = frozenset({ActorRole.ADMIN, ActorRole.EMPLOYEE, ActorRole.SYSTEM})


def can_transition(role: ActorRole, current: OrderStatus, target: OrderStatus) -> bool:
    """Whether *role* may request the order move ``current -> target``."""
    grants = ORDER_ROLE_GRANTS.get(role, {})
    if target not in grants:
        return False
    sources = grants[target]
    return sources is None or current in sources


def validate_role_transition(
    actor: ActorContext,
    current: OrderStatus,
    target: OrderStatus,
    order_id: str = "",
) -> None:
    if not can_transition(actor.role, current, target):
        raise UnauthorizedOperation(
            actor.role,
            f"move order to {target.value}",
            f"order {order_id or '?'} is {current.value}",
        )


def validate_execution_role(actor: ActorContext, operation: str) -> None:
    if actor.role not in EXECUTION_ROLES:
        raise UnauthorizedOperation(actor.role, operation)
