"""Lifecycle event handlers.

Each handler reacts to one event type and drives the next step of the
repair flow as the ``SYSTEM`` actor:

    order.received       -> create the order's budget
    budget.sent          -> order IN_DIAGNOSIS -> AWAITING_APPROVAL
    budget.approved      -> order -> IN_REPAIR, open the execution
    budget.rejected      -> order -> CANCELLED
    execution.completed  -> order -> FINISHED

Handlers are objects so their identity is stable for (un)subscription.
A failed use case is re-raised via ``Result.unwrap()`` so the bus logs it
and records a dead letter.
"""

from __future__ import annotations

import logging

from workshop_lifecycle.core.context import SYSTEM_ACTOR
from workshop_lifecycle.core.enums import EventType, OrderStatus
from workshop_lifecycle.core.errors import BudgetAlreadyExists
from workshop_lifecycle.core.interfaces import IEventBus, IEventHandler
from workshop_lifecycle.domain.events import DomainEvent

from .budgets import BudgetService
from .executions import ExecutionService
from .orders import OrderService

logger = logging.getLogger(__name__)


class CreateBudgetOnOrderReceived:
    def __init__(self, budgets: BudgetService, notes: str | None = None) -> None:
        self._budgets = budgets
        self._notes = notes

    async def handle(self, event: DomainEvent) -> None:
        result = await self._budgets.create_for_order(
            event.aggregate_id, event.data["client_id"], notes=self._notes,
        )
        if result.is_failure and isinstance(result.error, BudgetAlreadyExists):
            logger.info("Order %s already has a budget", event.aggregate_id)
            return
        result.unwrap()


class AwaitApprovalOnBudgetSent:
    def __init__(self, orders: OrderService) -> None:
        self._orders = orders

    async def handle(self, event: DomainEvent) -> None:
        order_id = event.data["order_id"]
        order = (await self._orders.get_order(order_id)).unwrap()
        if order.status != OrderStatus.IN_DIAGNOSIS:
            logger.info(
                "Budget %s sent while order %s is %s; status left unchanged",
                event.aggregate_id, order_id, order.status.value,
            )
            return
        (await self._orders.change_status(
            order_id, OrderStatus.AWAITING_APPROVAL, SYSTEM_ACTOR,
        )).unwrap()


class StartRepairOnBudgetApproved:
    def __init__(self, orders: OrderService, executions: ExecutionService) -> None:
        self._orders = orders
        self._executions = executions

    async def handle(self, event: DomainEvent) -> None:
        order_id = event.data["order_id"]
        (await self._orders.change_status(
            order_id, OrderStatus.IN_REPAIR, SYSTEM_ACTOR,
        )).unwrap()
        (await self._executions.create_for_order(order_id, SYSTEM_ACTOR)).unwrap()


class CancelOrderOnBudgetRejected:
    def __init__(self, orders: OrderService) -> None:
        self._orders = orders

    async def handle(self, event: DomainEvent) -> None:
        reason = event.data.get("reason") or "no reason given"
        (await self._orders.change_status(
            event.data["order_id"],
            OrderStatus.CANCELLED,
            SYSTEM_ACTOR,
            reason=f"Budget rejected: {reason}",
        )).unwrap()


class FinishOrderOnExecutionCompleted:
    def __init__(self, orders: OrderService) -> None:
        self._orders = orders

    async def handle(self, event: DomainEvent) -> None:
        (await self._orders.change_status(
            event.data["order_id"], OrderStatus.FINISHED, SYSTEM_ACTOR,
        )).unwrap()


def register_lifecycle_handlers(
    bus: IEventBus,
    orders: OrderService,
    budgets: BudgetService,
    executions: ExecutionService,
    budget_notes: str | None = None,
) -> list[tuple[str, IEventHandler]]:
    """Subscribe the lifecycle handlers and return the subscriptions."""
    subscriptions: list[tuple[str, IEventHandler]] = [
        (EventType.ORDER_RECEIVED.value, CreateBudgetOnOrderReceived(budgets, budget_notes)),
        (EventType.BUDGET_SENT.value, AwaitApprovalOnBudgetSent(orders)),
        (EventType.BUDGET_APPROVED.value, StartRepairOnBudgetApproved(orders, executions)),
        (EventType.BUDGET_REJECTED.value, CancelOrderOnBudgetRejected(orders)),
        (EventType.EXECUTION_COMPLETED.value, FinishOrderOnExecutionCompleted(orders)),
    ]
    for event_type, handler in subscriptions:
        bus.subscribe(event_type, handler)
    logger.info("Registered %d lifecycle handlers", len(subscriptions))
    return subscriptions
