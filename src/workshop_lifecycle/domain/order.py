"""Order aggregate rules."""

from __future__ import annotations

from datetime import datetime

from workshop_lifecycle.core.context import ActorContext
from workshop_lifecycle.core.enums import ActorRole, OrderStatus
from workshop_lifecycle.core.errors import InvalidDeliveryDate, UnauthorizedOperation
from workshop_lifecycle.core.models import Order

from .transitions import order_transitions, validate_role_transition


def open_order(
    client_id: str,
    vehicle_id: str,
    actor: ActorContext,
    now: datetime,
    notes: str | None = None,
) -> Order:
    """Create a new order.

    Clients open a request; staff intake skips straight to ``RECEIVED``.
    """
    if actor.role == ActorRole.CLIENT:
        if actor.subject_id != client_id:
            raise UnauthorizedOperation(
                actor.role, "open an order", "clients may only open their own orders",
            )
        status = OrderStatus.REQUESTED
    elif actor.is_staff:
        status = OrderStatus.RECEIVED
    else:
        raise UnauthorizedOperation(actor.role, "open an order")

    return Order(
        client_id=client_id,
        vehicle_id=vehicle_id,
        status=status,
        requested_at=now,
        notes=notes,
        created_at=now,
        updated_at=now,
    )


def change_status(
    order: Order,
    target: OrderStatus,
    actor: ActorContext,
    now: datetime,
    reason: str | None = None,
) -> Order:
    """Apply an authorized single-step status change.

    The role gate runs before the transition table.  Clients may only
    act on their own orders.
    """
    if actor.role == ActorRole.CLIENT and actor.subject_id != order.client_id:
        raise UnauthorizedOperation(
            actor.role,
            f"move order to {target.value}",
            f"order {order.id} belongs to another client",
        )
    validate_role_transition(actor, order.status, target, order.id)
    order_transitions.validate_transition(order.status, target)

    changes: dict = {"status": target}
    if target == OrderStatus.CANCELLED:
        changes["cancellation_reason"] = reason
    elif target == OrderStatus.DELIVERED:
        check_delivery_date(order, now)
        changes["delivery_date"] = now
    return order.touch(now, **changes)


def set_delivery_date(order: Order, delivery_date: datetime, now: datetime) -> Order:
    check_delivery_date(order, delivery_date)
    return order.touch(now, delivery_date=delivery_date)


def check_delivery_date(order: Order, delivery_date: datetime) -> None:
    if delivery_date < order.requested_at:
        raise InvalidDeliveryDate(order.id, delivery_date, order.requested_at)


def can_edit_budget(order: Order) -> bool:
    """Budget items may only change while the order is being diagnosed."""
    return order.status == OrderStatus.IN_DIAGNOSIS
