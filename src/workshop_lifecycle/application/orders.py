"""Order use cases: intake, status changes, cancellation and delivery."""

from __future__ import annotations

import logging
from datetime import datetime

from workshop_lifecycle.core.clock import IClock
from workshop_lifecycle.core.context import ActorContext
from workshop_lifecycle.core.enums import EventType, OrderStatus
from workshop_lifecycle.core.errors import EntityNotFound, UnauthorizedOperation
from workshop_lifecycle.core.interfaces import IEventBus, IOrderRepository
from workshop_lifecycle.core.models import Order
from workshop_lifecycle.core.result import Result
from workshop_lifecycle.domain import order as order_rules
from workshop_lifecycle.domain.events import make_event

from .boundary import run_use_case

logger = logging.getLogger(__name__)

_SOURCE = "orders"


class OrderService:
    """Coordinates order changes with persistence and event publication."""

    def __init__(
        self,
        orders: IOrderRepository,
        bus: IEventBus,
        clock: IClock,
    ) -> None:
        self._orders = orders
        self._bus = bus
        self._clock = clock

    # -- Public use cases --------------------------------------------------

    async def create_order(
        self,
        client_id: str,
        vehicle_id: str,
        actor: ActorContext,
        notes: str | None = None,
    ) -> Result[Order]:
        return await run_use_case(
            "order.create",
            self._create_order(client_id, vehicle_id, actor, notes),
            client_id=client_id, role=actor.role.value,
        )

    async def change_status(
        self,
        order_id: str,
        target: OrderStatus,
        actor: ActorContext,
        reason: str | None = None,
    ) -> Result[Order]:
        return await run_use_case(
            "order.change_status",
            self._change_status(order_id, target, actor, reason),
            order_id=order_id, target=target.value, role=actor.role.value,
        )

    async def cancel(
        self, order_id: str, actor: ActorContext, reason: str,
    ) -> Result[Order]:
        return await run_use_case(
            "order.cancel",
            self._change_status(order_id, OrderStatus.CANCELLED, actor, reason),
            order_id=order_id, role=actor.role.value,
        )

    async def set_delivery_date(
        self, order_id: str, delivery_date: datetime, actor: ActorContext,
    ) -> Result[Order]:
        return await run_use_case(
            "order.set_delivery_date",
            self._set_delivery_date(order_id, delivery_date, actor),
            order_id=order_id,
        )

    async def get_order(self, order_id: str) -> Result[Order]:
        return await run_use_case("order.get", self._load(order_id), order_id=order_id)

    # -- Implementation ----------------------------------------------------

    async def _load(self, order_id: str) -> Order:
        order = await self._orders.find_by_id(order_id)
        if order is None:
            raise EntityNotFound("Order", order_id)
        return order

    async def _create_order(
        self,
        client_id: str,
        vehicle_id: str,
        actor: ActorContext,
        notes: str | None,
    ) -> Order:
        order = order_rules.open_order(
            client_id, vehicle_id, actor, self._clock.now(), notes,
        )
        stored = await self._orders.create(order)
        logger.info(
            "Order opened: id=%s client=%s status=%s",
            stored.id, client_id, stored.status.value,
        )
        if stored.status == OrderStatus.RECEIVED:
            await self._publish_received(stored)
        return stored

    async def _change_status(
        self,
        order_id: str,
        target: OrderStatus,
        actor: ActorContext,
        reason: str | None,
    ) -> Order:
        order = await self._load(order_id)
        updated = order_rules.change_status(
            order, target, actor, self._clock.now(), reason,
        )
        stored = await self._orders.update(updated)
        logger.info(
            "Order %s: %s -> %s by %s",
            order_id, order.status.value, target.value, actor.role.value,
        )

        await self._bus.publish(make_event(
            EventType.ORDER_STATUS_CHANGED,
            stored.id,
            version=stored.version,
            timestamp=stored.updated_at,
            source=_SOURCE,
            previous_status=order.status,
            new_status=stored.status,
            changed_by=actor.subject_id,
            role=actor.role,
            reason=reason,
        ))
        if stored.status == OrderStatus.RECEIVED:
            await self._publish_received(stored)
        return stored

    async def _set_delivery_date(
        self, order_id: str, delivery_date: datetime, actor: ActorContext,
    ) -> Order:
        if not actor.is_staff:
            raise UnauthorizedOperation(actor.role, "set delivery date")
        order = await self._load(order_id)
        updated = order_rules.set_delivery_date(order, delivery_date, self._clock.now())
        return await self._orders.update(updated)

    async def _publish_received(self, order: Order) -> None:
        await self._bus.publish(make_event(
            EventType.ORDER_RECEIVED,
            order.id,
            version=order.version,
            timestamp=order.updated_at,
            source=_SOURCE,
            client_id=order.client_id,
            vehicle_id=order.vehicle_id,
        ))
