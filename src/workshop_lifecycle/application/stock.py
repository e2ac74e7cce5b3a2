"""Inventory use cases: catalogue maintenance and ledger movements."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from workshop_lifecycle.core.clock import IClock
from workshop_lifecycle.core.config import StockConfig
from workshop_lifecycle.core.context import ActorContext
from workshop_lifecycle.core.enums import ActorRole, EventType, MovementType
from workshop_lifecycle.core.errors import (
    EntityNotFound,
    InvalidStockItem,
    StockItemAlreadyExists,
    UnauthorizedOperation,
)
from workshop_lifecycle.core.interfaces import IEventBus, IStockRepository
from workshop_lifecycle.core.models import StockItem, StockMovement
from workshop_lifecycle.core.result import Result
from workshop_lifecycle.domain.events import make_event
from workshop_lifecycle.domain.stock import StockLedger, normalize_sku, validate_stock_item
from workshop_lifecycle.observability import metrics

from .boundary import run_use_case

logger = logging.getLogger(__name__)

_SOURCE = "stock"

# Fields an update may touch; balance and SKU are immutable here.
_UPDATABLE_FIELDS = frozenset({
    "name",
    "min_stock_level",
    "unit_cost",
    "unit_sale_price",
    "description",
    "supplier",
})

_MOVEMENT_ROLES = frozenset({ActorRole.ADMIN, ActorRole.EMPLOYEE, ActorRole.SYSTEM})


def _require_staff(actor: ActorContext, operation: str) -> None:
    if not actor.is_staff:
        raise UnauthorizedOperation(actor.role, operation)


class StockService:
    def __init__(
        self,
        repository: IStockRepository,
        ledger: StockLedger,
        bus: IEventBus,
        clock: IClock,
        config: StockConfig | None = None,
    ) -> None:
        self._repo = repository
        self._ledger = ledger
        self._bus = bus
        self._clock = clock
        self._config = config or StockConfig()

    # -- Public use cases --------------------------------------------------

    async def register_item(
        self,
        actor: ActorContext,
        *,
        sku: str,
        name: str,
        unit_cost: int,
        unit_sale_price: int,
        min_stock_level: int = 0,
        initial_stock: int = 0,
        description: str | None = None,
        supplier: str | None = None,
    ) -> Result[StockItem]:
        return await run_use_case(
            "stock.register_item",
            self._register_item(
                actor, sku, name, unit_cost, unit_sale_price,
                min_stock_level, initial_stock, description, supplier,
            ),
            sku=sku,
        )

    async def update_item(
        self, stock_id: str, actor: ActorContext, **changes: Any,
    ) -> Result[StockItem]:
        return await run_use_case(
            "stock.update_item",
            self._update_item(stock_id, actor, changes),
            stock_id=stock_id,
        )

    async def apply_movement(
        self,
        stock_id: str,
        movement_type: MovementType,
        quantity: int,
        actor: ActorContext,
        *,
        reason: str | None = None,
        notes: str | None = None,
        movement_date: datetime | None = None,
    ) -> Result[StockMovement]:
        return await run_use_case(
            "stock.apply_movement",
            self._apply_movement(
                stock_id, movement_type, quantity, actor,
                reason, notes, movement_date,
            ),
            stock_id=stock_id, movement_type=movement_type.value, quantity=quantity,
        )

    async def update_movement(
        self, movement_id: str, actor: ActorContext, **changes: Any,
    ) -> Result[StockMovement]:
        return await run_use_case(
            "stock.update_movement",
            self._update_movement(movement_id, actor, changes),
            movement_id=movement_id,
        )

    async def get_item(self, stock_id: str) -> Result[StockItem]:
        return await run_use_case("stock.get_item", self._load(stock_id), stock_id=stock_id)

    async def verify_balance(self, stock_id: str) -> Result[StockItem]:
        return await run_use_case(
            "stock.verify_balance", self._ledger.verify_balance(stock_id),
            stock_id=stock_id,
        )

    # -- Ledger entry point shared with the approval saga -------------------

    async def record_movement(
        self,
        stock_id: str,
        movement_type: MovementType,
        quantity: int,
        *,
        reason: str | None = None,
        notes: str | None = None,
        movement_date: datetime | None = None,
    ) -> StockMovement:
        """Apply a movement and publish its events.  Raises on failure."""
        movement = await self._ledger.apply_movement(
            stock_id, movement_type, quantity,
            reason=reason, notes=notes, movement_date=movement_date,
        )
        item = await self._load(stock_id)
        metrics.record_stock_movement(movement_type.value)

        await self._bus.publish(make_event(
            EventType.STOCK_MOVEMENT_APPLIED,
            stock_id,
            version=item.version,
            timestamp=movement.created_at,
            source=_SOURCE,
            movement_id=movement.id,
            movement_type=movement.type,
            quantity=movement.quantity,
            balance=item.current_stock,
        ))
        if item.is_below_minimum:
            await self._publish_low_stock(item)
        return movement

    # -- Implementation ----------------------------------------------------

    async def _load(self, stock_id: str) -> StockItem:
        item = await self._repo.find_by_id(stock_id)
        if item is None:
            raise EntityNotFound("StockItem", stock_id)
        return item

    async def _register_item(
        self,
        actor: ActorContext,
        sku: str,
        name: str,
        unit_cost: int,
        unit_sale_price: int,
        min_stock_level: int,
        initial_stock: int,
        description: str | None,
        supplier: str | None,
    ) -> StockItem:
        _require_staff(actor, "register stock items")
        if initial_stock < 0:
            raise InvalidStockItem("initial_stock must be non-negative")
        now = self._clock.now()
        item = StockItem(
            sku=normalize_sku(sku),
            name=name.strip(),
            min_stock_level=min_stock_level,
            unit_cost=unit_cost,
            unit_sale_price=unit_sale_price,
            description=description,
            supplier=supplier,
            created_at=now,
            updated_at=now,
        )
        validate_stock_item(item, self._config)
        if await self._repo.find_by_sku(item.sku) is not None:
            raise StockItemAlreadyExists(item.sku)

        stored = await self._repo.create(item)
        logger.info("Stock item registered: id=%s sku=%s", stored.id, stored.sku)
        if initial_stock > 0:
            await self.record_movement(
                stored.id, MovementType.IN, initial_stock, reason="Initial stock",
            )
            stored = await self._load(stored.id)
        return stored

    async def _update_item(
        self, stock_id: str, actor: ActorContext, changes: dict[str, Any],
    ) -> StockItem:
        _require_staff(actor, "update stock items")
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise InvalidStockItem(
                f"Fields cannot be updated directly: {', '.join(sorted(unknown))}"
            )
        item = await self._load(stock_id)
        updated = item.touch(self._clock.now(), **changes)
        validate_stock_item(updated, self._config)
        stored = await self._repo.update(updated)
        if stored.is_below_minimum and not item.is_below_minimum:
            await self._publish_low_stock(stored)
        return stored

    async def _apply_movement(
        self,
        stock_id: str,
        movement_type: MovementType,
        quantity: int,
        actor: ActorContext,
        reason: str | None,
        notes: str | None,
        movement_date: datetime | None,
    ) -> StockMovement:
        if actor.role not in _MOVEMENT_ROLES:
            raise UnauthorizedOperation(actor.role, "record stock movements")
        return await self.record_movement(
            stock_id, movement_type, quantity,
            reason=reason, notes=notes, movement_date=movement_date,
        )

    async def _update_movement(
        self, movement_id: str, actor: ActorContext, changes: dict[str, Any],
    ) -> StockMovement:
        if actor.role != ActorRole.ADMIN:
            raise UnauthorizedOperation(actor.role, "correct stock movements")
        movement = await self._ledger.update_movement(movement_id, **changes)
        item = await self._load(movement.stock_id)
        if item.is_below_minimum:
            await self._publish_low_stock(item)
        return movement

    async def _publish_low_stock(self, item: StockItem) -> None:
        metrics.record_low_stock()
        logger.warning(
            "Stock below minimum: sku=%s current=%d min=%d",
            item.sku, item.current_stock, item.min_stock_level,
        )
        await self._bus.publish(make_event(
            EventType.STOCK_LOW,
            item.id,
            version=item.version,
            timestamp=item.updated_at,
            source=_SOURCE,
            sku=item.sku,
            current_stock=item.current_stock,
            min_stock_level=item.min_stock_level,
        ))
