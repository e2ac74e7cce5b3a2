"""Append-only stock ledger.

The live balance of a ``StockItem`` is only ever changed here, and always
together with the movement that explains the change:

    balance = initial + sum(movement.effective_quantity())

Outgoing movements that would drive the balance below zero are rejected
with ``InsufficientStock`` before anything is written.  Movements are never
deleted; the single correction path is :meth:`StockLedger.update_movement`,
which reverses the old delta and applies the new one in the same write.

Registration-time rules (SKU format, price margin, field ranges) live in
:func:`validate_stock_item` and are not re-checked per movement.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from typing import Iterable

from workshop_lifecycle.core.clock import IClock
from workshop_lifecycle.core.config import StockConfig
from workshop_lifecycle.core.enums import MovementType
from workshop_lifecycle.core.errors import (
    EntityNotFound,
    InsufficientStock,
    InvalidPriceMargin,
    InvalidSkuFormat,
    InvalidStockItem,
    InvalidStockMovement,
    StockLedgerMismatch,
)
from workshop_lifecycle.core.interfaces import IStockRepository
from workshop_lifecycle.core.models import StockItem, StockMovement

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Stock item validation
# ---------------------------------------------------------------------------

def normalize_sku(sku: str) -> str:
    return sku.strip().upper()


def validate_sku(sku: str, pattern: str = StockConfig().sku_pattern) -> str:
    """Return the normalized SKU or raise ``InvalidSkuFormat``."""
    normalized = normalize_sku(sku)
    if not re.fullmatch(pattern, normalized):
        raise InvalidSkuFormat(sku, pattern)
    return normalized


def validate_price_margin(unit_cost: int, unit_sale_price: int) -> None:
    if unit_sale_price < unit_cost:
        raise InvalidPriceMargin(unit_cost, unit_sale_price)


def validate_stock_item(item: StockItem, config: StockConfig | None = None) -> None:
    """Check registration-time invariants of *item*."""
    cfg = config or StockConfig()
    validate_sku(item.sku, cfg.sku_pattern)

    name = item.name.strip()
    if not cfg.name_min_length <= len(name) <= cfg.name_max_length:
        raise InvalidStockItem(
            f"Name must be {cfg.name_min_length}-{cfg.name_max_length} characters"
        )
    for field_name in ("current_stock", "min_stock_level", "unit_cost", "unit_sale_price"):
        if getattr(item, field_name) < 0:
            raise InvalidStockItem(f"{field_name} must be non-negative")
    validate_price_margin(item.unit_cost, item.unit_sale_price)

    if item.description and len(item.description) > cfg.max_description_length:
        raise InvalidStockItem(
            f"Description must be at most {cfg.max_description_length} characters"
        )
    if item.supplier is not None:
        supplier = item.supplier.strip()
        if not cfg.name_min_length <= len(supplier) <= cfg.name_max_length:
            raise InvalidStockItem(
                f"Supplier must be {cfg.name_min_length}-{cfg.name_max_length} characters"
            )


# ---------------------------------------------------------------------------
# Movement validation
# ---------------------------------------------------------------------------

def validate_movement(
    movement: StockMovement,
    now: datetime,
    config: StockConfig | None = None,
    *,
    check_date: bool = True,
) -> None:
    """Check quantity and text limits, and the date window when *check_date*."""
    cfg = config or StockConfig()

    if movement.type == MovementType.ADJUSTMENT:
        if movement.quantity == 0:
            raise InvalidStockMovement("Adjustment quantity must be non-zero")
    elif movement.quantity <= 0:
        raise InvalidStockMovement(
            f"{movement.type.value} quantity must be a positive integer, "
            f"got {movement.quantity}"
        )

    if check_date:
        earliest = now - timedelta(days=cfg.movement_max_age_days)
        latest = now + timedelta(hours=cfg.movement_max_future_hours)
        if movement.movement_date < earliest:
            raise InvalidStockMovement(
                f"Movement date {movement.movement_date} is more than "
                f"{cfg.movement_max_age_days} days in the past"
            )
        if movement.movement_date > latest:
            raise InvalidStockMovement(
                f"Movement date {movement.movement_date} is more than "
                f"{cfg.movement_max_future_hours} hours in the future"
            )

    if movement.reason and len(movement.reason) > cfg.max_reason_length:
        raise InvalidStockMovement(
            f"Reason must be at most {cfg.max_reason_length} characters"
        )
    if movement.notes and len(movement.notes) > cfg.max_notes_length:
        raise InvalidStockMovement(
            f"Notes must be at most {cfg.max_notes_length} characters"
        )


def replay_balance(initial: int, movements: Iterable[StockMovement]) -> int:
    """Balance after applying *movements* in order to *initial*."""
    return initial + sum(m.effective_quantity() for m in movements)


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

class StockLedger:
    """Applies movements to stock items through an ``IStockRepository``.

    Parameters
    ----------
    repository
        Persists the movement and the new balance atomically.
    clock
        Source of "now" for movement dates and the date window.
    config
        Date window and text length limits.
    """

    def __init__(
        self,
        repository: IStockRepository,
        clock: IClock,
        config: StockConfig | None = None,
    ) -> None:
        self._repo = repository
        self._clock = clock
        self._config = config or StockConfig()

    async def _load_item(self, stock_id: str) -> StockItem:
        item = await self._repo.find_by_id(stock_id)
        if item is None:
            raise EntityNotFound("StockItem", stock_id)
        return item

    async def apply_movement(
        self,
        stock_id: str,
        movement_type: MovementType,
        quantity: int,
        *,
        reason: str | None = None,
        notes: str | None = None,
        movement_date: datetime | None = None,
    ) -> StockMovement:
        """Record a movement and update the balance.

        Raises
        ------
        EntityNotFound
            No stock item with *stock_id*.
        InvalidStockMovement
            Quantity, date or text fields rejected; nothing is written.
        InsufficientStock
            The movement would drive the balance below zero.
        """
        item = await self._load_item(stock_id)
        now = self._clock.now()
        movement = StockMovement(
            stock_id=stock_id,
            type=movement_type,
            quantity=quantity,
            movement_date=movement_date or now,
            reason=reason,
            notes=notes,
            created_at=now,
        )
        validate_movement(movement, now, self._config)

        delta = movement.effective_quantity()
        new_balance = item.current_stock + delta
        if delta < 0 and new_balance < 0:
            raise InsufficientStock(stock_id, item.current_stock, -delta)

        updated = item.touch(now, current_stock=new_balance)
        stored = await self._repo.create_stock_movement(movement, updated)
        logger.debug(
            "Stock movement %s %s x%d on %s: %d -> %d",
            stored.id, movement_type.value, quantity, stock_id,
            item.current_stock, new_balance,
        )
        return stored

    async def update_movement(
        self,
        movement_id: str,
        *,
        movement_type: MovementType | None = None,
        quantity: int | None = None,
        reason: str | None = None,
        notes: str | None = None,
        movement_date: datetime | None = None,
    ) -> StockMovement:
        """Correct a recorded movement, re-deriving the balance."""
        old = await self._repo.find_movement(movement_id)
        if old is None:
            raise EntityNotFound("StockMovement", movement_id)
        item = await self._load_item(old.stock_id)
        now = self._clock.now()

        changes: dict = {}
        if movement_type is not None:
            changes["type"] = movement_type
        if quantity is not None:
            changes["quantity"] = quantity
        if reason is not None:
            changes["reason"] = reason
        if notes is not None:
            changes["notes"] = notes
        if movement_date is not None:
            changes["movement_date"] = movement_date
        new = old.model_copy(update=changes)
        # A recorded date is only re-checked when the correction moves it.
        validate_movement(
            new, now, self._config, check_date="movement_date" in changes,
        )

        new_balance = item.current_stock - old.effective_quantity() + new.effective_quantity()
        if new_balance < 0:
            raise InsufficientStock(
                item.id, item.current_stock, item.current_stock - new_balance,
            )

        updated = item.touch(now, current_stock=new_balance)
        stored = await self._repo.update_stock_movement(new, updated)
        logger.info(
            "Stock movement %s corrected on %s: %d -> %d",
            movement_id, item.id, item.current_stock, new_balance,
        )
        return stored

    async def verify_balance(self, stock_id: str) -> StockItem:
        """Replay every movement and compare with the live balance."""
        item = await self._load_item(stock_id)
        movements = await self._repo.list_movements(stock_id)
        replayed = replay_balance(0, movements)
        if replayed != item.current_stock:
            raise StockLedgerMismatch(stock_id, item.current_stock, replayed)
        return item
