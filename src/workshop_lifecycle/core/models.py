"""Aggregate models for the repair lifecycle.

Every aggregate is frozen: domain functions return updated copies via
``touch()`` so the stored ``version`` moves forward on each change.
Money fields are integers in minor currency units.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, Field

from .enums import (
    BudgetItemType,
    BudgetStatus,
    ExecutionStatus,
    MovementType,
    OrderStatus,
)
from .ids import new_id, utc_now


class Aggregate(BaseModel):
    """Common identity, version and timestamps."""

    model_config = {"frozen": True}

    id: str = Field(default_factory=new_id)
    version: int = 1
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def touch(self, now: datetime, **changes: Any):
        """Return a copy with *changes* applied and the version bumped."""
        changes["version"] = self.version + 1
        changes["updated_at"] = now
        return self.model_copy(update=changes)


# ---------------------------------------------------------------------------
# Orders and executions
# ---------------------------------------------------------------------------

class Order(Aggregate):
    client_id: str
    vehicle_id: str
    status: OrderStatus = OrderStatus.REQUESTED
    requested_at: datetime = Field(default_factory=utc_now)
    delivery_date: datetime | None = None
    cancellation_reason: str | None = None
    notes: str | None = None


class Execution(Aggregate):
    order_id: str
    mechanic_id: str | None = None
    status: ExecutionStatus = ExecutionStatus.ASSIGNED
    started_at: datetime | None = None
    completed_at: datetime | None = None
    notes: str | None = None


# ---------------------------------------------------------------------------
# Budgets
# ---------------------------------------------------------------------------

class Budget(Aggregate):
    order_id: str
    client_id: str
    status: BudgetStatus = BudgetStatus.GENERATED
    total_amount: int = 0
    validity_period: int = 7  # days
    generation_date: datetime = Field(default_factory=utc_now)
    sent_date: datetime | None = None
    approval_date: datetime | None = None
    rejection_date: datetime | None = None
    rejection_reason: str | None = None
    notes: str | None = None

    @property
    def expiration_date(self) -> datetime:
        return self.generation_date + timedelta(days=self.validity_period)


class BudgetItem(BaseModel):
    model_config = {"frozen": True}

    id: str = Field(default_factory=new_id)
    budget_id: str
    type: BudgetItemType
    description: str
    quantity: int
    unit_price: int
    service_id: str | None = None
    stock_item_id: str | None = None

    @property
    def total_price(self) -> int:
        return self.unit_price * self.quantity


class BudgetWithItems(BaseModel):
    """Budget fetched together with its verified items."""

    model_config = {"frozen": True}

    budget: Budget
    items: tuple[BudgetItem, ...] = ()


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------

class StockItem(Aggregate):
    sku: str
    name: str
    current_stock: int = 0
    min_stock_level: int = 0
    unit_cost: int = 0
    unit_sale_price: int = 0
    description: str | None = None
    supplier: str | None = None

    @property
    def is_below_minimum(self) -> bool:
        return self.current_stock < self.min_stock_level


class StockMovement(BaseModel):
    model_config = {"frozen": True}

    id: str = Field(default_factory=new_id)
    stock_id: str
    type: MovementType
    quantity: int
    movement_date: datetime = Field(default_factory=utc_now)
    reason: str | None = None
    notes: str | None = None
    created_at: datetime = Field(default_factory=utc_now)

    def effective_quantity(self) -> int:
        """Signed change this movement applies to the balance."""
        if self.type == MovementType.IN:
            return abs(self.quantity)
        if self.type == MovementType.OUT:
            return -abs(self.quantity)
        return self.quantity
