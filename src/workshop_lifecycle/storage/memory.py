"""In-memory repositories.

Dict-backed implementations of the repository protocols, used by the
demo command and the test suite.  Each write completes without an await
point in between, so a movement and its balance change are applied as one
step from the event loop's point of view.

Optimistic concurrency: ``update`` accepts an aggregate only when the
stored version is exactly one behind it, otherwise ``ConcurrencyConflict``.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from workshop_lifecycle.core.errors import ConcurrencyConflict, EntityNotFound
from workshop_lifecycle.core.models import (
    Aggregate,
    Budget,
    BudgetItem,
    Execution,
    Order,
    StockItem,
    StockMovement,
)

A = TypeVar("A", bound=Aggregate)


class _AggregateStore(Generic[A]):
    entity = "Aggregate"

    def __init__(self) -> None:
        self._rows: dict[str, A] = {}

    async def find_by_id(self, entity_id: str) -> A | None:
        return self._rows.get(entity_id)

    async def create(self, aggregate: A) -> A:
        if aggregate.id in self._rows:
            raise ValueError(f"{self.entity} {aggregate.id} already stored")
        self._rows[aggregate.id] = aggregate
        return aggregate

    async def update(self, aggregate: A) -> A:
        self._check_version(aggregate)
        self._rows[aggregate.id] = aggregate
        return aggregate

    def _check_version(self, aggregate: A) -> None:
        stored = self._rows.get(aggregate.id)
        if stored is None:
            raise EntityNotFound(self.entity, aggregate.id)
        if stored.version != aggregate.version - 1:
            raise ConcurrencyConflict(
                self.entity, aggregate.id, aggregate.version - 1, stored.version,
            )

    def all(self) -> list[A]:
        return list(self._rows.values())


class InMemoryOrderRepository(_AggregateStore[Order]):
    entity = "Order"


class InMemoryExecutionRepository(_AggregateStore[Execution]):
    entity = "Execution"

    async def find_by_order_id(self, order_id: str) -> Execution | None:
        return next((e for e in self._rows.values() if e.order_id == order_id), None)


class InMemoryBudgetRepository(_AggregateStore[Budget]):
    entity = "Budget"

    async def find_by_order_id(self, order_id: str) -> Budget | None:
        return next((b for b in self._rows.values() if b.order_id == order_id), None)


class InMemoryBudgetItemRepository:
    def __init__(self) -> None:
        self._rows: dict[str, BudgetItem] = {}

    async def find_by_id(self, item_id: str) -> BudgetItem | None:
        return self._rows.get(item_id)

    async def find_by_budget_id(self, budget_id: str) -> list[BudgetItem]:
        return [i for i in self._rows.values() if i.budget_id == budget_id]

    async def create(self, item: BudgetItem) -> BudgetItem:
        self._rows[item.id] = item
        return item

    async def update(self, item: BudgetItem) -> BudgetItem:
        if item.id not in self._rows:
            raise EntityNotFound("BudgetItem", item.id)
        self._rows[item.id] = item
        return item

    async def delete(self, item_id: str) -> None:
        if self._rows.pop(item_id, None) is None:
            raise EntityNotFound("BudgetItem", item_id)


class InMemoryStockRepository(_AggregateStore[StockItem]):
    entity = "StockItem"

    def __init__(self) -> None:
        super().__init__()
        self._movements: dict[str, StockMovement] = {}

    async def find_by_sku(self, sku: str) -> StockItem | None:
        return next((i for i in self._rows.values() if i.sku == sku), None)

    async def create_stock_movement(
        self, movement: StockMovement, item: StockItem,
    ) -> StockMovement:
        self._check_version(item)
        self._movements[movement.id] = movement
        self._rows[item.id] = item
        return movement

    async def update_stock_movement(
        self, movement: StockMovement, item: StockItem,
    ) -> StockMovement:
        if movement.id not in self._movements:
            raise EntityNotFound("StockMovement", movement.id)
        self._check_version(item)
        self._movements[movement.id] = movement
        self._rows[item.id] = item
        return movement

    async def find_movement(self, movement_id: str) -> StockMovement | None:
        return self._movements.get(movement_id)

    async def list_movements(self, stock_id: str) -> list[StockMovement]:
        return [m for m in self._movements.values() if m.stock_id == stock_id]
