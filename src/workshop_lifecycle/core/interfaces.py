"""Protocol interfaces for the workshop lifecycle core.

All collaborator boundaries are defined here as Protocol classes.
Storage backends can be swapped without changing the services.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol, Union, runtime_checkable

from workshop_lifecycle.domain.events import DomainEvent

from .models import (
    Budget,
    BudgetItem,
    Execution,
    Order,
    StockItem,
    StockMovement,
)


# ---------------------------------------------------------------------------
# Event Bus
# ---------------------------------------------------------------------------

@runtime_checkable
class IEventHandler(Protocol):
    """Subscriber with a stable identity."""

    async def handle(self, event: DomainEvent) -> None: ...


EventHandler = Union[IEventHandler, Callable[[DomainEvent], Awaitable[Any]]]


@runtime_checkable
class IEventBus(Protocol):
    """Publish/subscribe bus keyed by ``event_type`` strings."""

    async def publish(self, event: DomainEvent) -> None: ...

    def subscribe(self, event_type: str, handler: EventHandler) -> None: ...

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None: ...


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------

@runtime_checkable
class IOrderRepository(Protocol):
    async def find_by_id(self, order_id: str) -> Order | None: ...
    async def create(self, order: Order) -> Order: ...
    async def update(self, order: Order) -> Order: ...


@runtime_checkable
class IExecutionRepository(Protocol):
    async def find_by_id(self, execution_id: str) -> Execution | None: ...
    async def find_by_order_id(self, order_id: str) -> Execution | None: ...
    async def create(self, execution: Execution) -> Execution: ...
    async def update(self, execution: Execution) -> Execution: ...


@runtime_checkable
class IBudgetRepository(Protocol):
    async def find_by_id(self, budget_id: str) -> Budget | None: ...
    async def find_by_order_id(self, order_id: str) -> Budget | None: ...
    async def create(self, budget: Budget) -> Budget: ...
    async def update(self, budget: Budget) -> Budget: ...


@runtime_checkable
class IBudgetItemRepository(Protocol):
    async def find_by_id(self, item_id: str) -> BudgetItem | None: ...
    async def find_by_budget_id(self, budget_id: str) -> list[BudgetItem]: ...
    async def create(self, item: BudgetItem) -> BudgetItem: ...
    async def update(self, item: BudgetItem) -> BudgetItem: ...
    async def delete(self, item_id: str) -> None: ...


@runtime_checkable
class IStockRepository(Protocol):
    """Stock items and their movement ledger.

    ``create_stock_movement`` and ``update_stock_movement`` must persist the
    movement and the item's new balance as one atomic write.
    """

    async def find_by_id(self, stock_id: str) -> StockItem | None: ...
    async def find_by_sku(self, sku: str) -> StockItem | None: ...
    async def create(self, item: StockItem) -> StockItem: ...
    async def update(self, item: StockItem) -> StockItem: ...

    async def create_stock_movement(
        self, movement: StockMovement, item: StockItem,
    ) -> StockMovement: ...

    async def update_stock_movement(
        self, movement: StockMovement, item: StockItem,
    ) -> StockMovement: ...

    async def find_movement(self, movement_id: str) -> StockMovement | None: ...
    async def list_movements(self, stock_id: str) -> list[StockMovement]: ...
