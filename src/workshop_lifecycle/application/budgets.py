"""Budget use cases, including the approval saga.

Approval consumes parts: every ``STOCK_ITEM`` line becomes an ``OUT``
movement on the ledger *before* the budget is stored as approved.  If any
step fails (short stock, missing item, a storage error) the decrements
already applied are reversed with compensating ``IN`` movements and the
original error is returned.  The ledger stays append-only throughout.
"""

from __future__ import annotations

import logging

from workshop_lifecycle.core.clock import IClock
from workshop_lifecycle.core.config import BudgetConfig
from workshop_lifecycle.core.context import ActorContext
from workshop_lifecycle.core.enums import (
    BudgetItemType,
    BudgetStatus,
    EventType,
    MovementType,
)
from workshop_lifecycle.core.errors import (
    BudgetAlreadyExists,
    BudgetNotEditable,
    EntityNotFound,
    UnauthorizedOperation,
)
from workshop_lifecycle.core.interfaces import (
    IBudgetItemRepository,
    IBudgetRepository,
    IEventBus,
    IOrderRepository,
    IStockRepository,
)
from workshop_lifecycle.core.models import (
    Budget,
    BudgetItem,
    BudgetWithItems,
    Order,
    StockMovement,
)
from workshop_lifecycle.core.result import Result
from workshop_lifecycle.domain.budget import BudgetAggregator, validate_budget_role
from workshop_lifecycle.domain.events import make_event
from workshop_lifecycle.domain.order import can_edit_budget
from workshop_lifecycle.observability import metrics

from .boundary import run_use_case
from .stock import StockService

logger = logging.getLogger(__name__)

_SOURCE = "budgets"


class BudgetService:
    """Budget lifecycle on top of ``BudgetAggregator`` and the stock ledger.

    Parameters
    ----------
    budgets, items, orders
        Repositories for budgets, their lines and the owning orders.
    stock_items
        Used to check that stock lines reference existing items.
    stock
        Applies and compensates the movements of the approval saga.
    bus
        Receives budget events after each change is stored.
    clock
        Drives expiry checks and timestamps.
    config
        Default validity period for new budgets.
    """

    def __init__(
        self,
        budgets: IBudgetRepository,
        items: IBudgetItemRepository,
        orders: IOrderRepository,
        stock_items: IStockRepository,
        stock: StockService,
        bus: IEventBus,
        clock: IClock,
        config: BudgetConfig | None = None,
    ) -> None:
        self._budgets = budgets
        self._items = items
        self._orders = orders
        self._stock_items = stock_items
        self._stock = stock
        self._bus = bus
        self._clock = clock
        self._config = config or BudgetConfig()
        self._aggregator = BudgetAggregator(clock)

    @property
    def aggregator(self) -> BudgetAggregator:
        return self._aggregator

    # -- Public use cases --------------------------------------------------

    async def create_for_order(
        self,
        order_id: str,
        client_id: str,
        validity_days: int | None = None,
        notes: str | None = None,
    ) -> Result[Budget]:
        return await run_use_case(
            "budget.create",
            self._create_for_order(order_id, client_id, validity_days, notes),
            order_id=order_id,
        )

    async def add_item(
        self,
        budget_id: str,
        actor: ActorContext,
        *,
        item_type: BudgetItemType,
        description: str,
        quantity: int,
        unit_price: int,
        service_id: str | None = None,
        stock_item_id: str | None = None,
    ) -> Result[BudgetItem]:
        return await run_use_case(
            "budget.add_item",
            self._add_item(
                budget_id, actor, item_type, description, quantity,
                unit_price, service_id, stock_item_id,
            ),
            budget_id=budget_id,
        )

    async def update_item(
        self,
        item_id: str,
        actor: ActorContext,
        *,
        description: str | None = None,
        quantity: int | None = None,
        unit_price: int | None = None,
    ) -> Result[BudgetItem]:
        return await run_use_case(
            "budget.update_item",
            self._update_item(item_id, actor, description, quantity, unit_price),
            item_id=item_id,
        )

    async def remove_item(self, item_id: str, actor: ActorContext) -> Result[Budget]:
        return await run_use_case(
            "budget.remove_item", self._remove_item(item_id, actor), item_id=item_id,
        )

    async def get_with_items(self, budget_id: str) -> Result[BudgetWithItems]:
        return await run_use_case(
            "budget.get", self._get_with_items(budget_id), budget_id=budget_id,
        )

    async def send(self, budget_id: str, actor: ActorContext) -> Result[Budget]:
        return await run_use_case(
            "budget.send", self._send(budget_id, actor), budget_id=budget_id,
        )

    async def approve(self, budget_id: str, actor: ActorContext) -> Result[Budget]:
        return await run_use_case(
            "budget.approve", self._approve(budget_id, actor),
            budget_id=budget_id, role=actor.role.value,
        )

    async def reject(
        self, budget_id: str, actor: ActorContext, reason: str | None = None,
    ) -> Result[Budget]:
        return await run_use_case(
            "budget.reject", self._reject(budget_id, actor, reason),
            budget_id=budget_id, role=actor.role.value,
        )

    async def check_expiration(self, budget_id: str) -> Result[bool]:
        return await run_use_case(
            "budget.check_expiration", self._check_expiration(budget_id),
            budget_id=budget_id,
        )

    async def regenerate(
        self,
        budget_id: str,
        actor: ActorContext,
        validity_days: int | None = None,
    ) -> Result[Budget]:
        return await run_use_case(
            "budget.regenerate", self._regenerate(budget_id, actor, validity_days),
            budget_id=budget_id,
        )

    # -- Loading -----------------------------------------------------------

    async def _load(self, budget_id: str) -> Budget:
        budget = await self._budgets.find_by_id(budget_id)
        if budget is None:
            raise EntityNotFound("Budget", budget_id)
        return budget

    async def _load_order(self, order_id: str) -> Order:
        order = await self._orders.find_by_id(order_id)
        if order is None:
            raise EntityNotFound("Order", order_id)
        return order

    async def _load_editable(self, budget_id: str, actor: ActorContext) -> Budget:
        if not actor.is_staff:
            raise UnauthorizedOperation(actor.role, f"edit budget {budget_id}")
        budget = await self._load(budget_id)
        if budget.status != BudgetStatus.GENERATED:
            raise BudgetNotEditable(budget.id, budget_status=budget.status)
        order = await self._load_order(budget.order_id)
        if not can_edit_budget(order):
            raise BudgetNotEditable(budget.id, order.status)
        return budget

    async def _recompute(self, budget: Budget) -> Budget:
        items = await self._items.find_by_budget_id(budget.id)
        recomputed = self._aggregator.recompute_total(budget, items)
        if recomputed is budget:
            return budget
        return await self._budgets.update(recomputed)

    # -- Implementation ----------------------------------------------------

    async def _create_for_order(
        self,
        order_id: str,
        client_id: str,
        validity_days: int | None,
        notes: str | None,
    ) -> Budget:
        if await self._budgets.find_by_order_id(order_id) is not None:
            raise BudgetAlreadyExists(order_id)
        await self._load_order(order_id)

        now = self._clock.now()
        budget = Budget(
            order_id=order_id,
            client_id=client_id,
            validity_period=validity_days or self._config.default_validity_days,
            generation_date=now,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        stored = await self._budgets.create(budget)
        logger.info(
            "Budget created: id=%s order=%s validity=%dd",
            stored.id, order_id, stored.validity_period,
        )
        await self._publish(EventType.BUDGET_CREATED, stored)
        return stored

    async def _add_item(
        self,
        budget_id: str,
        actor: ActorContext,
        item_type: BudgetItemType,
        description: str,
        quantity: int,
        unit_price: int,
        service_id: str | None,
        stock_item_id: str | None,
    ) -> BudgetItem:
        budget = await self._load_editable(budget_id, actor)
        item = self._aggregator.build_item(
            budget.id, item_type, description, quantity, unit_price,
            service_id=service_id, stock_item_id=stock_item_id,
        )
        if stock_item_id is not None:
            if await self._stock_items.find_by_id(stock_item_id) is None:
                raise EntityNotFound("StockItem", stock_item_id)

        stored = await self._items.create(item)
        await self._recompute(budget)
        logger.info(
            "Budget %s: added %s item %s (%d x %d)",
            budget.id, item_type.value, stored.id, quantity, unit_price,
        )
        return stored

    async def _update_item(
        self,
        item_id: str,
        actor: ActorContext,
        description: str | None,
        quantity: int | None,
        unit_price: int | None,
    ) -> BudgetItem:
        item = await self._items.find_by_id(item_id)
        if item is None:
            raise EntityNotFound("BudgetItem", item_id)
        budget = await self._load_editable(item.budget_id, actor)
        rebuilt = self._aggregator.build_item(
            budget.id,
            item.type,
            item.description if description is None else description,
            item.quantity if quantity is None else quantity,
            item.unit_price if unit_price is None else unit_price,
            service_id=item.service_id,
            stock_item_id=item.stock_item_id,
        )
        stored = await self._items.update(rebuilt.model_copy(update={"id": item.id}))
        await self._recompute(budget)
        logger.info(
            "Budget %s: updated item %s (%d x %d)",
            budget.id, item_id, stored.quantity, stored.unit_price,
        )
        return stored

    async def _remove_item(self, item_id: str, actor: ActorContext) -> Budget:
        item = await self._items.find_by_id(item_id)
        if item is None:
            raise EntityNotFound("BudgetItem", item_id)
        budget = await self._load_editable(item.budget_id, actor)
        await self._items.delete(item_id)
        logger.info("Budget %s: removed item %s", budget.id, item_id)
        return await self._recompute(budget)

    async def _get_with_items(self, budget_id: str) -> BudgetWithItems:
        budget = await self._load(budget_id)
        items = await self._items.find_by_budget_id(budget_id)
        self._aggregator.verify_total(budget, items)
        return BudgetWithItems(budget=budget, items=tuple(items))

    async def _send(self, budget_id: str, actor: ActorContext) -> Budget:
        budget = await self._load(budget_id)
        validate_budget_role(actor, "send", budget)
        stored = await self._budgets.update(self._aggregator.send(budget))
        logger.info("Budget sent: id=%s total=%d", stored.id, stored.total_amount)
        await self._publish(EventType.BUDGET_SENT, stored)
        return stored

    async def _approve(self, budget_id: str, actor: ActorContext) -> Budget:
        budget = await self._load(budget_id)
        validate_budget_role(actor, "approve", budget)
        items = await self._items.find_by_budget_id(budget_id)
        self._aggregator.verify_total(budget, items)
        approved = self._aggregator.approve(budget)

        applied: list[StockMovement] = []
        try:
            for item in items:
                if item.type != BudgetItemType.STOCK_ITEM or item.stock_item_id is None:
                    continue
                movement = await self._stock.record_movement(
                    item.stock_item_id,
                    MovementType.OUT,
                    item.quantity,
                    reason=f"Budget {budget.id} approval",
                )
                applied.append(movement)
            stored = await self._budgets.update(approved)
        except Exception:
            await self._compensate(budget.id, applied)
            raise

        logger.info(
            "Budget approved: id=%s by=%s movements=%d",
            stored.id, actor.subject_id, len(applied),
        )
        await self._publish(
            EventType.BUDGET_APPROVED,
            stored,
            approved_by=actor.subject_id,
            movement_ids=[m.id for m in applied],
        )
        return stored

    async def _compensate(self, budget_id: str, applied: list[StockMovement]) -> None:
        """Reverse applied decrements, newest first."""
        for movement in reversed(applied):
            try:
                await self._stock.record_movement(
                    movement.stock_id,
                    MovementType.IN,
                    movement.quantity,
                    reason=f"Rollback of budget {budget_id} approval",
                )
                metrics.record_compensation("applied")
            except Exception:
                metrics.record_compensation("failed")
                logger.critical(
                    "Compensation failed for budget %s movement %s (stock %s x%d)",
                    budget_id, movement.id, movement.stock_id, movement.quantity,
                    exc_info=True,
                )
        if applied:
            logger.warning(
                "Budget %s approval rolled back: %d movements reversed",
                budget_id, len(applied),
            )

    async def _reject(
        self, budget_id: str, actor: ActorContext, reason: str | None,
    ) -> Budget:
        budget = await self._load(budget_id)
        validate_budget_role(actor, "reject", budget)
        stored = await self._budgets.update(self._aggregator.reject(budget, reason))
        logger.info("Budget rejected: id=%s reason=%s", stored.id, reason)
        await self._publish(
            EventType.BUDGET_REJECTED, stored,
            rejected_by=actor.subject_id, reason=reason,
        )
        return stored

    async def _check_expiration(self, budget_id: str) -> bool:
        budget = await self._load(budget_id)
        return self._aggregator.effective_status(budget) == BudgetStatus.EXPIRED

    async def _regenerate(
        self, budget_id: str, actor: ActorContext, validity_days: int | None,
    ) -> Budget:
        budget = await self._load(budget_id)
        validate_budget_role(actor, "regenerate", budget)
        stored = await self._budgets.update(
            self._aggregator.regenerate(budget, validity_days)
        )
        logger.info(
            "Budget regenerated: id=%s expires=%s",
            stored.id, stored.expiration_date.isoformat(),
        )
        await self._publish(EventType.BUDGET_REGENERATED, stored)
        return stored

    async def _publish(self, event_type: EventType, budget: Budget, **extra) -> None:
        await self._bus.publish(make_event(
            event_type,
            budget.id,
            version=budget.version,
            timestamp=budget.updated_at,
            source=_SOURCE,
            order_id=budget.order_id,
            client_id=budget.client_id,
            status=budget.status,
            total_amount=budget.total_amount,
            **extra,
        ))
