"""Application bootstrap.

Wires repositories, the ledger, the event bus and the services together,
and runs a complete in-memory repair lifecycle for the ``demo`` command.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .application.budgets import BudgetService
from .application.executions import ExecutionService
from .application.handlers import register_lifecycle_handlers
from .application.orders import OrderService
from .application.stock import StockService
from .bus.memory_bus import InMemoryEventBus
from .core.clock import IClock, WallClock
from .core.config import Settings, load_settings
from .core.context import ActorContext
from .core.enums import ActorRole, BudgetItemType, OrderStatus
from .domain.stock import StockLedger
from .observability import metrics
from .observability.logger import setup_logging, trace
from .storage.memory import (
    InMemoryBudgetItemRepository,
    InMemoryBudgetRepository,
    InMemoryExecutionRepository,
    InMemoryOrderRepository,
    InMemoryStockRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class Workshop:
    """Fully wired lifecycle core."""

    settings: Settings
    clock: IClock
    bus: InMemoryEventBus
    orders: OrderService
    budgets: BudgetService
    stock: StockService
    executions: ExecutionService
    order_repo: InMemoryOrderRepository
    budget_repo: InMemoryBudgetRepository
    budget_item_repo: InMemoryBudgetItemRepository
    stock_repo: InMemoryStockRepository
    execution_repo: InMemoryExecutionRepository


def build_workshop(
    settings: Settings | None = None,
    clock: IClock | None = None,
) -> Workshop:
    """Wire the in-memory collaborators and register lifecycle handlers."""
    settings = settings or Settings()
    settings.validate_settings()
    clock = clock or WallClock()

    bus = InMemoryEventBus(on_handler_error=metrics.record_handler_error)
    order_repo = InMemoryOrderRepository()
    budget_repo = InMemoryBudgetRepository()
    budget_item_repo = InMemoryBudgetItemRepository()
    stock_repo = InMemoryStockRepository()
    execution_repo = InMemoryExecutionRepository()

    ledger = StockLedger(stock_repo, clock, settings.stock)
    stock = StockService(stock_repo, ledger, bus, clock, settings.stock)
    orders = OrderService(order_repo, bus, clock)
    budgets = BudgetService(
        budget_repo, budget_item_repo, order_repo, stock_repo, stock, bus, clock,
        settings.budget,
    )
    executions = ExecutionService(execution_repo, order_repo, bus, clock)

    register_lifecycle_handlers(
        bus, orders, budgets, executions,
        budget_notes=settings.budget.auto_generated_notes,
    )

    return Workshop(
        settings=settings,
        clock=clock,
        bus=bus,
        orders=orders,
        budgets=budgets,
        stock=stock,
        executions=executions,
        order_repo=order_repo,
        budget_repo=budget_repo,
        budget_item_repo=budget_item_repo,
        stock_repo=stock_repo,
        execution_repo=execution_repo,
    )


async def run_lifecycle(workshop: Workshop) -> dict[str, Any]:
    """Drive one order from intake to delivery and return a summary."""
    admin = ActorContext(ActorRole.ADMIN, "admin-1")
    employee = ActorContext(ActorRole.EMPLOYEE, "employee-1")
    client = ActorContext(ActorRole.CLIENT, "client-1")

    filter_item = (await workshop.stock.register_item(
        admin,
        sku="OIL-FILTER-01",
        name="Oil filter",
        unit_cost=1500,
        unit_sale_price=2500,
        min_stock_level=3,
        initial_stock=5,
    )).unwrap()

    order = (await workshop.orders.create_order(
        client.subject_id, "vehicle-1", employee, notes="Engine noise",
    )).unwrap()
    budget = (await workshop.budget_repo.find_by_order_id(order.id))
    if budget is None:
        raise RuntimeError(f"No budget was generated for order {order.id}")

    (await workshop.orders.change_status(
        order.id, OrderStatus.IN_DIAGNOSIS, employee,
    )).unwrap()
    (await workshop.budgets.add_item(
        budget.id, employee,
        item_type=BudgetItemType.SERVICE,
        description="Oil change labour",
        quantity=1,
        unit_price=10000,
        service_id="svc-oil-change",
    )).unwrap()
    (await workshop.budgets.add_item(
        budget.id, employee,
        item_type=BudgetItemType.STOCK_ITEM,
        description="Oil filter",
        quantity=2,
        unit_price=filter_item.unit_sale_price,
        stock_item_id=filter_item.id,
    )).unwrap()
    (await workshop.budgets.send(budget.id, employee)).unwrap()
    approved = (await workshop.budgets.approve(budget.id, client)).unwrap()

    execution = await workshop.execution_repo.find_by_order_id(order.id)
    if execution is None:
        raise RuntimeError(f"No execution was opened for order {order.id}")
    (await workshop.executions.assign_mechanic(execution.id, "mechanic-1", employee)).unwrap()
    (await workshop.executions.start(execution.id, employee)).unwrap()
    (await workshop.executions.complete(execution.id, employee, notes="Done")).unwrap()
    delivered = (await workshop.orders.change_status(
        order.id, OrderStatus.DELIVERED, employee,
    )).unwrap()

    stock_after = (await workshop.stock.verify_balance(filter_item.id)).unwrap()
    return {
        "order_id": delivered.id,
        "order_status": delivered.status.value,
        "budget_total": approved.total_amount,
        "budget_status": approved.status.value,
        "stock_sku": stock_after.sku,
        "stock_balance": stock_after.current_stock,
        "events_published": len(workshop.bus.get_history()),
        "handler_errors": sum(workshop.bus.get_error_counts().values()),
    }


async def run_demo(
    config_path: str | None = None,
    overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Load config, set up logging, run one lifecycle, print a summary."""
    settings = load_settings(config_path=config_path, overrides=overrides)
    setup_logging(
        settings.observability.log_level,
        settings.observability.log_format,
    )
    if settings.observability.metrics_enabled:
        metrics.start_metrics_server(
            settings.observability.metrics_port, settings.shop_name,
        )

    workshop = build_workshop(settings)
    await workshop.bus.start()
    try:
        with trace("demo"):
            summary = await run_lifecycle(workshop)
    finally:
        await workshop.bus.stop()

    _print_summary(summary)
    return summary


def _print_summary(summary: dict[str, Any]) -> None:
    print()
    print("=" * 60)
    print("  REPAIR LIFECYCLE SUMMARY")
    print("=" * 60)
    for key, value in summary.items():
        print(f"  {key:<20} {value}")
    print("=" * 60)
    print()
