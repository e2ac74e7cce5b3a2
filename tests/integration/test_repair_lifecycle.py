"""Integration test: an order travels through the wired workshop.

Only public service calls are made; every automatic step (budget
creation, order moves on budget decisions, execution opening, finishing
on completion) is driven by the lifecycle handlers on the bus.
"""

from workshop_lifecycle.core.enums import (
    BudgetItemType,
    BudgetStatus,
    EventType,
    MovementType,
    OrderStatus,
)
from workshop_lifecycle.main import run_lifecycle


async def test_run_lifecycle_summary(workshop):
    summary = await run_lifecycle(workshop)

    assert summary["order_status"] == "delivered"
    assert summary["budget_status"] == "approved"
    assert summary["budget_total"] == 15000
    assert summary["stock_sku"] == "OIL-FILTER-01"
    assert summary["stock_balance"] == 3
    assert summary["handler_errors"] == 0
    assert workshop.bus.dead_letters == []


async def test_order_walks_every_stage_in_order(workshop):
    summary = await run_lifecycle(workshop)

    changes = [
        e for e in workshop.bus.get_history(EventType.ORDER_STATUS_CHANGED.value)
        if e.aggregate_id == summary["order_id"]
    ]
    assert [(e.data["previous_status"], e.data["new_status"]) for e in changes] == [
        ("received", "in_diagnosis"),
        ("in_diagnosis", "awaiting_approval"),
        ("awaiting_approval", "in_repair"),
        ("in_repair", "finished"),
        ("finished", "delivered"),
    ]
    assert [e.version for e in changes] == [2, 3, 4, 5, 6]
    assert [e.data["role"] for e in changes] == [
        "employee", "system", "system", "system", "employee",
    ]

    delivered = await workshop.order_repo.find_by_id(summary["order_id"])
    assert delivered.delivery_date == workshop.clock.now()


async def test_client_request_needs_staff_intake(workshop, client, employee):
    order = (await workshop.orders.create_order("client-1", "car-9", client)).unwrap()
    assert order.status == OrderStatus.REQUESTED
    assert await workshop.budget_repo.find_by_order_id(order.id) is None

    await workshop.orders.change_status(order.id, OrderStatus.RECEIVED, employee)

    budget = await workshop.budget_repo.find_by_order_id(order.id)
    assert budget is not None
    assert budget.client_id == "client-1"
    assert budget.notes == workshop.settings.budget.auto_generated_notes


async def test_rejected_budget_cancels_and_keeps_stock(workshop, admin, employee, client):
    part = (await workshop.stock.register_item(
        admin, sku="SPARK-PLUG-4", name="Spark plug", unit_cost=300,
        unit_sale_price=600, initial_stock=8,
    )).unwrap()
    order = (await workshop.orders.create_order("client-1", "car-2", employee)).unwrap()
    await workshop.orders.change_status(order.id, OrderStatus.IN_DIAGNOSIS, employee)
    budget = await workshop.budget_repo.find_by_order_id(order.id)
    (await workshop.budgets.add_item(
        budget.id, employee,
        item_type=BudgetItemType.STOCK_ITEM,
        description="Spark plugs",
        quantity=4,
        unit_price=part.unit_sale_price,
        stock_item_id=part.id,
    )).unwrap()
    await workshop.budgets.send(budget.id, employee)

    (await workshop.budgets.reject(budget.id, client, "Will do it myself")).unwrap()

    stored = await workshop.order_repo.find_by_id(order.id)
    assert stored.status == OrderStatus.CANCELLED
    assert await workshop.execution_repo.find_by_order_id(order.id) is None
    assert (await workshop.stock_repo.find_by_id(part.id)).current_stock == 8

    # Terminal: the client cannot reopen the decision.
    again = await workshop.budgets.approve(budget.id, client)
    assert again.is_failure
    assert (await workshop.budget_repo.find_by_id(budget.id)).status == BudgetStatus.REJECTED


async def test_failed_approval_leaves_ledger_consistent(workshop, admin, employee, client):
    plentiful = (await workshop.stock.register_item(
        admin, sku="WIPER-01", name="Wiper blade", unit_cost=800,
        unit_sale_price=1200, initial_stock=10,
    )).unwrap()
    scarce = (await workshop.stock.register_item(
        admin, sku="BULB-H7", name="H7 bulb", unit_cost=200,
        unit_sale_price=450, initial_stock=1,
    )).unwrap()
    order = (await workshop.orders.create_order("client-1", "car-3", employee)).unwrap()
    await workshop.orders.change_status(order.id, OrderStatus.IN_DIAGNOSIS, employee)
    budget = await workshop.budget_repo.find_by_order_id(order.id)
    for part, quantity in ((plentiful, 2), (scarce, 2)):
        (await workshop.budgets.add_item(
            budget.id, employee,
            item_type=BudgetItemType.STOCK_ITEM,
            description=part.name,
            quantity=quantity,
            unit_price=part.unit_sale_price,
            stock_item_id=part.id,
        )).unwrap()
    await workshop.budgets.send(budget.id, employee)

    result = await workshop.budgets.approve(budget.id, client)

    assert result.is_failure
    for part, balance in ((plentiful, 10), (scarce, 1)):
        verified = (await workshop.stock.verify_balance(part.id)).unwrap()
        assert verified.current_stock == balance
    types = [m.type for m in await workshop.stock_repo.list_movements(plentiful.id)]
    assert types == [MovementType.IN, MovementType.OUT, MovementType.IN]
    assert workshop.bus.get_history(EventType.BUDGET_APPROVED.value) == []

    # Restock and retry: the same budget can still be approved.
    await workshop.stock.apply_movement(scarce.id, MovementType.IN, 5, employee)
    approved = (await workshop.budgets.approve(budget.id, client)).unwrap()
    assert approved.status == BudgetStatus.APPROVED
    assert (await workshop.stock_repo.find_by_id(scarce.id)).current_stock == 4
    assert (await workshop.order_repo.find_by_id(order.id)).status == OrderStatus.IN_REPAIR
