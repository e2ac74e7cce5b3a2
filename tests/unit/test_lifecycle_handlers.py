"""Test the lifecycle handlers wired by build_workshop."""

from workshop_lifecycle.core.enums import EventType, OrderStatus
from workshop_lifecycle.domain.events import make_event


class TestRegistration:
    def test_every_trigger_has_one_handler(self, workshop):
        for event_type in (
            EventType.ORDER_RECEIVED,
            EventType.BUDGET_SENT,
            EventType.BUDGET_APPROVED,
            EventType.BUDGET_REJECTED,
            EventType.EXECUTION_COMPLETED,
        ):
            assert workshop.bus.handler_count(event_type.value) == 1


class TestBudgetCreation:
    async def test_redelivery_is_harmless(self, workshop, employee):
        order = (await workshop.orders.create_order("client-1", "car-1", employee)).unwrap()
        [received] = workshop.bus.get_history(EventType.ORDER_RECEIVED.value)

        await workshop.bus.publish(received)

        assert len(workshop.bus.get_history(EventType.BUDGET_CREATED.value)) == 1
        assert workshop.bus.dead_letters == []
        assert (await workshop.budget_repo.find_by_order_id(order.id)) is not None


class TestFailures:
    async def test_failed_reaction_becomes_dead_letter(self, workshop, employee):
        order = (await workshop.orders.create_order("client-1", "car-1", employee)).unwrap()
        stray = make_event(
            EventType.BUDGET_APPROVED, "budget-x", source="test", order_id=order.id,
        )

        await workshop.bus.publish(stray)

        [letter] = workshop.bus.dead_letters
        assert letter.event is stray
        assert letter.handler == "StartRepairOnBudgetApproved"
        assert "received" in letter.error
        assert workshop.bus.get_error_counts() == {EventType.BUDGET_APPROVED.value: 1}
        stored = await workshop.order_repo.find_by_id(order.id)
        assert stored.status == OrderStatus.RECEIVED

    async def test_cancel_reason_from_rejection(self, workshop, employee):
        order = (await workshop.orders.create_order("client-1", "car-1", employee)).unwrap()
        await workshop.orders.change_status(order.id, OrderStatus.IN_DIAGNOSIS, employee)
        await workshop.orders.change_status(order.id, OrderStatus.AWAITING_APPROVAL, employee)

        await workshop.bus.publish(make_event(
            EventType.BUDGET_REJECTED, "budget-x", source="test",
            order_id=order.id, reason=None,
        ))

        stored = await workshop.order_repo.find_by_id(order.id)
        assert stored.status == OrderStatus.CANCELLED
        assert stored.cancellation_reason == "Budget rejected: no reason given"
