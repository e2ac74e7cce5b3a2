"""Test the status transition tables and the role gate."""

import pytest

from workshop_lifecycle.core.context import ActorContext
from workshop_lifecycle.core.enums import (
    ActorRole,
    BudgetStatus,
    ExecutionStatus,
    OrderStatus,
)
from workshop_lifecycle.core.errors import (
    InvalidStatusTransition,
    UnauthorizedOperation,
)
from workshop_lifecycle.domain.transitions import (
    StatusTransitionValidator,
    budget_transitions,
    can_transition,
    execution_transitions,
    order_transitions,
    validate_execution_role,
    validate_role_transition,
)


class TestExecutionTransitions:
    def test_assigned_to_in_progress(self):
        execution_transitions.validate_transition(
            ExecutionStatus.ASSIGNED, ExecutionStatus.IN_PROGRESS,
        )

    def test_skipping_in_progress_rejected(self):
        with pytest.raises(InvalidStatusTransition) as exc_info:
            execution_transitions.validate_transition(
                ExecutionStatus.ASSIGNED, ExecutionStatus.COMPLETED,
            )
        assert exc_info.value.allowed == frozenset({ExecutionStatus.IN_PROGRESS})
        assert exc_info.value.entity == "execution"

    def test_completed_is_terminal(self):
        assert execution_transitions.allowed_transitions(
            ExecutionStatus.COMPLETED
        ) == frozenset()
        assert execution_transitions.is_terminal(ExecutionStatus.COMPLETED)

    def test_is_valid_transition_never_raises(self):
        assert not execution_transitions.is_valid_transition(
            ExecutionStatus.COMPLETED, ExecutionStatus.ASSIGNED,
        )
        assert execution_transitions.is_valid_transition(
            ExecutionStatus.IN_PROGRESS, ExecutionStatus.COMPLETED,
        )


class TestOrderTransitions:
    @pytest.mark.parametrize(
        "current, target",
        [
            (OrderStatus.REQUESTED, OrderStatus.RECEIVED),
            (OrderStatus.RECEIVED, OrderStatus.IN_DIAGNOSIS),
            (OrderStatus.IN_DIAGNOSIS, OrderStatus.AWAITING_APPROVAL),
            (OrderStatus.AWAITING_APPROVAL, OrderStatus.IN_REPAIR),
            (OrderStatus.IN_REPAIR, OrderStatus.FINISHED),
            (OrderStatus.FINISHED, OrderStatus.DELIVERED),
        ],
    )
    def test_forward_path(self, current, target):
        assert order_transitions.is_valid_transition(current, target)

    @pytest.mark.parametrize(
        "status",
        [s for s in OrderStatus if s not in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)],
    )
    def test_cancel_from_any_live_status(self, status):
        assert order_transitions.is_valid_transition(status, OrderStatus.CANCELLED)

    def test_no_backwards_moves(self):
        assert not order_transitions.is_valid_transition(
            OrderStatus.IN_REPAIR, OrderStatus.IN_DIAGNOSIS,
        )

    def test_terminal_statuses(self):
        assert order_transitions.is_terminal(OrderStatus.DELIVERED)
        assert order_transitions.is_terminal(OrderStatus.CANCELLED)


class TestBudgetTransitions:
    def test_generated_only_to_sent(self):
        assert budget_transitions.allowed_transitions(
            BudgetStatus.GENERATED
        ) == frozenset({BudgetStatus.SENT})

    def test_sent_to_decision(self):
        assert budget_transitions.allowed_transitions(BudgetStatus.SENT) == frozenset(
            {BudgetStatus.APPROVED, BudgetStatus.REJECTED}
        )

    @pytest.mark.parametrize(
        "status", [BudgetStatus.APPROVED, BudgetStatus.REJECTED, BudgetStatus.EXPIRED],
    )
    def test_terminal(self, status):
        assert budget_transitions.is_terminal(status)


class TestValidatorGeneric:
    def test_unknown_status_has_no_transitions(self):
        validator = StatusTransitionValidator("demo", {"a": frozenset({"b"})})
        assert validator.allowed_transitions("zzz") == frozenset()
        with pytest.raises(InvalidStatusTransition):
            validator.validate_transition("zzz", "a")


class TestRoleGate:
    def test_admin_may_cancel(self):
        assert can_transition(ActorRole.ADMIN, OrderStatus.IN_REPAIR, OrderStatus.CANCELLED)

    def test_employee_may_not_cancel(self):
        assert not can_transition(
            ActorRole.EMPLOYEE, OrderStatus.IN_REPAIR, OrderStatus.CANCELLED,
        )

    def test_employee_drives_workflow(self):
        assert can_transition(ActorRole.EMPLOYEE, OrderStatus.RECEIVED, OrderStatus.IN_DIAGNOSIS)
        assert can_transition(ActorRole.EMPLOYEE, OrderStatus.FINISHED, OrderStatus.DELIVERED)

    def test_client_cancels_only_early(self):
        assert can_transition(ActorRole.CLIENT, OrderStatus.REQUESTED, OrderStatus.CANCELLED)
        assert not can_transition(
            ActorRole.CLIENT, OrderStatus.IN_REPAIR, OrderStatus.CANCELLED,
        )

    def test_client_cannot_advance(self):
        assert not can_transition(ActorRole.CLIENT, OrderStatus.REQUESTED, OrderStatus.RECEIVED)

    def test_system_cancels_only_awaiting_approval(self):
        assert can_transition(
            ActorRole.SYSTEM, OrderStatus.AWAITING_APPROVAL, OrderStatus.CANCELLED,
        )
        assert not can_transition(ActorRole.SYSTEM, OrderStatus.RECEIVED, OrderStatus.CANCELLED)

    def test_validate_raises_unauthorized(self):
        actor = ActorContext(ActorRole.CLIENT, "client-1")
        with pytest.raises(UnauthorizedOperation) as exc_info:
            validate_role_transition(
                actor, OrderStatus.RECEIVED, OrderStatus.IN_DIAGNOSIS, "o-1",
            )
        assert exc_info.value.role == ActorRole.CLIENT

    def test_admin_passes_gate_for_impossible_move(self):
        # The gate allows it; the transition table is what rejects it.
        actor = ActorContext(ActorRole.ADMIN, "admin-1")
        validate_role_transition(actor, OrderStatus.DELIVERED, OrderStatus.REQUESTED)
        assert not order_transitions.is_valid_transition(
            OrderStatus.DELIVERED, OrderStatus.REQUESTED,
        )

    def test_client_cannot_touch_executions(self):
        with pytest.raises(UnauthorizedOperation):
            validate_execution_role(ActorContext(ActorRole.CLIENT, "c"), "start executions")
