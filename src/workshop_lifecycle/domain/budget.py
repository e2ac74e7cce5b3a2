"""Budget aggregate rules.

A budget's ``total_amount`` must equal the sum of its items' totals every
time it is recomputed.  The status path is
``GENERATED -> SENT -> {APPROVED | REJECTED}``; ``EXPIRED`` is derived from
``generation_date + validity_period`` and checked before any approval or
rejection, independent of the stored status.
"""

from __future__ import annotations

from typing import Sequence

from workshop_lifecycle.core.clock import IClock
from workshop_lifecycle.core.context import ActorContext
from workshop_lifecycle.core.enums import ActorRole, BudgetItemType, BudgetStatus
from workshop_lifecycle.core.errors import (
    BudgetAlreadyApproved,
    BudgetAlreadyRejected,
    BudgetExpired,
    BudgetTotalMismatch,
    InvalidBudgetItem,
    InvalidStatusTransition,
    UnauthorizedOperation,
)
from workshop_lifecycle.core.models import Budget, BudgetItem

from .transitions import budget_transitions

_SEND_ROLES = frozenset({ActorRole.ADMIN, ActorRole.EMPLOYEE, ActorRole.SYSTEM})
_DECIDE_ROLES = frozenset({ActorRole.ADMIN, ActorRole.EMPLOYEE})


def compute_total(items: Sequence[BudgetItem]) -> int:
    return sum(item.total_price for item in items)


def validate_budget_role(actor: ActorContext, action: str, budget: Budget) -> None:
    """Role gate for budget operations.

    ``send`` / ``regenerate`` are staff or system operations.  ``approve``
    and ``reject`` are open to staff and to the client who owns the budget.
    """
    if action in ("send", "regenerate"):
        allowed = actor.role in _SEND_ROLES
    else:
        allowed = actor.role in _DECIDE_ROLES or (
            actor.role == ActorRole.CLIENT and actor.subject_id == budget.client_id
        )
    if not allowed:
        raise UnauthorizedOperation(actor.role, f"{action} budget {budget.id}")


class BudgetAggregator:
    """Pure budget operations with an injected clock."""

    def __init__(self, clock: IClock) -> None:
        self._clock = clock

    # -- Totals ------------------------------------------------------------

    def recompute_total(self, budget: Budget, items: Sequence[BudgetItem]) -> Budget:
        """Return *budget* with ``total_amount`` equal to the items' sum."""
        total = compute_total(items)
        if total == budget.total_amount:
            return budget
        return budget.touch(self._clock.now(), total_amount=total)

    def verify_total(self, budget: Budget, items: Sequence[BudgetItem]) -> None:
        computed = compute_total(items)
        if computed != budget.total_amount:
            raise BudgetTotalMismatch(budget.id, budget.total_amount, computed)

    # -- Expiry ------------------------------------------------------------

    def is_expired(self, budget: Budget) -> bool:
        return self._clock.now() > budget.expiration_date

    def effective_status(self, budget: Budget) -> BudgetStatus:
        """Stored status, or ``EXPIRED`` once a live budget runs out."""
        if budget_transitions.is_terminal(budget.status):
            return budget.status
        if self.is_expired(budget):
            return BudgetStatus.EXPIRED
        return budget.status

    # -- Status changes ----------------------------------------------------

    def send(self, budget: Budget) -> Budget:
        budget_transitions.validate_transition(budget.status, BudgetStatus.SENT)
        now = self._clock.now()
        return budget.touch(now, status=BudgetStatus.SENT, sent_date=now)

    def approve(self, budget: Budget) -> Budget:
        if budget.status == BudgetStatus.APPROVED:
            raise BudgetAlreadyApproved(budget.id)
        if self.is_expired(budget):
            raise BudgetExpired(budget.id, budget.expiration_date)
        budget_transitions.validate_transition(budget.status, BudgetStatus.APPROVED)
        now = self._clock.now()
        return budget.touch(now, status=BudgetStatus.APPROVED, approval_date=now)

    def reject(self, budget: Budget, reason: str | None = None) -> Budget:
        if budget.status == BudgetStatus.REJECTED:
            raise BudgetAlreadyRejected(budget.id)
        if self.is_expired(budget):
            raise BudgetExpired(budget.id, budget.expiration_date)
        budget_transitions.validate_transition(budget.status, BudgetStatus.REJECTED)
        now = self._clock.now()
        return budget.touch(
            now,
            status=BudgetStatus.REJECTED,
            rejection_date=now,
            rejection_reason=reason,
        )

    def regenerate(self, budget: Budget, validity_days: int | None = None) -> Budget:
        """Restart a non-terminal budget with a fresh validity window."""
        if budget_transitions.is_terminal(budget.status):
            raise InvalidStatusTransition(
                "budget", budget.status, BudgetStatus.GENERATED,
                budget_transitions.allowed_transitions(budget.status),
            )
        now = self._clock.now()
        return budget.touch(
            now,
            status=BudgetStatus.GENERATED,
            generation_date=now,
            sent_date=None,
            validity_period=validity_days or budget.validity_period,
        )

    # -- Items -------------------------------------------------------------

    @staticmethod
    def build_item(
        budget_id: str,
        item_type: BudgetItemType,
        description: str,
        quantity: int,
        unit_price: int,
        *,
        service_id: str | None = None,
        stock_item_id: str | None = None,
    ) -> BudgetItem:
        if quantity <= 0:
            raise InvalidBudgetItem(f"Quantity must be positive, got {quantity}")
        if unit_price < 0:
            raise InvalidBudgetItem(f"Unit price must be non-negative, got {unit_price}")
        if not description.strip():
            raise InvalidBudgetItem("Description is required")
        if item_type == BudgetItemType.SERVICE:
            if not service_id or stock_item_id:
                raise InvalidBudgetItem("Service items need service_id and no stock_item_id")
        elif not stock_item_id or service_id:
            raise InvalidBudgetItem("Stock items need stock_item_id and no service_id")
        return BudgetItem(
            budget_id=budget_id,
            type=item_type,
            description=description.strip(),
            quantity=quantity,
            unit_price=unit_price,
            service_id=service_id,
            stock_item_id=stock_item_id,
        )
