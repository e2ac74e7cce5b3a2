"""Custom exception hierarchy for the workshop lifecycle core.

Every error carries an :class:`ErrorKind` so the use-case boundary can
classify failures without inspecting concrete types.
"""

from __future__ import annotations

from typing import Any, Iterable

from workshop_lifecycle.core.enums import ErrorKind


def _label(value: Any) -> str:
    return getattr(value, "value", str(value))


class WorkshopError(Exception):
    """Base exception for all workshop lifecycle errors."""

    kind: ErrorKind = ErrorKind.INFRASTRUCTURE


# --- Configuration ---
class ConfigError(WorkshopError):
    """Invalid or missing configuration."""


# --- Not found ---
class EntityNotFound(WorkshopError):
    """A referenced aggregate does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


# --- Transitions ---
class InvalidStatusTransition(WorkshopError):
    """Requested status change is not in the transition table."""

    kind = ErrorKind.INVALID_TRANSITION

    def __init__(
        self,
        entity: str,
        current: Any,
        target: Any,
        allowed: Iterable[Any] = (),
    ):
        self.entity = entity
        self.current = current
        self.target = target
        self.allowed = frozenset(allowed)
        allowed_str = ", ".join(sorted(_label(s) for s in self.allowed)) or "none"
        super().__init__(
            f"Invalid {entity} transition {_label(current)} -> {_label(target)} "
            f"(allowed: {allowed_str})"
        )


# --- Authorization ---
class UnauthorizedOperation(WorkshopError):
    """Actor role may not perform the requested operation."""

    kind = ErrorKind.UNAUTHORIZED

    def __init__(self, role: Any, operation: str, details: str = ""):
        self.role = role
        self.operation = operation
        self.details = details
        msg = f"Role {_label(role)} may not {operation}"
        if details:
            msg = f"{msg}: {details}"
        super().__init__(msg)


# --- Invariants ---
class InvariantViolation(WorkshopError):
    """A domain rule was broken by the requested change."""

    kind = ErrorKind.INVARIANT_VIOLATION


class InvalidPriceMargin(InvariantViolation):
    """Sale price below unit cost."""

    def __init__(self, unit_cost: int, unit_sale_price: int):
        self.unit_cost = unit_cost
        self.unit_sale_price = unit_sale_price
        super().__init__(
            f"Sale price {unit_sale_price} is below unit cost {unit_cost}"
        )


class InvalidSkuFormat(InvariantViolation):
    """SKU does not match the configured pattern."""

    def __init__(self, sku: str, pattern: str):
        self.sku = sku
        self.pattern = pattern
        super().__init__(f"Invalid SKU {sku!r}: must match {pattern}")


class InvalidStockItem(InvariantViolation):
    """Stock item field out of range."""


class StockItemAlreadyExists(InvariantViolation):
    """SKU already registered."""

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"Stock item with SKU {sku} already exists")


class InvalidStockMovement(InvariantViolation):
    """Movement quantity, date or text fields rejected."""


class StockLedgerMismatch(InvariantViolation):
    """Live balance differs from the replayed movement history."""

    def __init__(self, stock_id: str, balance: int, replayed: int):
        self.stock_id = stock_id
        self.balance = balance
        self.replayed = replayed
        super().__init__(
            f"Stock {stock_id} balance {balance} != replayed movements {replayed}"
        )


class BudgetTotalMismatch(InvariantViolation):
    """Declared budget total disagrees with the sum of its items."""

    def __init__(self, budget_id: str, declared: int, computed: int):
        self.budget_id = budget_id
        self.declared = declared
        self.computed = computed
        super().__init__(
            f"Budget {budget_id} total {declared} != sum of items {computed}"
        )


class BudgetExpired(InvariantViolation):
    """Budget validity window has elapsed."""

    def __init__(self, budget_id: str, expired_at: Any):
        self.budget_id = budget_id
        self.expired_at = expired_at
        super().__init__(f"Budget {budget_id} expired at {expired_at}")


class BudgetAlreadyApproved(InvariantViolation):
    """Budget was approved before."""

    def __init__(self, budget_id: str):
        self.budget_id = budget_id
        super().__init__(f"Budget {budget_id} is already approved")


class BudgetAlreadyRejected(InvariantViolation):
    """Budget was rejected before."""

    def __init__(self, budget_id: str):
        self.budget_id = budget_id
        super().__init__(f"Budget {budget_id} is already rejected")


class BudgetAlreadyExists(InvariantViolation):
    """Order already has a budget."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} already has a budget")


class BudgetNotEditable(InvariantViolation):
    """Items can only change on a generated budget of an order in diagnosis."""

    def __init__(
        self,
        budget_id: str,
        order_status: Any = None,
        *,
        budget_status: Any = None,
    ):
        self.budget_id = budget_id
        self.order_status = order_status
        self.budget_status = budget_status
        if budget_status is not None:
            message = (
                f"Budget {budget_id} items cannot change once the budget is "
                f"{_label(budget_status)}"
            )
        else:
            message = (
                f"Budget {budget_id} items cannot change while order is "
                f"{_label(order_status)}"
            )
        super().__init__(message)


class InvalidBudgetItem(InvariantViolation):
    """Budget item fields inconsistent with its type."""


class MechanicNotAssigned(InvariantViolation):
    """Execution cannot progress without a mechanic."""

    def __init__(self, execution_id: str):
        self.execution_id = execution_id
        super().__init__(f"Execution {execution_id} has no mechanic assigned")


class ExecutionCompleted(InvariantViolation):
    """Completed executions are immutable."""

    def __init__(self, execution_id: str):
        self.execution_id = execution_id
        super().__init__(f"Execution {execution_id} is completed")


class ExecutionAlreadyExists(InvariantViolation):
    """Order already has an execution."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} already has an execution")


class ExecutionNotAllowed(InvariantViolation):
    """Order is not in a stage that admits an execution."""

    def __init__(self, order_id: str, order_status: Any):
        self.order_id = order_id
        self.order_status = order_status
        super().__init__(
            f"Order {order_id} is {_label(order_status)}; execution requires in_repair"
        )


class InvalidDeliveryDate(InvariantViolation):
    """Delivery date precedes the request date."""

    def __init__(self, order_id: str, delivery_date: Any, requested_at: Any):
        self.order_id = order_id
        self.delivery_date = delivery_date
        self.requested_at = requested_at
        super().__init__(
            f"Order {order_id} delivery date {delivery_date} is before "
            f"request date {requested_at}"
        )


# --- Insufficient resource ---
class InsufficientStock(WorkshopError):
    """Outgoing movement exceeds the available balance."""

    kind = ErrorKind.INSUFFICIENT_RESOURCE

    def __init__(self, stock_id: str, current: int, requested: int):
        self.stock_id = stock_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {stock_id}: current={current} requested={requested}"
        )


# --- Infrastructure ---
class InfrastructureError(WorkshopError):
    """A collaborator failed outside the domain's control."""

    kind = ErrorKind.INFRASTRUCTURE

    def __init__(
        self,
        operation: str,
        cause: BaseException | None = None,
        detail: str = "",
    ):
        self.operation = operation
        self.cause = cause
        msg = f"{operation} failed"
        if detail:
            msg = f"{msg}: {detail}"
        elif cause is not None:
            msg = f"{msg}: {type(cause).__name__}"
        super().__init__(msg)


class ConcurrencyConflict(InfrastructureError):
    """Stored aggregate version moved on since it was loaded."""

    def __init__(self, entity: str, entity_id: str, expected: int, actual: int):
        self.entity = entity
        self.entity_id = entity_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"update {entity} {entity_id}",
            detail=f"version conflict: expected {expected}, found {actual}",
        )
