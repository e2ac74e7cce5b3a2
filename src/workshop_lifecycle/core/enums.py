"""Enumerations used across the workshop lifecycle core."""

from enum import Enum


class OrderStatus(str, Enum):
    REQUESTED = "requested"
    RECEIVED = "received"
    IN_DIAGNOSIS = "in_diagnosis"
    AWAITING_APPROVAL = "awaiting_approval"
    IN_REPAIR = "in_repair"
    FINISHED = "finished"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class ExecutionStatus(str, Enum):
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class BudgetStatus(str, Enum):
    GENERATED = "generated"
    SENT = "sent"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class BudgetItemType(str, Enum):
    SERVICE = "service"
    STOCK_ITEM = "stock_item"


class MovementType(str, Enum):
    IN = "in"
    OUT = "out"
    ADJUSTMENT = "adjustment"


class ActorRole(str, Enum):
    ADMIN = "admin"
    EMPLOYEE = "employee"
    CLIENT = "client"
    SYSTEM = "system"  # event handlers


class ErrorKind(str, Enum):
    """Failure classes surfaced by the use-case boundary."""

    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    UNAUTHORIZED = "unauthorized"
    INVARIANT_VIOLATION = "invariant_violation"
    INSUFFICIENT_RESOURCE = "insufficient_resource"
    INFRASTRUCTURE = "infrastructure"


class EventType(str, Enum):
    ORDER_RECEIVED = "order.received"
    ORDER_STATUS_CHANGED = "order.status_changed"
    BUDGET_CREATED = "budget.created"
    BUDGET_SENT = "budget.sent"
    BUDGET_APPROVED = "budget.approved"
    BUDGET_REJECTED = "budget.rejected"
    BUDGET_REGENERATED = "budget.regenerated"
    EXECUTION_CREATED = "execution.created"
    EXECUTION_STATUS_CHANGED = "execution.status_changed"
    EXECUTION_COMPLETED = "execution.completed"
    STOCK_MOVEMENT_APPLIED = "stock.movement_applied"
    STOCK_LOW = "stock.low_stock"
