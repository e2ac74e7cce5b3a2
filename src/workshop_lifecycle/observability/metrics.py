"""Prometheus metrics.

Counters for use-case outcomes, ledger activity and bus failures.  The
HTTP endpoint is optional; counters are always recorded.
"""

from __future__ import annotations

from prometheus_client import Counter, Info, start_http_server

# ---------------------------------------------------------------------------
# System metrics
# ---------------------------------------------------------------------------

SYSTEM_INFO = Info("workshop_system", "Workshop lifecycle core information")

# ---------------------------------------------------------------------------
# Use cases
# ---------------------------------------------------------------------------

USE_CASES_TOTAL = Counter(
    "workshop_use_cases_total",
    "Use case invocations by outcome",
    ["operation", "outcome"],
)

# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------

STOCK_MOVEMENTS_TOTAL = Counter(
    "workshop_stock_movements_total",
    "Stock movements applied",
    ["movement_type"],
)

LOW_STOCK_TOTAL = Counter(
    "workshop_low_stock_total",
    "Movements that left an item below its minimum level",
)

SAGA_COMPENSATIONS_TOTAL = Counter(
    "workshop_saga_compensations_total",
    "Budget approval compensations by result",
    ["result"],
)

# ---------------------------------------------------------------------------
# Event bus
# ---------------------------------------------------------------------------

HANDLER_ERRORS_TOTAL = Counter(
    "workshop_handler_errors_total",
    "Event handler failures",
    ["event_type", "handler"],
)


def start_metrics_server(port: int = 9090, shop_name: str = "workshop") -> None:
    """Start Prometheus metrics HTTP server in a background thread."""
    SYSTEM_INFO.info({
        "version": "0.1.0",
        "shop": shop_name,
    })
    start_http_server(port)


# ---------------------------------------------------------------------------
# Convenience helpers
# ---------------------------------------------------------------------------


def record_use_case(operation: str, outcome: str) -> None:
    """Record a use case result (``success`` or an error kind)."""
    USE_CASES_TOTAL.labels(operation=operation, outcome=outcome).inc()


def record_stock_movement(movement_type: str) -> None:
    STOCK_MOVEMENTS_TOTAL.labels(movement_type=movement_type).inc()


def record_low_stock() -> None:
    LOW_STOCK_TOTAL.inc()


def record_compensation(result: str) -> None:
    """Record a saga compensation step (``applied`` or ``failed``)."""
    SAGA_COMPENSATIONS_TOTAL.labels(result=result).inc()


def record_handler_error(event_type: str, handler: str, exc: Exception) -> None:
    """``on_handler_error`` callback for the event bus."""
    HANDLER_ERRORS_TOTAL.labels(event_type=event_type, handler=handler).inc()
