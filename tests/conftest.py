"""Shared fixtures for the workshop-lifecycle test suite."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from workshop_lifecycle.bus.memory_bus import InMemoryEventBus
from workshop_lifecycle.core.clock import SimClock
from workshop_lifecycle.core.config import Settings
from workshop_lifecycle.core.context import SYSTEM_ACTOR, ActorContext
from workshop_lifecycle.core.enums import ActorRole
from workshop_lifecycle.core.models import StockItem
from workshop_lifecycle.domain.budget import BudgetAggregator
from workshop_lifecycle.domain.stock import StockLedger
from workshop_lifecycle.main import build_workshop
from workshop_lifecycle.storage.memory import InMemoryStockRepository

START = datetime(2024, 6, 1, tzinfo=timezone.utc)


@pytest.fixture
def sim_clock() -> SimClock:
    return SimClock(start=START)


@pytest.fixture
def memory_bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def workshop(settings, sim_clock):
    return build_workshop(settings, clock=sim_clock)


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------

@pytest.fixture
def admin() -> ActorContext:
    return ActorContext(ActorRole.ADMIN, "admin-1")


@pytest.fixture
def employee() -> ActorContext:
    return ActorContext(ActorRole.EMPLOYEE, "employee-1")


@pytest.fixture
def client() -> ActorContext:
    return ActorContext(ActorRole.CLIENT, "client-1")


@pytest.fixture
def system() -> ActorContext:
    return SYSTEM_ACTOR


# ---------------------------------------------------------------------------
# Domain building blocks
# ---------------------------------------------------------------------------

@pytest.fixture
def aggregator(sim_clock) -> BudgetAggregator:
    return BudgetAggregator(sim_clock)


@pytest.fixture
def stock_repo() -> InMemoryStockRepository:
    return InMemoryStockRepository()


@pytest.fixture
def ledger(stock_repo, sim_clock) -> StockLedger:
    return StockLedger(stock_repo, sim_clock)


def _make_stock_item(**overrides) -> StockItem:
    defaults = dict(
        sku="BRAKE-PAD-01",
        name="Brake pad",
        current_stock=10,
        min_stock_level=2,
        unit_cost=500,
        unit_sale_price=1000,
        created_at=START,
        updated_at=START,
    )
    defaults.update(overrides)
    return StockItem(**defaults)


@pytest.fixture
async def stocked_item(stock_repo) -> StockItem:
    """A brake pad item with a balance of 10."""
    return await stock_repo.create(_make_stock_item())
