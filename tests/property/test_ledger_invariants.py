"""Property test: stock ledger invariants.

For any sequence of movements the live balance equals the replay of the
recorded movements and never drops below zero.  Rejected movements leave
no trace.
"""

import asyncio
from datetime import datetime, timezone

from hypothesis import given, settings, strategies as st

from workshop_lifecycle.core.clock import SimClock
from workshop_lifecycle.core.enums import MovementType
from workshop_lifecycle.core.errors import InsufficientStock
from workshop_lifecycle.core.models import StockItem
from workshop_lifecycle.domain.stock import StockLedger
from workshop_lifecycle.storage.memory import InMemoryStockRepository

START = datetime(2024, 1, 1, tzinfo=timezone.utc)

_movement = st.one_of(
    st.tuples(st.just(MovementType.IN), st.integers(min_value=1, max_value=50)),
    st.tuples(st.just(MovementType.OUT), st.integers(min_value=1, max_value=50)),
    st.tuples(
        st.just(MovementType.ADJUSTMENT),
        st.integers(min_value=-50, max_value=50).filter(lambda q: q != 0),
    ),
)


async def _run(movements):
    repo = InMemoryStockRepository()
    clock = SimClock(start=START)
    ledger = StockLedger(repo, clock)
    item = await repo.create(StockItem(
        sku="PROP-01", name="Property part", created_at=START, updated_at=START,
    ))

    expected = 0
    accepted = 0
    for movement_type, quantity in movements:
        clock.advance(minutes=1)
        delta = -quantity if movement_type == MovementType.OUT else quantity
        try:
            await ledger.apply_movement(item.id, movement_type, quantity)
        except InsufficientStock:
            assert expected + delta < 0
            continue
        expected += delta
        accepted += 1
        stored = await repo.find_by_id(item.id)
        assert stored.current_stock == expected
        assert stored.current_stock >= 0

    verified = await ledger.verify_balance(item.id)
    assert verified.current_stock == expected
    assert len(await repo.list_movements(item.id)) == accepted


@given(movements=st.lists(_movement, max_size=30))
@settings(max_examples=100, deadline=None)
def test_balance_equals_replayed_movements(movements):
    asyncio.run(_run(movements))
