"""Property test: budget totals always equal the sum of their items."""

from datetime import datetime, timezone

from hypothesis import given, strategies as st

from workshop_lifecycle.core.clock import SimClock
from workshop_lifecycle.core.enums import BudgetItemType
from workshop_lifecycle.core.models import Budget
from workshop_lifecycle.domain.budget import BudgetAggregator, compute_total

START = datetime(2024, 1, 1, tzinfo=timezone.utc)

_lines = st.lists(
    st.tuples(
        st.integers(min_value=1, max_value=100),
        st.integers(min_value=0, max_value=1_000_000),
    ),
    max_size=20,
)


def _make_budget() -> Budget:
    return Budget(
        order_id="order-1",
        client_id="client-1",
        generation_date=START,
        created_at=START,
        updated_at=START,
    )


@given(lines=_lines)
def test_recompute_matches_sum_and_is_idempotent(lines):
    aggregator = BudgetAggregator(SimClock(start=START))
    budget = _make_budget()
    items = [
        aggregator.build_item(
            budget.id, BudgetItemType.SERVICE, f"Line {i}", quantity, price,
            service_id=f"svc-{i}",
        )
        for i, (quantity, price) in enumerate(lines)
    ]

    once = aggregator.recompute_total(budget, items)
    assert once.total_amount == sum(q * p for q, p in lines)
    assert once.total_amount == compute_total(items)
    aggregator.verify_total(once, items)

    twice = aggregator.recompute_total(once, items)
    assert twice is once
