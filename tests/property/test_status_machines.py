"""Property test: status machine invariants.

Every validator accepts exactly the pairs in its table, terminal states
have no exits, and random sequences of requested order moves never leave
the order in a state the table cannot reach.
"""

from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import given, settings, strategies as st

from workshop_lifecycle.core.context import ActorContext
from workshop_lifecycle.core.enums import ActorRole, OrderStatus
from workshop_lifecycle.core.errors import InvalidStatusTransition, WorkshopError
from workshop_lifecycle.domain import order as order_rules
from workshop_lifecycle.domain.transitions import (
    VALIDATORS,
    can_transition,
    order_transitions,
)

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _pairs(validator):
    statuses = validator.statuses()
    return st.tuples(st.sampled_from(statuses), st.sampled_from(statuses))


@pytest.mark.parametrize("name", sorted(VALIDATORS))
def test_table_matches_validator(name):
    validator = VALIDATORS[name]

    @given(pair=_pairs(validator))
    @settings(max_examples=100, deadline=None)
    def check(pair):
        current, target = pair
        allowed = target in validator.allowed_transitions(current)
        assert validator.is_valid_transition(current, target) is allowed
        if allowed:
            validator.validate_transition(current, target)
        else:
            with pytest.raises(InvalidStatusTransition) as exc_info:
                validator.validate_transition(current, target)
            assert exc_info.value.allowed == validator.allowed_transitions(current)

    check()


@pytest.mark.parametrize("name", sorted(VALIDATORS))
def test_terminal_states_have_no_exits(name):
    validator = VALIDATORS[name]
    for status in validator.statuses():
        if validator.is_terminal(status):
            assert not any(
                validator.is_valid_transition(status, target)
                for target in validator.statuses()
            )


@given(
    role=st.sampled_from(list(ActorRole)),
    current=st.sampled_from(list(OrderStatus)),
    target=st.sampled_from(list(OrderStatus)),
)
def test_role_grants_are_a_subset_of_admin(role, current, target):
    """Nobody may request a move the administrator may not."""
    if can_transition(role, current, target):
        assert can_transition(ActorRole.ADMIN, current, target)


@given(
    role=st.sampled_from(list(ActorRole)),
    targets=st.lists(st.sampled_from(list(OrderStatus)), min_size=1, max_size=12),
)
@settings(max_examples=200)
def test_random_requests_follow_the_table(role, targets):
    actor = ActorContext(role, "client-1")
    order = order_rules.open_order(
        "client-1", "car-1", ActorContext(ActorRole.EMPLOYEE, "employee-1"), START,
    )
    now = START
    for target in targets:
        now += timedelta(minutes=1)
        before = order
        try:
            order = order_rules.change_status(order, target, actor, now)
        except WorkshopError:
            assert order is before
            continue
        assert order_transitions.is_valid_transition(before.status, target)
        assert order.status == target
        assert order.version == before.version + 1
