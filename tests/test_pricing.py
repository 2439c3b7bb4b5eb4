"""Tier allocation math: reference scenarios, conservation, and boundaries."""

from __future__ import annotations

import pytest

from tiersale.engine.pricing import next_price, plan_allocation
from tiersale.errors import InvariantViolation, SoldOut, TierCeilingReached, ZeroPayment
from tiersale.models.config import PricingParams
from tiersale.models.state import DistributionState

from tests.factories import make_params, make_state


def _reference() -> tuple[PricingParams, DistributionState]:
    params = PricingParams()
    return params, DistributionState(current_price=params.initial_price)


# ── Reference scenarios ──────────────────────────────────────────


def test_exact_tier_fill_advances_price():
    """A payment worth exactly one tier fills it and applies the growth factor."""
    params, state = _reference()
    amount = 1_000_000_000 * 33_000_000

    plan = plan_allocation(state, params, amount)

    assert plan.allocated_units == 1_000_000_000
    assert plan.refund == 0
    assert plan.end_tier == 1
    assert plan.end_price == 37_412_100
    assert plan.tier_advances == 1
    assert [f.completed_tier for f in plan.fills] == [True]


def test_half_tier_keeps_price():
    params, state = _reference()
    amount = 1_000_000_000 * 33_000_000 // 2

    plan = plan_allocation(state, params, amount)

    assert plan.allocated_units == 500_000_000
    assert plan.refund == 0
    assert plan.end_tier == 0
    assert plan.end_price == 33_000_000
    assert plan.tier_advances == 0


def test_tier_jump_cap_limits_advances():
    """Tiers cost 1000, 1500, 2200, 3300; only three can be filled per payment."""
    params = make_params()
    plan = plan_allocation(make_state(), params, 10_000)

    assert plan.tier_advances == 3
    assert plan.end_tier == 3
    assert plan.end_price == 33
    assert plan.allocated_units == 300
    assert plan.committed == 1000 + 1500 + 2200
    assert plan.refund == 10_000 - 4700


def test_custom_jump_cap_allows_partial_fill_after_advances():
    params = make_params(tier_jump_cap=4)
    plan = plan_allocation(make_state(), params, 5000)

    # 4700 fills three tiers; 300 buys 9 units at 33, 3 left over.
    assert plan.tier_advances == 3
    assert plan.allocated_units == 309
    assert plan.fills[-1].completed_tier is False
    assert plan.fills[-1].units == 9
    assert plan.refund == 3


def test_partially_filled_tier_is_finished_at_original_price():
    params = make_params()
    state = make_state(distributed_units=60)

    plan = plan_allocation(state, params, 400)  # 40 units left at 10 each

    assert plan.fills[0].units == 40
    assert plan.fills[0].price == 10
    assert plan.fills[0].completed_tier is True
    assert plan.end_price == 15
    assert plan.refund == 0


def test_truncation_refunds_fractional_remainder():
    params = make_params()
    plan = plan_allocation(make_state(), params, 57)

    assert plan.allocated_units == 5
    assert plan.refund == 7


def test_payment_below_price_allocates_nothing():
    params = make_params()
    plan = plan_allocation(make_state(), params, 9)

    assert plan.allocated_units == 0
    assert plan.fills == []
    assert plan.refund == 9


def test_plan_does_not_mutate_state():
    params = make_params()
    state = make_state()

    plan_allocation(state, params, 10_000)

    assert state == make_state()


# ── Properties ───────────────────────────────────────────────────


@pytest.mark.parametrize("amount", [1, 10, 999, 1000, 1001, 2500, 4699, 4700, 12_345, 10**9])
def test_conservation(amount):
    """Every unit of the payment is either spent on units or refunded."""
    params = make_params()
    plan = plan_allocation(make_state(), params, amount)

    spent = sum(f.units * f.price for f in plan.fills)
    assert spent == plan.committed
    assert spent + plan.refund == amount
    assert sum(f.units for f in plan.fills) == plan.allocated_units


def test_price_changes_only_on_full_tier():
    params = make_params()
    state = make_state()
    for amount in (35, 400, 1234, 99, 2600, 7000):
        plan = plan_allocation(state, params, amount)
        completed = sum(1 for f in plan.fills if f.completed_tier)
        price = state.current_price
        for _ in range(completed):
            price = next_price(price, params)
        assert plan.end_price == price
        assert plan.end_price >= state.current_price
        state.current_tier = plan.end_tier
        state.current_price = plan.end_price
        state.distributed_units += plan.allocated_units
        assert state.distributed_units <= params.max_units
        assert state.current_tier <= params.max_tier


def test_next_price_rounds_down():
    params = make_params()
    assert next_price(15, params) == 22
    assert next_price(33, params) == 49


# ── Preconditions ────────────────────────────────────────────────


def test_zero_payment_rejected():
    with pytest.raises(ZeroPayment):
        plan_allocation(make_state(), make_params(), 0)


def test_sold_out_rejected():
    params = make_params()
    state = make_state(current_tier=10, distributed_units=1000)
    with pytest.raises(SoldOut):
        plan_allocation(state, params, 100)


def test_tier_ceiling_rejected_when_remainder_unsellable():
    """max_units not a multiple of the tier size leaves a tail no tier can sell."""
    params = make_params(max_units=250)
    state = make_state(current_tier=2, distributed_units=200)
    with pytest.raises(TierCeilingReached):
        plan_allocation(state, params, 100)


def test_corrupt_state_trips_invariant():
    params = make_params(max_units=200)
    # distributed_units already past what tier 0 can hold
    state = make_state(current_tier=0, distributed_units=150)
    with pytest.raises(InvariantViolation):
        plan_allocation(state, params, 10**6)


@pytest.mark.parametrize("field", ["admin_delay", "tier_jump_cap", "initial_price"])
def test_params_reject_non_positive(field):
    with pytest.raises(ValueError):
        make_params(**{field: 0})
