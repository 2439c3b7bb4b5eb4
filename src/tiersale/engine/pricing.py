"""Tier allocation - splits a payment across tiers at stepped prices.

Pure integer math, no side effects. The same planner backs payment processing
and read-only quotes.

For each tier touched by a payment:

    remaining = units_per_tier * (tier + 1) - distributed - allocated_so_far
    cost      = remaining * price

If the uncommitted payment covers `cost`, the tier is filled, the tier index
advances and the price grows by growth_numerator / growth_denominator (rounded
down). Otherwise as many whole units as the payment buys are allocated at the
current price and the loop stops without touching the price. At most
`tier_jump_cap` tiers are advanced per payment; whatever is left is refunded.
"""

from __future__ import annotations

from tiersale.errors import InvariantViolation, SoldOut, TierCeilingReached, ZeroPayment
from tiersale.models.config import PricingParams
from tiersale.models.records import AllocationPlan, TierFill
from tiersale.models.state import DistributionState


def next_price(price: int, params: PricingParams) -> int:
    return price * params.growth_numerator // params.growth_denominator


def check_open(state: DistributionState, params: PricingParams, amount: int) -> None:
    """Raise the matching error if a payment of `amount` cannot be processed."""
    if amount <= 0:
        raise ZeroPayment("payment amount must be positive")
    if state.distributed_units >= params.max_units:
        raise SoldOut(f"all {params.max_units} units distributed")
    if state.current_tier >= params.max_tier:
        raise TierCeilingReached(f"tier ceiling {params.max_tier} reached")


def plan_allocation(
    state: DistributionState, params: PricingParams, amount: int
) -> AllocationPlan:
    """Compute the allocation for `amount` against `state` without mutating it."""
    check_open(state, params, amount)

    tier = state.current_tier
    price = state.current_price
    plan = AllocationPlan(amount=amount)

    while (
        amount > plan.committed
        and tier < params.max_tier
        and plan.tier_advances < params.tier_jump_cap
    ):
        remaining = (
            params.units_per_tier * (tier + 1)
            - state.distributed_units
            - plan.allocated_units
        )
        if remaining <= 0:
            raise InvariantViolation(
                f"tier {tier} has no room left with {state.distributed_units} distributed"
            )
        cost = remaining * price
        available = amount - plan.committed

        if available >= cost:
            plan.fills.append(TierFill(tier, remaining, price, cost, completed_tier=True))
            plan.allocated_units += remaining
            plan.committed += cost
            tier += 1
            price = next_price(price, params)
            plan.tier_advances += 1
            continue

        units = available // price
        if units:
            plan.fills.append(TierFill(tier, units, price, units * price, completed_tier=False))
            plan.allocated_units += units
            plan.committed += units * price
        break

    plan.end_tier = tier
    plan.end_price = price

    if state.distributed_units + plan.allocated_units > params.max_units:
        raise InvariantViolation(
            f"allocation of {plan.allocated_units} units would exceed max_units"
        )
    if plan.committed > amount:
        raise InvariantViolation("committed more than the payment amount")
    return plan
