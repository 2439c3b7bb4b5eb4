"""Sale engine: allocation planner, distribution, governance, reentrancy guard."""

from tiersale.engine.distribution import DistributionEngine
from tiersale.engine.governance import TimelockGovernance
from tiersale.engine.guard import ReentrancyGuard
from tiersale.engine.pricing import plan_allocation

__all__ = [
    "DistributionEngine",
    "TimelockGovernance",
    "ReentrancyGuard",
    "plan_allocation",
]
