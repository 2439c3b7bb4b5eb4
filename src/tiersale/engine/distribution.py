"""Distribution engine - processes payments against the tiered price schedule."""

from __future__ import annotations

import logging
from typing import Callable

from tiersale.engine.pricing import plan_allocation
from tiersale.errors import (
    DownstreamRefundFailed,
    DownstreamTransferFailed,
    InvariantViolation,
    LedgerNotConfigured,
    ZeroPayment,
)
from tiersale.interfaces.ledger import TokenLedger
from tiersale.interfaces.rail import PaymentRail
from tiersale.models.config import PricingParams
from tiersale.models.events import DistributionOccurred, SaleCompleted, SaleEvent
from tiersale.models.records import AllocationPlan, PaymentResult
from tiersale.models.state import DistributionState

log = logging.getLogger(__name__)


class DistributionEngine:
    """Owns the tier/price/allocation state machine.

    The engine does not serialize callers itself; the sale facade runs every
    call inside its ReentrancyGuard. State is committed before any external
    call and restored from a checkpoint if the token transfer or the refund
    fails, so a failed payment leaves no trace.
    """

    def __init__(
        self,
        state: DistributionState,
        params: PricingParams,
        rail: PaymentRail,
    ) -> None:
        self._state = state
        self._params = params
        self._rail = rail

    @property
    def state(self) -> DistributionState:
        return self._state

    def quote(self, amount: int) -> AllocationPlan:
        """Dry-run allocation for `amount` against current state."""
        return plan_allocation(self._state, self._params, amount)

    async def process_payment(
        self,
        payer: str,
        amount: int,
        ledger: TokenLedger | None,
        position: int,
        emit: Callable[[SaleEvent], None],
    ) -> PaymentResult:
        """Allocate units for `amount`, transfer them to `payer`, refund the rest."""
        if amount <= 0:
            raise ZeroPayment("payment amount must be positive")
        if ledger is None:
            raise LedgerNotConfigured("no token ledger configured")
        plan = plan_allocation(self._state, self._params, amount)

        checkpoint = self._state.copy()
        try:
            sold_out = self._commit(plan, position)
            if plan.allocated_units:
                await self._transfer(ledger, payer, plan.allocated_units)
                emit(DistributionOccurred(
                    payer=payer,
                    units=plan.allocated_units,
                    paid=plan.committed,
                    refund=plan.refund,
                    position=position,
                ))
            if sold_out:
                emit(SaleCompleted(final_position=position, position=position))
            if plan.refund > 0:
                await self._refund(payer, plan.refund)
        except Exception:
            self._state.restore(checkpoint)
            raise

        if plan.tier_advances:
            log.info(
                "Advanced %d tier(s) to tier %d, price now %d",
                plan.tier_advances, plan.end_tier, plan.end_price,
            )
        log.info(
            "Distributed %d units to %s for %d (refund %d)",
            plan.allocated_units, payer, plan.committed, plan.refund,
        )
        return PaymentResult(
            payer=payer,
            amount=amount,
            allocated_units=plan.allocated_units,
            refund=plan.refund,
            tier=plan.end_tier,
            price=plan.end_price,
            fills=plan.fills,
            sold_out=sold_out,
        )

    def _commit(self, plan: AllocationPlan, position: int) -> bool:
        """Apply the plan to state. Returns True if this sold out the supply."""
        distributed = self._state.distributed_units + plan.allocated_units
        if distributed > self._params.max_units:
            raise InvariantViolation(
                f"distributed units {distributed} exceed {self._params.max_units}"
            )
        self._state.current_tier = plan.end_tier
        self._state.current_price = plan.end_price
        self._state.distributed_units = distributed
        if distributed == self._params.max_units:
            self._state.mark_final(position)
            log.info("Sale complete at position %d", position)
            return True
        return False

    async def _transfer(self, ledger: TokenLedger, payer: str, units: int) -> None:
        try:
            scaled = units * 10 ** await ledger.decimals()
            ok = await ledger.transfer(payer, scaled)
        except Exception as exc:
            log.error("Token transfer of %d units to %s raised: %s", units, payer, exc)
            raise DownstreamTransferFailed(str(exc)) from exc
        if not ok:
            log.error("Token transfer of %d units to %s failed", units, payer)
            raise DownstreamTransferFailed(f"ledger rejected transfer to {payer}")

    async def _refund(self, payer: str, amount: int) -> None:
        try:
            ok = await self._rail.send(payer, amount)
        except Exception as exc:
            log.error("Refund of %d to %s raised: %s", amount, payer, exc)
            raise DownstreamRefundFailed(str(exc)) from exc
        if not ok:
            log.error("Refund of %d to %s failed", amount, payer)
            raise DownstreamRefundFailed(f"refund to {payer} failed")
