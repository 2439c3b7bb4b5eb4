"""Token sale facade - entry points, proceeds sweep, and read-only queries.

Wires the distribution engine and timelock governance around one owned set of
state objects. Every mutating entry point runs inside the reentrancy guard;
events collected during an operation are published (and the state persisted)
only once the operation has fully succeeded.

With a store attached, each operation runs inside one store transaction: the
state is reloaded first, so changes committed by another process (the CLI next
to a running daemon) are never overwritten with a stale copy.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import AsyncIterator, Callable

from tiersale.engine.distribution import DistributionEngine
from tiersale.engine.governance import TimelockGovernance, is_zero_address, same_address
from tiersale.engine.guard import ReentrancyGuard
from tiersale.errors import (
    DistributionStarted,
    DownstreamTransferFailed,
    InsufficientPrefundedBalance,
    InvalidAddress,
    NothingToSweep,
)
from tiersale.interfaces.clock import PositionClock
from tiersale.interfaces.ledger import TokenLedger
from tiersale.interfaces.rail import PaymentRail
from tiersale.interfaces.store import StateStore
from tiersale.models.config import PricingParams
from tiersale.models.events import LedgerConnectorConfigured, ProceedsSwept, SaleEvent
from tiersale.models.records import AllocationPlan, PaymentResult
from tiersale.models.state import (
    DistributionState,
    ProtectedAddresses,
    Role,
    SaleSnapshot,
    UpdateStatus,
)

log = logging.getLogger(__name__)

LedgerFactory = Callable[[str], TokenLedger]


class TokenSale:
    """A tiered token sale with timelocked administration.

    Usage:
        sale = TokenSale.create(params, sale_address, admin, recipient,
                                clock=clock, rail=rail, connect=connect)
        await sale.configure_ledger_connector(admin, token_address)
        result = await sale.on_payment(payer, amount)
    """

    def __init__(
        self,
        params: PricingParams,
        snapshot: SaleSnapshot,
        clock: PositionClock,
        rail: PaymentRail,
        connect: LedgerFactory,
        store: StateStore | None = None,
    ) -> None:
        self._params = params
        self._sale_address = snapshot.sale_address
        self._state = snapshot.distribution
        self._addresses = snapshot.addresses
        self._native_balance = snapshot.native_balance
        self._clock = clock
        self._rail = rail
        self._connect = connect
        self._store = store

        self._guard = ReentrancyGuard()
        self._engine = DistributionEngine(self._state, params, rail)
        self._governance = TimelockGovernance(
            self._addresses, params.admin_delay, self._sale_address, snapshot.pending,
        )
        self._ledger: TokenLedger | None = None
        if self._addresses.ledger_connector:
            self._ledger = connect(self._addresses.ledger_connector)
        self._events: list[SaleEvent] = []

    @classmethod
    def create(
        cls,
        params: PricingParams,
        sale_address: str,
        admin: str,
        proceeds_recipient: str,
        clock: PositionClock,
        rail: PaymentRail,
        connect: LedgerFactory,
        store: StateStore | None = None,
    ) -> TokenSale:
        """Build a fresh sale at tier zero."""
        for name, address in (
            ("sale address", sale_address),
            ("admin", admin),
            ("proceeds recipient", proceeds_recipient),
        ):
            if is_zero_address(address):
                raise InvalidAddress(f"{name} must be a non-zero address")
        snapshot = SaleSnapshot(
            sale_address=sale_address,
            distribution=DistributionState(current_price=params.initial_price),
            addresses=ProtectedAddresses(admin=admin, proceeds_recipient=proceeds_recipient),
        )
        return cls(params, snapshot, clock, rail, connect, store)

    @classmethod
    def restore(
        cls,
        snapshot: SaleSnapshot,
        params: PricingParams,
        clock: PositionClock,
        rail: PaymentRail,
        connect: LedgerFactory,
        store: StateStore | None = None,
    ) -> TokenSale:
        """Rebuild a sale from a stored snapshot."""
        if snapshot.distribution.distributed_units > params.max_units:
            raise ValueError("snapshot has more units distributed than max_units allows")
        return cls(params, snapshot, clock, rail, connect, store)

    @classmethod
    async def load(
        cls,
        store: StateStore,
        params: PricingParams,
        sale_address: str,
        admin: str,
        proceeds_recipient: str,
        clock: PositionClock,
        rail: PaymentRail,
        connect: LedgerFactory,
    ) -> TokenSale:
        """Restore the sale from `store`, or create and persist a new one."""
        async with store.transaction():
            snapshot = await store.load_snapshot()
            if snapshot is None:
                sale = cls.create(
                    params, sale_address, admin, proceeds_recipient, clock, rail, connect, store,
                )
                await store.save_snapshot(sale.snapshot())
                log.info("Initialized new sale state for %s", sale_address)
                return sale
        if snapshot.sale_address.lower() != sale_address.lower():
            raise ValueError(
                f"stored sale belongs to {snapshot.sale_address}, not {sale_address}"
            )
        log.info(
            "Restored sale state: tier %d, %d units distributed",
            snapshot.distribution.current_tier,
            snapshot.distribution.distributed_units,
        )
        return cls.restore(snapshot, params, clock, rail, connect, store)

    # ── Payments ───────────────────────────────────────────

    async def on_payment(
        self, payer: str, amount: int, tx_hash: str | None = None
    ) -> PaymentResult:
        """Handle a bare payment: allocate units, transfer them, refund the rest.

        When `tx_hash` is given, the stored payment record is marked
        distributed in the same store transaction as the new sale state.
        """
        async with self._operation() as emitted:
            position = await self._clock.current_position()
            result = await self._engine.process_payment(
                payer, amount, self._ledger, position, emitted.append,
            )
            self._native_balance += amount - result.refund
            if tx_hash is not None and self._store is not None:
                await self._store.update_payment(
                    tx_hash,
                    "distributed",
                    allocated_units=result.allocated_units,
                    refund=result.refund,
                )
        return result

    def quote(self, amount: int) -> AllocationPlan:
        """Preview the allocation for `amount` without touching state."""
        return self._engine.quote(amount)

    # ── Governance ─────────────────────────────────────────

    async def request_admin_update(self, caller: str, candidate: str) -> int:
        return await self._request(caller, Role.ADMIN, candidate)

    async def commit_admin_update(self, caller: str, candidate: str) -> None:
        await self._commit(caller, Role.ADMIN, candidate)

    async def request_proceeds_recipient_update(self, caller: str, candidate: str) -> int:
        return await self._request(caller, Role.PROCEEDS_RECIPIENT, candidate)

    async def commit_proceeds_recipient_update(self, caller: str, candidate: str) -> None:
        await self._commit(caller, Role.PROCEEDS_RECIPIENT, candidate)

    async def request_update(self, caller: str, role: Role, candidate: str) -> int:
        return await self._request(caller, role, candidate)

    async def commit_update(self, caller: str, role: Role, candidate: str) -> None:
        await self._commit(caller, role, candidate)

    async def _request(self, caller: str, role: Role, candidate: str) -> int:
        async with self._operation() as emitted:
            now = await self._clock.current_position()
            return self._governance.request_update(caller, role, candidate, now, emitted.append)

    async def _commit(self, caller: str, role: Role, candidate: str) -> None:
        async with self._operation() as emitted:
            now = await self._clock.current_position()
            self._governance.commit_update(caller, role, candidate, now, emitted.append)

    # ── Ledger connector ───────────────────────────────────

    async def configure_ledger_connector(self, caller: str, address: str) -> None:
        """Point the sale at a token ledger that already holds the full supply."""
        async with self._operation() as emitted:
            self._governance.authorize(caller)
            if is_zero_address(address):
                raise InvalidAddress("ledger connector must be a non-zero address")
            if self._state.distributed_units != 0:
                raise DistributionStarted("ledger connector is fixed once distribution starts")

            ledger = self._connect(address)
            decimals = await ledger.decimals()
            balance = await ledger.balance_of(self._sale_address)
            required = self._params.max_units * 10 ** decimals
            if balance != required:
                raise InsufficientPrefundedBalance(
                    f"ledger holds {balance} for the sale, expected exactly {required}"
                )

            position = await self._clock.current_position()
            self._addresses.ledger_connector = address
            self._ledger = ledger
            emitted.append(LedgerConnectorConfigured(address=address, position=position))
            log.info("Ledger connector set to %s (decimals=%d)", address, decimals)

    # ── Proceeds ───────────────────────────────────────────

    async def sweep_proceeds(self, caller: str) -> int:
        """Send the whole accumulated native balance to the proceeds recipient."""
        async with self._operation() as emitted:
            self._governance.authorize(caller)
            amount = self._native_balance
            if amount == 0:
                raise NothingToSweep("no proceeds to sweep")
            recipient = self._addresses.proceeds_recipient
            position = await self._clock.current_position()

            self._native_balance = 0
            try:
                ok = await self._rail.send(recipient, amount)
            except Exception as exc:
                self._native_balance = amount
                log.error("Sweep of %d to %s raised: %s", amount, recipient, exc)
                raise DownstreamTransferFailed(str(exc)) from exc
            if not ok:
                self._native_balance = amount
                log.error("Sweep of %d to %s failed", amount, recipient)
                raise DownstreamTransferFailed(f"sweep to {recipient} failed")

            emitted.append(ProceedsSwept(recipient=recipient, amount=amount, position=position))
            log.info("Swept %d to %s", amount, recipient)
            return amount

    # ── Queries ────────────────────────────────────────────

    @property
    def params(self) -> PricingParams:
        return self._params

    @property
    def sale_address(self) -> str:
        return self._sale_address

    @property
    def distributed_units(self) -> int:
        return self._state.distributed_units

    @property
    def current_tier(self) -> int:
        return self._state.current_tier

    @property
    def current_price(self) -> int:
        return self._state.current_price

    @property
    def final_position(self) -> int | None:
        return self._state.final_position

    @property
    def native_balance(self) -> int:
        return self._native_balance

    @property
    def admin(self) -> str:
        return self._addresses.admin

    @property
    def proceeds_recipient(self) -> str:
        return self._addresses.proceeds_recipient

    @property
    def ledger_connector(self) -> str | None:
        return self._addresses.ledger_connector

    @property
    def events(self) -> list[SaleEvent]:
        return list(self._events)

    def unlock_point(self, role: Role, candidate: str) -> int:
        return self._governance.unlock_point(role, candidate)

    async def update_status(
        self, role: Role, candidate: str, now: int | None = None
    ) -> UpdateStatus:
        if now is None:
            now = await self._clock.current_position()
        return self._governance.status(role, candidate, now)

    def snapshot(self) -> SaleSnapshot:
        return SaleSnapshot(
            sale_address=self._sale_address,
            distribution=self._state.copy(),
            addresses=replace(self._addresses),
            native_balance=self._native_balance,
            pending=self._governance.entries(),
        )

    # ── Internals ──────────────────────────────────────────

    @asynccontextmanager
    async def _operation(self) -> AsyncIterator[list[SaleEvent]]:
        async with self._guard:
            emitted: list[SaleEvent] = []
            if self._store is None:
                yield emitted
                self._events.extend(emitted)
                return

            async with self._store.transaction():
                snapshot = await self._store.load_snapshot()
                if snapshot is not None:
                    self._apply(snapshot)
                yield emitted
                await self._store.save_snapshot(self.snapshot())
                if emitted:
                    await self._store.record_events(emitted)
            self._events.extend(emitted)

    def _apply(self, snapshot: SaleSnapshot) -> None:
        """Adopt stored state in place; the engine and governance share these objects."""
        self._state.restore(snapshot.distribution)
        stored = snapshot.addresses
        self._addresses.admin = stored.admin
        self._addresses.proceeds_recipient = stored.proceeds_recipient
        if stored.ledger_connector is None:
            self._ledger = None
        elif self._ledger is None or not same_address(
            stored.ledger_connector, self._addresses.ledger_connector
        ):
            self._ledger = self._connect(stored.ledger_connector)
            log.info("Picked up ledger connector %s", stored.ledger_connector)
        self._addresses.ledger_connector = stored.ledger_connector
        self._native_balance = snapshot.native_balance
        self._governance.load(snapshot.pending)
