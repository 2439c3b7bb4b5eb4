"""Timelocked governance for the administrator and proceeds-recipient roles.

Every protected update is two-step:

    request_update(role, candidate)   -> unlock point = now + delay   (PENDING)
    ... position reaches unlock point ...                           (COMMITTABLE)
    commit_update(role, candidate)    -> address replaced, entry zeroed (NONE)

There is no cancel. Re-requesting the same candidate overwrites its unlock
point. Entries for different candidates coexist independently.

The governance object is a pure state machine over the registers and the
protected addresses; the sale facade supplies the current position and
publishes the emitted events.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable

from tiersale.errors import (
    DelayNotElapsed,
    InvalidAddress,
    NotAuthorized,
    UpdateNotRequested,
)
from tiersale.models.config import ZERO_ADDRESS
from tiersale.models.events import SaleEvent, UpdateCommitted, UpdateRequested
from tiersale.models.state import PendingUpdate, ProtectedAddresses, Role, UpdateStatus

log = logging.getLogger(__name__)


def same_address(a: str | None, b: str | None) -> bool:
    if not a or not b:
        return False
    return a.lower() == b.lower()


def is_zero_address(address: str | None) -> bool:
    return not address or address.lower() == ZERO_ADDRESS


class TimelockGovernance:
    """Per-role, per-candidate pending-update registers and their commit logic."""

    def __init__(
        self,
        addresses: ProtectedAddresses,
        delay: int,
        sale_address: str,
        pending: list[PendingUpdate] | None = None,
    ) -> None:
        if delay <= 0:
            raise ValueError("timelock delay must be positive")
        self._addresses = addresses
        self._delay = delay
        self._sale_address = sale_address
        self._registers: dict[Role, dict[str, PendingUpdate]] = {role: {} for role in Role}
        self.load(pending or [])

    @property
    def delay(self) -> int:
        return self._delay

    def authorize(self, caller: str) -> None:
        """Raise NotAuthorized unless `caller` is the current administrator."""
        if not same_address(caller, self._addresses.admin):
            raise NotAuthorized(f"{caller} is not the administrator")

    # ── Queries ────────────────────────────────────────────

    def unlock_point(self, role: Role, candidate: str) -> int:
        entry = self._registers[role].get(candidate.lower())
        return entry.unlock_point if entry else 0

    def status(self, role: Role, candidate: str, now: int) -> UpdateStatus:
        entry = self._registers[role].get(candidate.lower())
        if entry is None:
            return UpdateStatus.NONE
        return entry.status(now)

    def entries(self) -> list[PendingUpdate]:
        return [
            PendingUpdate(e.role, e.candidate, e.unlock_point)
            for register in self._registers.values()
            for e in register.values()
        ]

    def load(self, entries: list[PendingUpdate]) -> None:
        """Replace every register with `entries`."""
        self._registers = {role: {} for role in Role}
        for entry in entries:
            self._registers[entry.role][entry.candidate.lower()] = replace(entry)

    # ── Transitions ────────────────────────────────────────

    def request_update(
        self,
        caller: str,
        role: Role,
        candidate: str,
        now: int,
        emit: Callable[[SaleEvent], None],
    ) -> int:
        """Open (or reset) the timelock for `candidate`. Returns the unlock point."""
        self.authorize(caller)
        if is_zero_address(candidate):
            raise InvalidAddress("candidate must be a non-zero address")

        unlock = now + self._delay
        key = candidate.lower()
        previous = self._registers[role].get(key)
        if previous is not None and previous.unlock_point:
            log.info(
                "Overwriting pending %s update for %s (unlock %d -> %d)",
                role.value, candidate, previous.unlock_point, unlock,
            )
        # Keep the first spelling so the stored row stays keyed the same way.
        spelling = previous.candidate if previous is not None else candidate
        self._registers[role][key] = PendingUpdate(role, spelling, unlock)
        emit(UpdateRequested(role=role, candidate=candidate, unlock_point=unlock, position=now))
        log.info("Requested %s update to %s, unlocks at %d", role.value, candidate, unlock)
        return unlock

    def commit_update(
        self,
        caller: str,
        role: Role,
        candidate: str,
        now: int,
        emit: Callable[[SaleEvent], None],
    ) -> None:
        """Replace the protected address once the candidate's delay has elapsed."""
        self.authorize(caller)
        entry = self._registers[role].get(candidate.lower())
        status = entry.status(now) if entry else UpdateStatus.NONE
        if entry is None or status == UpdateStatus.NONE:
            raise UpdateNotRequested(f"no pending {role.value} update for {candidate}")
        if status == UpdateStatus.PENDING:
            raise DelayNotElapsed(
                f"{role.value} update for {candidate} unlocks at {entry.unlock_point}, now {now}"
            )
        if role == Role.PROCEEDS_RECIPIENT and same_address(candidate, self._sale_address):
            raise InvalidAddress("proceeds recipient cannot be the sale itself")

        old = self._addresses.get(role)
        self._addresses.set(role, entry.candidate)
        entry.unlock_point = 0
        emit(UpdateCommitted(role=role, new_address=entry.candidate, position=now))
        log.info("Committed %s update: %s -> %s", role.value, old, entry.candidate)
