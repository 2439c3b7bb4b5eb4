"""StateStore protocol - persists sale state for restarts and reporting."""

from __future__ import annotations

from typing import AsyncContextManager, Protocol

from tiersale.models.events import SaleEvent
from tiersale.models.records import ActivityRecord, EventRecord, PaymentRecord
from tiersale.models.state import SaleSnapshot


class StateStore(Protocol):
    """Persists sale state, events, and daemon bookkeeping."""

    # ── Lifecycle ──────────────────────────────────────────

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        ...

    async def close(self) -> None:
        ...

    def transaction(self) -> AsyncContextManager[None]:
        """Group the writes made inside it into one atomic, exclusive unit."""
        ...

    # ── Cursor ─────────────────────────────────────────────

    async def get_cursor(self) -> int | None:
        ...

    async def set_cursor(self, block: int) -> None:
        ...

    # ── Sale state ─────────────────────────────────────────

    async def load_snapshot(self) -> SaleSnapshot | None:
        ...

    async def save_snapshot(self, snapshot: SaleSnapshot) -> None:
        ...

    # ── Events ─────────────────────────────────────────────

    async def record_events(self, events: list[SaleEvent]) -> None:
        ...

    async def get_events(
        self, kind: str | None = None, limit: int = 50
    ) -> list[EventRecord]:
        ...

    # ── Payments ───────────────────────────────────────────

    async def save_payment(self, record: PaymentRecord) -> None:
        ...

    async def get_payment(self, tx_hash: str) -> PaymentRecord | None:
        ...

    async def update_payment(
        self,
        tx_hash: str,
        status: str,
        allocated_units: int | None = None,
        refund: int | None = None,
        error: str | None = None,
    ) -> None:
        ...

    async def get_payments(self, status: str | None = None) -> list[PaymentRecord]:
        ...

    # ── Activity log ───────────────────────────────────────

    async def log_activity(
        self, event_type: str, message: str, amount: int | None = None
    ) -> None:
        ...

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        ...
