"""PaymentPoller protocol - watches the chain for payments into the sale."""

from __future__ import annotations

from typing import Protocol

from tiersale.models.events import PaymentReceived


class PaymentPoller(Protocol):
    """Polls for new native payments addressed to the sale account."""

    async def poll(self) -> list[PaymentReceived]:
        """Fetch payments since the last cursor, oldest first."""
        ...

    async def get_cursor(self) -> int | None:
        """Last fully scanned block, for resumption."""
        ...
