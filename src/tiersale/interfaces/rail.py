"""PaymentRail protocol - returns native currency out of the sale account."""

from __future__ import annotations

from typing import Protocol


class PaymentRail(Protocol):
    """Sends native currency (refunds, proceeds sweeps)."""

    async def send(self, recipient: str, amount: int) -> bool:
        """Send `amount` smallest native units. Returns False on failure."""
        ...
