"""TokenLedger protocol - the narrow capability the sale uses to move tokens."""

from __future__ import annotations

from typing import Protocol


class TokenLedger(Protocol):
    """A pre-funded token ledger custodied by the sale account.

    Implementations must report balances and decimals truthfully and either
    fully perform a transfer or report failure.
    """

    async def transfer(self, recipient: str, amount: int) -> bool:
        """Transfer `amount` smallest units from the sale account to `recipient`."""
        ...

    async def balance_of(self, address: str) -> int:
        ...

    async def total_supply(self) -> int:
        ...

    async def decimals(self) -> int:
        ...
