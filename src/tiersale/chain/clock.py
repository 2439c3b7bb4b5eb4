"""Block-height clock - positions are block numbers."""

from __future__ import annotations

from web3 import AsyncWeb3


class BlockHeightClock:
    """PositionClock reading the latest block number from the node."""

    def __init__(self, w3: AsyncWeb3) -> None:
        self._w3 = w3

    async def current_position(self) -> int:
        return await self._w3.eth.block_number
