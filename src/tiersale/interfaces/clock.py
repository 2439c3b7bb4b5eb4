"""PositionClock protocol - the host's monotonic position counter."""

from __future__ import annotations

from typing import Protocol


class PositionClock(Protocol):
    """Source of the current position (block height) used by the timelock."""

    async def current_position(self) -> int:
        ...
