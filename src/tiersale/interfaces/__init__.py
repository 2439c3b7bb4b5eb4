"""Protocol interfaces for all tiersale components."""

from tiersale.interfaces.clock import PositionClock
from tiersale.interfaces.ledger import TokenLedger
from tiersale.interfaces.poller import PaymentPoller
from tiersale.interfaces.rail import PaymentRail
from tiersale.interfaces.store import StateStore

__all__ = [
    "PositionClock",
    "TokenLedger",
    "PaymentPoller",
    "PaymentRail",
    "StateStore",
]
