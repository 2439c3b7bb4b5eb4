"""Operation results and persisted record types."""

from __future__ import annotations

from dataclasses import dataclass, field

from tiersale.models.events import SaleEvent


@dataclass(frozen=True)
class TierFill:
    """Units bought at a single tier price within one payment."""

    tier: int
    units: int
    price: int
    cost: int
    completed_tier: bool


@dataclass
class AllocationPlan:
    """Outcome of running the tier allocation loop over one payment."""

    amount: int
    fills: list[TierFill] = field(default_factory=list)
    allocated_units: int = 0
    committed: int = 0
    end_tier: int = 0
    end_price: int = 0
    tier_advances: int = 0

    @property
    def refund(self) -> int:
        return self.amount - self.committed


@dataclass
class PaymentResult:
    """Result of a processed payment, returned to the caller."""

    payer: str
    amount: int
    allocated_units: int
    refund: int
    tier: int  # tier after the payment
    price: int  # price after the payment
    fills: list[TierFill] = field(default_factory=list)
    sold_out: bool = False


@dataclass
class PaymentRecord:
    """An inbound chain payment as tracked by the daemon."""

    tx_hash: str
    payer: str
    amount: int
    block_number: int
    status: str = "pending"  # pending | processing | distributed | rejected | bounce_failed | refund_failed | failed
    allocated_units: int = 0
    refund: int = 0
    error: str | None = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class EventRecord:
    """A persisted sale event."""

    id: int
    event: SaleEvent
    created_at: str


@dataclass
class ActivityRecord:
    """A single activity log entry."""

    id: int
    event_type: str
    amount: int | None
    message: str
    created_at: str
