"""Mutable sale state: distribution progress, pending updates, protected addresses."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from tiersale.errors import InvariantViolation


class Role(str, Enum):
    """Protected address roles governed by the timelock."""

    ADMIN = "admin"
    PROCEEDS_RECIPIENT = "proceeds_recipient"


class UpdateStatus(str, Enum):
    """Per-candidate timelock state."""

    NONE = "none"  # no pending request
    PENDING = "pending"  # requested, unlock point still ahead
    COMMITTABLE = "committable"  # unlock point reached


@dataclass
class DistributionState:
    """The sale's progress record. Mutated only by payment processing."""

    current_price: int
    current_tier: int = 0
    distributed_units: int = 0
    final_position: int | None = None  # write-once sold-out marker

    def copy(self) -> DistributionState:
        return replace(self)

    def restore(self, checkpoint: DistributionState) -> None:
        self.current_price = checkpoint.current_price
        self.current_tier = checkpoint.current_tier
        self.distributed_units = checkpoint.distributed_units
        self.final_position = checkpoint.final_position

    def mark_final(self, position: int) -> None:
        if self.final_position is not None:
            raise InvariantViolation(
                f"final marker already stamped at {self.final_position}"
            )
        self.final_position = position


@dataclass
class PendingUpdate:
    """A single candidate's entry in a role's pending-update register."""

    role: Role
    candidate: str
    unlock_point: int = 0

    def status(self, now: int) -> UpdateStatus:
        if self.unlock_point == 0:
            return UpdateStatus.NONE
        if now < self.unlock_point:
            return UpdateStatus.PENDING
        return UpdateStatus.COMMITTABLE


@dataclass
class ProtectedAddresses:
    """The three trust-critical references."""

    admin: str
    proceeds_recipient: str
    ledger_connector: str | None = None

    def get(self, role: Role) -> str:
        if role == Role.ADMIN:
            return self.admin
        return self.proceeds_recipient

    def set(self, role: Role, address: str) -> None:
        if role == Role.ADMIN:
            self.admin = address
        else:
            self.proceeds_recipient = address


@dataclass
class SaleSnapshot:
    """Everything mutable about a sale, as persisted between runs."""

    sale_address: str
    distribution: DistributionState
    addresses: ProtectedAddresses
    native_balance: int = 0
    pending: list[PendingUpdate] = field(default_factory=list)
