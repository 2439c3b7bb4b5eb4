"""Sale events emitted on successful operations, plus inbound chain payments."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import ClassVar, Union

from tiersale.models.state import Role


@dataclass(frozen=True)
class UpdateRequested:
    """A timelocked update was requested (or its unlock point overwritten)."""

    kind: ClassVar[str] = "update_requested"

    role: Role
    candidate: str
    unlock_point: int
    position: int


@dataclass(frozen=True)
class UpdateCommitted:
    """A protected address was replaced after its delay elapsed."""

    kind: ClassVar[str] = "update_committed"

    role: Role
    new_address: str
    position: int


@dataclass(frozen=True)
class DistributionOccurred:
    """Units were allocated and transferred to a payer."""

    kind: ClassVar[str] = "distribution"

    payer: str
    units: int
    paid: int  # native amount consumed
    refund: int
    position: int


@dataclass(frozen=True)
class LedgerConnectorConfigured:
    kind: ClassVar[str] = "ledger_configured"

    address: str
    position: int


@dataclass(frozen=True)
class ProceedsSwept:
    kind: ClassVar[str] = "proceeds_swept"

    recipient: str
    amount: int
    position: int


@dataclass(frozen=True)
class SaleCompleted:
    """The whole supply is distributed; carries the final marker."""

    kind: ClassVar[str] = "sale_completed"

    final_position: int
    position: int


@dataclass(frozen=True)
class PaymentReceived:
    """A native value transfer into the sale account seen on chain."""

    tx_hash: str
    payer: str
    amount: int  # wei
    block_number: int


SaleEvent = Union[
    UpdateRequested,
    UpdateCommitted,
    DistributionOccurred,
    LedgerConnectorConfigured,
    ProceedsSwept,
    SaleCompleted,
]

EVENT_TYPES: dict[str, type] = {
    cls.kind: cls
    for cls in (
        UpdateRequested,
        UpdateCommitted,
        DistributionOccurred,
        LedgerConnectorConfigured,
        ProceedsSwept,
        SaleCompleted,
    )
}


def event_to_dict(event: SaleEvent) -> dict:
    payload = asdict(event)
    if "role" in payload:
        payload["role"] = payload["role"].value
    return payload


def event_from_dict(kind: str, payload: dict) -> SaleEvent:
    cls = EVENT_TYPES[kind]
    data = dict(payload)
    if "role" in data:
        data["role"] = Role(data["role"])
    return cls(**data)
