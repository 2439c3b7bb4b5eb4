"""Data models for the tiersale engine."""

from tiersale.models.config import PricingParams, SaleConfig, ZERO_ADDRESS
from tiersale.models.events import (
    DistributionOccurred,
    LedgerConnectorConfigured,
    PaymentReceived,
    ProceedsSwept,
    SaleCompleted,
    SaleEvent,
    UpdateCommitted,
    UpdateRequested,
)
from tiersale.models.records import (
    ActivityRecord,
    AllocationPlan,
    EventRecord,
    PaymentRecord,
    PaymentResult,
    TierFill,
)
from tiersale.models.state import (
    DistributionState,
    PendingUpdate,
    ProtectedAddresses,
    Role,
    SaleSnapshot,
    UpdateStatus,
)

__all__ = [
    "PricingParams", "SaleConfig", "ZERO_ADDRESS",
    "DistributionOccurred", "LedgerConnectorConfigured", "PaymentReceived",
    "ProceedsSwept", "SaleCompleted", "SaleEvent", "UpdateCommitted",
    "UpdateRequested",
    "ActivityRecord", "AllocationPlan", "EventRecord", "PaymentRecord",
    "PaymentResult", "TierFill",
    "DistributionState", "PendingUpdate", "ProtectedAddresses", "Role",
    "SaleSnapshot", "UpdateStatus",
]
