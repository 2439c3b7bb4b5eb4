"""Synthetic model factories for testing."""

from __future__ import annotations

import hashlib

from tiersale.models.config import PricingParams
from tiersale.models.events import PaymentReceived
from tiersale.models.state import DistributionState

SALE = "0x5a1e000000000000000000000000000000000001"
ADMIN = "0xad00000000000000000000000000000000000001"
RECIPIENT = "0x9e00000000000000000000000000000000000001"
PAYER = "0xbb00000000000000000000000000000000000001"
TOKEN = "0x70c0000000000000000000000000000000000001"
CANDIDATE = "0xca00000000000000000000000000000000000001"


def make_params(**overrides) -> PricingParams:
    """Small sale: 10 tiers of 100 units, price 10 growing by 3/2."""
    defaults = dict(
        units_per_tier=100,
        growth_numerator=3,
        growth_denominator=2,
        initial_price=10,
        max_units=1_000,
        admin_delay=50,
        tier_jump_cap=3,
    )
    defaults.update(overrides)
    return PricingParams(**defaults)


def make_state(
    current_price: int = 10,
    current_tier: int = 0,
    distributed_units: int = 0,
) -> DistributionState:
    return DistributionState(
        current_price=current_price,
        current_tier=current_tier,
        distributed_units=distributed_units,
    )


def make_payment(
    amount: int = 500,
    payer: str = PAYER,
    block_number: int = 2000,
    nonce: int = 0,
) -> PaymentReceived:
    tx_hash = "0x" + hashlib.sha256(f"{payer}:{block_number}:{nonce}".encode()).hexdigest()
    return PaymentReceived(
        tx_hash=tx_hash,
        payer=payer,
        amount=amount,
        block_number=block_number,
    )


def make_raw_tx(
    to: str | None,
    value: int,
    sender: str = PAYER,
    tx_hash: bytes = b"\x01" * 32,
) -> dict:
    """A transaction as returned inside get_block(..., full_transactions=True)."""
    return {"hash": tx_hash, "from": sender, "to": to, "value": value}
