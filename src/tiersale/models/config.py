"""Configuration models for the sale engine and daemon."""

from __future__ import annotations

from dataclasses import dataclass, field

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass(frozen=True)
class PricingParams:
    """Immutable pricing and governance constants fixed at construction."""

    units_per_tier: int = 1_000_000_000
    growth_numerator: int = 11337
    growth_denominator: int = 10000
    initial_price: int = 33_000_000  # native smallest unit per whole token
    max_units: int = 10_000_000_000
    admin_delay: int = 6000  # positions (blocks) between request and commit
    tier_jump_cap: int = 3  # max tier advances per payment

    def __post_init__(self) -> None:
        for name in (
            "units_per_tier", "growth_numerator", "growth_denominator",
            "initial_price", "max_units", "admin_delay", "tier_jump_cap",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.max_units < self.units_per_tier:
            raise ValueError("max_units must cover at least one tier")
        if self.growth_numerator < self.growth_denominator:
            raise ValueError("tier price growth must not decrease the price")

    @property
    def max_tier(self) -> int:
        return self.max_units // self.units_per_tier


@dataclass
class SaleConfig:
    """Complete sale daemon configuration."""

    # Daemon
    poll_interval: int = 5  # seconds
    error_backoff: int = 30  # seconds
    log_level: str = "info"

    # Pricing
    pricing: PricingParams = field(default_factory=PricingParams)

    # Governance (initial holders of the protected roles)
    admin: str = ""
    proceeds_recipient: str = ""

    # Chain
    rpc_url: str = "http://127.0.0.1:8545"
    chain_id: int = 11155111  # Sepolia
    private_key: str = ""  # sale custody account, loaded from TIERSALE_PRIVATE_KEY
    admin_key: str = ""  # signs admin commands, defaults to private_key
    token_address: str = ""
    start_block: int | None = None
    confirmations: int = 1
    gas_price_gwei: str = "2"

    # Storage
    db_path: str = "~/.tiersale/state.db"
