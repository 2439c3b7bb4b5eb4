"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from tiersale.models.config import PricingParams, SaleConfig

_PRICING_KEYS = (
    "units_per_tier",
    "growth_numerator",
    "growth_denominator",
    "initial_price",
    "max_units",
    "tier_jump_cap",
)


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "TIERSALE_",
) -> SaleConfig:
    """Load sale configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (TIERSALE_PRIVATE_KEY, etc.)
        2. TOML config file
        3. Defaults from SaleConfig

    Invalid pricing values raise ValueError.
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = SaleConfig()

    # ── Daemon section ─────────────────────────────────────
    daemon = raw.get("daemon", {})
    if v := daemon.get("poll_interval"):
        cfg.poll_interval = int(v)
    if v := daemon.get("error_backoff"):
        cfg.error_backoff = int(v)
    if v := daemon.get("log_level"):
        cfg.log_level = str(v)

    # ── Pricing section ────────────────────────────────────
    pricing = raw.get("pricing", {})
    overrides = {key: int(pricing[key]) for key in _PRICING_KEYS if key in pricing}

    # ── Governance section ─────────────────────────────────
    governance = raw.get("governance", {})
    if "delay" in governance:
        overrides["admin_delay"] = int(governance["delay"])
    if v := governance.get("admin"):
        cfg.admin = str(v)
    if v := governance.get("proceeds_recipient"):
        cfg.proceeds_recipient = str(v)

    if overrides:
        cfg.pricing = replace(cfg.pricing, **overrides)

    # ── Chain section ──────────────────────────────────────
    chain = raw.get("chain", {})
    if v := chain.get("rpc_url"):
        cfg.rpc_url = str(v)
    if v := chain.get("chain_id"):
        cfg.chain_id = int(v)
    if v := chain.get("private_key"):
        cfg.private_key = str(v)
    if v := chain.get("admin_key"):
        cfg.admin_key = str(v)
    if v := chain.get("token_address"):
        cfg.token_address = str(v)
    if (v := chain.get("start_block")) is not None:
        cfg.start_block = int(v)
    if v := chain.get("confirmations"):
        cfg.confirmations = int(v)
    if v := chain.get("gas_price_gwei"):
        cfg.gas_price_gwei = str(v)

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("db_path"):
        cfg.db_path = str(v)

    # ── Environment variable overrides (highest priority) ──
    if key := os.environ.get(f"{env_prefix}PRIVATE_KEY"):
        cfg.private_key = key
    if key := os.environ.get(f"{env_prefix}ADMIN_KEY"):
        cfg.admin_key = key
    if rpc := os.environ.get(f"{env_prefix}RPC_URL"):
        cfg.rpc_url = rpc
    if token := os.environ.get(f"{env_prefix}TOKEN_ADDRESS"):
        cfg.token_address = token
    if db := os.environ.get(f"{env_prefix}DB_PATH"):
        cfg.db_path = db

    if not cfg.admin_key:
        cfg.admin_key = cfg.private_key

    # Expand ~ in paths
    if cfg.db_path != ":memory:":
        cfg.db_path = str(Path(cfg.db_path).expanduser())

    return cfg
