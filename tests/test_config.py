"""Configuration loading from TOML and environment."""

from __future__ import annotations

import pytest

from tiersale.config import load_config
from tiersale.models.config import PricingParams

CONFIG_TOML = """
[daemon]
poll_interval = 12
error_backoff = 60
log_level = "debug"

[pricing]
units_per_tier = 500
initial_price = 7
growth_numerator = 5
growth_denominator = 4
max_units = 5000
tier_jump_cap = 2

[governance]
delay = 100
admin = "0xad00000000000000000000000000000000000001"
proceeds_recipient = "0x9e00000000000000000000000000000000000001"

[chain]
rpc_url = "http://node:8545"
chain_id = 31337
token_address = "0x70c0000000000000000000000000000000000001"
start_block = 0
confirmations = 3

[storage]
db_path = "~/sale/state.db"
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("PRIVATE_KEY", "ADMIN_KEY", "RPC_URL", "TOKEN_ADDRESS", "DB_PATH"):
        monkeypatch.delenv(f"TIERSALE_{name}", raising=False)


def test_defaults_without_file():
    cfg = load_config(None)

    assert cfg.pricing == PricingParams()
    assert cfg.pricing.initial_price == 33_000_000
    assert cfg.pricing.tier_jump_cap == 3
    assert cfg.poll_interval == 5
    assert cfg.start_block is None
    assert cfg.db_path.endswith("state.db")
    assert "~" not in cfg.db_path


def test_missing_file_falls_back_to_defaults(tmp_path):
    cfg = load_config(tmp_path / "absent.toml")
    assert cfg.pricing == PricingParams()


def test_file_sections(tmp_path):
    path = tmp_path / "tiersale.toml"
    path.write_text(CONFIG_TOML)

    cfg = load_config(path)

    assert cfg.poll_interval == 12
    assert cfg.error_backoff == 60
    assert cfg.log_level == "debug"
    assert cfg.pricing == PricingParams(
        units_per_tier=500,
        growth_numerator=5,
        growth_denominator=4,
        initial_price=7,
        max_units=5000,
        admin_delay=100,
        tier_jump_cap=2,
    )
    assert cfg.admin == "0xad00000000000000000000000000000000000001"
    assert cfg.rpc_url == "http://node:8545"
    assert cfg.chain_id == 31337
    assert cfg.start_block == 0
    assert cfg.confirmations == 3
    assert "~" not in cfg.db_path
    assert cfg.db_path.endswith("sale/state.db")


def test_env_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "tiersale.toml"
    path.write_text(CONFIG_TOML)
    monkeypatch.setenv("TIERSALE_PRIVATE_KEY", "0x" + "11" * 32)
    monkeypatch.setenv("TIERSALE_RPC_URL", "http://other:8545")
    monkeypatch.setenv("TIERSALE_TOKEN_ADDRESS", "0x70c0000000000000000000000000000000000009")
    monkeypatch.setenv("TIERSALE_DB_PATH", str(tmp_path / "env.db"))

    cfg = load_config(path)

    assert cfg.private_key == "0x" + "11" * 32
    assert cfg.admin_key == cfg.private_key
    assert cfg.rpc_url == "http://other:8545"
    assert cfg.token_address.endswith("09")
    assert cfg.db_path == str(tmp_path / "env.db")


def test_separate_admin_key(monkeypatch):
    monkeypatch.setenv("TIERSALE_PRIVATE_KEY", "0x" + "11" * 32)
    monkeypatch.setenv("TIERSALE_ADMIN_KEY", "0x" + "22" * 32)

    cfg = load_config(None)

    assert cfg.admin_key == "0x" + "22" * 32


def test_invalid_pricing_rejected(tmp_path):
    path = tmp_path / "bad.toml"
    path.write_text("[pricing]\ngrowth_numerator = 9\ngrowth_denominator = 10\n")

    with pytest.raises(ValueError):
        load_config(path)
