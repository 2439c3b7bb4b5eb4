"""CLI commands that work without a chain node."""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from tiersale.cli import cli

from tests.conftest import TEST_KEY
from tests.factories import ADMIN, CANDIDATE, RECIPIENT

CONFIG_TOML = f"""
[pricing]
units_per_tier = 100
initial_price = 10
growth_numerator = 3
growth_denominator = 2
max_units = 1000

[governance]
delay = 50
admin = "{ADMIN}"
proceeds_recipient = "{RECIPIENT}"
"""


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    config = tmp_path / "tiersale.toml"
    config.write_text(CONFIG_TOML)
    monkeypatch.setenv("TIERSALE_PRIVATE_KEY", TEST_KEY)
    monkeypatch.setenv("TIERSALE_DB_PATH", str(tmp_path / "state.db"))
    monkeypatch.delenv("TIERSALE_ADMIN_KEY", raising=False)
    return ["-c", str(config)]


def test_status_creates_fresh_sale(runner, cli_env):
    result = runner.invoke(cli, [*cli_env, "status"])

    assert result.exit_code == 0, result.output
    assert "Tier:        0 / 10" in result.output
    assert "Price:       10" in result.output
    assert "(not configured)" in result.output


def test_quote(runner, cli_env):
    result = runner.invoke(cli, [*cli_env, "quote", "1057"])

    assert result.exit_code == 0, result.output
    assert "tier 0: 100 units @ 10 = 1000 (fills tier)" in result.output
    assert "tier 1: 3 units @ 15 = 45" in result.output
    assert "Refund: 12" in result.output


def test_events_and_payments_empty(runner, cli_env):
    result = runner.invoke(cli, [*cli_env, "events"])
    assert result.exit_code == 0, result.output
    assert "No events recorded." in result.output

    result = runner.invoke(cli, [*cli_env, "payments"])
    assert result.exit_code == 0, result.output
    assert "No payments recorded." in result.output


def test_pending_without_request(runner, cli_env):
    result = runner.invoke(cli, [*cli_env, "governance", "pending", "admin", CANDIDATE])

    assert result.exit_code == 0, result.output
    assert "No pending admin update" in result.output


def test_admin_command_rejects_non_admin_key(runner, cli_env):
    # TEST_KEY's address is not the configured administrator.
    result = runner.invoke(cli, [*cli_env, "sweep"])

    assert result.exit_code == 1
    assert "NotAuthorized" in result.output


def test_unknown_role_rejected(runner, cli_env):
    result = runner.invoke(cli, [*cli_env, "governance", "request", "owner", CANDIDATE])
    assert result.exit_code == 2


def test_run_requires_key(runner, tmp_path, monkeypatch):
    monkeypatch.delenv("TIERSALE_PRIVATE_KEY", raising=False)
    config = tmp_path / "tiersale.toml"
    config.write_text(CONFIG_TOML)

    result = runner.invoke(cli, ["-c", str(config), "run"])

    assert result.exit_code == 1
    assert "No sale account key configured" in result.output
