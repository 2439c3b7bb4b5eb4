"""Shared fixtures for tiersale tests."""

from __future__ import annotations

import pytest
from eth_account import Account
from pytest_metadata.plugin import metadata_key

from tiersale.daemon import SaleDaemon
from tiersale.models.config import SaleConfig
from tiersale.sale import TokenSale
from tiersale.storage.sqlite import SQLiteStateStore

from tests.factories import ADMIN, RECIPIENT, SALE, TOKEN, make_params
from tests.mocks import LedgerRegistry, ManualClock, MockLedger, MockPoller, MockRail

# Throwaway signing key; never funded anywhere.
TEST_KEY = "0x" + "11" * 32
TEST_ADDRESS = Account.from_key(TEST_KEY).address


# ── Report metadata ──────────────────────────────────────────────


def pytest_configure(config):
    """Add sale setup to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Chain"] = "in-memory mocks"
    meta["Sale Account"] = SALE
    meta["Token"] = TOKEN
    meta["Admin"] = ADMIN


def pytest_html_results_summary(prefix, summary, postfix):
    """Show the default pricing schedule in the report summary."""
    params = make_params()
    prefix.append(
        '<div style="margin:8px 0;padding:10px;background:#f8f9fa;border:1px solid #dee2e6;'
        'border-radius:4px;font-family:monospace;font-size:13px;">'
        "<strong>Test pricing schedule</strong><br/>"
        f"Tier size: {params.units_per_tier} units, {params.max_tier} tiers<br/>"
        f"Start price: {params.initial_price}, growth "
        f"{params.growth_numerator}/{params.growth_denominator} per tier<br/>"
        f"Tier jumps per payment: {params.tier_jump_cap}, admin delay: {params.admin_delay}"
        "</div>"
    )


def make_test_config(**overrides) -> SaleConfig:
    """Build a SaleConfig suitable for testing."""
    defaults = dict(
        poll_interval=1,
        error_backoff=1,
        pricing=make_params(),
        admin=ADMIN,
        proceeds_recipient=RECIPIENT,
        rpc_url="http://127.0.0.1:8545",
        chain_id=31337,
        private_key=TEST_KEY,
        admin_key=TEST_KEY,
        db_path=":memory:",
    )
    defaults.update(overrides)
    return SaleConfig(**defaults)


@pytest.fixture
def test_config():
    """Default SaleConfig for tests."""
    return make_test_config()


@pytest.fixture
def params():
    return make_params()


@pytest.fixture
async def store():
    """Initialized in-memory SQLiteStateStore."""
    s = SQLiteStateStore(":memory:")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def clock():
    return ManualClock(position=1000)


@pytest.fixture
def mock_rail():
    return MockRail(succeed=True)


@pytest.fixture
def mock_poller():
    return MockPoller()


@pytest.fixture
def ledgers():
    return LedgerRegistry()


@pytest.fixture
def ledger(ledgers, params):
    """Token ledger pre-funded with exactly the full supply for the sale."""
    return ledgers.add(TOKEN, MockLedger(SALE, balance=params.max_units))


@pytest.fixture
def sale(params, clock, mock_rail, ledgers, store):
    """Fresh sale with no ledger connector yet."""
    return TokenSale.create(
        params, SALE, ADMIN, RECIPIENT,
        clock=clock, rail=mock_rail, connect=ledgers, store=store,
    )


@pytest.fixture
async def live_sale(sale, ledger):
    """Sale with the ledger connector configured, ready for payments."""
    await sale.configure_ledger_connector(ADMIN, TOKEN)
    return sale


@pytest.fixture
async def daemon(test_config, store, live_sale, mock_rail, mock_poller, clock):
    """SaleDaemon with chain components replaced by mocks."""
    d = SaleDaemon(test_config)
    d.store = store
    d.rail = mock_rail
    d.poller = mock_poller
    d.clock = clock
    d.sale = live_sale
    return d
