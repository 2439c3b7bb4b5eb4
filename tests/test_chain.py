"""EVM adapters: block parsing and the payment poller over a fake node."""

from __future__ import annotations

from tiersale.chain.poller import NativePaymentPoller, parse_block
from tiersale.chain.signer import tx_hash_hex

from tests.factories import PAYER, SALE, make_raw_tx


class FakeEth:
    def __init__(self, blocks: dict[int, dict], head: int) -> None:
        self.blocks = blocks
        self.head = head
        self.fetched: list[int] = []

    @property
    def block_number(self):
        async def _head():
            return self.head
        return _head()

    async def get_block(self, number, full_transactions=False):
        assert full_transactions
        self.fetched.append(number)
        return self.blocks.get(number, {"number": number, "transactions": []})


class FakeWeb3:
    def __init__(self, blocks: dict[int, dict], head: int) -> None:
        self.eth = FakeEth(blocks, head)


def _block(number: int, *txs: dict) -> dict:
    return {"number": number, "transactions": list(txs)}


# ── parse_block ──────────────────────────────────────────────────


def test_parse_block_keeps_value_transfers_to_sale():
    block = _block(
        7,
        make_raw_tx(SALE.upper().replace("0X", "0x"), 500, tx_hash=b"\xaa" * 32),
        make_raw_tx("0x1111111111111111111111111111111111111111", 900),
        make_raw_tx(SALE, 0),
        make_raw_tx(None, 100),  # contract creation
        make_raw_tx(SALE, 42, tx_hash=b"\xbb" * 32),
    )

    payments = parse_block(block, SALE)

    assert [(p.amount, p.block_number) for p in payments] == [(500, 7), (42, 7)]
    assert payments[0].payer == PAYER
    assert payments[0].tx_hash == "0x" + "aa" * 32


def test_parse_block_ignores_hash_only_transactions():
    assert parse_block(_block(8, b"\x01" * 32), SALE) == []


def test_tx_hash_hex():
    assert tx_hash_hex(b"\x01\x02") == "0x0102"
    assert tx_hash_hex("0xabc") == "0xabc"
    assert tx_hash_hex("abc") == "0xabc"


# ── NativePaymentPoller ──────────────────────────────────────────


async def test_poller_starts_at_head_without_cursor():
    w3 = FakeWeb3({10: _block(10, make_raw_tx(SALE, 5))}, head=10)
    poller = NativePaymentPoller(w3, SALE)

    payments = await poller.poll()

    assert [p.amount for p in payments] == [5]
    assert await poller.get_cursor() == 10
    assert w3.eth.fetched == [10]


async def test_poller_resumes_from_cursor_and_respects_confirmations():
    blocks = {
        4: _block(4, make_raw_tx(SALE, 1)),
        5: _block(5, make_raw_tx(SALE, 2)),
        6: _block(6, make_raw_tx(SALE, 3)),
    }
    w3 = FakeWeb3(blocks, head=6)
    poller = NativePaymentPoller(w3, SALE, confirmations=2)
    poller.set_cursor(3)

    payments = await poller.poll()

    # Block 6 has only one confirmation.
    assert [p.amount for p in payments] == [1, 2]
    assert await poller.get_cursor() == 5

    w3.eth.head = 7
    payments = await poller.poll()
    assert [p.amount for p in payments] == [3]
    assert await poller.get_cursor() == 6


async def test_poller_caps_blocks_per_poll():
    w3 = FakeWeb3({}, head=500)
    poller = NativePaymentPoller(w3, SALE, start_block=100, max_blocks=10)

    assert await poller.get_cursor() == 99
    await poller.poll()

    assert w3.eth.fetched == list(range(100, 110))
    assert await poller.get_cursor() == 109


async def test_poller_idle_when_caught_up():
    w3 = FakeWeb3({}, head=20)
    poller = NativePaymentPoller(w3, SALE)
    poller.set_cursor(20)

    assert await poller.poll() == []
    assert w3.eth.fetched == []
