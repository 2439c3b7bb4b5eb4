"""Native payment poller - scans new blocks for value sent to the sale account."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from web3 import AsyncWeb3

from tiersale.chain.signer import tx_hash_hex
from tiersale.models.events import PaymentReceived

log = logging.getLogger(__name__)


def parse_block(block: Mapping[str, Any], sale_address: str) -> list[PaymentReceived]:
    """Extract payments into `sale_address` from a block fetched with full transactions.

    Contract creations, zero-value transactions and transfers to other
    accounts are skipped. Order within the block is preserved.
    """
    target = sale_address.lower()
    number = block["number"]
    payments: list[PaymentReceived] = []
    for tx in block.get("transactions", []):
        if not isinstance(tx, Mapping):
            # Hash-only block; caller asked for the wrong shape.
            log.debug("Skipping non-expanded transaction in block %d", number)
            continue
        to = tx.get("to")
        if not to or to.lower() != target:
            continue
        value = int(tx.get("value", 0))
        if value <= 0:
            continue
        payments.append(PaymentReceived(
            tx_hash=tx_hash_hex(tx["hash"]),
            payer=tx["from"],
            amount=value,
            block_number=number,
        ))
    return payments


class NativePaymentPoller:
    """Polls the node block by block for payments into the sale account.

    Only blocks with at least `confirmations` confirmations are scanned.
    The cursor is the last fully scanned block; persist it and pass it back
    as `start_block - 1` to resume.
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        sale_address: str,
        start_block: int | None = None,
        confirmations: int = 1,
        max_blocks: int = 100,
    ) -> None:
        self._w3 = w3
        self._sale_address = sale_address
        self._next_block = start_block
        self._confirmations = max(confirmations, 1)
        self._max_blocks = max_blocks
        self._cursor: int | None = None if start_block is None else start_block - 1

    def set_cursor(self, block: int) -> None:
        """Restore cursor from persisted state."""
        self._cursor = block
        self._next_block = block + 1

    async def poll(self) -> list[PaymentReceived]:
        """Fetch payments from confirmed blocks since the last cursor."""
        try:
            head = await self._w3.eth.block_number
        except Exception as exc:
            log.error("Payment poll failed: %s", exc)
            raise

        safe_head = head - (self._confirmations - 1)
        if self._next_block is None:
            self._next_block = safe_head
            log.info("No cursor, starting from block %d", safe_head)
        if safe_head < self._next_block:
            return []

        end = min(safe_head, self._next_block + self._max_blocks - 1)
        payments: list[PaymentReceived] = []
        for number in range(self._next_block, end + 1):
            block = await self._w3.eth.get_block(number, full_transactions=True)
            found = parse_block(block, self._sale_address)
            payments.extend(found)
            self._cursor = number
            self._next_block = number + 1
            if found:
                log.debug("Found %d payment(s) in block %d", len(found), number)

        if payments:
            log.info("Polled %d payments (cursor: %d)", len(payments), self._cursor)
        return payments

    async def get_cursor(self) -> int | None:
        return self._cursor
