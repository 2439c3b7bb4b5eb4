"""Transaction signer - builds, signs, and submits transactions for one account."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.middleware import ExtraDataToPOAMiddleware

log = logging.getLogger(__name__)

NATIVE_TRANSFER_GAS = 21_000


def make_web3(rpc_url: str) -> AsyncWeb3:
    """AsyncWeb3 over HTTP, tolerant of PoA extra-data headers."""
    w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
    w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return w3


def tx_hash_hex(value: Any) -> str:
    """Render a transaction hash (HexBytes, bytes or str) as 0x-prefixed hex."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    text = str(value)
    return text if text.startswith("0x") else "0x" + text


class TransactionSigner:
    """Signs and submits transactions from a single local account.

    Nonces are taken from the pending block and submissions are serialized so
    that back-to-back transfers and refunds never reuse a nonce. A submission
    only counts as successful once its receipt reports status 1.
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        private_key: str,
        chain_id: int,
        gas_price_gwei: str = "2",
        confirmation_timeout: float = 300,
    ) -> None:
        self._w3 = w3
        self._account: LocalAccount = Account.from_key(private_key)
        self._chain_id = chain_id
        self._gas_price = AsyncWeb3.to_wei(gas_price_gwei, "gwei")
        self._timeout = confirmation_timeout
        self._lock = asyncio.Lock()

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def w3(self) -> AsyncWeb3:
        return self._w3

    @property
    def gas_price(self) -> int:
        return self._gas_price

    async def submit(self, tx: dict[str, Any]) -> bool:
        """Fill in nonce, gas price and chain id, sign, send, await the receipt."""
        async with self._lock:
            nonce = await self._w3.eth.get_transaction_count(self.address, "pending")
            tx = {
                **tx,
                "from": self.address,
                "nonce": nonce,
                "gasPrice": self._gas_price,
                "chainId": self._chain_id,
            }
            if "gas" not in tx:
                tx["gas"] = await self._w3.eth.estimate_gas(tx)

            signed = self._account.sign_transaction(tx)
            tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
            log.debug("Sent tx %s (nonce %d)", tx_hash_hex(tx_hash), nonce)

        receipt = await self._w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self._timeout
        )
        ok = receipt["status"] == 1
        if ok:
            log.debug("Tx %s confirmed in block %d", tx_hash_hex(tx_hash), receipt["blockNumber"])
        else:
            log.warning("Tx %s reverted in block %d", tx_hash_hex(tx_hash), receipt["blockNumber"])
        return ok
