"""ERC-20 token ledger - the TokenLedger capability over a token contract."""

from __future__ import annotations

import logging

from web3 import AsyncWeb3

from tiersale.chain.signer import TransactionSigner

log = logging.getLogger(__name__)

ERC20_ABI = [
    {
        "name": "transfer",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "value", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "totalSupply",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "decimals",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
    },
]


class Erc20TokenLedger:
    """Token ledger backed by an ERC-20 contract custodied by the sale account."""

    def __init__(self, token_address: str, signer: TransactionSigner) -> None:
        self._signer = signer
        self._address = AsyncWeb3.to_checksum_address(token_address)
        self._contract = signer.w3.eth.contract(address=self._address, abi=ERC20_ABI)
        self._decimals: int | None = None

    @property
    def address(self) -> str:
        return self._address

    async def transfer(self, recipient: str, amount: int) -> bool:
        to = AsyncWeb3.to_checksum_address(recipient)
        # Simulate first so a reverting or false-returning transfer never gets mined.
        accepted = await self._contract.functions.transfer(to, amount).call(
            {"from": self._signer.address}
        )
        if not accepted:
            log.warning("Token %s refused transfer of %d to %s", self._address, amount, to)
            return False
        tx = await self._contract.functions.transfer(to, amount).build_transaction(
            {"from": self._signer.address, "gasPrice": self._signer.gas_price}
        )
        tx.pop("nonce", None)
        ok = await self._signer.submit(tx)
        if ok:
            log.debug("Transferred %d of %s to %s", amount, self._address, to)
        return ok

    async def balance_of(self, address: str) -> int:
        return await self._contract.functions.balanceOf(
            AsyncWeb3.to_checksum_address(address)
        ).call()

    async def total_supply(self) -> int:
        return await self._contract.functions.totalSupply().call()

    async def decimals(self) -> int:
        if self._decimals is None:
            self._decimals = await self._contract.functions.decimals().call()
        return self._decimals
