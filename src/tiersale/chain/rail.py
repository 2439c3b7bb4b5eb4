"""Native payment rail - plain value transfers for refunds and sweeps."""

from __future__ import annotations

import logging

from web3 import AsyncWeb3

from tiersale.chain.signer import NATIVE_TRANSFER_GAS, TransactionSigner

log = logging.getLogger(__name__)


class NativePaymentRail:
    def __init__(self, signer: TransactionSigner) -> None:
        self._signer = signer

    async def send(self, recipient: str, amount: int) -> bool:
        to = AsyncWeb3.to_checksum_address(recipient)
        ok = await self._signer.submit(
            {"to": to, "value": amount, "gas": NATIVE_TRANSFER_GAS}
        )
        if ok:
            log.debug("Sent %d wei to %s", amount, to)
        return ok
