"""EVM adapters for the sale capabilities."""

from tiersale.chain.clock import BlockHeightClock
from tiersale.chain.erc20 import Erc20TokenLedger
from tiersale.chain.poller import NativePaymentPoller, parse_block
from tiersale.chain.rail import NativePaymentRail
from tiersale.chain.signer import TransactionSigner, make_web3

__all__ = [
    "BlockHeightClock",
    "Erc20TokenLedger",
    "NativePaymentPoller",
    "NativePaymentRail",
    "TransactionSigner",
    "make_web3",
    "parse_block",
]
