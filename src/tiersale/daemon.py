"""Main daemon loop - wires all components together."""

from __future__ import annotations

import asyncio
import logging
import signal

from tiersale.chain import (
    BlockHeightClock,
    Erc20TokenLedger,
    NativePaymentPoller,
    NativePaymentRail,
    TransactionSigner,
    make_web3,
)
from tiersale.errors import DownstreamRefundFailed, InvariantViolation, SaleError
from tiersale.interfaces.ledger import TokenLedger
from tiersale.models.config import SaleConfig
from tiersale.models.events import PaymentReceived
from tiersale.models.records import PaymentRecord
from tiersale.sale import TokenSale
from tiersale.storage.sqlite import SQLiteStateStore

log = logging.getLogger(__name__)


class SaleDaemon:
    """Token sale daemon.

    Watches the chain for payments into the sale account, runs each one
    through the sale, and keeps a record of every outcome. Payments the sale
    rejects are bounced back to the payer in full.
    """

    def __init__(self, cfg: SaleConfig) -> None:
        self._cfg = cfg
        self._running = False

        w3 = make_web3(cfg.rpc_url)
        self.signer = TransactionSigner(w3, cfg.private_key, cfg.chain_id, cfg.gas_price_gwei)
        self.store = SQLiteStateStore(cfg.db_path)
        self.rail = NativePaymentRail(self.signer)
        self.clock = BlockHeightClock(w3)
        self.poller = NativePaymentPoller(
            w3, self.signer.address, cfg.start_block, cfg.confirmations,
        )
        self.sale: TokenSale = None  # type: ignore[assignment]  # set in open()

    @property
    def sale_address(self) -> str:
        return self.signer.address

    def connect_ledger(self, address: str) -> TokenLedger:
        return Erc20TokenLedger(address, self.signer)

    async def open(self) -> TokenSale:
        """Initialize the store and restore (or create) the sale."""
        await self.store.initialize()
        self.sale = await TokenSale.load(
            self.store,
            self._cfg.pricing,
            self.sale_address,
            self._cfg.admin,
            self._cfg.proceeds_recipient,
            clock=self.clock,
            rail=self.rail,
            connect=self.connect_ledger,
        )
        return self.sale

    async def close(self) -> None:
        await self.store.close()

    async def start(self) -> None:
        """Initialize components and run the main loop."""
        log.info("Starting tiersale daemon")
        log.info("  Sale account: %s", self.sale_address)
        log.info("  RPC: %s", self._cfg.rpc_url)
        log.info("  Chain ID: %d", self._cfg.chain_id)

        await self.open()
        log.info(
            "  Tier %d at price %d, %d units distributed",
            self.sale.current_tier, self.sale.current_price, self.sale.distributed_units,
        )
        if self.sale.ledger_connector is None:
            log.warning("No ledger connector configured; payments will be bounced")

        await self._restore_cursor()

        self._running = True
        await self.store.log_activity("daemon_started", "Daemon started")

        try:
            await self._main_loop()
        finally:
            await self.store.log_activity("daemon_stopped", "Daemon stopped")
            await self.close()
            log.info("Daemon shut down cleanly")

    async def stop(self) -> None:
        """Signal the daemon to stop gracefully."""
        log.info("Stop requested")
        self._running = False

    async def _restore_cursor(self) -> None:
        saved_block = await self.store.get_cursor()
        if saved_block is not None:
            self.poller.set_cursor(saved_block)
            log.info("Restored cursor: block %d", saved_block)

    async def _main_loop(self) -> None:
        """The core polling and processing loop."""
        while self._running:
            try:
                # 1. Poll for new payments
                payments = await self.poller.poll()

                # 2. Run each through the sale, oldest first
                for payment in payments:
                    await self._handle_payment(payment)

                # 3. Save cursor
                block = await self.poller.get_cursor()
                if block is not None:
                    await self.store.set_cursor(block)

                # 4. Wait before next poll
                await asyncio.sleep(self._cfg.poll_interval)

            except asyncio.CancelledError:
                log.info("Main loop cancelled")
                break
            except Exception as exc:
                log.error("Main loop error: %s", exc, exc_info=True)
                await self.store.log_activity("error", str(exc))
                # Rescan from the last saved block; handled payments are skipped.
                await self._restore_cursor()
                await asyncio.sleep(self._cfg.error_backoff)

    async def _handle_payment(self, payment: PaymentReceived) -> None:
        """Process a single inbound payment."""
        existing = await self.store.get_payment(payment.tx_hash)
        if existing is not None and existing.status != "pending":
            log.debug("Skipping already handled payment %s", payment.tx_hash)
            return

        log.info(
            "Payment: tx=%s payer=%s amount=%d block=%d",
            payment.tx_hash[:18], payment.payer, payment.amount, payment.block_number,
        )
        await self.store.save_payment(PaymentRecord(
            tx_hash=payment.tx_hash,
            payer=payment.payer,
            amount=payment.amount,
            block_number=payment.block_number,
        ))
        await self.store.log_activity(
            "payment_seen",
            f"Payment of {payment.amount} from {payment.payer}",
            amount=payment.amount,
        )
        # From here on a rescan must not touch this payment again: tokens or a
        # bounce may leave before its final status is written.
        await self.store.update_payment(payment.tx_hash, "processing")

        try:
            result = await self.sale.on_payment(
                payment.payer, payment.amount, tx_hash=payment.tx_hash,
            )

        except (DownstreamRefundFailed, InvariantViolation) as exc:
            # Tokens may already have moved; leave it to the operator.
            status = "refund_failed" if isinstance(exc, DownstreamRefundFailed) else "failed"
            log.error("Payment %s needs attention (%s): %s", payment.tx_hash, status, exc)
            await self.store.update_payment(
                payment.tx_hash, status, error=f"{type(exc).__name__}: {exc}",
            )
            await self.store.log_activity(
                f"payment_{status}",
                f"Payment {payment.tx_hash[:18]} {status}: {exc}",
                amount=payment.amount,
            )
            return

        except SaleError as exc:
            log.warning("Rejected payment %s: %s", payment.tx_hash, exc)
            reason = f"{type(exc).__name__}: {exc}"
            if await self._bounce(payment):
                await self.store.update_payment(
                    payment.tx_hash, "rejected", refund=payment.amount, error=reason,
                )
                await self.store.log_activity(
                    "payment_rejected",
                    f"Bounced {payment.amount} to {payment.payer}: {reason}",
                    amount=payment.amount,
                )
            else:
                await self.store.update_payment(
                    payment.tx_hash, "bounce_failed", error=reason,
                )
                await self.store.log_activity(
                    "bounce_failed",
                    f"Could not bounce {payment.amount} to {payment.payer}: {reason}",
                    amount=payment.amount,
                )
            return

        except Exception:
            log.error(
                "Payment %s interrupted, left as processing for review", payment.tx_hash,
            )
            raise

        await self.store.log_activity(
            "distribution",
            f"Distributed {result.allocated_units} units to {payment.payer}"
            f" (tier {result.tier}, refund {result.refund})",
            amount=payment.amount - result.refund,
        )
        if result.sold_out:
            await self.store.log_activity("sale_completed", "All units distributed")

    async def _bounce(self, payment: PaymentReceived) -> bool:
        """Return a rejected payment to its sender in full."""
        try:
            ok = await self.rail.send(payment.payer, payment.amount)
        except Exception as exc:
            log.error("Bounce of %s to %s raised: %s", payment.tx_hash, payment.payer, exc)
            return False
        if not ok:
            log.error("Bounce of %s to %s failed", payment.tx_hash, payment.payer)
        return ok


async def run_daemon(cfg: SaleConfig) -> None:
    """Entry point for running the daemon."""
    daemon = SaleDaemon(cfg)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        asyncio.ensure_future(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await daemon.start()
