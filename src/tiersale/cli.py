"""CLI entry point for the tiersale daemon and admin commands."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Awaitable, Callable, TypeVar

import click
from eth_account import Account

from tiersale.config import load_config
from tiersale.daemon import SaleDaemon, run_daemon
from tiersale.errors import SaleError
from tiersale.models.config import SaleConfig
from tiersale.models.events import event_to_dict
from tiersale.models.state import Role
from tiersale.sale import TokenSale

T = TypeVar("T")

_ROLE_CHOICE = click.Choice([role.value for role in Role])


def _require_key(cfg: SaleConfig) -> None:
    """Exit with error if no sale account key is configured."""
    if not cfg.private_key:
        click.echo("Error: No sale account key configured.", err=True)
        click.echo("Set TIERSALE_PRIVATE_KEY env var or private_key in config.", err=True)
        sys.exit(1)


def _require_roles(cfg: SaleConfig) -> None:
    """Exit with error if the initial role holders are missing."""
    if not cfg.admin or not cfg.proceeds_recipient:
        click.echo("Error: admin and proceeds_recipient must be configured.", err=True)
        click.echo("Set them in the [governance] section of the config.", err=True)
        sys.exit(1)


def _admin_address(cfg: SaleConfig) -> str:
    if not cfg.admin_key:
        click.echo("Error: No admin key configured.", err=True)
        click.echo("Set TIERSALE_ADMIN_KEY env var or admin_key in config.", err=True)
        sys.exit(1)
    return Account.from_key(cfg.admin_key).address


def _with_sale(cfg: SaleConfig, action: Callable[[TokenSale, SaleDaemon], Awaitable[T]]) -> T:
    """Open the sale, run `action` against it, and close the store."""
    _require_key(cfg)

    async def _inner() -> T:
        daemon = SaleDaemon(cfg)
        try:
            sale = await daemon.open()
            return await action(sale, daemon)
        finally:
            await daemon.close()

    try:
        return asyncio.run(_inner())
    except SaleError as exc:
        click.echo(f"Error: {type(exc).__name__}: {exc}", err=True)
        sys.exit(1)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """tiersale - Tiered-price token sale daemon."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Daemon ─────────────────────────────────────────────


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Start the sale daemon."""
    cfg = load_config(ctx.obj["config_path"])
    _require_key(cfg)
    _require_roles(cfg)

    click.echo(f"Starting tiersale daemon (rpc: {cfg.rpc_url})")
    asyncio.run(run_daemon(cfg))


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show sale progress and protected addresses."""
    cfg = load_config(ctx.obj["config_path"])
    _require_roles(cfg)

    async def _status(sale: TokenSale, daemon: SaleDaemon) -> None:
        params = sale.params
        click.echo(f"Sale:        {sale.sale_address}")
        click.echo(f"Tier:        {sale.current_tier} / {params.max_tier}")
        click.echo(f"Price:       {sale.current_price}")
        click.echo(f"Distributed: {sale.distributed_units} / {params.max_units}")
        click.echo(f"Proceeds:    {sale.native_balance}")
        click.echo(f"Admin:       {sale.admin}")
        click.echo(f"Recipient:   {sale.proceeds_recipient}")
        click.echo(f"Ledger:      {sale.ledger_connector or '(not configured)'}")
        if sale.final_position is not None:
            click.echo(f"Sold out at: {sale.final_position}")
        click.echo(f"DB path:     {cfg.db_path}")

    _with_sale(cfg, _status)


@cli.command()
@click.argument("amount", type=int)
@click.pass_context
def quote(ctx: click.Context, amount: int) -> None:
    """Preview how a payment of AMOUNT would be allocated."""
    cfg = load_config(ctx.obj["config_path"])
    _require_roles(cfg)

    async def _quote(sale: TokenSale, daemon: SaleDaemon) -> None:
        plan = sale.quote(amount)
        for fill in plan.fills:
            mark = " (fills tier)" if fill.completed_tier else ""
            click.echo(
                f"  tier {fill.tier}: {fill.units} units @ {fill.price} = {fill.cost}{mark}"
            )
        click.echo(f"Units:  {plan.allocated_units}")
        click.echo(f"Cost:   {plan.committed}")
        click.echo(f"Refund: {plan.refund}")
        click.echo(f"Ends at tier {plan.end_tier}, price {plan.end_price}")

    _with_sale(cfg, _quote)


@cli.command()
@click.option("--kind", default=None, help="Only show events of this kind")
@click.option("--limit", type=int, default=50, help="Maximum number of events")
@click.pass_context
def events(ctx: click.Context, kind: str | None, limit: int) -> None:
    """List recorded sale events, newest first."""
    cfg = load_config(ctx.obj["config_path"])
    _require_roles(cfg)

    async def _events(sale: TokenSale, daemon: SaleDaemon) -> None:
        records = await daemon.store.get_events(kind=kind, limit=limit)
        if not records:
            click.echo("No events recorded.")
            return
        for record in records:
            payload = event_to_dict(record.event)
            position = payload.pop("position")
            details = " ".join(f"{k}={v}" for k, v in payload.items())
            click.echo(f"[{position}] {record.event.kind}: {details}")

    _with_sale(cfg, _events)


@cli.command()
@click.option("--status", "status_filter", default=None, help="Filter by payment status")
@click.pass_context
def payments(ctx: click.Context, status_filter: str | None) -> None:
    """List payments seen by the daemon."""
    cfg = load_config(ctx.obj["config_path"])
    _require_roles(cfg)

    async def _payments(sale: TokenSale, daemon: SaleDaemon) -> None:
        records = await daemon.store.get_payments(status=status_filter)
        if not records:
            click.echo("No payments recorded.")
            return
        for p in records:
            line = (
                f"{p.tx_hash[:18]}  block {p.block_number}  {p.payer}  {p.amount}"
                f"  {p.status}  units={p.allocated_units} refund={p.refund}"
            )
            if p.error:
                line += f"  ({p.error})"
            click.echo(line)

    _with_sale(cfg, _payments)


# ── Administration ─────────────────────────────────────


@cli.command("configure-ledger")
@click.argument("address")
@click.pass_context
def configure_ledger(ctx: click.Context, address: str) -> None:
    """Point the sale at the pre-funded token at ADDRESS."""
    cfg = load_config(ctx.obj["config_path"])
    _require_roles(cfg)
    caller = _admin_address(cfg)

    async def _configure(sale: TokenSale, daemon: SaleDaemon) -> None:
        await sale.configure_ledger_connector(caller, address)
        click.echo(f"Ledger connector set to {address}")

    _with_sale(cfg, _configure)


@cli.command()
@click.pass_context
def sweep(ctx: click.Context) -> None:
    """Send accumulated proceeds to the proceeds recipient."""
    cfg = load_config(ctx.obj["config_path"])
    _require_roles(cfg)
    caller = _admin_address(cfg)

    async def _sweep(sale: TokenSale, daemon: SaleDaemon) -> None:
        recipient = sale.proceeds_recipient
        amount = await sale.sweep_proceeds(caller)
        click.echo(f"Swept {amount} to {recipient}")

    _with_sale(cfg, _sweep)


@cli.group()
def governance() -> None:
    """Timelocked admin and proceeds-recipient updates."""


@governance.command("request")
@click.argument("role", type=_ROLE_CHOICE)
@click.argument("candidate")
@click.pass_context
def governance_request(ctx: click.Context, role: str, candidate: str) -> None:
    """Request that ROLE be handed to CANDIDATE after the delay."""
    cfg = load_config(ctx.obj["config_path"])
    _require_roles(cfg)
    caller = _admin_address(cfg)

    async def _request(sale: TokenSale, daemon: SaleDaemon) -> None:
        unlock = await sale.request_update(caller, Role(role), candidate)
        click.echo(f"Requested {role} update to {candidate}; committable at {unlock}")

    _with_sale(cfg, _request)


@governance.command("commit")
@click.argument("role", type=_ROLE_CHOICE)
@click.argument("candidate")
@click.pass_context
def governance_commit(ctx: click.Context, role: str, candidate: str) -> None:
    """Commit a previously requested ROLE update to CANDIDATE."""
    cfg = load_config(ctx.obj["config_path"])
    _require_roles(cfg)
    caller = _admin_address(cfg)

    async def _commit(sale: TokenSale, daemon: SaleDaemon) -> None:
        await sale.commit_update(caller, Role(role), candidate)
        click.echo(f"{role} is now {candidate}")

    _with_sale(cfg, _commit)


@governance.command("pending")
@click.argument("role", type=_ROLE_CHOICE)
@click.argument("candidate")
@click.pass_context
def governance_pending(ctx: click.Context, role: str, candidate: str) -> None:
    """Show the timelock status of a ROLE update to CANDIDATE."""
    cfg = load_config(ctx.obj["config_path"])
    _require_roles(cfg)

    async def _pending(sale: TokenSale, daemon: SaleDaemon) -> None:
        unlock = sale.unlock_point(Role(role), candidate)
        if not unlock:
            click.echo(f"No pending {role} update for {candidate}")
            return
        state = await sale.update_status(Role(role), candidate)
        click.echo(f"{role} -> {candidate}: {state.value} (unlock at {unlock})")

    _with_sale(cfg, _pending)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
