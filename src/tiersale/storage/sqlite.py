"""SQLite implementation of the StateStore protocol."""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from tiersale.models.events import SaleEvent, event_from_dict, event_to_dict
from tiersale.models.records import ActivityRecord, EventRecord, PaymentRecord
from tiersale.models.state import (
    DistributionState,
    PendingUpdate,
    ProtectedAddresses,
    Role,
    SaleSnapshot,
)

# Native amounts are wei and can exceed SQLite's 64-bit INTEGER, so they are
# stored as decimal TEXT and converted on the way out.
SCHEMA = """
-- Block cursor for resumption
CREATE TABLE IF NOT EXISTS cursor (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    last_block INTEGER NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Distribution progress and protected addresses
CREATE TABLE IF NOT EXISTS sale_state (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    sale_address TEXT NOT NULL,
    current_tier INTEGER NOT NULL,
    current_price TEXT NOT NULL,
    distributed_units INTEGER NOT NULL,
    final_position INTEGER,
    admin TEXT NOT NULL,
    proceeds_recipient TEXT NOT NULL,
    ledger_connector TEXT,
    native_balance TEXT NOT NULL DEFAULT '0',
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Timelock registers, one row per (role, candidate)
CREATE TABLE IF NOT EXISTS pending_updates (
    role TEXT NOT NULL,
    candidate TEXT NOT NULL,
    unlock_point INTEGER NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (role, candidate)
);

-- Published sale events
CREATE TABLE IF NOT EXISTS events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    kind TEXT NOT NULL,
    position INTEGER NOT NULL,
    payload TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_events_kind ON events(kind);

-- Inbound payments seen by the daemon
CREATE TABLE IF NOT EXISTS payments (
    tx_hash TEXT PRIMARY KEY,
    payer TEXT NOT NULL,
    amount TEXT NOT NULL,
    block_number INTEGER NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    allocated_units INTEGER NOT NULL DEFAULT 0,
    refund TEXT NOT NULL DEFAULT '0',
    error TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_payments_status ON payments(status);

-- Activity log
CREATE TABLE IF NOT EXISTS activity_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_type TEXT NOT NULL,
    amount TEXT,
    message TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_activity_created ON activity_log(created_at);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _int_or_none(value: str | None) -> int | None:
    return int(value) if value is not None else None


class SQLiteStateStore:
    """SQLite-backed implementation of the StateStore protocol."""

    def __init__(self, db_path: str, timeout: float = 60.0) -> None:
        self._db_path = db_path
        self._timeout = timeout
        self._db: aiosqlite.Connection | None = None
        self._in_transaction = False

    async def initialize(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path, timeout=self._timeout)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Hold the database write lock and commit the enclosed writes together.

        Other connections (the CLI next to a running daemon) block until the
        transaction ends. Nested use joins the outer transaction.
        """
        if self._in_transaction:
            yield
            return
        await self.db.execute("BEGIN IMMEDIATE")
        self._in_transaction = True
        try:
            yield
        except BaseException:
            self._in_transaction = False
            await self.db.rollback()
            raise
        self._in_transaction = False
        await self.db.commit()

    async def _commit(self) -> None:
        if not self._in_transaction:
            await self.db.commit()

    # ── Cursor ─────────────────────────────────────────────

    async def get_cursor(self) -> int | None:
        async with self.db.execute("SELECT last_block FROM cursor WHERE id=1") as cur:
            row = await cur.fetchone()
            return row["last_block"] if row else None

    async def set_cursor(self, block: int) -> None:
        await self.db.execute(
            "INSERT INTO cursor (id, last_block, updated_at) VALUES (1, ?, ?)"
            " ON CONFLICT(id) DO UPDATE SET last_block=excluded.last_block,"
            " updated_at=excluded.updated_at",
            (block, _now()),
        )
        await self._commit()

    # ── Sale state ─────────────────────────────────────────

    async def load_snapshot(self) -> SaleSnapshot | None:
        async with self.db.execute("SELECT * FROM sale_state WHERE id=1") as cur:
            row = await cur.fetchone()
        if row is None:
            return None

        async with self.db.execute(
            "SELECT * FROM pending_updates ORDER BY role, candidate"
        ) as cur:
            pending = [
                PendingUpdate(
                    role=Role(r["role"]),
                    candidate=r["candidate"],
                    unlock_point=r["unlock_point"],
                )
                for r in await cur.fetchall()
            ]

        return SaleSnapshot(
            sale_address=row["sale_address"],
            distribution=DistributionState(
                current_price=int(row["current_price"]),
                current_tier=row["current_tier"],
                distributed_units=row["distributed_units"],
                final_position=row["final_position"],
            ),
            addresses=ProtectedAddresses(
                admin=row["admin"],
                proceeds_recipient=row["proceeds_recipient"],
                ledger_connector=row["ledger_connector"],
            ),
            native_balance=int(row["native_balance"]),
            pending=pending,
        )

    async def save_snapshot(self, snapshot: SaleSnapshot) -> None:
        dist = snapshot.distribution
        addrs = snapshot.addresses
        now = _now()
        await self.db.execute(
            "INSERT INTO sale_state (id, sale_address, current_tier, current_price,"
            " distributed_units, final_position, admin, proceeds_recipient,"
            " ledger_connector, native_balance, updated_at)"
            " VALUES (1, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
            " ON CONFLICT(id) DO UPDATE SET"
            " sale_address=excluded.sale_address, current_tier=excluded.current_tier,"
            " current_price=excluded.current_price,"
            " distributed_units=excluded.distributed_units,"
            " final_position=excluded.final_position, admin=excluded.admin,"
            " proceeds_recipient=excluded.proceeds_recipient,"
            " ledger_connector=excluded.ledger_connector,"
            " native_balance=excluded.native_balance, updated_at=excluded.updated_at",
            (
                snapshot.sale_address,
                dist.current_tier,
                str(dist.current_price),
                dist.distributed_units,
                dist.final_position,
                addrs.admin,
                addrs.proceeds_recipient,
                addrs.ledger_connector,
                str(snapshot.native_balance),
                now,
            ),
        )
        await self.db.executemany(
            "INSERT INTO pending_updates (role, candidate, unlock_point, updated_at)"
            " VALUES (?, ?, ?, ?)"
            " ON CONFLICT(role, candidate) DO UPDATE SET"
            " unlock_point=excluded.unlock_point, updated_at=excluded.updated_at",
            [
                (entry.role.value, entry.candidate, entry.unlock_point, now)
                for entry in snapshot.pending
            ],
        )
        await self._commit()

    # ── Events ─────────────────────────────────────────────

    async def record_events(self, events: list[SaleEvent]) -> None:
        now = _now()
        await self.db.executemany(
            "INSERT INTO events (kind, position, payload, created_at) VALUES (?, ?, ?, ?)",
            [
                (event.kind, event.position, json.dumps(event_to_dict(event)), now)
                for event in events
            ],
        )
        await self._commit()

    async def get_events(
        self, kind: str | None = None, limit: int = 50
    ) -> list[EventRecord]:
        if kind:
            sql = "SELECT * FROM events WHERE kind=? ORDER BY id DESC LIMIT ?"
            params: tuple = (kind, limit)
        else:
            sql = "SELECT * FROM events ORDER BY id DESC LIMIT ?"
            params = (limit,)
        async with self.db.execute(sql, params) as cur:
            rows = await cur.fetchall()
        return [
            EventRecord(
                id=r["id"],
                event=event_from_dict(r["kind"], json.loads(r["payload"])),
                created_at=r["created_at"],
            )
            for r in rows
        ]

    # ── Payments ───────────────────────────────────────────

    async def save_payment(self, record: PaymentRecord) -> None:
        now = _now()
        await self.db.execute(
            "INSERT OR IGNORE INTO payments (tx_hash, payer, amount, block_number,"
            " status, allocated_units, refund, error, created_at, updated_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.tx_hash,
                record.payer,
                str(record.amount),
                record.block_number,
                record.status,
                record.allocated_units,
                str(record.refund),
                record.error,
                now,
                now,
            ),
        )
        await self._commit()

    async def get_payment(self, tx_hash: str) -> PaymentRecord | None:
        async with self.db.execute(
            "SELECT * FROM payments WHERE tx_hash=?", (tx_hash,)
        ) as cur:
            row = await cur.fetchone()
            return self._row_to_payment(row) if row else None

    async def update_payment(
        self,
        tx_hash: str,
        status: str,
        allocated_units: int | None = None,
        refund: int | None = None,
        error: str | None = None,
    ) -> None:
        sets = ["status=?", "updated_at=?"]
        params: list = [status, _now()]
        if allocated_units is not None:
            sets.append("allocated_units=?")
            params.append(allocated_units)
        if refund is not None:
            sets.append("refund=?")
            params.append(str(refund))
        if error is not None:
            sets.append("error=?")
            params.append(error)
        params.append(tx_hash)
        await self.db.execute(
            f"UPDATE payments SET {', '.join(sets)} WHERE tx_hash=?", params
        )
        await self._commit()

    async def get_payments(self, status: str | None = None) -> list[PaymentRecord]:
        if status:
            sql = "SELECT * FROM payments WHERE status=? ORDER BY block_number, created_at"
            params: tuple = (status,)
        else:
            sql = "SELECT * FROM payments ORDER BY block_number, created_at"
            params = ()
        async with self.db.execute(sql, params) as cur:
            return [self._row_to_payment(r) for r in await cur.fetchall()]

    # ── Activity log ───────────────────────────────────────

    async def log_activity(
        self, event_type: str, message: str, amount: int | None = None
    ) -> None:
        await self.db.execute(
            "INSERT INTO activity_log (event_type, amount, message, created_at)"
            " VALUES (?, ?, ?, ?)",
            (event_type, str(amount) if amount is not None else None, message, _now()),
        )
        await self._commit()

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        async with self.db.execute(
            "SELECT * FROM activity_log ORDER BY created_at DESC, id DESC LIMIT ?", (limit,)
        ) as cur:
            rows = await cur.fetchall()
            return [
                ActivityRecord(
                    id=r["id"],
                    event_type=r["event_type"],
                    amount=_int_or_none(r["amount"]),
                    message=r["message"],
                    created_at=r["created_at"],
                )
                for r in rows
            ]

    # ── Helpers ────────────────────────────────────────────

    @staticmethod
    def _row_to_payment(row: aiosqlite.Row) -> PaymentRecord:
        return PaymentRecord(
            tx_hash=row["tx_hash"],
            payer=row["payer"],
            amount=int(row["amount"]),
            block_number=row["block_number"],
            status=row["status"],
            allocated_units=row["allocated_units"],
            refund=int(row["refund"]),
            error=row["error"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
