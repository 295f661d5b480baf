"""
SQLite State Store

Persists the four keyed maps of a ledger instance: cheque records, sign-over
chain tails, account balances and pending withdrawals. Amounts are stored as
decimal TEXT because uint256 does not fit an SQLite INTEGER.
"""
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import aiosqlite

from .cheques.types import Cheque, ChequeStatus, SignOverTail, cheque_id_hex, normalize_cheque_id
from .exceptions import StorageError
from .logger import get_logger

logger = get_logger(__name__)


@dataclass
class LedgerSnapshot:
    """Point-in-time copy of a ledger's state."""
    ledger_address: str
    cheques: List[Cheque] = field(default_factory=list)
    tails: Dict[bytes, SignOverTail] = field(default_factory=dict)
    balances: Dict[str, int] = field(default_factory=dict)
    pending: Dict[str, int] = field(default_factory=dict)


class SQLiteStateStore:
    """aiosqlite-backed store for ledger snapshots"""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.connection: Optional[aiosqlite.Connection] = None

    @staticmethod
    async def create(db_path: str, wal_mode: bool = True) -> "SQLiteStateStore":
        """Open (creating if needed) the database at *db_path*"""
        self = SQLiteStateStore(db_path)

        directory = os.path.dirname(db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        try:
            self.connection = await aiosqlite.connect(db_path)
            self.connection.row_factory = aiosqlite.Row

            if wal_mode:
                await self.connection.execute("PRAGMA journal_mode=WAL")
                await self.connection.execute("PRAGMA synchronous=NORMAL")

            await self._init_schema()
        except aiosqlite.Error as e:
            raise StorageError(f"Cannot open state store {db_path}: {e}") from e

        logger.info(f"State store opened: {db_path}")
        return self

    @staticmethod
    async def from_config(config) -> "SQLiteStateStore":
        """Open the store described by the [storage] section of an EChequeConfig"""
        config.validate()
        return await SQLiteStateStore.create(config.storage.path, wal_mode=config.storage.wal_mode)

    async def _init_schema(self):
        schema = """
        CREATE TABLE IF NOT EXISTS meta (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS cheques (
            cheque_id TEXT PRIMARY KEY,
            payer TEXT NOT NULL,
            payee TEXT NOT NULL,
            amount TEXT NOT NULL,
            valid_from INTEGER NOT NULL DEFAULT 0,
            valid_thru INTEGER NOT NULL DEFAULT 0,
            status INTEGER NOT NULL,
            created_at INTEGER NOT NULL
        );

        CREATE TABLE IF NOT EXISTS sign_over_tails (
            cheque_id TEXT PRIMARY KEY,
            counter INTEGER NOT NULL,
            payee TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS balances (
            identity TEXT PRIMARY KEY,
            balance TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS pending_withdrawals (
            identity TEXT PRIMARY KEY,
            amount TEXT NOT NULL
        );
        """

        await self.connection.executescript(schema)
        await self.connection.commit()

    async def close(self):
        if self.connection:
            await self.connection.close()
            self.connection = None
            logger.info(f"State store closed: {self.db_path}")

    async def __aenter__(self) -> "SQLiteStateStore":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def get_ledger_address(self) -> Optional[str]:
        cursor = await self.connection.execute(
            "SELECT value FROM meta WHERE key = 'ledger_address'"
        )
        row = await cursor.fetchone()
        return row['value'] if row else None

    async def save_snapshot(self, snapshot: LedgerSnapshot):
        """
        Upsert every entry of *snapshot* in a single transaction.

        Raises:
            StorageError: If the store belongs to another ledger or the write fails
        """
        stored = await self.get_ledger_address()
        if stored is not None and stored != snapshot.ledger_address:
            raise StorageError(f"State store belongs to ledger {stored}")

        try:
            await self.connection.execute(
                "INSERT INTO meta (key, value) VALUES ('ledger_address', ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (snapshot.ledger_address,),
            )
            await self.connection.executemany("""
                INSERT INTO cheques (cheque_id, payer, payee, amount, valid_from, valid_thru, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(cheque_id) DO UPDATE SET status = excluded.status
            """, [
                (
                    cheque_id_hex(c.cheque_id), c.payer, c.payee, str(c.amount),
                    c.valid_from, c.valid_thru, int(c.status), c.created_at,
                )
                for c in snapshot.cheques
            ])
            await self.connection.executemany("""
                INSERT INTO sign_over_tails (cheque_id, counter, payee) VALUES (?, ?, ?)
                ON CONFLICT(cheque_id) DO UPDATE SET counter = excluded.counter, payee = excluded.payee
            """, [(cheque_id_hex(cid), t.counter, t.payee) for cid, t in snapshot.tails.items()])
            await self.connection.executemany("""
                INSERT INTO balances (identity, balance) VALUES (?, ?)
                ON CONFLICT(identity) DO UPDATE SET balance = excluded.balance
            """, [(identity, str(amount)) for identity, amount in snapshot.balances.items()])
            await self.connection.executemany("""
                INSERT INTO pending_withdrawals (identity, amount) VALUES (?, ?)
                ON CONFLICT(identity) DO UPDATE SET amount = excluded.amount
            """, [(identity, str(amount)) for identity, amount in snapshot.pending.items()])
            await self.connection.commit()
        except aiosqlite.Error as e:
            await self.connection.rollback()
            raise StorageError(f"Failed to save ledger state: {e}") from e

        logger.debug(
            f"Saved {len(snapshot.cheques)} cheques, {len(snapshot.tails)} tails, "
            f"{len(snapshot.balances)} balances, {len(snapshot.pending)} pending"
        )

    async def load_snapshot(self) -> Optional[LedgerSnapshot]:
        """Read the stored state, or None if nothing was ever saved."""
        ledger_address = await self.get_ledger_address()
        if ledger_address is None:
            return None

        snapshot = LedgerSnapshot(ledger_address=ledger_address)
        try:
            cursor = await self.connection.execute("SELECT * FROM cheques")
            for row in await cursor.fetchall():
                snapshot.cheques.append(Cheque(
                    cheque_id=normalize_cheque_id(row['cheque_id']),
                    payer=row['payer'],
                    payee=row['payee'],
                    amount=int(row['amount']),
                    valid_from=row['valid_from'],
                    valid_thru=row['valid_thru'],
                    status=ChequeStatus(row['status']),
                    created_at=row['created_at'],
                ))

            cursor = await self.connection.execute("SELECT cheque_id, counter, payee FROM sign_over_tails")
            for row in await cursor.fetchall():
                snapshot.tails[normalize_cheque_id(row['cheque_id'])] = SignOverTail(
                    counter=row['counter'], payee=row['payee'],
                )

            cursor = await self.connection.execute("SELECT identity, balance FROM balances")
            for row in await cursor.fetchall():
                snapshot.balances[row['identity']] = int(row['balance'])

            cursor = await self.connection.execute("SELECT identity, amount FROM pending_withdrawals")
            for row in await cursor.fetchall():
                snapshot.pending[row['identity']] = int(row['amount'])
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to load ledger state: {e}") from e

        return snapshot
