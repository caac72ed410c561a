# noteledger/storage/sqlite.py
import os
import sqlite3
import json
from pathlib import Path
from typing import Dict, List, Optional, Set

from noteledger.core.encoding import pubkey_from_str, pubkey_to_str
from noteledger.core.types import Account
from . import StorageBackend


class SQLiteStorage(StorageBackend):
    """SQLite persistent storage for host accounts and the transaction log."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            env_path = os.environ.get("NOTELEDGER_DB_PATH")
            db_path = env_path if env_path else Path.cwd() / "notes.db"

        self.db_path = Path(db_path)

        # Ensure the entire parent directory tree exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.db_path = self.db_path.resolve()

        self._conn: Optional[sqlite3.Connection] = None
        self._connect()

    def _connect(self):
        conn_str = str(self.db_path)
        self._conn = sqlite3.connect(conn_str, isolation_level=None)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_schema()

    def _create_schema(self):
        # lamports are u64: stored as decimal text, SQLite INTEGER is signed 64-bit
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS accounts (
                address     TEXT    PRIMARY KEY,
                lamports    TEXT    NOT NULL,
                owner       TEXT    NOT NULL,
                executable  INTEGER NOT NULL DEFAULT 0,
                data        BLOB    NOT NULL
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS transactions (
                seq         INTEGER PRIMARY KEY AUTOINCREMENT,
                tx_id       TEXT    NOT NULL,
                timestamp   INTEGER NOT NULL,
                success     INTEGER NOT NULL,
                logs_json   TEXT    NOT NULL
            )
        """)
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_owner ON accounts(owner)")
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_tx_id ON transactions(tx_id)")

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Storage connection is closed")
        return self._conn

    def _write_accounts(self, conn: sqlite3.Connection, changes: Dict[bytes, Optional[Account]]) -> None:
        for address, acct in changes.items():
            key = pubkey_to_str(address)
            if acct is None:
                conn.execute("DELETE FROM accounts WHERE address = ?", (key,))
                continue
            conn.execute("""
                INSERT INTO accounts (address, lamports, owner, executable, data)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(address) DO UPDATE SET
                    lamports = excluded.lamports,
                    owner = excluded.owner,
                    executable = excluded.executable,
                    data = excluded.data
            """, (key, str(acct.lamports), pubkey_to_str(acct.owner), int(acct.executable), acct.data))

    def _insert_log(self, conn: sqlite3.Connection, tx_id: str, timestamp: int,
                    success: bool, logs: List[str]) -> None:
        conn.execute("""
            INSERT INTO transactions (tx_id, timestamp, success, logs_json)
            VALUES (?, ?, ?, ?)
        """, (tx_id, timestamp, int(success), json.dumps(logs, separators=(",", ":"))))

    def save_accounts(self, changes: Dict[bytes, Optional[Account]]) -> None:
        conn = self.conn
        conn.execute("BEGIN")
        try:
            self._write_accounts(conn, changes)
        except Exception:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")

    def commit_transaction(self, changes: Dict[bytes, Optional[Account]],
                           tx_id: str, timestamp: int, logs: List[str]) -> None:
        conn = self.conn
        conn.execute("BEGIN")
        try:
            self._write_accounts(conn, changes)
            self._insert_log(conn, tx_id, timestamp, True, logs)
        except Exception:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")

    def _row_to_account(self, row) -> Account:
        lamports, owner, executable, data = row
        return Account(
            lamports=int(lamports),
            data=bytes(data),
            owner=pubkey_from_str(owner),
            executable=bool(executable),
        )

    def load_accounts(self) -> Dict[bytes, Account]:
        cursor = self.conn.execute("""
            SELECT address, lamports, owner, executable, data
            FROM accounts ORDER BY address ASC
        """)
        loaded = {}
        for row in cursor:
            loaded[pubkey_from_str(row[0])] = self._row_to_account(row[1:])
        return loaded

    def get_account(self, address: bytes) -> Optional[Account]:
        cursor = self.conn.execute(
            "SELECT lamports, owner, executable, data FROM accounts WHERE address = ?",
            (pubkey_to_str(address),)
        )
        row = cursor.fetchone()
        return self._row_to_account(row) if row else None

    def accounts_owned_by(self, program_id: bytes) -> Dict[bytes, Account]:
        cursor = self.conn.execute("""
            SELECT address, lamports, owner, executable, data
            FROM accounts WHERE owner = ? ORDER BY address ASC
        """, (pubkey_to_str(program_id),))
        return {pubkey_from_str(row[0]): self._row_to_account(row[1:]) for row in cursor}

    def append_log(self, tx_id: str, timestamp: int, success: bool, logs: List[str]) -> None:
        self._insert_log(self.conn, tx_id, timestamp, success, logs)

    def committed_tx_ids(self) -> Set[str]:
        cursor = self.conn.execute("SELECT tx_id FROM transactions WHERE success = 1")
        return {row[0] for row in cursor}

    def query_transactions(self, limit: int = 50) -> List[dict]:
        cursor = self.conn.execute("""
            SELECT seq, tx_id, timestamp, success, logs_json
            FROM transactions
            ORDER BY seq DESC
            LIMIT ?
        """, (limit,))

        loaded = []
        for seq, tx_id, ts, success, logs_json in cursor:
            loaded.append({
                "seq": seq,
                "tx_id": tx_id,
                "timestamp": ts,
                "success": bool(success),
                "logs": json.loads(logs_json),
            })
        loaded.reverse()  # latest last
        return loaded

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
