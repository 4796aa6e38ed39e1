"""Vault persistence: encrypted blobs, ledger chains and auth records per owner.

The vault core only ever hands this layer ciphertext records, ledger
records and password hashes. Two backends:

- MemoryVaultStore: dict-backed, for tests and throwaway sessions.
- SQLiteVaultStore: SQLite + WAL mode via core.db.connect(), one row per
  owner in each of vault_data / ledger_data / auth_data.

``put_chain`` supports an optimistic tip check: pass the tip hash seen at
reload time as ``expected_tip`` (``""`` meaning "no chain stored yet") and
the write fails with LedgerConflictError if another writer got there first.
"""

import copy
import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .core.db import connect, immediate
from .exceptions import LedgerConflictError, PersistenceError

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


def chain_tip(record: Optional[Record]) -> str:
    """Hash of the last block of a stored chain record, or "" if none."""
    if not record or not record.get("blocks"):
        return ""
    return record["blocks"][-1].get("hash", "")


class VaultStore(ABC):
    """Opaque per-owner persistence used by the vault core."""

    @abstractmethod
    def get_blob(self, owner_id: str) -> Optional[Record]:
        """Return the stored EncryptedBlob record or None."""

    @abstractmethod
    def put_blob(self, owner_id: str, record: Record) -> None:
        """Store (overwrite) the owner's EncryptedBlob record."""

    @abstractmethod
    def get_chain(self, owner_id: str) -> Optional[Record]:
        """Return the stored ledger record (difficulty + blocks) or None."""

    @abstractmethod
    def put_chain(self, owner_id: str, record: Record, expected_tip: Optional[str] = None) -> None:
        """Store the ledger record, optionally guarded by a tip check."""

    @abstractmethod
    def get_auth(self, owner_id: str) -> Optional[Record]:
        """Return the master password record or None."""

    @abstractmethod
    def put_auth(self, owner_id: str, record: Record) -> None:
        """Store (overwrite) the master password record."""

    @abstractmethod
    def delete_auth(self, owner_id: str) -> bool:
        """Delete the master password record. Returns True if one existed."""


class MemoryVaultStore(VaultStore):
    """Thread-safe in-memory store. Records are deep-copied in and out."""

    def __init__(self):
        self._lock = threading.Lock()
        self._blobs: Dict[str, Record] = {}
        self._chains: Dict[str, Record] = {}
        self._auth: Dict[str, Record] = {}

    def get_blob(self, owner_id: str) -> Optional[Record]:
        with self._lock:
            return copy.deepcopy(self._blobs.get(owner_id))

    def put_blob(self, owner_id: str, record: Record) -> None:
        with self._lock:
            self._blobs[owner_id] = copy.deepcopy(record)

    def get_chain(self, owner_id: str) -> Optional[Record]:
        with self._lock:
            return copy.deepcopy(self._chains.get(owner_id))

    def put_chain(self, owner_id: str, record: Record, expected_tip: Optional[str] = None) -> None:
        with self._lock:
            if expected_tip is not None:
                current = chain_tip(self._chains.get(owner_id))
                if current != expected_tip:
                    raise LedgerConflictError(
                        f"Ledger tip for {owner_id} moved from {expected_tip[:12]!r} to {current[:12]!r}"
                    )
            self._chains[owner_id] = copy.deepcopy(record)

    def get_auth(self, owner_id: str) -> Optional[Record]:
        with self._lock:
            return copy.deepcopy(self._auth.get(owner_id))

    def put_auth(self, owner_id: str, record: Record) -> None:
        with self._lock:
            self._auth[owner_id] = copy.deepcopy(record)

    def delete_auth(self, owner_id: str) -> bool:
        with self._lock:
            return self._auth.pop(owner_id, None) is not None


class SQLiteVaultStore(VaultStore):
    """SQLite persistence for vault blobs, ledgers and auth records.

    Args:
        db_path: Path to SQLite database file. Defaults to the configured
            data directory's vault.db.
    """

    def __init__(self, db_path: Optional[str] = None):
        if db_path is None:
            from .config import get_settings
            db_path = get_settings().vault_db_path
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    def _connect(self, row_factory: bool = True) -> sqlite3.Connection:
        return connect(self.db_path, row_factory=row_factory)

    def _init_database(self):
        """Create the tables if they do not exist."""
        try:
            with closing(self._connect()) as conn:
                conn.executescript("""
                    CREATE TABLE IF NOT EXISTS vault_data (
                        user_id         TEXT PRIMARY KEY,
                        encrypted_data  TEXT NOT NULL,
                        iv              TEXT NOT NULL,
                        salt            TEXT NOT NULL,
                        auth_tag        TEXT NOT NULL,
                        version         INTEGER NOT NULL DEFAULT 1,
                        updated_at      TEXT NOT NULL
                    );
                    CREATE TABLE IF NOT EXISTS ledger_data (
                        user_id         TEXT PRIMARY KEY,
                        difficulty      INTEGER NOT NULL,
                        blocks          TEXT NOT NULL DEFAULT '[]',
                        tip_hash        TEXT NOT NULL DEFAULT '',
                        updated_at      TEXT NOT NULL
                    );
                    CREATE TABLE IF NOT EXISTS auth_data (
                        user_id         TEXT PRIMARY KEY,
                        password_hash   TEXT NOT NULL,
                        salt            TEXT NOT NULL,
                        iterations      INTEGER NOT NULL,
                        algorithm       TEXT NOT NULL,
                        ledger_data     TEXT NOT NULL,
                        created_at      TEXT NOT NULL,
                        last_login      TEXT NOT NULL
                    );
                """)
            logger.debug("Vault database ready at %s", self.db_path)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot initialize vault database: {e}") from e

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    # ── blobs ───────────────────────────────────────────────────────

    def get_blob(self, owner_id: str) -> Optional[Record]:
        try:
            with closing(self._connect()) as conn:
                row = conn.execute(
                    "SELECT encrypted_data, iv, salt, auth_tag, version "
                    "FROM vault_data WHERE user_id = ?",
                    (owner_id,),
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read vault: {e}") from e
        return dict(row) if row else None

    def put_blob(self, owner_id: str, record: Record) -> None:
        try:
            with closing(self._connect()) as conn:
                conn.execute(
                    """INSERT INTO vault_data
                       (user_id, encrypted_data, iv, salt, auth_tag, version, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?)
                       ON CONFLICT(user_id) DO UPDATE SET
                           encrypted_data = excluded.encrypted_data,
                           iv = excluded.iv,
                           salt = excluded.salt,
                           auth_tag = excluded.auth_tag,
                           version = excluded.version,
                           updated_at = excluded.updated_at""",
                    (owner_id, record["encrypted_data"], record["iv"], record["salt"],
                     record["auth_tag"], record.get("version", 1), self._now()),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to save vault: {e}") from e

    # ── ledger ──────────────────────────────────────────────────────

    def get_chain(self, owner_id: str) -> Optional[Record]:
        try:
            with closing(self._connect()) as conn:
                row = conn.execute(
                    "SELECT difficulty, blocks FROM ledger_data WHERE user_id = ?",
                    (owner_id,),
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read ledger: {e}") from e
        if row is None:
            return None
        return {"difficulty": row["difficulty"], "blocks": json.loads(row["blocks"])}

    def put_chain(self, owner_id: str, record: Record, expected_tip: Optional[str] = None) -> None:
        try:
            with closing(self._connect()) as conn, immediate(conn):
                if expected_tip is not None:
                    row = conn.execute(
                        "SELECT tip_hash FROM ledger_data WHERE user_id = ?", (owner_id,)
                    ).fetchone()
                    current = row["tip_hash"] if row else ""
                    if current != expected_tip:
                        raise LedgerConflictError(
                            f"Ledger tip for {owner_id} moved from {expected_tip[:12]!r} to {current[:12]!r}"
                        )
                conn.execute(
                    """INSERT INTO ledger_data (user_id, difficulty, blocks, tip_hash, updated_at)
                       VALUES (?, ?, ?, ?, ?)
                       ON CONFLICT(user_id) DO UPDATE SET
                           difficulty = excluded.difficulty,
                           blocks = excluded.blocks,
                           tip_hash = excluded.tip_hash,
                           updated_at = excluded.updated_at""",
                    (owner_id, record["difficulty"], json.dumps(record["blocks"]),
                     chain_tip(record), self._now()),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to save ledger: {e}") from e

    # ── auth ────────────────────────────────────────────────────────

    def get_auth(self, owner_id: str) -> Optional[Record]:
        try:
            with closing(self._connect()) as conn:
                row = conn.execute(
                    "SELECT password_hash, salt, iterations, algorithm, ledger_data, "
                    "created_at, last_login FROM auth_data WHERE user_id = ?",
                    (owner_id,),
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read auth record: {e}") from e
        return dict(row) if row else None

    def put_auth(self, owner_id: str, record: Record) -> None:
        try:
            with closing(self._connect()) as conn:
                conn.execute(
                    """INSERT INTO auth_data
                       (user_id, password_hash, salt, iterations, algorithm,
                        ledger_data, created_at, last_login)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                       ON CONFLICT(user_id) DO UPDATE SET
                           password_hash = excluded.password_hash,
                           salt = excluded.salt,
                           iterations = excluded.iterations,
                           algorithm = excluded.algorithm,
                           ledger_data = excluded.ledger_data,
                           last_login = excluded.last_login""",
                    (owner_id, record["password_hash"], record["salt"], record["iterations"],
                     record["algorithm"], record["ledger_data"], record["created_at"],
                     record["last_login"]),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to save auth record: {e}") from e

    def delete_auth(self, owner_id: str) -> bool:
        try:
            with closing(self._connect()) as conn:
                cursor = conn.execute("DELETE FROM auth_data WHERE user_id = ?", (owner_id,))
                deleted = cursor.rowcount > 0
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to delete auth record: {e}") from e
        return deleted
