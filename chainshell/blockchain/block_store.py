"""
SQLite Block Store

Persists the local chain and mempool in a single SQLite file that is
opened once at startup. Writes go through immediately.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from pathlib import Path
from typing import List

from ..monitoring.logging_config import get_logger
from .node import Block, StoreError, Transaction

logger = get_logger("store")


_SCHEMA = """
CREATE TABLE IF NOT EXISTS blocks (
    height INTEGER PRIMARY KEY,
    hash TEXT NOT NULL UNIQUE,
    payload TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS mempool (
    txid TEXT PRIMARY KEY,
    payload TEXT NOT NULL
);
"""


class BlockStore:
    """Block and mempool persistence."""

    def __init__(self, path: Path | str):
        """
        Open (or create) the store.

        Args:
            path: SQLite file path, or ``":memory:"``

        Raises:
            StoreError: If the file cannot be opened or is not a block store
        """
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(self.path, check_same_thread=False)
            self._conn.executescript(_SCHEMA)
        except sqlite3.DatabaseError as e:
            raise StoreError(f"Cannot open block store {self.path}: {e}") from e

        logger.info(f"Opened block store: {self.path}")

    def load_blocks(self) -> List[Block]:
        """All blocks ordered by height."""
        with self._lock:
            try:
                rows = self._conn.execute(
                    "SELECT payload FROM blocks ORDER BY height"
                ).fetchall()
            except sqlite3.DatabaseError as e:
                raise StoreError(f"Cannot read blocks: {e}") from e
        return [Block.from_dict(json.loads(row[0])) for row in rows]

    def append_block(self, block: Block) -> None:
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    "INSERT INTO blocks (height, hash, payload) VALUES (?, ?, ?)",
                    (block.height, block.hash, json.dumps(block.to_dict())),
                )
        except sqlite3.DatabaseError as e:
            raise StoreError(f"Cannot append block {block.height}: {e}") from e

    def load_mempool(self) -> List[Transaction]:
        with self._lock:
            try:
                rows = self._conn.execute("SELECT payload FROM mempool ORDER BY rowid").fetchall()
            except sqlite3.DatabaseError as e:
                raise StoreError(f"Cannot read mempool: {e}") from e
        return [Transaction.from_dict(json.loads(row[0])) for row in rows]

    def replace_mempool(self, transactions: List[Transaction]) -> None:
        """Overwrite the stored mempool with ``transactions``."""
        try:
            with self._lock, self._conn:
                self._conn.execute("DELETE FROM mempool")
                self._conn.executemany(
                    "INSERT INTO mempool (txid, payload) VALUES (?, ?)",
                    [(tx.txid, json.dumps(tx.to_dict())) for tx in transactions],
                )
        except sqlite3.DatabaseError as e:
            raise StoreError(f"Cannot write mempool: {e}") from e

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        logger.info(f"Closed block store: {self.path}")
