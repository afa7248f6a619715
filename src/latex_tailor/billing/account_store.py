"""SQLite-backed account store: credit balances and base LaTeX documents."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".latex-tailor" / "accounts.db"


class AccountStore(Protocol):
    """What the pipeline needs from the external account record."""

    def get_balance(self, account_id: str) -> int | None: ...

    def debit(self, account_id: str, debit_key: str) -> int: ...

    def get_base_document(self, account_id: str) -> str | None: ...


class SQLiteAccountStore:
    """SQLite store for account balances with WAL mode and idempotent debits.

    A debit is recorded under a caller-supplied ``debit_key``; repeating a
    debit with the same key leaves the balance untouched. Balances never go
    below zero.
    """

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS accounts (
                    account_id TEXT PRIMARY KEY,
                    balance INTEGER NOT NULL DEFAULT 0 CHECK (balance >= 0),
                    base_document TEXT
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS debits (
                    debit_key TEXT PRIMARY KEY,
                    account_id TEXT NOT NULL,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
            """)

    def get_balance(self, account_id: str) -> int | None:
        """Current balance, or None if the account does not exist."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT balance FROM accounts WHERE account_id = ?", (account_id,)
            ).fetchone()
        return None if row is None else row[0]

    def debit(self, account_id: str, debit_key: str) -> int:
        """Atomically decrement the balance by one, floored at zero.

        Returns the balance after the debit. Raises KeyError for an unknown
        account.
        """
        with self._connect() as conn:
            row = conn.execute(
                "SELECT balance FROM accounts WHERE account_id = ?", (account_id,)
            ).fetchone()
            if row is None:
                raise KeyError(f"Unknown account: {account_id}")
            cursor = conn.execute(
                "INSERT OR IGNORE INTO debits (debit_key, account_id) VALUES (?, ?)",
                (debit_key, account_id),
            )
            if cursor.rowcount == 0:
                logger.info("Debit %s already applied; balance unchanged", debit_key)
                return conn.execute(
                    "SELECT balance FROM accounts WHERE account_id = ?", (account_id,)
                ).fetchone()[0]
            conn.execute(
                "UPDATE accounts SET balance = MAX(balance - 1, 0) WHERE account_id = ?",
                (account_id,),
            )
            balance = conn.execute(
                "SELECT balance FROM accounts WHERE account_id = ?", (account_id,)
            ).fetchone()[0]
        logger.info("Debited account %s (balance now %d)", account_id, balance)
        return balance

    def credit(self, account_id: str, amount: int) -> int:
        """Add credits, creating the account if needed. Returns the new balance."""
        if amount <= 0:
            raise ValueError("amount must be positive")
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO accounts (account_id, balance) VALUES (?, ?)
                   ON CONFLICT(account_id) DO UPDATE SET balance = balance + excluded.balance""",
                (account_id, amount),
            )
            balance = conn.execute(
                "SELECT balance FROM accounts WHERE account_id = ?", (account_id,)
            ).fetchone()[0]
        logger.info("Credited %d to account %s (balance now %d)", amount, account_id, balance)
        return balance

    def get_base_document(self, account_id: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT base_document FROM accounts WHERE account_id = ?", (account_id,)
            ).fetchone()
        if row is None or not (row[0] or "").strip():
            return None
        return row[0]

    def set_base_document(self, account_id: str, latex: str) -> None:
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO accounts (account_id, base_document) VALUES (?, ?)
                   ON CONFLICT(account_id) DO UPDATE SET base_document = excluded.base_document""",
                (account_id, latex),
            )
