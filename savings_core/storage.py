"""
Account Storage Module

Provides the account store interface and two implementations: in-memory
(testing) and SQLite (persistence). The SQLite store treats the transaction
log as the source of truth, rebuilds accounts by replaying it, and guards
writes with an optimistic version check. All monetary values are stored as
Decimal strings.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Union
from decimal import Decimal, InvalidOperation
from pathlib import Path
from contextlib import contextmanager
import logging
import sqlite3
import threading

from .accounts import SavingsAccount
from .errors import (
    ConcurrencyConflictError, CorruptTransactionLogError, StorageError,
    StorageInitializationError
)
from .transactions import Transaction, format_timestamp, parse_timestamp


logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS savings_accounts (
    id TEXT PRIMARY KEY,
    balance TEXT NOT NULL,
    interest_rate TEXT NOT NULL,
    created_at TEXT NOT NULL,
    version INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS account_transactions (
    id TEXT PRIMARY KEY,
    account_id TEXT NOT NULL REFERENCES savings_accounts(id),
    type INTEGER NOT NULL CHECK (type IN (0, 1, 2)),
    amount TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    idempotency_key TEXT
);

CREATE INDEX IF NOT EXISTS idx_account_transactions_account_id
    ON account_transactions(account_id, timestamp);

CREATE UNIQUE INDEX IF NOT EXISTS idx_account_transactions_idempotency_key
    ON account_transactions(account_id, idempotency_key)
    WHERE idempotency_key IS NOT NULL;
"""

JOURNAL_MODES = {"DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF"}


class AccountStore(ABC):
    """Abstract interface for savings account stores"""

    @abstractmethod
    def exists(self, account_id: str) -> bool:
        """Check if an account exists"""
        pass

    @abstractmethod
    def get(self, account_id: str) -> Optional[SavingsAccount]:
        """Load an account, or None if it does not exist"""
        pass

    @abstractmethod
    def save(self, account: SavingsAccount) -> SavingsAccount:
        """Persist an account and return it"""
        pass

    def close(self) -> None:
        """Release storage resources (default no-op)"""
        pass

    def __enter__(self) -> 'AccountStore':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class InMemoryAccountStore(AccountStore):
    """
    In-memory account store for testing.

    Holds the aggregate objects themselves. Saves are last-writer-wins with
    no version check, so concurrent writers can silently lose updates. Use
    SQLiteAccountStore where that matters.
    """

    def __init__(self):
        self._accounts: Dict[str, SavingsAccount] = {}
        self._lock = threading.RLock()

    def exists(self, account_id: str) -> bool:
        with self._lock:
            return account_id in self._accounts

    def get(self, account_id: str) -> Optional[SavingsAccount]:
        with self._lock:
            return self._accounts.get(account_id)

    def save(self, account: SavingsAccount) -> SavingsAccount:
        with self._lock:
            self._accounts[account.account_id] = account
            account.mark_persisted()
            return account

    def count(self) -> int:
        """Number of stored accounts"""
        with self._lock:
            return len(self._accounts)


class SQLiteAccountStore(AccountStore):
    """
    SQLite account store with replay-based loading and optimistic concurrency.

    Accounts are rebuilt from their transaction log on every load; the
    balance and version columns of savings_accounts are a cache that is
    overwritten on each save. A save only touches the database when the
    account has transactions that are not yet persisted, and then only if
    the stored version still equals the version the account was loaded at.
    """

    def __init__(
        self,
        db_path: Union[str, Path] = ":memory:",
        timeout: float = 5.0,
        journal_mode: str = "WAL"
    ):
        self.db_path = str(db_path)
        self._lock = threading.RLock()
        self._connection: Optional[sqlite3.Connection] = None

        journal_mode = journal_mode.upper()
        if journal_mode not in JOURNAL_MODES:
            raise StorageInitializationError(self.db_path, f"Unknown journal mode '{journal_mode}'")

        try:
            # Autocommit mode; transactions are opened explicitly in _atomic
            connection = sqlite3.connect(
                self.db_path, timeout=timeout, check_same_thread=False, isolation_level=None
            )
        except sqlite3.Error as e:
            raise StorageInitializationError(self.db_path, str(e)) from e

        try:
            connection.row_factory = sqlite3.Row
            connection.execute("PRAGMA foreign_keys = ON")
            if self.db_path != ":memory:":
                connection.execute(f"PRAGMA journal_mode = {journal_mode}")
                connection.execute("PRAGMA synchronous = NORMAL")
            connection.executescript(SCHEMA)
        except sqlite3.Error as e:
            connection.close()
            raise StorageInitializationError(self.db_path, f"schema setup failed: {e}") from e

        self._connection = connection
        logger.info("Opened SQLite account store at %s", self.db_path)

    def _require_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise StorageError(f"SQLite account store {self.db_path} is closed")
        return self._connection

    @contextmanager
    def _atomic(self, immediate: bool = False):
        """
        Run a block inside one database transaction.

        immediate=True takes the write lock up front so the reads that
        decide a save cannot go stale before its writes.
        """
        connection = self._require_connection()
        connection.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
        try:
            yield connection
            connection.execute("COMMIT")
        except Exception:
            connection.execute("ROLLBACK")
            raise

    def exists(self, account_id: str) -> bool:
        with self._lock:
            connection = self._require_connection()
            try:
                row = connection.execute(
                    "SELECT 1 FROM savings_accounts WHERE id = ? LIMIT 1", (account_id,)
                ).fetchone()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to check account {account_id}: {e}", account_id) from e
            return row is not None

    def get(self, account_id: str) -> Optional[SavingsAccount]:
        with self._lock:
            try:
                with self._atomic() as connection:
                    account_row = connection.execute("""
                        SELECT id, balance, interest_rate, created_at, version
                        FROM savings_accounts WHERE id = ?
                    """, (account_id,)).fetchone()
                    if account_row is None:
                        return None

                    transaction_rows = connection.execute("""
                        SELECT id, account_id, type, amount, timestamp, idempotency_key
                        FROM account_transactions
                        WHERE account_id = ?
                        ORDER BY timestamp, rowid
                    """, (account_id,)).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to load account {account_id}: {e}", account_id) from e

        try:
            history = [Transaction.from_dict(dict(row)) for row in transaction_rows]
            account = SavingsAccount.rehydrate(
                account_row["id"],
                Decimal(account_row["interest_rate"]),
                parse_timestamp(account_row["created_at"]),
                history
            )
        except (ValueError, InvalidOperation) as e:
            raise CorruptTransactionLogError(
                f"Stored data for account {account_id} is invalid: {e}", account_id
            ) from e

        cached_balance = account_row["balance"]
        cached_version = account_row["version"]
        if str(account.balance) != cached_balance or account.version != cached_version:
            logger.warning(
                "Cached state of account %s (balance %s, version %s) disagrees with its "
                "transaction log (balance %s, version %s)",
                account_id, cached_balance, cached_version, account.balance, account.version
            )

        # The version check on save compares against the stored column
        account.mark_persisted(cached_version)
        logger.debug(
            "Rebuilt account %s from %d transactions at version %d",
            account_id, len(history), account.version
        )
        return account

    def save(self, account: SavingsAccount) -> SavingsAccount:
        account_id = account.account_id
        expected_version = account.persisted_version

        with self._lock:
            try:
                with self._atomic(immediate=True) as connection:
                    account_row = connection.execute(
                        "SELECT version FROM savings_accounts WHERE id = ?", (account_id,)
                    ).fetchone()
                    account_existed = account_row is not None

                    if not account_existed:
                        connection.execute("""
                            INSERT INTO savings_accounts (id, balance, interest_rate, created_at, version)
                            VALUES (?, ?, ?, ?, ?)
                        """, (
                            account_id,
                            str(account.balance),
                            str(account.interest_rate.value),
                            format_timestamp(account.created_at),
                            account.version
                        ))
                    elif expected_version is None:
                        raise ConcurrencyConflictError(
                            account_id,
                            reason=f"Account {account_id} was created by another process"
                        )

                    persisted_ids = {
                        row["id"] for row in connection.execute(
                            "SELECT id FROM account_transactions WHERE account_id = ?", (account_id,)
                        )
                    }
                    new_transactions = [
                        t for t in account.transactions if t.id not in persisted_ids
                    ]

                    if not new_transactions:
                        logger.debug("No new transactions for account %s, nothing to save", account_id)
                    elif account_existed:
                        cursor = connection.execute("""
                            UPDATE savings_accounts
                            SET balance = ?, interest_rate = ?, version = ?
                            WHERE id = ? AND version = ?
                        """, (
                            str(account.balance),
                            str(account.interest_rate.value),
                            account.version,
                            account_id,
                            expected_version
                        ))
                        if cursor.rowcount == 0:
                            raise ConcurrencyConflictError(account_id, expected_version)

                    for transaction in new_transactions:
                        row = transaction.to_dict()
                        connection.execute("""
                            INSERT INTO account_transactions
                                (id, account_id, type, amount, timestamp, idempotency_key)
                            VALUES (?, ?, ?, ?, ?, ?)
                        """, (
                            row["id"], row["account_id"], row["type"],
                            row["amount"], row["timestamp"], row["idempotency_key"]
                        ))
            except ConcurrencyConflictError as e:
                logger.warning("Concurrency conflict saving account %s: %s", account_id, e)
                raise
            except sqlite3.IntegrityError as e:
                logger.warning("Integrity conflict saving account %s: %s", account_id, e)
                raise ConcurrencyConflictError(
                    account_id, expected_version,
                    reason=f"Account {account_id} conflicts with concurrently saved data: {e}"
                ) from e
            except sqlite3.Error as e:
                raise StorageError(f"Failed to save account {account_id}: {e}", account_id) from e

            account.mark_persisted()

        logger.debug(
            "Saved account %s at version %d (%d new transactions)",
            account_id, account.version, len(new_transactions)
        )
        return account

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None


def create_account_store(config=None) -> AccountStore:
    """
    Build the account store named by config.database_url.

    Supported URLs: 'memory://' for the in-memory store, 'sqlite:///<path>'
    (or 'sqlite:///:memory:') for SQLite.
    """
    if config is None:
        from .config import get_config
        config = get_config()

    url = config.database_url
    if url == "memory://":
        return InMemoryAccountStore()
    if url.startswith("sqlite:///"):
        path = url[len("sqlite:///"):] or ":memory:"
        return SQLiteAccountStore(
            path,
            timeout=config.sqlite_timeout_seconds,
            journal_mode=config.sqlite_journal_mode
        )
    raise StorageInitializationError(url, "Unsupported database URL scheme")
