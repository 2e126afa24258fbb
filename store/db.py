# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Database - Bounded SQLite connection pool, schema migrations and lock retry
"""
import logging
import queue
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple, TypeVar

import config
from utils.timezone import to_db_timestamp, utc_now

logger = logging.getLogger(__name__)

T = TypeVar('T')

_LOCK_ERROR_MARKERS = ("locked", "busy")

# (version, statements); append only
_MIGRATIONS: List[Tuple[int, List[str]]] = [
    (1, [
        """
        CREATE TABLE IF NOT EXISTS accounts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            provider TEXT NOT NULL CHECK (provider IN ('google', 'proton')),
            account_name TEXT NOT NULL,
            auth_data TEXT NOT NULL,
            last_synced_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            external_id TEXT NOT NULL,
            account_id INTEGER NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            start_time TEXT NOT NULL,
            end_time TEXT NOT NULL,
            video_link TEXT,
            video_platform TEXT,
            snooze_count INTEGER NOT NULL DEFAULT 0,
            has_alerted INTEGER NOT NULL DEFAULT 0,
            last_alert_threshold INTEGER,
            is_dismissed INTEGER NOT NULL DEFAULT 0,
            last_snoozed_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE (external_id, account_id),
            FOREIGN KEY (account_id) REFERENCES accounts(id) ON DELETE CASCADE
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_events_start_time ON events(start_time)",
        "CREATE INDEX IF NOT EXISTS idx_events_account_id ON events(account_id)",
        "CREATE INDEX IF NOT EXISTS idx_accounts_provider ON accounts(provider)",
    ]),
    (2, [
        """
        INSERT OR IGNORE INTO settings (key, value) VALUES
        ('sound', 'bells'),
        ('volume', '0.7'),
        ('video_alert_offset', '3'),
        ('regular_alert_offset', '1'),
        ('snooze_interval', '2'),
        ('max_snoozes', '3'),
        ('sync_interval', '300'),
        ('auto_join_enabled', 'false'),
        ('theme', 'dark'),
        ('alert_30m', 'false'),
        ('alert_10m', 'false'),
        ('alert_5m', 'true'),
        ('alert_1m', 'true'),
        ('alert_default', 'true')
        """,
    ]),
]


class StoragePoolTimeoutError(Exception):
    """No pooled connection became free within the acquire timeout"""
    pass


def _is_lock_or_busy_error(error: sqlite3.OperationalError) -> bool:
    message = str(error).strip().lower()
    return any(marker in message for marker in _LOCK_ERROR_MARKERS)


def with_db_retry(
    fn: Callable[[], T],
    retries: int = config.DB_LOCK_RETRIES,
    base_sleep_ms: int = config.DB_LOCK_BASE_SLEEP_MS
) -> T:
    """Retry an operation that failed because the database was locked or busy"""
    attempts = max(0, int(retries))
    sleep_ms = max(0, int(base_sleep_ms))

    for attempt in range(attempts + 1):
        try:
            return fn()
        except sqlite3.OperationalError as error:
            if attempt >= attempts or not _is_lock_or_busy_error(error):
                raise
            delay_seconds = (sleep_ms * (attempt + 1)) / 1000.0
            logger.warning(f"Database busy ({error}), retrying in {delay_seconds:.2f}s")
            time.sleep(delay_seconds)

    raise RuntimeError("unreachable")


class ConnectionPool:
    """
    Fixed-maximum pool of SQLite connections

    Connections are created lazily up to max_size. Once all are in use,
    acquire() blocks for up to acquire_timeout seconds.
    """

    def __init__(self, path: str, max_size: int, busy_timeout_ms: int, acquire_timeout: float):
        self.path = path
        self.max_size = max(1, int(max_size))
        self.busy_timeout_ms = busy_timeout_ms
        self.acquire_timeout = acquire_timeout

        self._idle: "queue.LifoQueue[sqlite3.Connection]" = queue.LifoQueue()
        self._all: List[sqlite3.Connection] = []
        self._lock = threading.Lock()

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._all)

    def _connect(self) -> sqlite3.Connection:
        # isolation_level=None: transactions are opened explicitly
        conn = sqlite3.connect(
            self.path,
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,
            check_same_thread=False
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        conn.execute(f"PRAGMA busy_timeout = {max(0, int(self.busy_timeout_ms))}")
        return conn

    def acquire(self) -> sqlite3.Connection:
        try:
            return self._idle.get_nowait()
        except queue.Empty:
            pass

        with self._lock:
            if len(self._all) < self.max_size:
                conn = self._connect()
                self._all.append(conn)
                logger.debug(f"Opened pooled connection {len(self._all)}/{self.max_size}")
                return conn

        try:
            return self._idle.get(timeout=self.acquire_timeout)
        except queue.Empty:
            raise StoragePoolTimeoutError(
                f"No database connection available after {self.acquire_timeout}s "
                f"(pool size {self.max_size})"
            )

    def release(self, conn: sqlite3.Connection):
        self._idle.put(conn)

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self.acquire()
        try:
            yield conn
        finally:
            self.release(conn)

    def close_all(self):
        with self._lock:
            connections, self._all = self._all, []
        for conn in connections:
            conn.close()
        # Drain so closed connections are never handed out again
        while True:
            try:
                self._idle.get_nowait()
            except queue.Empty:
                break


class Database:
    """Storage handle shared by the event, account and settings stores"""

    def __init__(
        self,
        path: Optional[str] = None,
        pool_size: Optional[int] = None,
        busy_timeout_ms: Optional[int] = None,
        pool_timeout: Optional[float] = None
    ):
        self.path = str(path or config.DATABASE_PATH)
        # Each pooled connection would open its own private in-memory database
        if self.path == ':memory:' or self.path.startswith('file::memory:'):
            raise ValueError("Database requires a file path; in-memory sqlite cannot be shared across the pool")
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self.pool = ConnectionPool(
            self.path,
            max_size=pool_size or config.DB_POOL_SIZE,
            busy_timeout_ms=busy_timeout_ms if busy_timeout_ms is not None else config.DB_BUSY_TIMEOUT_MS,
            acquire_timeout=pool_timeout if pool_timeout is not None else config.DB_POOL_TIMEOUT
        )
        self.migrate()

    def migrate(self) -> int:
        """Apply pending migrations; returns the resulting schema version"""
        def _apply(conn: sqlite3.Connection) -> int:
            conn.execute(
                "CREATE TABLE IF NOT EXISTS schema_migrations ("
                "version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)"
            )
            applied = {row[0] for row in conn.execute("SELECT version FROM schema_migrations")}

            version = max(applied) if applied else 0
            for migration_version, statements in _MIGRATIONS:
                if migration_version in applied:
                    continue
                for statement in statements:
                    conn.execute(statement)
                conn.execute(
                    "INSERT INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (migration_version, to_db_timestamp(utc_now()))
                )
                logger.info(f"Applied database migration {migration_version}")
                version = migration_version
            return version

        return self.transaction(_apply)

    def _run_transaction(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        with self.pool.connection() as conn:
            # IMMEDIATE takes the write lock up front instead of upgrading mid-transaction
            conn.execute("BEGIN IMMEDIATE")
            try:
                result = fn(conn)
                conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            return result

    def transaction(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        """Run fn(conn) in a write transaction, retrying if the database is locked"""
        return with_db_retry(lambda: self._run_transaction(fn))

    def read(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        """Run fn(conn) outside an explicit transaction"""
        def _run() -> T:
            with self.pool.connection() as conn:
                return fn(conn)
        return with_db_retry(_run)

    def close(self):
        self.pool.close_all()
