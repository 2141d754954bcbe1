"""
Cache Database.

SQLite-backed durable store for the leaderboard cache. Holds two
independently keyed, independently expiring row sets:

- users: the current ranked-user snapshot (avatar allowlist derives from it)
- wallet_data: one serialized wallet payload per lower-cased address

Every read filters on ``expires_at > now``, so an expired row is invisible
whether or not it has been swept. The sweep at open is reclamation only.
"""

from __future__ import annotations

import sqlite3
import threading
import time
from collections.abc import Callable, Sequence
from pathlib import Path

from ..core.logging import get_logger
from .errors import CacheInitializationError
from .models import RankedUser, WalletRow

logger = get_logger(__name__)

# =============================================================================
# Constants
# =============================================================================

SCHEMA_VERSION = 1

# Row sets covered by the sweep
SWEPT_TABLES = ("users", "wallet_data")


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


# =============================================================================
# Database Schema
# =============================================================================

SCHEMA_SQL = """
-- Ranked users from the leaderboard feed
CREATE TABLE IF NOT EXISTS users (
    address TEXT PRIMARY KEY,         -- Stored as given, matched case-insensitively
    rank INTEGER NOT NULL,
    username TEXT NOT NULL,
    avatar_cid TEXT NOT NULL,
    gm_streak INTEGER NOT NULL,
    xp INTEGER NOT NULL,
    level INTEGER NOT NULL,
    expires_at INTEGER NOT NULL       -- Epoch milliseconds
);

CREATE INDEX IF NOT EXISTS idx_users_expires_at ON users(expires_at);
CREATE INDEX IF NOT EXISTS idx_users_rank ON users(rank);
CREATE INDEX IF NOT EXISTS idx_users_address_lower ON users(LOWER(address));
CREATE INDEX IF NOT EXISTS idx_users_avatar_cid ON users(avatar_cid);

-- Opaque wallet payloads keyed by lower-cased address
CREATE TABLE IF NOT EXISTS wallet_data (
    address TEXT PRIMARY KEY,
    data TEXT NOT NULL,               -- JSON, never inspected by the store
    expires_at INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_wallet_expires_at ON wallet_data(expires_at);

-- Database metadata
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

_USER_COLUMNS = "address, rank, username, avatar_cid, gm_streak, xp, level, expires_at"


# =============================================================================
# Database Class
# =============================================================================


class CacheDatabase:
    """
    SQLite database for the leaderboard cache.

    The connection opens lazily on first use (or via ``open()``), creating
    the schema if needed and sweeping expired rows once. ``close()`` ends the
    lifetime; the next operation reopens and sweeps again.

    All access is serialized through one lock, so a single instance can be
    shared across threads.
    """

    def __init__(
        self,
        db_path: Path | str | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        """
        Args:
            db_path: Path to SQLite database. Defaults to the configured cache path.
            clock: Returns the current time in epoch milliseconds.
        """
        if db_path is None:
            from ..core.config import get_settings

            db_path = get_settings().cache_db_path
        self.db_path = Path(db_path)
        self._clock = clock

        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def open(self) -> CacheDatabase:
        """Open the database now instead of on first use."""
        self._get_connection()
        return self

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        with self._lock:
            if self._conn is None:
                self._conn = self._connect()
            return self._conn

    def _connect(self) -> sqlite3.Connection:
        """Create the connection, schema and initial sweep. Failures are fatal."""
        conn: sqlite3.Connection | None = None
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA busy_timeout = 5000")
            conn.executescript(SCHEMA_SQL)
            with conn:
                conn.execute(
                    "INSERT OR REPLACE INTO metadata (key, value) VALUES ('schema_version', ?)",
                    (str(SCHEMA_VERSION),),
                )
            swept = self._sweep(conn, self._clock())
        except (OSError, sqlite3.Error) as e:
            if conn is not None:
                conn.close()
            logger.error(
                "Failed to initialize database",
                extra={"db_path": str(self.db_path), "error": str(e)},
            )
            raise CacheInitializationError(self.db_path, str(e)) from e

        logger.info(
            "Cache database initialized at %s",
            self.db_path,
            extra={"swept": swept},
        )
        return conn

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> CacheDatabase:
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def get_schema_version(self) -> int:
        """Get current schema version from metadata table."""
        with self._lock:
            row = self._get_connection().execute(
                "SELECT value FROM metadata WHERE key = 'schema_version'"
            ).fetchone()
            return int(row["value"]) if row else 0

    # =========================================================================
    # Expiration Sweep
    # =========================================================================

    def sweep(self, now: int) -> dict[str, int]:
        """
        Delete rows with ``expires_at <= now`` from every row set.

        Idempotent. Returns the number of rows deleted per table.
        """
        with self._lock:
            return self._sweep(self._get_connection(), now)

    @staticmethod
    def _sweep(conn: sqlite3.Connection, now: int) -> dict[str, int]:
        deleted: dict[str, int] = {}
        with conn:
            for table in SWEPT_TABLES:
                cursor = conn.execute(f"DELETE FROM {table} WHERE expires_at <= ?", (now,))
                deleted[table] = cursor.rowcount
        return deleted

    # =========================================================================
    # Ranked User Operations
    # =========================================================================

    def upsert_users(self, users: Sequence[RankedUser], expires_at: int) -> int:
        """
        Insert or replace ranked users by address in one transaction.

        Rows whose address differs only in letter case are replaced too, so
        each address maps to at most one row. Either every row commits or
        none does.

        Returns:
            Number of rows written
        """
        if not users:
            return 0

        with self._lock:
            conn = self._get_connection()
            with conn:
                conn.executemany(
                    "DELETE FROM users WHERE LOWER(address) = ?",
                    [(u.address.lower(),) for u in users],
                )
                conn.executemany(
                    f"INSERT OR REPLACE INTO users ({_USER_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        (
                            u.address,
                            u.rank,
                            u.username,
                            u.avatar_cid,
                            u.gm_streak,
                            u.xp,
                            u.level,
                            expires_at,
                        )
                        for u in users
                    ],
                )
        return len(users)

    def query_users(self, now: int) -> list[tuple[RankedUser, int]]:
        """
        Get every unexpired ranked user, ordered by rank ascending.

        Returns:
            (user, expires_at) pairs
        """
        with self._lock:
            rows = self._get_connection().execute(
                f"SELECT {_USER_COLUMNS} FROM users WHERE expires_at > ? "
                "ORDER BY rank ASC",
                (now,),
            ).fetchall()
        return [(self._row_to_user(row), row["expires_at"]) for row in rows]

    def query_user_by_address(self, address: str, now: int) -> tuple[RankedUser, int] | None:
        """
        Find an unexpired user by address, ignoring case.

        Returns:
            (user, expires_at) or None
        """
        with self._lock:
            row = self._get_connection().execute(
                f"SELECT {_USER_COLUMNS} FROM users "
                "WHERE LOWER(address) = ? AND expires_at > ? "
                "ORDER BY rank ASC LIMIT 1",
                (address.lower(), now),
            ).fetchone()
        return (self._row_to_user(row), row["expires_at"]) if row else None

    def query_avatar(self, cid: str, now: int) -> int | None:
        """
        Check whether an unexpired user owns ``cid``.

        Returns:
            Latest expiry among the owning rows, or None
        """
        with self._lock:
            row = self._get_connection().execute(
                "SELECT MAX(expires_at) AS expires_at FROM users "
                "WHERE avatar_cid = ? AND expires_at > ?",
                (cid, now),
            ).fetchone()
        return row["expires_at"] if row is not None else None

    def _row_to_user(self, row: sqlite3.Row) -> RankedUser:
        """Convert database row to RankedUser."""
        return RankedUser(
            address=row["address"],
            rank=row["rank"],
            username=row["username"],
            avatar_cid=row["avatar_cid"],
            gm_streak=row["gm_streak"],
            xp=row["xp"],
            level=row["level"],
        )

    # =========================================================================
    # Wallet Payload Operations
    # =========================================================================

    def upsert_wallet(self, address: str, data: str, expires_at: int) -> None:
        """Insert or replace the serialized payload for an address."""
        with self._lock:
            conn = self._get_connection()
            with conn:
                conn.execute(
                    "INSERT OR REPLACE INTO wallet_data (address, data, expires_at) "
                    "VALUES (?, ?, ?)",
                    (address.lower(), data, expires_at),
                )

    def query_wallet(self, address: str, now: int) -> WalletRow | None:
        """Get the unexpired raw payload row for an address."""
        with self._lock:
            row = self._get_connection().execute(
                "SELECT address, data, expires_at FROM wallet_data "
                "WHERE address = ? AND expires_at > ?",
                (address.lower(), now),
            ).fetchone()
        if row is None:
            return None
        return WalletRow(address=row["address"], data=row["data"], expires_at=row["expires_at"])

    def delete_wallet(self, address: str) -> bool:
        """Delete the payload row for an address. Returns True if a row was removed."""
        with self._lock:
            conn = self._get_connection()
            with conn:
                cursor = conn.execute(
                    "DELETE FROM wallet_data WHERE address = ?",
                    (address.lower(),),
                )
        return cursor.rowcount > 0

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats(self, now: int) -> dict:
        """
        Get database statistics.

        Returns:
            Dict with total and unexpired row counts plus file size
        """
        stats: dict = {}
        with self._lock:
            conn = self._get_connection()
            for table in SWEPT_TABLES:
                total = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                live = conn.execute(
                    f"SELECT COUNT(*) FROM {table} WHERE expires_at > ?", (now,)
                ).fetchone()[0]
                stats[f"{table}_count"] = total
                stats[f"{table}_live"] = live

        stats["database_path"] = str(self.db_path)
        stats["database_size_kb"] = (
            round(self.db_path.stat().st_size / 1024, 1) if self.db_path.exists() else 0
        )
        return stats
