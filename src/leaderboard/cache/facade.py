"""
Leaderboard Cache Facade.

Public entry point of the cache layer. Combines the durable store, the
validator and three in-memory accelerators into per-domain operations:

    ranked users   get_users / get_user_by_address / save_users
    allowlists     is_address_allowed / is_avatar_allowed
    wallet data    get_wallet_data / save_wallet_data

Reads go memory -> store -> miss. A miss is reported as None, never raised,
so the caller decides whether to fetch fresh data and call the matching
save operation. Saves write through the store first and update memory only
after the transaction has committed.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from ..core.constants import CACHE_TTL_MS
from ..core.logging import get_logger
from .memory import TTLCache
from .models import (
    PayloadDecodeError,
    RankedUser,
    SaveUsersResult,
    WalletRow,
    decode_wallet_payload,
    encode_wallet_payload,
)
from .store import CacheDatabase, now_ms
from .validation import dedupe_by_address, partition_ranked_users

logger = get_logger(__name__)

# LRU bound for the wallet accelerator; users are bounded by the feed size
WALLET_MEMORY_ENTRIES = 10_000


class LeaderboardCache:
    """
    Layered cache for ranked users, wallet payloads and the avatar allowlist.

    The store opens lazily on first use. ``close()`` releases it and empties
    every accelerator; the next call reopens the same location.

    Args:
        db_path: SQLite file location. Defaults to the configured cache path.
        clock: Returns the current time in epoch milliseconds.
        ttl_ms: Lifetime applied to every write.
    """

    def __init__(
        self,
        db_path: Path | str | None = None,
        clock: Callable[[], int] = now_ms,
        ttl_ms: int = CACHE_TTL_MS,
    ) -> None:
        self._db_path = db_path
        self._clock = clock
        self.ttl_ms = ttl_ms

        self._store: CacheDatabase | None = None
        # Guards store access plus the matching accelerator update as one unit
        self._lock = threading.RLock()

        self.users: TTLCache[str, RankedUser] = TTLCache("users")
        self.wallets: TTLCache[str, str] = TTLCache("wallets", max_entries=WALLET_MEMORY_ENTRIES)
        self.avatars: TTLCache[str, bool] = TTLCache("avatars")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def store(self) -> CacheDatabase:
        """The durable store, opened on first access."""
        with self._lock:
            if self._store is None:
                store = CacheDatabase(self._db_path, clock=self._clock)
                store.open()
                self._store = store
                # A fresh store lifetime starts with a sweep; nothing in memory predates it
                self._clear_memory()
            return self._store

    @property
    def db_path(self) -> Path:
        return self.store.db_path

    def close(self) -> None:
        """Release the store and drop all accelerator state. Idempotent."""
        with self._lock:
            if self._store is not None:
                self._store.close()
                self._store = None
            self._clear_memory()

    def _clear_memory(self) -> None:
        self.users.clear()
        self.wallets.clear()
        self.avatars.clear()

    def cleanup_expired(self) -> dict[str, int]:
        """
        Physically delete expired rows and reset the accelerators.

        Reads never depend on this; it only reclaims storage.

        Returns:
            Rows deleted per table
        """
        with self._lock:
            deleted = self.store.sweep(self._clock())
            self._clear_memory()
        if any(deleted.values()):
            logger.info("Swept expired cache rows", extra={"deleted": deleted})
        return deleted

    # =========================================================================
    # Ranked Users
    # =========================================================================

    def save_users(self, candidates: Iterable[Any]) -> SaveUsersResult:
        """
        Validate and persist a ranked-user snapshot.

        Invalid candidates are dropped and counted. If nothing survives
        validation the call is a no-op: the existing snapshot stays intact.
        Records repeating an address (in any letter case) collapse to the
        last one, matching what the store keeps.

        Args:
            candidates: Records from the ranking feed (mappings or RankedUser)

        Returns:
            SaveUsersResult with saved and rejected counts
        """
        candidates = list(candidates)
        valid, rejected = partition_ranked_users(candidates)

        if rejected:
            logger.warning(
                "Filtered out invalid users",
                extra={
                    "total": len(candidates),
                    "valid": len(valid),
                    "filtered": len(rejected),
                },
            )

        if not valid:
            logger.warning("No valid users to save")
            return SaveUsersResult(total=len(candidates), saved=0, rejected=rejected)

        unique = dedupe_by_address(valid)
        if len(unique) < len(valid):
            logger.warning(
                "Collapsed duplicate user addresses",
                extra={"valid": len(valid), "unique": len(unique)},
            )

        with self._lock:
            expires_at = self._clock() + self.ttl_ms
            saved = self.store.upsert_users(unique, expires_at)

            # Store committed; publish the batch to memory before releasing the lock
            self.users.set_many(((u.address.lower(), u) for u in unique), expires_at)
            # Avatar set holds only this batch's CIDs; CIDs still owned by older rows
            # are re-derived from the store on demand
            self.avatars.replace_all((u.avatar_cid, True, expires_at) for u in unique)

        logger.info("Cached users to database", extra={"count": saved})
        return SaveUsersResult(
            total=len(candidates), saved=saved, rejected=rejected, expires_at=expires_at
        )

    def get_users(self) -> list[RankedUser] | None:
        """
        Get the unexpired snapshot ordered by rank.

        Returns:
            Users, or None when no unexpired snapshot exists
        """
        with self._lock:
            rows = self.store.query_users(self._clock())
            if not rows:
                return None

            # Shared CIDs stay allowed until their last owner expires
            avatar_expiry: dict[str, int] = {}
            for user, exp in rows:
                avatar_expiry[user.avatar_cid] = max(avatar_expiry.get(user.avatar_cid, 0), exp)

            self.users.replace_all((user.address.lower(), user, exp) for user, exp in rows)
            self.avatars.replace_all((cid, True, exp) for cid, exp in avatar_expiry.items())
        return [user for user, _ in rows]

    def get_user_by_address(self, address: str) -> RankedUser | None:
        """Look up one user by address, case-insensitively."""
        key = address.lower()

        with self._lock:
            now = self._clock()
            cached = self.users.get(key, now)
            if cached is not None:
                return cached

            found = self.store.query_user_by_address(key, now)
            if found is None:
                return None

            user, expires_at = found
            self.users.set(key, user, expires_at)
        return user

    def is_address_allowed(self, address: str) -> bool:
        """True iff an unexpired ranked user has this address."""
        return self.get_user_by_address(address) is not None

    def is_avatar_allowed(self, cid: str) -> bool:
        """
        True iff an unexpired ranked user currently has this avatar CID.

        Guards the image fetcher: an expired owner revokes the CID even if
        the accelerator still holds it, because memory entries carry the
        owning row's expiry.
        """
        if not cid:
            return False

        with self._lock:
            now = self._clock()
            if self.avatars.get(cid, now):
                return True

            expires_at = self.store.query_avatar(cid, now)
            if expires_at is None:
                return False

            self.avatars.set(cid, True, expires_at)
        return True

    # =========================================================================
    # Wallet Data
    # =========================================================================

    def save_wallet_data(self, address: str, payload: Any) -> int:
        """
        Persist a wallet payload verbatim for 24 hours.

        Args:
            address: Wallet address (stored lower-cased)
            payload: JSON-serializable snapshot

        Returns:
            Expiry of the new row in epoch milliseconds

        Raises:
            ValueError: If payload is None, which would read back as a miss
        """
        if payload is None:
            raise ValueError("Wallet payload must not be None")

        key = address.lower()
        data = encode_wallet_payload(payload)

        with self._lock:
            expires_at = self._clock() + self.ttl_ms
            self.store.upsert_wallet(key, data, expires_at)
            self.wallets.set(key, data, expires_at)
        return expires_at

    def get_wallet_data(self, address: str) -> Any | None:
        """
        Get the cached wallet payload for an address.

        A payload that fails to deserialize is purged from memory and from
        the store and reported as absent.
        """
        key = address.lower()

        with self._lock:
            now = self._clock()
            entry = self.wallets.get_entry(key, now)
            if entry is not None:
                decoded = decode_wallet_payload(WalletRow(key, entry.value, entry.expires_at))
                if not isinstance(decoded, PayloadDecodeError):
                    return decoded.value
                logger.error(
                    "Failed to parse cached wallet data",
                    extra={"address": key, "error": decoded.message},
                )
                self.wallets.discard(key)

            row = self.store.query_wallet(key, now)
            if row is None:
                return None

            decoded = decode_wallet_payload(row)
            if isinstance(decoded, PayloadDecodeError):
                logger.error(
                    "Failed to parse wallet data from database",
                    extra={"address": key, "error": decoded.message},
                )
                self.store.delete_wallet(key)
                self.wallets.discard(key)
                return None

            self.wallets.set(key, row.data, row.expires_at)
        return decoded.value

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats(self) -> dict[str, Any]:
        """Store counts plus accelerator sizes and hit rates."""
        return {
            "store": self.store.get_stats(self._clock()),
            "memory": {
                "users": self.users.stats,
                "wallets": self.wallets.stats,
                "avatars": self.avatars.stats,
            },
            "ttl_ms": self.ttl_ms,
        }


# =============================================================================
# Singleton
# =============================================================================

_leaderboard_cache: LeaderboardCache | None = None
_singleton_lock = threading.Lock()


def get_leaderboard_cache() -> LeaderboardCache:
    """Get or create the process-wide cache at the configured location."""
    global _leaderboard_cache
    with _singleton_lock:
        if _leaderboard_cache is None:
            _leaderboard_cache = LeaderboardCache()
        return _leaderboard_cache


def reset_leaderboard_cache() -> None:
    """
    Reset the cache singleton.

    Closes the store, clears memory and drops the instance. Use for
    testing to ensure clean state between tests.
    """
    global _leaderboard_cache
    with _singleton_lock:
        if _leaderboard_cache is not None:
            _leaderboard_cache.close()
            _leaderboard_cache = None
