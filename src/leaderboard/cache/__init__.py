"""
Leaderboard Cache Package.

Layered cache: SQLite durable store fronted by in-memory TTL maps, serving
ranked users, wallet payloads and the avatar allowlist.

Usage:
    from leaderboard.cache import get_leaderboard_cache

    cache = get_leaderboard_cache()
    users = cache.get_users()
    if users is None:
        cache.save_users(fetched_users)

    if cache.is_avatar_allowed(cid):
        ...
"""

from __future__ import annotations

from .errors import CacheError, CacheInitializationError
from .facade import LeaderboardCache, get_leaderboard_cache, reset_leaderboard_cache
from .memory import MemoryEntry, TTLCache
from .models import (
    DecodedPayload,
    InvalidRecord,
    PayloadDecodeError,
    RankedUser,
    SaveUsersResult,
    WalletRow,
    decode_wallet_payload,
    encode_wallet_payload,
)
from .store import CacheDatabase, now_ms
from .validation import (
    dedupe_by_address,
    is_valid_ranked_user,
    partition_ranked_users,
    validate_ranked_user,
)

__all__ = [
    # Facade
    "LeaderboardCache",
    "get_leaderboard_cache",
    "reset_leaderboard_cache",
    # Store
    "CacheDatabase",
    "now_ms",
    # Accelerator
    "TTLCache",
    "MemoryEntry",
    # Models
    "RankedUser",
    "InvalidRecord",
    "SaveUsersResult",
    "WalletRow",
    "DecodedPayload",
    "PayloadDecodeError",
    "encode_wallet_payload",
    "decode_wallet_payload",
    # Validation
    "validate_ranked_user",
    "is_valid_ranked_user",
    "partition_ranked_users",
    "dedupe_by_address",
    # Errors
    "CacheError",
    "CacheInitializationError",
]
