"""
Leaderboard Services.

Upstream collaborators (ranking feed, wallet feed, avatar fetcher) and the
fetch-on-miss service that ties them to the cache.
"""

from __future__ import annotations

__all__ = [
    "LeaderboardService",
    "LeaderboardResult",
    "WalletResult",
    "AvatarImage",
    "fetch_ranked_users",
    "fetch_wallet_data",
    "fetch_avatar",
    # Errors
    "UpstreamError",
    "RankingFeedError",
    "WalletFeedError",
    "AvatarFetchError",
    "AccessDeniedError",
    "AvatarNotAllowedError",
    "AddressNotAllowedError",
    "InvalidAddressError",
]


def __getattr__(name: str):
    """Lazy import services to avoid circular imports."""
    if name in ("LeaderboardService", "LeaderboardResult", "WalletResult"):
        from . import leaderboard_service

        return getattr(leaderboard_service, name)
    if name in ("AvatarImage", "fetch_avatar"):
        from . import avatar_fetcher

        return getattr(avatar_fetcher, name)
    if name == "fetch_ranked_users":
        from .ranking_feed import fetch_ranked_users

        return fetch_ranked_users
    if name == "fetch_wallet_data":
        from .wallet_feed import fetch_wallet_data

        return fetch_wallet_data
    if name in __all__:
        from . import errors

        return getattr(errors, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
