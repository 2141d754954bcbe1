"""
Leaderboard Service.

Fetch-on-miss orchestration over the cache and the upstream collaborators:
- Leaderboard: cached snapshot, else ranking feed -> save_users
- Wallets: allowlisted addresses only, cached payload else Ankr -> save_wallet_data
- Avatars: allowlisted CIDs only, via the IPFS fetcher

The cache never fetches on its own; this layer decides when a miss becomes
an upstream call.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..cache import LeaderboardCache, RankedUser, get_leaderboard_cache
from ..core.logging import get_logger
from .avatar_fetcher import AvatarImage, fetch_avatar
from .errors import AddressNotAllowedError, InvalidAddressError
from .ranking_feed import fetch_ranked_users
from .wallet_feed import fetch_wallet_data

if TYPE_CHECKING:
    import httpx

logger = get_logger(__name__)

# EVM address: 0x followed by 40 hex digits, any case
ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_wallet_address(address: str) -> bool:
    return bool(address) and ADDRESS_PATTERN.match(address) is not None


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class LeaderboardResult:
    """Ranked users with source tracking."""

    users: list[RankedUser]
    source: str  # "cache" | "upstream"
    rejected: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"users": [u.to_dict() for u in self.users]}


@dataclass
class WalletResult:
    """Wallet payload with source tracking."""

    address: str
    data: Any
    source: str  # "cache" | "upstream"

    @property
    def cache_hit(self) -> bool:
        return self.source == "cache"


# =============================================================================
# Service
# =============================================================================


@dataclass
class LeaderboardService:
    """
    Serves the leaderboard, wallet snapshots and avatars.

    Args:
        cache: Cache facade; defaults to the process-wide instance
        client: Shared HTTP client; collaborators create their own if omitted
    """

    cache: LeaderboardCache = field(default_factory=get_leaderboard_cache)
    client: httpx.AsyncClient | None = field(default=None, repr=False)

    async def get_leaderboard(self) -> LeaderboardResult:
        """
        Get ranked users ordered by rank.

        Raises:
            RankingFeedError: If the cache is empty and the feed fails
        """
        cached = self.cache.get_users()
        if cached is not None:
            logger.debug("Serving users from cache", extra={"count": len(cached)})
            return LeaderboardResult(users=cached, source="cache")

        logger.info("Cache miss, fetching users from ranking feed")
        candidates = await fetch_ranked_users(self.client)
        result = self.cache.save_users(candidates)

        # Re-read so rows come back in rank order from the store
        users = self.cache.get_users() if result.persisted else None
        return LeaderboardResult(
            users=users or [],
            source="upstream",
            rejected=result.dropped,
        )

    async def get_user(self, address: str) -> RankedUser | None:
        """Look up a ranked user, refreshing the leaderboard on a miss."""
        user = self.cache.get_user_by_address(address)
        if user is not None:
            return user

        leaderboard = await self.get_leaderboard()
        key = address.lower()
        return next((u for u in leaderboard.users if u.address.lower() == key), None)

    async def get_wallet(self, address: str) -> WalletResult:
        """
        Get the wallet snapshot for a ranked user's address.

        Raises:
            InvalidAddressError: If the address is not 0x + 40 hex digits
            AddressNotAllowedError: If no current ranked user has the address
            WalletFeedError: If the snapshot must be fetched and no API key is set
        """
        if not is_wallet_address(address):
            raise InvalidAddressError(address)

        if not self.cache.is_address_allowed(address):
            logger.warning("Wallet lookup rejected", extra={"wallet": address})
            raise AddressNotAllowedError(address)

        cached = self.cache.get_wallet_data(address)
        if cached is not None:
            logger.debug("Serving wallet data from cache", extra={"wallet": address})
            return WalletResult(address=address, data=cached, source="cache")

        logger.info("Cache miss, fetching wallet data", extra={"wallet": address})
        wallet = await fetch_wallet_data(address, client=self.client)
        payload = wallet.to_payload()
        self.cache.save_wallet_data(address, payload)
        return WalletResult(address=address, data=payload, source="upstream")

    async def get_avatar(self, cid: str) -> AvatarImage:
        """
        Get an avatar image for an allowlisted CID.

        Raises:
            AvatarNotAllowedError: If no current ranked user owns the CID
            AvatarFetchError: If the gateway cannot serve the image
        """
        return await fetch_avatar(cid, self.cache, self.client)
