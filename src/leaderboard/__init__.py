"""
Leaderboard - Cached Web3 Leaderboard Backend

Serves a ranked-user leaderboard, per-wallet snapshots and avatar images
from a layered cache (SQLite store fronted by in-memory TTL maps) that
refetches from upstream on a miss.

Usage as library:
    from leaderboard import LeaderboardService

    service = LeaderboardService()
    leaderboard = await service.get_leaderboard()
    wallet = await service.get_wallet(leaderboard.users[0].address)

Package structure:
    leaderboard/
    ├── core/           # Config, logging, constants, retry
    ├── cache/          # Store, validator, accelerator, facade
    ├── models/         # Wallet payload models
    └── services/       # Upstream fetchers and orchestration
"""

__version__ = "1.0.0"

# Re-export commonly used classes for convenience
from .cache import LeaderboardCache, RankedUser, get_leaderboard_cache, reset_leaderboard_cache
from .core import get_settings
from .services.leaderboard_service import LeaderboardService

__all__ = [
    "__version__",
    "LeaderboardCache",
    "LeaderboardService",
    "RankedUser",
    "get_leaderboard_cache",
    "get_settings",
    "reset_leaderboard_cache",
]
