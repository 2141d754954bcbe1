"""
Leaderboard Core Module

Shared infrastructure: configuration, logging, constants and retry logic.
"""

from .config import LeaderboardSettings, get_settings, reset_settings
from .constants import CACHE_TTL_MS
from .logging import get_logger

__all__ = [
    "CACHE_TTL_MS",
    "LeaderboardSettings",
    "get_logger",
    "get_settings",
    "reset_settings",
]
