"""
Cache Errors.

Only initialization failures escape the cache layer. Steady-state misses and
corrupt rows degrade to "absent" instead of raising.
"""

from __future__ import annotations

from pathlib import Path


class CacheError(Exception):
    """Base exception for cache operations."""

    pass


class CacheInitializationError(CacheError):
    """Raised when the cache database cannot be created or opened."""

    def __init__(self, db_path: Path | str, reason: str):
        self.db_path = Path(db_path)
        self.reason = reason
        super().__init__(f"Failed to initialize cache database at {db_path}: {reason}")
