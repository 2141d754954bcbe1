"""
Leaderboard Test Suite - Shared Fixtures and Configuration

Provides an isolated cache location, a controllable clock and singleton
resets for every test.
"""

# Retry decorators are applied at import time; disable them BEFORE any
# leaderboard module is imported so HTTP failure tests do not back off.
import os

os.environ.setdefault("LEADERBOARD_NO_RETRY", "1")
os.environ.setdefault("LEADERBOARD_ENVIRONMENT", "test")

from pathlib import Path

import pytest

# =============================================================================
# Clock Fixtures
# =============================================================================

# 2025-01-01T00:00:00Z in epoch milliseconds
T0_MS = 1_735_689_600_000


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start: int = T0_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    """Clock starting at T0_MS."""
    return FakeClock()


# =============================================================================
# Cache Fixtures
# =============================================================================


@pytest.fixture
def cache_dir(tmp_path: Path, monkeypatch) -> Path:
    """Point the configured cache location at a temporary directory."""
    data_dir = tmp_path / "data"
    monkeypatch.setenv("CACHE_DB_DIR", str(data_dir))
    return data_dir


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Explicit cache database path for direct construction."""
    return tmp_path / "cache.test.db"


@pytest.fixture
def cache(db_path, clock):
    """LeaderboardCache on a temporary database with a fake clock."""
    from leaderboard.cache import LeaderboardCache

    instance = LeaderboardCache(db_path, clock=clock)
    yield instance
    instance.close()


def _make_user(n: int, **overrides) -> dict:
    record = {
        "rank": n,
        "address": f"0x{n:040x}",
        "avatarCid": f"QmAvatar{n}",
        "username": f"user{n}",
        "gmStreak": n * 2,
        "xp": 1000 - n,
        "level": 10,
    }
    record.update(overrides)
    return record


@pytest.fixture
def make_user():
    """Factory for ranked-user records as the ranking feed delivers them."""
    return _make_user


@pytest.fixture
def sample_users() -> list[dict]:
    """Three valid ranked-user records."""
    return [_make_user(1), _make_user(2), _make_user(3)]


# =============================================================================
# Singleton Reset
# =============================================================================


@pytest.fixture(autouse=True)
def reset_all_singletons(cache_dir):
    """
    Reset all module-level singletons between tests.

    Resets, in order:
    - Settings cache (MUST be first - other modules read from settings)
    - Logging state (affects propagation for caplog)
    - Cache singleton (closes the store)
    """

    def do_reset():
        from leaderboard.core.config import reset_settings
        from leaderboard.core.logging import reset_logging
        from leaderboard.cache import reset_leaderboard_cache

        reset_settings()
        reset_logging()
        reset_leaderboard_cache()

    do_reset()
    yield
    do_reset()
