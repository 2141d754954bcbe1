"""
Leaderboard Centralized Configuration

Provides validated, type-safe access to all environment variables using Pydantic Settings.

Usage:
    from leaderboard.core.config import get_settings

    settings = get_settings()
    db_path = settings.cache_db_path

Data Paths:
    The cache database lives in {instance_root}/data/ unless overridden:
    - data/cache.db: Production cache
    - data/cache.dev.db: Development cache
    - data/cache.test.db: Test cache

Environment Variables:
    LEADERBOARD_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    LEADERBOARD_DEBUG: Legacy debug flag (enables DEBUG level if set)
    LEADERBOARD_LOG_JSON: Output logs as JSON
    LEADERBOARD_ENVIRONMENT: production, development or test
    LEADERBOARD_CACHE_DB_DIR / CACHE_DB_DIR: Cache database directory override
    LEADERBOARD_CACHE_DB_NAME / CACHE_DB_NAME: Cache database file name override
    LEADERBOARD_MOCK_IPFS: Serve a placeholder avatar instead of hitting IPFS
    LEADERBOARD_IPFS_GATEWAY_URL: IPFS HTTP gateway base URL
    LEADERBOARD_FETCH_TIMEOUT_SECONDS: Timeout for upstream HTTP calls
    LEADERBOARD_NO_RETRY: Disable HTTP retry logic

External API Keys (no LEADERBOARD_ prefix):
    ANKR_API_KEY: Ankr Advanced API key for wallet lookups
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_project_root() -> Path | None:
    """Search upward from this file for the directory holding pyproject.toml."""
    current = Path(__file__).resolve().parent
    for _ in range(10):  # Limit search depth
        if (current / "pyproject.toml").exists():
            return current
        parent = current.parent
        if parent == current:
            break  # Reached filesystem root
        current = parent
    return None


def _find_project_env_file() -> Path | None:
    """Return the project .env file if one sits next to pyproject.toml."""
    root = _find_project_root()
    if root is None:
        return None
    env_file = root / ".env"
    return env_file if env_file.exists() else None


def _find_instance_root() -> Path:
    """
    Find the instance root directory.

    Resolution order:
    1. LEADERBOARD_INSTANCE_ROOT environment variable (explicit override)
    2. Project root (directory containing pyproject.toml)
    3. Current working directory (fallback)
    """
    import os

    override = os.environ.get("LEADERBOARD_INSTANCE_ROOT")
    if override:
        return Path(override)

    return _find_project_root() or Path.cwd()


# Resolve paths at module load time
_ENV_FILE = _find_project_env_file()
_INSTANCE_ROOT = _find_instance_root()

# Database file names per environment
DB_NAMES = {
    "production": "cache.db",
    "development": "cache.dev.db",
    "test": "cache.test.db",
}


class LeaderboardSettings(BaseSettings):
    """
    Leaderboard configuration settings with validation.

    Environment variables are loaded with the LEADERBOARD_ prefix. The cache
    location overrides also accept the unprefixed CACHE_DB_DIR and
    CACHE_DB_NAME names.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEADERBOARD_",
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    # =========================================================================
    # Logging Configuration
    # =========================================================================

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Log level for leaderboard components",
    )

    debug: bool = Field(
        default=False,
        description="Legacy debug flag (enables DEBUG level if set)",
    )

    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format for machine parsing",
    )

    # =========================================================================
    # Runtime Environment
    # =========================================================================

    environment: Literal["production", "development", "test"] = Field(
        default="production",
        description="Runtime environment, selects the default cache file name",
    )

    instance_root: Path = Field(
        default=_INSTANCE_ROOT,
        description="Instance root directory (project root containing pyproject.toml)",
    )

    # =========================================================================
    # Cache Store
    # =========================================================================

    cache_db_dir: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("LEADERBOARD_CACHE_DB_DIR", "CACHE_DB_DIR"),
        description="Directory holding the cache database (default: {instance_root}/data)",
    )

    cache_db_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("LEADERBOARD_CACHE_DB_NAME", "CACHE_DB_NAME"),
        description="Cache database file name (default depends on environment)",
    )

    # =========================================================================
    # Upstream Services
    # =========================================================================

    ankr_api_key: Optional[str] = Field(
        default=None,
        validation_alias="ANKR_API_KEY",
        description="Ankr Advanced API key for wallet data",
    )

    mock_ipfs: bool = Field(
        default=False,
        description="Serve a placeholder avatar instead of fetching from IPFS",
    )

    ipfs_gateway_url: str = Field(
        default="https://ipfs.io",
        description="IPFS HTTP gateway base URL",
    )

    fetch_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout applied to upstream HTTP requests",
    )

    no_retry: bool = Field(
        default=False,
        description="Disable HTTP retry logic (tenacity)",
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level", mode="before")
    @classmethod
    def uppercase_log_level(cls, v: str) -> str:
        """Normalize log level to uppercase."""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("environment", mode="before")
    @classmethod
    def lowercase_environment(cls, v: str) -> str:
        if isinstance(v, str):
            return v.lower()
        return v

    @field_validator("cache_db_name")
    @classmethod
    def reject_path_in_db_name(cls, v: Optional[str]) -> Optional[str]:
        """The file name override must not smuggle in a directory."""
        if v is not None and (not v.strip() or "/" in v or "\\" in v):
            raise ValueError("cache_db_name must be a bare file name")
        return v

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def effective_log_level(self) -> str:
        """
        Get effective log level, respecting the legacy debug flag.

        Priority:
        1. Explicit LEADERBOARD_LOG_LEVEL
        2. LEADERBOARD_DEBUG=1 -> DEBUG
        3. Default: WARNING
        """
        if self.debug and self.log_level == "WARNING":
            return "DEBUG"
        return self.log_level

    @property
    def log_level_int(self) -> int:
        """Get effective log level as logging constant."""
        return getattr(logging, self.effective_log_level)

    @property
    def data_dir(self) -> Path:
        """Directory holding the cache database."""
        if self.cache_db_dir is not None:
            return self.cache_db_dir.expanduser().resolve()
        return self.instance_root / "data"

    @property
    def db_name(self) -> str:
        """Cache database file name."""
        if self.cache_db_name:
            return self.cache_db_name
        return DB_NAMES[self.environment]

    @property
    def cache_db_path(self) -> Path:
        """Full path to the cache database."""
        return self.data_dir / self.db_name

    @property
    def should_mock_ipfs(self) -> bool:
        """IPFS is never contacted from test runs."""
        return self.mock_ipfs or self.environment == "test"


# =============================================================================
# Singleton Accessor
# =============================================================================


@lru_cache(maxsize=1)
def get_settings() -> LeaderboardSettings:
    """
    Get the singleton settings instance.

    The settings are validated at first access.
    """
    return LeaderboardSettings()


def reset_settings() -> None:
    """
    Reset the settings cache (for testing).

    After calling this, the next get_settings() call will
    reload settings from environment variables.
    """
    get_settings.cache_clear()


# =============================================================================
# Convenience Functions
# =============================================================================


def is_debug_enabled() -> bool:
    """Check if debug logging is enabled."""
    return get_settings().effective_log_level == "DEBUG"


def is_json_logging() -> bool:
    """Check if JSON logging is enabled."""
    return get_settings().log_json


def is_retry_disabled() -> bool:
    """Check if retry logic is disabled via environment."""
    return get_settings().no_retry
