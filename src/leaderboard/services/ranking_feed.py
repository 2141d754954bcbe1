"""
Ranking Feed Fetcher.

Fetches the leaderboard snapshot from the Layer3 users endpoint:
- GET /api/assignment/users -> {"users": [...]}

Records are returned as raw candidates; validation happens in the cache.
"""

from __future__ import annotations

from typing import Any

import httpx

from ..core.config import get_settings
from ..core.constants import LAYER3_USERS_URL
from ..core.logging import get_logger
from ..core.retry import http_retry
from .errors import RankingFeedError

logger = get_logger(__name__)


@http_retry()
async def _get_users_response(client: httpx.AsyncClient, url: str) -> httpx.Response:
    response = await client.get(url, headers={"Accept": "application/json"})
    response.raise_for_status()
    return response


async def fetch_ranked_users(
    client: httpx.AsyncClient | None = None,
    url: str = LAYER3_USERS_URL,
) -> list[dict[str, Any]]:
    """
    Fetch the current ranked-user list.

    Args:
        client: Shared client; a short-lived one is created if omitted
        url: Feed endpoint

    Returns:
        Raw user records from the feed

    Raises:
        RankingFeedError: On network failure, HTTP error or malformed envelope
    """
    if client is None:
        timeout = get_settings().fetch_timeout_seconds
        async with httpx.AsyncClient(timeout=timeout) as owned:
            return await fetch_ranked_users(owned, url)

    logger.info("Fetching users from ranking feed")
    try:
        response = await _get_users_response(client, url)
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        logger.error(
            "Ranking feed error",
            extra={"status": status, "body": e.response.text[:200]},
        )
        raise RankingFeedError(
            f"Ranking feed returned {status} {e.response.reason_phrase}", status_code=status
        ) from e
    except httpx.TransportError as e:
        logger.error("Ranking feed unreachable", extra={"error": str(e)})
        raise RankingFeedError(f"Ranking feed unreachable: {e}") from e

    try:
        data = response.json()
    except ValueError as e:
        raise RankingFeedError("Ranking feed returned invalid JSON", status_code=502) from e

    if not isinstance(data, dict) or not isinstance(data.get("users"), list):
        logger.error("Invalid response structure from ranking feed")
        raise RankingFeedError("Invalid response format from ranking feed", status_code=502)

    users = data["users"]
    logger.info("Fetched %d users", len(users))
    return users
