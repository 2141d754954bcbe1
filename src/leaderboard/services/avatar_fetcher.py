"""
Avatar Fetcher.

Serves avatar images by content identifier from an IPFS HTTP gateway.
Only CIDs held by a current ranked user may be fetched, which keeps the
endpoint from becoming an open IPFS proxy.

When IPFS is mocked (LEADERBOARD_MOCK_IPFS or the test environment) a
1x1 transparent PNG is returned instead.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from ..core.config import get_settings
from ..core.constants import MOCK_AVATAR_PNG_B64
from ..core.logging import get_logger
from ..core.retry import http_retry
from .errors import AvatarFetchError, AvatarNotAllowedError

if TYPE_CHECKING:
    from ..cache import LeaderboardCache

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "image/png"


@dataclass(frozen=True)
class AvatarImage:
    """Fetched avatar bytes with source tracking."""

    cid: str
    content: bytes
    content_type: str
    source: str  # "ipfs" | "mock"


def avatar_url(cid: str, gateway_url: str | None = None) -> str:
    """Gateway URL for a CID."""
    gateway = (gateway_url or get_settings().ipfs_gateway_url).rstrip("/")
    return f"{gateway}/ipfs/{cid}"


def mock_avatar(cid: str) -> AvatarImage:
    return AvatarImage(
        cid=cid,
        content=base64.b64decode(MOCK_AVATAR_PNG_B64),
        content_type=DEFAULT_CONTENT_TYPE,
        source="mock",
    )


@http_retry()
async def _get_avatar_response(client: httpx.AsyncClient, url: str) -> httpx.Response:
    response = await client.get(url, follow_redirects=True)
    response.raise_for_status()
    return response


async def fetch_avatar(
    cid: str,
    cache: LeaderboardCache,
    client: httpx.AsyncClient | None = None,
) -> AvatarImage:
    """
    Fetch an avatar image after checking the allowlist.

    Args:
        cid: IPFS content identifier
        cache: Cache consulted for the avatar allowlist
        client: Shared client; a short-lived one is created if omitted

    Returns:
        AvatarImage with bytes and content type

    Raises:
        AvatarNotAllowedError: If no current ranked user owns the CID
        AvatarFetchError: If the gateway cannot serve the image
    """
    if not cache.is_avatar_allowed(cid):
        logger.warning("Avatar request rejected", extra={"cid": cid})
        raise AvatarNotAllowedError(cid)

    settings = get_settings()
    if settings.should_mock_ipfs:
        return mock_avatar(cid)

    if client is None:
        async with httpx.AsyncClient(timeout=settings.fetch_timeout_seconds) as owned:
            return await _fetch_from_gateway(owned, cid, settings.ipfs_gateway_url)
    return await _fetch_from_gateway(client, cid, settings.ipfs_gateway_url)


async def _fetch_from_gateway(
    client: httpx.AsyncClient, cid: str, gateway_url: str
) -> AvatarImage:
    url = avatar_url(cid, gateway_url)
    try:
        response = await _get_avatar_response(client, url)
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        logger.error("IPFS gateway error", extra={"cid": cid, "status": status})
        raise AvatarFetchError(f"IPFS fetch failed: {status}", status_code=status) from e
    except httpx.TransportError as e:
        logger.error("IPFS gateway unreachable", extra={"cid": cid, "error": str(e)})
        raise AvatarFetchError(f"IPFS fetch failed: {e}") from e

    content_type = response.headers.get("content-type") or DEFAULT_CONTENT_TYPE
    return AvatarImage(
        cid=cid,
        content=response.content,
        content_type=content_type,
        source="ipfs",
    )
