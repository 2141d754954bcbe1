"""
Service Errors.

Domain-specific exceptions raised by the upstream collaborators and the
leaderboard service. Transport layers translate them into responses.
"""

from __future__ import annotations


class UpstreamError(Exception):
    """Base exception for upstream fetch failures."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class RankingFeedError(UpstreamError):
    """Raised when the ranking feed is unreachable or returns garbage."""

    pass


class WalletFeedError(UpstreamError):
    """Raised when wallet data cannot be fetched at all."""

    pass


class AvatarFetchError(UpstreamError):
    """Raised when an allowed avatar cannot be retrieved from IPFS."""

    pass


class AccessDeniedError(Exception):
    """Base exception for allowlist refusals."""

    pass


class AvatarNotAllowedError(AccessDeniedError):
    """Raised when a CID does not belong to a current ranked user."""

    def __init__(self, cid: str):
        self.cid = cid
        super().__init__(f"Avatar retrieval not allowed for CID: {cid}")


class AddressNotAllowedError(AccessDeniedError):
    """Raised when an address is not in the current leaderboard."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Address not found in top users list: {address}")


class InvalidAddressError(ValueError):
    """Raised when a wallet address is malformed."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Invalid wallet address: {address!r}")
