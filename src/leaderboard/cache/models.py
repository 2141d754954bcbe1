"""
Cache Data Classes.

Records stored in and returned by the cache layer.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class RankedUser:
    """One leaderboard row, keyed by wallet address."""

    address: str
    rank: int
    username: str
    avatar_cid: str
    gm_streak: int
    xp: int
    level: int

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the upstream feed's camelCase field names."""
        return {
            "address": self.address,
            "rank": self.rank,
            "username": self.username,
            "avatarCid": self.avatar_cid,
            "gmStreak": self.gm_streak,
            "xp": self.xp,
            "level": self.level,
        }


@dataclass(frozen=True)
class InvalidRecord:
    """A candidate rejected by the validator."""

    reason: str
    candidate: Any = None

    def __bool__(self) -> bool:
        return False


@dataclass(frozen=True)
class SaveUsersResult:
    """Outcome of a ranked-user batch save."""

    total: int
    saved: int
    rejected: list[InvalidRecord]
    expires_at: int | None = None

    @property
    def dropped(self) -> int:
        return len(self.rejected)

    @property
    def persisted(self) -> bool:
        """True when at least one row reached the store."""
        return self.saved > 0


@dataclass(frozen=True)
class WalletRow:
    """Raw wallet payload row as read from the store."""

    address: str
    data: str
    expires_at: int


@dataclass(frozen=True)
class PayloadDecodeError:
    """A stored wallet payload that failed to deserialize."""

    address: str
    message: str

    def __bool__(self) -> bool:
        return False


@dataclass(frozen=True)
class DecodedPayload:
    """A stored wallet payload that deserialized cleanly."""

    address: str
    value: Any


def encode_wallet_payload(payload: Any) -> str:
    """Serialize a wallet payload for storage."""
    return json.dumps(payload, separators=(",", ":"))


def decode_wallet_payload(row: WalletRow) -> DecodedPayload | PayloadDecodeError:
    """
    Deserialize a stored wallet payload.

    Corruption is returned as a value rather than raised, so the caller can
    apply its purge policy without intercepting exceptions.
    """
    try:
        return DecodedPayload(address=row.address, value=json.loads(row.data))
    except (json.JSONDecodeError, TypeError) as e:
        return PayloadDecodeError(address=row.address, message=str(e))
