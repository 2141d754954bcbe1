"""
Ranked User Validation.

Gatekeeps writes into the ranked-user row set. Candidates arrive as loosely
shaped JSON objects from the ranking feed; each one either becomes a typed
RankedUser or an InvalidRecord describing why it was rejected.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import asdict
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..core.constants import (
    MAX_ADDRESS_LENGTH,
    MAX_AVATAR_CID_LENGTH,
    MAX_STORED_INTEGER,
    MAX_USERNAME_LENGTH,
)
from .models import InvalidRecord, RankedUser


class RankedUserCandidate(BaseModel):
    """
    Strict schema for a ranked-user record.

    Accepts the feed's camelCase keys as well as snake_case field names.
    Strict mode keeps booleans and numeric strings out of integer fields;
    integers are capped at what a SQLite INTEGER column can hold.
    """

    model_config = ConfigDict(strict=True, populate_by_name=True, extra="ignore", frozen=True)

    address: str = Field(min_length=1, max_length=MAX_ADDRESS_LENGTH)
    rank: int = Field(ge=0, le=MAX_STORED_INTEGER)
    username: str = Field(min_length=1, max_length=MAX_USERNAME_LENGTH)
    avatar_cid: str = Field(alias="avatarCid", min_length=1, max_length=MAX_AVATAR_CID_LENGTH)
    gm_streak: int = Field(alias="gmStreak", ge=0, le=MAX_STORED_INTEGER)
    xp: int = Field(ge=0, le=MAX_STORED_INTEGER)
    level: int = Field(ge=0, le=MAX_STORED_INTEGER)

    def to_record(self) -> RankedUser:
        return RankedUser(
            address=self.address,
            rank=self.rank,
            username=self.username,
            avatar_cid=self.avatar_cid,
            gm_streak=self.gm_streak,
            xp=self.xp,
            level=self.level,
        )


def _describe(error: ValidationError) -> str:
    """Compact one-line summary of a pydantic validation error."""
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item.get("loc", ())) or "record"
        parts.append(f"{loc}: {item.get('msg', 'invalid')}")
    return "; ".join(parts)


def validate_ranked_user(candidate: Any) -> RankedUser | InvalidRecord:
    """
    Validate a single ranked-user candidate.

    Pure function: no logging, no side effects.

    Args:
        candidate: Mapping from the feed, or an existing RankedUser

    Returns:
        RankedUser when every bound holds, InvalidRecord otherwise
    """
    if isinstance(candidate, RankedUser):
        data: Mapping[str, Any] = asdict(candidate)
    elif isinstance(candidate, Mapping):
        data = candidate
    else:
        return InvalidRecord(
            reason=f"expected an object, got {type(candidate).__name__}",
            candidate=candidate,
        )

    try:
        return RankedUserCandidate.model_validate(dict(data)).to_record()
    except ValidationError as e:
        return InvalidRecord(reason=_describe(e), candidate=candidate)


def is_valid_ranked_user(candidate: Any) -> bool:
    """Boolean form of validate_ranked_user."""
    return isinstance(validate_ranked_user(candidate), RankedUser)


def partition_ranked_users(
    candidates: Iterable[Any],
) -> tuple[list[RankedUser], list[InvalidRecord]]:
    """
    Split a batch into valid records and rejections, preserving feed order.

    Returns:
        (valid, rejected)
    """
    valid: list[RankedUser] = []
    rejected: list[InvalidRecord] = []
    for candidate in candidates:
        result = validate_ranked_user(candidate)
        if isinstance(result, RankedUser):
            valid.append(result)
        else:
            rejected.append(result)
    return valid, rejected


def dedupe_by_address(users: Iterable[RankedUser]) -> list[RankedUser]:
    """
    Keep one record per address, compared case-insensitively.

    The last occurrence wins, as it would with insert-or-replace; output
    order follows each address's first appearance.
    """
    by_address: dict[str, RankedUser] = {}
    for user in users:
        by_address[user.address.lower()] = user
    return list(by_address.values())
