"""
Tests for the LeaderboardCache facade.

Covers the layered read path, 24-hour expiry, the allowlists derived from
the ranked-user snapshot, batch validation and corrupt payload handling.
"""

from __future__ import annotations

import logging
import threading

import pytest

from leaderboard.cache import (
    CacheInitializationError,
    LeaderboardCache,
    RankedUser,
    get_leaderboard_cache,
    reset_leaderboard_cache,
)
from leaderboard.core.constants import CACHE_TTL_MS

HOUR_MS = 60 * 60 * 1000
MINUTE_MS = 60 * 1000
SECOND_MS = 1000

WALLET = "0xAbC0000000000000000000000000000000000001"


# =============================================================================
# Ranked Users
# =============================================================================


class TestUsers:
    """Test ranked-user snapshot operations."""

    def test_round_trip_ordered_by_rank(self, cache, make_user):
        cache.save_users([make_user(3), make_user(1), make_user(2)])

        users = cache.get_users()

        assert [u.rank for u in users] == [1, 2, 3]
        assert users[0] == RankedUser(
            address=make_user(1)["address"],
            rank=1,
            username="user1",
            avatar_cid="QmAvatar1",
            gm_streak=2,
            xp=999,
            level=10,
        )

    def test_empty_cache_returns_none(self, cache):
        """A miss is None, never an empty list."""
        assert cache.get_users() is None

    def test_lookup_is_case_insensitive(self, cache, make_user):
        cache.save_users([make_user(1, address=WALLET)])

        assert cache.get_user_by_address(WALLET.lower()).rank == 1
        assert cache.get_user_by_address(WALLET.upper().replace("0X", "0x")).rank == 1
        assert cache.get_user_by_address("0xunknown") is None

    def test_save_result_counts(self, cache, sample_users, clock):
        result = cache.save_users(sample_users)

        assert result.total == 3
        assert result.saved == 3
        assert result.dropped == 0
        assert result.expires_at == clock.now + CACHE_TTL_MS

    def test_partial_batch_saves_valid_rows(self, cache, make_user, caplog):
        """Invalid candidates are dropped and the rest are saved."""
        batch = [make_user(1), make_user(2, username=""), make_user(3, xp=-1)]

        with caplog.at_level(logging.WARNING):
            result = cache.save_users(batch)

        assert result.saved == 1
        assert result.dropped == 2
        assert [u.rank for u in cache.get_users()] == [1]
        assert "Filtered out invalid users" in caplog.text

    def test_all_invalid_batch_is_noop(self, cache, sample_users, make_user, caplog):
        """A batch with nothing valid leaves the prior snapshot intact."""
        cache.save_users(sample_users)

        with caplog.at_level(logging.WARNING):
            result = cache.save_users([make_user(9, rank=-1), None])

        assert result.persisted is False
        assert result.expires_at is None
        assert len(cache.get_users()) == 3
        assert "No valid users to save" in caplog.text

    def test_empty_batch_is_noop(self, cache, sample_users):
        cache.save_users(sample_users)

        result = cache.save_users([])

        assert result.saved == 0
        assert len(cache.get_users()) == 3

    def test_resave_replaces_by_address(self, cache, make_user):
        cache.save_users([make_user(1)])
        cache.save_users([make_user(7, address=make_user(1)["address"])])

        users = cache.get_users()

        assert len(users) == 1
        assert users[0].rank == 7

    def test_duplicate_addresses_in_batch_collapse(self, cache, make_user, caplog):
        """Repeated addresses keep the last record, matching the store."""
        batch = [make_user(1), make_user(2), make_user(5, address=make_user(1)["address"])]

        with caplog.at_level(logging.WARNING):
            result = cache.save_users(batch)

        assert result.saved == 2
        assert [u.rank for u in cache.get_users()] == [2, 5]
        assert "Collapsed duplicate user addresses" in caplog.text

    def test_case_variant_addresses_are_one_user(self, cache, make_user):
        cache.save_users([make_user(1, address=WALLET), make_user(2, address=WALLET.lower())])

        users = cache.get_users()

        assert len(users) == 1
        assert users[0].rank == 2
        assert cache.get_user_by_address(WALLET) == users[0]

    def test_case_variant_resave_replaces_row(self, cache, make_user):
        """A later batch spelling the address differently replaces the old row."""
        cache.save_users([make_user(1, address=WALLET)])
        cache.save_users([make_user(4, address=WALLET.lower())])

        users = cache.get_users()

        assert [u.rank for u in users] == [4]
        assert users[0].address == WALLET.lower()

    def test_oversized_integer_dropped_not_raised(self, cache, make_user):
        """Values beyond the INTEGER column range are rejected before the store."""
        result = cache.save_users([make_user(1), make_user(2, xp=2**63)])

        assert result.saved == 1
        assert result.dropped == 1
        assert [u.rank for u in cache.get_users()] == [1]

    def test_memory_serves_repeat_lookups(self, cache, sample_users):
        cache.save_users(sample_users)
        address = sample_users[0]["address"]

        cache.get_user_by_address(address)
        cache.get_user_by_address(address)

        assert cache.users.stats["hits"] == 2


# =============================================================================
# Expiry
# =============================================================================


class TestExpiry:
    """Test the 24-hour lifetime of every domain."""

    def test_users_expire_after_24_hours(self, cache, sample_users, clock):
        cache.save_users(sample_users)
        address = sample_users[0]["address"]

        clock.advance(23 * HOUR_MS + 59 * MINUTE_MS)
        assert len(cache.get_users()) == 3
        assert cache.get_user_by_address(address) is not None

        clock.advance(MINUTE_MS + SECOND_MS)
        assert cache.get_users() is None
        assert cache.get_user_by_address(address) is None

    def test_expiry_boundary_is_exclusive(self, cache, sample_users, clock):
        """A row is gone at exactly its expiry instant."""
        cache.save_users(sample_users)

        clock.advance(CACHE_TTL_MS - 1)
        assert cache.get_users() is not None

        clock.advance(1)
        assert cache.get_users() is None

    def test_wallet_expires_after_24_hours(self, cache, clock):
        cache.save_wallet_data(WALLET, {"balances": []})

        clock.advance(23 * HOUR_MS + 59 * MINUTE_MS)
        assert cache.get_wallet_data(WALLET) == {"balances": []}

        clock.advance(MINUTE_MS + SECOND_MS)
        assert cache.get_wallet_data(WALLET) is None

    def test_avatar_allowlist_expires_with_owner(self, cache, sample_users, clock):
        cache.save_users(sample_users)
        assert cache.is_avatar_allowed("QmAvatar1") is True

        clock.advance(CACHE_TTL_MS + SECOND_MS)

        assert cache.is_avatar_allowed("QmAvatar1") is False

    def test_resave_extends_lifetime(self, cache, sample_users, clock):
        cache.save_users(sample_users)
        clock.advance(20 * HOUR_MS)
        cache.save_users(sample_users)

        clock.advance(20 * HOUR_MS)

        assert cache.get_users() is not None

    def test_cleanup_expired_reclaims_rows(self, cache, sample_users, clock):
        cache.save_users(sample_users)
        cache.save_wallet_data(WALLET, {})
        clock.advance(CACHE_TTL_MS)

        deleted = cache.cleanup_expired()

        assert deleted == {"users": 3, "wallet_data": 1}
        assert len(cache.users) == 0


# =============================================================================
# Allowlists
# =============================================================================


class TestAllowlists:
    """Test address and avatar allowlists derived from the snapshot."""

    def test_address_allowed_only_for_ranked_users(self, cache, make_user):
        cache.save_users([make_user(1, address=WALLET)])

        assert cache.is_address_allowed(WALLET) is True
        assert cache.is_address_allowed(WALLET.lower()) is True
        assert cache.is_address_allowed("0x" + "f" * 40) is False

    def test_avatar_allowed_only_for_current_cids(self, cache, sample_users):
        cache.save_users(sample_users)

        assert cache.is_avatar_allowed("QmAvatar2") is True
        assert cache.is_avatar_allowed("QmSomethingElse") is False

    def test_empty_cid_never_allowed(self, cache, make_user):
        cache.save_users([make_user(1)])
        assert cache.is_avatar_allowed("") is False

    def test_nothing_allowed_on_empty_cache(self, cache):
        assert cache.is_address_allowed(WALLET) is False
        assert cache.is_avatar_allowed("QmAvatar1") is False

    def test_replaced_avatar_is_revoked(self, cache, make_user):
        """A user's previous CID stops being served once the row changes."""
        cache.save_users([make_user(1, avatarCid="QmOld")])
        assert cache.is_avatar_allowed("QmOld") is True

        cache.save_users([make_user(1, avatarCid="QmNew")])

        assert cache.is_avatar_allowed("QmOld") is False
        assert cache.is_avatar_allowed("QmNew") is True

    def test_duplicate_address_in_batch_allows_only_kept_cid(self, cache, make_user):
        """Only the CID of the record that was stored becomes allowed."""
        result = cache.save_users([make_user(1, avatarCid="QmA"), make_user(1, avatarCid="QmB")])

        assert result.saved == 1
        assert cache.is_avatar_allowed("QmA") is False
        assert cache.is_avatar_allowed("QmB") is True

    def test_case_variant_resave_revokes_old_cid(self, cache, make_user):
        cache.save_users([make_user(1, address=WALLET, avatarCid="QmA")])
        cache.save_users([make_user(1, address=WALLET.lower(), avatarCid="QmB")])

        assert cache.is_avatar_allowed("QmA") is False
        assert cache.is_avatar_allowed("QmB") is True

    def test_older_rows_still_authorize_their_cids(self, cache, make_user):
        """CIDs of users absent from the latest batch stay allowed until expiry."""
        cache.save_users([make_user(1)])
        cache.save_users([make_user(2)])

        assert cache.is_avatar_allowed("QmAvatar1") is True

    def test_allowlist_reflects_store_after_reopen(self, cache, sample_users):
        cache.save_users(sample_users)
        cache.close()

        assert cache.is_avatar_allowed("QmAvatar3") is True
        assert cache.is_address_allowed(sample_users[2]["address"]) is True


# =============================================================================
# Wallet Data
# =============================================================================


class TestWalletData:
    """Test wallet payload caching."""

    def test_payload_round_trips_verbatim(self, cache):
        payload = {
            "balances": [{"blockchain": "eth", "balance": "1.5", "balanceUsd": None}],
            "nfts": [],
            "poaps": [{"name": "ETHDenver ✨"}],
            "lastTransaction": {"hash": "0x1", "timestamp": 1700000000},
        }

        cache.save_wallet_data(WALLET, payload)

        assert cache.get_wallet_data(WALLET) == payload

    def test_address_is_case_insensitive(self, cache):
        cache.save_wallet_data(WALLET.upper().replace("0X", "0x"), {"a": 1})

        assert cache.get_wallet_data(WALLET.lower()) == {"a": 1}

    def test_missing_wallet(self, cache):
        assert cache.get_wallet_data(WALLET) is None

    def test_overwrite_replaces_payload(self, cache):
        cache.save_wallet_data(WALLET, {"v": 1})
        cache.save_wallet_data(WALLET, {"v": 2})

        assert cache.get_wallet_data(WALLET) == {"v": 2}

    def test_served_from_store_after_reopen(self, cache):
        cache.save_wallet_data(WALLET, {"v": 1})
        cache.close()

        assert cache.get_wallet_data(WALLET) == {"v": 1}

    def test_none_payload_rejected(self, cache, clock):
        """A None payload is refused instead of being stored as null."""
        with pytest.raises(ValueError, match="must not be None"):
            cache.save_wallet_data(WALLET, None)

        assert cache.store.query_wallet(WALLET.lower(), clock.now) is None

    @pytest.mark.parametrize("payload", [{}, [], 0, False, ""])
    def test_falsy_payloads_round_trip(self, cache, payload):
        cache.save_wallet_data(WALLET, payload)

        assert cache.get_wallet_data(WALLET) == payload

        cache.close()
        assert cache.get_wallet_data(WALLET) == payload


class TestCorruptPayload:
    """Test isolation of payloads that fail to deserialize."""

    def test_corrupt_row_reported_absent_and_purged(self, cache, clock, caplog):
        cache.store.upsert_wallet(WALLET, "{not json", clock.now + CACHE_TTL_MS)

        with caplog.at_level(logging.ERROR):
            assert cache.get_wallet_data(WALLET) is None

        assert cache.store.query_wallet(WALLET, clock.now) is None
        assert "Failed to parse wallet data from database" in caplog.text

    def test_corruption_does_not_affect_other_wallets(self, cache, clock):
        other = "0x" + "b" * 40
        cache.save_wallet_data(other, {"ok": True})
        cache.store.upsert_wallet(WALLET, "", clock.now + CACHE_TTL_MS)

        assert cache.get_wallet_data(WALLET) is None
        assert cache.get_wallet_data(other) == {"ok": True}

    def test_corrupt_memory_copy_falls_back_to_store(self, cache, clock):
        cache.save_wallet_data(WALLET, {"v": 1})
        cache.wallets.set(WALLET.lower(), "garbage", clock.now + CACHE_TTL_MS)

        assert cache.get_wallet_data(WALLET) == {"v": 1}

    def test_resave_after_corruption(self, cache, clock):
        cache.store.upsert_wallet(WALLET, "{", clock.now + CACHE_TTL_MS)
        cache.get_wallet_data(WALLET)

        cache.save_wallet_data(WALLET, {"v": 2})

        assert cache.get_wallet_data(WALLET) == {"v": 2}


# =============================================================================
# Concurrency
# =============================================================================


class TestConcurrentAccess:
    """Test that a read cannot republish a snapshot a concurrent save replaced."""

    def test_save_during_read_keeps_new_avatar(self, cache, make_user, monkeypatch):
        cache.save_users([make_user(1, avatarCid="QmOld")])
        store = cache.store
        original_query = store.query_users
        writers: list[threading.Thread] = []

        def query_then_race(now):
            rows = original_query(now)
            if not writers:
                writer = threading.Thread(
                    target=cache.save_users, args=([make_user(1, avatarCid="QmNew")],)
                )
                writers.append(writer)
                writer.start()
                # Give the writer every chance to finish before the read publishes
                writer.join(timeout=0.2)
            return rows

        monkeypatch.setattr(store, "query_users", query_then_race)

        stale = cache.get_users()
        writers[0].join(timeout=5)

        assert not writers[0].is_alive()
        assert stale[0].avatar_cid == "QmOld"
        assert cache.is_avatar_allowed("QmOld") is False
        assert cache.is_avatar_allowed("QmNew") is True
        assert cache.get_user_by_address(make_user(1)["address"]).avatar_cid == "QmNew"

    def test_parallel_saves_leave_consistent_allowlist(self, cache, make_user, clock):
        """Whichever batch lands last owns both the row and the allowlist."""
        batches = [[make_user(1, avatarCid=f"QmCid{i}")] for i in range(8)]
        threads = [threading.Thread(target=cache.save_users, args=(b,)) for b in batches]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        stored = cache.store.query_users(clock.now)
        winner = stored[0][0].avatar_cid
        allowed = [f"QmCid{i}" for i in range(8) if cache.is_avatar_allowed(f"QmCid{i}")]

        assert allowed == [winner]


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:
    """Test opening, closing and failure."""

    def test_data_survives_close_and_reopen(self, db_path, clock, sample_users):
        first = LeaderboardCache(db_path, clock=clock)
        first.save_users(sample_users)
        first.save_wallet_data(WALLET, {"v": 1})
        first.close()

        second = LeaderboardCache(db_path, clock=clock)
        try:
            assert len(second.get_users()) == 3
            assert second.get_wallet_data(WALLET) == {"v": 1}
        finally:
            second.close()

    def test_close_is_idempotent(self, cache):
        cache.close()
        cache.close()

    def test_close_clears_memory(self, cache, sample_users):
        cache.save_users(sample_users)

        cache.close()

        assert len(cache.users) == 0
        assert len(cache.avatars) == 0

    def test_initialization_failure_propagates(self, tmp_path, clock):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        broken = LeaderboardCache(blocker / "cache.db", clock=clock)

        with pytest.raises(CacheInitializationError):
            broken.get_users()

    def test_get_stats(self, cache, sample_users):
        cache.save_users(sample_users)

        stats = cache.get_stats()

        assert stats["store"]["users_live"] == 3
        assert stats["memory"]["avatars"]["size"] == 3
        assert stats["ttl_ms"] == CACHE_TTL_MS


class TestSingleton:
    """Test the process-wide cache accessor."""

    def test_singleton_uses_configured_path(self, cache_dir):
        cache = get_leaderboard_cache()

        assert cache is get_leaderboard_cache()
        assert cache.db_path == cache_dir.resolve() / "cache.test.db"

    def test_reset_closes_and_replaces(self):
        first = get_leaderboard_cache()
        first.get_users()

        reset_leaderboard_cache()

        assert first.store is not None  # reopens on demand
        assert get_leaderboard_cache() is not first
        first.close()
