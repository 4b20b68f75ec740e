"""
Test suite for the OTP challenge store's conditional updates.
"""

from datetime import datetime, timedelta, timezone

import pytest

from taskgate.core.db.crud import OTPChallengeDB
from taskgate.core.enums import OTPStatus
from tests.conftest import create_user

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

otp_db = OTPChallengeDB()


async def make_challenge(session, user, code_hash="a" * 64, **overrides):
    data = {
        "user_id": user.id,
        "code_hash": code_hash,
        "expires_at": NOW + timedelta(minutes=5),
        "attempts": 0,
        "max_attempts": 5,
        "send_attempts": 1,
        "status": OTPStatus.PENDING,
        "created_at": NOW,
    }
    data.update(overrides)
    return await otp_db.create(session, data)


class TestConsume:
    @pytest.mark.asyncio
    async def test_consume_matching_code(self, db_session):
        user = await create_user(db_session, verified=False)
        challenge = await make_challenge(db_session, user)

        used = await otp_db.consume(db_session, challenge.id, "a" * 64, NOW)

        assert used is not None
        assert used.status == OTPStatus.USED

    @pytest.mark.asyncio
    async def test_consume_twice_only_first_wins(self, db_session):
        user = await create_user(db_session, verified=False)
        challenge = await make_challenge(db_session, user)

        first = await otp_db.consume(db_session, challenge.id, "a" * 64, NOW)
        second = await otp_db.consume(db_session, challenge.id, "a" * 64, NOW)

        assert first is not None
        assert second is None

    @pytest.mark.asyncio
    async def test_consume_rejects_wrong_hash_and_expired(self, db_session):
        user = await create_user(db_session, verified=False)
        challenge = await make_challenge(db_session, user)

        assert await otp_db.consume(db_session, challenge.id, "b" * 64, NOW) is None
        assert (
            await otp_db.consume(
                db_session, challenge.id, "a" * 64, NOW + timedelta(minutes=5)
            )
            is None
        )

    @pytest.mark.asyncio
    async def test_consume_rejects_exhausted_attempts(self, db_session):
        user = await create_user(db_session, verified=False)
        challenge = await make_challenge(db_session, user, attempts=5)

        assert await otp_db.consume(db_session, challenge.id, "a" * 64, NOW) is None


class TestRecordFailedAttempt:
    @pytest.mark.asyncio
    async def test_increments_then_blocks_at_cap(self, db_session):
        user = await create_user(db_session, verified=False)
        challenge = await make_challenge(db_session, user)

        for expected in range(1, 5):
            failed = await otp_db.record_failed_attempt(db_session, challenge.id)
            assert failed.attempts == expected
            assert failed.status == OTPStatus.PENDING

        blocked = await otp_db.record_failed_attempt(db_session, challenge.id)
        assert blocked.attempts == 5
        assert blocked.status == OTPStatus.BLOCKED

        # No longer PENDING, so nothing matches
        assert await otp_db.record_failed_attempt(db_session, challenge.id) is None

    @pytest.mark.asyncio
    async def test_used_challenge_is_untouched(self, db_session):
        user = await create_user(db_session, verified=False)
        challenge = await make_challenge(db_session, user, status=OTPStatus.USED)

        assert await otp_db.record_failed_attempt(db_session, challenge.id) is None


class TestIssuanceQueries:
    @pytest.mark.asyncio
    async def test_count_and_oldest_issued_since(self, db_session):
        user = await create_user(db_session, verified=False)
        await make_challenge(db_session, user, created_at=NOW - timedelta(hours=2))
        in_window = await make_challenge(
            db_session, user, created_at=NOW - timedelta(minutes=30)
        )
        await make_challenge(db_session, user, created_at=NOW)

        since = NOW - timedelta(hours=1)
        assert await otp_db.count_issued_since(db_session, user.id, since) == 2
        oldest = await otp_db.get_oldest_issued_since(db_session, user.id, since)
        assert oldest.id == in_window.id

    @pytest.mark.asyncio
    async def test_get_latest_pending_skips_expired(self, db_session):
        user = await create_user(db_session, verified=False)
        await make_challenge(
            db_session,
            user,
            created_at=NOW - timedelta(minutes=10),
            expires_at=NOW - timedelta(minutes=5),
        )

        assert await otp_db.get_latest_pending(db_session, user.id, NOW) is None

        live = await make_challenge(db_session, user)
        latest = await otp_db.get_latest_pending(db_session, user.id, NOW)
        assert latest.id == live.id


class TestRefreshCode:
    @pytest.mark.asyncio
    async def test_refresh_resets_attempts_and_counts_sends(self, db_session):
        user = await create_user(db_session, verified=False)
        challenge = await make_challenge(db_session, user, attempts=3)
        new_expiry = NOW + timedelta(minutes=10)

        refreshed = await otp_db.refresh_code(
            db_session, challenge.id, "c" * 64, new_expiry, NOW, max_send_attempts=2
        )

        assert refreshed.code_hash == "c" * 64
        assert refreshed.attempts == 0
        assert refreshed.send_attempts == 2

    @pytest.mark.asyncio
    async def test_refresh_refused_past_send_cap(self, db_session):
        user = await create_user(db_session, verified=False)
        challenge = await make_challenge(db_session, user, send_attempts=3)

        refreshed = await otp_db.refresh_code(
            db_session,
            challenge.id,
            "c" * 64,
            NOW + timedelta(minutes=5),
            NOW,
            max_send_attempts=2,
        )
        assert refreshed is None


class TestCleanup:
    @pytest.mark.asyncio
    async def test_expire_stale_and_purge(self, db_session):
        user = await create_user(db_session, verified=False)
        stale = await make_challenge(
            db_session,
            user,
            created_at=NOW - timedelta(hours=3),
            expires_at=NOW - timedelta(hours=2),
        )
        live = await make_challenge(db_session, user)

        assert await otp_db.expire_stale(db_session, NOW) == 1
        assert (await otp_db.get_by_id(db_session, stale.id)).status == OTPStatus.EXPIRED

        assert await otp_db.purge_expired(db_session, NOW - timedelta(hours=1)) == 1
        assert await otp_db.get_by_id(db_session, stale.id) is None
        assert await otp_db.get_by_id(db_session, live.id) is not None
