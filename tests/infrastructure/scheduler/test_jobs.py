"""
Test suite for scheduled jobs.

Run tests:
    pytest tests/infrastructure/scheduler/test_jobs.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest

from taskgate.core.db.crud import OTPChallengeDB
from taskgate.core.enums import OTPStatus
from taskgate.infrastructure.scheduler.jobs import cleanup_otp_challenges
from tests.conftest import create_user

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

otp_db = OTPChallengeDB()


async def make_challenge(session, user, expires_at, status=OTPStatus.PENDING):
    return await otp_db.create(
        session,
        {
            "user_id": user.id,
            "code_hash": "a" * 64,
            "expires_at": expires_at,
            "attempts": 0,
            "max_attempts": 5,
            "send_attempts": 1,
            "status": status,
            "created_at": expires_at - timedelta(minutes=5),
        },
    )


class TestCleanupOtpChallenges:
    @pytest.mark.asyncio
    async def test_expires_and_purges(self, database, db_session):
        user = await create_user(db_session, verified=False)
        live = await make_challenge(db_session, user, NOW + timedelta(minutes=5))
        recent = await make_challenge(db_session, user, NOW - timedelta(minutes=1))
        await make_challenge(db_session, user, NOW - timedelta(hours=2))
        await make_challenge(
            db_session, user, NOW - timedelta(hours=3), status=OTPStatus.USED
        )

        expired, purged = await cleanup_otp_challenges(
            database, retention_seconds=3600, now=NOW
        )

        assert (expired, purged) == (2, 2)
        async with database.session() as session:
            remaining = {
                c.id: c.status
                for c in await otp_db.get_all(
                    session, filters=[otp_db.model.user_id == user.id]
                )
            }
        assert remaining == {
            live.id: OTPStatus.PENDING,
            recent.id: OTPStatus.EXPIRED,
        }

    @pytest.mark.asyncio
    async def test_nothing_to_do(self, database):
        assert await cleanup_otp_challenges(database, now=NOW) == (0, 0)
