from datetime import datetime
from uuid import UUID

from sqlalchemy import case, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.core.db.crud.base import BaseDB
from taskgate.core.db.models import OTPChallenge, User
from taskgate.core.enums import OTPStatus
from taskgate.core.exceptions.types import DatabaseException


class OTPChallengeDB(BaseDB[OTPChallenge]):
    def __init__(self):
        super().__init__(OTPChallenge)

    async def lock_user(self, session: AsyncSession, user_id: UUID) -> None:
        """
        Hold the owning user's row lock until the transaction ends.

        Issuance takes this lock before counting the budget, so concurrent
        issues for one user run one after the other and each sees the
        challenges committed before it. The write changes nothing; it exists
        to take the row lock on PostgreSQL and the write lock on SQLite.
        """
        try:
            await session.execute(
                update(User)
                .where(User.id == user_id)
                .values(updated_at=User.updated_at)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error locking User with ID {user_id}: {str(e)}"
            ) from e

    async def count_issued_since(
        self, session: AsyncSession, user_id: UUID, since: datetime
    ) -> int:
        return await self.count_by_conditions(
            session,
            [OTPChallenge.user_id == user_id, OTPChallenge.created_at >= since],
        )

    async def get_oldest_issued_since(
        self, session: AsyncSession, user_id: UUID, since: datetime
    ) -> OTPChallenge | None:
        challenges = await self.get_all(
            session,
            filters=[OTPChallenge.user_id == user_id, OTPChallenge.created_at >= since],
            order_by=[OTPChallenge.created_at.asc()],
            limit=1,
        )
        return challenges[0] if challenges else None

    async def get_latest_pending(
        self, session: AsyncSession, user_id: UUID, now: datetime
    ) -> OTPChallenge | None:
        """Most recently created PENDING challenge whose code has not expired."""
        challenges = await self.get_all(
            session,
            filters=[
                OTPChallenge.user_id == user_id,
                OTPChallenge.status == OTPStatus.PENDING,
                OTPChallenge.expires_at > now,
            ],
            order_by=[OTPChallenge.created_at.desc()],
            limit=1,
        )
        return challenges[0] if challenges else None

    async def expire_pending_for_user(
        self, session: AsyncSession, user_id: UUID, commit_self: bool = True
    ) -> int:
        """Retire every PENDING challenge of a user before a new one is issued."""
        return await self.update_by_conditions(
            session,
            [
                OTPChallenge.user_id == user_id,
                OTPChallenge.status == OTPStatus.PENDING,
            ],
            {"status": OTPStatus.EXPIRED},
            commit_self=commit_self,
        )

    async def consume(
        self,
        session: AsyncSession,
        challenge_id: UUID,
        code_hash: str,
        now: datetime,
        commit_self: bool = True,
    ) -> OTPChallenge | None:
        """
        Flip a challenge to USED if, and only if, it is still redeemable.

        Matching on id, hash, status, expiry and the attempt cap happens in the
        same UPDATE that writes USED, so two concurrent calls cannot both win.

        Returns:
            The USED challenge, or None when no record matched.
        """
        return await self.conditional_update(
            session,
            [
                OTPChallenge.id == challenge_id,
                OTPChallenge.code_hash == code_hash,
                OTPChallenge.status == OTPStatus.PENDING,
                OTPChallenge.expires_at > now,
                OTPChallenge.attempts < OTPChallenge.max_attempts,
            ],
            {"status": OTPStatus.USED},
            commit_self=commit_self,
        )

    async def record_failed_attempt(
        self, session: AsyncSession, challenge_id: UUID, commit_self: bool = True
    ) -> OTPChallenge | None:
        """
        Increment the failed-attempt counter of a PENDING challenge.

        The challenge is moved to BLOCKED in the same statement once the
        counter reaches its cap. USED challenges are left untouched.
        """
        return await self.conditional_update(
            session,
            [
                OTPChallenge.id == challenge_id,
                OTPChallenge.status == OTPStatus.PENDING,
            ],
            {
                "attempts": OTPChallenge.attempts + 1,
                "status": case(
                    (
                        OTPChallenge.attempts + 1 >= OTPChallenge.max_attempts,
                        OTPStatus.BLOCKED.value,
                    ),
                    else_=OTPChallenge.status,
                ),
            },
            commit_self=commit_self,
        )

    async def refresh_code(
        self,
        session: AsyncSession,
        challenge_id: UUID,
        code_hash: str,
        expires_at: datetime,
        now: datetime,
        max_send_attempts: int,
        commit_self: bool = True,
    ) -> OTPChallenge | None:
        """
        Rewrite the code of a live challenge for a resend.

        Only applies while the challenge is PENDING, unexpired and has not
        exceeded ``max_send_attempts``. Resets the failed-attempt counter.
        """
        return await self.conditional_update(
            session,
            [
                OTPChallenge.id == challenge_id,
                OTPChallenge.status == OTPStatus.PENDING,
                OTPChallenge.expires_at > now,
                OTPChallenge.send_attempts <= max_send_attempts,
            ],
            {
                "code_hash": code_hash,
                "expires_at": expires_at,
                "attempts": 0,
                "send_attempts": OTPChallenge.send_attempts + 1,
                "updated_at": now,
            },
            commit_self=commit_self,
        )

    async def expire_stale(
        self, session: AsyncSession, now: datetime, commit_self: bool = True
    ) -> int:
        return await self.update_by_conditions(
            session,
            [
                OTPChallenge.status == OTPStatus.PENDING,
                OTPChallenge.expires_at <= now,
            ],
            {"status": OTPStatus.EXPIRED},
            commit_self=commit_self,
        )

    async def purge_expired(
        self, session: AsyncSession, before: datetime, commit_self: bool = True
    ) -> int:
        """Delete challenges whose code expired before ``before``."""
        return await self.delete_by_conditions(
            session, [OTPChallenge.expires_at < before], commit_self=commit_self
        )
