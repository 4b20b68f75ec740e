"""
OTP challenge engine.

Issues, resends and verifies one-time passcodes tied to a user. Every piece
of state lives in the ``otp_challenges`` table; the service itself only holds
its collaborators and configuration.

Rules enforced here:
    - At most ``rate_limit_count`` challenges per user in a rolling
      ``rate_limit_window_seconds`` window (checked before a code is generated).
    - A resend rewrites the code on the live challenge and is refused once the
      challenge's ``send_attempts`` exceeds ``max_send_attempts``.
    - Verification is one conditional UPDATE; a miss increments the failed
      attempt counter and always yields the same InvalidOrExpiredCode error.

Example usage:
    service = OtpChallengeService(
        otp_store=OTPChallengeDB(),
        email_sender=sender,
        hmac_secret=settings.OTP_HMAC_SECRET,
    )
    issued = await service.issue(session, user)
    user_id = await service.verify(session, issued.challenge_id, "123456")
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import math
from typing import Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.core.config import Settings, otp_logger
from taskgate.core.db.crud import OTPChallengeDB
from taskgate.core.db.models import OTPChallenge, User
from taskgate.core.enums import OTPStatus
from taskgate.core.exceptions.types import (
    DeliveryError,
    InvalidOrExpiredCode,
    RateLimited,
)
from taskgate.core.services.email import EmailSender
from taskgate.core.utils import (
    as_utc,
    generate_otp_code,
    hmac_hash_otp,
    utc_now,
)


@dataclass(frozen=True)
class IssuedChallenge:
    challenge_id: UUID
    expires_at: datetime


class OtpChallengeService:
    def __init__(
        self,
        otp_store: OTPChallengeDB,
        email_sender: EmailSender,
        hmac_secret: str,
        code_length: int = 6,
        expiry_minutes: int = 5,
        max_attempts: int = 5,
        max_send_attempts: int = 2,
        rate_limit_count: int = 3,
        rate_limit_window_seconds: int = 3600,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.otp_store = otp_store
        self.email_sender = email_sender
        self.hmac_secret = hmac_secret
        self.code_length = code_length
        self.expiry = timedelta(minutes=expiry_minutes)
        self.max_attempts = max_attempts
        self.max_send_attempts = max_send_attempts
        self.rate_limit_count = rate_limit_count
        self.rate_limit_window = timedelta(seconds=rate_limit_window_seconds)
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        otp_store: OTPChallengeDB,
        email_sender: EmailSender,
        clock: Callable[[], datetime] = utc_now,
    ) -> "OtpChallengeService":
        return cls(
            otp_store=otp_store,
            email_sender=email_sender,
            hmac_secret=settings.OTP_HMAC_SECRET,
            code_length=settings.OTP_LENGTH,
            expiry_minutes=settings.OTP_EXPIRY_MINUTES,
            max_attempts=settings.OTP_MAX_ATTEMPTS,
            max_send_attempts=settings.OTP_MAX_SEND_ATTEMPTS,
            rate_limit_count=settings.OTP_RATE_LIMIT_COUNT,
            rate_limit_window_seconds=settings.OTP_RATE_LIMIT_WINDOW_SECONDS,
            clock=clock,
        )

    # ========================================================================
    # Rate limiting
    # ========================================================================

    async def check_issue_budget(self, session: AsyncSession, user_id: UUID) -> None:
        """
        Fail with RateLimited if the user already has ``rate_limit_count``
        challenges created inside the rolling window.

        ``retry_after`` is the time until the oldest challenge in the window
        falls out of it.
        """
        now = self.clock()
        since = now - self.rate_limit_window
        issued = await self.otp_store.count_issued_since(session, user_id, since)
        if issued < self.rate_limit_count:
            return

        oldest = await self.otp_store.get_oldest_issued_since(session, user_id, since)
        retry_after = int(self.rate_limit_window.total_seconds())
        if oldest is not None:
            reopens_at = as_utc(oldest.created_at) + self.rate_limit_window  # type: ignore[operator]
            retry_after = max(1, math.ceil((reopens_at - now).total_seconds()))

        otp_logger.warning(
            f"OTP issuance limit reached for user {user_id}: {issued} in window, retry after {retry_after}s"
        )
        raise RateLimited(
            "Too many OTP requests. Try again later.", retry_after=retry_after
        )

    # ========================================================================
    # Issue / resend
    # ========================================================================

    async def issue(self, session: AsyncSession, user: User) -> IssuedChallenge:
        """
        Create a fresh PENDING challenge and email its code.

        Any earlier PENDING challenge of the user is retired first, so only
        the new one can be redeemed. The user's row stays locked from the
        budget check until the new challenge is committed.

        Raises:
            RateLimited: If the hourly issuance budget is spent.
            DeliveryError: If the email could not be sent; the new challenge
                is marked EXPIRED before raising.
        """
        await self.otp_store.lock_user(session, user.id)
        await self.check_issue_budget(session, user.id)

        code = generate_otp_code(self.code_length)
        now = self.clock()
        expires_at = now + self.expiry

        await self.otp_store.expire_pending_for_user(session, user.id, commit_self=False)
        challenge = await self.otp_store.create(
            session,
            {
                "user_id": user.id,
                "code_hash": hmac_hash_otp(code, self.hmac_secret),
                "expires_at": expires_at,
                "attempts": 0,
                "max_attempts": self.max_attempts,
                "send_attempts": 1,
                "status": OTPStatus.PENDING,
                "created_at": now,
                "updated_at": now,
            },
        )
        otp_logger.info(
            f"Issued OTP challenge {challenge.id} for user {user.id}"
        )

        await self._dispatch(session, challenge, user.email, code)
        return IssuedChallenge(challenge_id=challenge.id, expires_at=expires_at)

    async def resend(self, session: AsyncSession, user: User) -> IssuedChallenge:
        """
        Re-send a code for the user's live challenge, or issue a new one.

        With no PENDING unexpired challenge this behaves like :meth:`issue`.
        Otherwise the same record gets a new code and expiry, its failed
        attempt counter is reset and ``send_attempts`` incremented.

        Raises:
            RateLimited: If the live challenge was already sent more than
                ``max_send_attempts`` times (or the issuance budget is spent
                when falling back to :meth:`issue`).
            DeliveryError: If the email could not be sent.
        """
        now = self.clock()
        live = await self.otp_store.get_latest_pending(session, user.id, now)
        if live is None:
            return await self.issue(session, user)

        if live.send_attempts > self.max_send_attempts:
            raise self._resend_limited(live, now)

        code = generate_otp_code(self.code_length)
        expires_at = now + self.expiry
        refreshed = await self.otp_store.refresh_code(
            session,
            live.id,
            code_hash=hmac_hash_otp(code, self.hmac_secret),
            expires_at=expires_at,
            now=now,
            max_send_attempts=self.max_send_attempts,
        )

        if refreshed is None:
            # Lost a race: the challenge expired, was used, or another resend
            # spent the last send attempt between the read and the update.
            current = await self.otp_store.get_latest_pending(session, user.id, now)
            if current is None:
                return await self.issue(session, user)
            raise self._resend_limited(current, now)

        otp_logger.info(
            f"Resent OTP challenge {refreshed.id} for user {user.id} "
            f"(send attempt {refreshed.send_attempts})"
        )
        await self._dispatch(session, refreshed, user.email, code)
        return IssuedChallenge(challenge_id=refreshed.id, expires_at=expires_at)

    def _resend_limited(self, challenge: OTPChallenge, now: datetime) -> RateLimited:
        remaining = (as_utc(challenge.expires_at) - now).total_seconds()  # type: ignore[operator]
        otp_logger.warning(
            f"OTP resend limit reached for challenge {challenge.id} ({challenge.send_attempts} sends)"
        )
        return RateLimited(
            "Too many OTP requests. Try again later.",
            retry_after=max(1, math.ceil(remaining)),
        )

    async def _dispatch(
        self,
        session: AsyncSession,
        challenge: OTPChallenge,
        email: str,
        code: str,
    ) -> None:
        minutes = int(self.expiry.total_seconds() // 60)
        try:
            sent = await self.email_sender.send(
                email,
                "Your verification code",
                f"<p>Your OTP code is <b>{code}</b>. It expires in {minutes} minutes.</p>",
            )
            error: Exception | None = None
        except Exception as e:
            sent, error = False, e

        if sent:
            return

        # Leave no usable challenge behind; the caller may retry issuance.
        await self.otp_store.update(session, challenge.id, {"status": OTPStatus.EXPIRED})
        otp_logger.error(f"OTP email dispatch failed for challenge {challenge.id}")
        raise DeliveryError() from error

    # ========================================================================
    # Verify
    # ========================================================================

    async def verify(
        self, session: AsyncSession, challenge_id: UUID, code: str
    ) -> UUID:
        """
        Redeem a challenge and return its owning user id.

        Raises:
            InvalidOrExpiredCode: If the code is wrong, expired, already used or
                the challenge is out of attempts.
        """
        now = self.clock()
        used = None
        if code:
            used = await self.otp_store.consume(
                session,
                challenge_id,
                code_hash=hmac_hash_otp(code, self.hmac_secret),
                now=now,
            )

        if used is not None:
            otp_logger.info(f"OTP challenge {challenge_id} verified for user {used.user_id}")
            return used.user_id

        failed = await self.otp_store.record_failed_attempt(session, challenge_id)
        if failed is not None:
            otp_logger.warning(
                f"OTP verification failed for challenge {challenge_id} "
                f"(attempt {failed.attempts}/{failed.max_attempts}, status {failed.status.value})"
            )
        else:
            otp_logger.warning(f"OTP verification failed for inactive challenge {challenge_id}")
        raise InvalidOrExpiredCode()
