"""
Account onboarding: signup gated by an OTP, confirmation and login.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.core.config import auth_logger
from taskgate.core.db.crud import UserDB
from taskgate.core.db.models import User
from taskgate.core.exceptions.types import EmailInUse, NotFound, WrongCredentials
from taskgate.core.services.otp import IssuedChallenge, OtpChallengeService
from taskgate.core.services.tokens import SessionTokenService
from taskgate.core.utils import hash_password, normalize_email, verify_password


@dataclass(frozen=True)
class SignupResult:
    user_id: UUID
    challenge_id: UUID
    expires_at: datetime
    resent: bool


@dataclass(frozen=True)
class SessionGrant:
    user: User
    token: str


class AccountOnboardingService:
    def __init__(
        self,
        user_store: UserDB,
        otp_service: OtpChallengeService,
        token_service: SessionTokenService,
    ):
        self.user_store = user_store
        self.otp_service = otp_service
        self.token_service = token_service

    async def signup(
        self, session: AsyncSession, email: str, password: str, name: str
    ) -> SignupResult:
        """
        Register a new unverified user and send an OTP, or re-send one to an
        existing unverified user.

        The stored password and name of an existing unverified user are kept.
        A user created here stays in place if the email dispatch fails; a
        later signup or resend recovers it.

        Raises:
            EmailInUse: If the email belongs to a verified user.
            RateLimited: If the user's OTP budget is spent.
            DeliveryError: If the OTP email could not be sent.
        """
        email = normalize_email(email)
        user = await self.user_store.get_by_email(session, email)

        if user is not None and user.email_verified:
            auth_logger.warning(f"Signup rejected, email already verified: {email}")
            raise EmailInUse()

        if user is not None:
            await self.otp_service.check_issue_budget(session, user.id)
            issued = await self.otp_service.resend(session, user)
            auth_logger.info(f"Signup repeated for unverified user {user.id}; OTP resent")
            return self._result(user, issued, resent=True)

        user = await self.user_store.create(
            session,
            {
                "email": email,
                "name": name.strip(),
                "password_hash": hash_password(password),
                "email_verified": False,
            },
        )
        auth_logger.info(f"Created unverified user {user.id} for {email}")
        issued = await self.otp_service.issue(session, user)
        return self._result(user, issued, resent=False)

    @staticmethod
    def _result(user: User, issued: IssuedChallenge, resent: bool) -> SignupResult:
        return SignupResult(
            user_id=user.id,
            challenge_id=issued.challenge_id,
            expires_at=issued.expires_at,
            resent=resent,
        )

    async def confirm_signup(
        self, session: AsyncSession, challenge_id: UUID, code: str
    ) -> SessionGrant:
        """
        Redeem the signup OTP, mark the user verified and issue a session token.

        Raises:
            InvalidOrExpiredCode: If the OTP does not verify.
        """
        user_id = await self.otp_service.verify(session, challenge_id, code)
        user = await self.user_store.mark_verified(session, user_id)
        if user is None:
            # Owning user vanished after the challenge was redeemed
            raise NotFound("User not found.")

        auth_logger.info(f"User {user.id} verified email {user.email}")
        return SessionGrant(user=user, token=self.token_service.sign(user.id))

    async def resend_otp(self, session: AsyncSession, email: str) -> IssuedChallenge:
        """
        Raises:
            NotFound: If no user has this email.
            EmailInUse: If the user is already verified.
            RateLimited: If the resend or issuance budget is spent.
            DeliveryError: If the OTP email could not be sent.
        """
        user = await self.user_store.get_by_email(session, normalize_email(email))
        if user is None:
            raise NotFound("User not found.")
        if user.email_verified:
            raise EmailInUse("Email already verified.")
        return await self.otp_service.resend(session, user)

    async def login(
        self, session: AsyncSession, email: str, password: str
    ) -> SessionGrant:
        """
        Raises:
            WrongCredentials: For an unknown email or a wrong password alike.
        """
        user = await self.user_store.get_by_email(session, normalize_email(email))
        if user is None or not verify_password(password, user.password_hash):
            auth_logger.warning(f"Failed login for {normalize_email(email)}")
            raise WrongCredentials()

        auth_logger.info(f"User {user.id} logged in")
        return SessionGrant(user=user, token=self.token_service.sign(user.id))
