"""
Test suite for signup, signup verification, resend and login.

Run tests:
    pytest tests/core/services/test_onboarding.py -v
"""

import pytest

from taskgate.core.db.crud import OTPChallengeDB, UserDB
from taskgate.core.enums import OTPStatus
from taskgate.core.exceptions.types import (
    DeliveryError,
    EmailInUse,
    InvalidOrExpiredCode,
    NotFound,
    RateLimited,
    WrongCredentials,
)
from taskgate.core.services import AccountOnboardingService
from tests.conftest import create_user


@pytest.fixture
def onboarding(otp_service, token_service):
    return AccountOnboardingService(UserDB(), otp_service, token_service)


class TestSignup:
    @pytest.mark.asyncio
    async def test_signup_creates_unverified_user(
        self, db_session, onboarding, email_sender
    ):
        result = await onboarding.signup(
            db_session, "  New@Example.COM ", "password123", " New User "
        )

        user = await UserDB().get_by_id(db_session, result.user_id)
        assert user.email == "new@example.com"
        assert user.name == "New User"
        assert user.email_verified is False
        assert user.password_hash != "password123"
        assert result.resent is False
        assert email_sender.sent[0]["to"] == "new@example.com"

    @pytest.mark.asyncio
    async def test_repeat_signup_resends_to_same_challenge(
        self, db_session, onboarding, email_sender
    ):
        first = await onboarding.signup(
            db_session, "new@example.com", "password123", "New User"
        )
        second = await onboarding.signup(
            db_session, "new@example.com", "another-password", "Renamed"
        )

        assert second.resent is True
        assert second.user_id == first.user_id
        assert second.challenge_id == first.challenge_id
        assert len(email_sender.sent) == 2

        user = await UserDB().get_by_id(db_session, first.user_id)
        assert user.name == "New User"

    @pytest.mark.asyncio
    async def test_signup_verified_email_rejected(
        self, db_session, onboarding, test_user
    ):
        with pytest.raises(EmailInUse):
            await onboarding.signup(
                db_session, test_user.email, "password123", "Someone"
            )

    @pytest.mark.asyncio
    async def test_signup_budget_exhausted(self, db_session, onboarding, clock):
        await onboarding.signup(db_session, "new@example.com", "password123", "New")
        await onboarding.signup(db_session, "new@example.com", "password123", "New")
        await onboarding.signup(db_session, "new@example.com", "password123", "New")

        with pytest.raises(RateLimited) as exc_info:
            await onboarding.signup(
                db_session, "new@example.com", "password123", "New"
            )
        assert exc_info.value.retry_after > 0

    @pytest.mark.asyncio
    async def test_signup_delivery_failure_keeps_user(
        self, db_session, onboarding, email_sender
    ):
        email_sender.fail = True

        with pytest.raises(DeliveryError):
            await onboarding.signup(
                db_session, "new@example.com", "password123", "New User"
            )

        user = await UserDB().get_by_email(db_session, "new@example.com")
        assert user is not None
        assert user.email_verified is False


class TestConfirmSignup:
    @pytest.mark.asyncio
    async def test_confirm_marks_verified_and_issues_token(
        self, db_session, onboarding, email_sender, token_service
    ):
        result = await onboarding.signup(
            db_session, "new@example.com", "password123", "New User"
        )

        grant = await onboarding.confirm_signup(
            db_session, result.challenge_id, email_sender.last_code()
        )

        assert grant.user.email_verified is True
        assert token_service.verify(grant.token)["sub"] == result.user_id
        challenge = await OTPChallengeDB().get_by_id(db_session, result.challenge_id)
        assert challenge.status == OTPStatus.USED

    @pytest.mark.asyncio
    async def test_confirm_wrong_code(self, db_session, onboarding, email_sender):
        result = await onboarding.signup(
            db_session, "new@example.com", "password123", "New User"
        )
        code = email_sender.last_code()
        wrong = "000000" if code != "000000" else "111111"

        with pytest.raises(InvalidOrExpiredCode):
            await onboarding.confirm_signup(db_session, result.challenge_id, wrong)

        user = await UserDB().get_by_id(db_session, result.user_id)
        assert user.email_verified is False

    @pytest.mark.asyncio
    async def test_signup_after_verification_is_rejected(
        self, db_session, onboarding, email_sender
    ):
        result = await onboarding.signup(
            db_session, "new@example.com", "password123", "New User"
        )
        await onboarding.confirm_signup(
            db_session, result.challenge_id, email_sender.last_code()
        )

        with pytest.raises(EmailInUse):
            await onboarding.signup(
                db_session, "new@example.com", "password123", "New User"
            )


class TestResendOtp:
    @pytest.mark.asyncio
    async def test_resend_unknown_email(self, db_session, onboarding):
        with pytest.raises(NotFound):
            await onboarding.resend_otp(db_session, "ghost@example.com")

    @pytest.mark.asyncio
    async def test_resend_verified_user(self, db_session, onboarding, test_user):
        with pytest.raises(EmailInUse):
            await onboarding.resend_otp(db_session, test_user.email)

    @pytest.mark.asyncio
    async def test_resend_pending_user(self, db_session, onboarding, email_sender):
        result = await onboarding.signup(
            db_session, "new@example.com", "password123", "New User"
        )

        issued = await onboarding.resend_otp(db_session, "NEW@example.com")

        assert issued.challenge_id == result.challenge_id
        assert len(email_sender.sent) == 2


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_success(self, db_session, onboarding, test_user, token_service):
        grant = await onboarding.login(db_session, "TestUser@example.com", "password123")

        assert grant.user.id == test_user.id
        assert token_service.verify(grant.token)["sub"] == test_user.id

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, db_session, onboarding, test_user):
        with pytest.raises(WrongCredentials):
            await onboarding.login(db_session, test_user.email, "wrong-password")

    @pytest.mark.asyncio
    async def test_login_unknown_email(self, db_session, onboarding):
        with pytest.raises(WrongCredentials):
            await onboarding.login(db_session, "ghost@example.com", "password123")

    @pytest.mark.asyncio
    async def test_unverified_user_can_log_in(self, db_session, onboarding):
        user = await create_user(db_session, email="pending@example.com", verified=False)

        grant = await onboarding.login(db_session, "pending@example.com", "password123")

        assert grant.user.id == user.id
