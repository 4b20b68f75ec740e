"""
Authentication router.

This module provides endpoints for:
- Email signup gated by a one-time code
- Signup verification and OTP resend
- Login and the current user profile
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.core.config import request_logger, settings
from taskgate.core.dependencies import get_async_session
from taskgate.core.dependencies.auth import CurrentUser
from taskgate.core.dependencies.services import OnboardingServiceDep
from taskgate.core.schemas import (
    ApiResponse,
    ChallengeData,
    LoginRequest,
    ResendRequest,
    SessionData,
    SignupRequest,
    UserData,
    VerifyRequest,
    success,
)
from taskgate.core.services import SessionGrant
from taskgate.core.services.rate_limit import rate_limit_by_ip

router = APIRouter(prefix="/auth")


def _set_session_cookie(response: Response, token: str, max_age: int) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=f"Bearer {token}",
        max_age=max_age,
        httponly=True,
        secure=settings.ENVIRONMENT != "development",
        samesite="strict",
    )


def _session_data(grant: SessionGrant, expires_in: int) -> SessionData:
    return SessionData(
        token=grant.token,
        expires_in=expires_in,
        user=UserData.model_validate(grant.user),
    )


@router.post(
    "/signup",
    response_model=ApiResponse[ChallengeData],
    status_code=status.HTTP_201_CREATED,
    summary="Sign up with email",
    description="""
## Email Signup

Create an unverified account and email a one-time code to the address.

Signing up again with the email of an account that is still unverified
re-sends a code instead (`200 OTP resent`); the stored password and name are
kept.

### Response

| Field | Type | Description |
|-------|------|-------------|
| `user_id` | UUID | The (unverified) user |
| `challenge_id` | UUID | Handle to redeem with `/auth/signup/verify` |
| `expires_at` | datetime | When the code stops being accepted |

### Errors

- `409 OCCUPIED_EMAIL`: the email belongs to a verified account
- `429 TOO_MANY_REQUESTS`: too many codes issued for this account
- `502 EMAIL_DELIVERY_FAILED`: the code could not be sent
""",
)
async def signup(
    request: SignupRequest,
    response: Response,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    onboarding: OnboardingServiceDep,
) -> dict:
    request_logger.info(f"POST /auth/signup - email={request.email}")
    result = await onboarding.signup(
        session, request.email, request.password, request.name
    )
    if result.resent:
        response.status_code = status.HTTP_200_OK

    data = ChallengeData(
        user_id=result.user_id,
        challenge_id=result.challenge_id,
        expires_at=result.expires_at,
    )
    return success("OTP resent" if result.resent else "OTP sent", data)


@router.post(
    "/signup/verify",
    response_model=ApiResponse[SessionData],
    summary="Verify signup code",
    description="""
## Verify Signup

Redeem the emailed code. On success the account is marked verified, a session
token is returned and the session cookie is set.

Mismatched, expired, already used and exhausted codes all fail the same way
(`400 INVALID_OTP`). After 5 wrong codes the challenge is blocked.
""",
)
async def verify_signup(
    request: VerifyRequest,
    response: Response,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    onboarding: OnboardingServiceDep,
) -> dict:
    request_logger.info(f"POST /auth/signup/verify - challenge={request.challenge_id}")
    grant = await onboarding.confirm_signup(session, request.challenge_id, request.code)

    lifetime = onboarding.token_service.lifetime_seconds
    _set_session_cookie(response, grant.token, lifetime)
    return success("Signup verified", _session_data(grant, lifetime))


@router.post(
    "/otp/resend",
    response_model=ApiResponse[ChallengeData],
    summary="Resend signup code",
)
async def resend_otp(
    request: ResendRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    onboarding: OnboardingServiceDep,
) -> dict:
    """Re-send a code to an unverified account, refreshing its live challenge."""
    request_logger.info(f"POST /auth/otp/resend - email={request.email}")
    issued = await onboarding.resend_otp(session, request.email)
    return success(
        "OTP resent",
        ChallengeData(challenge_id=issued.challenge_id, expires_at=issued.expires_at),
    )


@router.post(
    "/login",
    response_model=ApiResponse[SessionData],
    summary="Log in with email and password",
    dependencies=[
        Depends(
            rate_limit_by_ip(
                settings.LOGIN_RATE_LIMIT_REQUESTS, settings.LOGIN_RATE_LIMIT_WINDOW
            )
        )
    ],
)
async def login(
    request: LoginRequest,
    response: Response,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    onboarding: OnboardingServiceDep,
) -> dict:
    """Unknown emails and wrong passwords both answer `401 INVALID_CRED`."""
    request_logger.info(f"POST /auth/login - email={request.email}")
    grant = await onboarding.login(session, request.email, request.password)

    lifetime = onboarding.token_service.lifetime_seconds
    _set_session_cookie(response, grant.token, lifetime)
    return success("Login successful", _session_data(grant, lifetime))


@router.get(
    "/me",
    response_model=ApiResponse[UserData],
    summary="Current user",
)
async def me(current_user: CurrentUser) -> dict:
    return success("User retrieved", UserData.model_validate(current_user))
