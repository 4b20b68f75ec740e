"""
Authentication dependencies for FastAPI endpoints.

The session token is read from the ``Authorization: Bearer`` header, or,
failing that, from the session cookie set at signup verification and login.

Example usage:
    from taskgate.core.dependencies.auth import CurrentUser

    @router.get("/me")
    async def get_profile(user: CurrentUser):
        return user
"""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.core.config import auth_logger, settings
from taskgate.core.db.crud import UserDB
from taskgate.core.db.models import User
from taskgate.core.dependencies.db import get_async_session
from taskgate.core.dependencies.services import TokenServiceDep
from taskgate.core.exceptions.types import (
    AuthenticationTokenMissing,
    WrongAuthenticationToken,
)

# auto_error=False so a missing header falls through to the cookie
bearer_scheme = HTTPBearer(auto_error=False)

user_db = UserDB()


def extract_session_token(
    request: Request, credentials: HTTPAuthorizationCredentials | None
) -> str | None:
    if credentials is not None and credentials.credentials:
        return credentials.credentials

    cookie = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not cookie:
        return None
    scheme, _, token = cookie.partition(" ")
    if scheme.lower() == "bearer" and token:
        return token.strip()
    return cookie.strip() or None


async def get_current_user(
    request: Request,
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    token_service: TokenServiceDep,
) -> User:
    """
    Resolve the authenticated user from the session token.

    Raises:
        AuthenticationTokenMissing: If no token was sent.
        WrongAuthenticationToken: If the token is invalid, expired or names
            a user that no longer exists.
    """
    token = extract_session_token(request, credentials)
    if token is None:
        raise AuthenticationTokenMissing()

    claims = token_service.verify(token)
    user = await user_db.get_by_id(session, claims["sub"])
    if user is None:
        auth_logger.warning(f"Session token for unknown user {claims['sub']}")
        raise WrongAuthenticationToken()

    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
