from datetime import timedelta
from typing import Any
from uuid import UUID

from taskgate.core.config import auth_logger
from taskgate.core.exceptions.types import WrongAuthenticationToken
from taskgate.core.utils import create_jwt_token, decode_jwt_token


class SessionTokenService:
    """Signs and verifies session tokens bound to a user id."""

    TOKEN_TYPE = "access"

    def __init__(self, secret: str, algorithm: str, lifetime_minutes: int):
        self.secret = secret
        self.algorithm = algorithm
        self.lifetime_minutes = lifetime_minutes

    @property
    def lifetime_seconds(self) -> int:
        return self.lifetime_minutes * 60

    def sign(self, subject: UUID | str) -> str:
        return create_jwt_token(
            {"sub": str(subject), "type": self.TOKEN_TYPE},
            secret=self.secret,
            algorithm=self.algorithm,
            expires_delta=timedelta(minutes=self.lifetime_minutes),
        )

    def verify(self, token: str | None) -> dict[str, Any]:
        """
        Return the claims of a valid token.

        Raises:
            WrongAuthenticationToken: If the token is invalid, expired, of the
                wrong type or missing a usable subject.
        """
        claims = decode_jwt_token(token, self.secret, self.algorithm)
        if claims is None:
            raise WrongAuthenticationToken("Invalid or expired session token.")

        if claims.get("type") != self.TOKEN_TYPE:
            auth_logger.warning(f"Wrong token type '{claims.get('type')}'")
            raise WrongAuthenticationToken()

        try:
            claims["sub"] = UUID(claims.get("sub", ""))
        except (TypeError, ValueError):
            auth_logger.warning("Session token has an invalid subject")
            raise WrongAuthenticationToken()

        return claims
