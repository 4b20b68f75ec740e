from taskgate.core.schemas.auth import (
    ChallengeData,
    LoginRequest,
    ResendRequest,
    SessionData,
    SignupRequest,
    UserData,
    VerifyRequest,
)
from taskgate.core.schemas.envelope import ApiResponse, success

__all__ = [
    "ApiResponse",
    "ChallengeData",
    "LoginRequest",
    "ResendRequest",
    "SessionData",
    "SignupRequest",
    "UserData",
    "VerifyRequest",
    "success",
]
