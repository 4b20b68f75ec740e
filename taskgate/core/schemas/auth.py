"""
Authentication schemas for request validation and response serialization.

- Email signup and OTP verification
- OTP resend
- Email login and the current user profile
"""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
)

# Password with validation constraints
PasswordStr = Annotated[
    str,
    StringConstraints(min_length=8, max_length=128),
    Field(description="Password (min 8 characters)"),
]

# OTP code with pattern validation
OTPCodeStr = Annotated[
    str,
    StringConstraints(min_length=6, max_length=6, pattern=r"^\d{6}$"),
    Field(description="6-digit verification code"),
]

NameStr = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=3, max_length=255),
    Field(description="Display name (min 3 characters)"),
]


class SignupRequest(BaseModel):
    """Request schema for email signup."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "ada@example.com",
                "password": "correct-horse-battery",
                "name": "Ada Lovelace",
            }
        }
    )

    email: EmailStr
    password: PasswordStr
    name: NameStr


class VerifyRequest(BaseModel):
    """Request schema for redeeming a signup OTP."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "challenge_id": "3fa85f64-5717-4562-b3fc-2c963f66afa6",
                "code": "123456",
            }
        }
    )

    challenge_id: UUID
    code: OTPCodeStr


class ResendRequest(BaseModel):
    email: EmailStr


class LoginRequest(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {"email": "ada@example.com", "password": "correct-horse-battery"}
        }
    )

    email: EmailStr
    password: Annotated[str, StringConstraints(min_length=1, max_length=128)]


class ChallengeData(BaseModel):
    """Handle on a pending OTP challenge; the code itself is never returned."""

    user_id: UUID | None = None
    challenge_id: UUID
    expires_at: datetime


class UserData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: EmailStr
    name: str
    email_verified: bool
    created_at: datetime


class SessionData(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserData
