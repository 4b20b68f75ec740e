"""
OTP challenge model for storing one-time passcode verification attempts.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from taskgate.core.db.models.base import BaseModel
from taskgate.core.enums import OTPStatus


class OTPChallenge(BaseModel):
    """
    One outstanding or historical verification attempt for a user.

    Only the HMAC-SHA256 hash of the code is stored. A resend rewrites the
    hash and expiry of the same record instead of creating a new one, so
    ``send_attempts`` counts the whole lineage.

    Attributes:
        user_id: Owning user.
        code_hash: HMAC-SHA256 hash of the current code.
        expires_at: When the current code stops being accepted.
        attempts: Failed verification attempts against the current code.
        max_attempts: Cap on failed attempts.
        send_attempts: Number of times a code was (re)sent for this challenge.
        status: PENDING, USED, EXPIRED or BLOCKED.
    """

    __tablename__ = "otp_challenges"

    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    code_hash: Mapped[str] = mapped_column(
        String(64),  # SHA256 hex digest
        nullable=False,
        index=True,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    attempts: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    max_attempts: Mapped[int] = mapped_column(
        Integer,
        default=5,
        nullable=False,
    )

    send_attempts: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
    )

    status: Mapped[OTPStatus] = mapped_column(
        Enum(OTPStatus, native_enum=False, name="otp_status", length=16),
        default=OTPStatus.PENDING,
        nullable=False,
        index=True,
    )
