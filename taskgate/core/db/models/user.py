from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from taskgate.core.db.models.base import BaseModel


class User(BaseModel):
    """
    Account identity.

    Attributes:
        email: Lower-cased, unique email address.
        name: Display name.
        password_hash: bcrypt hash of the password.
        email_verified: Flipped to True only by a successful OTP verification.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    email_verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
