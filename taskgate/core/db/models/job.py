from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Enum, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from taskgate.core.db.models.base import BaseModel
from taskgate.core.enums import JobStatus

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Job(BaseModel):
    """
    One user-submitted unit of work.

    ``idempotency_key`` is globally unique; the database constraint is what
    makes concurrent duplicate submissions collapse into one record.
    """

    __tablename__ = "jobs"

    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    idempotency_key: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus, native_enum=False, name="job_status", length=16),
        default=JobStatus.PENDING,
        nullable=False,
        index=True,
    )

    payload: Mapped[Any] = mapped_column(
        JSONType,
        nullable=True,
        comment="Opaque input payload",
    )

    result: Mapped[Any] = mapped_column(
        JSONType,
        nullable=True,
        comment="Present only when COMPLETED",
    )

    error: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Present only when FAILED",
    )
