from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from taskgate.core.db.models.base import BaseModel
from taskgate.core.enums import ProjectRole
from taskgate.core.utils import as_utc


@dataclass(frozen=True)
class ProjectMember:
    """A single ``{user, role, invited_at}`` entry of a project's member list."""

    user_id: UUID
    role: ProjectRole
    invited_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": str(self.user_id),
            "role": self.role.value,
            "invited_at": self.invited_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectMember":
        return cls(
            user_id=UUID(data["user_id"]),
            role=ProjectRole(data["role"]),
            invited_at=as_utc(datetime.fromisoformat(data["invited_at"])),  # type: ignore[arg-type]
        )


class Project(BaseModel):
    """
    A project owned by one user with an ordered member list.

    Members are stored inline as a JSON list; cardinality is small and the
    list is always rewritten as a whole.
    """

    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    owner_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    is_archived: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    members_data: Mapped[list[dict[str, Any]]] = mapped_column(
        "members",
        JSON().with_variant(JSONB(), "postgresql"),
        default=list,
        nullable=False,
    )

    @property
    def members(self) -> list[ProjectMember]:
        return [ProjectMember.from_dict(item) for item in self.members_data or []]

    def find_member(self, user_id: UUID) -> ProjectMember | None:
        return next((m for m in self.members if m.user_id == user_id), None)

    def role_of(self, user_id: UUID) -> ProjectRole | None:
        if self.owner_id == user_id:
            return ProjectRole.OWNER
        member = self.find_member(user_id)
        return member.role if member else None

    def has_access(self, user_id: UUID) -> bool:
        return self.role_of(user_id) is not None
