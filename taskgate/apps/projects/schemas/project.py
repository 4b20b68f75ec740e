from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints

from taskgate.core.db.models import Project
from taskgate.core.enums import ProjectRole

ProjectNameStr = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=3, max_length=255),
    Field(description="Project name (min 3 characters)"),
]


class ProjectCreate(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {"name": "Apollo", "description": "Landing page rebuild"}
        }
    )

    name: ProjectNameStr
    description: str | None = None


class ProjectUpdate(BaseModel):
    """Partial update; only fields that are sent are applied."""

    name: ProjectNameStr | None = None
    description: str | None = None
    is_archived: bool | None = None


class MemberInvite(BaseModel):
    email: EmailStr
    role: ProjectRole


class ProjectMemberResponse(BaseModel):
    user_id: UUID
    role: ProjectRole
    invited_at: datetime


class ProjectResponse(BaseModel):
    id: UUID
    name: str
    description: str | None
    owner_id: UUID
    is_archived: bool
    members: list[ProjectMemberResponse]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_project(cls, project: Project) -> "ProjectResponse":
        return cls(
            id=project.id,
            name=project.name,
            description=project.description,
            owner_id=project.owner_id,
            is_archived=project.is_archived,
            members=[
                ProjectMemberResponse(
                    user_id=m.user_id, role=m.role, invited_at=m.invited_at
                )
                for m in project.members
            ],
            created_at=project.created_at,
            updated_at=project.updated_at,
        )
