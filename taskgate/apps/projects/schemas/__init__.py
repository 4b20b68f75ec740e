from taskgate.apps.projects.schemas.project import (
    MemberInvite,
    ProjectCreate,
    ProjectMemberResponse,
    ProjectResponse,
    ProjectUpdate,
)

__all__ = [
    "MemberInvite",
    "ProjectCreate",
    "ProjectMemberResponse",
    "ProjectResponse",
    "ProjectUpdate",
]
