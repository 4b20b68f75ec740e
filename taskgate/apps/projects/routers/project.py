"""
Project router.

This module provides endpoints for:
- Project creation, retrieval and owner-only updates
- Member invitation (owner only)
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.apps.projects.schemas import (
    MemberInvite,
    ProjectCreate,
    ProjectResponse,
    ProjectUpdate,
)
from taskgate.core.config import request_logger
from taskgate.core.dependencies import get_async_session
from taskgate.core.dependencies.auth import CurrentUser
from taskgate.core.dependencies.services import ProjectServiceDep
from taskgate.core.schemas import ApiResponse, success

router = APIRouter(prefix="/projects")


@router.post(
    "",
    response_model=ApiResponse[ProjectResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create project",
    description="""
## Create Project

The authenticated user becomes the project owner. The member list starts
empty; the owner always has access.
""",
)
async def create_project(
    request: ProjectCreate,
    current_user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    projects: ProjectServiceDep,
) -> dict:
    request_logger.info(f"POST /projects - user={current_user.id}")
    project = await projects.create_project(
        session, current_user.id, request.name, request.description
    )
    return success("Project created", ProjectResponse.from_project(project))


@router.get(
    "/{project_id}",
    response_model=ApiResponse[ProjectResponse],
    summary="Get project",
)
async def get_project(
    project_id: UUID,
    current_user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    projects: ProjectServiceDep,
) -> dict:
    """Visible to the owner and invited members only."""
    project = await projects.get_project(session, current_user.id, project_id)
    return success("Project fetched", ProjectResponse.from_project(project))


@router.patch(
    "/{project_id}",
    response_model=ApiResponse[ProjectResponse],
    summary="Update project",
)
async def update_project(
    project_id: UUID,
    request: ProjectUpdate,
    current_user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    projects: ProjectServiceDep,
) -> dict:
    request_logger.info(f"PATCH /projects/{project_id} - user={current_user.id}")
    project = await projects.update_project(
        session,
        current_user.id,
        project_id,
        request.model_dump(exclude_unset=True, exclude_none=True),
    )
    return success("Project updated", ProjectResponse.from_project(project))


@router.post(
    "/{project_id}/members",
    response_model=ApiResponse[ProjectResponse],
    summary="Invite member",
    description="""
## Invite Member

Owner only. Adds a registered user to the project with a role of `owner`,
`collaborator` or `viewer`.

### Errors

- `404 NOT_FOUND`: no project, or no user with that email
- `400 BAD_REQUEST`: the user is already part of the project
""",
)
async def invite_member(
    project_id: UUID,
    request: MemberInvite,
    current_user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    projects: ProjectServiceDep,
) -> dict:
    request_logger.info(
        f"POST /projects/{project_id}/members - user={current_user.id} role={request.role.value}"
    )
    project = await projects.invite_member(
        session, current_user.id, project_id, request.email, request.role
    )
    return success("Member invited", ProjectResponse.from_project(project))
