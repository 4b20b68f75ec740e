"""
Project service with owner/member access checks.

Every project has one owner (``owner_id``) with implicit access; other users
gain access by being invited into the member list with a role.
"""

from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.core.config import projects_logger
from taskgate.core.db.crud import ProjectDB, UserDB
from taskgate.core.db.models import Project, ProjectMember
from taskgate.core.enums import ProjectRole
from taskgate.core.exceptions.types import BadRequest, Forbidden, NotFound
from taskgate.core.utils import normalize_email, utc_now


class ProjectService:
    def __init__(self, project_store: ProjectDB, user_store: UserDB):
        self.project_store = project_store
        self.user_store = user_store

    async def create_project(
        self,
        session: AsyncSession,
        owner_id: UUID,
        name: str,
        description: str | None = None,
    ) -> Project:
        project = await self.project_store.create(
            session,
            {
                "name": name,
                "description": description,
                "owner_id": owner_id,
                "members_data": [],
            },
        )
        projects_logger.info(f"Project {project.id} created by {owner_id}")
        return project

    async def _get_or_404(self, session: AsyncSession, project_id: UUID) -> Project:
        project = await self.project_store.get_by_id(session, project_id)
        if project is None:
            raise NotFound("Project not found.")
        return project

    async def get_project(
        self, session: AsyncSession, user_id: UUID, project_id: UUID
    ) -> Project:
        """
        Raises:
            NotFound: If the project does not exist.
            Forbidden: If the user is neither the owner nor a member.
        """
        project = await self._get_or_404(session, project_id)
        if not project.has_access(user_id):
            raise Forbidden()
        return project

    async def update_project(
        self,
        session: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        updates: dict[str, Any],
    ) -> Project:
        project = await self._get_or_404(session, project_id)
        if project.owner_id != user_id:
            raise Forbidden("Only owner can update project")
        if not updates:
            return project

        updated = await self.project_store.update(session, project_id, updates)
        if updated is None:
            raise NotFound("Project not found.")
        projects_logger.info(
            f"Project {project_id} updated by {user_id}: {sorted(updates)}"
        )
        return updated

    async def invite_member(
        self,
        session: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        email: str,
        role: ProjectRole,
    ) -> Project:
        """
        Add the user registered under ``email`` to the member list.

        Raises:
            NotFound: If the project or the invited user does not exist.
            Forbidden: If the caller is not the owner.
            BadRequest: If the invitee is the owner or already a member.
        """
        project = await self._get_or_404(session, project_id)
        if project.owner_id != user_id:
            raise Forbidden("Only owner can invite members")

        invitee = await self.user_store.get_by_email(session, normalize_email(email))
        if invitee is None:
            raise NotFound("User not found.")

        if project.has_access(invitee.id):
            raise BadRequest("User already part of project")

        members = project.members + [
            ProjectMember(user_id=invitee.id, role=role, invited_at=utc_now())
        ]
        updated = await self.project_store.replace_members(session, project_id, members)
        if updated is None:
            raise NotFound("Project not found.")
        projects_logger.info(
            f"User {invitee.id} invited to project {project_id} as {role.value}"
        )
        return updated
