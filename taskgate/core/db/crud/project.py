from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.core.db.crud.base import BaseDB
from taskgate.core.db.models import Project, ProjectMember


class ProjectDB(BaseDB[Project]):
    def __init__(self):
        super().__init__(Project)

    async def replace_members(
        self,
        session: AsyncSession,
        project_id: UUID,
        members: list[ProjectMember],
        commit_self: bool = True,
    ) -> Project | None:
        return await self.update(
            session,
            project_id,
            {"members_data": [member.to_dict() for member in members]},
            commit_self=commit_self,
        )
