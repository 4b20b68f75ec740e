from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.core.db.crud.base import BaseDB
from taskgate.core.db.models import User


class UserDB(BaseDB[User]):
    def __init__(self):
        super().__init__(User)

    async def get_by_email(self, session: AsyncSession, email: str) -> User | None:
        """Look up a user by an already normalized email."""
        return await self.get_one_by_conditions(session, [User.email == email])

    async def mark_verified(
        self, session: AsyncSession, user_id: UUID, commit_self: bool = True
    ) -> User | None:
        """Set ``email_verified``; repeating it on a verified user is harmless."""
        return await self.update(
            session, user_id, {"email_verified": True}, commit_self=commit_self
        )
