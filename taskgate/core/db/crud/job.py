from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.core.db.crud.base import BaseDB
from taskgate.core.db.models import Job
from taskgate.core.enums import JobStatus
from taskgate.core.exceptions.types import DatabaseException


class JobDB(BaseDB[Job]):
    def __init__(self):
        super().__init__(Job)

    async def get_by_idempotency_key(
        self, session: AsyncSession, idempotency_key: str
    ) -> Job | None:
        return await self.get_one_by_conditions(
            session, [Job.idempotency_key == idempotency_key]
        )

    async def create_unique(
        self, session: AsyncSession, data: dict[str, Any]
    ) -> tuple[Job, bool]:
        """
        Insert a job unless its idempotency key is already taken.

        A concurrent submission with the same key that commits first makes the
        insert fail on the unique constraint; the winner's record is then
        returned instead.

        Returns:
            tuple[Job, bool]: The job and whether this call created it.
        """
        job = Job(**data)
        session.add(job)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            existing = await self.get_by_idempotency_key(
                session, data["idempotency_key"]
            )
            if existing is None:
                raise DatabaseException(
                    f"Job insert for key {data['idempotency_key']} conflicted but no record exists"
                )
            return existing, False
        except SQLAlchemyError as e:
            await session.rollback()
            raise DatabaseException(f"Error creating Job: {str(e)}") from e

        await session.refresh(job)
        return job, True

    async def set_state(
        self,
        session: AsyncSession,
        job_id: UUID,
        status: JobStatus,
        result: Any = None,
        error: str | None = None,
        commit_self: bool = True,
    ) -> Job | None:
        """
        Overwrite status, result and error in one statement.

        The previous status is not matched, so redeliveries are last-write-wins.
        """
        return await self.update(
            session,
            job_id,
            {"status": status, "result": result, "error": error},
            commit_self=commit_self,
        )
