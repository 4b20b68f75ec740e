from typing import Any, Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.core.config import jobs_logger
from taskgate.core.db.crud import JobDB
from taskgate.core.db.models import Job
from taskgate.core.enums import JobStatus
from taskgate.core.exceptions.types import BadRequest, Forbidden, NotFound
from taskgate.infrastructure.messaging.queues import RetryPolicy


class WorkQueue(Protocol):
    async def enqueue(self, job_id: UUID, payload: Any, policy: RetryPolicy) -> None: ...


class JobSubmissionService:
    """Idempotent job submission and owner-scoped status lookup."""

    def __init__(
        self,
        job_store: JobDB,
        work_queue: WorkQueue | None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.job_store = job_store
        self.work_queue = work_queue
        self.retry_policy = retry_policy or RetryPolicy()

    async def submit(
        self,
        session: AsyncSession,
        user_id: UUID,
        idempotency_key: str | None,
        payload: Any,
    ) -> tuple[Job, bool]:
        """
        Create a job for ``idempotency_key`` or return the one already holding it.

        The existing job is returned unchanged whatever its status or payload.
        Enqueueing is best effort: if the queue is unreachable the job is still
        returned and stays PENDING.

        Returns:
            tuple[Job, bool]: The job and whether this call created it.

        Raises:
            BadRequest: If the key is missing or blank.
            Forbidden: If the key belongs to another user's job.
        """
        key = (idempotency_key or "").strip()
        if not key:
            raise BadRequest("Idempotency-Key header is required.")

        job = await self.job_store.get_by_idempotency_key(session, key)
        created = False
        if job is None:
            job, created = await self.job_store.create_unique(
                session,
                {
                    "user_id": user_id,
                    "idempotency_key": key,
                    "status": JobStatus.PENDING,
                    "payload": payload,
                },
            )

        if job.user_id != user_id:
            raise Forbidden("Idempotency key is already in use.")

        if not created:
            jobs_logger.info(f"Job {job.id} replayed for idempotency key {key!r}")
            return job, False

        jobs_logger.info(f"Job {job.id} created for user {user_id}")
        await self._enqueue(job)
        return job, True

    async def _enqueue(self, job: Job) -> None:
        if self.work_queue is None:
            jobs_logger.warning(f"No work queue configured, job {job.id} stays PENDING")
            return
        try:
            await self.work_queue.enqueue(job.id, job.payload, self.retry_policy)
        except Exception as e:
            jobs_logger.error(
                f"Failed to enqueue job {job.id}, it stays PENDING: {e}",
                exc_info=True,
            )

    async def get_status(
        self, session: AsyncSession, user_id: UUID, job_id: UUID
    ) -> Job:
        job = await self.job_store.get_by_id(session, job_id)
        if job is None:
            raise NotFound("Job not found.")
        if job.user_id != user_id:
            raise Forbidden("Access denied")
        return job
