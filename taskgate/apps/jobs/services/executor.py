import asyncio
from functools import partial
from typing import Any, Awaitable, Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskgate.core.config import executor_logger
from taskgate.core.db.crud import JobDB
from taskgate.core.enums import JobStatus
from taskgate.core.exceptions.types import ExecutionError

Runner = Callable[[Any], Awaitable[Any]]


async def simulate_execution(payload: Any, runtime_seconds: float = 3.0) -> dict[str, Any]:
    """Stand-in workload: waits ``runtime_seconds`` and echoes the payload."""
    await asyncio.sleep(runtime_seconds)
    return {"output": "Execution successful", "input": payload}


class JobExecutor:
    """
    Consumes queued work items and drives jobs through their lifecycle.

    Each item moves its job to PROCESSING, runs the payload under a timeout
    and records COMPLETED with the result or FAILED with the error; a runner
    that returns ``None`` counts as a failure. A failure
    is re-raised as ``ExecutionError`` so the queue can retry the item;
    every attempt overwrites the previous outcome.
    """

    def __init__(
        self,
        job_store: JobDB,
        session_factory: async_sessionmaker[AsyncSession],
        runner: Runner | None = None,
        timeout_seconds: float = 30.0,
    ):
        self.job_store = job_store
        self.session_factory = session_factory
        self.runner: Runner = runner or simulate_execution
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(
        cls,
        settings,
        job_store: JobDB,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> "JobExecutor":
        return cls(
            job_store=job_store,
            session_factory=session_factory,
            runner=partial(
                simulate_execution,
                runtime_seconds=settings.JOB_SIMULATED_RUNTIME_SECONDS,
            ),
            timeout_seconds=settings.JOB_EXECUTION_TIMEOUT_SECONDS,
        )

    async def handle(self, event: dict[str, Any]) -> None:
        job_id = UUID(str(event["job_id"]))
        payload = event.get("payload")

        async with self.session_factory() as session:
            job = await self.job_store.set_state(session, job_id, JobStatus.PROCESSING)
            if job is None:
                executor_logger.warning(f"Job {job_id} not found, dropping work item")
                return
            executor_logger.info(f"Job {job_id} processing")

            try:
                result = await asyncio.wait_for(
                    self.runner(payload), timeout=self.timeout_seconds
                )
            except asyncio.TimeoutError as e:
                error = f"Execution timed out after {self.timeout_seconds}s"
                await self._fail(session, job_id, error)
                raise ExecutionError(error) from e
            except Exception as e:
                error = str(e) or type(e).__name__
                await self._fail(session, job_id, error)
                raise ExecutionError(error) from e

            # COMPLETED always carries a result
            if result is None:
                error = "Execution returned no result"
                await self._fail(session, job_id, error)
                raise ExecutionError(error)

            await self.job_store.set_state(
                session, job_id, JobStatus.COMPLETED, result=result
            )
            executor_logger.info(f"Job {job_id} completed")

    async def _fail(self, session: AsyncSession, job_id: UUID, error: str) -> None:
        await self.job_store.set_state(session, job_id, JobStatus.FAILED, error=error)
        executor_logger.error(f"Job {job_id} failed: {error}")
