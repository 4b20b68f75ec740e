"""
Test suite for the job executor.

Run tests:
    pytest tests/apps/jobs/test_executor.py -v
"""

import asyncio
from uuid import uuid4

import pytest

from taskgate.apps.jobs.services import JobExecutor
from taskgate.apps.jobs.services.executor import simulate_execution
from taskgate.core.db.crud import JobDB
from taskgate.core.enums import JobStatus
from taskgate.core.exceptions.types import ExecutionError
from tests.conftest import create_user

job_db = JobDB()


@pytest.fixture
async def job(db_session):
    user = await create_user(db_session)
    created, _ = await job_db.create_unique(
        db_session,
        {"user_id": user.id, "idempotency_key": "exec-1", "payload": {"n": 2}},
    )
    return created


async def echo(payload):
    return {"echo": payload}


async def stored(database, job_id):
    async with database.session() as session:
        return await job_db.get_by_id(session, job_id)


class TestHandle:
    @pytest.mark.asyncio
    async def test_success_records_result(self, database, job):
        executor = JobExecutor(job_db, database.session_factory, runner=echo)

        await executor.handle({"job_id": str(job.id), "payload": job.payload})

        result = await stored(database, job.id)
        assert result.status == JobStatus.COMPLETED
        assert result.result == {"echo": {"n": 2}}
        assert result.error is None

    @pytest.mark.asyncio
    async def test_runner_sees_processing(self, database, job):
        seen = []

        async def observe(payload):
            seen.append((await stored(database, job.id)).status)
            return {"ok": True}

        executor = JobExecutor(job_db, database.session_factory, runner=observe)
        await executor.handle({"job_id": str(job.id), "payload": None})

        assert seen == [JobStatus.PROCESSING]
        result = await stored(database, job.id)
        assert result.status == JobStatus.COMPLETED
        assert result.result is not None

    @pytest.mark.asyncio
    async def test_none_result_is_a_failure(self, database, job):
        async def nothing(payload):
            return None

        executor = JobExecutor(job_db, database.session_factory, runner=nothing)

        with pytest.raises(ExecutionError, match="no result"):
            await executor.handle({"job_id": str(job.id), "payload": None})

        result = await stored(database, job.id)
        assert result.status == JobStatus.FAILED
        assert result.result is None
        assert result.error == "Execution returned no result"

    @pytest.mark.asyncio
    async def test_failure_records_error_and_raises(self, database, job):
        async def boom(payload):
            raise ValueError("bad input")

        executor = JobExecutor(job_db, database.session_factory, runner=boom)

        with pytest.raises(ExecutionError, match="bad input"):
            await executor.handle({"job_id": str(job.id), "payload": None})

        result = await stored(database, job.id)
        assert result.status == JobStatus.FAILED
        assert result.error == "bad input"

    @pytest.mark.asyncio
    async def test_timeout(self, database, job):
        async def slow(payload):
            await asyncio.sleep(5)

        executor = JobExecutor(
            job_db, database.session_factory, runner=slow, timeout_seconds=0.05
        )

        with pytest.raises(ExecutionError, match="timed out"):
            await executor.handle({"job_id": str(job.id), "payload": None})

        result = await stored(database, job.id)
        assert result.status == JobStatus.FAILED
        assert result.error == "Execution timed out after 0.05s"

    @pytest.mark.asyncio
    async def test_missing_job_is_dropped(self, database):
        calls = []

        async def runner(payload):
            calls.append(payload)

        executor = JobExecutor(job_db, database.session_factory, runner=runner)

        await executor.handle({"job_id": str(uuid4()), "payload": {}})

        assert calls == []

    @pytest.mark.asyncio
    async def test_redelivery_overwrites_previous_outcome(self, database, job):
        attempts = 0

        async def flaky(payload):
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise RuntimeError("transient")
            return "done"

        executor = JobExecutor(job_db, database.session_factory, runner=flaky)

        with pytest.raises(ExecutionError):
            await executor.handle({"job_id": str(job.id), "payload": None})
        await executor.handle({"job_id": str(job.id), "payload": None})

        result = await stored(database, job.id)
        assert result.status == JobStatus.COMPLETED
        assert result.result == "done"
        assert result.error is None

    @pytest.mark.asyncio
    async def test_duplicate_delivery_of_completed_job_reruns_it(self, database, job):
        runs = 0
        during_rerun = []

        async def counting(payload):
            nonlocal runs
            runs += 1
            if runs == 2:
                during_rerun.append(await stored(database, job.id))
            return {"run": runs}

        executor = JobExecutor(job_db, database.session_factory, runner=counting)
        event = {"job_id": str(job.id), "payload": None}

        await executor.handle(event)
        await executor.handle(event)

        # The duplicate clears the stored result while it runs
        assert during_rerun[0].status == JobStatus.PROCESSING
        assert during_rerun[0].result is None

        result = await stored(database, job.id)
        assert runs == 2
        assert result.status == JobStatus.COMPLETED
        assert result.result == {"run": 2}
        assert result.error is None

    @pytest.mark.asyncio
    async def test_failed_duplicate_overwrites_completed_job(self, database, job):
        runs = 0

        async def fails_second_time(payload):
            nonlocal runs
            runs += 1
            if runs == 2:
                raise RuntimeError("downstream unavailable")
            return {"run": runs}

        executor = JobExecutor(
            job_db, database.session_factory, runner=fails_second_time
        )
        event = {"job_id": str(job.id), "payload": None}

        await executor.handle(event)
        with pytest.raises(ExecutionError):
            await executor.handle(event)

        result = await stored(database, job.id)
        assert result.status == JobStatus.FAILED
        assert result.result is None
        assert result.error == "downstream unavailable"


@pytest.mark.asyncio
async def test_simulate_execution_echoes_payload():
    result = await simulate_execution({"a": 1}, runtime_seconds=0)

    assert result == {"output": "Execution successful", "input": {"a": 1}}


def test_from_settings():
    from taskgate.core.config import settings

    executor = JobExecutor.from_settings(settings, job_db, session_factory=None)

    assert executor.timeout_seconds == settings.JOB_EXECUTION_TIMEOUT_SECONDS
