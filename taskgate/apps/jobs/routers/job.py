"""
Job router.

This module provides endpoints for:
- Idempotent job submission
- Owner-scoped job status lookup
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.apps.jobs.schemas import JobResponse, JobSubmit
from taskgate.core.config import request_logger
from taskgate.core.dependencies import get_async_session
from taskgate.core.dependencies.auth import CurrentUser
from taskgate.core.dependencies.services import JobServiceDep
from taskgate.core.schemas import ApiResponse, success

router = APIRouter(prefix="/jobs")


@router.post(
    "/execute",
    response_model=ApiResponse[JobResponse],
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit job",
    description="""
## Submit Job

Queue a payload for asynchronous execution.

### Headers

| Header | Required | Description |
|--------|----------|-------------|
| `Idempotency-Key` | ✅ | Client-chosen key; repeats return the original job |

### Response

- `202 Job queued`: a new job was created in `PENDING`
- `200 Job already exists`: the key was seen before; the original job is
  returned unchanged, whatever its status or the new payload

### Notes

- A job whose enqueue failed stays `PENDING`
- Executions are retried up to 3 times with exponential backoff
""",
)
async def execute_job(
    request: JobSubmit,
    response: Response,
    current_user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    jobs: JobServiceDep,
    idempotency_key: Annotated[str | None, Header(alias="Idempotency-Key")] = None,
) -> dict:
    request_logger.info(
        f"POST /jobs/execute - user={current_user.id} key={idempotency_key!r}"
    )
    job, created = await jobs.submit(
        session, current_user.id, idempotency_key, request.payload
    )
    if not created:
        response.status_code = status.HTTP_200_OK
        return success("Job already exists", JobResponse.model_validate(job))
    return success("Job queued", JobResponse.model_validate(job))


@router.get(
    "/{job_id}",
    response_model=ApiResponse[JobResponse],
    summary="Get job status",
)
async def get_job(
    job_id: UUID,
    current_user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    jobs: JobServiceDep,
) -> dict:
    """Only the submitting user may read a job."""
    job = await jobs.get_status(session, current_user.id, job_id)
    return success("Job fetched", JobResponse.model_validate(job))
