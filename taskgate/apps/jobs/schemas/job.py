from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from taskgate.core.enums import JobStatus


class JobSubmit(BaseModel):
    """The payload is opaque and handed to the executor as is."""

    model_config = ConfigDict(
        json_schema_extra={"example": {"payload": {"task": "resize", "width": 640}}}
    )

    payload: Any = None


class JobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    idempotency_key: str
    status: JobStatus
    payload: Any = None
    result: Any = None
    error: str | None = None
    created_at: datetime
    updated_at: datetime
