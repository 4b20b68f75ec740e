from typing import Generic, TypeVar

from pydantic import BaseModel

DataT = TypeVar("DataT")


class ApiResponse(BaseModel, Generic[DataT]):
    """Success envelope shared by every endpoint."""

    status: bool = True
    message: str
    data: DataT | None = None


def success(message: str, data=None) -> dict:
    return {"status": True, "message": message, "data": data}
