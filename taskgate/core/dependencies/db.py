from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession


async def get_async_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a session from the application's database handle.
    A new session is created for each request and closed after it finishes.
    """
    async with request.app.state.db.session() as async_session:
        yield async_session
