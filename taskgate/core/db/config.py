from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncAttrs,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from taskgate.core.config import database_logger


# Base class for declarative models
class Base(AsyncAttrs, DeclarativeBase):
    pass


class Database:
    """
    Explicitly constructed database handle.

    Owns the async engine and the session factory. The process entry point
    (API lifespan, worker ``main()``, scheduler) creates one instance, calls
    :meth:`init`, passes it to whatever needs sessions, and calls
    :meth:`dispose` on shutdown.
    """

    def __init__(
        self,
        url: str,
        echo: bool = False,
        engine: AsyncEngine | None = None,
        **engine_kwargs: Any,
    ):
        self.url = url
        if engine is None:
            if not url.startswith("sqlite"):
                engine_kwargs.setdefault("pool_size", 20)
                engine_kwargs.setdefault("max_overflow", 30)
                engine_kwargs.setdefault("pool_recycle", 3600)
            engine_kwargs.setdefault("pool_pre_ping", True)
            engine = create_async_engine(url, echo=echo, **engine_kwargs)
        self.engine: AsyncEngine = engine
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
            autobegin=True,
        )

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def init(self, create_tables: bool = False) -> None:
        """
        Verify connectivity and optionally create all tables from metadata.

        Schema management normally goes through Alembic; ``create_tables`` is
        for local development and tests.
        """
        # Register every model on Base.metadata
        import taskgate.core.db.models  # noqa: F401

        async with self.engine.begin() as conn:
            if create_tables:
                await conn.run_sync(Base.metadata.create_all)
        database_logger.info("Database initialized.")

    async def dispose(self) -> None:
        await self.engine.dispose()
        database_logger.info("Database engine disposed.")
