from typing import Any, Generic, Sequence, Type, TypeVar
from uuid import UUID

from sqlalchemy import (
    SQLColumnExpression,
    and_,
    delete as sa_delete,
    func,
    select,
    update as sa_update,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Delete, Select, Update

from taskgate.core.exceptions.types import DatabaseException

T = TypeVar("T")


class BaseDB(Generic[T]):
    def __init__(self, model: Type[T]):
        self.model = model

    async def _finish(self, session: AsyncSession, commit_self: bool) -> None:
        if commit_self:
            await session.commit()
        else:
            await session.flush()

    async def get_by_id(self, session: AsyncSession, id: UUID) -> T | None:
        """
        Asynchronously retrieves an instance of the model by its primary key.

        Args:
            session (AsyncSession): The asynchronous database session to use for the query.
            id (UUID): The primary key value of the model instance to retrieve.

        Returns:
            T | None: The model instance if found, otherwise None.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            # Bulk updates skip the identity map, so always refresh from the row
            stmt: Select = (
                select(self.model)
                .where(getattr(self.model, "id") == id)
                .execution_options(populate_existing=True)
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error retrieving {self.model.__name__} with ID {id}: {str(e)}"
            ) from e

    async def get_all(
        self,
        session: AsyncSession,
        filters: Sequence[Any] | None = None,
        order_by: Sequence[Any] | None = None,
        limit: int | None = None,
    ) -> Sequence[T]:
        """
        Retrieve filtered, ordered results.

        Args:
            session: Async SQLAlchemy session.
            filters: SQLAlchemy expressions combined with AND.
            order_by: Columns/expressions to order by.
            limit: Max number of records to return.

        Returns:
            A sequence of model instances.
        """
        try:
            stmt = select(self.model).execution_options(populate_existing=True)
            if filters:
                stmt = stmt.where(and_(*filters))
            if order_by:
                stmt = stmt.order_by(*order_by)
            if limit:
                stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            return result.scalars().all()
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error retrieving all {self.model.__name__} records: {str(e)}"
            ) from e

    async def get_one_by_conditions(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
    ) -> T | None:
        """
        Asynchronously retrieves a single record of the model that matches the given conditions.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt = (
                select(self.model)
                .where(and_(*conditions))
                .execution_options(populate_existing=True)
            )
            result = await session.execute(stmt)
            return result.scalars().first()
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error retrieving one {self.model.__name__} with conditions {conditions}: {str(e)}"
            ) from e

    async def count_by_conditions(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
    ) -> int:
        try:
            stmt = (
                select(func.count())
                .select_from(self.model)
                .where(and_(*conditions))
            )
            result = await session.execute(stmt)
            return int(result.scalar_one())
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error counting {self.model.__name__} with conditions {conditions}: {str(e)}"
            ) from e

    async def create(
        self,
        session: AsyncSession,
        data: dict,
        commit_self: bool = True,
    ) -> T:
        """
        Asynchronously creates and persists a new instance of the model using the provided data.

        Args:
            session (AsyncSession): The SQLAlchemy asynchronous session to use for database operations.
            data (dict): A dictionary of fields and values to initialize the model instance.
            commit_self (bool, optional): If True, commits the transaction. If False, only flushes the session. Defaults to True.

        Returns:
            T: The newly created and persisted model instance.

        Raises:
            DatabaseException: If an error occurs while creating the model instance or committing the transaction.
        """
        try:
            obj = self.model(**data)
            session.add(obj)
            await self._finish(session, commit_self)
            await session.refresh(obj)
            return obj
        except (SQLAlchemyError, ValueError) as e:
            raise DatabaseException(
                f"Error creating {self.model.__name__}: {str(e)}"
            ) from e

    async def update(
        self, session: AsyncSession, id: UUID, updates: dict, commit_self: bool = True
    ) -> T | None:
        """
        Unconditionally update the record with the given ID.

        Returns:
            T | None: The updated record, or None if no record has that ID.

        Raises:
            DatabaseException: If an error occurs while updating the record or committing the transaction.
        """
        return await self.conditional_update(
            session,
            [getattr(self.model, "id") == id],
            updates,
            commit_self=commit_self,
        )

    async def conditional_update(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
        updates: dict,
        commit_self: bool = True,
    ) -> T | None:
        """
        Atomically apply ``updates`` to the record matching every condition.

        This is a single ``UPDATE ... WHERE ... RETURNING`` statement, so the
        match and the write cannot be interleaved with another writer. Callers
        must pass conditions that identify at most one row.

        Args:
            session (AsyncSession): The SQLAlchemy asynchronous session.
            conditions (Sequence[SQLColumnExpression]): The match predicate.
            updates (dict): Column values or SQL expressions to write.
            commit_self (bool, optional): Commit after the update instead of flushing. Defaults to True.

        Returns:
            T | None: The post-image of the matched record, or None when nothing matched.

        Raises:
            DatabaseException: If an error occurs while updating the record or committing the transaction.
        """
        try:
            stmt: Update = (
                sa_update(self.model)
                .where(and_(*conditions))
                .values(**updates)
                .returning(self.model)
                .execution_options(
                    synchronize_session="fetch", populate_existing=True
                )
            )
            result = await session.execute(stmt)
            obj = result.scalars().first()
            await self._finish(session, commit_self)
            return obj
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error updating {self.model.__name__} with conditions {conditions}: {str(e)}"
            ) from e

    async def update_by_conditions(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
        updates: dict,
        commit_self: bool = True,
    ) -> int:
        """
        Update every record matching the conditions.

        Returns:
            int: The number of records updated.
        """
        try:
            stmt: Update = (
                sa_update(self.model)
                .where(and_(*conditions))
                .values(**updates)
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            await self._finish(session, commit_self)
            return result.rowcount  # type: ignore[attr-defined]
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error updating {self.model.__name__} with conditions {conditions}: {str(e)}"
            ) from e

    async def delete_by_conditions(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
        commit_self: bool = True,
    ) -> int:
        """
        Delete every record matching the conditions.

        Returns:
            int: The number of records deleted.
        """
        try:
            stmt: Delete = (
                sa_delete(self.model)
                .where(and_(*conditions))
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            await self._finish(session, commit_self)
            return result.rowcount  # type: ignore[attr-defined]
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error deleting {self.model.__name__} with conditions {conditions}: {str(e)}"
            ) from e
