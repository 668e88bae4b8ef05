"""
Base repository.

Generic async data access shared by the ACF repositories.
"""

from collections.abc import AsyncIterator
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from acf.models.base import Base


ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository over one mapped class.

    Example:
        class OrderRepository(BaseRepository[Order]):
            def __init__(self, session: AsyncSession):
                super().__init__(Order, session)
    """

    def __init__(
        self, model: type[ModelType], session: AsyncSession
    ) -> None:
        self.model = model
        self.session = session

    async def get_by(self, **filters: Any) -> ModelType | None:
        """
        First row matching filters.

        Rows are re-read even when already in the identity map, so counters
        changed by bulk UPDATE statements are never stale.
        """
        stmt = (
            select(self.model)
            .filter_by(**filters)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def create(self, **data: Any) -> ModelType:
        """Add a row and flush it so constraint violations surface here."""
        entity = self.model(**data)
        self.session.add(entity)
        await self.session.flush()
        return entity

    async def stream(self, *order_by: Any) -> AsyncIterator[ModelType]:
        """Iterate all rows server-side in the given order."""
        result = await self.session.stream_scalars(
            select(self.model).order_by(*order_by)
        )
        async for row in result:
            yield row
