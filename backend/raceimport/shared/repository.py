"""
Base repository for the results tables.

Holds the session and model class and the lookups both race repositories
share; anything table-specific lives in features/races/repository.py.
"""

from typing import Any, Generic, Type, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """Async CRUD helpers over one model."""

    def __init__(self, db: AsyncSession, model: Type[T]):
        self.db = db
        self.model = model

    def _filtered(self, query: Select, filters: dict[str, Any]) -> Select:
        for column, value in filters.items():
            query = query.where(getattr(self.model, column) == value)
        return query

    async def get_by_id(self, id: int) -> T | None:
        return await self.db.get(self.model, id)

    async def get_by(self, **filters) -> T | None:
        """First row whose columns equal the given values, or None."""
        query = self._filtered(select(self.model), filters).limit(1)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def count(self, **filters) -> int:
        query = self._filtered(select(func.count()).select_from(self.model), filters)
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def create(self, **values) -> T:
        """Insert a row and flush so its generated id is populated."""
        entity = self.model(**values)
        self.db.add(entity)
        await self.db.flush()
        await self.db.refresh(entity)
        return entity

    async def update(self, entity: T, **values) -> T:
        for column, value in values.items():
            setattr(entity, column, value)
        await self.db.flush()
        await self.db.refresh(entity)
        return entity
