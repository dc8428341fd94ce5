"""Generic async repositories with soft-delete filtering and pagination."""

from __future__ import annotations

from typing import Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.db.base import Base
from portal.domain.mixins import utcnow

ModelT = TypeVar("ModelT", bound=Base)


class ReadRepository(Generic[ModelT]):
    """Read-only access to one model.

    Soft-deletes: rows with `deleted_at IS NOT NULL` are excluded from all
    standard reads.
    """

    model: type[ModelT]

    def __init__(self, session: AsyncSession):
        self._session = session

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _base_query(self):
        """Return a SELECT excluding soft-deleted rows."""
        q = select(self.model)
        if hasattr(self.model, "deleted_at"):
            q = q.where(self.model.deleted_at.is_(None))
        return q

    async def _paginate(
        self, q, *, offset: int, limit: int, order_by: str, order: str
    ) -> tuple[list[ModelT], int]:
        count_q = select(func.count()).select_from(q.subquery())
        total = (await self._session.execute(count_q)).scalar_one()

        col = getattr(self.model, order_by, None)
        if col is not None:
            q = q.order_by(col.desc() if order == "desc" else col.asc())
        q = q.offset(offset).limit(limit)

        items = (await self._session.execute(q)).scalars().all()
        return list(items), total

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_by_id(self, entity_id: str) -> ModelT | None:
        result = await self._session.execute(
            self._base_query().where(self.model.id == entity_id)
        )
        return result.scalars().first()


class BaseRepository(ReadRepository[ModelT]):
    """Read/write repository.

    Writes go through the ORM unit of work (never bulk UPDATE statements) so
    mapper-level features such as version counters apply to every change.
    Hard-delete is intentionally never exposed.
    """

    async def add(self, instance: ModelT) -> ModelT:
        self._session.add(instance)
        await self._session.flush()
        return instance

    async def soft_delete(self, instance: ModelT) -> ModelT:
        instance.deleted_at = utcnow()
        if hasattr(instance, "updated_at"):
            instance.updated_at = instance.deleted_at
        await self._session.flush()
        return instance
