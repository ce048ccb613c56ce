import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from sqlalchemy import delete, func, inspect, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from feedback_dashboard.core.exceptions import (
    ConflictError,
    NotFoundError,
    ServiceUnavailableError,
)
from feedback_dashboard.services.realtime import ChangeFeed, Listener, Subscription, change_feed

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


@dataclass
class ReadResult(Generic[ModelT]):
    rows: list[ModelT]
    count: int | None = None


def as_record(instance: Any) -> dict[str, Any]:
    """Column values of an ORM instance, as a change-feed payload."""
    mapper = inspect(instance).mapper
    return {attr.key: getattr(instance, attr.key) for attr in mapper.column_attrs}


class RowStore:
    """Thin table client: filtered reads, single-row mutations, insert feed.

    Owner scoping is the caller's job; services always pass the
    authenticated owner's condition along with any user filter.
    """

    def __init__(self, db: AsyncSession, feed: ChangeFeed | None = None):
        self.db = db
        self.feed = feed or change_feed

    async def read(
        self,
        model: type[ModelT],
        conditions: Sequence[Any] = (),
        order_by: Sequence[Any] = (),
        limit: int | None = None,
        offset: int = 0,
        count: bool = False,
    ) -> ReadResult[ModelT]:
        total = await self.count(model, conditions) if count else None
        try:
            stmt = select(model).where(*conditions).order_by(*order_by)
            if limit is not None:
                stmt = stmt.limit(limit)
            if offset:
                stmt = stmt.offset(offset)
            result = await self.db.execute(stmt)
            return ReadResult(rows=list(result.scalars().all()), count=total)
        except SQLAlchemyError as e:
            logger.error("Read from %s failed: %s", model.__tablename__, e)
            raise ServiceUnavailableError(f"Could not load {model.__tablename__}")

    async def count(self, model: type[ModelT], conditions: Sequence[Any] = ()) -> int:
        stmt = select(func.count()).select_from(model).where(*conditions)
        try:
            return (await self.db.execute(stmt)).scalar() or 0
        except SQLAlchemyError as e:
            logger.error("Count on %s failed: %s", model.__tablename__, e)
            raise ServiceUnavailableError(f"Could not load {model.__tablename__}")

    async def get(
        self, model: type[ModelT], row_id: uuid.UUID, conditions: Sequence[Any] = ()
    ) -> ModelT:
        result = await self.read(model, [model.id == row_id, *conditions], limit=1)
        if not result.rows:
            raise NotFoundError(f"{model.__name__} not found")
        return result.rows[0]

    async def insert(self, instance: ModelT) -> ModelT:
        self.db.add(instance)
        await self._commit(f"Could not create {type(instance).__name__}")
        await self.db.refresh(instance)

        owner = getattr(instance, "username", None)
        if owner:
            self.feed.publish(instance.__tablename__, owner, as_record(instance))
        return instance

    async def update(
        self,
        model: type[ModelT],
        row_id: uuid.UUID,
        values: dict[str, Any],
        conditions: Sequence[Any] = (),
    ) -> ModelT:
        instance = await self.get(model, row_id, conditions)
        for key, value in values.items():
            setattr(instance, key, value)
        await self._commit(f"Could not update {model.__name__}")
        await self.db.refresh(instance)
        return instance

    async def delete(
        self, model: type[ModelT], row_id: uuid.UUID, conditions: Sequence[Any] = ()
    ) -> None:
        stmt = delete(model).where(model.id == row_id, *conditions)
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Delete from %s failed: %s", model.__tablename__, e)
            raise ServiceUnavailableError(f"Could not delete {model.__name__}")
        if result.rowcount == 0:
            await self.db.rollback()
            raise NotFoundError(f"{model.__name__} not found")
        await self._commit(f"Could not delete {model.__name__}")

    def subscribe_inserts(self, table: str, owner: str, listener: Listener) -> Subscription:
        return self.feed.subscribe(table, owner, listener)

    async def _commit(self, message: str) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning("%s: %s", message, e.orig)
            raise ConflictError(message)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("%s: %s", message, e)
            raise ServiceUnavailableError(message)
