import logging
import uuid
from datetime import datetime, timezone, tzinfo
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from feedback_dashboard.models.feedback import Feedback
from feedback_dashboard.models.user import User
from feedback_dashboard.services import filters
from feedback_dashboard.services.aggregation import to_local
from feedback_dashboard.services.filters import FilterState
from feedback_dashboard.services.pagination import Paginator
from feedback_dashboard.services.row_store import RowStore

logger = logging.getLogger(__name__)


def _owned_by(username: str):
    return Feedback.username == username


class FeedbackService:
    @staticmethod
    async def list_page(
        db: AsyncSession,
        username: str,
        state: FilterState,
        page: int,
        page_size: int,
        now: datetime,
        tz: tzinfo,
    ) -> tuple[list[Feedback], Paginator]:
        """One page of the owner's feedback; out-of-range pages are clamped."""
        query = filters.compose(state, now, tz)
        conditions = [_owned_by(username), *query.conditions(Feedback)]
        store = RowStore(db)

        paginator = Paginator(page_size=page_size)
        paginator.set_total(await store.count(Feedback, conditions))
        paginator.go_to(page)

        result = await store.read(
            Feedback,
            conditions,
            order_by=query.order_by(Feedback),
            limit=paginator.page_size,
            offset=paginator.offset,
        )
        return result.rows, paginator

    @staticmethod
    async def search(
        db: AsyncSession,
        username: str,
        state: FilterState,
        now: datetime,
        tz: tzinfo,
        limit: int,
    ) -> list[Feedback]:
        """Advanced search; returns nothing without an active filter."""
        if not filters.is_active(state):
            return []
        query = filters.compose(state, now, tz, limit=limit)
        result = await RowStore(db).read(
            Feedback,
            [_owned_by(username), *query.conditions(Feedback)],
            order_by=query.order_by(Feedback),
            limit=query.limit,
        )
        return result.rows

    @staticmethod
    async def list_all(
        db: AsyncSession, username: str, limit: int | None = None
    ) -> list[Feedback]:
        result = await RowStore(db).read(
            Feedback,
            [_owned_by(username)],
            order_by=[Feedback.received_at.desc(), Feedback.id.asc()],
            limit=limit,
        )
        return result.rows

    @staticmethod
    async def get(db: AsyncSession, username: str, feedback_id: uuid.UUID) -> Feedback:
        return await RowStore(db).get(Feedback, feedback_id, [_owned_by(username)])

    @staticmethod
    async def create(db: AsyncSession, owner: User, values: dict[str, Any]) -> Feedback:
        received_at = values.get("received_at") or datetime.now(timezone.utc)
        values = {**values, "received_at": to_local(received_at, timezone.utc)}
        feedback = Feedback(user_id=owner.id, username=owner.username, **values)
        feedback = await RowStore(db).insert(feedback)
        logger.info("Feedback %s received for %s", feedback.id, owner.username)
        return feedback

    @staticmethod
    async def mark_processed(
        db: AsyncSession,
        username: str,
        feedback_id: uuid.UUID,
        now: datetime | None = None,
    ) -> Feedback:
        """Mark feedback as read. Already processed rows keep their timestamp."""
        store = RowStore(db)
        feedback = await store.get(Feedback, feedback_id, [_owned_by(username)])
        if feedback.processed_at is not None:
            return feedback
        return await store.update(
            Feedback,
            feedback_id,
            {"processed_at": now or datetime.now(timezone.utc)},
            [_owned_by(username)],
        )

    @staticmethod
    async def delete(db: AsyncSession, username: str, feedback_id: uuid.UUID) -> None:
        await RowStore(db).delete(Feedback, feedback_id, [_owned_by(username)])
        logger.info("Feedback %s deleted by %s", feedback_id, username)
