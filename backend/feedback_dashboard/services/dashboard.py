import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Any, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feedback_dashboard.models.feedback import Feedback
from feedback_dashboard.services import aggregation
from feedback_dashboard.services.feedback import FeedbackService
from feedback_dashboard.services.issue import IssueService
from feedback_dashboard.services.team import TeamService

logger = logging.getLogger(__name__)

T = TypeVar("T")

ANALYTICS_FEEDBACK_LIMIT = 1000


async def _with_session(
    session_factory: async_sessionmaker[AsyncSession],
    loader: Callable[..., Awaitable[T]],
    *args: Any,
) -> T:
    # AsyncSession is not safe for concurrent use; each parallel read gets its own.
    async with session_factory() as db:
        return await loader(db, *args)


@dataclass(frozen=True)
class Analytics:
    total_feedback: int
    average_rating: float
    sentiment: aggregation.SentimentBuckets
    rating_distribution: tuple[aggregation.RatingCount, ...]
    daily: tuple[aggregation.TimeBucket, ...]
    weekly: tuple[aggregation.TimeBucket, ...]
    hourly: tuple[aggregation.HourBucket, ...]


def build_analytics(
    feedbacks: list[Feedback], now: datetime, tz: tzinfo, days: int
) -> Analytics:
    return Analytics(
        total_feedback=len(feedbacks),
        average_rating=aggregation.average_rating(feedbacks),
        sentiment=aggregation.sentiment_buckets(feedbacks),
        rating_distribution=aggregation.rating_distribution(feedbacks),
        daily=aggregation.daily_series(feedbacks, days, now, tz),
        weekly=aggregation.weekly_series(feedbacks, now, tz),
        hourly=aggregation.hourly_distribution(feedbacks, tz),
    )


class DashboardService:
    @staticmethod
    async def overview(
        session_factory: async_sessionmaker[AsyncSession],
        username: str,
        now: datetime | None = None,
    ) -> tuple[aggregation.Overview, int]:
        """Dashboard summary plus team size; the three reads run concurrently."""
        feedbacks, issues, (_, team_size) = await asyncio.gather(
            _with_session(session_factory, FeedbackService.list_all, username),
            _with_session(session_factory, IssueService.list_issues, username),
            _with_session(session_factory, TeamService.roster),
        )
        return aggregation.overview(feedbacks, issues, now), team_size

    @staticmethod
    async def analytics(
        session_factory: async_sessionmaker[AsyncSession],
        username: str,
        now: datetime,
        tz: tzinfo,
        days: int,
    ) -> Analytics:
        feedbacks = await _with_session(
            session_factory,
            FeedbackService.list_all,
            username,
            ANALYTICS_FEEDBACK_LIMIT,
        )
        logger.debug("Analytics over %d feedback rows for %s", len(feedbacks), username)
        return build_analytics(feedbacks, now, tz, days)
