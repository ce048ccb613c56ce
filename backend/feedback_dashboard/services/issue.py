import logging
import uuid
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from feedback_dashboard.models.issue import Issue
from feedback_dashboard.services import aggregation
from feedback_dashboard.services.aggregation import IssueCount
from feedback_dashboard.services.feedback import FeedbackService
from feedback_dashboard.services.row_store import RowStore

logger = logging.getLogger(__name__)


def _owned_by(username: str):
    return Issue.username == username


class IssueService:
    @staticmethod
    async def list_issues(db: AsyncSession, username: str) -> list[Issue]:
        """Owner's issues, oldest first (arrival order)."""
        result = await RowStore(db).read(
            Issue,
            [_owned_by(username)],
            order_by=[Issue.created_at.asc(), Issue.id.asc()],
        )
        return result.rows

    @staticmethod
    async def create(db: AsyncSession, username: str, issue_title: str) -> Issue:
        issue = await RowStore(db).insert(Issue(username=username, issue_title=issue_title))
        logger.info("Issue %s created by %s", issue.id, username)
        return issue

    @staticmethod
    async def rename(
        db: AsyncSession, username: str, issue_id: uuid.UUID, issue_title: str
    ) -> Issue:
        return await RowStore(db).update(
            Issue, issue_id, {"issue_title": issue_title}, [_owned_by(username)]
        )

    @staticmethod
    async def delete(db: AsyncSession, username: str, issue_id: uuid.UUID) -> None:
        await RowStore(db).delete(Issue, issue_id, [_owned_by(username)])
        logger.info("Issue %s deleted by %s", issue_id, username)

    @staticmethod
    async def top(db: AsyncSession, username: str, limit: int) -> list[IssueCount]:
        issues = await IssueService.list_issues(db, username)
        return aggregation.top_issues(issues, limit)

    @staticmethod
    async def feedback_counts(
        db: AsyncSession, username: str
    ) -> list[tuple[Issue, int]]:
        issues = await IssueService.list_issues(db, username)
        feedbacks = await FeedbackService.list_all(db, username)
        counts = aggregation.issue_feedback_counts(issues, feedbacks)
        return [(issue, counts[issue.id]) for issue in issues]

    @staticmethod
    async def stats(
        db: AsyncSession, username: str, now: datetime
    ) -> aggregation.IssueStats:
        """Header cards of the issue screen."""
        pairs = await IssueService.feedback_counts(db, username)
        counts = {issue.id: count for issue, count in pairs}
        return aggregation.issue_stats([issue for issue, _ in pairs], counts, now)
