from sqlalchemy.ext.asyncio import AsyncSession

from feedback_dashboard.models.user import User
from feedback_dashboard.services.row_store import RowStore


class TeamService:
    @staticmethod
    async def roster(db: AsyncSession) -> tuple[list[User], int]:
        """All registered users, newest first."""
        result = await RowStore(db).read(
            User, order_by=[User.created_at.desc(), User.id.asc()], count=True
        )
        return result.rows, result.count or 0
