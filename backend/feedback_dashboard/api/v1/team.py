from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from feedback_dashboard.api.deps import get_current_user
from feedback_dashboard.database import get_db
from feedback_dashboard.models.user import User
from feedback_dashboard.schemas.auth import TeamResponse, UserResponse
from feedback_dashboard.services.team import TeamService

router = APIRouter(prefix="/team", tags=["Team"])


@router.get("/", response_model=TeamResponse)
async def list_team(
    db: AsyncSession = Depends(get_db),
    _current_user: User = Depends(get_current_user),
):
    """Team roster."""
    users, total = await TeamService.roster(db)
    return TeamResponse(
        items=[UserResponse.model_validate(u) for u in users],
        total=total,
    )
