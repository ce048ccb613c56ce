import uuid
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt.exceptions import PyJWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feedback_dashboard.config import get_settings
from feedback_dashboard.core.exceptions import BadRequestError, UnauthorizedError
from feedback_dashboard.core.security import decode_token
from feedback_dashboard.database import async_session_factory, get_db
from feedback_dashboard.models.user import User
from feedback_dashboard.services.notifications import NotificationBridge, NotificationHub

security_scheme = HTTPBearer()


async def get_token_payload(
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
) -> dict:
    """Validate the bearer access token and return its claims."""
    try:
        payload = decode_token(credentials.credentials)
        if payload.get("type") != "access":
            raise UnauthorizedError("Invalid token type")
        uuid.UUID(payload["sub"])
    except (PyJWTError, KeyError, ValueError):
        raise UnauthorizedError("Invalid or expired token")
    return payload


async def get_current_user(
    payload: dict = Depends(get_token_payload),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Extract and validate the current user from JWT token."""
    result = await db.execute(select(User).where(User.id == uuid.UUID(payload["sub"])))
    user = result.scalar_one_or_none()

    if user is None:
        raise UnauthorizedError("User not found")

    return user


def get_notification_hub(request: Request) -> NotificationHub:
    return request.app.state.notification_hub


async def get_notification_bridge(
    current_user: User = Depends(get_current_user),
    hub: NotificationHub = Depends(get_notification_hub),
) -> NotificationBridge:
    return hub.bridge_for(current_user.username)


def get_timezone(
    tz: str | None = Query(default=None, description="IANA zone, e.g. Asia/Seoul"),
) -> ZoneInfo:
    """Viewer's time zone for date bucketing; falls back to DEFAULT_TIMEZONE."""
    name = tz or get_settings().DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise BadRequestError(f"Unknown time zone: {name}")


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session_factory
