import logging
import uuid
from datetime import datetime, timezone

import jwt
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from feedback_dashboard.config import get_settings
from feedback_dashboard.core.exceptions import (
    BadRequestError,
    ConflictError,
    UnauthorizedError,
)
from feedback_dashboard.core.security import (
    create_access_token,
    create_password_reset_token,
    create_refresh_token,
    decode_token,
    hash_password,
    token_blocklist,
    verify_password,
)
from feedback_dashboard.models.feedback import Feedback
from feedback_dashboard.models.issue import Issue
from feedback_dashboard.models.user import User
from feedback_dashboard.services.row_store import RowStore

logger = logging.getLogger(__name__)


class AuthService:
    @staticmethod
    def issue_tokens(user: User) -> dict:
        settings = get_settings()
        return {
            "access_token": create_access_token(user.id, user.username),
            "refresh_token": create_refresh_token(user.id),
            "token_type": "bearer",
            "expires_in": settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        }

    @staticmethod
    async def _find(db: AsyncSession, *conditions) -> User | None:
        result = await db.execute(select(User).where(*conditions))
        return result.scalar_one_or_none()

    @staticmethod
    async def is_username_available(db: AsyncSession, username: str) -> bool:
        return await AuthService._find(db, User.username == username) is None

    @staticmethod
    async def register(
        db: AsyncSession, email: str, password: str, username: str
    ) -> User:
        """Register a new user."""
        if await AuthService._find(db, User.email == email):
            raise ConflictError("Email already registered")
        if not await AuthService.is_username_available(db, username):
            raise ConflictError("Username already taken")

        user = User(
            email=email,
            username=username,
            password_hash=hash_password(password),
        )
        user = await RowStore(db).insert(user)
        logger.info("Registered user %s", user.username)
        return user

    @staticmethod
    async def authenticate(db: AsyncSession, email: str, password: str) -> User:
        user = await AuthService._find(db, User.email == email)

        if user is None or not verify_password(password, user.password_hash):
            logger.info("Failed sign-in for %s", email)
            raise UnauthorizedError("Invalid email or password")

        return user

    @staticmethod
    async def login(db: AsyncSession, email: str, password: str) -> dict:
        """Authenticate user and return tokens."""
        user = await AuthService.authenticate(db, email, password)
        return AuthService.issue_tokens(user)

    @staticmethod
    def logout(payload: dict) -> None:
        """Revoke the presented access token for the rest of its lifetime."""
        expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        token_blocklist.revoke(payload["jti"], expires_at)
        logger.info("Signed out %s", payload.get("username"))

    @staticmethod
    async def refresh_token(db: AsyncSession, refresh_token: str) -> dict:
        """Refresh access token using refresh token."""
        try:
            payload = decode_token(refresh_token)
            if payload.get("type") != "refresh":
                raise UnauthorizedError("Invalid token type")
            user_id = uuid.UUID(payload["sub"])
        except (jwt.PyJWTError, KeyError, ValueError):
            raise UnauthorizedError("Invalid or expired refresh token")

        user = await AuthService._find(db, User.id == user_id)
        if user is None:
            raise UnauthorizedError("User not found")

        # one-time use
        token_blocklist.revoke(
            payload["jti"], datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        )
        return AuthService.issue_tokens(user)

    @staticmethod
    async def request_password_reset(db: AsyncSession, email: str) -> str | None:
        """Issue a reset token for a known email.

        The caller always answers the same way so the endpoint does not reveal
        which emails are registered.
        """
        user = await AuthService._find(db, User.email == email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return None
        token = create_password_reset_token(user.id, user.password_hash)
        # Delivery is handled outside this service.
        logger.info("Password reset token issued for %s", user.username)
        logger.debug("Reset token for %s: %s", user.username, token)
        return token

    @staticmethod
    async def confirm_password_reset(
        db: AsyncSession, token: str, new_password: str
    ) -> User:
        try:
            payload = decode_token(token)
            if payload.get("type") != "reset":
                raise BadRequestError("Invalid reset token")
            user_id = uuid.UUID(payload["sub"])
        except (jwt.PyJWTError, KeyError, ValueError):
            raise BadRequestError("Invalid or expired reset token")

        user = await AuthService._find(db, User.id == user_id)
        if user is None or payload.get("pwd") != user.password_hash[-12:]:
            raise BadRequestError("Invalid or expired reset token")

        return await RowStore(db).update(
            User, user.id, {"password_hash": hash_password(new_password)}
        )

    @staticmethod
    async def update_profile(
        db: AsyncSession,
        user: User,
        username: str | None = None,
        email: str | None = None,
    ) -> User:
        """Settings screen: change username and/or email."""
        values = {}
        if email is not None and email != user.email:
            if await AuthService._find(db, User.email == email):
                raise ConflictError("Email already registered")
            values["email"] = email
        if username is not None and username != user.username:
            if not await AuthService.is_username_available(db, username):
                raise ConflictError("Username already taken")
            # owned rows are keyed by username
            await db.execute(
                update(Feedback)
                .where(Feedback.username == user.username)
                .values(username=username)
            )
            await db.execute(
                update(Issue)
                .where(Issue.username == user.username)
                .values(username=username)
            )
            values["username"] = username

        if not values:
            return user
        return await RowStore(db).update(User, user.id, values)
