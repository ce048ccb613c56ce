import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from feedback_dashboard.config import get_settings

settings = get_settings()


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return bcrypt.checkpw(
        plain_password.encode("utf-8"), hashed_password.encode("utf-8")
    )


def _encode(user_id: uuid.UUID, token_type: str, lifetime: timedelta, **claims) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + lifetime,
        **claims,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_access_token(user_id: uuid.UUID, username: str) -> str:
    """Create a JWT access token."""
    return _encode(
        user_id,
        "access",
        timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES),
        username=username,
    )


def create_refresh_token(user_id: uuid.UUID) -> str:
    """Create a JWT refresh token."""
    return _encode(
        user_id, "refresh", timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS)
    )


def create_password_reset_token(user_id: uuid.UUID, password_hash: str) -> str:
    """Single-purpose reset token, void once the password hash changes."""
    return _encode(
        user_id,
        "reset",
        timedelta(minutes=settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES),
        pwd=password_hash[-12:],
    )


def decode_token(token: str) -> dict:
    """Decode and verify a JWT token."""
    payload = jwt.decode(
        token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
    )
    if token_blocklist.is_revoked(payload.get("jti")):
        raise jwt.InvalidTokenError("Token has been revoked")
    return payload


class TokenBlocklist:
    """Signed-out token ids, kept until the token would have expired anyway."""

    def __init__(self):
        self._revoked: dict[str, datetime] = {}

    def revoke(self, jti: str, expires_at: datetime) -> None:
        self._purge()
        self._revoked[jti] = expires_at

    def is_revoked(self, jti: str | None) -> bool:
        if jti is None:
            return False
        self._purge()
        expires_at = self._revoked.get(jti)
        return expires_at is not None and expires_at > datetime.now(timezone.utc)

    def __len__(self) -> int:
        return len(self._revoked)

    def _purge(self) -> None:
        now = datetime.now(timezone.utc)
        self._revoked = {k: v for k, v in self._revoked.items() if v > now}


token_blocklist = TokenBlocklist()
