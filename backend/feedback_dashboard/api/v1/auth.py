from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from feedback_dashboard.api.deps import (
    get_current_user,
    get_notification_hub,
    get_token_payload,
)
from feedback_dashboard.database import get_db
from feedback_dashboard.models.user import User
from feedback_dashboard.schemas.auth import (
    MessageResponse,
    PasswordResetConfirmRequest,
    PasswordResetRequest,
    ProfileUpdateRequest,
    RefreshTokenRequest,
    TokenResponse,
    UserLoginRequest,
    UsernameAvailabilityResponse,
    UserRegisterRequest,
    UserResponse,
)
from feedback_dashboard.services.auth import AuthService
from feedback_dashboard.services.notifications import NotificationHub

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=UserResponse, status_code=201)
async def register(body: UserRegisterRequest, db: AsyncSession = Depends(get_db)):
    """Register a new user account."""
    user = await AuthService.register(
        db=db, email=body.email, password=body.password, username=body.username
    )
    return user


@router.get("/username-available", response_model=UsernameAvailabilityResponse)
async def username_available(
    username: str = Query(min_length=3, max_length=20),
    db: AsyncSession = Depends(get_db),
):
    """Check whether a username is still free (used while typing)."""
    available = await AuthService.is_username_available(db, username)
    return UsernameAvailabilityResponse(username=username, available=available)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: UserLoginRequest,
    db: AsyncSession = Depends(get_db),
    hub: NotificationHub = Depends(get_notification_hub),
):
    """Login and receive JWT tokens."""
    user = await AuthService.authenticate(db=db, email=body.email, password=body.password)
    # start collecting realtime notifications for this session
    hub.bridge_for(user.username)
    return AuthService.issue_tokens(user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(payload: dict = Depends(get_token_payload)):
    """Invalidate the presented access token."""
    AuthService.logout(payload)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    body: RefreshTokenRequest, db: AsyncSession = Depends(get_db)
):
    """Refresh the access token using a refresh token."""
    return await AuthService.refresh_token(db=db, refresh_token=body.refresh_token)


@router.post(
    "/password-reset",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def request_password_reset(
    body: PasswordResetRequest, db: AsyncSession = Depends(get_db)
):
    """Start a password reset. The answer is the same for unknown emails."""
    await AuthService.request_password_reset(db=db, email=body.email)
    return MessageResponse(
        message="If the email is registered, a reset link has been sent."
    )


@router.post("/password-reset/confirm", response_model=MessageResponse)
async def confirm_password_reset(
    body: PasswordResetConfirmRequest, db: AsyncSession = Depends(get_db)
):
    await AuthService.confirm_password_reset(
        db=db, token=body.token, new_password=body.password
    )
    return MessageResponse(message="Password updated")


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get the current authenticated user's profile."""
    return current_user


@router.patch("/me", response_model=UserResponse)
async def update_me(
    body: ProfileUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    hub: NotificationHub = Depends(get_notification_hub),
):
    """Update username and/or email from the settings screen."""
    previous = current_user.username
    user = await AuthService.update_profile(
        db=db, user=current_user, username=body.username, email=body.email
    )
    if user.username != previous:
        # notifications are routed by username
        hub.rename(previous, user.username)
    return user
