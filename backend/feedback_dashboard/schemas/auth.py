import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, model_validator

USERNAME_PATTERN = r"^[A-Za-z0-9_.-]+$"


class UserRegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=20, pattern=USERNAME_PATTERN)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    confirm_password: str

    @model_validator(mode="after")
    def validate_passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class UserLoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirmRequest(BaseModel):
    token: str
    password: str = Field(min_length=6, max_length=128)
    confirm_password: str

    @model_validator(mode="after")
    def validate_passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class UsernameAvailabilityResponse(BaseModel):
    username: str
    available: bool


class ProfileUpdateRequest(BaseModel):
    username: str | None = Field(
        default=None, min_length=3, max_length=20, pattern=USERNAME_PATTERN
    )
    email: EmailStr | None = None


class MessageResponse(BaseModel):
    message: str


class UserResponse(BaseModel):
    id: uuid.UUID
    username: str
    email: str
    initials: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TeamResponse(BaseModel):
    items: list[UserResponse]
    total: int
