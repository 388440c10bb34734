from typing import Optional

from pydantic import BaseModel, Field, field_validator

from testmgmt.models.user import UserRole
from testmgmt.schemas.otp import EMAIL_PATTERN
from testmgmt.schemas.users import UserSummary


class RegisterRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6, max_length=128)
    role: UserRole = UserRole.viewer

    @field_validator("role")
    @classmethod
    def reject_admin_role(cls, value: UserRole) -> UserRole:
        if value == UserRole.admin:
            raise ValueError("Admin accounts cannot be self-registered")
        return value


class RegisterResponse(BaseModel):
    message: str
    email: str
    email_verified: bool
    otp: Optional[str] = None


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in_seconds: int
    user: UserSummary


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1, max_length=2048)


class RefreshResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in_seconds: int
