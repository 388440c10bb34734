from typing import Optional

from pydantic import BaseModel, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
CODE_PATTERN = r"^\d{6}$"


class EmailRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)


class VerifyEmailRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    code: str = Field(min_length=6, max_length=6, pattern=CODE_PATTERN)


class ResetPasswordRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    code: str = Field(min_length=6, max_length=6, pattern=CODE_PATTERN)
    new_password: str = Field(min_length=6, max_length=128)


class OtpResponse(BaseModel):
    message: str
    expires_in_seconds: Optional[int] = None
    otp: Optional[str] = None


class MessageResponse(BaseModel):
    message: str


class CleanupResponse(BaseModel):
    removed: int
