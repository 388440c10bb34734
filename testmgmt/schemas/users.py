from datetime import datetime

from pydantic import BaseModel

from testmgmt.models.user import UserRole


class UserResponse(BaseModel):
    id: int
    email: str
    role: UserRole
    email_verified: bool
    created_at: datetime


class UserSummary(BaseModel):
    id: int
    email: str
    role: UserRole
