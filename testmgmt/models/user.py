import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String

from testmgmt.database import Base


class UserRole(str, enum.Enum):
    admin = "admin"
    qa_lead = "qa_lead"
    tester = "tester"
    viewer = "viewer"


class UserEntry(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(
        Enum(UserRole, name="user_role", native_enum=False, length=16),
        nullable=False,
        default=UserRole.viewer,
    )
    email_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
