import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, Index, Integer, String, false

from testmgmt.database import Base


class OtpPurpose(str, enum.Enum):
    verify_email = "verify_email"
    reset_password = "reset_password"


class OtpChallenge(Base):
    __tablename__ = "otp_challenges"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False)
    code = Column(String(6), nullable=False)
    purpose = Column(
        Enum(OtpPurpose, name="otp_purpose", native_enum=False, length=32),
        nullable=False,
    )
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_otp_email_purpose_created", "email", "purpose", "created_at"),
        Index("ix_otp_expires_at", "expires_at"),
        # At most one live challenge per (email, purpose).
        Index(
            "uq_otp_unused_email_purpose",
            "email",
            "purpose",
            unique=True,
            postgresql_where=used == false(),
            sqlite_where=used == false(),
        ),
    )
