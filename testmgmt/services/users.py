from datetime import datetime, timezone

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from testmgmt.database import SessionLocal, session_scope
from testmgmt.models.user import UserEntry, UserRole
from testmgmt.schemas.users import UserResponse

_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    try:
        return _hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


class UserStore:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def get_by_email(self, email: str) -> UserEntry | None:
        with session_scope(self._session_factory) as session:
            return session.execute(
                select(UserEntry).where(UserEntry.email == email)
            ).scalar_one_or_none()

    def get_user(self, user_id: int) -> UserResponse | None:
        with session_scope(self._session_factory) as session:
            entry = session.get(UserEntry, user_id)
            if entry is None:
                return None
            return self.to_response(entry)

    def list_users(self) -> list[UserResponse]:
        with session_scope(self._session_factory) as session:
            entries = session.execute(select(UserEntry).order_by(UserEntry.id)).scalars()
            return [self.to_response(entry) for entry in entries]

    def create_user(
        self, email: str, password: str, role: UserRole = UserRole.viewer
    ) -> UserEntry:
        now = datetime.now(timezone.utc)
        with session_scope(self._session_factory) as session:
            existing = session.execute(
                select(UserEntry).where(UserEntry.email == email)
            ).scalar_one_or_none()
            if existing:
                raise ValueError("Email already in use")
            entry = UserEntry(
                email=email,
                password_hash=hash_password(password),
                role=role,
                email_verified=False,
                created_at=now,
                updated_at=now,
            )
            session.add(entry)
            session.flush()
            return entry

    def authenticate(self, email: str, password: str) -> UserEntry | None:
        entry = self.get_by_email(email)
        if entry is None:
            return None
        if not verify_password(entry.password_hash, password):
            return None
        return entry

    def mark_email_verified(self, user_id: int) -> UserEntry:
        with session_scope(self._session_factory) as session:
            entry = session.get(UserEntry, user_id)
            if entry is None:
                raise ValueError("User not found")
            if not entry.email_verified:
                entry.email_verified = True
                entry.updated_at = datetime.now(timezone.utc)
            session.flush()
            return entry

    def set_password(self, user_id: int, password: str) -> None:
        with session_scope(self._session_factory) as session:
            entry = session.get(UserEntry, user_id)
            if entry is None:
                raise ValueError("User not found")
            entry.password_hash = hash_password(password)
            entry.updated_at = datetime.now(timezone.utc)

    @staticmethod
    def to_response(entry: UserEntry) -> UserResponse:
        return UserResponse(
            id=entry.id,
            email=entry.email,
            role=entry.role,
            email_verified=bool(entry.email_verified),
            created_at=entry.created_at,
        )
