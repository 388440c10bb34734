"""One-time code challenges for email verification and password reset.

The manager is the only component that decides whether an
``(email, code, purpose)`` tuple is currently valid. It owns three policies:

* a sliding rate-limit window per ``(email, purpose)``;
* supersession, so at most one unused challenge exists per pair;
* single-use verification with one undifferentiated failure.

Persistence and delivery are collaborators passed to the constructor.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import sessionmaker

from testmgmt.database import SessionLocal, session_scope
from testmgmt.models.otp import OtpChallenge, OtpPurpose

LOGGER = logging.getLogger(__name__)

CODE_MIN = 100000
CODE_MAX = 999999


class OtpError(Exception):
    message = "OTP error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.message)


class RateLimited(OtpError):
    message = "Too many codes requested. Please try again later."


class InvalidOrExpired(OtpError):
    message = "Invalid or expired OTP"


@dataclass(frozen=True)
class IssuedChallenge:
    email: str
    code: str
    purpose: OtpPurpose
    expires_at: datetime
    delivered: bool


class Notifier(Protocol):
    def send(self, destination: str, code: str, purpose: OtpPurpose) -> bool: ...


class ChallengeStore(Protocol):
    def count_recent(self, email: str, purpose: OtpPurpose, since: datetime) -> int: ...

    def invalidate_unused(self, email: str, purpose: OtpPurpose) -> int: ...

    def insert(self, challenge: OtpChallenge) -> None: ...

    def supersede_and_insert(self, challenge: OtpChallenge) -> int: ...

    def find_valid(
        self, email: str, code: str, purpose: OtpPurpose, now: datetime
    ) -> Optional[OtpChallenge]: ...

    def mark_used(self, challenge_id: int) -> bool: ...

    def delete_expired(self, now: datetime) -> int: ...


class SqlAlchemyChallengeStore:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def count_recent(self, email: str, purpose: OtpPurpose, since: datetime) -> int:
        with session_scope(self._session_factory) as session:
            return session.execute(
                select(func.count(OtpChallenge.id)).where(
                    OtpChallenge.email == email,
                    OtpChallenge.purpose == purpose,
                    OtpChallenge.created_at >= since,
                )
            ).scalar_one()

    def invalidate_unused(self, email: str, purpose: OtpPurpose) -> int:
        with session_scope(self._session_factory) as session:
            return self._invalidate_unused(session, email, purpose)

    def insert(self, challenge: OtpChallenge) -> None:
        with session_scope(self._session_factory) as session:
            session.add(challenge)
            session.flush()

    def supersede_and_insert(self, challenge: OtpChallenge) -> int:
        """Invalidate live challenges for the pair and insert ``challenge``
        in one transaction. Returns the number of superseded rows."""
        with session_scope(self._session_factory) as session:
            superseded = self._invalidate_unused(
                session, challenge.email, challenge.purpose
            )
            session.add(challenge)
            session.flush()
            return superseded

    def find_valid(
        self, email: str, code: str, purpose: OtpPurpose, now: datetime
    ) -> Optional[OtpChallenge]:
        with session_scope(self._session_factory) as session:
            return session.execute(
                select(OtpChallenge)
                .where(
                    OtpChallenge.email == email,
                    OtpChallenge.code == code,
                    OtpChallenge.purpose == purpose,
                    OtpChallenge.used.is_(False),
                    OtpChallenge.expires_at > now,
                )
                .order_by(OtpChallenge.created_at.desc())
                .limit(1)
            ).scalar_one_or_none()

    def mark_used(self, challenge_id: int) -> bool:
        with session_scope(self._session_factory) as session:
            result = session.execute(
                update(OtpChallenge)
                .where(OtpChallenge.id == challenge_id, OtpChallenge.used.is_(False))
                .values(used=True)
            )
            return result.rowcount > 0

    def delete_expired(self, now: datetime) -> int:
        with session_scope(self._session_factory) as session:
            result = session.execute(
                delete(OtpChallenge).where(OtpChallenge.expires_at < now)
            )
            return result.rowcount

    @staticmethod
    def _invalidate_unused(session, email: str, purpose: OtpPurpose) -> int:
        result = session.execute(
            update(OtpChallenge)
            .where(
                OtpChallenge.email == email,
                OtpChallenge.purpose == purpose,
                OtpChallenge.used.is_(False),
            )
            .values(used=True)
        )
        return result.rowcount


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OtpChallengeManager:
    def __init__(
        self,
        store: ChallengeStore,
        notifier: Notifier,
        *,
        ttl: timedelta = timedelta(minutes=10),
        max_per_window: int = 3,
        window: timedelta = timedelta(minutes=60),
        clock: Optional[Callable[[], datetime]] = None,
        expose_codes: bool = False,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._ttl = ttl
        self._max_per_window = max_per_window
        self._window = window
        self._clock = clock or _utcnow
        self._expose_codes = expose_codes

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def issue(self, email: str, purpose: OtpPurpose | str) -> IssuedChallenge:
        purpose = OtpPurpose(purpose)
        now = self._clock()

        recent = self._store.count_recent(email, purpose, now - self._window)
        if recent >= self._max_per_window:
            LOGGER.warning(
                "OTP rate limit reached for %s (%s): %d in window",
                email,
                purpose.value,
                recent,
            )
            raise RateLimited()

        code = self._generate_code()
        expires_at = now + self._ttl
        challenge = OtpChallenge(
            email=email,
            code=code,
            purpose=purpose,
            expires_at=expires_at,
            used=False,
            created_at=now,
        )
        superseded = self._store.supersede_and_insert(challenge)
        if superseded:
            LOGGER.debug(
                "Superseded %d OTP(s) for %s (%s)", superseded, email, purpose.value
            )

        delivered = self._deliver(email, code, purpose)
        LOGGER.info("OTP issued to %s for %s", email, purpose.value)
        return IssuedChallenge(
            email=email,
            code=code,
            purpose=purpose,
            expires_at=expires_at,
            delivered=delivered,
        )

    def verify(self, email: str, code: str, purpose: OtpPurpose | str) -> bool:
        purpose = OtpPurpose(purpose)
        challenge = self._store.find_valid(email, code, purpose, self._clock())
        # A concurrent verify may have consumed the row between the two calls.
        if challenge is None or not self._store.mark_used(challenge.id):
            LOGGER.info("OTP verification failed for %s (%s)", email, purpose.value)
            raise InvalidOrExpired()
        LOGGER.info("OTP verified for %s (%s)", email, purpose.value)
        return True

    def cleanup(self) -> int:
        removed = self._store.delete_expired(self._clock())
        LOGGER.info("Cleaned up %d expired OTP(s)", removed)
        return removed

    def _deliver(self, email: str, code: str, purpose: OtpPurpose) -> bool:
        try:
            delivered = bool(self._notifier.send(email, code, purpose))
        except Exception:
            LOGGER.exception("Notifier raised while sending OTP to %s", email)
            delivered = False
        if not delivered:
            LOGGER.warning("OTP delivery failed for %s (%s)", email, purpose.value)
            if self._expose_codes:
                LOGGER.warning(
                    "OTP code for %s (%s): %s", email, purpose.value, code
                )
        return delivered

    @staticmethod
    def _generate_code() -> str:
        return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))
