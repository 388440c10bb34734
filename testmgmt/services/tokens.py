from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt


class TokenError(ValueError):
    pass


@dataclass(frozen=True)
class TokenData:
    user_id: int
    email: str
    role: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        access_expire_minutes: int = 15,
        refresh_expire_days: int = 7,
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self.access_ttl = timedelta(minutes=access_expire_minutes)
        self.refresh_ttl = timedelta(days=refresh_expire_days)

    def ensure_configured(self) -> None:
        if not self._secret:
            raise TokenError("JWT secret is not configured")

    def create_access_token(self, user_id: int, email: str, role: str) -> str:
        return self._encode(user_id, email, role, "access", self.access_ttl)

    def create_refresh_token(self, user_id: int, email: str, role: str) -> str:
        return self._encode(user_id, email, role, "refresh", self.refresh_ttl)

    def decode_access_token(self, token: str) -> TokenData:
        return self._decode(token, expected_type="access")

    def decode_refresh_token(self, token: str) -> TokenData:
        return self._decode(token, expected_type="refresh")

    def _encode(
        self, user_id: int, email: str, role: str, token_type: str, ttl: timedelta
    ) -> str:
        self.ensure_configured()
        now = _utcnow()
        payload = {
            "sub": str(user_id),
            "email": email,
            "role": role,
            "type": token_type,
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def _decode(self, token: str, expected_type: str) -> TokenData:
        if not token:
            raise TokenError("Token is missing")
        self.ensure_configured()
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError as exc:
            raise TokenError("Token has expired") from exc
        except jwt.InvalidTokenError as exc:
            raise TokenError("Invalid token") from exc
        if payload.get("type") != expected_type:
            raise TokenError("Invalid token type")
        return TokenData(
            user_id=_parse_subject(payload),
            email=payload.get("email", ""),
            role=payload.get("role", ""),
        )


def _parse_subject(payload: dict) -> int:
    subject = payload.get("sub")
    if not subject:
        raise TokenError("Token subject is missing")
    try:
        return int(subject)
    except (TypeError, ValueError) as exc:
        raise TokenError("Invalid token subject") from exc
