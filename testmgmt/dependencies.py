from datetime import timedelta
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import sessionmaker

from testmgmt.config import Settings, settings
from testmgmt.database import SessionLocal
from testmgmt.models.user import UserRole
from testmgmt.services.auth import AuthService
from testmgmt.services.email import EmailNotifier
from testmgmt.services.otp import Notifier, OtpChallengeManager, SqlAlchemyChallengeStore
from testmgmt.services.tokens import TokenData, TokenError, TokenIssuer
from testmgmt.services.users import UserStore


def build_token_issuer(config: Settings) -> TokenIssuer:
    return TokenIssuer(
        config.jwt_secret,
        config.jwt_algorithm,
        config.access_token_expire_minutes,
        config.refresh_token_expire_days,
    )


def build_otp_manager(
    config: Settings, session_factory: sessionmaker, notifier: Notifier
) -> OtpChallengeManager:
    return OtpChallengeManager(
        SqlAlchemyChallengeStore(session_factory),
        notifier,
        ttl=timedelta(minutes=config.otp_ttl_minutes),
        max_per_window=config.otp_max_per_window,
        window=timedelta(minutes=config.otp_window_minutes),
        expose_codes=config.otp_debug,
    )


def build_auth_service(
    config: Settings,
    session_factory: sessionmaker,
    notifier: Notifier | None = None,
) -> AuthService:
    if notifier is None:
        notifier = EmailNotifier(
            config.resend_api_key,
            config.from_email,
            ttl_minutes=config.otp_ttl_minutes,
            timeout=config.email_timeout_seconds,
        )
    return AuthService(
        UserStore(session_factory),
        build_otp_manager(config, session_factory, notifier),
        build_token_issuer(config),
        expose_codes=config.otp_debug,
    )


@lru_cache(maxsize=1)
def get_auth_service() -> AuthService:
    return build_auth_service(settings, SessionLocal)


@lru_cache(maxsize=1)
def get_token_issuer() -> TokenIssuer:
    return build_token_issuer(settings)


@lru_cache(maxsize=1)
def get_user_store() -> UserStore:
    return UserStore(SessionLocal)


def get_current_user(
    authorization: str | None = Header(default=None),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> TokenData:
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
        )
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header",
        )
    try:
        return tokens.decode_access_token(token)
    except TokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


def require_roles(*roles: UserRole):
    allowed = {role.value for role in roles}

    def dependency(current: TokenData = Depends(get_current_user)) -> TokenData:
        if current.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current

    return dependency
