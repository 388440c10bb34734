import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv(override=True)


def _env_bool(name: str, default: bool = False) -> bool:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_list(name: str, default: str) -> list[str]:
    raw_value = os.getenv(name, default)
    return [item.strip() for item in raw_value.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    app_env: str = os.getenv("APP_ENV", "development").strip().lower()
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./testmgmt.db")
    jwt_secret: str = os.getenv("JWT_SECRET", "")
    jwt_algorithm: str = os.getenv("ALGORITHM", "HS256")
    access_token_expire_minutes: int = int(
        os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15")
    )
    refresh_token_expire_days: int = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))
    otp_ttl_minutes: int = int(os.getenv("OTP_TTL_MINUTES", "10"))
    otp_max_per_window: int = int(os.getenv("OTP_MAX_PER_WINDOW", "3"))
    otp_window_minutes: int = int(os.getenv("OTP_WINDOW_MINUTES", "60"))
    otp_debug_requested: bool = _env_bool("OTP_DEBUG", False)
    resend_api_key: str = os.getenv("RESEND_API_KEY", "")
    from_email: str = os.getenv("FROM_EMAIL", "onboarding@resend.dev")
    email_timeout_seconds: int = int(os.getenv("EMAIL_TIMEOUT_SECONDS", "10"))
    cors_origins: list[str] = field(
        default_factory=lambda: _env_list("CORS_ORIGINS", "http://localhost:3000")
    )
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def otp_debug(self) -> bool:
        # Codes never leave the server in production.
        return self.otp_debug_requested and not self.is_production


settings = Settings()
