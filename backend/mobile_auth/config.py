"""Application configuration management"""

import json
import math
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, List
from urllib.parse import quote_plus

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode

from mobile_auth.core.exceptions import ConfigurationError

# Base directory: backend/
_BASE_DIR = Path(__file__).resolve().parent.parent

DEFAULT_ACCESS_TOKEN_TTL_SECONDS = 60 * 60 * 8
DEFAULT_CHALLENGE_TTL_SECONDS = 120
DEFAULT_REFRESH_TOKEN_TTL_DAYS = 30


def _positive_or_default(value: Any, default: float) -> float:
    """Return ``value`` as a float when it is a positive finite number, else ``default``."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number) or number <= 0:
        return default
    return number


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    APP_NAME: str = "HR Mobile Auth"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # Database (PostgreSQL)
    DATABASE_URL: str = ""
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "hr_mobile"
    POSTGRES_USER: str = "hr_mobile"
    POSTGRES_PASSWORD: str = "hr_mobile"
    DATABASE_POOL_SIZE: int = 30
    DATABASE_MAX_OVERFLOW: int = 20
    DB_INIT_MODE: str = "create_all"  # create_all | off

    # Mobile access tokens
    MOBILE_JWT_SECRET: str = ""
    MOBILE_JWT_ALGORITHM: str = "HS256"
    MOBILE_ACCESS_TOKEN_TTL_SECONDS: int = DEFAULT_ACCESS_TOKEN_TTL_SECONDS

    # Device challenges
    MOBILE_CHALLENGE_TTL_SECONDS: float = DEFAULT_CHALLENGE_TTL_SECONDS

    # Mobile refresh tokens
    MOBILE_REFRESH_TOKEN_SECRET: str = ""
    MOBILE_REFRESH_TOKEN_TTL_DAYS: float = DEFAULT_REFRESH_TOKEN_TTL_DAYS
    MOBILE_REFRESH_COOKIE_NAME: str = "mobile_refresh_token"
    MOBILE_AUTH_PATH: str = "/api/mobile/auth"
    MOBILE_REFRESH_FAMILY_MAX_SIZE: int = 50

    # Rate Limiting
    RATE_LIMIT_WINDOW_SECONDS: int = 300
    MOBILE_CHALLENGE_RATE_LIMIT: int = 60
    MOBILE_LOGOUT_ALL_RATE_LIMIT: int = 20
    MOBILE_LOGIN_RATE_LIMIT: int = 10
    MOBILE_LOGIN_RATE_WINDOW_SECONDS: int = 60
    MOBILE_REFRESH_RATE_LIMIT: int = 60
    MOBILE_REFRESH_RATE_WINDOW_SECONDS: int = 60

    # Login lockout
    MAX_FAILED_LOGIN_ATTEMPTS: int = 5
    ACCOUNT_LOCKOUT_MINUTES: int = 30

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # CORS
    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["http://localhost:3000"]

    class Config:
        env_file = ".env"
        case_sensitive = True

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, value: Any) -> Any:
        """
        Accept JSON array or comma-separated origins from env.

        Examples:
            CORS_ORIGINS=["http://localhost:3000","http://example.com"]
            CORS_ORIGINS=http://localhost:3000,http://example.com
        """
        if not isinstance(value, str):
            return value

        raw = value.strip()
        if not raw:
            return []

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None

        if isinstance(parsed, str):
            return [parsed]
        if isinstance(parsed, list):
            return [str(origin).strip() for origin in parsed if str(origin).strip()]

        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    @field_validator("MOBILE_CHALLENGE_TTL_SECONDS", mode="before")
    @classmethod
    def _validate_challenge_ttl(cls, value: Any) -> float:
        return _positive_or_default(value, DEFAULT_CHALLENGE_TTL_SECONDS)

    @field_validator("MOBILE_REFRESH_TOKEN_TTL_DAYS", mode="before")
    @classmethod
    def _validate_refresh_ttl(cls, value: Any) -> float:
        return _positive_or_default(value, DEFAULT_REFRESH_TOKEN_TTL_DAYS)

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    def get_log_file(self) -> str:
        p = self.LOG_FILE
        if not p or p.startswith(".."):
            return str(_BASE_DIR.parent / "logs" / "app.log")
        return p

    def get_database_url(self) -> str:
        """
        Resolve database URL.

        Priority:
          1) Explicit DATABASE_URL
          2) Construct from POSTGRES_* parts with safe URL encoding
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL

        user = quote_plus(self.POSTGRES_USER)
        password = quote_plus(self.POSTGRES_PASSWORD)
        return (
            f"postgresql://{user}:{password}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    def validate_security_settings(self) -> None:
        """
        Validate signing secrets at startup.

        Raises:
            ConfigurationError: If a secret is missing, or weak in production.
        """
        if not self.MOBILE_JWT_SECRET:
            raise ConfigurationError("MOBILE_JWT_SECRET is not set")
        if not self.MOBILE_REFRESH_TOKEN_SECRET:
            raise ConfigurationError("MOBILE_REFRESH_TOKEN_SECRET is not set")

        if not self.is_production:
            return

        insecure_secret_markers = {
            "change-me",
            "dev-mobile-jwt-secret",
            "dev-mobile-refresh-token-secret",
        }
        for name in ("MOBILE_JWT_SECRET", "MOBILE_REFRESH_TOKEN_SECRET"):
            value = getattr(self, name)
            if value in insecure_secret_markers or len(value) < 32:
                raise ConfigurationError(
                    f"Insecure {name} for production. Use a strong key (e.g. `openssl rand -hex 32`)."
                )
        if self.MOBILE_JWT_SECRET == self.MOBILE_REFRESH_TOKEN_SECRET:
            raise ConfigurationError(
                "MOBILE_JWT_SECRET and MOBILE_REFRESH_TOKEN_SECRET must differ in production."
            )


@dataclass(frozen=True)
class MobileAuthConfig:
    """Immutable configuration handed to the mobile auth components."""

    jwt_secret: str
    refresh_token_secret: str
    jwt_algorithm: str = "HS256"
    access_token_ttl_seconds: int = DEFAULT_ACCESS_TOKEN_TTL_SECONDS
    challenge_ttl_seconds: float = DEFAULT_CHALLENGE_TTL_SECONDS
    refresh_token_ttl_days: float = DEFAULT_REFRESH_TOKEN_TTL_DAYS
    refresh_family_max_size: int = 50
    refresh_cookie_name: str = "mobile_refresh_token"
    auth_path: str = "/api/mobile/auth"
    secure_cookies: bool = False

    def __post_init__(self):
        # Frozen dataclass: normalise through object.__setattr__.
        object.__setattr__(
            self,
            "challenge_ttl_seconds",
            _positive_or_default(self.challenge_ttl_seconds, DEFAULT_CHALLENGE_TTL_SECONDS),
        )
        object.__setattr__(
            self,
            "refresh_token_ttl_days",
            _positive_or_default(self.refresh_token_ttl_days, DEFAULT_REFRESH_TOKEN_TTL_DAYS),
        )
        object.__setattr__(
            self,
            "access_token_ttl_seconds",
            int(_positive_or_default(self.access_token_ttl_seconds, DEFAULT_ACCESS_TOKEN_TTL_SECONDS)),
        )

    @classmethod
    def from_settings(cls, source: "Settings") -> "MobileAuthConfig":
        return cls(
            jwt_secret=source.MOBILE_JWT_SECRET,
            refresh_token_secret=source.MOBILE_REFRESH_TOKEN_SECRET,
            jwt_algorithm=source.MOBILE_JWT_ALGORITHM,
            access_token_ttl_seconds=source.MOBILE_ACCESS_TOKEN_TTL_SECONDS,
            challenge_ttl_seconds=source.MOBILE_CHALLENGE_TTL_SECONDS,
            refresh_token_ttl_days=source.MOBILE_REFRESH_TOKEN_TTL_DAYS,
            refresh_family_max_size=source.MOBILE_REFRESH_FAMILY_MAX_SIZE,
            refresh_cookie_name=source.MOBILE_REFRESH_COOKIE_NAME,
            auth_path=source.MOBILE_AUTH_PATH,
            secure_cookies=source.is_production,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
