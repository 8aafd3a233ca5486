import os
from enum import Enum

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    APP_NAME: str = "flaresolverr-core"
    APP_DESCRIPTION: str | None = None
    APP_VERSION: str | None = None


class EnvironmentOption(str, Enum):
    LOCAL = "local"
    STAGING = "staging"
    PRODUCTION = "production"


class EnvironmentSettings(BaseSettings):
    ENVIRONMENT: EnvironmentOption = EnvironmentOption.LOCAL


class LoggingSettings(BaseSettings):
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


class FlareSolverrSettings(BaseSettings):
    """Configuration for the FlareSolverr proxy client.

    Every FlareSolverr session is a real Chromium on the proxy host
    (~200-500 MB each). Keep one client per provider and let the
    session TTL drive cookie refreshes instead of creating new sessions.

    Recommended proxy-side limits (docker):
    - MAX_SESSIONS=3
    - SESSION_TTL=300000
    """

    # ============================================
    # Proxy Endpoint
    # ============================================
    FSR_URL: str = "http://flaresolverr:8191/v1"

    # Per-command timeout sent to the proxy as maxTimeout (milliseconds)
    FSR_TIMEOUT_MS: int = 60000

    # ============================================
    # Session Settings
    # ============================================
    # Age after which ensure_session() revisits the seed URL (seconds)
    FSR_SESSION_TTL: int = 300  # 5 minutes

    # waitInSeconds used for the cookie refresh visit
    FSR_REFRESH_WAIT_SECONDS: int = 1

    # waitInSeconds used by get()/post() when the caller does not pass one
    FSR_DEFAULT_WAIT_SECONDS: int = 2

    # ============================================
    # Retry / Challenge Settings
    # ============================================
    FSR_MAX_RETRIES: int = 3
    FSR_RETRY_BASE_DELAY: float = 2.0  # attempt * base seconds

    # Pause after a solved challenge so the proxy's cookie jar settles
    FSR_CHALLENGE_SETTLE_DELAY: float = 2.0


class Settings(
    AppSettings,
    EnvironmentSettings,
    LoggingSettings,
    FlareSolverrSettings,
):
    model_config = SettingsConfigDict(
        env_file=os.path.join(os.path.dirname(os.path.realpath(__file__)), "..", "..", ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
