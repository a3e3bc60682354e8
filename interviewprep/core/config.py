import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Admin access (X-Admin-Key)
    ADMIN_KEY: Optional[str] = None

    # Classified retry (rate-limit aware), delays in seconds
    RETRY_MAX_RETRIES: int = 3
    RETRY_INITIAL_DELAY: float = 0.3
    RETRY_MAX_DELAY: float = 3.0
    RETRY_FACTOR: float = 2.0

    # Unconditional retry for raw connection-string access
    DB_RETRY_ATTEMPTS: int = 3
    DB_RETRY_INITIAL_DELAY: float = 1.0

    # Daily limit applied when a plan cannot be resolved
    FREE_TIER_DAILY_LIMIT: int = 3

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"  # comma-separated

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("interviewprep")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "DATABASE_URL",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    if cfg.RETRY_MAX_RETRIES < 1:
        message = "RETRY_MAX_RETRIES must be at least 1"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
