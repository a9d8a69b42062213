# ledgersync/core/config.py

import os
from functools import lru_cache
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file)
    """
    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///ledgersync.db"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # QuickBooks Online API
    QBO_ENV: str = "sandbox"  # sandbox | production
    QBO_REALM_ID: str = ""
    QBO_ACCESS_TOKEN: str = ""
    QBO_MINOR_VERSION: int = 65
    QBO_REQUEST_TIMEOUT: float = 30.0

    # Webhook verification (pre-shared verifier token from the Intuit developer portal)
    QBO_WEBHOOK_VERIFIER: str = ""

    # Scheduling
    SYNC_SCHEDULE_ENABLED: bool = False
    BUSINESS_TIMEZONE: str = "America/Los_Angeles"
    BUSINESS_HOURS_START: int = 7   # inclusive, local hour
    BUSINESS_HOURS_END: int = 19    # exclusive, local hour
    SYNC_RETRY_BACKOFF_SECONDS: float = 2.0

    # History & recommendations
    SYNC_HISTORY_LIMIT: int = 200
    RECOMMENDATION_MIN_SAMPLES: int = 10
    RECOMMENDATION_REFRESH_MINUTES: int = 30

    # Monitoring
    ALERT_CHECK_MINUTES: int = 5
    STALL_THRESHOLD_MINUTES: int = 60
    FAILURE_RATE_THRESHOLD: float = 0.2
    FAILURE_RATE_MIN_RUNS: int = 5

    model_config = ConfigDict(
        env_file=os.environ.get('ENV_FILE', '.env') if os.path.exists('.env') else None,
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def quickbooks_configured(self) -> bool:
        return bool(self.QBO_REALM_ID and self.QBO_ACCESS_TOKEN)


@lru_cache()
def get_settings() -> Settings:
    """Cached settings to avoid loading .env file for every request"""
    return Settings()


def clear_settings_cache():
    """Clear the settings cache - useful when switching between environments"""
    get_settings.cache_clear()

