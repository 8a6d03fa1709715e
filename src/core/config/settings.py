from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import List, Optional


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_NAME: str = "Zonscope"

    HOST: str = "0.0.0.0"
    PORT: int = 8000

    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    MONGO_URL: str
    MONGO_DB_NAME: str = "zonscope"
    # multi-document transactions need a replica set
    MONGO_USE_TRANSACTIONS: bool = False

    # ===== Platforms =====
    GITHUB_TOKEN: str
    CODEBERG_TOKEN: str
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # ===== Sweeps (seconds) =====
    TOP_SWEEP_INTERVAL: int = 60 * 60
    CODEBERG_TOP_SWEEP_INTERVAL: int = 3 * 60 * 60
    RECENT_SWEEP_INTERVAL: int = 60 * 60
    ALL_SWEEP_INTERVAL: int = 60
    MANIFEST_SWEEP_INTERVAL: int = 60
    MANIFEST_SWEEP_BATCH: int = 20
    MANIFEST_MAX_AGE_SECONDS: int = 3 * 24 * 60 * 60
    QUEUE_MONITOR_INTERVAL: int = 10 * 60

    # ===== Backoff =====
    PAGE_DELAY_SECONDS: float = 1.0
    RATE_LIMIT_FALLBACK_SECONDS: float = 60 * 60
    RETRY_BASE_DELAY_SECONDS: float = 30.0
    RETRY_MAX_ATTEMPTS: int = 3
    QUEUE_POLL_INTERVAL: float = 10.0
    FAILED_JOB_TTL_SECONDS: int = 7 * 24 * 60 * 60

    EXCLUDED_KEYWORDS: List[str] = Field(default_factory=lambda: ["zigbee"])

    @field_validator("GITHUB_TOKEN", "CODEBERG_TOKEN")
    @classmethod
    def token_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("token must not be empty")
        return value.strip()


settings = AppSettings()
