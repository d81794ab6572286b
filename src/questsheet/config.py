"""
QuestSheet Configuration Module.

Handles all application settings and environment configuration.
Uses pydantic-settings for validation and type safety.

Legacy variable names (SHEET_ID, GOOGLE_SA_KEYFILE, PLAYER_SHEET_ID,
PLAYER_SHEET_TAB, ALLOW_ORIGIN, PORT) are accepted as-is.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Nested groups are built by default_factory, so each reads .env itself.
_ENV_FILE = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


class StoreSettings(BaseSettings):
    """Backing store selection and call bounds."""

    model_config = SettingsConfigDict(env_prefix="STORE_", **_ENV_FILE)

    backend: Literal["sheets", "memory"] = Field(
        default="sheets",
        description="'sheets' talks to Google Sheets; 'memory' keeps everything in-process (dev only)",
    )
    timeout_seconds: float = Field(default=10.0, gt=0, description="Upper bound for a single store call")


class SheetsSettings(BaseSettings):
    """Google Sheets workbook layout and credentials."""

    model_config = SettingsConfigDict(env_prefix="SHEETS_", populate_by_name=True, **_ENV_FILE)

    sheet_id: str = Field(default="", validation_alias="SHEET_ID", description="Main workbook (tasks + completion log)")
    keyfile: str = Field(
        default="./service-account.json",
        validation_alias="GOOGLE_SA_KEYFILE",
        description="Service account JSON keyfile",
    )
    player_sheet_id: str = Field(
        default="",
        validation_alias="PLAYER_SHEET_ID",
        description="Workbook holding the player tab; defaults to SHEET_ID",
    )
    player_tab: str = Field(default="玩家資料", validation_alias="PLAYER_SHEET_TAB")
    task_range: str = Field(default="資料庫!A:Z", description="Task dataset, header row first")
    log_range: str = Field(default="通關紀錄!A:E", description="Completion log (time, userId, target, status, key)")
    api_base_url: str = Field(default="https://sheets.googleapis.com/v4")

    @property
    def effective_player_sheet_id(self) -> str:
        return self.player_sheet_id or self.sheet_id


class TaskCacheSettings(BaseSettings):
    """Stale-while-revalidate parameters for the task cache."""

    model_config = SettingsConfigDict(env_prefix="TASK_CACHE_", **_ENV_FILE)

    ttl_seconds: float = Field(default=10.0, gt=0)
    grace_seconds: float = Field(default=0.15, ge=0, description="Cold-start wait for an in-flight refresh")


class LogQueueSettings(BaseSettings):
    """Completion log write queue parameters."""

    model_config = SettingsConfigDict(env_prefix="LOG_QUEUE_", **_ENV_FILE)

    flush_interval_seconds: float = Field(default=0.5, gt=0)
    batch_size: int = Field(default=200, ge=1, description="Rows per append call")
    retry_attempts: int = Field(default=5, ge=1)
    retry_base_delay_seconds: float = Field(default=0.12, ge=0)
    batch_pause_seconds: float = Field(default=0.15, ge=0, description="Pause after each successful batch")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = False
    app_log_level: str = "INFO"
    allow_origin: str = Field(
        default="",
        validation_alias="ALLOW_ORIGIN",
        description="Single allowed CORS origin; empty allows any origin",
    )
    port: int = Field(default=8787, validation_alias="PORT")

    # Nested settings
    store: StoreSettings = Field(default_factory=StoreSettings)
    sheets: SheetsSettings = Field(default_factory=SheetsSettings)
    task_cache: TaskCacheSettings = Field(default_factory=TaskCacheSettings)
    log_queue: LogQueueSettings = Field(default_factory=LogQueueSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
