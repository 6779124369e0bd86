"""Configuration settings for the pairledger bot."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Flat settings read from environment variables and ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Telegram
    bot_token: SecretStr = Field(..., validation_alias="BOT_TOKEN")
    admin_user_id: int = Field(..., validation_alias="ADMIN_USER_ID")
    allowed_users_raw: str = Field(
        default="",
        validation_alias="ALLOWED_USERS",
        description="Comma-separated Telegram ids allowed to receive notifications",
    )
    telegram_api_url: str = Field(
        default="https://api.telegram.org", validation_alias="TELEGRAM_API_URL"
    )
    telegram_poll_timeout: int = Field(default=30, validation_alias="TELEGRAM_POLL_TIMEOUT")

    # Google Sheets ledger
    google_credentials_path: Path = Field(..., validation_alias="GOOGLE_CREDENTIALS_PATH")
    spreadsheet_id: str = Field(..., validation_alias="SPREADSHEET_ID")
    sheet_name: str = Field(default="Sheet1", validation_alias="SHEET_NAME")
    sheets_timeout: float = Field(default=30.0, validation_alias="SHEETS_TIMEOUT")
    sheets_max_retries: int = Field(default=2, validation_alias="SHEETS_MAX_RETRIES")

    # Reconciliation
    poll_interval_seconds: float = Field(
        default=15.0, validation_alias="POLL_INTERVAL_SECONDS", gt=0
    )
    refresh_delay_seconds: float = Field(
        default=2.0,
        validation_alias="REFRESH_DELAY_SECONDS",
        ge=0,
        description="Pause before the forced check that follows a local append",
    )

    # Participants and presentation
    participant_a: str = Field(default="Alice", validation_alias="PARTICIPANT_A")
    participant_b: str = Field(default="Bob", validation_alias="PARTICIPANT_B")
    currency_symbol: str = Field(default="$", validation_alias="CURRENCY_SYMBOL")
    date_format: str = Field(default="%d.%m.%Y", validation_alias="DATE_FORMAT")
    history_limit: int = Field(default=10, validation_alias="HISTORY_LIMIT", gt=0)

    # Storage
    data_dir: Path = Field(default=Path("data"), validation_alias="DATA_DIR")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )

    @property
    def allowed_users(self) -> list[int]:
        """Parsed notification whitelist (empty means everyone)."""
        return [int(part) for part in self.allowed_users_raw.split(",") if part.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
