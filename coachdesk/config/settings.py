"""
CoachDesk settings.

Read once from the environment (or a .env file) and validated by
pydantic at startup, so a bad timezone or a negative window stops the
process before it serves anything.

With SNOWFLAKE_MOCK_MODE=true no Snowflake credentials are needed and
clients live in memory.
"""

from datetime import timedelta, tzinfo
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.lifecycle.status import EXPIRING_WINDOW_DAYS


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Every field maps to the upper-cased environment variable of the same name."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # HTTP surface
    api_title: str = "CoachDesk API"
    api_version: str = "v1"
    api_keys: str = Field(
        default="dev-key-1,dev-key-2",
        description="Comma-separated keys accepted in X-API-Key. More than one allows rotation."
    )
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated browser origins, or * in development."
    )
    log_level: str = "INFO"

    # Lifecycle
    expiring_window_days: int = Field(
        default=EXPIRING_WINDOW_DAYS,
        ge=0,
        description="An active plan this many days (or fewer) from its end shows as expiring."
    )
    timezone: str = Field(
        default="UTC",
        description="Coach's IANA timezone. Follow-up days and renewal months are calendar dates here."
    )

    # Snowflake
    snowflake_mock_mode: bool = Field(
        default=False,
        description="Keep clients in memory instead of Snowflake."
    )
    snowflake_account: str = ""
    snowflake_user: str = ""
    snowflake_password: str = ""
    snowflake_private_key_path: Optional[str] = Field(
        default=None,
        description="PEM key for key-pair auth. Used instead of the password when set."
    )
    snowflake_database: str = "COACHDESK"
    snowflake_schema: str = "LIFECYCLE"
    snowflake_warehouse: str = "COMPUTE_WH"
    snowflake_role: Optional[str] = None

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    @property
    def api_keys_list(self) -> list[str]:
        return _split_csv(self.api_keys)

    @property
    def cors_origins_list(self) -> list[str]:
        if self.cors_origins.strip() == "*":
            return ["*"]
        return _split_csv(self.cors_origins)

    @property
    def expiring_window(self) -> timedelta:
        return timedelta(days=self.expiring_window_days)

    @property
    def tz(self) -> tzinfo:
        return ZoneInfo(self.timezone)

    def validate_required_fields(self) -> list[str]:
        """
        Names of settings that must be set but aren't.

        Kept out of pydantic validation because what's required depends
        on snowflake_mock_mode.
        """
        missing = []
        if not self.api_keys_list:
            missing.append("API_KEYS")

        if self.snowflake_mock_mode:
            return missing

        if not self.snowflake_account:
            missing.append("SNOWFLAKE_ACCOUNT")
        if not self.snowflake_user:
            missing.append("SNOWFLAKE_USER")
        if not (self.snowflake_password or self.snowflake_private_key_path):
            missing.append("SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH")
        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    The process-wide Settings instance.

    Tests either override this dependency or call get_settings.cache_clear().
    """
    return Settings()
