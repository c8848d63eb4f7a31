"""Runtime settings loaded from environment variables."""

import json
from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

NonEmptyStr = Annotated[str, Field(min_length=1)]
NonNegativeFloat = Annotated[float, Field(ge=0.0)]
PositiveInt = Annotated[int, Field(gt=0)]


class Settings(BaseSettings):
    """Environment-driven application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    slack_bot_token: NonEmptyStr = Field(validation_alias="SLACK_BOT_TOKEN")
    slack_signing_secret: NonEmptyStr = Field(validation_alias="SLACK_SIGNING_SECRET")
    slack_api_base_url: NonEmptyStr = Field(
        default="https://slack.com/api",
        validation_alias="SLACK_API_BASE_URL",
    )
    slack_bot_user_id: NonEmptyStr | None = Field(
        default=None,
        validation_alias="SLACK_BOT_USER_ID",
    )
    slack_http_timeout_seconds: NonNegativeFloat = Field(
        default=20.0,
        validation_alias="SLACK_HTTP_TIMEOUT_SECONDS",
    )
    trigger_reaction: NonEmptyStr = Field(validation_alias="ROSTER_TRIGGER_REACTION")
    count_reaction: NonEmptyStr | None = Field(
        default=None,
        validation_alias="ROSTER_COUNT_REACTION",
    )
    default_reactions: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        validation_alias="ROSTER_DEFAULT_REACTIONS",
    )
    timeout_ms: PositiveInt = Field(
        default=86_400_000,
        validation_alias="ROSTER_TIMEOUT_MS",
    )
    database_url: NonEmptyStr = Field(
        default="sqlite+aiosqlite:///./lunch_roster.db",
        validation_alias="DATABASE_URL",
    )
    legacy_snapshot_path: NonEmptyStr | None = Field(
        default=None,
        validation_alias="LEGACY_SNAPSHOT_PATH",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @field_validator("default_reactions", mode="before")
    @classmethod
    def _split_default_reactions(cls, value: object) -> object:
        """Accept comma separated names or a JSON list, stripping `:` wrappers."""

        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                value = json.loads(stripped)
            else:
                value = stripped.split(",")
        if isinstance(value, list):
            return [str(item).strip().strip(":") for item in value if str(item).strip()]
        return value


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load and cache application settings."""

    return Settings()  # type: ignore[call-arg]
