"""Runtime configuration read from the environment (and an optional ``.env``)."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    notion_api_key: Optional[str] = None
    notion_apps_db_id: Optional[str] = None
    notion_api_base_url: str = "https://api.notion.com/v1"
    notion_version: str = "2022-06-28"
    notion_timeout: float = Field(default=15.0, gt=0)
    notion_max_attempts: int = Field(default=5, ge=1)

    # Cache lifetimes, in seconds
    database_config_ttl: float = 6 * 60 * 60
    pages_ttl: float = 15 * 60
    summaries_ttl: float = 15 * 60
    parsed_content_ttl: float = 60 * 60
    missing_app_ttl: float = 30

    block_traversal_concurrency: int = Field(default=3, ge=1)

    @property
    def notion_configured(self) -> bool:
        return bool(self.notion_api_key and self.notion_apps_db_id)


@lru_cache
def get_settings() -> Settings:
    return Settings()
