"""Application configuration using Pydantic settings."""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import computed_field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ---------------- DATABASE ----------------
    database_url: str = "sqlite+aiosqlite:///./janus_events.db"
    db_pool_size: int = 10
    db_max_overflow: int = 0
    db_pool_timeout: int = 30
    create_tables: bool = True
    # slowlinks is optional; deployments without the migration keep ingesting
    create_optional_tables: bool = True

    # ---------------- WEBHOOK ----------------
    webhook_username: str = ""
    webhook_password: str = ""
    max_body_bytes: int = 256 * 1024
    sip_plugin: str = "janus.plugin.sip"

    # ---------------- APP ----------------
    app_name: str = "Janus events DB backend"
    app_version: str = "1.0.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8085
    cors_origins: List[str] = ["*"]

    @computed_field
    @property
    def webhook_auth_enabled(self) -> bool:
        return bool(self.webhook_username and self.webhook_password)


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
