from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    request_timeout_seconds: float = 10.0
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_prefix="TODO_", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def reset_settings_cache() -> None:
    get_settings.cache_clear()
