from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="FORMWORK_", env_file=".env", extra="ignore")

    SERVICE_NAME: str = "formwork"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False  # True for production (structured JSON), False for dev (colored)

    # Failure rendering
    ERROR_GROUP_BY: Literal["field", "code", "none"] = "none"
    ERROR_DETAIL_LEVEL: Literal["minimal", "standard", "full"] = "standard"
    ERROR_INCLUDE_WARNINGS: bool = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
