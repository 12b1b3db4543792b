"""Application configuration loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_base_url: str = Field(default="https://api.themoviedb.org/3")
    tmdb_language: str = Field(default="zh-CN")
    tmdb_region: str | None = Field(default="CN")
    tmdb_image_base: str = Field(default="https://image.tmdb.org/t/p")
    tmdb_poster_size: str = Field(default="w500")
    tmdb_timeout: float = Field(default=10.0, gt=0)
    tmdb_user_agent: str = Field(default="MoonTV/1.0")
    cache_max_age: int = Field(default=3600, ge=0, alias="CACHE_MAX_AGE")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
