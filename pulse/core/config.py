"""
Centralised configuration via Pydantic Settings.

Reads from .env in dev and from the process environment in production.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RssFeedConfig(BaseModel):
    feed_url: str
    source_name: str


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Application ─────────────────────────────────────────
    app_env: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # ── Database ────────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./dev.db"

    @field_validator("database_url", mode="before")
    @classmethod
    def assemble_db_url(cls, v: str) -> str:
        """Hosted Postgres hands out postgres:// but SQLAlchemy needs postgresql+asyncpg://."""
        if v.startswith("postgres://"):
            v = v.replace("postgres://", "postgresql+asyncpg://", 1)
        elif v.startswith("postgresql://"):
            v = v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    @property
    def is_sqlite(self) -> bool:
        return "sqlite" in self.database_url

    # ── LLM: Gemini ────────────────────────────────────────
    google_api_key: str = ""
    model_processor: str = "gemini-2.5-flash"
    llm_temperature: float = 0.7
    llm_max_output_tokens: int = 1500
    llm_timeout_seconds: float = Field(
        default=30.0, description="Upper bound for a single completion call"
    )

    # ── Content sources ─────────────────────────────────────
    product_hunt_token: str = ""
    product_hunt_days_back: int = 1
    rss_feeds: list[RssFeedConfig] = []
    source_http_timeout: float = 20.0

    # ── Security ────────────────────────────────────────────
    api_key: str = "change-me"
    jwt_secret: str = "dev-secret-change-in-production"  # noqa: S105
    jwt_algorithm: str = "HS256"
    access_token_expiry_days: int = 7
    admin_rate_limit: str = "30/minute"

    # ── Pipeline tunables ───────────────────────────────────
    streak_window_hours: float = 36.0
    process_batch_size: int = 20


@lru_cache
def get_settings() -> Settings:
    return Settings()
