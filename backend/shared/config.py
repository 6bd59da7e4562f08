"""
Central configuration for the Acta Verification services.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Root settings shared across the API and the verification workflow."""

    model_config = SettingsConfigDict(
        env_prefix="AV_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    debug: bool = False
    log_level: str = "INFO"
    instance_id: str = Field(default="", description="Pod/container ID bound to every log entry")

    # ── Record gateway ───────────────────────────────────────
    gateway_base_url: str = Field(
        default="http://localhost:3001",
        description="Base URL of the ledger/record gateway REST API",
    )
    files_base_url: Optional[str] = Field(
        default=None,
        description="Base URL acta scans and logos are served from; defaults to gateway_base_url",
    )
    gateway_timeout_s: float = 10.0
    gateway_max_retries: int = 2

    @model_validator(mode="after")
    def normalize_base_urls(self) -> "Settings":
        """Strip trailing slashes and fall back to the gateway URL for files."""
        self.gateway_base_url = self.gateway_base_url.rstrip("/")
        if not self.files_base_url:
            self.files_base_url = self.gateway_base_url
        else:
            self.files_base_url = self.files_base_url.rstrip("/")
        return self

    # ── API ──────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 1
    cors_origins: list[str] = ["*"]

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @property
    def files_base_url_str(self) -> str:
        return self.files_base_url or self.gateway_base_url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()
