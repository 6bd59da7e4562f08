"""
Verification workflow configuration.
Uses AV_VERIFIER_ prefix; gateway location and timeouts live in shared Settings.
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class VerifierSettings(BaseSettings):
    """Workflow-specific settings; use get_settings() for gateway URL/timeouts."""

    model_config = SettingsConfigDict(
        env_prefix="AV_VERIFIER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Gateway paths
    championships_path: str = Field(
        default="/verificacion/campeonatos",
        description="Championships with actas pending verification",
    )
    matches_path: str = Field(
        default="/verificacion/campeonatos/{championship_id}/actas",
        description="Pending matches of one championship",
    )
    approve_path: str = Field(
        default="/verificacion/actas/{match_id}/revisar",
        description="Approval submission for one match",
    )

    # File storage
    uploads_prefix: str = Field(default="/uploads", description="Prefix relative acta paths are served under")

    # Presentation
    hash_preview_chars: int = Field(default=12, description="Hash chars shown in the anchoring status")
    success_hash_preview_chars: int = Field(default=16, description="Hash chars shown after approval")
    alert_hash_preview_chars: int = Field(default=24, description="Hash chars shown in the integrity alert")


@lru_cache(maxsize=1)
def get_verifier_settings() -> VerifierSettings:
    """Singleton access to verifier settings."""
    return VerifierSettings()
