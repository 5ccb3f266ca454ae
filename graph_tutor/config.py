"""
Configuration module for Graph Tutor.

Uses pydantic-settings for configuration management with environment variable support.
Environment variables use GRAPH_TUTOR_ prefix (e.g., GRAPH_TUTOR_CACHE_TTL_MS).
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Environment variables:
    - GRAPH_TUTOR_VAULT_PATH: Directory holding concept markdown files (in-memory store if unset)
    - GRAPH_TUTOR_CACHE_TTL_MS: Query cache TTL in milliseconds
    - GRAPH_TUTOR_DEFAULT_BUDGET: Context pack item budget when none is given
    - GRAPH_TUTOR_MAX_TITLE_LENGTH: Maximum concept title length
    - GRAPH_TUTOR_MAX_NOTES_SIZE: Maximum notes size in bytes
    - GRAPH_TUTOR_MAX_MASTERY: Highest mastery level
    """

    vault_path: Path | None = None
    cache_ttl_ms: int = 30_000
    default_budget: int = 20
    max_title_length: int = 200
    max_notes_size: int = 1 * 1024 * 1024  # 1MB in bytes
    max_mastery: int = 3

    model_config = SettingsConfigDict(env_prefix="GRAPH_TUTOR_")


# Global settings instance
settings = Settings()
