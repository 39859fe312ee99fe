"""Configuration management for richdoc."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Editor configuration via environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Caret-landing character inserted around inline voids
    zero_width_char: str = Field(
        default="\ufeff",
        alias="RICHDOC_ZERO_WIDTH_CHAR",
        min_length=1,
        max_length=1,
    )

    # Block type used when toggling a block off or wrapping stray inline content
    default_block_type: str = Field(
        default="paragraph",
        alias="RICHDOC_DEFAULT_BLOCK",
    )

    # Normalization gives up after (initial entries * factor) checks
    normalize_iteration_factor: int = Field(
        default=42,
        alias="RICHDOC_NORMALIZE_FACTOR",
        ge=1,
    )

    log_level: str = Field(
        default="WARNING",
        alias="RICHDOC_LOG_LEVEL",
    )

    json_indent: int = Field(
        default=2,
        alias="RICHDOC_JSON_INDENT",
        ge=0,
    )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance, creating it if needed."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Load settings from an optional specific .env file."""
    global _settings
    if env_file:
        _settings = Settings(_env_file=env_file)
    else:
        _settings = Settings()
    return _settings
