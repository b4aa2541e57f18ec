"""Centralized settings management for the geo event extractor."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_RELAYS = [
    "wss://relay.damus.io",
    "wss://relay.nostr.band",
    "wss://nos.lol",
    "wss://relay.nostr.bg",
    "wss://nostr.wine",
    "wss://relay.snort.social",
    "wss://relay.current.fyi",
    "wss://nostr.mom",
]


class Settings(BaseSettings):
    """
    Application settings powered by pydantic-settings.

    Loads configuration from environment variables and a .env file located
    in the project root.
    """

    # -------------------------------------------------------------------------
    # ENVIRONMENT
    # -------------------------------------------------------------------------
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # -------------------------------------------------------------------------
    # RELAYS
    # -------------------------------------------------------------------------
    RELAY_URLS: list[str] = Field(default_factory=lambda: list(DEFAULT_RELAYS))
    FETCH_LIMIT: int = Field(default=500, gt=0)
    STREAM_LIMIT: int = Field(default=100, gt=0)
    REQUEST_TIMEOUT: float = Field(default=10.0, gt=0)

    # -------------------------------------------------------------------------
    # EXTRACTION
    # -------------------------------------------------------------------------
    GEOHASH_POLICY: str = "skip"
    EXTRACTION_WORKERS: int = Field(default=1, ge=1)

    # -------------------------------------------------------------------------
    # PATHS
    # -------------------------------------------------------------------------
    # BASE_DIR points to the geoevents package
    BASE_DIR: Path = Path(__file__).resolve().parents[1]

    INGESTION_CONFIG_PATH: Path = BASE_DIR / "configs" / "ingestion.yaml"

    # -------------------------------------------------------------------------
    # CONFIGURATION
    # -------------------------------------------------------------------------
    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        # Allow extra fields in .env but ignore them in the model
        extra="ignore",
    )

    @field_validator("GEOHASH_POLICY")
    @classmethod
    def validate_geohash_policy(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("skip", "strict"):
            raise ValueError("GEOHASH_POLICY must be 'skip' or 'strict'")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return v.strip().upper()


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns
    -------
    Settings
        The singleton settings instance.
    """
    return Settings()
