"""
Userbook Backend - Application Configuration
============================================

What:  Centralized configuration using Pydantic Settings.
How:   Values come from environment variables (or a .env file), are validated
       on load, and are exposed through the `settings` singleton.
Who:   Imported by the stores, services and the app factory.
"""

import re
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

_FIELD_TAG_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every value has a development default; deployments normally override
    DATA_FILE and UPLOAD_ROOT to point at a persistent volume.
    """

    # ── Record Store ──────────────────────────────────────────────────────
    # What: The single JSON document holding every user record
    data_file: str = Field(
        default="./data/users.json",
        description="Path of the JSON document backing the record store",
    )

    # ── Asset Storage ─────────────────────────────────────────────────────
    # What: Directory for uploaded images, served back under /uploads
    upload_root: str = Field(default="./uploads")

    # What: Prefix of every stored asset name: <tag>-<epoch ms><ext>
    asset_field_tag: str = Field(default="userImage")

    # What: Maximum accepted upload size in bytes (default 10MB)
    # Valid range: 1KB to 50MB
    max_file_size: int = Field(default=10_485_760, ge=1024, le=52_428_800)

    # What: How many fresh names to try when a generated asset name is taken
    asset_name_attempts: int = Field(default=5, ge=1, le=20)

    @field_validator("asset_field_tag")
    @classmethod
    def validate_field_tag(cls, v: str) -> str:
        """The tag becomes part of a filename, so it must be a plain word."""
        if not _FIELD_TAG_PATTERN.match(v):
            raise ValueError(
                f"Invalid asset_field_tag '{v}'. Use letters, digits and underscores only."
            )
        return v

    # ── CORS ──────────────────────────────────────────────────────────────
    # Format: Comma-separated URLs
    cors_origins: str = Field(default="http://localhost:3000")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=3001, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


settings = Settings()
