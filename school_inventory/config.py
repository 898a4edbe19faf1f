"""Application configuration objects."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class Settings(BaseSettings):
    """Pydantic settings used to configure the application."""

    model_config = SettingsConfigDict(
        env_prefix="SCHOOL_INV_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    app_name: str = Field(
        default="SchoolInvPro",
        description="Human friendly name for the application.",
    )
    environment: Literal["development", "test", "production"] = Field(
        default="development",
        description="Deployment environment flag used for logging.",
    )
    secret_key: str = Field(
        default="school-inventory-secret-key",
        description="Flask session signing key.",
    )
    storage_path: str = Field(
        default="school_inventory.json",
        description="JSON document holding users, catalog and records.",
    )
    sync_delay: float = Field(
        default=2.0,
        description="Seconds before a new record is marked as synced.",
    )
    remote_export_delay: float = Field(
        default=2.5,
        description="Seconds the simulated remote export waits before completing.",
    )
    category_aliases: List[str] = Field(
        default_factory=lambda: ["category", "Category", "Категория"],
        description="Spreadsheet headers recognised as the category column.",
    )
    name_aliases: List[str] = Field(
        default_factory=lambda: ["name", "Name", "Наименование"],
        description="Spreadsheet headers recognised as the name column.",
    )
    min_password_length: int = Field(default=6)
    analysis_api_key: Optional[str] = Field(
        default=None,
        description="API key for the optional image classification helper.",
    )
    analysis_model: str = Field(default="gemini-3-flash-preview")
    analysis_endpoint: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/models",
    )
    analysis_timeout: float = Field(default=15.0)
    log_level: str = Field(default="INFO")

    @field_validator("sync_delay", "remote_export_delay")
    @classmethod
    def _validate_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("Delays cannot be negative")
        return value

    @field_validator("category_aliases", "name_aliases")
    @classmethod
    def _validate_aliases(cls, value: List[str]) -> List[str]:
        cleaned = [alias for alias in value if alias]
        if not cleaned:
            raise ValueError("At least one header alias is required")
        return cleaned


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of :class:`Settings`."""

    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once at process start."""

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    logging.getLogger(__name__).info("Logging initialized with level %s", level)


__all__ = ["Settings", "get_settings", "configure_logging"]
