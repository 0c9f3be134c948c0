"""Base settings shared by every configurable component."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Supported deployment environments."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class BaseConfiguration(BaseSettings):
    """Environment-driven settings base class."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Current deployment environment",
    )
    version: str = Field(default="1.0.0", description="Configuration version")
    last_updated: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Configuration load timestamp",
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert the settings to a plain dictionary."""
        return self.model_dump()

    def validate_configuration(self) -> list[str]:
        """Validate the current configuration and return any issues."""
        return []
