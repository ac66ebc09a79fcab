"""Configuration management for stackflow."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stackflow.errors import ConfigurationError

DEFAULT_CONNECTION_NAME = "graph"
DEFAULT_GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"


class InvalidSettingsError(ConfigurationError):
    """Raised when environment configuration cannot be validated."""


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="STACKFLOW_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Authentication
    connection_name: str = Field(default=DEFAULT_CONNECTION_NAME, description="OAuth connection name")
    sign_in_timeout_seconds: int = Field(default=300, gt=0, description="Lifetime of one sign-in request")
    token_lifetime_seconds: int = Field(default=3600, gt=0, description="Lifetime of tokens issued in-process")

    # Dialog state
    home: Path = Field(default=Path.home() / ".stackflow", description="Home directory for persisted state")
    state_backend: Literal["file", "memory"] = Field(default="file", description="Dialog state storage backend")
    max_stack_depth: int = Field(default=16, gt=0, description="Maximum number of nested frames")
    sweep_interval_seconds: int = Field(default=30, gt=0, description="Interval of the expired sign-in sweep")

    # Downstream API
    graph_base_url: str = Field(default=DEFAULT_GRAPH_BASE_URL, description="Microsoft Graph base URL")
    http_timeout_seconds: float = Field(default=10.0, gt=0, description="Timeout for downstream HTTP calls")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_profile: Literal["default", "chat"] = Field(default="default", description="Log output profile")

    @field_validator("connection_name")
    @classmethod
    def _connection_name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("connection name must not be blank")
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    def resolve_home(self) -> Path:
        home = self.home.expanduser().resolve()
        home.mkdir(parents=True, exist_ok=True)
        return home


def get_settings(**overrides: object) -> Settings:
    """Load settings from the environment, raising a stackflow error when invalid."""

    try:
        return Settings(**overrides)  # type: ignore[arg-type]
    except ValidationError as exc:
        raise InvalidSettingsError(str(exc)) from exc
