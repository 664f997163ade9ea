"""
Application Settings
===================

Main application settings and environment configuration using Pydantic Settings.
Supports development, testing, and production environments.
"""

from typing import Optional, List, Union
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import json
from pathlib import Path


class Settings(BaseSettings):
    """Main application settings with environment variable support."""

    # Application Configuration
    app_name: str = Field(default="Dexter Stream Bridge", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(
        default="development", description="Environment: development, testing, production"
    )
    debug: bool = Field(default=True, description="Debug mode")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./storage/dexter_web_chat.db",
        description="Chat history database URL (sqlite:///path or postgresql://...)",
    )
    database_pool_size: int = Field(default=10, description="PostgreSQL pool size")

    # Local Agent Configuration
    model: Optional[str] = Field(default=None, description="Model name passed to the agent")
    model_provider: Optional[str] = Field(default=None, description="Model provider label")
    max_iterations: int = Field(default=10, description="Agent loop iteration limit")
    agent_factory: Optional[str] = Field(
        default=None, description="Import path of the agent factory, as 'module:callable'"
    )

    # Remote (hosted run) Configuration
    # Unprefixed LANGSMITH_* names are accepted as well
    langsmith_deployment_url: Optional[str] = Field(
        default=None,
        description="Hosted deployment base URL",
        validation_alias=AliasChoices("DEXTER_LANGSMITH_DEPLOYMENT_URL", "LANGSMITH_DEPLOYMENT_URL"),
    )
    langsmith_api_key: Optional[str] = Field(
        default=None,
        description="Hosted deployment API key",
        validation_alias=AliasChoices("DEXTER_LANGSMITH_API_KEY", "LANGSMITH_API_KEY"),
    )
    remote_assistant_id: str = Field(default="dexter", description="Hosted assistant identifier")
    remote_run_id_prefix: str = Field(
        default="run-", description="Message id prefix identifying the top-level run"
    )
    remote_connect_timeout: float = Field(
        default=30.0, description="Connect timeout in seconds for the hosted run"
    )

    # Security Configuration
    allowed_hosts: List[str] = Field(default=["*"], description="Allowed hosts for CORS")
    api_keys: List[str] = Field(default=[], description="Valid API keys")
    skip_api_key_validation: bool = Field(
        default=True, description="Skip API key validation in development"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: Optional[Path] = Field(default=None, description="Directory for rotating log files")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed = {"development", "testing", "production"}
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Only SQLite and PostgreSQL URLs are supported."""
        if not v.startswith(("sqlite://", "postgresql://", "postgres://")):
            raise ValueError("database_url must use the sqlite:// or postgresql:// scheme")
        return v

    @field_validator("allowed_hosts", "api_keys", mode="before")
    @classmethod
    def parse_string_list(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse list settings from a JSON array or comma-separated string."""
        if isinstance(v, str):
            v = v.strip()
            if v.startswith("[") and v.endswith("]"):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @property
    def remote_enabled(self) -> bool:
        """Whether turns are proxied to a hosted deployment."""
        return bool(self.langsmith_deployment_url and self.langsmith_api_key)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="DEXTER_",
        populate_by_name=True,
        protected_namespaces=(),
    )


# Global settings instance - will be initialized when needed
settings = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global settings
    settings = Settings()
    return settings
