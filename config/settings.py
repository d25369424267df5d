"""
Configuration management for the location gateway.

This module provides centralized configuration loading and validation using
Pydantic settings. Every value can be supplied through environment variables
or .env files; all of them have defaults so a bare local run works against a
local Elasticsearch node.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Optional, List, Tuple

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Supported deployment environments."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


def _detect_environment() -> Environment:
    """
    Detect the current environment from the ENVIRONMENT variable.

    Returns:
        Environment: The detected environment, defaults to DEVELOPMENT if not set.
    """
    env_value = os.environ.get("ENVIRONMENT", "development").lower().strip()
    try:
        return Environment(env_value)
    except ValueError:
        return Environment.DEVELOPMENT


def _get_env_files(environment: Environment) -> Tuple[str, ...]:
    """
    Get the list of .env files to load for the given environment.

    The base .env file is loaded first, then the environment-specific file
    overrides it.
    """
    env_file_map = {
        Environment.DEVELOPMENT: ".env.development",
        Environment.STAGING: ".env.staging",
        Environment.PRODUCTION: ".env.production",
    }
    env_specific_file = env_file_map.get(environment, ".env.development")
    return (".env", env_specific_file)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The ENVIRONMENT variable determines which environment-specific .env file
    is layered on top of the base .env file.
    """

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development, staging, production)"
    )

    # HTTP server binding
    api_host: str = Field(
        default="0.0.0.0",
        description="Interface the HTTP server binds to"
    )
    api_port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Port the HTTP server listens on"
    )

    # Record store (Elasticsearch) connection
    elastic_endpoint: str = Field(
        default="http://localhost:9200",
        description="Elasticsearch endpoint URL"
    )
    elastic_api_key: Optional[str] = Field(
        default=None,
        description="Elasticsearch API key, omitted for unauthenticated local clusters"
    )
    elastic_verify_certs: bool = Field(
        default=True,
        description="Verify TLS certificates when connecting over HTTPS"
    )
    elastic_request_timeout: int = Field(
        default=30,
        ge=1,
        le=600,
        description="Per-request timeout in seconds for store calls"
    )
    store_database: str = Field(
        default="robotics",
        description="Logical database name, used as the index name prefix"
    )
    store_collection: str = Field(
        default="locations",
        description="Logical collection name holding location records"
    )

    # Rate limiting of the ingestion endpoint
    rate_limit_enabled: bool = Field(
        default=True,
        description="Whether ingestion requests are rate limited per client IP"
    )
    rate_limit_requests_per_minute: int = Field(
        default=600,
        ge=1,
        le=100000,
        description="Maximum ingestion requests per minute per IP"
    )

    # Observability
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # Field platforms and map viewers post from anywhere
    cors_origins: List[str] = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("elastic_endpoint")
    @classmethod
    def validate_elastic_endpoint(cls, v: str) -> str:
        """Validate that elastic_endpoint is not empty and is a valid URL format."""
        if not v or not v.strip():
            raise ValueError("elastic_endpoint cannot be empty")
        v = v.strip().strip('"')
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("elastic_endpoint must be a valid HTTP/HTTPS URL")
        return v

    @field_validator("elastic_api_key")
    @classmethod
    def validate_elastic_api_key(cls, v: Optional[str]) -> Optional[str]:
        """Treat a blank API key as no key at all."""
        if v is None:
            return None
        v = v.strip().strip('"')
        return v or None

    @field_validator("store_database", "store_collection")
    @classmethod
    def validate_store_names(cls, v: str) -> str:
        """
        Validate a logical store name.

        Elasticsearch index names must be lowercase and cannot contain
        separators or wildcards, so both halves of the index name are
        normalized and checked here.
        """
        v = v.strip().lower()
        if not v:
            raise ValueError("store names cannot be empty")
        forbidden = set('\\/*?"<>| ,#:')
        if any(char in forbidden for char in v) or v.startswith(("-", "_", "+")):
            raise ValueError(f"'{v}' is not a valid index name component")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.strip().upper()
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v

    @field_validator("cors_origins")
    @classmethod
    def validate_cors_origins(cls, v: List[str]) -> List[str]:
        """
        Validate CORS origins.

        A lone "*" allows every origin. Otherwise each entry must be an exact
        http(s) origin; partial wildcards such as "https://*.example.com" are
        rejected because the CORS middleware does not expand them.
        """
        origins = [origin.strip() for origin in v if origin.strip()]
        if origins == ["*"]:
            return origins
        for origin in origins:
            if "*" in origin:
                raise ValueError(
                    f"Wildcard patterns are only allowed as a lone '*': {origin}"
                )
            if not (origin.startswith("http://") or origin.startswith("https://")):
                raise ValueError(
                    f"Invalid CORS origin format: {origin}. "
                    "Must start with http:// or https://"
                )
        return origins

    @model_validator(mode="after")
    def validate_https_for_api_key(self) -> "Settings":
        """An API key must never be sent over plain HTTP outside development."""
        if (
            self.elastic_api_key
            and self.elastic_endpoint.startswith("http://")
            and self.environment != Environment.DEVELOPMENT
        ):
            raise ValueError(
                "elastic_endpoint must use https:// when an API key is configured "
                "in non-development environments"
            )
        return self

    @property
    def store_index(self) -> str:
        """Name of the Elasticsearch index backing the record store."""
        return f"{self.store_database}-{self.store_collection}"


class ConfigurationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None,
                 invalid_fields: Optional[dict] = None):
        self.message = message
        self.missing_fields = missing_fields or []
        self.invalid_fields = invalid_fields or {}
        super().__init__(self.format_error_message())

    def format_error_message(self) -> str:
        """Format a descriptive error message listing all issues."""
        parts = [self.message]

        if self.missing_fields:
            parts.append(f"\nMissing required fields: {', '.join(self.missing_fields)}")

        if self.invalid_fields:
            invalid_parts = [f"  - {field}: {error}" for field, error in self.invalid_fields.items()]
            parts.append("\nInvalid field values:\n" + "\n".join(invalid_parts))

        return "".join(parts)


def create_settings_for_environment(environment: Optional[Environment] = None) -> Settings:
    """
    Factory function to create Settings for a specific environment.

    Args:
        environment: Optional environment override. If not provided, detected from
                    ENVIRONMENT variable.

    Returns:
        Settings: Validated settings for the specified environment.

    Raises:
        ConfigurationError: If settings are missing or invalid.
    """
    if environment is None:
        environment = _detect_environment()

    env_files = _get_env_files(environment)
    existing_env_files = [env_file for env_file in env_files if Path(env_file).exists()]

    # pydantic-settings skips files that do not exist
    if not existing_env_files:
        existing_env_files = list(env_files)

    try:
        class EnvironmentSettings(Settings):
            model_config = SettingsConfigDict(
                env_file=tuple(existing_env_files),
                env_file_encoding="utf-8",
                case_sensitive=False,
                extra="ignore"
            )

        return EnvironmentSettings()
    except Exception as e:
        missing_fields = []
        invalid_fields = {}

        if hasattr(e, 'errors'):
            for error in e.errors():
                field_name = '.'.join(str(loc) for loc in error.get('loc', []))
                error_type = error.get('type', '')
                error_msg = error.get('msg', str(error))

                if error_type == 'missing':
                    missing_fields.append(field_name)
                else:
                    invalid_fields[field_name or "settings"] = error_msg

        raise ConfigurationError(
            f"Failed to load configuration for environment '{environment.value}'",
            missing_fields=missing_fields,
            invalid_fields=invalid_fields
        ) from e


_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Settings are loaded once and cached for subsequent calls.

    Raises:
        ConfigurationError: If settings are missing or invalid.
    """
    global _settings_cache

    if _settings_cache is None:
        _settings_cache = create_settings_for_environment()

    return _settings_cache


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    Used by tests to reload settings with different environment variables.
    """
    global _settings_cache
    _settings_cache = None


def validate_startup(settings: Optional[Settings] = None) -> None:
    """
    Validate settings at application startup, before accepting requests.

    Raises:
        ConfigurationError: If the configuration is unsafe for the environment.
    """
    settings = settings or get_settings()
    validation_errors = {}

    if settings.environment == Environment.PRODUCTION:
        if not settings.elastic_api_key:
            validation_errors["elastic_api_key"] = (
                "Production environment requires an Elasticsearch API key"
            )
        if not settings.elastic_verify_certs:
            validation_errors["elastic_verify_certs"] = (
                "Certificate verification cannot be disabled in production"
            )

    if validation_errors:
        raise ConfigurationError(
            "Configuration validation failed during startup",
            invalid_fields=validation_errors
        )
