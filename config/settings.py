"""
Configuration management for the session registry.

This module provides centralized configuration loading and validation using
Pydantic settings. Values are read, in order of precedence, from:
- environment variables
- the .env file and the environment-specific .env.<environment> file
- an optional JSON file named by the SESSION_CONFIG_FILE environment
  variable, in the session.json format (unprefixed keys, durations in
  seconds)
"""

import json
import os
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Tuple, Type

from pydantic import Field, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from session.registry import (
    DEFAULT_COOKIE_NAME,
    DEFAULT_SESSION_HEADER,
    RegistryConfig,
)

CONFIG_FILE_ENV_VAR = "SESSION_CONFIG_FILE"

# session.json keys -> Settings field names
JSON_CONFIG_KEYS = {
    "cookie_name": "session_cookie_name",
    "cleaner_interval": "session_cleaner_interval",
    "max_lifetime": "session_max_lifetime",
    "http_only": "session_cookie_http_only",
    "secure": "session_cookie_secure",
    "cookie_lifetime": "session_cookie_lifetime",
    "domain": "session_cookie_domain",
    "enable_http_header": "session_enable_http_header",
    "session_header": "session_header",
    "auto_refresh": "session_auto_refresh",
}

# RFC 6265 token separators, not allowed in cookie or header names
_TOKEN_SEPARATORS = set('()<>@,;:\\"/[]?={} \t')


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

    The base .env file is loaded first, then the environment-specific file,
    whose values override it.
    """
    env_file_map = {
        Environment.DEVELOPMENT: ".env.development",
        Environment.STAGING: ".env.staging",
        Environment.PRODUCTION: ".env.production",
    }
    env_specific_file = env_file_map.get(environment, ".env.development")

    return (".env", env_specific_file)


def _is_token(value: str) -> bool:
    return bool(value) and not any(
        c in _TOKEN_SEPARATORS or ord(c) < 32 or ord(c) > 126 for c in value
    )


class JsonConfigFileSource(PydanticBaseSettingsSource):
    """
    Settings source reading the session.json configuration format.

    Keys are translated through JSON_CONFIG_KEYS; unknown keys are ignored.
    A missing file contributes nothing.
    """

    def __init__(self, settings_cls: Type[BaseSettings], json_file: Optional[str]):
        super().__init__(settings_cls)
        self.json_file = json_file

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        # The whole file is read at once in __call__
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        if not self.json_file:
            return {}

        path = Path(self.json_file)
        if not path.is_file():
            return {}

        raw = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError(f"{path} must contain a JSON object")

        return {
            JSON_CONFIG_KEYS[key]: value
            for key, value in raw.items()
            if key in JSON_CONFIG_KEYS
        }


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every setting has a default, so an empty environment yields a working
    development configuration. Values are validated on load and the
    application refuses to start with an invalid configuration.

    Environment-specific configuration is supported through:
    - .env.development - Development environment settings
    - .env.staging - Staging environment settings
    - .env.production - Production environment settings

    The ENVIRONMENT variable determines which file to load.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development, staging, production)"
    )

    # Observability Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # Session Expiry Configuration
    session_cleaner_interval: int = Field(
        default=60,
        ge=1,
        description="Seconds between two sweeps of idle sessions"
    )
    session_max_lifetime: int = Field(
        default=0,
        ge=0,
        description="Idle seconds after which a session is evicted; 0 uses the cleaner interval"
    )
    session_auto_refresh: bool = Field(
        default=True,
        description="Whether reading a session bumps its last-access time"
    )

    # Session Identifier Transport
    session_enable_http_header: bool = Field(
        default=False,
        description="Accept the session identifier from a request header"
    )
    session_header: str = Field(
        default=DEFAULT_SESSION_HEADER,
        description="Request header carrying the session identifier"
    )
    session_cookie_name: str = Field(
        default=DEFAULT_COOKIE_NAME,
        description="Cookie carrying the session identifier"
    )
    session_cookie_domain: Optional[str] = Field(
        default=None,
        description="Domain attribute of the session cookie"
    )
    session_cookie_secure: bool = Field(
        default=False,
        description="Secure attribute of the session cookie"
    )
    session_cookie_http_only: bool = Field(
        default=True,
        description="HttpOnly attribute of the session cookie"
    )
    session_cookie_lifetime: int = Field(
        default=0,
        ge=0,
        description="Max-Age of the session cookie in seconds; 0 for a browser-session cookie"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Add the JSON config file below environment and .env values."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigFileSource(settings_cls, os.environ.get(CONFIG_FILE_ENV_VAR)),
            file_secret_settings,
        )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.strip().upper()
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v

    @field_validator("session_cookie_name", "session_header")
    @classmethod
    def validate_token(cls, v: str) -> str:
        """Cookie and header names must be non-empty HTTP tokens."""
        v = v.strip()
        if not _is_token(v):
            raise ValueError(f"{v!r} is not a valid cookie or header name")
        return v

    @field_validator("session_cookie_domain")
    @classmethod
    def validate_cookie_domain(cls, v: Optional[str]) -> Optional[str]:
        """Treat a blank domain as unset."""
        if v is None:
            return None
        v = v.strip()
        return v or None

    def registry_config(self) -> RegistryConfig:
        """Build the RegistryConfig described by these settings."""
        return RegistryConfig(
            cleaner_interval=timedelta(seconds=self.session_cleaner_interval),
            max_lifetime=timedelta(seconds=self.session_max_lifetime),
            auto_refresh=self.session_auto_refresh,
            enable_http_header=self.session_enable_http_header,
            session_header=self.session_header,
            cookie_name=self.session_cookie_name,
            cookie_domain=self.session_cookie_domain,
            cookie_secure=self.session_cookie_secure,
            cookie_http_only=self.session_cookie_http_only,
            cookie_lifetime=self.session_cookie_lifetime,
        )


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
        ConfigurationError: If settings are invalid or the JSON config file
            cannot be parsed.
    """
    if environment is None:
        environment = _detect_environment()

    env_files = _get_env_files(environment)
    existing_env_files = [f for f in env_files if Path(f).exists()] or list(env_files)

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

        # Extract field-level errors from Pydantic ValidationError
        if hasattr(e, 'errors'):
            for error in e.errors():
                field_name = '.'.join(str(loc) for loc in error.get('loc', []))
                error_type = error.get('type', '')
                error_msg = error.get('msg', str(error))

                if error_type == 'missing':
                    missing_fields.append(field_name)
                else:
                    invalid_fields[field_name] = error_msg
        else:
            invalid_fields[CONFIG_FILE_ENV_VAR] = str(e)

        raise ConfigurationError(
            f"Failed to load configuration for environment '{environment.value}'",
            missing_fields=missing_fields,
            invalid_fields=invalid_fields
        ) from e


# Global settings cache
_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Settings are loaded once and cached for subsequent calls.

    Raises:
        ConfigurationError: If settings are invalid.
    """
    global _settings_cache

    if _settings_cache is None:
        _settings_cache = create_settings_for_environment()

    return _settings_cache


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    This is primarily useful for testing to allow reloading settings
    with different environment variables.
    """
    global _settings_cache
    _settings_cache = None


def validate_startup(settings: Optional[Settings] = None) -> None:
    """
    Validate settings that are legal on their own but unsafe together.

    Raises:
        ConfigurationError: If any check fails.
    """
    settings = settings or get_settings()
    validation_errors = {}

    if settings.environment == Environment.PRODUCTION and not settings.session_cookie_secure:
        validation_errors["session_cookie_secure"] = (
            "Production environment requires the Secure attribute on the session cookie."
        )

    if settings.session_enable_http_header and settings.session_header.lower() == "cookie":
        validation_errors["session_header"] = (
            "The session header must not be the Cookie header itself."
        )

    if validation_errors:
        raise ConfigurationError(
            "Configuration validation failed during startup",
            invalid_fields=validation_errors
        )
