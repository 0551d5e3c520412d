"""Application settings with YAML file support and env var overrides.

Loads settings from (priority order, later wins):
1. Field defaults
2. YAML file: explicit path, WPMANAGER_CONFIG_PATH, or ./wpmanager.yaml
3. Environment variables (see ``_ENV_OVERRIDES``)

${VAR} references in YAML values resolve from the environment at load time.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")

# Settings field -> environment variable names (first non-empty wins)
_ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "encryption_key": ("WPMANAGER_ENCRYPTION_KEY",),
    "encryption_secret": ("WPMANAGER_ENCRYPTION_SECRET", "ENCRYPTION_KEY"),
    "encryption_key_file": ("WPMANAGER_ENCRYPTION_KEY_FILE",),
    "openai_api_key": ("OPENAI_API_KEY",),
    "gemini_api_key": ("GEMINI_API_KEY",),
    "anthropic_api_key": ("ANTHROPIC_API_KEY",),
    "default_ai_provider": ("WPMANAGER_DEFAULT_AI_PROVIDER",),
    "openai_model": ("WPMANAGER_OPENAI_MODEL",),
    "gemini_model": ("WPMANAGER_GEMINI_MODEL",),
    "anthropic_model": ("WPMANAGER_ANTHROPIC_MODEL",),
    "connection_test_timeout": ("WPMANAGER_CONNECTION_TEST_TIMEOUT",),
    "site_request_timeout": ("WPMANAGER_SITE_REQUEST_TIMEOUT",),
    "ai_request_timeout": ("WPMANAGER_AI_REQUEST_TIMEOUT",),
    "monitoring_enabled": ("WPMANAGER_MONITORING_ENABLED",),
    "monitoring_interval_seconds": ("WPMANAGER_MONITORING_INTERVAL_SECONDS",),
    "slow_response_ms": ("WPMANAGER_SLOW_RESPONSE_MS",),
    "very_slow_response_ms": ("WPMANAGER_VERY_SLOW_RESPONSE_MS",),
    "allowed_origins": ("ALLOWED_ORIGINS",),
    "api_key": ("WPMANAGER_API_KEY",),
    "auth_failure_limit": ("WPMANAGER_AUTH_FAILURE_LIMIT",),
    "auth_failure_window_seconds": ("WPMANAGER_AUTH_FAILURE_WINDOW_SECONDS",),
}

_OPTIONAL_SECRET_FIELDS = (
    "encryption_key",
    "encryption_secret",
    "encryption_key_file",
    "openai_api_key",
    "gemini_api_key",
    "anthropic_api_key",
    "api_key",
)


class ConfigurationError(ValueError):
    """Raised when settings are missing or invalid."""


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} references in a string from environment variables.

    Missing env vars resolve to empty string.
    """
    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    if isinstance(data, str):
        return resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    return data


class AppSettings(BaseModel):
    """Process-wide configuration, loaded once at startup."""

    # Credential codec key material (first configured source wins)
    encryption_key: str | None = None
    encryption_secret: str | None = None
    encryption_key_file: str | None = None

    # AI backends are enabled by the presence of their API key
    openai_api_key: str | None = None
    gemini_api_key: str | None = None
    anthropic_api_key: str | None = None
    default_ai_provider: Literal["openai", "gemini", "anthropic"] = "gemini"
    openai_model: str = "gpt-4o"
    gemini_model: str = "gemini-2.5-pro"
    anthropic_model: str = "claude-sonnet-4-5"

    # Outbound HTTP timeouts in seconds
    connection_test_timeout: float = Field(15.0, gt=0)
    site_request_timeout: float = Field(30.0, gt=0)
    ai_request_timeout: float = Field(60.0, gt=0)

    monitoring_enabled: bool = True
    monitoring_interval_seconds: int = Field(900, ge=1)
    slow_response_ms: int = Field(5000, ge=1)
    very_slow_response_ms: int = Field(10000, ge=1)

    allowed_origins: list[str] = []

    # Shared X-API-Key gate for /api/*; rejected keys are rate limited per caller
    api_key: str | None = None
    auth_failure_limit: int = Field(10, ge=1)
    auth_failure_window_seconds: int = Field(300, ge=1)

    @field_validator(*_OPTIONAL_SECRET_FIELDS, mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("default_ai_provider", mode="before")
    @classmethod
    def _normalize_provider(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


def _find_config_file() -> Path | None:
    """Search for a settings file in standard locations."""
    env_path = os.environ.get("WPMANAGER_CONFIG_PATH", "").strip()
    if env_path:
        return Path(env_path)
    for candidate in (Path.cwd() / "wpmanager.yaml", Path.cwd() / "wpmanager.yml"):
        if candidate.exists():
            return candidate
    return None


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay environment variables onto parsed YAML data."""
    for field_name, env_names in _ENV_OVERRIDES.items():
        for env_name in env_names:
            value = os.environ.get(env_name)
            if value is not None and value.strip():
                data[field_name] = value
                break
    return data


def load_settings(config_path: str | None = None) -> AppSettings:
    """Load application settings from YAML and environment.

    Args:
        config_path: Explicit path to a YAML file. If None, searches
            WPMANAGER_CONFIG_PATH then the working directory.

    Returns:
        Validated AppSettings.

    Raises:
        FileNotFoundError: If an explicitly named file does not exist.
        ConfigurationError: If the YAML is malformed or a value is invalid.
    """
    path = Path(config_path) if config_path else _find_config_file()
    raw_data: dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        logger.info("Loading settings from %s", path)
        try:
            with open(path) as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        raw_data = _resolve_env_vars_recursive(loaded)

    data = _apply_env_overrides(raw_data)

    try:
        settings = AppSettings(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e

    if settings.very_slow_response_ms < settings.slow_response_ms:
        raise ConfigurationError(
            "very_slow_response_ms must be greater than or equal to slow_response_ms"
        )
    return settings
