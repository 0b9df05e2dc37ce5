"""Central configuration for Smart Photo Diary.

This module is the single source of truth for engine settings. Every other
module that needs model parameters, retry policy or diary defaults imports
from here.

The configuration system supports:
- Multi-source configuration (environment variables > config file > defaults)
- API key lookup (environment > system keyring), never logged
- A cached singleton for application code and a reset hook for tests

Example:
    >>> from smart_diary.config import get_config, get_api_key
    >>>
    >>> cfg = get_config()
    >>> print(cfg.ai.model_name)
    >>> print(cfg.diary.diary_length)  # DiaryLength.STANDARD by default

Config File Format (YAML):
    ```yaml
    ai:
      model_name: gemini-2.5-flash-preview-04-17
      temperature: 0.7
      tag_temperature: 0.3
      max_output_tokens: 1000
      timeout_seconds: 60
      max_retries: 3
      retry_base_delay: 1.0

    diary:
      language: ja        # ja | en
      diary_length: standard  # short | standard
    ```
"""

from __future__ import annotations

import functools
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any

import keyring
import keyring.errors
import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings

from smart_diary.core.models import DiaryLength, Language

# Never log secrets from this module
logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigFileError(ConfigError):
    """Config file exists but cannot be read or is structurally wrong."""


class APIKeyNotFoundError(ConfigError):
    """Raised when no API key is found in the environment or the keyring."""


# =============================================================================
# Enums
# =============================================================================


class KeySource(str, Enum):
    """Where the API key was found.

    The APIKeyManager tries sources in priority order: ENVIRONMENT → KEYRING.
    """

    ENVIRONMENT = "environment"
    KEYRING = "keyring"
    NONE = "none"


# =============================================================================
# Configuration Models
# =============================================================================


class AIConfig(BaseModel):
    """Gemini endpoint and generation settings.

    Attributes:
        model_name: Gemini model identifier.
        base_url: Root of the Generative Language REST API.
        temperature: Sampling temperature for diary text.
        tag_temperature: Lower temperature used for tag lists.
        top_p: Nucleus sampling cutoff.
        top_k: Top-k sampling cutoff.
        max_output_tokens: Default token cap when a call does not set one.
        tag_max_output_tokens: Token cap for tag requests.
        scene_max_output_tokens: Token cap for per-photo scene analysis.
        timeout_seconds: Overall per-request timeout.
        max_retries: Retries after the first attempt (attempts = retries + 1).
        retry_base_delay: Base delay for exponential backoff (seconds).
    """

    model_name: str = Field(default="gemini-2.5-flash-preview-04-17")
    base_url: str = Field(default="https://generativelanguage.googleapis.com/v1beta")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    tag_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    top_p: float = Field(default=0.8, ge=0.0, le=1.0)
    top_k: int = Field(default=10, ge=1)
    max_output_tokens: int = Field(default=1000, ge=1, le=32000)
    tag_max_output_tokens: int = Field(default=100, ge=1)
    scene_max_output_tokens: int = Field(default=500, ge=1)
    timeout_seconds: float = Field(default=60.0, gt=0, le=600)
    max_retries: int = Field(default=3, ge=0, le=10)
    retry_base_delay: float = Field(default=1.0, ge=0.0, le=10.0)

    @property
    def endpoint_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/models/{self.model_name}:generateContent"


class DiaryConfig(BaseModel):
    """User-facing diary defaults (the settings collaborator's values)."""

    language: Language = Field(default=Language.JAPANESE)
    diary_length: DiaryLength = Field(default=DiaryLength.STANDARD)


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Configuration priority (highest wins):
    1. Environment variables (SMART_DIARY_*)
    2. Config file (YAML)
    3. In-code defaults

    Example:
        >>> import os
        >>> os.environ["SMART_DIARY_AI__MAX_RETRIES"] = "5"
        >>> AppConfig().ai.max_retries
        5
    """

    ai: AIConfig = Field(default_factory=AIConfig)
    diary: DiaryConfig = Field(default_factory=DiaryConfig)
    debug: bool = Field(default=False)

    model_config = {
        "env_prefix": "SMART_DIARY_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "extra": "ignore",
    }


# =============================================================================
# API Key Management
# =============================================================================


class APIKeyManager:
    """Look up the Gemini API key from the environment or system keyring.

    Keys are wrapped in SecretStr and cached after the first successful
    lookup. The key value is never logged or put into exception messages.

    Example:
        >>> manager = APIKeyManager()
        >>> key = manager.get_key()
        >>> if key:
        ...     print(manager.get_key_source())
    """

    KEYRING_SERVICE = "smart-photo-diary"
    KEYRING_USERNAME = "gemini"
    ENV_VAR_NAME = "GEMINI_API_KEY"

    def __init__(self) -> None:
        self._cached_key: SecretStr | None = None
        self._key_source: KeySource = KeySource.NONE

    def get_key(self) -> SecretStr | None:
        """Retrieve the key, trying the environment first, then the keyring."""
        if self._cached_key is not None:
            return self._cached_key

        key = self._read_from_environment()
        if key and self.validate_key_format(key):
            self._cached_key = SecretStr(key)
            self._key_source = KeySource.ENVIRONMENT
            logger.debug("API key loaded from environment variable")
            return self._cached_key

        key = self._read_from_keyring()
        if key and self.validate_key_format(key):
            self._cached_key = SecretStr(key)
            self._key_source = KeySource.KEYRING
            logger.debug("API key loaded from system keyring")
            return self._cached_key

        self._key_source = KeySource.NONE
        logger.debug("No API key found in any source")
        return None

    def get_key_source(self) -> KeySource:
        return self._key_source

    def store_key(self, key: str) -> bool:
        """Store a key in the system keyring.

        Returns:
            True if stored, False if the key is malformed or the keyring failed.
        """
        key = key.strip()
        if not self.validate_key_format(key):
            return False
        try:
            keyring.set_password(self.KEYRING_SERVICE, self.KEYRING_USERNAME, key)
        except keyring.errors.KeyringError as e:
            logger.warning(f"Could not store key in keyring: {type(e).__name__}")
            return False
        self._cached_key = SecretStr(key)
        self._key_source = KeySource.KEYRING
        return True

    def validate_key_format(self, key: str) -> bool:
        """Basic sanity check; does not contact the API."""
        if not key or len(key) < 20:
            return False
        return not any(c.isspace() for c in key)

    def _read_from_environment(self) -> str | None:
        key = os.environ.get(self.ENV_VAR_NAME)
        if key:
            return key.strip()
        return None

    def _read_from_keyring(self) -> str | None:
        try:
            return keyring.get_password(self.KEYRING_SERVICE, self.KEYRING_USERNAME)
        except keyring.errors.KeyringError as e:
            # No usable backend on headless machines
            logger.debug(f"Keyring access failed: {type(e).__name__}")
            return None


# =============================================================================
# Loading
# =============================================================================

DEFAULT_SEARCH_PATHS = (
    Path("./config.yaml"),
    Path("./config.yml"),
    Path.home() / ".smart-diary" / "config.yaml",
)


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from file, environment, and defaults.

    If no config file is found, uses defaults only (not an error). A
    malformed file logs a warning and falls back to defaults.

    Args:
        path: Optional path to a config file. If None, searches default locations.

    Raises:
        ConfigFileError: If an explicitly given path does not exist.
    """
    if path is not None and not path.exists():
        raise ConfigFileError(f"Config file not found: {path}")

    config_file: Path | None = None
    for candidate in (path, *DEFAULT_SEARCH_PATHS):
        if candidate is not None and candidate.exists():
            config_file = candidate
            break

    config_data: dict[str, Any] = {}
    if config_file is not None:
        try:
            loaded = yaml.safe_load(config_file.read_text(encoding="utf-8"))
            if isinstance(loaded, dict):
                config_data = loaded
            elif loaded is not None:
                logger.warning(f"Config file {config_file} has unexpected format. Using defaults.")
        except yaml.YAMLError as e:
            logger.warning(f"Failed to parse config file {config_file}: {e}. Using defaults.")
        except OSError as e:
            logger.warning(
                f"Failed to read config file {config_file}: {type(e).__name__}. Using defaults."
            )

    try:
        # Environment variables override the file section by section
        env_config = AppConfig()
        ai_data = {**(config_data.get("ai") or {}), **_explicit_fields(env_config.ai)}
        diary_data = {**(config_data.get("diary") or {}), **_explicit_fields(env_config.diary)}
        return AppConfig(
            ai=AIConfig(**ai_data),
            diary=DiaryConfig(**diary_data),
            debug=(
                env_config.debug
                if "debug" in env_config.model_fields_set
                else config_data.get("debug", False)
            ),
        )
    except (TypeError, ValueError) as e:
        logger.warning(f"Error parsing config values: {e}. Using defaults.")
        return AppConfig()


def _explicit_fields(section: BaseModel) -> dict[str, Any]:
    return {name: getattr(section, name) for name in section.model_fields_set}


@functools.lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Get the cached configuration singleton."""
    return load_config()


def get_api_key() -> SecretStr:
    """Return the configured Gemini API key.

    Raises:
        APIKeyNotFoundError: If no key is configured in any source.
    """
    key = APIKeyManager().get_key()
    if key is None:
        raise APIKeyNotFoundError(
            "No API key found. Set the GEMINI_API_KEY environment variable "
            "or run 'smart-diary store-key'."
        )
    return key


def reset_config() -> None:
    """Clear the configuration cache so the next get_config() reloads."""
    get_config.cache_clear()
