"""
Configuration management for HomeLens using Pydantic.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, ClassVar, List, cast

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from homelens.errors import ConfigurationError

# --- Setup Logging ---
log = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# --- Nested Configuration Models ---


class FetchConfig(BaseModel):
    """Listing page fetch configuration."""

    timeout: float = Field(default=10.0, gt=0, description="Per-attempt HTTP timeout in seconds.")
    max_attempts: int = Field(default=3, ge=1, le=10, description="Total attempts per fetch, first one included.")
    backoff_base_seconds: float = Field(
        default=1.0, ge=0, description="Base delay for exponential backoff between attempts."
    )
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent sent on the first attempt.")
    rotate_user_agents: bool = Field(default=True, description="Use a different browser User-Agent on retries.")
    accept_language: str = Field(default="en-GB,en;q=0.9", description="Accept-Language header.")
    cache_ttl_seconds: float = Field(default=300.0, ge=0, description="Page cache lifetime. 0 disables caching.")
    cache_max_entries: int = Field(default=256, ge=1, description="Maximum number of cached pages.")
    max_concurrency: int = Field(default=4, ge=1, description="Concurrent fetches for batch requests.")


class ExtractionSettings(BaseModel):
    """Configuration for the listing date cascade."""

    date_keys: List[str] = Field(
        default_factory=lambda: [
            "addedOn",
            "firstListedDate",
            "datePosted",
            "datePublished",
            "listedDate",
            "addedDate",
        ],
        description="Key fragments that mark a listing date inside embedded JSON.",
    )
    model_names: List[str] = Field(
        default_factory=lambda: ["jsonModel", "__PRELOADED_STATE__", "PAGE_MODEL", "pageModel", "propertyData"],
        description="Script variable names holding the page model.",
    )
    max_search_depth: int = Field(default=5, ge=0, description="Maximum nesting depth searched for date keys.")
    min_object_length: int = Field(default=100, ge=0, description="Smallest bare object considered by the fallback.")

    @field_validator("date_keys")
    @classmethod
    def validate_date_keys(cls, v: List[str]) -> List[str]:
        """Ensure at least one date key is configured."""
        if not v:
            raise ValueError("date_keys must contain at least one key")
        return v


class PriceHistorySettings(BaseModel):
    """Bounds applied to the year/price text patterns."""

    min_year: int = 1990
    max_year: int = 2025
    min_price: int = 50_000
    max_price: int = 2_000_000
    limit: int = Field(default=10, ge=1)

    @model_validator(mode="after")
    def check_ranges(self) -> "PriceHistorySettings":
        if self.min_year > self.max_year:
            raise ValueError("min_year must not exceed max_year")
        if self.min_price > self.max_price:
            raise ValueError("min_price must not exceed max_price")
        return self


class MonitoringConfig(BaseModel):
    """Configuration for logging."""

    log_level: str = Field(default="INFO", description="Logging level (e.g., DEBUG, INFO, WARNING).")
    log_file: str | None = Field(default=None, description="Path to log file. If None, logs to console.")
    json_logs: bool = Field(default=False, description="Render console logs as JSON.")

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("log_file", mode="before")
    @classmethod
    def create_parent_dir(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)


class WebConfig(BaseModel):
    """Configuration for the HTTP API."""

    host: str = Field(default="127.0.0.1", description="Host for the web server.")
    port: int = Field(default=8000, description="Port for the web server.")


# --- Main Configuration Class ---


class Config(BaseSettings):
    project_name: str = "HomeLens"
    version: str = "0.1.0"
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    price_history: PriceHistorySettings = Field(default_factory=PriceHistorySettings)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    web: WebConfig = Field(default_factory=WebConfig)

    model_config = SettingsConfigDict(env_prefix="HOMELENS_", env_nested_delimiter="__", case_sensitive=False)

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        log.debug("Loading configuration from YAML file: %s", path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found or is not a file: {path}")
        with open(path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
        if not yaml_data:
            log.warning("Configuration file is empty: %s. Using default settings.", path)
            return cls.model_validate({})
        if not isinstance(yaml_data, dict):
            raise ConfigurationError(f"Configuration file must contain a mapping: {path}")
        return cls.model_validate(yaml_data)


def find_config_file() -> Path | None:
    current_dir = Path.cwd()
    paths_to_check = [
        current_dir / "config.yaml",
        current_dir / "config.yml",
    ]
    for path in paths_to_check:
        if path.exists():
            return path

    example_path = current_dir / "config.example.yaml"
    if example_path.exists():
        return example_path

    return None


def load_config(path: Path | None = None) -> Config:
    """Load configuration from ``path``, a discovered config file, or defaults."""
    path = path or find_config_file()
    if path is None:
        return Config()
    try:
        return Config.from_yaml(path)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e


# --- Lazy Configuration Loader ---


class LazyConfig:
    """
    A proxy for the Config object that delays its loading and validation
    until an attribute is first accessed. This prevents configuration errors
    from crashing the application on import.
    """

    _config: ClassVar[Config | None] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __getattr__(self, name: str) -> Any:
        if self.__class__._config is None:
            with self.__class__._lock:
                if self.__class__._config is None:
                    self.__class__._config = self._load_config_with_fallback()
        return getattr(self.__class__._config, name)

    @classmethod
    def reset(cls) -> None:
        """Forget the loaded configuration so the next access reloads it."""
        with cls._lock:
            cls._config = None

    def _load_config_with_fallback(self) -> Config:
        """Load configuration from file or fall back to defaults."""
        config_path = find_config_file()
        if config_path:
            try:
                log.info("Lazy loading configuration from: %s", config_path)
                return Config.from_yaml(config_path)
            except (ValidationError, FileNotFoundError, ConfigurationError, yaml.YAMLError) as e:
                log.error(
                    "Failed to load or validate configuration from '%s': %s. "
                    "Falling back to default settings. Please check your config file.",
                    config_path,
                    e,
                    exc_info=log.getEffectiveLevel() <= logging.DEBUG,
                )
        else:
            log.info("No config file found. Using default settings for lazy load.")

        try:
            return Config()
        except ValidationError as e:
            log.critical("FATAL: Default configuration is invalid: %s", e, exc_info=True)
            raise ConfigurationError(f"Default configuration is invalid, cannot start: {e}") from e


# --- Global Settings Instance ---
settings: "Config" = cast("Config", LazyConfig())
