"""Configuration for HomeLens."""

from .config import (
    Config,
    ExtractionSettings,
    FetchConfig,
    LazyConfig,
    MonitoringConfig,
    PriceHistorySettings,
    WebConfig,
    find_config_file,
    load_config,
    settings,
)

__all__ = [
    "Config",
    "ExtractionSettings",
    "FetchConfig",
    "LazyConfig",
    "MonitoringConfig",
    "PriceHistorySettings",
    "WebConfig",
    "find_config_file",
    "load_config",
    "settings",
]
