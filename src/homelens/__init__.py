"""
HomeLens - listing facts extraction: time on market and price history.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import Config
from .container import DependencyContainer
from .price_history import PriceHistoryExtractor, PriceHistoryScraper, analyze_price_history
from .time_on_market import TimeOnMarketScraper, analyze_listing

__all__ = [
    "__version__",
    "Config",
    "DependencyContainer",
    "PriceHistoryExtractor",
    "PriceHistoryScraper",
    "TimeOnMarketScraper",
    "analyze_listing",
    "analyze_price_history",
]
