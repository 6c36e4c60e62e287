"""
FastAPI application exposing the listing extractors over HTTP.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, Optional

import structlog
import uvicorn
from fastapi import FastAPI, Query, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from homelens import __version__
from homelens.container import DependencyContainer
from homelens.errors import FetchError, ListingURLError

logger = structlog.get_logger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"ok": False, "error": message}, status_code=status_code)


def _container(request: Request) -> DependencyContainer:
    return request.app.state.container  # type: ignore[no-any-return]


def create_app(container: Optional[DependencyContainer] = None) -> FastAPI:
    """Build the API. A container passed in is used instead of a fresh one."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        owned = container or DependencyContainer()
        async with owned.lifecycle():
            app.state.container = owned
            logger.info("HomeLens API started", version=__version__)
            yield
        logger.info("HomeLens API stopped")

    app = FastAPI(title="HomeLens Listing API", version=__version__, lifespan=lifespan)

    @app.get("/api/rightmove-added")
    async def rightmove_added(request: Request, url: str = Query(default="")) -> Any:
        """Time on market for one listing."""
        scraper = await _container(request).get_time_on_market_scraper()
        try:
            record = await scraper.scrape(url)
        except ListingURLError as e:
            return _error(status.HTTP_400_BAD_REQUEST, e.reason)
        except FetchError as e:
            return _error(status.HTTP_502_BAD_GATEWAY, f"Fetch failed: {e.message}")
        return {"ok": True, **record.to_dict()}

    @app.get("/api/rightmove-price-history")
    async def rightmove_price_history(request: Request, url: str = Query(default="")) -> Any:
        """Price history for one listing; ``dataQuality`` is ``none`` when nothing was found."""
        scraper = await _container(request).get_price_history_scraper()
        try:
            result = await scraper.scrape(url)
        except ListingURLError as e:
            return _error(status.HTTP_400_BAD_REQUEST, e.reason)
        except FetchError as e:
            return _error(status.HTTP_502_BAD_GATEWAY, f"Fetch failed: {e.message}")
        data = result.to_dict()
        return {
            "ok": True,
            "priceHistory": data["priceHistory"],
            "source": data["source"],
            "dataQuality": data["dataQuality"],
        }

    @app.post("/api/clear-cache")
    async def clear_cache(request: Request) -> Dict[str, Any]:
        cleared = _container(request).clear_page_cache()
        return {
            "success": True,
            "cleared": cleared,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/health")
    async def health(request: Request) -> Dict[str, Any]:
        return {"status": "ok", "version": __version__, **_container(request).get_health_status()}

    @app.get("/metrics")
    async def metrics() -> PlainTextResponse:
        """Endpoint for Prometheus to scrape."""
        return PlainTextResponse(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


def run_web_server(host: str = "127.0.0.1", port: int = 8000, container: Optional[DependencyContainer] = None) -> None:
    """Run the API with uvicorn until interrupted."""
    uvicorn.run(create_app(container), host=host, port=port, log_config=None)
