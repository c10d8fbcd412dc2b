"""
FastAPI application exposing the collected samples and the dashboard.

Routes:
- GET /api/data          all tracked universes mapped to their histories
- GET /api/data/{id}     one universe's history (404 if not tracked)
- GET /api/growth/{id}   one universe's growth-only history (404 if not tracked)
- GET /api/status        poller supervisor status
- GET /                  static Chart.js dashboard
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from rbx_tracker import __version__
from rbx_tracker.config import AppConfig
from rbx_tracker.errors import TrackerError
from rbx_tracker.fetcher import GameStatsFetcher
from rbx_tracker.logging import get_logger
from rbx_tracker.metrics.sampler import TrackerSupervisor
from rbx_tracker.metrics.storage import SampleStore
from rbx_tracker.query import TrackerQueries

logger = get_logger(__name__)

STATIC_DIR = Path(__file__).parent / "static"

# error_code -> HTTP status
ERROR_STATUS_CODES = {
    "invalid_argument": 400,
    "not_found": 404,
    "failed_precondition": 409,
    "unavailable": 503,
    "internal": 500,
}

router = APIRouter(prefix="/api", tags=["data"])


def _queries(request: Request) -> TrackerQueries:
    return request.app.state.queries


@router.get("/data")
async def get_all_data(request: Request) -> dict[str, list[dict[str, Any]]]:
    """Return the histories of all tracked universes keyed by universe id."""
    return await _queries(request).all_data()


@router.get("/data/{universe_id}")
async def get_universe_data(request: Request, universe_id: str) -> list[dict[str, Any]]:
    """Return the full history of one universe."""
    return await _queries(request).history(universe_id)


@router.get("/growth/{universe_id}")
async def get_universe_growth(
    request: Request, universe_id: str
) -> list[dict[str, Any]]:
    """Return only the growth metrics of one universe."""
    return await _queries(request).growth(universe_id)


@router.get("/status")
async def get_status(request: Request) -> dict[str, Any]:
    """Return the poller supervisor status."""
    supervisor: TrackerSupervisor = request.app.state.supervisor
    return supervisor.get_status().to_dict()


async def _tracker_error_handler(request: Request, exc: TrackerError) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(exc.error_code, 500)
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.message, "error_code": exc.error_code},
    )


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unexpected error handling request",
        extra={"path": request.url.path, "error": str(exc)},
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": f"Internal server error: {type(exc).__name__}",
            "error_code": "internal",
        },
    )


def create_app(
    config: AppConfig | None = None,
    *,
    fetcher: GameStatsFetcher | None = None,
    start_polling: bool = True,
) -> FastAPI:
    """
    Build the application and its tracker components.

    Args:
        config: Application configuration (defaults if omitted).
        fetcher: Games API client; built from config if omitted.
        start_polling: Start the poller supervisor in the app lifespan.

    Returns:
        Configured FastAPI instance. The store, queries and supervisor are
        available on app.state.
    """
    config = config or AppConfig()
    store = SampleStore(config.storage.data_dir)
    fetcher = fetcher or GameStatsFetcher.from_config(config.tracker)
    supervisor = TrackerSupervisor(store, fetcher, config.tracker)
    queries = TrackerQueries(store, config.tracker.universe_ids)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if start_polling:
            await supervisor.start()
        try:
            yield
        finally:
            await supervisor.stop()

    app = FastAPI(
        title="Roblox Game Analytics Tracker",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.store = store
    app.state.supervisor = supervisor
    app.state.queries = queries

    app.add_exception_handler(TrackerError, _tracker_error_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)
    app.include_router(router)
    # Mounted last so /api routes take precedence over static files
    app.mount("/", StaticFiles(directory=str(STATIC_DIR), html=True), name="dashboard")

    return app
