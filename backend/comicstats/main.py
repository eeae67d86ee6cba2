# backend/comicstats/main.py

from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from comicstats.config import settings
from comicstats.errors import ComicNotFoundError, CommunicationError
from comicstats.logger import logger as app_logger
from comicstats.routers import buttons, health, metrics as metrics_router, stats
from comicstats.services.context import StatsContext, build_context

logger = logging.getLogger(__name__)


def create_app(context: Optional[StatsContext] = None) -> FastAPI:
    """Build the button/stats application.

    ``context`` lets callers (tests, embedding processes) supply their own
    store/queue wiring; by default one is built from ``settings``.
    """

    # --- Lifespan Management for Connections ---
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Connects Redis, starts the view consumer and loads button images."""
        app_logger.info("--- Application starting up... ---")
        ctx = context or build_context(settings)
        await run_in_threadpool(ctx.start)
        app.state.stats = ctx
        app.state.buttons = buttons.load_button_images(settings.BUTTON_ASSET_DIR)
        app_logger.info(f"Redis {ctx.store.state.value}; loaded {len(app.state.buttons)} button images")
        app_logger.info("--- Startup complete. ---")
        yield
        app_logger.info("--- Application shutting down... ---")
        await run_in_threadpool(ctx.shutdown)
        app_logger.info("--- Shutdown complete. ---")

    app = FastAPI(
        title="ComicRank Stats",
        lifespan=lifespan,
    )

    # --- Global Exception Handlers (standard error envelope) ---
    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):
        payload = {"error": {"code": exc.status_code, "message": exc.detail}}
        return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):
        payload = {"error": {"code": 422, "message": "Validation error", "details": exc.errors()}}
        return JSONResponse(status_code=422, content=payload)

    @app.exception_handler(ComicNotFoundError)
    async def not_found_handler(request: Request, exc: ComicNotFoundError):
        payload = {"error": {"code": 404, "message": str(exc)}}
        return JSONResponse(status_code=404, content=payload)

    # Store outages are temporary; report 503 rather than 500
    @app.exception_handler(CommunicationError)
    async def communication_handler(request: Request, exc: CommunicationError):
        payload = {"error": {"code": 503, "message": str(exc)}}
        return JSONResponse(status_code=503, content=payload)

    # Lightweight request logger
    @app.middleware("http")
    async def _request_log_mw(request: Request, call_next):
        response = await call_next(request)
        if not request.url.path.startswith("/health"):
            logger.debug(f"REQ {request.method} {request.url.path} -> {response.status_code}")
        return response

    # --- Routers ---
    app.include_router(health.router)
    app.include_router(metrics_router.router)
    app.include_router(stats.router)
    # Catch-all legacy paths live in the buttons router, so it goes last
    app.include_router(buttons.router)
    return app


app = create_app()
