"""
FastAPI Application Factory & Configuration.

This module initializes the FastAPI application instance. It is responsible for:
1.  **Middleware Setup**: CORS for browser front-ends.
2.  **Exception Handling**: Global handlers so every error returns structured JSON.
3.  **Routing**: Mounting the generation and manifest routers, plus `/health`.
4.  **Lifecycle**: Loading the manifest at startup so a broken manifest fails fast.

We use an **Application Factory** pattern (`create_app`) so tests can spin
up isolated app instances.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pagesmith import __version__
from pagesmith.api.routers import generate, manifest
from pagesmith.core.settings import get_logger, load_settings
from pagesmith.manifest.loader import get_manifest_store

_log = get_logger("pagesmith.api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    ASGI Lifespan context manager.

    - **Startup**: load the active manifest (raises on a malformed file).
    - **Shutdown**: nothing to release.
    """
    active = get_manifest_store().current()
    _log.info(
        "PageSmith API starting: %d block types, policy=%s",
        len(active.block_types),
        load_settings().failure_policy,
    )
    yield
    _log.info("PageSmith API shutting down")


def create_app() -> FastAPI:
    """
    Construct and configure the PageSmith FastAPI application.

    Returns
    -------
    FastAPI
        The configured ASGI application ready to be served by Uvicorn.
    """
    app = FastAPI(
        title="PageSmith API",
        description="Schema-compliant CMS content blocks from LLM replies",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # -----------------------------------------------------------------------
    # Middleware
    # -----------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------------------------------------------------
    # Global Exception Handlers
    # -----------------------------------------------------------------------
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Return structured JSON instead of a bare 500 page."""
        _log.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "detail": str(exc),
                "path": request.url.path,
            },
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        """Map Python ValueErrors (bad policy names, bad manifests) to HTTP 400."""
        return JSONResponse(
            status_code=400,
            content={
                "error": "Bad Request",
                "detail": str(exc),
            },
        )

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------
    app.include_router(generate.router)
    app.include_router(manifest.router)

    @app.get("/health", tags=["System"])
    async def health_check() -> dict[str, str]:
        """Simple liveness probe."""
        return {
            "status": "ok",
            "environment": load_settings().environment,
            "version": __version__,
        }

    return app


__all__ = ["create_app"]
