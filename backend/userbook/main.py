"""
Userbook Backend - FastAPI Application Factory
==============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers;
       lifespan() configures logging and bootstraps storage on startup.
Who:   uvicorn userbook.main:app --workers 1

Lifecycle:
    Startup:
    1. Initialize logging
    2. Create the upload directory
    3. Create an empty record document if none exists
       (an existing one is left alone, even if malformed; /health reports it)

    Shutdown:
    1. Log shutdown (the stores hold no open handles between operations)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from userbook import __version__
from userbook.config import settings
from userbook.exceptions import (
    AssetWriteError,
    NotFoundError,
    StoreUnavailableError,
    UserbookError,
    ValidationError,
)
from userbook.middleware.logging import RequestLoggingMiddleware
from userbook.middleware.request_id import RequestIDMiddleware, request_id_var
from userbook.routes import health, users
from userbook.services.user_service import user_service

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once, before anything else logs.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("Userbook Backend %s starting up...", __version__)

    user_service.assets.upload_root.mkdir(parents=True, exist_ok=True)
    logger.info("Upload directory: %s", user_service.assets.upload_root)

    try:
        await user_service.records.initialize()
    except StoreUnavailableError as e:
        # Keep serving so /health can report the problem
        logger.error("Record store could not be initialized: %s", e.context)

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Userbook Backend shutting down...")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP responses.

    Handler hierarchy:
        ValidationError         → 400 Bad Request
        NotFoundError           → 404 Not Found
        AssetWriteError         → 500 Internal Server Error
        StoreUnavailableError   → 503 Service Unavailable
        UserbookError (base)    → 500 Internal Server Error
        Exception (fallback)    → 500 Internal Server Error

    Context dicts (paths, OS errors) are logged, never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        rid = request_id_var.get("")
        logger.warning("[%s] Validation error: %s", rid, exc.message)
        return JSONResponse(
            status_code=400,
            content={
                "error": "validation_error",
                "message": exc.message,
                "details": {"field": exc.field} if exc.field else None,
                "request_id": rid,
            },
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        rid = request_id_var.get("")
        return JSONResponse(
            status_code=404,
            content={
                "error": "not_found",
                "message": exc.message,
                "request_id": rid,
            },
        )

    @app.exception_handler(AssetWriteError)
    async def handle_asset_write_error(request: Request, exc: AssetWriteError):
        rid = request_id_var.get("")
        logger.error("[%s] Asset write error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content={
                "error": "server_error",
                "message": exc.message,
                "request_id": rid,
            },
        )

    @app.exception_handler(StoreUnavailableError)
    async def handle_store_unavailable(request: Request, exc: StoreUnavailableError):
        rid = request_id_var.get("")
        logger.error("[%s] Record store unavailable | Context: %s", rid, exc.context)
        return JSONResponse(
            status_code=503,
            content={
                "error": "store_unavailable",
                "message": exc.message,
                "request_id": rid,
            },
        )

    @app.exception_handler(UserbookError)
    async def handle_userbook_error(request: Request, exc: UserbookError):
        rid = request_id_var.get("")
        logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content={
                "error": "server_error",
                "message": exc.message,
                "request_id": rid,
            },
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Assemble middleware, handlers and routers into a FastAPI instance.

    Middleware executes in reverse order of addition:
    RequestID → Logging → CORS → route.
    """
    app = FastAPI(
        title="Userbook API",
        description=(
            "Create, list and edit user records, each with an optional uploaded image. "
            "Records are persisted in a single JSON document."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(users.router)
    app.include_router(health.router)

    return app


app = create_app()
