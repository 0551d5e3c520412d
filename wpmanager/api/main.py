"""FastAPI application for WP AI Manager.

``create_app`` wires routers, middleware and exception handlers. Long-lived
services (credential codec, WordPress gateway, AI dispatcher, site monitor)
are built once in the lifespan, or passed in ready-made, and stored on
``app.state.services``.
"""

import logging
import sys
import time as _time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from wpmanager import __version__
from wpmanager.api.middleware.api_key_gate import (
    FailureWindow,
    api_key_gate,
    validate_api_key_strength,
)
from wpmanager.api.routes import ai, api_keys, conversations, hosting_accounts, monitoring, sites
from wpmanager.config import AppSettings, load_settings
from wpmanager.db.connection import close_db, init_db
from wpmanager.errors import AccessDeniedError, NotFoundError, ValidationError, WPManagerError
from wpmanager.services.ai import AIConfigurationError
from wpmanager.services.container import AppServices, build_services
from wpmanager.services.site_gateway import SiteGatewayError

# Configure logging to stdout for uvicorn to capture
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logging.getLogger("wpmanager").setLevel(logging.INFO)

logger = logging.getLogger(__name__)


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(WPManagerError)
    async def wpmanager_error_handler(request: Request, exc: WPManagerError) -> JSONResponse:
        return JSONResponse(status_code=400, content=exc.to_dict())

    @app.exception_handler(AIConfigurationError)
    async def ai_configuration_error_handler(
        request: Request, exc: AIConfigurationError
    ) -> JSONResponse:
        body = exc.to_app_error().to_dict()
        body["message"] = exc.message
        return JSONResponse(status_code=400, content=body)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"message": exc.message})

    @app.exception_handler(AccessDeniedError)
    async def access_denied_handler(request: Request, exc: AccessDeniedError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"message": exc.message})

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"message": exc.message})

    @app.exception_handler(SiteGatewayError)
    async def site_gateway_error_handler(request: Request, exc: SiteGatewayError) -> JSONResponse:
        return JSONResponse(
            status_code=502,
            content={"message": exc.message, "status_code": exc.status_code},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error on %s %s: %s: %s",
            request.method, request.url.path, type(exc).__name__, exc,
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content={"message": "Internal server error"})


def create_app(
    settings: AppSettings | None = None,
    services: AppServices | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Application settings; loaded from YAML/env when omitted.
        services: Pre-built service container (tests pass one with fakes).
            When omitted it is built during startup.
    """
    if services is not None:
        settings = services.settings
    elif settings is None:
        settings = load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # --- Startup ---
        validate_api_key_strength(settings.api_key)
        init_db()
        if getattr(app.state, "services", None) is None:
            app.state.services = build_services(settings)
        app.state.started_at = _time.time()
        container: AppServices = app.state.services
        if settings.monitoring_enabled:
            container.monitor.start()

        yield

        # --- Shutdown ---
        await container.monitor.stop()
        close_db()

    app = FastAPI(
        title="WP AI Manager API",
        description="Manage WordPress sites through natural-language commands",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services
    app.state.started_at = _time.time()

    # Shared-key gate for /api/* when WPMANAGER_API_KEY is configured.
    app.state.auth_failures = FailureWindow.from_settings(settings)
    app.middleware("http")(api_key_gate(settings, app.state.auth_failures))

    # CORS allowlist is config-driven. If unset, CORS is disabled (same-origin only).
    if settings.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization", "X-API-Key", "X-User-Id"],
        )

    _register_exception_handlers(app)

    app.include_router(sites.router, prefix="/api/v1")
    app.include_router(conversations.router, prefix="/api/v1")
    app.include_router(ai.router, prefix="/api/v1")
    app.include_router(api_keys.router, prefix="/api/v1")
    app.include_router(hosting_accounts.router, prefix="/api/v1")
    app.include_router(monitoring.router, prefix="/api/v1")

    @app.get("/health")
    def health_check(request: Request) -> dict:
        """Liveness with uptime, AI backends and monitor state."""
        container: AppServices | None = request.app.state.services
        return {
            "status": "healthy",
            "version": __version__,
            "uptime_seconds": int(_time.time() - request.app.state.started_at),
            "ai_providers": container.dispatcher.available_providers() if container else [],
            "monitor_active": container.monitor.is_active if container else False,
        }

    @app.get("/readyz")
    def readiness_check(request: Request):
        """Dependency-aware readiness check."""
        from sqlalchemy import text

        from wpmanager.db.connection import get_db_context

        checks: dict[str, dict[str, Any]] = {}
        try:
            with get_db_context() as db:
                db.execute(text("SELECT 1"))
            checks["database"] = {"status": "ok"}
        except Exception as exc:
            return JSONResponse(
                status_code=503,
                content={
                    "status": "not_ready",
                    "checks": {"database": {"status": "error", "message": str(exc)}},
                },
            )

        status = "ready"
        container: AppServices | None = request.app.state.services
        available = container.dispatcher.available_providers() if container else []
        if available:
            checks["ai_providers"] = {"status": "configured", "providers": available}
        else:
            checks["ai_providers"] = {"status": "degraded", "providers": []}
            status = "degraded"

        return {"status": status, "checks": checks}

    return app


app = create_app()
