"""Auth broker FastAPI application factory."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse, Response
from prometheus_fastapi_instrumentator import Instrumentator

from auth_broker.config import Settings, get_settings
from auth_broker.middleware.error_handler import ErrorHandlerMiddleware, store_error_handler
from auth_broker.middleware.logging import LoggingMiddleware, setup_logging
from auth_broker.platform import build_platform
from auth_broker.routers import oauth
from auth_broker.services.stores import StoreError

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan: startup and shutdown."""
        setup_logging(debug=settings.debug)
        logger.info("Starting auth broker (env=%s)", settings.app_env)
        if not settings.has_primary_token_store:
            logger.info("No primary token store configured; legacy token table is the only store")

        app.state.platform = build_platform(settings)

        yield

        # Shutdown
        await app.state.platform.aclose()
        logger.info("Auth broker shutting down")

    is_production = settings.app_env == "production"
    app = FastAPI(
        title="Auth Broker",
        description="OAuth2 broker that signs users in with Google and issues its own bearer tokens",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
    )

    # Middleware (order matters: outermost first)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_exception_handler(StoreError, store_error_handler)

    app.include_router(oauth.router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "auth-broker"}

    @app.get("/health/ready")
    async def health_ready():
        """Deep health check: verifies database and Redis connectivity."""
        checks: dict = {}
        platform = app.state.platform

        for name, probe in platform.probes.items():
            try:
                await probe()
                checks[name] = "ok"
            except Exception as e:
                checks[name] = f"error: {type(e).__name__}"

        all_ok = all(v == "ok" for v in checks.values())
        status_code = 200 if all_ok else 503

        return JSONResponse(
            status_code=status_code,
            content={"status": "ready" if all_ok else "degraded", "checks": checks},
        )

    # Prometheus instrumentation
    instrumentator = Instrumentator(
        excluded_handlers=["/health", "/health/ready", "/docs", "/redoc", "/openapi.json", "/metrics"],
    )
    instrumentator.instrument(app)

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        """Prometheus metrics endpoint with multiprocess support."""
        from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest, multiprocess

        multiproc_dir = os.environ.get("PROMETHEUS_MULTIPROC_DIR")
        if multiproc_dir:
            registry = CollectorRegistry()
            multiprocess.MultiProcessCollector(registry)
            data = generate_latest(registry)
        else:
            data = generate_latest()

        return Response(content=data, media_type=CONTENT_TYPE_LATEST)

    return app


# Default app instance for uvicorn
app = create_app()
