import asyncio
import logging
from contextlib import asynccontextmanager

import logfire
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from fedauth.application.api.v1.errors import map_fedauth_error
from fedauth.application.api.v1.routes import health, identification, oauth
from fedauth.application.di import create_container
from fedauth.config import Config, configure_logging
from fedauth.domain.shared.error import FedAuthError
from fedauth.infrastructure.persistence.migrate import run_migrations
from fedauth.util.di.fastapi import setup_dishka

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    container = app.state.dishka_container
    config = await container.get(Config)

    # Auto-migrate SQLite; PostgreSQL deployments migrate out of band
    if config.database.auto_migrate and config.database.url.startswith("sqlite"):
        await asyncio.to_thread(run_migrations, config.database.url)

    yield

    await container.close()


def create_app(config: Config | None = None) -> FastAPI:
    """Create FastAPI application."""
    # Pydantic Settings populates from env vars at runtime
    config = config or Config()  # type: ignore[call-arg]

    # Configure logging early
    configure_logging(config.logging)
    logger.info(
        "Starting FedAuth server: %s v%s (%s)",
        config.server.name,
        config.server.version,
        config.instance.environment,
    )

    app_instance = FastAPI(
        title=config.server.name,
        description=config.server.description,
        version=config.server.version,
        lifespan=lifespan,
    )

    # Instrument FastAPI for automatic tracing of HTTP requests
    logfire.instrument_httpx()
    logfire.instrument_fastapi(app_instance)

    # Setup dependency injection
    container = create_container(config)
    setup_dishka(container, app_instance)

    # Register v1 routes
    app_instance.include_router(health.router, prefix="/v1")
    app_instance.include_router(oauth.router, prefix="/v1")
    app_instance.include_router(identification.router, prefix="/v1")

    # Global FedAuth error handler - maps domain and infrastructure errors to HTTP responses
    @app_instance.exception_handler(FedAuthError)
    async def fedauth_error_handler(request: Request, exc: FedAuthError):
        http_exc = map_fedauth_error(exc)
        return JSONResponse(
            status_code=http_exc.status_code,
            content=http_exc.detail,
        )

    # Global exception handler - logs all unhandled exceptions
    @app_instance.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app_instance


# Create app instance for uvicorn
# Note: Logfire must be configured before this module is imported
app = create_app()
