"""
FastAPI application factory and main entry point.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.middleware import WideEventMiddleware
from app.api.routes import health, oauth
from app.core.config import settings
from app.core.exceptions import MPConnectException
from app.core.logging import configure_logging
from app.db import close_db, init_db
from app.services.mercadopago.environment import get_oauth_environment

# Configure structured logging with wide events support
configure_logging(
    json_logs=not settings.debug,  # JSON in production, console in dev
    log_level="DEBUG" if settings.debug else "INFO",
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    logger.info("Starting MP Connect API", version=settings.app_version)
    await init_db()
    logger.info("Database initialized")

    # Resolve the redirect URI once, before the first request needs it
    environment = get_oauth_environment()
    if not settings.mp_app_id or not settings.mp_app_secret:
        logger.warning(
            "⚠️  MP_APP_ID / MP_APP_SECRET not configured! "
            "Mercado Pago account linking will fail until they are set.",
            redirect_uri=environment.redirect_uri,
        )

    yield

    logger.info("Shutting down MP Connect API")
    await close_db()
    logger.info("Database connections closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Mercado Pago account linking for marketplace providers",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Wide Events middleware - canonical log line per request
    app.add_middleware(WideEventMiddleware)

    app.include_router(health.router, tags=["Health"])
    app.include_router(oauth.router, prefix="/api", tags=["Mercado Pago"])

    # Exception Handlers
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle FastAPI validation errors"""
        logger.warning("Validation error", url=str(request.url.path), errors=exc.errors())
        return JSONResponse(
            status_code=422,
            content={
                "error": "Validation failed",
                "details": jsonable_errors(exc),
            },
        )

    @app.exception_handler(MPConnectException)
    async def app_exception_handler(request: Request, exc: MPConnectException):
        """Handle application errors: status from the exception, message to the client."""
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "Request failed",
            url=str(request.url.path),
            error_type=exc.error_type,
            message=exc.message,
            details=exc.details,
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions"""
        logger.error("Unexpected error", url=str(request.url.path), error=str(exc), exc_info=True)

        # Don't expose internal details in production
        message = str(exc) if settings.debug else "An unexpected error occurred"

        return JSONResponse(status_code=500, content={"error": message})

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without the raw input values."""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
