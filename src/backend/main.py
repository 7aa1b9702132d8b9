"""
TrustShield Backend Application

Server-side trust and abuse mitigation for reward-granting actions.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from api.v1 import router as api_v1_router
from core.config import settings
from core.events import create_start_app_handler, create_stop_app_handler
from core.exceptions import InputValidationError, StoreUnavailableError

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    await create_start_app_handler(app)()
    yield
    await create_stop_app_handler(app)()


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title=settings.APP_NAME,
        description="Trust and abuse mitigation engine for reward-granting actions",
        version="1.0.0",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    application.include_router(api_v1_router, prefix="/api/v1")

    @application.exception_handler(InputValidationError)
    async def input_validation_handler(request: Request, exc: InputValidationError) -> JSONResponse:
        logger.info("invalid_input", path=request.url.path, field=exc.field, error=exc.message)
        return JSONResponse(
            status_code=400,
            content={"error": "invalid_input", "message": exc.message, "field": exc.field},
        )

    @application.exception_handler(StoreUnavailableError)
    @application.exception_handler(SQLAlchemyError)
    async def store_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("store_unavailable", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=503,
            content={
                "outcome": "indeterminate",
                "error": "store_unavailable",
                "message": "The trust store is temporarily unavailable. Please try again.",
            },
        )

    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler to catch unhandled exceptions.

        Always answers with structured JSON, so clients never have to parse
        an HTML error page.
        """
        logger.exception(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
        )
        return JSONResponse(
            status_code=500,
            content={
                "outcome": "indeterminate",
                "detail": "An internal server error occurred. Please try again later.",
                "error_type": type(exc).__name__ if settings.DEBUG else "InternalServerError",
            },
        )

    return application


app = create_application()


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for load balancers and monitoring."""
    return {"status": "healthy", "service": "trustshield-api"}


@app.get("/health/services", tags=["Health"])
async def service_status() -> dict:
    """
    Configuration status of the external collaborators.

    Used by smoke tests to verify deployment completeness.
    """
    services = {
        "database": {"configured": bool(settings.DATABASE_URL or settings.POSTGRES_HOST)},
        "ledger": {"configured": bool(settings.LEDGER_SERVICE_URL)},
        "notifications": {"configured": bool(settings.NOTIFICATION_SERVICE_URL)},
    }
    all_configured = all(svc["configured"] for svc in services.values())
    return {
        "status": "healthy" if all_configured else "degraded",
        "all_services_configured": all_configured,
        "services": services,
    }


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "docs": "/docs" if settings.DEBUG else "Documentation disabled in production",
    }
