"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from iks_audit import __version__
from iks_audit.api.routes import health, quarters, users, verifications
from iks_audit.core.config import get_settings
from iks_audit.core.correlation import CORRELATION_HEADER, CorrelationMiddleware
from iks_audit.core.logging import configure_logging, get_logger
from iks_audit.services.case_management import get_case_management_client

# Configure structured logging on module load
configure_logging()

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler.

    Handles startup and shutdown events.
    """
    logger.info("application_starting", app_name=app.title)

    settings = get_settings()
    if not settings.is_case_management_configured:
        logger.warning(
            "case_management_not_configured",
            message="CASE_MANAGEMENT_URL not set. Serving the demo roster; completion reports are skipped.",
            hint="Set CASE_MANAGEMENT_URL in .env file",
        )

    yield

    logger.info("application_shutting_down")
    await get_case_management_client().aclose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Quarterly audit selection and four-eyes verification workflow",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    # Middleware runs LIFO: CORS is added last so it also wraps error responses
    app.add_middleware(CorrelationMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[CORRELATION_HEADER],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle HTTP exceptions with structured error response."""
        correlation_id = getattr(request.state, "correlation_id", None)

        if isinstance(exc.detail, dict) and "error" in exc.detail:
            content = exc.detail
            if correlation_id:
                content["error"]["details"] = content["error"].get("details") or {}
                content["error"]["details"]["correlationId"] = correlation_id
        else:
            content = {
                "error": {
                    "code": f"HTTP_{exc.status_code}",
                    "message": str(exc.detail) if exc.detail else "An error occurred",
                    "details": {"correlationId": correlation_id} if correlation_id else {},
                }
            }

        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle Pydantic validation errors with field-level details."""
        correlation_id = getattr(request.state, "correlation_id", None)

        field_errors = [
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]

        content = {
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": {"fields": field_errors},
            }
        }
        if correlation_id:
            content["error"]["details"]["correlationId"] = correlation_id

        logger.warning(
            "validation_error",
            path=str(request.url.path),
            errors=field_errors,
        )

        return JSONResponse(status_code=422, content=content)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all handler for unhandled exceptions."""
        correlation_id = getattr(request.state, "correlation_id", None)

        logger.exception(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error_type=type(exc).__name__,
        )

        content = {
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": {"correlationId": correlation_id} if correlation_id else {},
            }
        }
        return JSONResponse(status_code=500, content=content)

    app.include_router(health.router, prefix=settings.api_prefix)
    app.include_router(users.router, prefix=settings.api_prefix)
    app.include_router(quarters.router, prefix=settings.api_prefix)
    app.include_router(verifications.router, prefix=settings.api_prefix)

    return app


# Create the application instance
app = create_app()


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with API documentation links."""
    settings = get_settings()
    return {
        "message": "IKS Audit Backend API",
        "health": f"{settings.api_prefix}/health",
        "docs": "/docs",
    }
