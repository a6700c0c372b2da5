"""Webhook Work Queue - Main FastAPI Application

Receives encrypted marketplace webhooks and turns them into durable work
items for downstream ERP processors.

This module creates and configures the main FastAPI application, including:
- Webhook and observability routers
- Middleware (correlation ID)
- Exception handlers
"""

import os
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError

# Observability
from observability.logging_config import configure_logging
from observability.middleware import CorrelationIdMiddleware
from observability.router import router as observability_router

# Webhooks
from webhooks.router import router as webhooks_router
from work_queue.retry import StoreUnavailableError

# Configure logging
configure_logging(
    level=os.getenv("LOG_LEVEL", "INFO"),
    json_format=os.getenv("LOG_JSON", "true").lower() == "true"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Webhook work queue API starting up...")
    logger.info(f"Environment: {os.getenv('ENVIRONMENT', 'development')}")

    yield

    logger.info("Webhook work queue API shutting down...")


app = FastAPI(
    title="Webhook Work Queue API",
    description="Marketplace webhook ingestion and dependency-tracked work queue",
    version="0.1.0",
    docs_url="/docs" if os.getenv("ENVIRONMENT", "development") != "production" else None,
    redoc_url=None,
    lifespan=lifespan,
)


# =============================================================================
# MIDDLEWARE CONFIGURATION
# =============================================================================

app.add_middleware(CorrelationIdMiddleware)


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors.

    Returns a structured error response with field-level details.
    """
    logger.warning(
        f"Validation error on {request.method} {request.url.path}",
        extra={"errors": exc.errors()}
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "message": "Request validation failed",
            "details": exc.errors(),
        },
    )


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(
    request: Request,
    exc: StoreUnavailableError
) -> JSONResponse:
    """Transient store outage after bounded retries; the caller may retry."""
    logger.error(f"Store unavailable on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": "store_unavailable",
            "message": "The work queue is temporarily unavailable. Please retry.",
        },
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(
    request: Request,
    exc: SQLAlchemyError
) -> JSONResponse:
    """Handle database errors.

    Logs the full error but returns a generic message to prevent
    information leakage.
    """
    logger.error(
        f"Database error on {request.method} {request.url.path}",
        exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "database_error",
            "message": "A database error occurred. Please try again later.",
        },
    )


# =============================================================================
# ROUTER REGISTRATION
# =============================================================================

# Observability (health, metrics)
app.include_router(observability_router)

# Inbound webhooks
app.include_router(webhooks_router)


@app.get("/", include_in_schema=False)
async def root() -> dict[str, Any]:
    """Root endpoint - API information."""
    return {
        "name": "Webhook Work Queue API",
        "version": "0.1.0",
        "status": "running",
    }


def create_app() -> FastAPI:
    """Application factory for creating test instances."""
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("ENVIRONMENT", "development") == "development",
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
