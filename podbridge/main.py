"""PodBridge main application module.

This module initializes the FastAPI application and configures
core middleware, routers, and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from podbridge.api.fulfillment import router as fulfillment_router
from podbridge.api.health import router as health_router
from podbridge.api.merchants import router as merchants_router
from podbridge.api.middleware import setup_middleware
from podbridge.api.orders import router as orders_router
from podbridge.api.pubsub import router as pubsub_router
from podbridge.api.triggers import router as triggers_router
from podbridge.domain.exceptions import (
    DomainError,
    InvalidStateTransitionError,
    MerchantNotFoundError,
    OrderNotCancellableError,
    OrderNotFoundError,
    ProductMappingError,
)
from podbridge.infrastructure.config import settings
from podbridge.infrastructure.database import create_tables
from podbridge.infrastructure.document_store import get_document_store
from podbridge.infrastructure.logging import configure_logging
from podbridge.infrastructure.shipengine_client import close_shipengine_client
from podbridge.infrastructure.shopify_client import close_shopify_clients

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    configure_logging()
    logger.info(
        "Starting PodBridge",
        version=settings.api_version,
        debug=settings.debug,
        document_store=settings.document_store,
    )

    if settings.document_store == "sql":
        await create_tables()
    get_document_store()

    yield

    # Shutdown
    await close_shopify_clients()
    await close_shipengine_client()
    logger.info("Shutting down PodBridge")


app = FastAPI(
    title="PodBridge API",
    description="Print-on-demand order fulfillment for Shopify merchants",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (must be added before custom middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup custom middleware (request ID, authentication, error handling)
setup_middleware(app)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(orders_router)
app.include_router(merchants_router)
app.include_router(pubsub_router)
app.include_router(triggers_router)
app.include_router(fulfillment_router)


# ============================================================================
# Custom Exception Handlers
# ============================================================================


# Domain errors by HTTP status; the first matching class wins
DOMAIN_ERROR_STATUS: list[tuple[type[DomainError], int, str]] = [
    (OrderNotFoundError, status.HTTP_404_NOT_FOUND, "ORDER_NOT_FOUND"),
    (MerchantNotFoundError, status.HTTP_404_NOT_FOUND, "MERCHANT_NOT_FOUND"),
    (OrderNotCancellableError, status.HTTP_409_CONFLICT, "ORDER_NOT_CANCELLABLE"),
    (InvalidStateTransitionError, status.HTTP_409_CONFLICT, "INVALID_STATE_TRANSITION"),
    (ProductMappingError, status.HTTP_422_UNPROCESSABLE_ENTITY, "PRODUCT_NOT_MAPPED"),
]


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    request_id = getattr(request.state, "request_id", None)

    detail = exc.detail
    if isinstance(detail, dict):
        error_code = detail.get("error_code", "ERROR")
        message = detail.get("message", str(detail))
        details = detail.get("details", [])
    else:
        error_code = "ERROR"
        message = str(detail)
        details = []

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": details,
            "request_id": request_id,
        },
    )


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Map domain errors to HTTP responses."""
    request_id = getattr(request.state, "request_id", None)

    status_code, error_code = status.HTTP_400_BAD_REQUEST, "DOMAIN_ERROR"
    for error_type, mapped_status, mapped_code in DOMAIN_ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code, error_code = mapped_status, mapped_code
            break

    logger.info("Domain error", error_code=error_code, error=exc.message, path=request.url.path)

    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": error_code,
            "message": exc.message,
            "details": [],
            "request_id": request_id,
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with consistent format."""
    request_id = getattr(request.state, "request_id", None)

    logger.exception(
        "Unhandled exception in handler",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )

    return JSONResponse(
        status_code=500,
        content={
            "error_code": "INTERNAL_ERROR",
            "message": "An internal error occurred",
            "details": [],
            "request_id": request_id,
        },
    )
