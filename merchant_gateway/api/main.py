"""FastAPI application factory"""

import logging
import math
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from merchant_gateway.api.dependencies import get_request_id
from merchant_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from merchant_gateway.api.v1 import rate_limits, risk
from merchant_gateway.domain.exceptions import MerchantNotFoundError, RateLimitExceededError, StoreError
from merchant_gateway.infrastructure.database.session import init_db
from merchant_gateway.infrastructure.observability.logging import setup_logging
from merchant_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
    """429 with the reset time so clients know when to retry"""
    retry_after = max(0, math.ceil((exc.reset_at - datetime.now(timezone.utc)).total_seconds()))
    return JSONResponse(
        status_code=429,
        headers={"Retry-After": str(retry_after)},
        content={
            "error": {
                "code": exc.code,
                "message": exc.message,
                "details": exc.to_details(),
                "request_id": get_request_id(request),
            }
        },
    )


async def merchant_not_found_handler(request: Request, exc: MerchantNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logging.error(f"Rate limit store error: {exc}", extra={"request_id": get_request_id(request)})
    return JSONResponse(status_code=503, content={"detail": "Rate limit store unavailable"})


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.create_tables_on_startup:
        init_db()
    yield


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Merchant Gateway",
        description="Merchant risk scoring and distributed rate limiting service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(RateLimitExceededError, rate_limit_exceeded_handler)
    app.add_exception_handler(MerchantNotFoundError, merchant_not_found_handler)
    app.add_exception_handler(StoreError, store_error_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(risk.router, prefix="/v1", tags=["risk"])
    app.include_router(rate_limits.router, prefix="/v1", tags=["rate-limits"])

    return app


app = create_app()
