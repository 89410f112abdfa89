"""FastAPI application factory"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from carmarket_engine.api.dependencies import get_request_id, http_error
from carmarket_engine.api.middleware import MetricsMiddleware, RequestIDMiddleware
from carmarket_engine.api.v1 import credit_applications, financing, listings, prospects
from carmarket_engine.config import settings
from carmarket_engine.domain.exceptions import DomainException
from carmarket_engine.infrastructure.database.session import init_db
from carmarket_engine.infrastructure.observability.logging import setup_logging

API_VERSION = "0.1.0"

setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.auto_create_tables:
        init_db()
        logging.info("Database tables ensured", extra={"service": settings.service_name})
    yield


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Last-resort mapping for domain errors a handler did not translate itself"""
    route = getattr(request.scope.get("route"), "path", "unmatched")
    error = http_error(exc, get_request_id(request), entity=route)
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Carmarket Engine",
        description="Listing ranking, bank-partner matching and lead lifecycle service",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Last added runs first: request id must exist before metrics log it
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_exception_handler(DomainException, domain_exception_handler)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name, "version": API_VERSION}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(listings.router, prefix="/v1", tags=["listings"])
    app.include_router(financing.router, prefix="/v1", tags=["financing"])
    app.include_router(credit_applications.router, prefix="/v1", tags=["credit-applications"])
    app.include_router(prospects.router, prefix="/v1", tags=["prospects"])

    return app


app = create_app()
