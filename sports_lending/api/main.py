"""FastAPI application factory"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from sports_lending.api.middleware import RequestIDMiddleware, MetricsMiddleware
from sports_lending.api.v1 import loans, students, equipment, at_risk
from sports_lending.domain.exceptions import (
    ConcurrencyConflictError,
    DomainException,
    InvalidStateError,
    NotFoundError,
    StoreFailureError,
)
from sports_lending.infrastructure.database.models import Base
from sports_lending.infrastructure.database.session import engine
from sports_lending.infrastructure.observability.logging import setup_logging
from sports_lending.config import settings

# Setup structured logging
setup_logging(settings.log_level)

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


async def handle_domain_error(request: Request, exc: DomainException) -> JSONResponse:
    """Map the domain error taxonomy onto HTTP status codes"""
    request_id = _request_id(request)

    if isinstance(exc, NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    if isinstance(exc, InvalidStateError):
        logger.warning(f"Invalid state: {exc}", extra={"request_id": request_id})
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    if isinstance(exc, ConcurrencyConflictError):
        logger.warning(f"Concurrency conflict: {exc}", extra={"request_id": request_id})
        return JSONResponse(status_code=409, content={"detail": str(exc), "retry": True})

    if isinstance(exc, StoreFailureError):
        logger.error(f"Store failure: {exc}", extra={"request_id": request_id})
        return JSONResponse(status_code=503, content={"detail": "Record store unavailable"})

    logger.error(f"Unexpected domain error: {exc}", extra={"request_id": request_id})
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tables are created on start-up; no migrations yet
    Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Sports Lending Service",
        description="Equipment loans, trust scores and suspensions",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, handle_domain_error)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(loans.router, prefix="/v1", tags=["loans"])
    app.include_router(students.router, prefix="/v1", tags=["students"])
    app.include_router(equipment.router, prefix="/v1", tags=["equipment"])
    app.include_router(at_risk.router, prefix="/v1", tags=["at-risk"])

    return app


app = create_app()
