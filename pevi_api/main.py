"""PEVI API - Main FastAPI application."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from sqlalchemy import text

from pevi_api import __version__
from pevi_api.escrow.gateway import EscrowServiceError
from pevi_api.ledger.client import LedgerError
from pevi_api.middleware.correlation import CorrelationIDMiddleware, CorrelationIdFilter
from pevi_api.routes import campaigns, donations, escrow, evaluation
from pevi_api.services.errors import ServiceError
from pevi_api.settings import get_settings

# Configure logging
_handler = logging.StreamHandler(sys.stdout)
_handler.addFilter(CorrelationIdFilter())
logging.basicConfig(
    level=get_settings().log_level,
    format=(
        '{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s", '
        '"module": "%(name)s", "correlation_id": "%(correlation_id)s"}'
    ),
    handlers=[_handler],
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting PEVI API...")
    try:
        settings.validate_production_settings()
    except ValueError as e:
        logger.error(f"Configuration validation failed: {e}")
        raise ValueError(f"Invalid configuration: {e}") from e
    logger.info(
        f"Escrow service {settings.trustless_work_base_url}, ledger {settings.horizon_url_computed}"
    )

    yield
    logger.info("Shutting down PEVI API...")


app = FastAPI(
    title="PEVI API",
    description="Escrow-backed impact campaigns with milestone-gated payouts",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)
app.add_middleware(CorrelationIDMiddleware)

# Prometheus metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# Register routers
app.include_router(campaigns.router)
app.include_router(donations.router)
app.include_router(escrow.router)
app.include_router(evaluation.router)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    content = {"detail": exc.message}
    body = getattr(exc, "body", None)
    if body:
        content["body"] = body
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(EscrowServiceError)
async def escrow_service_error_handler(request: Request, exc: EscrowServiceError):
    logger.error(f"Escrow service error on {request.url.path}: {exc}")
    content = {"detail": exc.message, "upstream_status": exc.status_code}
    if exc.body:
        content["body"] = exc.body
    return JSONResponse(status_code=502, content=content)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    logger.error(f"Ledger error on {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content=exc.to_dict())


@app.get("/health")
async def health_check():
    """Health check endpoint (basic liveness)."""
    return {
        "status": "healthy",
        "service": "pevi-api",
        "version": __version__,
    }


@app.get("/ready")
def readiness_check():
    """Readiness check endpoint (verifies the database)."""
    from pevi_api.db.session import SessionLocal

    checks = {"database": False}
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception as e:
        logger.error(f"Database check failed: {e}")
    finally:
        db.close()

    all_ready = all(checks.values())
    return JSONResponse(
        content={
            "status": "ready" if all_ready else "not_ready",
            "checks": checks,
        },
        status_code=200 if all_ready else 503,
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "PEVI API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }
