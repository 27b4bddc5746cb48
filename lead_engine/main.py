"""
Lead Engine - FastAPI Application
Main entry point with all routes configured.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from lead_engine.database import init_db
from lead_engine.core.logging import configure_logging
from lead_engine.schemas.common import HealthResponse
from lead_engine.core.exceptions import (
    AlreadyExistsError, ConfigurationError, NotFoundError, RegistryUnavailableError,
    StoreUnavailableError, ValidationError
)

# Import all API routers
from lead_engine.api import branches, ingestion, leads, webhooks

VERSION = "1.0.0"

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    configure_logging()
    await init_db()
    logger.info("Lead engine started")
    yield
    # Shutdown


app = FastAPI(
    title="Lead Engine API",
    description="Branch-driven field mapping and lead validation",
    version=VERSION,
    lifespan=lifespan
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error(status.HTTP_404_NOT_FOUND, exc.message)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.warning(f"Rejected {request.url.path}: {exc.message}")
    return _error(status.HTTP_404_NOT_FOUND, exc.message)


@app.exception_handler(RegistryUnavailableError)
async def registry_unavailable_handler(request: Request, exc: RegistryUnavailableError):
    logger.error(f"Schema registry unavailable during {request.url.path}: {exc.message}")
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, exc.message)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, exc.message)


@app.exception_handler(AlreadyExistsError)
async def already_exists_handler(request: Request, exc: AlreadyExistsError):
    return _error(status.HTTP_409_CONFLICT, exc.message)


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    logger.error(f"Store unavailable during {request.url.path}: {exc.message}")
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, exc.message)


# Include all routers
app.include_router(branches.router)
app.include_router(ingestion.router)
app.include_router(leads.router)
app.include_router(webhooks.router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "message": "Lead Engine API is running",
        "version": VERSION,
        "docs": "/docs"
    }


@app.get("/health", response_model=HealthResponse)
async def health():
    """Detailed health check."""
    return HealthResponse(version=VERSION)
