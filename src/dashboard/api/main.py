"""Main FastAPI application for the Ophtha-Timeline dashboard.

This module sets up the FastAPI application with all routes, middleware,
and configuration for the timeline API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.dashboard.api.middleware import setup_middleware
from src.dashboard.api.routes import health, patients
from src.infrastructure.logging_config import setup_logging
from src.infrastructure.settings import settings

# Configure structured logging
setup_logging(use_json=settings.json_logs, log_level=settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    logger.info(f"{settings.app_name} Dashboard API starting up...")
    logger.info("API documentation available at /api/docs")
    logger.info(f"Patient data directory: {settings.data_dir}")
    logger.info(f"Default eye: {settings.default_eye.value}")
    yield
    # Shutdown
    logger.info(f"{settings.app_name} Dashboard API shutting down...")


# Create FastAPI application
app = FastAPI(
    title=f"{settings.app_name} Dashboard API",
    description="Visit-record timeline API for the ophthalmology patient dashboard",
    version=settings.app_version,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)

# CORS configuration
# In production, replace with specific origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",  # Next.js dev server
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    expose_headers=["X-Process-Time", "X-Request-ID"],
)

# Setup custom middleware
setup_middleware(app)

# Include routers
app.include_router(health.router)
app.include_router(patients.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": f"{settings.app_name} Dashboard API",
        "version": settings.app_version,
        "docs": "/api/docs",
        "health": "/api/health"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "src.dashboard.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
