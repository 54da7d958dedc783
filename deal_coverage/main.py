"""
FastAPI application entry point for the Deal Coverage API.

This module configures logging and CORS, registers the API routers, and
starts the ASGI server when run directly.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from deal_coverage import __version__
from deal_coverage.api import api_router
from deal_coverage.core.config import get_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for FastAPI application startup and shutdown events.

    On startup:
        - Log startup message and whether Slack delivery is configured

    On shutdown:
        - Log shutdown message
    """
    # Startup
    logger.info("Deal Coverage API starting")
    if not get_settings().slack_webhook_url:
        logger.info("SLACK_WEBHOOK_URL not set; alert dispatch will report failures")

    yield

    # Shutdown
    logger.info("Deal Coverage API shutting down")


# Create FastAPI application
app = FastAPI(
    title="Deal Coverage API",
    version=__version__,
    description=(
        "Stakeholder coverage scoring for sales deals. "
        "Provides endpoints for multi-threading scores, stage coverage, "
        "champion strength, risk prediction, lifecycle tracking, alerts "
        "and CRM workflow actions."
    ),
    lifespan=lifespan,
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register API routers
app.include_router(api_router)  # analysis router has its own /analysis prefix


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancer probes.

    Returns:
        Dict with status 'healthy'
    """
    return {"status": "healthy"}


@app.get("/")
async def root():
    """
    Root endpoint providing API information.

    Returns:
        Dict with API name and version
    """
    return {
        "name": "Deal Coverage API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "deal_coverage.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
