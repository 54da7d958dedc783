"""
Deal Coverage API package initialization.

This package contains FastAPI router modules for the Deal Coverage service:
- analysis: Score, coverage, champion, risk, lifecycle, alerts and workflow actions
"""

from fastapi import APIRouter

# Import router modules
from deal_coverage.api.analysis import router as analysis_router

# Create main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(analysis_router)  # analysis router has its own prefix

# Export all routers for selective imports
__all__ = [
    "api_router",
    "analysis_router",
]
