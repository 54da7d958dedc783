"""
Core infrastructure package for the Deal Coverage service.

Provides:
- Configuration management via pydantic-settings
- Timestamp normalisation helpers
- FastAPI dependency injection utilities

This module re-exports key components from submodules for convenient importing:

    from deal_coverage.core import get_settings, parse_datetime

FastAPI dependencies live in deal_coverage.core.dependencies and are imported
from there directly, since they depend on the services package.

Components Re-exported:
    Settings: Pydantic settings class with all configuration parameters
    get_settings: Function returning the cached Settings singleton
    utc_now, ensure_utc, parse_datetime, days_between: UTC time helpers
"""

# =============================================================================
# Re-exports from deal_coverage.core.config
# =============================================================================
from deal_coverage.core.config import Settings, get_settings

# =============================================================================
# Re-exports from deal_coverage.core.timeutils
# =============================================================================
from deal_coverage.core.timeutils import utc_now, ensure_utc, parse_datetime, days_between

__all__ = [
    # Configuration
    "Settings",
    "get_settings",
    # Time helpers
    "utc_now",
    "ensure_utc",
    "parse_datetime",
    "days_between",
]
