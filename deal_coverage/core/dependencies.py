"""
FastAPI dependency injection module for the Deal Coverage service.

This module provides reusable FastAPI dependencies for configuration access
and the process-wide alert throttle, so endpoint handlers stay decoupled from
how those are built and tests can swap them with dependency overrides.

Key Dependencies Provided:
- get_settings_dependency: Returns the cached Settings singleton
- get_alert_throttle: Returns the process-wide AlertThrottle
- SettingsDep: Type alias for injecting Settings into endpoints
- AlertThrottleDep: Type alias for injecting the AlertThrottle into endpoints

Usage Examples:
    @router.post("/alerts")
    async def generate_alerts(
        request: AlertRequest,
        throttle: AlertThrottleDep,
        settings: SettingsDep
    ) -> AlertsResponse:
        ...

    # In tests
    app.dependency_overrides[get_alert_throttle] = lambda: AlertThrottle(clock=fixed_clock)

See Also:
    - deal_coverage/core/config.py: Settings management and environment variables
    - deal_coverage/services/alert_throttle.py: Throttle and history stores
    - deal_coverage/api/analysis.py: Endpoint handlers using these dependencies
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from deal_coverage.core.config import Settings, get_settings
from deal_coverage.services.alert_throttle import AlertThrottle, InMemoryAlertHistoryStore


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    This is a thin wrapper around get_settings() to enable FastAPI's
    dependency override mechanism for testing:

        app.dependency_overrides[get_settings_dependency] = lambda: mock_settings

    Returns:
        Settings: The cached Settings instance with all configuration values.
    """
    return get_settings()


# =============================================================================
# Alert Throttle Dependency
# =============================================================================

@lru_cache()
def get_alert_throttle() -> AlertThrottle:
    """
    Return the process-wide AlertThrottle.

    Backed by an in-memory history store, so cool-downs reset when the
    process restarts. Clear with get_alert_throttle.cache_clear() in tests.
    """
    return AlertThrottle(InMemoryAlertHistoryStore())


# =============================================================================
# Type Aliases for Dependency Injection
# =============================================================================

# Usage: async def endpoint(settings: SettingsDep)
SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]

# Usage: async def endpoint(throttle: AlertThrottleDep)
AlertThrottleDep = Annotated[AlertThrottle, Depends(get_alert_throttle)]
