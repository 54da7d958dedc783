"""
Settings and environment management module for the Deal Coverage service.

This module provides centralized configuration management using pydantic-settings,
which automatically loads settings from environment variables and .env files.

Key Features:
- Environment variable validation and type coercion
- Sensible defaults for every threshold so the scoring core runs without a .env
- Singleton pattern via @lru_cache for efficient access
- Optional Slack incoming webhook for alert delivery

Environment Variables:
- SLACK_WEBHOOK_URL: Slack incoming webhook for deal alerts (optional)
- CORS_ORIGINS: Origins allowed to call the API (default: local dev servers)

Scoring Defaults:
- low_risk_score_threshold: 70 (overall score at or above is LOW risk)
- medium_risk_score_threshold: 40 (overall score at or above is MEDIUM risk)
- coverage_base_threshold: 70 (passing coverage score before stage multiplier)
- engagement_change_threshold: 20 (per-contact delta that counts as a change)
- score_change_threshold: 10 (overall score delta that counts as a change)
- decision_maker_inactive_days: 14
- champion_inactive_days: 9
- no_new_contacts_days: 14
- score_drop_alert_threshold: 15
- alert_cooldown_fallback_minutes: 480

Usage:
    from deal_coverage.core.config import get_settings

    settings = get_settings()
    webhook = settings.slack_webhook_url
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All thresholds have defaults matching the scoring rules, so services can
    be called in tests and scripts without any environment configured.
    Services accept an explicit override for each threshold and fall back to
    these settings when the override is None.

    Attributes:
        slack_webhook_url: Slack incoming webhook URL for deal alerts.
        cors_origins: Origins allowed by the CORS middleware.
        low_risk_score_threshold: Minimum overall score for LOW risk.
        medium_risk_score_threshold: Minimum overall score for MEDIUM risk.
        coverage_base_threshold: Baseline passing coverage score.
        engagement_change_threshold: Per-contact engagement delta to report.
        score_change_threshold: Overall score delta to report.
        decision_maker_inactive_days: Days before an idle decision maker alerts.
        champion_inactive_days: Days before an idle champion alerts.
        no_new_contacts_days: Days without new stakeholders before alerting.
        score_drop_alert_threshold: Score drop that raises SCORE_DROPPED.
        alert_cooldown_fallback_minutes: Cool-down for alert types without config.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',  # Ignore extra environment variables not defined in this class
        case_sensitive=False,  # Allow SLACK_WEBHOOK_URL or slack_webhook_url
    )

    # =========================================================================
    # Service
    # =========================================================================

    # Origins allowed to call the API from a browser
    cors_origins: List[str] = [
        'http://localhost:3000',
        'http://127.0.0.1:3000',
    ]

    # =========================================================================
    # Slack Integration (Optional - for deal alerts)
    # =========================================================================

    # Slack incoming webhook URL for posting deal alerts
    # Format: https://hooks.slack.com/services/xxx/yyy/zzz
    # Alerts are still generated without it; dispatch reports them as failed
    slack_webhook_url: Optional[str] = None

    # =========================================================================
    # Score Risk Bands
    # =========================================================================

    # overall >= 70 => LOW, overall >= 40 => MEDIUM, otherwise HIGH
    low_risk_score_threshold: int = 70
    medium_risk_score_threshold: int = 40

    # =========================================================================
    # Coverage
    # =========================================================================

    # Passing coverage score, scaled by the stage multiplier (0.6-1.0)
    coverage_base_threshold: int = 70

    # =========================================================================
    # Lifecycle Tracking
    # =========================================================================

    # Per-contact engagement delta (either direction) reported as a change
    engagement_change_threshold: int = 20

    # Overall score delta (absolute) reported as SCORE_CHANGE
    score_change_threshold: int = 10

    # Staleness windows for key roles
    decision_maker_inactive_days: int = 14
    champion_inactive_days: int = 9

    # =========================================================================
    # Alerting
    # =========================================================================

    # Days since the previous snapshot with no new stakeholder => NO_NEW_CONTACTS
    no_new_contacts_days: int = 14

    # Overall score drop (points) that raises SCORE_DROPPED
    score_drop_alert_threshold: int = 15

    # Cool-down used for an alert type missing from ALERT_CONFIGS
    # Matches the shortest configured window
    alert_cooldown_fallback_minutes: int = 480


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns:
        Settings: The cached settings instance.

    Note:
        To refresh settings in tests, clear the cache:
        >>> get_settings.cache_clear()
    """
    return Settings()
