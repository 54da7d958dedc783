"""
Background jobs for Deal Coverage.

This module provides the outbound delivery job for deal alerts:
- Slack alert dispatch (alert_dispatch.py)

Throttling Guarantees:
----------------------
- Each (deal, alert type) pair is sent at most once per cool-down window.
  The throttle key is claimed atomically before sending, so concurrent
  dispatchers in one process never double-send.
- A failed send releases its claim, allowing the next run to retry.

Environment Requirements:
-------------------------
- SLACK_WEBHOOK_URL: Slack incoming webhook URL in format:
  https://hooks.slack.com/services/xxx/yyy/zzz

Usage Examples:
---------------
    from deal_coverage.jobs import send_alerts

    alerts = generate_threading_alerts(deal, snapshot, coverage, lifecycle, throttle)
    results = await send_alerts(alerts, throttle)

See Also:
---------
- deal_coverage/services/alerts.py: Alert generation and Slack payloads
- deal_coverage/services/alert_throttle.py: Cool-down windows and history store
- deal_coverage/core/config.py: Settings with slack_webhook_url
"""

# =============================================================================
# Slack Alert Dispatch Exports
# =============================================================================

from deal_coverage.jobs.alert_dispatch import (
    # Main job function
    send_alerts,
    # Single alert send (no throttling)
    send_alert,
)

# =============================================================================
# Public API Declaration
# =============================================================================

__all__ = [
    'send_alerts',  # Dispatch alerts to Slack with throttling
    'send_alert',   # Post one alert to Slack
]
