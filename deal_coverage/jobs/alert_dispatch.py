"""
Slack alert dispatch job for Deal Coverage.

Posts generated deal alerts to a Slack incoming webhook using the
WebhookClient from slack-sdk, honouring the alert throttle.

Throttling Guarantees:
- An alert is only sent after its (deal, alert type) key is claimed with
  AlertThrottle.try_acquire, so concurrent dispatchers never double-send
- A failed send releases the claim, so the next run retries it
- Alerts already marked throttled at generation time are not re-checked

Environment Requirements:
- SLACK_WEBHOOK_URL: Slack incoming webhook URL
  Format: https://hooks.slack.com/services/xxx/yyy/zzz

Usage:
    from deal_coverage.jobs import send_alerts

    results = await send_alerts(alerts, throttle)
    print(len(results['sent']), len(results['failed']), len(results['throttled']))

Dependencies:
    - slack-sdk (Slack webhook client)
    - deal_coverage.core.config.get_settings (for SLACK_WEBHOOK_URL)
    - deal_coverage.services.alerts.format_slack_alert (Block Kit payload)
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from slack_sdk.webhook import WebhookClient

from deal_coverage.core.config import get_settings
from deal_coverage.models import Alert
from deal_coverage.services.alert_throttle import AlertThrottle
from deal_coverage.services.alerts import format_slack_alert

logger = logging.getLogger(__name__)

SLACK_CHANNEL = 'slack'


def _alert_ref(alert: Alert) -> Dict[str, Any]:
    return {'type': alert.type.value, 'dealId': alert.dealId}


async def send_alert(alert: Alert, webhook_url: Optional[str]) -> Dict[str, Any]:
    """
    Post a single alert to Slack.

    Does not touch the throttle; see send_alerts for throttled dispatch.

    Args:
        alert: Alert to post
        webhook_url: Slack incoming webhook URL

    Returns:
        Dict with:
        - success: True if Slack answered 200
        - error: Error message (if failed)

    Raises:
        No exceptions are raised - all errors are captured in the return dict.
    """
    if not webhook_url:
        return {
            'success': False,
            'error': 'SLACK_WEBHOOK_URL not configured. Set this environment variable to enable Slack alerts.'
        }

    payload = format_slack_alert(alert)

    try:
        client = WebhookClient(webhook_url)
        response = client.send(attachments=payload['attachments'])

        if response.status_code == 200:
            return {'success': True, **_alert_ref(alert)}
        return {
            'success': False,
            'error': f'Slack API returned status {response.status_code}: {response.body}',
        }
    except Exception as e:
        return {
            'success': False,
            'error': f'Failed to send Slack message: {str(e)}',
        }


async def send_alerts(
    alerts: Sequence[Alert],
    throttle: AlertThrottle,
    webhook_url: Optional[str] = None,
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Dispatch alerts to Slack, skipping any in cool-down.

    Args:
        alerts: Alerts to dispatch
        throttle: Throttle whose history gates and records sends
        webhook_url: Slack webhook (default: SLACK_WEBHOOK_URL from settings)

    Returns:
        Dict with 'sent', 'failed' and 'throttled' lists of
        {'type', 'dealId', ...} entries.
    """
    url = webhook_url or get_settings().slack_webhook_url
    results: Dict[str, List[Dict[str, Any]]] = {'sent': [], 'failed': [], 'throttled': []}

    for alert in alerts:
        if alert.throttled:
            results['throttled'].append(_alert_ref(alert))
            continue

        if not url:
            results['failed'].append({
                **_alert_ref(alert),
                'channel': SLACK_CHANNEL,
                'error': 'SLACK_WEBHOOK_URL not configured',
            })
            continue

        claim = throttle.try_acquire(alert.dealId, alert.type)
        if claim is None:
            results['throttled'].append(_alert_ref(alert))
            continue

        outcome = await send_alert(alert, url)
        if outcome['success']:
            results['sent'].append({**_alert_ref(alert), 'channel': SLACK_CHANNEL})
        else:
            throttle.release(claim)
            results['failed'].append({
                **_alert_ref(alert),
                'channel': SLACK_CHANNEL,
                'error': outcome['error'],
            })

    logger.info(
        f"Alert dispatch: {len(results['sent'])} sent, {len(results['failed'])} failed, "
        f"{len(results['throttled'])} throttled"
    )
    return results
