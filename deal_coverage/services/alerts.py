"""
Threading alert generation and Slack formatting.

Alerts raised from the current snapshot, coverage analysis and lifecycle diff:

| Type                | Trigger                                               |
|---------------------|-------------------------------------------------------|
| SINGLE_THREADED     | <= 1 contact                                          |
| NO_NEW_CONTACTS     | no new stakeholder for 14+ days between snapshots     |
| CHAMPION_DISENGAGED | a champion's engagement score < 30                    |
| DM_NOT_ENGAGED      | no decision maker, or a decision maker scoring < 20   |
| SCORE_DROPPED       | overall score dropped by 15+ points                   |
| COVERAGE_GAP        | stage expectations unmet with required roles missing  |

Alerts in cool-down are still returned, marked `throttled=True`.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from deal_coverage.core.config import get_settings
from deal_coverage.core.timeutils import ensure_utc, utc_now
from deal_coverage.models import (
    Alert,
    AlertType,
    BuyingRole,
    ChangeType,
    CoverageAnalysis,
    Deal,
    LifecycleResult,
    ScoreSnapshot,
)
from deal_coverage.services.alert_throttle import ALERT_CONFIGS, LOW_COLOR, AlertThrottle

logger = logging.getLogger(__name__)

UNKNOWN_DEAL_NAME = "Unknown Deal"

CHAMPION_DISENGAGED_SCORE = 30
DM_LOW_ENGAGEMENT_SCORE = 20


def _build_alert(
    alert_type: AlertType,
    deal: Deal,
    message: str,
    recommendation: str,
    throttle: Optional[AlertThrottle],
    contact_id: Optional[str] = None,
    **data: Any,
) -> Alert:
    config = ALERT_CONFIGS[alert_type]
    throttled = throttle.should_throttle(deal.dealId, alert_type) if throttle else False
    return Alert(
        type=alert_type,
        severity=config.severity,
        title=config.title,
        dealId=deal.dealId,
        dealName=deal.dealName or UNKNOWN_DEAL_NAME,
        contactId=contact_id,
        message=message,
        recommendation=recommendation,
        data=data,
        throttled=throttled,
    )


def generate_threading_alerts(
    deal: Deal,
    snapshot: ScoreSnapshot,
    coverage: Optional[CoverageAnalysis] = None,
    lifecycle: Optional[LifecycleResult] = None,
    throttle: Optional[AlertThrottle] = None,
) -> List[Alert]:
    """
    Generate threading alerts for a deal.

    Args:
        deal: Deal identity used for alert keys and display
        snapshot: Current score snapshot
        coverage: Coverage analysis, enables COVERAGE_GAP
        lifecycle: Lifecycle diff, enables NO_NEW_CONTACTS and SCORE_DROPPED
        throttle: When given, alerts in cool-down are marked throttled

    Returns:
        Alerts in rule order
    """
    settings = get_settings()
    alerts: List[Alert] = []

    if snapshot.contactCount <= 1:
        alerts.append(_build_alert(
            AlertType.SINGLE_THREADED,
            deal,
            f"This deal has only {snapshot.contactCount} contact(s). High risk of deal "
            "loss if this contact becomes unavailable.",
            "Add additional stakeholders to reduce single-thread exposure.",
            throttle,
            contactCount=snapshot.contactCount,
            currentScore=snapshot.overallScore,
        ))

    if lifecycle is not None and not lifecycle.isFirstSnapshot:
        new_stakeholders = [c for c in lifecycle.changes if c.type == ChangeType.NEW_STAKEHOLDER]
        days_since = lifecycle.daysSinceLastSnapshot or 0
        if not new_stakeholders and days_since >= settings.no_new_contacts_days:
            alerts.append(_build_alert(
                AlertType.NO_NEW_CONTACTS,
                deal,
                f"Deal has gone {days_since} days without new contact involvement.",
                "Consider expanding stakeholder engagement to reduce deal risk.",
                throttle,
                daysSinceNewContact=days_since,
            ))

    for champion in (c for c in snapshot.contacts if c.role == BuyingRole.CHAMPION):
        if champion.engagementScore < CHAMPION_DISENGAGED_SCORE:
            alerts.append(_build_alert(
                AlertType.CHAMPION_DISENGAGED,
                deal,
                f'Champion "{champion.name}" has dropped below engagement threshold '
                f"(Score: {champion.engagementScore}/100).",
                "Re-engage your champion with a check-in call or meeting.",
                throttle,
                contact_id=champion.contactId,
                championName=champion.name,
                engagementScore=champion.engagementScore,
            ))

    decision_makers = [c for c in snapshot.contacts if c.role == BuyingRole.DECISION_MAKER]
    if not decision_makers and snapshot.contactCount > 0:
        alerts.append(_build_alert(
            AlertType.DM_NOT_ENGAGED,
            deal,
            "No Decision Maker has been identified or engaged on this deal.",
            "Identify and engage the decision maker through your champion.",
            throttle,
            missingRoles=[role.value for role in snapshot.missingKeyRoles],
        ))
    for dm in decision_makers:
        if dm.engagementScore < DM_LOW_ENGAGEMENT_SCORE:
            alerts.append(_build_alert(
                AlertType.DM_NOT_ENGAGED,
                deal,
                f'Decision Maker "{dm.name}" has very low engagement '
                f"(Score: {dm.engagementScore}/100).",
                "Schedule an executive briefing or proposal review meeting.",
                throttle,
                contact_id=dm.contactId,
                dmName=dm.name,
                engagementScore=dm.engagementScore,
            ))

    if lifecycle is not None:
        score_change = next(
            (c for c in lifecycle.changes if c.type == ChangeType.SCORE_CHANGE), None
        )
        if score_change is not None and score_change.change <= -settings.score_drop_alert_threshold:
            alerts.append(_build_alert(
                AlertType.SCORE_DROPPED,
                deal,
                f"Multi-threading score dropped from {score_change.previousScore} to "
                f"{score_change.currentScore} ({score_change.change} points).",
                "Review stakeholder engagement and address any gaps.",
                throttle,
                previousScore=score_change.previousScore,
                currentScore=score_change.currentScore,
                change=score_change.change,
            ))

    if coverage is not None and not coverage.meetsStageExpectations:
        missing = coverage.breadth.stageAnalysis.missingRequired
        if missing:
            alerts.append(_build_alert(
                AlertType.COVERAGE_GAP,
                deal,
                "Deal does not meet stage expectations. Missing: "
                f"{', '.join(role.value for role in missing)}.",
                "Address role coverage gaps before advancing the deal stage.",
                throttle,
                missingRoles=[role.value for role in missing],
                coverageScore=coverage.coverageScore,
                requiredThreshold=coverage.adjustedThreshold,
            ))

    logger.info(
        f"Generated {len(alerts)} alerts for deal {deal.dealId} "
        f"({sum(1 for a in alerts if a.throttled)} throttled)"
    )
    return alerts


def apply_throttle(alerts: Sequence[Alert], throttle: AlertThrottle) -> List[Alert]:
    """Copies of alerts with `throttled` set from the throttle's current state."""
    return [
        alert.model_copy(update={"throttled": throttle.should_throttle(alert.dealId, alert.type)})
        for alert in alerts
    ]


def format_slack_alert(alert: Alert, generated_at: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Build a Slack Block Kit attachment payload for an alert.

    Args:
        alert: Alert to format
        generated_at: Timestamp shown in the context line (defaults to now, UTC)

    Returns:
        Dict with a single coloured attachment holding header, fields,
        message, recommendation and context blocks
    """
    config = ALERT_CONFIGS.get(alert.type)
    color = config.color if config else LOW_COLOR
    timestamp = ensure_utc(generated_at) if generated_at else utc_now()

    return {
        "attachments": [
            {
                "color": color,
                "blocks": [
                    {
                        "type": "header",
                        "text": {"type": "plain_text", "text": alert.title, "emoji": True},
                    },
                    {
                        "type": "section",
                        "fields": [
                            {"type": "mrkdwn", "text": f"*Deal:*\n{alert.dealName or UNKNOWN_DEAL_NAME}"},
                            {"type": "mrkdwn", "text": f"*Severity:*\n{alert.severity.value}"},
                        ],
                    },
                    {
                        "type": "section",
                        "text": {"type": "mrkdwn", "text": alert.message},
                    },
                    {
                        "type": "section",
                        "text": {"type": "mrkdwn", "text": f"*Recommendation:* {alert.recommendation}"},
                    },
                    {
                        "type": "context",
                        "elements": [
                            {
                                "type": "mrkdwn",
                                "text": f"Deal ID: {alert.dealId} | Generated: {timestamp.isoformat()}",
                            }
                        ],
                    },
                ],
            }
        ]
    }
