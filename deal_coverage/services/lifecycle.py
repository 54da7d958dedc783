"""
Lifecycle Tracker - what changed between two score snapshots.

Contacts are matched by contactId, falling back to email; contacts with
neither are left out of the comparison. Detected changes:

- NEW_STAKEHOLDER / STAKEHOLDER_REMOVED
- ENGAGEMENT_DECREASED (<= -20) / ENGAGEMENT_INCREASED (>= +20)
- SCORE_CHANGE (|delta| >= 10) and DEPTH_CHANGE (any delta)

Role-specific alerts are raised for cooling champions, disengaged decision
makers, budget holders warming up, and stale decision makers / champions.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from deal_coverage.core.config import get_settings
from deal_coverage.core.timeutils import days_between, ensure_utc, utc_now
from deal_coverage.models import (
    Alert,
    AlertType,
    BuyingRole,
    ChangeType,
    ContactEngagement,
    Deal,
    LifecycleChange,
    LifecycleResult,
    Priority,
    ScoreSnapshot,
)
from deal_coverage.services.scoring import PRIORITY_ORDER

logger = logging.getLogger(__name__)

# Decision makers below this engagement after a drop are "disengaged"
DM_DISENGAGED_SCORE = 30


def contact_key(contact: ContactEngagement) -> Optional[str]:
    """Identity used to match a contact across snapshots."""
    return contact.contactId or contact.email or None


def _index(snapshot: ScoreSnapshot) -> Dict[str, ContactEngagement]:
    indexed: Dict[str, ContactEngagement] = {}
    for contact in snapshot.contacts:
        key = contact_key(contact)
        if key is not None:
            indexed[key] = contact
    return indexed


def _days_between_snapshots(current: ScoreSnapshot, previous: ScoreSnapshot) -> Optional[int]:
    if current.calculatedAt is None or previous.calculatedAt is None:
        return None
    return max(days_between(previous.calculatedAt, current.calculatedAt), 0)


def _alert(
    alert_type: AlertType,
    severity: Priority,
    title: str,
    message: str,
    recommendation: str,
    deal: Optional[Deal],
    contact: Optional[ContactEngagement] = None,
    **data,
) -> Alert:
    return Alert(
        type=alert_type,
        severity=severity,
        title=title,
        dealId=deal.dealId if deal else None,
        dealName=deal.dealName if deal else None,
        contactId=contact.contactId if contact else None,
        message=message,
        recommendation=recommendation,
        data=data,
    )


def track_stakeholder_lifecycle(
    current: ScoreSnapshot,
    previous: Optional[ScoreSnapshot] = None,
    now: Optional[datetime] = None,
    deal: Optional[Deal] = None,
) -> LifecycleResult:
    """
    Compare a snapshot with its predecessor.

    Args:
        current: The new snapshot
        previous: The prior snapshot, or None for the first snapshot
        now: Reference time for staleness checks (defaults to now, UTC)
        deal: Deal identity copied onto generated alerts

    Returns:
        LifecycleResult with changes, alerts sorted HIGH -> MEDIUM -> LOW,
        and a "N changes detected, M alerts generated" summary
    """
    if previous is None:
        return LifecycleResult(
            isFirstSnapshot=True,
            summary="First engagement snapshot recorded",
        )

    settings = get_settings()
    change_threshold = settings.engagement_change_threshold
    reference = ensure_utc(now) if now else utc_now()

    changes: List[LifecycleChange] = []
    alerts: List[Alert] = []

    current_map = _index(current)
    previous_map = _index(previous)

    for key, contact in current_map.items():
        before = previous_map.get(key)

        if before is None:
            role_label = contact.role.value if contact.role != BuyingRole.OTHER else "Role unspecified"
            changes.append(LifecycleChange(
                type=ChangeType.NEW_STAKEHOLDER,
                contactId=key,
                contactName=contact.name,
                role=contact.role,
                message=f"New stakeholder added: {contact.name} ({role_label})",
            ))
            continue

        delta = contact.engagementScore - before.engagementScore

        if delta <= -change_threshold:
            changes.append(LifecycleChange(
                type=ChangeType.ENGAGEMENT_DECREASED,
                contactId=key,
                contactName=contact.name,
                role=contact.role,
                previousScore=before.engagementScore,
                currentScore=contact.engagementScore,
                change=delta,
            ))
            if contact.role == BuyingRole.CHAMPION:
                alerts.append(_alert(
                    AlertType.CHAMPION_COOLING,
                    Priority.HIGH,
                    "Champion is cooling off",
                    f"{contact.name}'s engagement dropped from "
                    f"{before.engagementScore} to {contact.engagementScore}",
                    "Schedule a check-in with your champion to maintain momentum",
                    deal,
                    contact,
                    previousScore=before.engagementScore,
                    currentScore=contact.engagementScore,
                ))
            elif contact.role == BuyingRole.DECISION_MAKER and contact.engagementScore < DM_DISENGAGED_SCORE:
                alerts.append(_alert(
                    AlertType.DM_DISENGAGED,
                    Priority.HIGH,
                    "Decision Maker disengaged",
                    f"{contact.name} hasn't engaged recently (score: {contact.engagementScore})",
                    "Request a meeting with the decision maker through your champion",
                    deal,
                    contact,
                    currentScore=contact.engagementScore,
                ))

        elif delta >= change_threshold:
            changes.append(LifecycleChange(
                type=ChangeType.ENGAGEMENT_INCREASED,
                contactId=key,
                contactName=contact.name,
                role=contact.role,
                previousScore=before.engagementScore,
                currentScore=contact.engagementScore,
                change=delta,
            ))
            if contact.role == BuyingRole.BUDGET_HOLDER:
                alerts.append(_alert(
                    AlertType.BUDGET_HOLDER_ENGAGED,
                    Priority.MEDIUM,
                    "Budget Holder engagement increased",
                    f"{contact.name}'s engagement increased from "
                    f"{before.engagementScore} to {contact.engagementScore}",
                    "Good sign! Consider discussing budget and timeline",
                    deal,
                    contact,
                    previousScore=before.engagementScore,
                    currentScore=contact.engagementScore,
                ))

    for key, contact in previous_map.items():
        if key not in current_map:
            changes.append(LifecycleChange(
                type=ChangeType.STAKEHOLDER_REMOVED,
                contactId=key,
                contactName=contact.name,
                role=contact.role,
                message=f"Stakeholder removed: {contact.name}",
            ))

    # Staleness of key roles
    for contact in current.contacts:
        if contact.lastEngagementDate is None:
            continue
        days_since = days_between(contact.lastEngagementDate, reference)

        if contact.role == BuyingRole.DECISION_MAKER and days_since >= settings.decision_maker_inactive_days:
            alerts.append(_alert(
                AlertType.DM_INACTIVE,
                Priority.HIGH,
                f"DM hasn't engaged in {days_since} days",
                f"{contact.name} (Decision Maker) last engaged {days_since} days ago",
                "Reach out to re-engage the decision maker",
                deal,
                contact,
                daysSinceEngagement=days_since,
            ))
        elif contact.role == BuyingRole.CHAMPION and days_since >= settings.champion_inactive_days:
            alerts.append(_alert(
                AlertType.CHAMPION_INACTIVE,
                Priority.MEDIUM,
                f"Champion inactive {days_since} days",
                f"{contact.name} (Champion) last engaged {days_since} days ago",
                "Check in with your champion to maintain relationship",
                deal,
                contact,
                daysSinceEngagement=days_since,
            ))

    score_delta = current.overallScore - previous.overallScore
    if abs(score_delta) >= settings.score_change_threshold:
        direction = "increased" if score_delta > 0 else "dropped"
        changes.append(LifecycleChange(
            type=ChangeType.SCORE_CHANGE,
            previousScore=previous.overallScore,
            currentScore=current.overallScore,
            change=score_delta,
            message=f"Score {direction} from {previous.overallScore} → {current.overallScore}",
        ))

    depth_delta = current.threadDepth - previous.threadDepth
    if depth_delta != 0:
        direction = "increased" if depth_delta > 0 else "decreased"
        changes.append(LifecycleChange(
            type=ChangeType.DEPTH_CHANGE,
            previousScore=previous.threadDepth,
            currentScore=current.threadDepth,
            change=depth_delta,
            message=(
                f"Thread depth {direction} from {previous.threadDepth} → "
                f"{current.threadDepth} contacts"
            ),
        ))

    alerts.sort(key=lambda a: PRIORITY_ORDER[a.severity])

    logger.info(
        f"Lifecycle for deal {deal.dealId if deal else None}: "
        f"{len(changes)} changes, {len(alerts)} alerts"
    )

    return LifecycleResult(
        changes=changes,
        alerts=alerts,
        isFirstSnapshot=False,
        daysSinceLastSnapshot=_days_between_snapshots(current, previous),
        summary=f"{len(changes)} changes detected, {len(alerts)} alerts generated",
    )
