"""
Scoring Engine - multi-threading score for a deal's stakeholder network.

Combines four signals into a 0-100 overall score:
1. ENGAGEMENT - average per-contact engagement (meetings > calls > emails, each capped)
2. PARTICIPATION - how many contacts are actively engaged (>= 2 engagements)
3. ROLE COVERAGE - presence of the key buying roles plus role diversity
4. THREAD DEPTH - bonus for having any engaged contact at all

Formula:
    overall = round(avgEngagement * 0.30 + participation * 0.25
                    + roleCoverage * 0.35 + min(threadDepth * 10, 10))

Risk bands: >= 70 LOW, >= 40 MEDIUM, otherwise HIGH (also HIGH with no contacts).

All functions are pure; contacts without an effective role are run through
role inference before scoring.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Set

from deal_coverage.core.config import get_settings
from deal_coverage.core.timeutils import ensure_utc, utc_now
from deal_coverage.models import (
    BuyingRole,
    Contact,
    ContactEngagement,
    EngagementCounts,
    Priority,
    Recommendation,
    RecommendationType,
    ScoreRiskLevel,
    ScoreSnapshot,
)
from deal_coverage.services.role_inference import ensure_effective_roles

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Importance weight of each buying role in role coverage points
BUYING_ROLE_WEIGHTS: Dict[BuyingRole, int] = {
    BuyingRole.DECISION_MAKER: 30,
    BuyingRole.BUDGET_HOLDER: 25,
    BuyingRole.CHAMPION: 20,
    BuyingRole.INFLUENCER: 15,
    BuyingRole.END_USER: 10,
    BuyingRole.LEGAL: 5,
    BuyingRole.PROCUREMENT: 5,
    BuyingRole.BLOCKER: 5,
    BuyingRole.OTHER: 5,
}

# Roles a well-covered deal must have
KEY_ROLES: List[BuyingRole] = [
    BuyingRole.DECISION_MAKER,
    BuyingRole.BUDGET_HOLDER,
    BuyingRole.CHAMPION,
]

# Per-channel points and caps: meetings signal the strongest buy-in
MEETING_POINTS, MEETING_CAP = 20, 40
CALL_POINTS, CALL_CAP = 15, 30
EMAIL_POINTS, EMAIL_CAP = 5, 30

# A contact is "active" with at least this many engagements
ACTIVE_CONTACT_MIN_ENGAGEMENTS = 2

# Engagement score under which a contact is flagged as low engagement
LOW_ENGAGEMENT_SCORE = 30

# Sort order for recommendation priorities
PRIORITY_ORDER: Dict[Priority, int] = {
    Priority.HIGH: 0,
    Priority.MEDIUM: 1,
    Priority.LOW: 2,
}


# =============================================================================
# Component Scores
# =============================================================================


def calculate_contact_engagement_score(engagements: Optional[EngagementCounts]) -> int:
    """
    Per-contact engagement score.

    meetings: 20 each up to 40, calls: 15 each up to 30, emails: 5 each up
    to 30; total capped at 100.

    Args:
        engagements: Engagement counters (None is treated as all zero)

    Returns:
        Integer score 0-100
    """
    if engagements is None:
        return 0
    score = (
        min(engagements.meetings * MEETING_POINTS, MEETING_CAP)
        + min(engagements.calls * CALL_POINTS, CALL_CAP)
        + min(engagements.emails * EMAIL_POINTS, EMAIL_CAP)
    )
    return min(score, 100)


def calculate_participation_score(contacts: Sequence[Contact]) -> int:
    """
    Participation breadth.

    score = min(100, round(activeRatio * 60 + min(activeCount * 10, 40)))
    where a contact is active with >= 2 total engagements. Zero with no contacts.
    """
    if not contacts:
        return 0
    active = sum(
        1 for c in contacts if c.engagements.total >= ACTIVE_CONTACT_MIN_ENGAGEMENTS
    )
    ratio = active / len(contacts)
    return min(round(ratio * 60 + min(active * 10, 40)), 100)


def calculate_role_coverage_score(contacts: Sequence[Contact]) -> Dict[str, object]:
    """
    Role coverage from the contacts' effective roles.

    keyCoverage% = covered key roles / 3 * 100
    score = min(100, round(keyCoverage% * 0.7 + min(distinctRoles * 10, 30)))

    Returns:
        Dict with:
        - score: int 0-100
        - rolePoints: sum of role importance weights over all contacts
        - coveredRoles: distinct roles in first-seen order
        - missingKeyRoles: key roles not covered, in KEY_ROLES order
    """
    covered: List[BuyingRole] = []
    seen: Set[BuyingRole] = set()
    role_points = 0

    for contact in contacts:
        role = contact.effectiveRole or BuyingRole.OTHER
        role_points += BUYING_ROLE_WEIGHTS.get(role, BUYING_ROLE_WEIGHTS[BuyingRole.OTHER])
        if role not in seen:
            seen.add(role)
            covered.append(role)

    missing = [role for role in KEY_ROLES if role not in seen]
    key_coverage = (len(KEY_ROLES) - len(missing)) / len(KEY_ROLES) * 100
    score = min(round(key_coverage * 0.7 + min(len(covered) * 10, 30)), 100)

    return {
        "score": score,
        "rolePoints": role_points,
        "coveredRoles": covered,
        "missingKeyRoles": missing,
    }


def determine_risk_level(
    overall_score: int,
    contact_count: int,
    low_threshold: Optional[int] = None,
    medium_threshold: Optional[int] = None,
) -> ScoreRiskLevel:
    """
    Map an overall score onto a risk band.

    Args:
        overall_score: Overall multi-threading score
        contact_count: Number of contacts (zero is always HIGH)
        low_threshold: Minimum score for LOW (default from config, 70)
        medium_threshold: Minimum score for MEDIUM (default from config, 40)
    """
    if low_threshold is None or medium_threshold is None:
        settings = get_settings()
        if low_threshold is None:
            low_threshold = settings.low_risk_score_threshold
        if medium_threshold is None:
            medium_threshold = settings.medium_risk_score_threshold

    if contact_count == 0:
        return ScoreRiskLevel.HIGH
    if overall_score >= low_threshold:
        return ScoreRiskLevel.LOW
    if overall_score >= medium_threshold:
        return ScoreRiskLevel.MEDIUM
    return ScoreRiskLevel.HIGH


# =============================================================================
# Snapshot
# =============================================================================


def build_contact_engagement(contact: Contact) -> ContactEngagement:
    """Per-contact breakdown row stored in the snapshot."""
    return ContactEngagement(
        contactId=contact.id,
        name=contact.name,
        email=contact.email,
        role=contact.effectiveRole or BuyingRole.OTHER,
        jobTitle=contact.jobTitle,
        engagementScore=calculate_contact_engagement_score(contact.engagements),
        engagements=contact.engagements,
        lastEngagementDate=contact.lastEngagementDate,
    )


def calculate_multi_threading_score(
    contacts: Sequence[Contact],
    calculated_at: Optional[datetime] = None,
) -> ScoreSnapshot:
    """
    Score a deal's stakeholder network.

    Args:
        contacts: Deal contacts; those without an effective role are inferred first
        calculated_at: Snapshot timestamp (defaults to now, UTC)

    Returns:
        Immutable ScoreSnapshot
    """
    timestamp = ensure_utc(calculated_at) if calculated_at else utc_now()

    if not contacts:
        return ScoreSnapshot(
            riskLevel=ScoreRiskLevel.HIGH,
            missingKeyRoles=list(KEY_ROLES),
            calculatedAt=timestamp,
        )

    resolved = ensure_effective_roles(contacts)
    breakdown = [build_contact_engagement(c) for c in resolved]

    engagement_score = round(
        sum(row.engagementScore for row in breakdown) / len(breakdown)
    )
    participation_score = calculate_participation_score(resolved)
    role_coverage = calculate_role_coverage_score(resolved)
    thread_depth = sum(1 for c in resolved if c.engagements.total > 0)

    overall = round(
        engagement_score * 0.30
        + participation_score * 0.25
        + role_coverage["score"] * 0.35
        + min(thread_depth * 10, 10)
    )
    overall = max(0, min(overall, 100))

    snapshot = ScoreSnapshot(
        overallScore=overall,
        engagementScore=engagement_score,
        participationScore=participation_score,
        roleCoverageScore=role_coverage["score"],
        rolePoints=role_coverage["rolePoints"],
        riskLevel=determine_risk_level(overall, len(resolved)),
        contactCount=len(resolved),
        threadDepth=thread_depth,
        coveredRoles=role_coverage["coveredRoles"],
        missingKeyRoles=role_coverage["missingKeyRoles"],
        contacts=breakdown,
        calculatedAt=timestamp,
    )

    logger.info(
        f"Scored {snapshot.contactCount} contacts: overall={snapshot.overallScore} "
        f"risk={snapshot.riskLevel.value}"
    )
    return snapshot


# =============================================================================
# Recommendations
# =============================================================================


def _format_role(role: BuyingRole) -> str:
    return role.value.lower().replace("_", " ")


def generate_recommendations(snapshot: ScoreSnapshot) -> List[Recommendation]:
    """
    Prioritised recommendations for a snapshot.

    Emits, then stable-sorts HIGH -> MEDIUM -> LOW:
    - SINGLE_THREAD_RISK (HIGH) when contactCount <= 1
    - MISSING_ROLES (HIGH) when any key role is missing
    - LOW_ENGAGEMENT (MEDIUM) listing up to three contacts scoring < 30
    - NO_CHAMPION (MEDIUM) when no champion is covered
    - STRONG_POSITION (LOW) when overall >= 70 with >= 3 contacts
    - CRITICAL_COVERAGE (HIGH) when overall < 40
    """
    recommendations: List[Recommendation] = []

    if snapshot.contactCount <= 1:
        recommendations.append(Recommendation(
            priority=Priority.HIGH,
            type=RecommendationType.SINGLE_THREAD_RISK,
            title="Single-Thread Exposure",
            message=(
                "This deal has only one contact. Add more stakeholders to reduce "
                "risk of deal loss if this contact becomes unavailable."
            ),
            action="Identify and add additional stakeholders from the organization.",
        ))

    if snapshot.missingKeyRoles:
        missing = ", ".join(_format_role(r) for r in snapshot.missingKeyRoles)
        recommendations.append(Recommendation(
            priority=Priority.HIGH,
            type=RecommendationType.MISSING_ROLES,
            title="Missing Key Roles",
            message=f"Key buying roles not yet identified: {missing}.",
            action="Research the organization structure and identify contacts filling these roles.",
        ))

    low_engagement = [c for c in snapshot.contacts if c.engagementScore < LOW_ENGAGEMENT_SCORE]
    if low_engagement:
        names = ", ".join(c.name for c in low_engagement[:3])
        recommendations.append(Recommendation(
            priority=Priority.MEDIUM,
            type=RecommendationType.LOW_ENGAGEMENT,
            title="Low Engagement Stakeholders",
            message=(
                f"{len(low_engagement)} contact(s) have minimal engagement. "
                "Consider reaching out."
            ),
            action=f"Re-engage: {names}",
        ))

    if BuyingRole.CHAMPION not in snapshot.coveredRoles:
        recommendations.append(Recommendation(
            priority=Priority.MEDIUM,
            type=RecommendationType.NO_CHAMPION,
            title="No Champion Identified",
            message="A champion can help advocate for your solution internally.",
            action=(
                "Identify a contact who is enthusiastic about your solution and "
                "could advocate internally."
            ),
        ))

    if snapshot.overallScore >= 70 and snapshot.contactCount >= 3:
        recommendations.append(Recommendation(
            priority=Priority.LOW,
            type=RecommendationType.STRONG_POSITION,
            title="Strong Multi-Threading",
            message="This deal has good stakeholder coverage. Focus on maintaining momentum.",
            action=(
                "Continue regular engagement with all stakeholders and prepare "
                "for closing activities."
            ),
        ))

    if snapshot.overallScore < 40:
        recommendations.append(Recommendation(
            priority=Priority.HIGH,
            type=RecommendationType.CRITICAL_COVERAGE,
            title="Critical Coverage Gap",
            message="This deal has significant multi-threading gaps that increase deal risk.",
            action="Prioritize stakeholder mapping and engagement as immediate next steps.",
        ))

    return sorted(recommendations, key=lambda r: PRIORITY_ORDER[r.priority])
