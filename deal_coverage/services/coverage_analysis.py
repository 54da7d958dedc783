"""
Coverage Analyzer - breadth and depth of stakeholder coverage per deal stage.

1. BREADTH - which buying roles are represented, judged against the roles the
   deal's pipeline stage requires and recommends
2. DEPTH - how strongly each role group is engaged (frequency 60%, recency 40%)
3. COVERAGE - round(breadth * 0.5 + depth * 0.5), passed against a baseline of
   70 scaled by a stage multiplier (0.6 early in the cycle up to 1.0 at contract)
4. CHECKLIST - "what's missing" items derived from the analysis
5. CHAMPION STRENGTH - four 0-25 factors summed into a reliability label

Stage keys are matched case-insensitively; unknown stages use the "default"
entry, never an error.
"""

import logging
import re
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from deal_coverage.core.config import get_settings
from deal_coverage.core.timeutils import days_between, ensure_utc, utc_now
from deal_coverage.models import (
    BreadthAnalysis,
    BuyingRole,
    ChampionFactor,
    ChampionReliability,
    ChampionStrength,
    ChecklistCategory,
    ChecklistItem,
    Contact,
    CoverageAnalysis,
    DepthAnalysis,
    EngagementLevel,
    Priority,
    RoleDepth,
    StageAnalysis,
)
from deal_coverage.services.role_inference import ensure_effective_roles
from deal_coverage.services.scoring import KEY_ROLES, PRIORITY_ORDER

logger = logging.getLogger(__name__)


# =============================================================================
# Stage Tables
# =============================================================================

DEFAULT_STAGE = "default"

# Required / recommended roles and threshold multiplier per pipeline stage
STAGE_ROLE_EXPECTATIONS: Dict[str, Dict[str, object]] = {
    "appointmentscheduled": {
        "required": [BuyingRole.CHAMPION, BuyingRole.INFLUENCER],
        "recommended": [],
        "thresholdMultiplier": 0.6,
    },
    "qualifiedtobuy": {
        "required": [BuyingRole.CHAMPION, BuyingRole.INFLUENCER],
        "recommended": [BuyingRole.DECISION_MAKER],
        "thresholdMultiplier": 0.7,
    },
    "presentationscheduled": {
        "required": [BuyingRole.CHAMPION, BuyingRole.DECISION_MAKER],
        "recommended": [BuyingRole.BUDGET_HOLDER],
        "thresholdMultiplier": 0.8,
    },
    "decisionmakerboughtin": {
        "required": [BuyingRole.DECISION_MAKER, BuyingRole.BUDGET_HOLDER, BuyingRole.CHAMPION],
        "recommended": [BuyingRole.INFLUENCER],
        "thresholdMultiplier": 0.9,
    },
    "contractsent": {
        "required": [BuyingRole.DECISION_MAKER, BuyingRole.BUDGET_HOLDER, BuyingRole.CHAMPION],
        "recommended": [BuyingRole.LEGAL, BuyingRole.PROCUREMENT],
        "thresholdMultiplier": 1.0,
    },
    "closedwon": {
        "required": [BuyingRole.DECISION_MAKER, BuyingRole.BUDGET_HOLDER],
        "recommended": [],
        "thresholdMultiplier": 1.0,
    },
    DEFAULT_STAGE: {
        "required": [BuyingRole.CHAMPION],
        "recommended": [BuyingRole.DECISION_MAKER, BuyingRole.BUDGET_HOLDER],
        "thresholdMultiplier": 0.7,
    },
}

# Recency step function: (max days since last engagement, score)
RECENCY_STEPS = [
    (7, 100),
    (14, 80),
    (30, 60),
    (60, 40),
]
RECENCY_OLDER_SCORE = 20

# Depth weights
FREQUENCY_WEIGHT = 0.6
RECENCY_WEIGHT = 0.4


def resolve_stage(deal_stage: Optional[str]) -> str:
    """Normalise a stage key, falling back to "default" for unknown stages."""
    key = (deal_stage or "").strip().lower()
    return key if key in STAGE_ROLE_EXPECTATIONS else DEFAULT_STAGE


def get_stage_expectations(deal_stage: Optional[str]) -> Dict[str, object]:
    """Stage expectations for a stage key (default entry for unknown stages)."""
    return STAGE_ROLE_EXPECTATIONS[resolve_stage(deal_stage)]


# =============================================================================
# Breadth
# =============================================================================


def group_contacts_by_role(contacts: Sequence[Contact]) -> Dict[BuyingRole, List[Contact]]:
    """Group contacts by effective role, preserving first-seen role order."""
    groups: Dict[BuyingRole, List[Contact]] = {}
    for contact in contacts:
        role = contact.effectiveRole or BuyingRole.OTHER
        groups.setdefault(role, []).append(contact)
    return groups


def calculate_breadth_score(
    contacts: Sequence[Contact],
    deal_stage: Optional[str] = DEFAULT_STAGE,
) -> BreadthAnalysis:
    """
    Breadth of role coverage for the stage.

    requiredCoverage% = covered required / required * 100 (100 with none required)
    diversityBonus = min((distinctRoles - coveredRequired) * 5, 20)
    breadth = min(100, round(requiredCoverage% * 0.8 + diversityBonus))
    """
    role_contacts = group_contacts_by_role(contacts)
    covered = list(role_contacts.keys())

    stage_key = resolve_stage(deal_stage)
    expectations = STAGE_ROLE_EXPECTATIONS[stage_key]
    required: List[BuyingRole] = expectations["required"]
    recommended: List[BuyingRole] = expectations["recommended"]

    covered_required = [r for r in required if r in role_contacts]
    missing_required = [r for r in required if r not in role_contacts]
    missing_recommended = [r for r in recommended if r not in role_contacts]

    if required:
        required_coverage = len(covered_required) / len(required) * 100
    else:
        required_coverage = 100.0

    diversity_bonus = min((len(covered) - len(covered_required)) * 5, 20)
    breadth = min(round(required_coverage * 0.8 + diversity_bonus), 100)

    return BreadthAnalysis(
        breadthScore=breadth,
        totalRolesRepresented=len(covered),
        coveredRoles=covered,
        roleContacts=role_contacts,
        stageAnalysis=StageAnalysis(
            dealStage=stage_key,
            requiredRoles=required,
            recommendedRoles=recommended,
            missingRequired=missing_required,
            missingRecommended=missing_recommended,
            coveredRequired=covered_required,
            thresholdMultiplier=expectations["thresholdMultiplier"],
        ),
    )


# =============================================================================
# Depth
# =============================================================================


def calculate_recency_score(
    last_engagement: Optional[datetime],
    now: Optional[datetime] = None,
) -> int:
    """
    Recency step function.

    100 within 7 days, 80 within 14, 60 within 30, 40 within 60, 20 beyond,
    0 when the last engagement date is unknown.
    """
    if last_engagement is None:
        return 0
    reference = ensure_utc(now) if now else utc_now()
    days_since = days_between(last_engagement, reference)
    for max_days, score in RECENCY_STEPS:
        if days_since <= max_days:
            return score
    return RECENCY_OLDER_SCORE


def determine_engagement_level(depth_score: int) -> EngagementLevel:
    if depth_score >= 70:
        return EngagementLevel.HIGH
    if depth_score >= 40:
        return EngagementLevel.MEDIUM
    if depth_score > 0:
        return EngagementLevel.LOW
    return EngagementLevel.NONE


def calculate_role_depth_score(
    role: BuyingRole,
    role_contacts: Sequence[Contact],
    now: Optional[datetime] = None,
) -> RoleDepth:
    """
    Depth of a single role group.

    frequency = mean(min(total * 10, 100)), recency = mean(recency score),
    depth = round(frequency * 0.6 + recency * 0.4).
    """
    if not role_contacts:
        return RoleDepth(role=role, depthScore=0, engagementLevel=EngagementLevel.NONE)

    frequency_total = 0
    recency_total = 0
    active = 0
    for contact in role_contacts:
        frequency_total += min(contact.engagements.total * 10, 100)
        recency_total += calculate_recency_score(contact.lastEngagementDate, now)
        if contact.engagements.total > 0:
            active += 1

    frequency = frequency_total / len(role_contacts)
    recency = recency_total / len(role_contacts)
    depth = round(frequency * FREQUENCY_WEIGHT + recency * RECENCY_WEIGHT)

    return RoleDepth(
        role=role,
        depthScore=depth,
        engagementLevel=determine_engagement_level(depth),
        frequencyScore=round(frequency),
        recencyScore=round(recency),
        contactCount=len(role_contacts),
        activeContacts=active,
    )


def calculate_depth_score(
    contacts: Sequence[Contact],
    now: Optional[datetime] = None,
) -> DepthAnalysis:
    """
    Depth across all role groups.

    Overall depth is the rounded mean of role depths. Strongest is the first
    role with the highest depth, weakest the last role with the lowest
    (ranking is stable on first-seen role order).
    """
    role_depths: Dict[BuyingRole, RoleDepth] = {
        role: calculate_role_depth_score(role, group, now)
        for role, group in group_contacts_by_role(contacts).items()
    }

    if not role_depths:
        return DepthAnalysis(overallDepthScore=0)

    overall = round(sum(d.depthScore for d in role_depths.values()) / len(role_depths))
    ranked = sorted(role_depths.values(), key=lambda d: d.depthScore, reverse=True)

    return DepthAnalysis(
        overallDepthScore=overall,
        roleDepths=role_depths,
        strongestRole=ranked[0],
        weakestRole=ranked[-1],
        roleCount=len(role_depths),
    )


# =============================================================================
# Combined Coverage
# =============================================================================


def calculate_coverage_analysis(
    contacts: Sequence[Contact],
    deal_stage: Optional[str] = DEFAULT_STAGE,
    now: Optional[datetime] = None,
    base_threshold: Optional[int] = None,
) -> CoverageAnalysis:
    """
    Combined breadth/depth coverage for a deal.

    Args:
        contacts: Deal contacts; those without an effective role are inferred first
        deal_stage: Pipeline stage key
        now: Reference time for recency (defaults to now, UTC)
        base_threshold: Passing score before the stage multiplier (default from config, 70)

    Returns:
        CoverageAnalysis with meetsStageExpectations = coverage >= base * multiplier
    """
    if base_threshold is None:
        base_threshold = get_settings().coverage_base_threshold

    resolved = ensure_effective_roles(contacts)
    breadth = calculate_breadth_score(resolved, deal_stage)
    depth = calculate_depth_score(resolved, now)

    coverage = round(breadth.breadthScore * 0.5 + depth.overallDepthScore * 0.5)
    threshold = base_threshold * breadth.stageAnalysis.thresholdMultiplier

    analysis = CoverageAnalysis(
        coverageScore=coverage,
        breadth=breadth,
        depth=depth,
        meetsStageExpectations=coverage >= threshold,
        adjustedThreshold=round(threshold),
    )

    logger.info(
        f"Coverage for stage {breadth.stageAnalysis.dealStage}: "
        f"score={coverage} threshold={analysis.adjustedThreshold} "
        f"meets={analysis.meetsStageExpectations}"
    )
    return analysis


# =============================================================================
# What's Missing Checklist
# =============================================================================


def _format_role(role: BuyingRole) -> str:
    return role.value.lower().replace("_", " ")


def generate_missing_checklist(analysis: CoverageAnalysis) -> List[ChecklistItem]:
    """
    "What's missing" checklist for a coverage analysis.

    - HIGH per missing required role
    - MEDIUM per missing recommended role
    - MEDIUM per key role whose depth is LOW
    - HIGH when neither DECISION_MAKER nor BUDGET_HOLDER is covered
    - MEDIUM when BUDGET_HOLDER is absent

    Stable-sorted HIGH -> MEDIUM -> LOW.
    """
    checklist: List[ChecklistItem] = []
    stage = analysis.breadth.stageAnalysis
    covered = set(analysis.breadth.coveredRoles)

    for role in stage.missingRequired:
        label = _format_role(role)
        checklist.append(ChecklistItem(
            category=ChecklistCategory.MISSING_ROLE,
            priority=Priority.HIGH,
            role=role,
            title=f"Missing {label}",
            description=f"No {label} identified for this deal stage",
            action=f"Identify and add a {label} to the deal",
        ))

    for role in stage.missingRecommended:
        label = _format_role(role)
        checklist.append(ChecklistItem(
            category=ChecklistCategory.RECOMMENDED_ROLE,
            priority=Priority.MEDIUM,
            role=role,
            title=f"Consider adding {label}",
            description=f"{label.capitalize()} recommended for this deal stage",
            action=f"Identify a {label} in the organization",
        ))

    for role in KEY_ROLES:
        role_depth = analysis.depth.roleDepths.get(role)
        if role_depth and role_depth.engagementLevel == EngagementLevel.LOW:
            label = _format_role(role)
            checklist.append(ChecklistItem(
                category=ChecklistCategory.LOW_ENGAGEMENT,
                priority=Priority.MEDIUM,
                role=role,
                title=f"{label.capitalize()} engagement low",
                description=f"{role.value} engagement score is {role_depth.depthScore}/100",
                action=f"Increase engagement with the {label}",
            ))

    if BuyingRole.DECISION_MAKER not in covered and BuyingRole.BUDGET_HOLDER not in covered:
        checklist.append(ChecklistItem(
            category=ChecklistCategory.SENIORITY,
            priority=Priority.HIGH,
            title="Not enough seniority",
            description="No executive-level stakeholders identified",
            action="Identify and engage senior decision-makers",
        ))

    if BuyingRole.BUDGET_HOLDER not in covered:
        checklist.append(ChecklistItem(
            category=ChecklistCategory.FINANCE,
            priority=Priority.MEDIUM,
            role=BuyingRole.BUDGET_HOLDER,
            title="No finance involvement",
            description="Budget holder not yet engaged",
            action="Request introduction to finance/procurement contact",
        ))

    return sorted(checklist, key=lambda item: PRIORITY_ORDER[item.priority])


# =============================================================================
# Champion Strength
# =============================================================================

# Title keywords for the influence factor, highest tier first. "sr" also
# matches "Sr." since the boundary falls before the period.
INFLUENCE_TIERS = [
    (re.compile(r"\b(?:senior|sr|lead|principal|director|vp|head)\b", re.IGNORECASE), 25),
    (re.compile(r"\b(?:manager|supervisor)\b", re.IGNORECASE), 20),
    (re.compile(r"\b(?:specialist|consultant|analyst)\b", re.IGNORECASE), 15),
]
BASE_INFLUENCE = 10
FACTOR_MAX = 25
LOW_FACTOR_SCORE = 15


def _influence_score(job_title: str) -> int:
    for pattern, score in INFLUENCE_TIERS:
        if pattern.search(job_title):
            return score
    return BASE_INFLUENCE


def determine_champion_reliability(strength_score: float) -> ChampionReliability:
    if strength_score >= 80:
        return ChampionReliability.STRONG
    if strength_score >= 60:
        return ChampionReliability.MODERATE
    if strength_score >= 40:
        return ChampionReliability.DEVELOPING
    return ChampionReliability.WEAK


def calculate_champion_strength(
    champion: Optional[Contact],
    response_rate: Optional[float] = None,
    advocacy_indicators: Optional[Sequence[str]] = None,
    meeting_attendance: Optional[float] = None,
) -> ChampionStrength:
    """
    Champion strength from four independently capped 0-25 factors.

    - Responsiveness: response_rate * 25, or min(total engagements * 2, 25)
    - Advocacy: min(len(advocacy_indicators) * 5 + 5, 25)
    - Meeting attendance: meeting_attendance * 25, or min(meetings * 5, 25)
    - Influence: 25 senior/lead/director/VP/head titles, 20 manager,
      15 specialist/consultant/analyst, otherwise 10

    Args:
        champion: The champion contact, or None
        response_rate: Observed response rate 0-1, if known
        advocacy_indicators: Observed advocacy behaviours
        meeting_attendance: Observed attendance rate 0-1, if known

    Returns:
        ChampionStrength; reliability NONE with score 0 when there is no champion
    """
    if champion is None:
        return ChampionStrength(
            strengthScore=0,
            reliability=ChampionReliability.NONE,
            recommendations=["Identify and develop a champion within the organization"],
        )

    engagements = champion.engagements
    indicators = list(advocacy_indicators or [])
    factors: List[ChampionFactor] = []
    total = 0.0

    if response_rate is not None:
        responsiveness = min(response_rate * FACTOR_MAX, FACTOR_MAX)
        factors.append(ChampionFactor(
            name="Responsiveness",
            score=round(responsiveness),
            description=f"Response rate: {round(response_rate * 100)}%",
        ))
    else:
        responsiveness = min(engagements.total * 2, FACTOR_MAX)
        factors.append(ChampionFactor(
            name="Responsiveness (estimated)",
            score=responsiveness,
            description=f"Based on {engagements.total} total engagements",
        ))
    total += responsiveness

    advocacy = min(len(indicators) * 5 + 5, FACTOR_MAX)
    factors.append(ChampionFactor(
        name="Advocacy",
        score=advocacy,
        description=(
            f"{len(indicators)} advocacy indicators detected"
            if indicators else "No specific advocacy indicators detected"
        ),
    ))
    total += advocacy

    if meeting_attendance is not None:
        attendance = min(meeting_attendance * FACTOR_MAX, FACTOR_MAX)
        factors.append(ChampionFactor(
            name="Meeting Attendance",
            score=round(attendance),
            description=f"Attendance rate: {round(meeting_attendance * 100)}%",
        ))
    else:
        attendance = min(engagements.meetings * 5, FACTOR_MAX)
        factors.append(ChampionFactor(
            name="Meeting Participation",
            score=attendance,
            description=f"Participated in {engagements.meetings} meetings",
        ))
    total += attendance

    influence = _influence_score(champion.jobTitle or "")
    factors.append(ChampionFactor(
        name="Influence Level",
        score=influence,
        description=champion.jobTitle or "Title not specified",
    ))
    total += influence

    reliability = determine_champion_reliability(total)

    recommendations: List[str] = []
    responsiveness_factor, advocacy_factor, attendance_factor, influence_factor = factors
    if responsiveness_factor.score < LOW_FACTOR_SCORE:
        recommendations.append("Improve communication frequency with champion")
    if advocacy_factor.score < LOW_FACTOR_SCORE:
        recommendations.append("Provide champion with compelling content to share internally")
    if attendance_factor.score < LOW_FACTOR_SCORE:
        recommendations.append("Increase meeting frequency with champion")
    if influence_factor.score < LOW_FACTOR_SCORE:
        recommendations.append("Pair the champion with a more senior sponsor to extend their reach")
    if reliability == ChampionReliability.WEAK:
        recommendations.append("Consider identifying an additional or alternative champion")

    return ChampionStrength(
        strengthScore=round(total),
        reliability=reliability,
        factors=factors,
        recommendations=recommendations or [
            "Champion is performing well - maintain current engagement"
        ],
    )
