"""
Risk Predictor - deterministic deal risk from three weighted sub-models.

Sub-models (each sums risk points from triggered rules):
1. CHAMPION CHURN - response rate, engagement drop, missed meetings, silence
2. ECONOMIC BUYER - missing or disengaged decision maker / budget holder,
   penalised more heavily the later the deal stage
3. MEETING PROGRESSION - meetings without stage advancement, meeting gaps,
   shrinking attendance

Composite = round(0.35 * champion + 0.35 * economicBuyer + 0.30 * meeting).
Overall is HIGH when the composite reaches 50 or any sub-model is HIGH.

Stage velocity is reported separately against per-stage duration benchmarks.
There is no learned model here; "prediction" is weighted-threshold scoring.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from deal_coverage.core.timeutils import days_between, ensure_utc, utc_now
from deal_coverage.models import (
    BuyingRole,
    ChampionChurnRisk,
    ContactEngagement,
    Deal,
    EconomicBuyerRisk,
    EngagementHistory,
    MeetingHistory,
    MeetingProgressionRisk,
    OverallRiskLevel,
    PriorityAction,
    RiskBreakdown,
    RiskFactor,
    RiskPrediction,
    ScoreSnapshot,
    StageVelocity,
    SubModelRisk,
    VelocityStatus,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

ECONOMIC_BUYER_ROLES: Tuple[BuyingRole, ...] = (
    BuyingRole.DECISION_MAKER,
    BuyingRole.BUDGET_HOLDER,
)

# Champion churn rules
LOW_RESPONSE_RATE = 0.3
ENGAGEMENT_DROP = -20
MISSED_MEETINGS = 2
CHAMPION_SILENCE_DAYS = 14

# Economic buyer penalty when no DM/BH is covered, by stage
ECONOMIC_BUYER_STAGE_RISK: Dict[str, Tuple[int, str]] = {
    "presentationscheduled": (15, "Economic buyer should be identified"),
    "decisionmakerboughtin": (40, "Economic buyer must be actively engaged"),
    "contractsent": (60, "Economic buyer approval required"),
}
LOW_ECONOMIC_BUYER_ENGAGEMENT = 30

# Meeting progression rules
STALLED_MEETINGS = 5
MEETING_GAP_DAYS = 14
ATTENDANCE_DROP = -2

# Composite weights
CHAMPION_WEIGHT = 0.35
ECONOMIC_BUYER_WEIGHT = 0.35
MEETING_WEIGHT = 0.30

# (expectedDays, maxDays) per stage
STAGE_VELOCITY_BENCHMARKS: Dict[str, Tuple[int, int]] = {
    "appointmentscheduled": (14, 30),
    "qualifiedtobuy": (21, 45),
    "presentationscheduled": (14, 30),
    "decisionmakerboughtin": (21, 45),
    "contractsent": (14, 30),
    "default": (21, 45),
}

CHAMPION_RECOMMENDATIONS: Dict[SubModelRisk, str] = {
    SubModelRisk.HIGH: (
        "Immediate action required: Schedule urgent check-in with champion "
        "and consider identifying backup champion"
    ),
    SubModelRisk.MEDIUM: "Schedule a champion check-in and review engagement strategy",
    SubModelRisk.LOW: "Monitor champion engagement and maintain regular communication",
    SubModelRisk.NONE: "Champion relationship appears healthy",
}

PREDICTION_TEXT: Dict[OverallRiskLevel, str] = {
    OverallRiskLevel.HIGH: "Deal at significant risk - immediate intervention recommended",
    OverallRiskLevel.MEDIUM: "Deal showing warning signs - proactive action advised",
    OverallRiskLevel.LOW: "Deal progressing with minor concerns",
    OverallRiskLevel.HEALTHY: "Deal appears healthy",
}


def _label(score: int, high: int, medium: int) -> SubModelRisk:
    if score >= high:
        return SubModelRisk.HIGH
    if score >= medium:
        return SubModelRisk.MEDIUM
    if score > 0:
        return SubModelRisk.LOW
    return SubModelRisk.NONE


def _format_number(value: float) -> str:
    return f"{value:g}"


# =============================================================================
# Sub-models
# =============================================================================


def predict_champion_churn(
    champion: Optional[ContactEngagement],
    history: Optional[EngagementHistory] = None,
    now: Optional[datetime] = None,
) -> ChampionChurnRisk:
    """
    Champion churn risk.

    +25 response rate < 0.3, +30 engagement change <= -20 points versus the
    previous score, +20 for 2+ missed meetings, +25 for 14+ days without
    contact. Days since contact falls back to the champion's last engagement
    date when the history does not supply it.

    Returns UNKNOWN with confidence 0 when there is no champion.
    """
    if champion is None:
        return ChampionChurnRisk(
            churnRisk=SubModelRisk.UNKNOWN,
            riskScore=0,
            confidence=0,
            recommendation="No champion identified",
        )

    history = history or EngagementHistory()
    factors: List[RiskFactor] = []

    if history.responseRate is not None and history.responseRate < LOW_RESPONSE_RATE:
        factors.append(RiskFactor(
            factor="Low Response Rate",
            value=f"{round(history.responseRate * 100)}%",
            threshold="30%",
            riskContribution=25,
            description="Champion is not responding to communications",
        ))

    if history.previousEngagementScore is not None:
        change = champion.engagementScore - history.previousEngagementScore
        if change <= ENGAGEMENT_DROP:
            factors.append(RiskFactor(
                factor="Decreasing Engagement",
                value=f"{change} points",
                threshold="-20 points",
                riskContribution=30,
                description="Champion engagement is declining significantly",
            ))

    if history.missedMeetings >= MISSED_MEETINGS:
        factors.append(RiskFactor(
            factor="Missed Meetings",
            value=str(history.missedMeetings),
            threshold="2",
            riskContribution=20,
            description="Champion has missed multiple scheduled meetings",
        ))

    days_silent = history.daysSinceLastContact
    if days_silent is None and champion.lastEngagementDate is not None:
        reference = ensure_utc(now) if now else utc_now()
        days_silent = days_between(champion.lastEngagementDate, reference)
    if days_silent is not None and days_silent >= CHAMPION_SILENCE_DAYS:
        factors.append(RiskFactor(
            factor="No Recent Contact",
            value=f"{days_silent} days",
            threshold="14 days",
            riskContribution=25,
            description="No communication with champion recently",
        ))

    score = sum(f.riskContribution for f in factors)
    label = _label(score, high=60, medium=30)

    return ChampionChurnRisk(
        churnRisk=label,
        riskScore=score,
        confidence=min(len(factors) * 25, 90) if factors else 50,
        factors=factors,
        recommendation=CHAMPION_RECOMMENDATIONS[label],
    )


def predict_economic_buyer_risk(
    snapshot: ScoreSnapshot,
    deal_stage: Optional[str] = "default",
) -> EconomicBuyerRisk:
    """
    Economic buyer risk.

    Without a decision maker or budget holder the stage penalty applies
    (presentationscheduled 15, decisionmakerboughtin 40, contractsent 60).
    With one, +25 when their mean engagement score is below 30 (zero when no
    contact row carries the role).
    """
    stage = (deal_stage or "").strip().lower()
    covered = set(snapshot.coveredRoles)
    has_economic_buyer = any(role in covered for role in ECONOMIC_BUYER_ROLES)
    factors: List[RiskFactor] = []

    if not has_economic_buyer:
        penalty, description = ECONOMIC_BUYER_STAGE_RISK.get(stage, (0, ""))
        if penalty:
            factors.append(RiskFactor(
                factor="Economic Buyer Not Involved",
                value="Not identified",
                threshold=f"Required by {stage}",
                riskContribution=penalty,
                description=description,
            ))
    else:
        # Covered roles without a matching contact row count as unengaged
        buyers = [c for c in snapshot.contacts if c.role in ECONOMIC_BUYER_ROLES]
        average = sum(c.engagementScore for c in buyers) / len(buyers) if buyers else 0
        if average < LOW_ECONOMIC_BUYER_ENGAGEMENT:
            factors.append(RiskFactor(
                factor="Low Economic Buyer Engagement",
                value=f"{round(average)}/100",
                threshold="30/100",
                riskContribution=25,
                description="Economic buyers are not actively engaged",
            ))

    score = sum(f.riskContribution for f in factors)
    label = _label(score, high=50, medium=25)

    if label == SubModelRisk.HIGH:
        recommendation = "Critical: Engage economic buyer before advancing deal"
    elif label == SubModelRisk.MEDIUM:
        recommendation = "Prioritize economic buyer engagement"
    else:
        recommendation = "Economic buyer involvement on track"

    return EconomicBuyerRisk(
        riskLevel=label,
        riskScore=score,
        hasEconomicBuyer=has_economic_buyer,
        factors=factors,
        recommendation=recommendation,
    )


def predict_meeting_progression_risk(
    meetings: Optional[MeetingHistory] = None,
) -> MeetingProgressionRisk:
    """
    Meeting progression risk.

    +35 for 5+ meetings since the last stage change, +25 for 14+ days since
    the last meeting, +20 when average attendance fell by 2 or more.
    """
    meetings = meetings or MeetingHistory()
    factors: List[RiskFactor] = []

    if meetings.meetingsSinceStageChange >= STALLED_MEETINGS:
        factors.append(RiskFactor(
            factor="Stalled Progression",
            value=f"{meetings.meetingsSinceStageChange} meetings",
            threshold="5 meetings",
            riskContribution=35,
            description="Multiple meetings without deal stage advancement",
        ))

    if meetings.daysSinceLastMeeting is not None and meetings.daysSinceLastMeeting >= MEETING_GAP_DAYS:
        factors.append(RiskFactor(
            factor="Meeting Gap",
            value=f"{meetings.daysSinceLastMeeting} days",
            threshold="14 days",
            riskContribution=25,
            description="No meetings scheduled or held recently",
        ))

    if meetings.previousAverageAttendees is not None:
        change = meetings.averageAttendees - meetings.previousAverageAttendees
        if change <= ATTENDANCE_DROP:
            factors.append(RiskFactor(
                factor="Decreasing Attendance",
                value=f"{_format_number(change)} attendees",
                threshold="-2 attendees",
                riskContribution=20,
                description="Fewer stakeholders attending recent meetings",
            ))

    score = sum(f.riskContribution for f in factors)
    label = _label(score, high=50, medium=25)

    if label == SubModelRisk.HIGH:
        recommendation = "Deal appears stalled - reassess strategy and schedule executive review"
    elif label == SubModelRisk.MEDIUM:
        recommendation = "Schedule next meeting and review progression blockers"
    else:
        recommendation = "Meeting cadence appears healthy"

    return MeetingProgressionRisk(
        riskLevel=label,
        riskScore=score,
        factors=factors,
        meetingSummary=meetings,
        recommendation=recommendation,
    )


# =============================================================================
# Composite Prediction
# =============================================================================


def find_champion(snapshot: ScoreSnapshot) -> Optional[ContactEngagement]:
    """First contact in the snapshot whose role is CHAMPION."""
    return next((c for c in snapshot.contacts if c.role == BuyingRole.CHAMPION), None)


def predict_deal_risk(
    deal: Deal,
    snapshot: ScoreSnapshot,
    engagement_history: Optional[EngagementHistory] = None,
    meeting_history: Optional[MeetingHistory] = None,
    champion: Optional[ContactEngagement] = None,
    now: Optional[datetime] = None,
) -> RiskPrediction:
    """
    Composite deal risk.

    Args:
        deal: Deal record (stage drives the economic buyer penalty)
        snapshot: Current score snapshot
        engagement_history: Champion engagement history
        meeting_history: Meeting cadence data
        champion: Champion row; defaults to the first CHAMPION in the snapshot
        now: Reference time for champion silence (defaults to now, UTC)

    Returns:
        RiskPrediction with breakdown, priority actions and confidence
    """
    if champion is None:
        champion = find_champion(snapshot)

    champion_risk = predict_champion_churn(champion, engagement_history, now)
    economic_risk = predict_economic_buyer_risk(snapshot, deal.dealStage)
    meeting_risk = predict_meeting_progression_risk(meeting_history)

    composite = round(
        champion_risk.riskScore * CHAMPION_WEIGHT
        + economic_risk.riskScore * ECONOMIC_BUYER_WEIGHT
        + meeting_risk.riskScore * MEETING_WEIGHT
    )

    sub_levels = (champion_risk.churnRisk, economic_risk.riskLevel, meeting_risk.riskLevel)
    if composite >= 50 or SubModelRisk.HIGH in sub_levels:
        overall = OverallRiskLevel.HIGH
    elif composite >= 25:
        overall = OverallRiskLevel.MEDIUM
    elif composite > 0:
        overall = OverallRiskLevel.LOW
    else:
        overall = OverallRiskLevel.HEALTHY

    actions: List[PriorityAction] = []
    if champion_risk.churnRisk == SubModelRisk.HIGH:
        actions.append(PriorityAction(
            priority=1, action="Champion at risk", details=champion_risk.recommendation
        ))
    if economic_risk.riskLevel == SubModelRisk.HIGH:
        actions.append(PriorityAction(
            priority=2, action="Economic buyer gap", details=economic_risk.recommendation
        ))
    if meeting_risk.riskLevel == SubModelRisk.HIGH:
        actions.append(PriorityAction(
            priority=3, action="Deal stalled", details=meeting_risk.recommendation
        ))

    confidence = round((
        champion_risk.confidence
        + (70 if economic_risk.factors else 50)
        + (70 if meeting_risk.factors else 50)
    ) / 3)

    logger.info(
        f"Risk for deal {deal.dealId}: composite={composite} overall={overall.value}"
    )

    return RiskPrediction(
        overallRiskLevel=overall,
        compositeRiskScore=composite,
        riskBreakdown=RiskBreakdown(
            champion=champion_risk,
            economicBuyer=economic_risk,
            meetingProgression=meeting_risk,
        ),
        priorityActions=actions,
        prediction=PREDICTION_TEXT[overall],
        confidence=confidence,
    )


# =============================================================================
# Stage Velocity
# =============================================================================


def analyze_stage_velocity(deal: Deal, now: Optional[datetime] = None) -> StageVelocity:
    """
    Time spent in the current stage versus its benchmark.

    STUCK past maxDays, SLOWING past expectedDays, otherwise ON_TRACK.
    UNKNOWN (never stuck) when the stage entry date is missing or invalid.
    """
    stage = (deal.dealStage or "default").strip().lower()
    expected, maximum = STAGE_VELOCITY_BENCHMARKS.get(stage, STAGE_VELOCITY_BENCHMARKS["default"])

    if deal.stageEnteredAt is None:
        return StageVelocity(
            currentStage=stage,
            status=VelocityStatus.UNKNOWN,
            recommendation="Unable to determine stage duration",
        )

    reference = ensure_utc(now) if now else utc_now()
    days_in_stage = days_between(deal.stageEnteredAt, reference)
    is_stuck = days_in_stage > maximum
    is_slowing = days_in_stage > expected

    if is_stuck:
        status = VelocityStatus.STUCK
        recommendation = (
            f"Deal stuck in {stage} for {days_in_stage} days (max: {maximum}). "
            "Escalate or reassess."
        )
    elif is_slowing:
        status = VelocityStatus.SLOWING
        recommendation = (
            f"Deal in {stage} for {days_in_stage} days (expected: {expected}). "
            "Monitor closely."
        )
    else:
        status = VelocityStatus.ON_TRACK
        recommendation = f"Deal progressing normally in {stage}"

    return StageVelocity(
        currentStage=stage,
        status=status,
        isStuck=is_stuck,
        isSlowing=is_slowing,
        daysInStage=days_in_stage,
        expectedDays=expected,
        maxDays=maximum,
        recommendation=recommendation,
    )
