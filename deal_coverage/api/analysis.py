"""
FastAPI router module for deal coverage analysis endpoints.

This module implements endpoints for:
- Multi-threading score snapshots and recommendations
- Stage-aware coverage analysis with the "what's missing" checklist
- Champion strength (or potential champions when none is identified)
- Deal risk prediction and stage velocity
- Snapshot-to-snapshot lifecycle tracking
- Threading alerts with optional Slack dispatch
- CRM workflow actions

The CRM data-fetch layer is external, so every POST body carries the deal and
its contacts. Contacts without an effective role are run through role
inference once per request and the resolved contacts feed every analysis.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException

from deal_coverage.core.dependencies import AlertThrottleDep, SettingsDep
from deal_coverage.jobs.alert_dispatch import send_alerts
from deal_coverage.models import (
    AlertRequest,
    AlertsResponse,
    BuyingRole,
    ChampionRequest,
    ChampionResponse,
    Contact,
    CoverageResponse,
    DealAnalysisRequest,
    LifecycleRequest,
    LifecycleResult,
    RiskRequest,
    RiskResponse,
    ScoreResponse,
    WorkflowActionDefinition,
    WorkflowActionRequest,
    WorkflowActionResult,
)
from deal_coverage.services.alerts import apply_throttle, generate_threading_alerts
from deal_coverage.services.coverage_analysis import (
    calculate_champion_strength,
    calculate_coverage_analysis,
    generate_missing_checklist,
)
from deal_coverage.services.lifecycle import track_stakeholder_lifecycle
from deal_coverage.services.risk_prediction import analyze_stage_velocity, predict_deal_risk
from deal_coverage.services.role_inference import ensure_effective_roles
from deal_coverage.services.scoring import (
    build_contact_engagement,
    calculate_multi_threading_score,
    generate_recommendations,
)
from deal_coverage.services.workflow_actions import get_available_actions, handle_workflow_action

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["analysis"])

# Engagement score at which a non-champion is suggested as a potential champion
POTENTIAL_CHAMPION_SCORE = 50


# =============================================================================
# Score & Coverage
# =============================================================================


@router.post("/score", response_model=ScoreResponse)
async def score_deal(request: DealAnalysisRequest) -> ScoreResponse:
    """
    Calculate the multi-threading score snapshot for a deal.

    A deal with no contacts is a valid zero state (score 0, HIGH risk).

    Args:
        request: Deal and its contacts

    Returns:
        ScoreResponse with the snapshot and prioritised recommendations

    Raises:
        HTTPException 500: If scoring fails
    """
    try:
        snapshot = calculate_multi_threading_score(request.contacts)
        return ScoreResponse(
            snapshot=snapshot,
            recommendations=generate_recommendations(snapshot),
        )
    except Exception as e:
        logger.error(f"Error scoring deal {request.deal.dealId}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Error scoring deal: {str(e)}",
        )


@router.post("/coverage", response_model=CoverageResponse)
async def analyze_coverage(
    request: DealAnalysisRequest,
    settings: SettingsDep,
) -> CoverageResponse:
    """
    Breadth/depth coverage against the deal stage's role expectations.

    Args:
        request: Deal (stage drives required roles) and its contacts
        settings: Application settings (coverage base threshold)

    Returns:
        CoverageResponse with the analysis and the "what's missing" checklist

    Raises:
        HTTPException 500: If the analysis fails
    """
    try:
        coverage = calculate_coverage_analysis(
            request.contacts,
            request.deal.dealStage,
            base_threshold=settings.coverage_base_threshold,
        )
        return CoverageResponse(
            coverage=coverage,
            checklist=generate_missing_checklist(coverage),
        )
    except Exception as e:
        logger.error(f"Error analyzing coverage for deal {request.deal.dealId}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Error analyzing coverage: {str(e)}",
        )


@router.post("/champion", response_model=ChampionResponse)
async def analyze_champion(request: ChampionRequest) -> ChampionResponse:
    """
    Champion strength for the deal.

    The champion is the contact named by championId, otherwise the first
    contact whose effective role is CHAMPION. Without a champion, contacts
    with an engagement score of 50+ are listed as potential champions.

    Args:
        request: Deal, contacts and optional observed champion behaviour

    Returns:
        ChampionResponse with strength and potential champions

    Raises:
        HTTPException 404: If championId does not match any contact
        HTTPException 500: If the analysis fails
    """
    try:
        contacts = ensure_effective_roles(request.contacts)

        champion: Optional[Contact] = None
        if request.championId is not None:
            champion = next((c for c in contacts if c.id == request.championId), None)
            if champion is None:
                raise HTTPException(
                    status_code=404,
                    detail=f"Champion {request.championId} not found among deal contacts",
                )
        else:
            champion = next(
                (c for c in contacts if c.effectiveRole == BuyingRole.CHAMPION), None
            )

        strength = calculate_champion_strength(
            champion,
            response_rate=request.responseRate,
            advocacy_indicators=request.advocacyIndicators,
            meeting_attendance=request.meetingAttendance,
        )

        potential = []
        if champion is None:
            rows = [build_contact_engagement(c) for c in contacts]
            potential = [r for r in rows if r.engagementScore >= POTENTIAL_CHAMPION_SCORE]

        return ChampionResponse(
            champion=build_contact_engagement(champion) if champion else None,
            strength=strength,
            potentialChampions=potential,
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error analyzing champion for deal {request.deal.dealId}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Error analyzing champion: {str(e)}",
        )


# =============================================================================
# Risk & Lifecycle
# =============================================================================


@router.post("/risk", response_model=RiskResponse)
async def predict_risk(request: RiskRequest) -> RiskResponse:
    """
    Composite deal risk and stage velocity.

    Args:
        request: Deal, contacts, champion engagement history and meeting history

    Returns:
        RiskResponse with the risk prediction and stage velocity

    Raises:
        HTTPException 500: If the prediction fails
    """
    try:
        snapshot = calculate_multi_threading_score(request.contacts)
        prediction = predict_deal_risk(
            request.deal,
            snapshot,
            engagement_history=request.engagementHistory,
            meeting_history=request.meetingHistory,
        )
        return RiskResponse(
            prediction=prediction,
            velocity=analyze_stage_velocity(request.deal),
        )
    except Exception as e:
        logger.error(f"Error predicting risk for deal {request.deal.dealId}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Error predicting risk: {str(e)}",
        )


@router.post("/lifecycle", response_model=LifecycleResult)
async def track_lifecycle(request: LifecycleRequest) -> LifecycleResult:
    """
    Compare the deal's current snapshot with a previously stored one.

    Args:
        request: Deal, contacts and the previous snapshot (omit for the first)

    Returns:
        LifecycleResult with changes and alerts

    Raises:
        HTTPException 500: If tracking fails
    """
    try:
        snapshot = calculate_multi_threading_score(request.contacts)
        return track_stakeholder_lifecycle(
            snapshot,
            request.previousSnapshot,
            deal=request.deal,
        )
    except Exception as e:
        logger.error(f"Error tracking lifecycle for deal {request.deal.dealId}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Error tracking lifecycle: {str(e)}",
        )


# =============================================================================
# Alerts
# =============================================================================


@router.post("/alerts", response_model=AlertsResponse)
async def generate_alerts(
    request: AlertRequest,
    throttle: AlertThrottleDep,
    settings: SettingsDep,
) -> AlertsResponse:
    """
    Generate threading and lifecycle alerts, optionally dispatching to Slack.

    Alerts in cool-down are returned with throttled=True. With send=True,
    the remaining alerts are posted to SLACK_WEBHOOK_URL.

    Args:
        request: Deal, contacts, optional previous snapshot and send flag
        throttle: Process-wide alert throttle
        settings: Application settings (Slack webhook URL)

    Returns:
        AlertsResponse with alerts and, when sent, the dispatch results

    Raises:
        HTTPException 400: If send is requested for a deal without a dealId
        HTTPException 500: If alert generation fails
    """
    if request.send and not request.deal.dealId:
        raise HTTPException(
            status_code=400,
            detail="deal.dealId is required to send alerts",
        )

    try:
        contacts = ensure_effective_roles(request.contacts)
        snapshot = calculate_multi_threading_score(contacts)
        coverage = calculate_coverage_analysis(
            contacts,
            request.deal.dealStage,
            base_threshold=settings.coverage_base_threshold,
        )

        lifecycle = None
        if request.previousSnapshot is not None:
            lifecycle = track_stakeholder_lifecycle(
                snapshot, request.previousSnapshot, deal=request.deal
            )

        alerts = generate_threading_alerts(
            request.deal, snapshot, coverage, lifecycle, throttle
        )
        if lifecycle is not None:
            alerts.extend(apply_throttle(lifecycle.alerts, throttle))

        dispatch = None
        if request.send:
            dispatch = await send_alerts(alerts, throttle, settings.slack_webhook_url)

        return AlertsResponse(alerts=alerts, dispatch=dispatch)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error generating alerts for deal {request.deal.dealId}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Error generating alerts: {str(e)}",
        )


# =============================================================================
# Workflow Actions
# =============================================================================


@router.post("/workflow/action", response_model=WorkflowActionResult)
async def run_workflow_action(request: WorkflowActionRequest) -> WorkflowActionResult:
    """
    Run a CRM workflow action.

    Unknown action types and handler failures come back as ACTION_FAILED
    results rather than HTTP errors, so the workflow engine can branch on them.

    Args:
        request: Action type, action params, deal and contacts

    Returns:
        WorkflowActionResult

    Raises:
        HTTPException 400: If actionType is blank
    """
    if not request.actionType.strip():
        raise HTTPException(
            status_code=400,
            detail="actionType is required",
        )

    return handle_workflow_action(
        request.actionType,
        request.params,
        request.contacts,
        request.deal,
    )


@router.get("/workflow/actions", response_model=List[WorkflowActionDefinition])
async def list_workflow_actions() -> List[WorkflowActionDefinition]:
    """List the available workflow actions and their input/output fields."""
    return get_available_actions()
