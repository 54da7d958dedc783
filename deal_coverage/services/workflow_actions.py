"""
Workflow Actions - custom CRM workflow action handlers.

Each action scores the deal's contacts and returns a WorkflowActionResult the
workflow engine can branch on:

- check_score_threshold: compare the overall score with a threshold
- check_role_coverage: is a buying role present and engaged
- check_stakeholder_count: are there enough (engaged) stakeholders
- notify_on_condition: build a notification payload
- create_task: build a CRM task payload associated with the deal
- update_deal_property: property values to write back to the deal
- recalculate_score: every score and coverage component as output fields

Failures are returned as ACTION_FAILED results, never raised.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

from deal_coverage.core.timeutils import ensure_utc, utc_now
from deal_coverage.models import (
    BuyingRole,
    Contact,
    Deal,
    ScoreComparison,
    ScoreSnapshot,
    WorkflowActionDefinition,
    WorkflowActionResult,
    WorkflowActionType,
    WorkflowInputField,
    WorkflowResultType,
)
from deal_coverage.services.coverage_analysis import calculate_coverage_analysis
from deal_coverage.services.role_inference import ensure_effective_roles, normalize_buying_role
from deal_coverage.services.scoring import calculate_multi_threading_score

logger = logging.getLogger(__name__)

# CRM association type id linking a task to a deal
TASK_TO_DEAL_ASSOCIATION_TYPE_ID = 216

COMPARISONS: Dict[ScoreComparison, Callable[[int, float], bool]] = {
    ScoreComparison.LESS_THAN: lambda score, threshold: score < threshold,
    ScoreComparison.LESS_THAN_OR_EQUAL: lambda score, threshold: score <= threshold,
    ScoreComparison.GREATER_THAN: lambda score, threshold: score > threshold,
    ScoreComparison.GREATER_THAN_OR_EQUAL: lambda score, threshold: score >= threshold,
    ScoreComparison.EQUALS: lambda score, threshold: score == threshold,
}


def _condition(met: bool) -> WorkflowResultType:
    return WorkflowResultType.CONDITION_MET if met else WorkflowResultType.CONDITION_NOT_MET


def _int_param(params: Dict[str, Any], key: str, default: int) -> int:
    """Workflow inputs often arrive as strings; unparseable values use the default."""
    value = params.get(key)
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric workflow param {key}={value!r}")
        return default


def _bool_param(params: Dict[str, Any], key: str, default: bool) -> bool:
    value = params.get(key)
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def _parse_comparison(value: Any) -> ScoreComparison:
    try:
        return ScoreComparison(str(value).upper())
    except ValueError:
        return ScoreComparison.LESS_THAN


# =============================================================================
# Condition Checks
# =============================================================================


def check_score_threshold(params: Dict[str, Any], snapshot: ScoreSnapshot) -> WorkflowActionResult:
    """threshold (default 40) compared with the overall score; unknown comparisons use LESS_THAN."""
    threshold = _int_param(params, "threshold", 40)
    comparison = _parse_comparison(params.get("comparison", ScoreComparison.LESS_THAN.value))
    met = COMPARISONS[comparison](snapshot.overallScore, threshold)

    return WorkflowActionResult(
        actionType=WorkflowActionType.CHECK_SCORE_THRESHOLD.value,
        result=_condition(met),
        outputFields={
            "current_score": snapshot.overallScore,
            "threshold_value": threshold,
            "comparison_type": comparison.value,
            "condition_met": met,
            "risk_level": snapshot.riskLevel.value,
            "stakeholder_count": snapshot.contactCount,
        },
    )


def check_role_coverage(params: Dict[str, Any], snapshot: ScoreSnapshot) -> WorkflowActionResult:
    """Met when any contact in the role scores at least engagementThreshold (default 0)."""
    role_param = params.get("role", BuyingRole.DECISION_MAKER.value)
    role = normalize_buying_role(role_param) or BuyingRole.DECISION_MAKER
    threshold = _int_param(params, "engagementThreshold", 0)

    in_role = [c for c in snapshot.contacts if c.role == role]
    engaged = any(c.engagementScore >= threshold for c in in_role)

    return WorkflowActionResult(
        actionType=WorkflowActionType.CHECK_ROLE_COVERAGE.value,
        result=_condition(engaged),
        outputFields={
            "role_checked": role.value,
            "role_present": bool(in_role),
            "role_engaged": engaged,
            "contacts_in_role": len(in_role),
            "engagement_threshold": threshold,
            "role_contacts": [
                {"name": c.name, "email": c.email, "engagementScore": c.engagementScore}
                for c in in_role
            ],
        },
    )


def check_stakeholder_count(params: Dict[str, Any], snapshot: ScoreSnapshot) -> WorkflowActionResult:
    """Met when the (optionally engaged-only) stakeholder count reaches minCount (default 3)."""
    min_count = _int_param(params, "minCount", 3)
    engaged_only = _bool_param(params, "countEngagedOnly", False)
    threshold = _int_param(params, "engagementThreshold", 20)

    if engaged_only:
        count = sum(1 for c in snapshot.contacts if c.engagementScore >= threshold)
    else:
        count = snapshot.contactCount

    met = count >= min_count
    return WorkflowActionResult(
        actionType=WorkflowActionType.CHECK_STAKEHOLDER_COUNT.value,
        result=_condition(met),
        outputFields={
            "stakeholder_count": count,
            "minimum_required": min_count,
            "counted_engaged_only": engaged_only,
            "condition_met": met,
            "is_single_threaded": count <= 1,
        },
    )


# =============================================================================
# Payload Builders
# =============================================================================


def build_task_payload(
    params: Dict[str, Any],
    deal: Deal,
    snapshot: ScoreSnapshot,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    CRM task payload associated with the deal.

    The task body defaults to a score summary when no notes are given; the
    due timestamp is epoch milliseconds, dueInDays (default 3) from now.
    """
    reference = ensure_utc(now) if now else utc_now()
    due = reference + timedelta(days=_int_param(params, "dueInDays", 3))

    notes = params.get("notes") or ""
    if not notes:
        notes = (
            f"Multi-Threading Score: {snapshot.overallScore}/100 "
            f"({snapshot.riskLevel.value} risk)\n"
            f"Stakeholders: {snapshot.contactCount}\n"
            f"Engaged contacts: {snapshot.threadDepth}\n"
        )
        if snapshot.missingKeyRoles:
            missing = ", ".join(role.value for role in snapshot.missingKeyRoles)
            notes += f"\nMissing roles: {missing}"

    return {
        "properties": {
            "hs_task_subject": params.get("subject", "Multi-Threading Action Required"),
            "hs_task_body": notes,
            "hs_task_status": "NOT_STARTED",
            "hs_task_type": params.get("taskType", "TODO"),
            "hs_task_priority": params.get("priority", "MEDIUM"),
            "hs_timestamp": int(due.timestamp() * 1000),
        },
        "associations": [
            {
                "to": {"id": deal.dealId},
                "types": [
                    {
                        "associationCategory": "HUBSPOT_DEFINED",
                        "associationTypeId": TASK_TO_DEAL_ASSOCIATION_TYPE_ID,
                    }
                ],
            }
        ],
        "ownerId": params.get("ownerId"),
    }


def build_notification_payload(
    params: Dict[str, Any],
    deal: Deal,
    snapshot: ScoreSnapshot,
) -> Dict[str, Any]:
    """Notification payload; the message is templated from notificationType unless customMessage is set."""
    notification_type = params.get("notificationType", "DEAL_ALERT")
    message = params.get("customMessage")

    if not message:
        if notification_type == "SCORE_BELOW_THRESHOLD":
            message = (
                f'Deal "{deal.dealName}" has a multi-threading score of '
                f"{snapshot.overallScore} ({snapshot.riskLevel.value} risk). Action recommended."
            )
        elif notification_type == "MISSING_ROLE":
            missing = ", ".join(role.value for role in snapshot.missingKeyRoles)
            message = (
                f'Deal "{deal.dealName}" is missing key roles: {missing}. '
                "Please identify and add stakeholders."
            )
        elif notification_type == "SINGLE_THREADED":
            message = (
                f'Deal "{deal.dealName}" is single-threaded with only '
                f"{snapshot.contactCount} contact(s). High risk - add more stakeholders."
            )
        else:
            message = (
                f'Multi-threading alert for deal "{deal.dealName}". '
                f"Score: {snapshot.overallScore}/100"
            )

    return {
        "recipientType": params.get("recipientType", "DEAL_OWNER"),
        "notificationType": notification_type,
        "message": message,
        "dealId": deal.dealId,
        "dealName": deal.dealName,
        "score": snapshot.overallScore,
        "riskLevel": snapshot.riskLevel.value,
    }


# =============================================================================
# Dispatcher
# =============================================================================


def handle_workflow_action(
    action_type: str,
    params: Optional[Dict[str, Any]],
    contacts: Sequence[Contact],
    deal: Optional[Deal] = None,
    now: Optional[datetime] = None,
) -> WorkflowActionResult:
    """
    Run a workflow action against a deal's contacts.

    Args:
        action_type: One of the WorkflowActionType values
        params: Action input fields
        contacts: Deal contacts
        deal: Deal record (identity and stage)
        now: Reference time for task due dates

    Returns:
        WorkflowActionResult; ACTION_FAILED for unknown types or errors
    """
    params = params or {}
    deal = deal or Deal()

    try:
        action = WorkflowActionType(action_type)
    except ValueError:
        logger.warning(f"Unknown workflow action type: {action_type}")
        return WorkflowActionResult(
            actionType=str(action_type),
            result=WorkflowResultType.ACTION_FAILED,
            error=f"Unknown action type: {action_type}",
        )

    try:
        resolved = ensure_effective_roles(contacts)
        snapshot = calculate_multi_threading_score(resolved, calculated_at=now)

        if action == WorkflowActionType.CHECK_SCORE_THRESHOLD:
            return check_score_threshold(params, snapshot)
        if action == WorkflowActionType.CHECK_ROLE_COVERAGE:
            return check_role_coverage(params, snapshot)
        if action == WorkflowActionType.CHECK_STAKEHOLDER_COUNT:
            return check_stakeholder_count(params, snapshot)

        if action == WorkflowActionType.CREATE_TASK:
            return WorkflowActionResult(
                actionType=action.value,
                result=WorkflowResultType.ACTION_COMPLETED,
                taskPayload=build_task_payload(params, deal, snapshot, now),
            )

        if action == WorkflowActionType.NOTIFY_ON_CONDITION:
            return WorkflowActionResult(
                actionType=action.value,
                result=WorkflowResultType.ACTION_COMPLETED,
                notification=build_notification_payload(params, deal, snapshot),
            )

        if action == WorkflowActionType.UPDATE_DEAL_PROPERTY:
            return WorkflowActionResult(
                actionType=action.value,
                result=WorkflowResultType.ACTION_COMPLETED,
                propertyUpdates={
                    "multi_thread_score": snapshot.overallScore,
                    "stakeholder_count": snapshot.contactCount,
                    "engagement_score": snapshot.engagementScore,
                    "role_coverage_score": snapshot.roleCoverageScore,
                    "multi_thread_risk_level": snapshot.riskLevel.value,
                },
            )

        # RECALCULATE_SCORE
        coverage = calculate_coverage_analysis(resolved, deal.dealStage, now=now)
        return WorkflowActionResult(
            actionType=action.value,
            result=WorkflowResultType.ACTION_COMPLETED,
            outputFields={
                "overall_score": snapshot.overallScore,
                "engagement_score": snapshot.engagementScore,
                "participation_score": snapshot.participationScore,
                "role_coverage_score": snapshot.roleCoverageScore,
                "breadth_score": coverage.breadth.breadthScore,
                "depth_score": coverage.depth.overallDepthScore,
                "coverage_score": coverage.coverageScore,
                "risk_level": snapshot.riskLevel.value,
                "thread_depth": snapshot.threadDepth,
                "contact_count": snapshot.contactCount,
                "covered_roles": ", ".join(role.value for role in snapshot.coveredRoles),
                "missing_roles": ", ".join(role.value for role in snapshot.missingKeyRoles),
            },
        )

    except Exception as e:
        logger.error(f"Workflow action {action_type} failed: {e}", exc_info=True)
        return WorkflowActionResult(
            actionType=action.value,
            result=WorkflowResultType.ACTION_FAILED,
            error=str(e),
        )


# =============================================================================
# Action Metadata
# =============================================================================


def get_available_actions() -> List[WorkflowActionDefinition]:
    """Action definitions for registering the workflow actions with the CRM."""
    return [
        WorkflowActionDefinition(
            actionType=WorkflowActionType.CHECK_SCORE_THRESHOLD.value,
            label="Check Multi-Threading Score",
            description="Checks if the deal's multi-threading score meets a threshold",
            inputFields=[
                WorkflowInputField(
                    name="threshold", label="Score Threshold", type="number",
                    default=40, required=True,
                ),
                WorkflowInputField(
                    name="comparison", label="Comparison", type="enumeration",
                    default=ScoreComparison.LESS_THAN.value, required=True,
                    options=[c.value for c in ScoreComparison],
                ),
            ],
            outputFields=["current_score", "threshold_value", "condition_met", "risk_level"],
        ),
        WorkflowActionDefinition(
            actionType=WorkflowActionType.CHECK_ROLE_COVERAGE.value,
            label="Check Role Engagement",
            description="Checks if a specific buying role is engaged on the deal",
            inputFields=[
                WorkflowInputField(
                    name="role", label="Buying Role", type="enumeration",
                    default=BuyingRole.DECISION_MAKER.value, required=True,
                    options=[
                        BuyingRole.DECISION_MAKER.value,
                        BuyingRole.BUDGET_HOLDER.value,
                        BuyingRole.CHAMPION.value,
                        BuyingRole.INFLUENCER.value,
                        BuyingRole.END_USER.value,
                    ],
                ),
                WorkflowInputField(
                    name="engagementThreshold", label="Minimum Engagement Score",
                    type="number", default=20,
                ),
            ],
            outputFields=["role_present", "role_engaged", "contacts_in_role"],
        ),
        WorkflowActionDefinition(
            actionType=WorkflowActionType.CHECK_STAKEHOLDER_COUNT.value,
            label="Check Stakeholder Count",
            description="Checks if deal has minimum number of stakeholders",
            inputFields=[
                WorkflowInputField(
                    name="minCount", label="Minimum Stakeholders", type="number",
                    default=3, required=True,
                ),
                WorkflowInputField(
                    name="countEngagedOnly", label="Count Engaged Only", type="boolean",
                    default=False,
                ),
            ],
            outputFields=["stakeholder_count", "is_single_threaded", "condition_met"],
        ),
        WorkflowActionDefinition(
            actionType=WorkflowActionType.RECALCULATE_SCORE.value,
            label="Recalculate Multi-Threading Score",
            description="Recalculates and returns all score components",
            outputFields=[
                "overall_score", "engagement_score", "participation_score",
                "role_coverage_score", "breadth_score", "depth_score",
                "coverage_score", "risk_level", "thread_depth", "contact_count",
            ],
        ),
        WorkflowActionDefinition(
            actionType=WorkflowActionType.CREATE_TASK.value,
            label="Create Multi-Threading Task",
            description="Creates a task to address multi-threading issues",
            inputFields=[
                WorkflowInputField(
                    name="subject", label="Task Subject", type="string",
                    default="Address Multi-Threading Issues", required=True,
                ),
                WorkflowInputField(
                    name="dueInDays", label="Due In Days", type="number", default=3,
                ),
                WorkflowInputField(
                    name="priority", label="Priority", type="enumeration",
                    default="MEDIUM", options=["HIGH", "MEDIUM", "LOW"],
                ),
            ],
            outputFields=["task_created"],
        ),
        WorkflowActionDefinition(
            actionType=WorkflowActionType.NOTIFY_ON_CONDITION.value,
            label="Send Multi-Threading Alert",
            description="Sends notification about multi-threading status",
            inputFields=[
                WorkflowInputField(
                    name="notificationType", label="Alert Type", type="enumeration",
                    default="SCORE_BELOW_THRESHOLD", required=True,
                    options=["SCORE_BELOW_THRESHOLD", "MISSING_ROLE", "SINGLE_THREADED", "CUSTOM"],
                ),
                WorkflowInputField(
                    name="recipientType", label="Recipient", type="enumeration",
                    default="DEAL_OWNER", required=True,
                    options=["DEAL_OWNER", "TEAM_MANAGER", "CUSTOM"],
                ),
            ],
            outputFields=["notification_sent"],
        ),
    ]
