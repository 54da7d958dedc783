"""
Deal Coverage Services Module

Business logic for stakeholder coverage scoring. Every analysis function is
pure and synchronous; the alert throttle's history store is the only shared
mutable state.

Services:
- role_inference: Effective buying role from explicit role, title, behavior, language
- scoring: Multi-threading score snapshot and recommendations
- coverage_analysis: Stage-aware breadth/depth coverage, checklist, champion strength
- risk_prediction: Champion churn, economic buyer and meeting progression risk
- lifecycle: Snapshot-to-snapshot stakeholder changes and alerts
- alert_throttle: Per (deal, alert type) cool-down windows
- alerts: Threading alert generation and Slack formatting
- workflow_actions: CRM workflow action handlers

Data flow:
    contacts -> role_inference -> scoring -> {coverage_analysis, risk_prediction,
    lifecycle} -> alerts -> alert_throttle -> jobs.alert_dispatch

All services are designed to be consumed by the API layer (deal_coverage/api/).
"""

# =============================================================================
# Role Inference Exports
# Title rule tables, behavior and language signals, weighted combination
# =============================================================================

from deal_coverage.services.role_inference import (
    infer_contact_role,
    infer_roles_for_contacts,
    ensure_effective_roles,
    infer_role_from_job_title,
    infer_seniority_level,
    infer_role_from_behavior,
    analyze_language_patterns,
    combine_role_signals,
    normalize_buying_role,
    role_inference_rank,
)

# =============================================================================
# Scoring Exports
# Engagement, participation and role coverage combined into one snapshot
# =============================================================================

from deal_coverage.services.scoring import (
    calculate_multi_threading_score,
    calculate_contact_engagement_score,
    calculate_participation_score,
    calculate_role_coverage_score,
    determine_risk_level,
    generate_recommendations,
    BUYING_ROLE_WEIGHTS,
    KEY_ROLES,
)

# =============================================================================
# Coverage Analysis Exports
# Stage expectations, breadth/depth scores, checklist and champion strength
# =============================================================================

from deal_coverage.services.coverage_analysis import (
    calculate_coverage_analysis,
    calculate_breadth_score,
    calculate_depth_score,
    calculate_recency_score,
    generate_missing_checklist,
    calculate_champion_strength,
    STAGE_ROLE_EXPECTATIONS,
)

# =============================================================================
# Risk Prediction Exports
# Three weighted sub-models plus stage velocity
# =============================================================================

from deal_coverage.services.risk_prediction import (
    predict_deal_risk,
    predict_champion_churn,
    predict_economic_buyer_risk,
    predict_meeting_progression_risk,
    analyze_stage_velocity,
    find_champion,
    STAGE_VELOCITY_BENCHMARKS,
)

# =============================================================================
# Lifecycle, Throttle & Alert Exports
# =============================================================================

from deal_coverage.services.lifecycle import track_stakeholder_lifecycle

from deal_coverage.services.alert_throttle import (
    AlertThrottle,
    AlertHistoryStore,
    InMemoryAlertHistoryStore,
    ThrottleClaim,
    ALERT_CONFIGS,
)

from deal_coverage.services.alerts import (
    generate_threading_alerts,
    apply_throttle,
    format_slack_alert,
)

# =============================================================================
# Workflow Action Exports
# =============================================================================

from deal_coverage.services.workflow_actions import (
    handle_workflow_action,
    get_available_actions,
)


__all__ = [
    # Role inference
    "infer_contact_role",
    "infer_roles_for_contacts",
    "ensure_effective_roles",
    "infer_role_from_job_title",
    "infer_seniority_level",
    "infer_role_from_behavior",
    "analyze_language_patterns",
    "combine_role_signals",
    "normalize_buying_role",
    "role_inference_rank",
    # Scoring
    "calculate_multi_threading_score",
    "calculate_contact_engagement_score",
    "calculate_participation_score",
    "calculate_role_coverage_score",
    "determine_risk_level",
    "generate_recommendations",
    "BUYING_ROLE_WEIGHTS",
    "KEY_ROLES",
    # Coverage analysis
    "calculate_coverage_analysis",
    "calculate_breadth_score",
    "calculate_depth_score",
    "calculate_recency_score",
    "generate_missing_checklist",
    "calculate_champion_strength",
    "STAGE_ROLE_EXPECTATIONS",
    # Risk prediction
    "predict_deal_risk",
    "predict_champion_churn",
    "predict_economic_buyer_risk",
    "predict_meeting_progression_risk",
    "analyze_stage_velocity",
    "find_champion",
    "STAGE_VELOCITY_BENCHMARKS",
    # Lifecycle
    "track_stakeholder_lifecycle",
    # Alert throttle
    "AlertThrottle",
    "AlertHistoryStore",
    "InMemoryAlertHistoryStore",
    "ThrottleClaim",
    "ALERT_CONFIGS",
    # Alerts
    "generate_threading_alerts",
    "apply_throttle",
    "format_slack_alert",
    # Workflow actions
    "handle_workflow_action",
    "get_available_actions",
]
