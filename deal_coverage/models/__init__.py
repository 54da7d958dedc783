"""
Models package for the Deal Coverage service.

Re-exports all enums and Pydantic schemas so callers can import from
`deal_coverage.models` directly:

    from deal_coverage.models import Contact, ScoreSnapshot, BuyingRole
"""

# =============================================================================
# Enum Exports
# =============================================================================

from deal_coverage.models.enums import (
    AlertType,
    BuyingRole,
    ChampionReliability,
    ChangeType,
    ChecklistCategory,
    EngagementLevel,
    InferenceSource,
    OverallRiskLevel,
    Priority,
    RecommendationType,
    RoleSource,
    ScoreComparison,
    ScoreRiskLevel,
    SeniorityLevel,
    SubModelRisk,
    VelocityStatus,
    WorkflowActionType,
    WorkflowResultType,
)

# =============================================================================
# Schema Exports
# =============================================================================

from deal_coverage.models.schemas import (
    # Input records
    EngagementCounts,
    Contact,
    Deal,
    EngagementHistory,
    MeetingHistory,
    # Role inference
    RoleSignal,
    SeniorityInference,
    RoleInference,
    # Scoring
    ContactEngagement,
    ScoreSnapshot,
    Recommendation,
    # Coverage
    StageAnalysis,
    BreadthAnalysis,
    RoleDepth,
    DepthAnalysis,
    CoverageAnalysis,
    ChecklistItem,
    ChampionFactor,
    ChampionStrength,
    # Risk
    RiskFactor,
    ChampionChurnRisk,
    EconomicBuyerRisk,
    MeetingProgressionRisk,
    RiskBreakdown,
    PriorityAction,
    RiskPrediction,
    StageVelocity,
    # Lifecycle & alerts
    LifecycleChange,
    Alert,
    LifecycleResult,
    # Workflow
    WorkflowInputField,
    WorkflowActionDefinition,
    WorkflowActionResult,
    # API envelopes
    DealAnalysisRequest,
    ChampionRequest,
    RiskRequest,
    LifecycleRequest,
    AlertRequest,
    WorkflowActionRequest,
    ScoreResponse,
    CoverageResponse,
    ChampionResponse,
    RiskResponse,
    AlertsResponse,
)


__all__ = [
    # Enums
    "AlertType",
    "BuyingRole",
    "ChampionReliability",
    "ChangeType",
    "ChecklistCategory",
    "EngagementLevel",
    "InferenceSource",
    "OverallRiskLevel",
    "Priority",
    "RecommendationType",
    "RoleSource",
    "ScoreComparison",
    "ScoreRiskLevel",
    "SeniorityLevel",
    "SubModelRisk",
    "VelocityStatus",
    "WorkflowActionType",
    "WorkflowResultType",
    # Input records
    "EngagementCounts",
    "Contact",
    "Deal",
    "EngagementHistory",
    "MeetingHistory",
    # Role inference
    "RoleSignal",
    "SeniorityInference",
    "RoleInference",
    # Scoring
    "ContactEngagement",
    "ScoreSnapshot",
    "Recommendation",
    # Coverage
    "StageAnalysis",
    "BreadthAnalysis",
    "RoleDepth",
    "DepthAnalysis",
    "CoverageAnalysis",
    "ChecklistItem",
    "ChampionFactor",
    "ChampionStrength",
    # Risk
    "RiskFactor",
    "ChampionChurnRisk",
    "EconomicBuyerRisk",
    "MeetingProgressionRisk",
    "RiskBreakdown",
    "PriorityAction",
    "RiskPrediction",
    "StageVelocity",
    # Lifecycle & alerts
    "LifecycleChange",
    "Alert",
    "LifecycleResult",
    # Workflow
    "WorkflowInputField",
    "WorkflowActionDefinition",
    "WorkflowActionResult",
    # API envelopes
    "DealAnalysisRequest",
    "ChampionRequest",
    "RiskRequest",
    "LifecycleRequest",
    "AlertRequest",
    "WorkflowActionRequest",
    "ScoreResponse",
    "CoverageResponse",
    "ChampionResponse",
    "RiskResponse",
    "AlertsResponse",
]
