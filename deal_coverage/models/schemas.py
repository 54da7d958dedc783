"""
Pydantic request/response models for the Deal Coverage service.

Field names are camelCase because the same JSON shapes are consumed by the CRM
card and report layers. Inputs are lenient: null counters become zero, blank
or unparseable timestamps become None, and a missing stage becomes "default".
Outputs are plain value objects; ScoreSnapshot is frozen so two snapshots can
be diffed safely by the lifecycle tracker.

Groups:
- Input records: EngagementCounts, Contact, Deal, EngagementHistory, MeetingHistory
- Role inference: RoleSignal, SeniorityInference, RoleInference
- Scoring: ContactEngagement, ScoreSnapshot, Recommendation
- Coverage: StageAnalysis, BreadthAnalysis, RoleDepth, DepthAnalysis,
  CoverageAnalysis, ChecklistItem, ChampionFactor, ChampionStrength
- Risk: RiskFactor, ChampionChurnRisk, EconomicBuyerRisk,
  MeetingProgressionRisk, RiskBreakdown, PriorityAction, RiskPrediction,
  StageVelocity
- Lifecycle & alerts: LifecycleChange, Alert, LifecycleResult
- Workflow: WorkflowInputField, WorkflowActionDefinition, WorkflowActionResult
- API envelopes: DealAnalysisRequest and friends
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from deal_coverage.core.timeutils import parse_datetime
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
    ScoreRiskLevel,
    SeniorityLevel,
    SubModelRisk,
    VelocityStatus,
    WorkflowResultType,
)


# =============================================================================
# Input Records
# =============================================================================


class EngagementCounts(BaseModel):
    """
    Engagement counters for a single contact.

    `total` is normally supplied by the CRM. When it is missing or zero while
    channel counts exist, it is derived as emails + meetings + calls.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {"emails": 4, "meetings": 2, "calls": 1, "total": 7}
        }
    )

    emails: int = Field(default=0, ge=0, description="Emails exchanged")
    meetings: int = Field(default=0, ge=0, description="Meetings attended")
    calls: int = Field(default=0, ge=0, description="Calls held")
    total: int = Field(default=0, ge=0, description="Total engagements")

    @field_validator("emails", "meetings", "calls", "total", mode="before")
    @classmethod
    def _none_as_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @model_validator(mode="after")
    def _derive_total(self) -> "EngagementCounts":
        if self.total == 0:
            self.total = self.emails + self.meetings + self.calls
        return self


class Contact(BaseModel):
    """
    A stakeholder on the deal, as supplied by the CRM data-fetch layer.

    `buyingRole` is the raw explicit role from the CRM and may hold a
    placeholder such as "Not specified". `effectiveRole` is filled in once by
    role inference and is the only role the scoring services read.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "501",
                "firstName": "Dana",
                "lastName": "Reyes",
                "email": "dana.reyes@example.com",
                "jobTitle": "VP of Operations",
                "buyingRole": None,
                "engagements": {"emails": 6, "meetings": 2, "calls": 1, "total": 9},
                "lastEngagementDate": "2026-01-20T15:30:00Z"
            }
        }
    )

    id: Optional[str] = Field(default=None, description="CRM contact id")
    firstName: Optional[str] = Field(default=None, description="First name")
    lastName: Optional[str] = Field(default=None, description="Last name")
    email: Optional[str] = Field(default=None, description="Email address")
    jobTitle: Optional[str] = Field(default=None, description="Job title text")
    buyingRole: Optional[str] = Field(
        default=None,
        description="Explicit buying role from the CRM (may be a placeholder)"
    )
    engagements: EngagementCounts = Field(
        default_factory=EngagementCounts,
        description="Engagement counters"
    )
    lastEngagementDate: Optional[datetime] = Field(
        default=None,
        description="Timestamp of the most recent engagement"
    )
    effectiveRole: Optional[BuyingRole] = Field(
        default=None,
        description="Normalised role set by role inference"
    )
    roleConfidence: int = Field(
        default=0,
        ge=0,
        le=100,
        description="Confidence in effectiveRole"
    )
    roleSource: Optional[RoleSource] = Field(
        default=None,
        description="Provenance of effectiveRole"
    )

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_string(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("engagements", mode="before")
    @classmethod
    def _none_as_empty_engagements(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("lastEngagementDate", mode="before")
    @classmethod
    def _lenient_date(cls, value: Any) -> Optional[datetime]:
        return parse_datetime(value)

    @property
    def name(self) -> str:
        """Display name, "Unknown" when neither name part is present."""
        full = f"{self.firstName or ''} {self.lastName or ''}".strip()
        return full or "Unknown"


class Deal(BaseModel):
    """Deal record: identity, pipeline stage, amount and stage-entry timestamp."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "dealId": "9001",
                "dealName": "Acme Renewal",
                "dealStage": "presentationscheduled",
                "amount": 48000.0,
                "stageEnteredAt": "2026-01-05T09:00:00Z"
            }
        }
    )

    dealId: Optional[str] = Field(default=None, description="CRM deal id")
    dealName: Optional[str] = Field(default=None, description="Deal name")
    dealStage: str = Field(
        default="default",
        description="Pipeline stage key (unknown keys use the default stage entry)"
    )
    amount: Optional[float] = Field(default=None, description="Deal amount")
    stageEnteredAt: Optional[datetime] = Field(
        default=None,
        description="When the deal entered its current stage"
    )

    @field_validator("dealId", mode="before")
    @classmethod
    def _id_as_string(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("dealStage", mode="before")
    @classmethod
    def _default_stage(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "default"
        return value

    @field_validator("stageEnteredAt", mode="before")
    @classmethod
    def _lenient_date(cls, value: Any) -> Optional[datetime]:
        return parse_datetime(value)


class EngagementHistory(BaseModel):
    """Champion engagement history used by the churn sub-model."""
    responseRate: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Share of outreach the champion responded to"
    )
    previousEngagementScore: Optional[int] = Field(
        default=None,
        description="Champion engagement score in the previous snapshot"
    )
    missedMeetings: int = Field(default=0, ge=0, description="Missed meetings")
    daysSinceLastContact: Optional[int] = Field(
        default=None,
        description="Days since the champion was last contacted"
    )


class MeetingHistory(BaseModel):
    """Meeting cadence data used by the meeting-progression sub-model."""
    totalMeetings: int = Field(default=0, ge=0)
    meetingsSinceStageChange: int = Field(default=0, ge=0)
    daysSinceLastMeeting: Optional[int] = Field(default=None)
    averageAttendees: float = Field(default=0.0, ge=0.0)
    previousAverageAttendees: Optional[float] = Field(default=None)


# =============================================================================
# Role Inference
# =============================================================================


class RoleSignal(BaseModel):
    """One role suggestion from a single signal family."""
    source: InferenceSource
    role: BuyingRole
    confidence: int = Field(..., ge=0, le=100)
    matches: List[str] = Field(
        default_factory=list,
        description="Matched text or triggered indicator names"
    )


class SeniorityInference(BaseModel):
    """Seniority tier inferred from a job title."""
    level: SeniorityLevel
    confidence: int = Field(..., ge=0, le=100)
    matchedText: Optional[str] = None


class RoleInference(BaseModel):
    """Combined role inference for a contact."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "role": "BUDGET_HOLDER",
                "confidence": 75,
                "source": "inferred",
                "inferences": [
                    {"source": "job_title", "role": "BUDGET_HOLDER", "confidence": 75,
                     "matches": ["cfo", "financial"]}
                ],
                "seniority": {"level": "EXECUTIVE", "confidence": 80, "matchedText": "cfo"}
            }
        }
    )

    role: BuyingRole
    confidence: int = Field(..., ge=0, le=100)
    source: RoleSource
    inferences: List[RoleSignal] = Field(default_factory=list)
    seniority: Optional[SeniorityInference] = None


# =============================================================================
# Scoring
# =============================================================================


class ContactEngagement(BaseModel):
    """Per-contact engagement breakdown stored in a score snapshot."""
    contactId: Optional[str] = None
    name: str = "Unknown"
    email: Optional[str] = None
    role: BuyingRole = BuyingRole.OTHER
    jobTitle: Optional[str] = None
    engagementScore: int = Field(default=0, ge=0, le=100)
    engagements: EngagementCounts = Field(default_factory=EngagementCounts)
    lastEngagementDate: Optional[datetime] = None

    @field_validator("lastEngagementDate", mode="before")
    @classmethod
    def _lenient_date(cls, value: Any) -> Optional[datetime]:
        return parse_datetime(value)


class ScoreSnapshot(BaseModel):
    """
    Output of the scoring engine for one deal at one point in time.

    Snapshots are immutable; the lifecycle tracker compares two of them.
    Fields default to their zero state so a stored snapshot with missing
    fields still loads.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "overallScore": 64,
                "engagementScore": 58,
                "participationScore": 82,
                "roleCoverageScore": 70,
                "rolePoints": 75,
                "riskLevel": "MEDIUM",
                "contactCount": 3,
                "threadDepth": 3,
                "coveredRoles": ["DECISION_MAKER", "CHAMPION", "END_USER"],
                "missingKeyRoles": ["BUDGET_HOLDER"],
                "contacts": [],
                "calculatedAt": "2026-01-28T12:00:00Z"
            }
        }
    )

    overallScore: int = Field(default=0, ge=0, le=100)
    engagementScore: int = Field(default=0, ge=0, le=100)
    participationScore: int = Field(default=0, ge=0, le=100)
    roleCoverageScore: int = Field(default=0, ge=0, le=100)
    rolePoints: int = Field(default=0, ge=0, description="Sum of role importance weights")
    riskLevel: ScoreRiskLevel = ScoreRiskLevel.HIGH
    contactCount: int = Field(default=0, ge=0)
    threadDepth: int = Field(default=0, ge=0, description="Contacts with any engagement")
    coveredRoles: List[BuyingRole] = Field(default_factory=list)
    missingKeyRoles: List[BuyingRole] = Field(default_factory=list)
    contacts: List[ContactEngagement] = Field(default_factory=list)
    calculatedAt: Optional[datetime] = None

    @field_validator("calculatedAt", mode="before")
    @classmethod
    def _lenient_date(cls, value: Any) -> Optional[datetime]:
        return parse_datetime(value)


class Recommendation(BaseModel):
    """Prioritised recommendation generated from a score snapshot."""
    priority: Priority
    type: RecommendationType
    title: str
    message: str
    action: str


# =============================================================================
# Coverage Analysis
# =============================================================================


class StageAnalysis(BaseModel):
    """Required/recommended role coverage for the deal's stage."""
    dealStage: str
    requiredRoles: List[BuyingRole] = Field(default_factory=list)
    recommendedRoles: List[BuyingRole] = Field(default_factory=list)
    missingRequired: List[BuyingRole] = Field(default_factory=list)
    missingRecommended: List[BuyingRole] = Field(default_factory=list)
    coveredRequired: List[BuyingRole] = Field(default_factory=list)
    thresholdMultiplier: float = Field(..., ge=0.0, le=1.0)


class BreadthAnalysis(BaseModel):
    """Role diversity of the deal's contacts."""
    breadthScore: int = Field(..., ge=0, le=100)
    totalRolesRepresented: int = Field(..., ge=0)
    coveredRoles: List[BuyingRole] = Field(default_factory=list)
    roleContacts: Dict[BuyingRole, List[Contact]] = Field(default_factory=dict)
    stageAnalysis: StageAnalysis


class RoleDepth(BaseModel):
    """Engagement depth of a single role group."""
    role: BuyingRole
    depthScore: int = Field(..., ge=0, le=100)
    engagementLevel: EngagementLevel
    frequencyScore: int = Field(default=0, ge=0, le=100)
    recencyScore: int = Field(default=0, ge=0, le=100)
    contactCount: int = Field(default=0, ge=0)
    activeContacts: int = Field(default=0, ge=0)


class DepthAnalysis(BaseModel):
    """Depth across all role groups."""
    overallDepthScore: int = Field(..., ge=0, le=100)
    roleDepths: Dict[BuyingRole, RoleDepth] = Field(default_factory=dict)
    strongestRole: Optional[RoleDepth] = None
    weakestRole: Optional[RoleDepth] = None
    roleCount: int = Field(default=0, ge=0)


class CoverageAnalysis(BaseModel):
    """Breadth + depth coverage with the stage-adjusted pass/fail threshold."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "coverageScore": 61,
                "meetsStageExpectations": True,
                "adjustedThreshold": 56
            }
        }
    )

    coverageScore: int = Field(..., ge=0, le=100)
    breadth: BreadthAnalysis
    depth: DepthAnalysis
    meetsStageExpectations: bool
    adjustedThreshold: int = Field(..., ge=0, le=100)


class ChecklistItem(BaseModel):
    """One "what's missing" item."""
    category: ChecklistCategory
    priority: Priority
    role: Optional[BuyingRole] = None
    title: str
    description: str
    action: str


class ChampionFactor(BaseModel):
    """One of the four 0-25 champion strength sub-scores."""
    name: str
    score: int = Field(..., ge=0, le=25)
    maxScore: int = 25
    description: str


class ChampionStrength(BaseModel):
    """Champion strength score, reliability label and coaching notes."""
    strengthScore: int = Field(..., ge=0, le=100)
    reliability: ChampionReliability
    factors: List[ChampionFactor] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


# =============================================================================
# Risk Prediction
# =============================================================================


class RiskFactor(BaseModel):
    """A triggered rule and the risk points it contributed."""
    factor: str
    value: str
    threshold: Optional[str] = None
    riskContribution: int = Field(..., ge=0)
    description: str


class ChampionChurnRisk(BaseModel):
    churnRisk: SubModelRisk
    riskScore: int = Field(..., ge=0)
    confidence: int = Field(..., ge=0, le=100)
    factors: List[RiskFactor] = Field(default_factory=list)
    recommendation: str


class EconomicBuyerRisk(BaseModel):
    riskLevel: SubModelRisk
    riskScore: int = Field(..., ge=0)
    hasEconomicBuyer: bool
    factors: List[RiskFactor] = Field(default_factory=list)
    recommendation: str


class MeetingProgressionRisk(BaseModel):
    riskLevel: SubModelRisk
    riskScore: int = Field(..., ge=0)
    factors: List[RiskFactor] = Field(default_factory=list)
    meetingSummary: MeetingHistory
    recommendation: str


class RiskBreakdown(BaseModel):
    champion: ChampionChurnRisk
    economicBuyer: EconomicBuyerRisk
    meetingProgression: MeetingProgressionRisk


class PriorityAction(BaseModel):
    priority: int = Field(..., ge=1)
    action: str
    details: str


class RiskPrediction(BaseModel):
    """Composite deal risk built from the three sub-models."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "overallRiskLevel": "HIGH",
                "compositeRiskScore": 45,
                "priorityActions": [
                    {"priority": 2, "action": "Economic buyer gap",
                     "details": "Critical: Engage economic buyer before advancing deal"}
                ],
                "prediction": "Deal at significant risk - immediate intervention recommended",
                "confidence": 57
            }
        }
    )

    overallRiskLevel: OverallRiskLevel
    compositeRiskScore: int = Field(..., ge=0)
    riskBreakdown: RiskBreakdown
    priorityActions: List[PriorityAction] = Field(default_factory=list)
    prediction: str
    confidence: int = Field(..., ge=0, le=100)


class StageVelocity(BaseModel):
    """How long the deal has sat in its current stage versus benchmark."""
    currentStage: str
    status: VelocityStatus
    isStuck: bool = False
    isSlowing: bool = False
    daysInStage: Optional[int] = None
    expectedDays: Optional[int] = None
    maxDays: Optional[int] = None
    recommendation: str


# =============================================================================
# Lifecycle & Alerts
# =============================================================================


class LifecycleChange(BaseModel):
    """A change detected between two snapshots."""
    type: ChangeType
    contactId: Optional[str] = None
    contactName: Optional[str] = None
    role: Optional[BuyingRole] = None
    previousScore: Optional[int] = None
    currentScore: Optional[int] = None
    change: Optional[int] = None
    message: Optional[str] = None


class Alert(BaseModel):
    """
    Alert raised for a deal.

    The throttle key is (dealId, type). `throttled` records the throttle
    decision at generation time so callers can see suppressed alerts.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "type": "SINGLE_THREADED",
                "severity": "HIGH",
                "title": "Single-Threaded Deal Alert",
                "dealId": "9001",
                "dealName": "Acme Renewal",
                "message": "This deal has only 1 contact(s). High risk of deal loss if this contact becomes unavailable.",
                "recommendation": "Add additional stakeholders to reduce single-thread exposure.",
                "data": {"contactCount": 1, "currentScore": 15},
                "throttled": False
            }
        }
    )

    type: AlertType
    severity: Priority
    title: str
    dealId: Optional[str] = None
    dealName: Optional[str] = None
    contactId: Optional[str] = None
    message: str
    recommendation: str
    data: Dict[str, Any] = Field(default_factory=dict)
    throttled: bool = False


class LifecycleResult(BaseModel):
    """Changes and alerts from comparing a snapshot with its predecessor."""
    changes: List[LifecycleChange] = Field(default_factory=list)
    alerts: List[Alert] = Field(default_factory=list)
    isFirstSnapshot: bool = False
    daysSinceLastSnapshot: Optional[int] = None
    summary: str


# =============================================================================
# Workflow Actions
# =============================================================================


class WorkflowInputField(BaseModel):
    name: str
    label: str
    type: str
    default: Any = None
    required: bool = False
    options: Optional[List[str]] = None


class WorkflowActionDefinition(BaseModel):
    """Metadata describing a workflow action to the automation builder."""
    actionType: str
    label: str
    description: str
    inputFields: List[WorkflowInputField] = Field(default_factory=list)
    outputFields: List[str] = Field(default_factory=list)


class WorkflowActionResult(BaseModel):
    """Typed result of a workflow action; failures are values, not exceptions."""
    actionType: str
    result: WorkflowResultType
    outputFields: Dict[str, Any] = Field(default_factory=dict)
    taskPayload: Optional[Dict[str, Any]] = None
    notification: Optional[Dict[str, Any]] = None
    propertyUpdates: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


# =============================================================================
# API Envelopes
# =============================================================================


class DealAnalysisRequest(BaseModel):
    """Deal plus its contacts, as returned by the CRM data-fetch layer."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "deal": {"dealId": "9001", "dealName": "Acme Renewal",
                         "dealStage": "contractsent"},
                "contacts": [
                    {"id": "501", "firstName": "Dana", "lastName": "Reyes",
                     "jobTitle": "CFO", "engagements": {"emails": 3, "meetings": 2}}
                ]
            }
        }
    )

    deal: Deal = Field(default_factory=Deal)
    contacts: List[Contact] = Field(default_factory=list)


class ChampionRequest(DealAnalysisRequest):
    championId: Optional[str] = Field(
        default=None,
        description="Contact id of the champion; defaults to the first CHAMPION"
    )
    responseRate: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    advocacyIndicators: List[str] = Field(default_factory=list)
    meetingAttendance: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class RiskRequest(DealAnalysisRequest):
    engagementHistory: EngagementHistory = Field(default_factory=EngagementHistory)
    meetingHistory: MeetingHistory = Field(default_factory=MeetingHistory)


class LifecycleRequest(DealAnalysisRequest):
    previousSnapshot: Optional[ScoreSnapshot] = None


class AlertRequest(LifecycleRequest):
    send: bool = Field(default=False, description="Dispatch sendable alerts to Slack")


class WorkflowActionRequest(DealAnalysisRequest):
    actionType: str
    params: Dict[str, Any] = Field(default_factory=dict)


class ScoreResponse(BaseModel):
    snapshot: ScoreSnapshot
    recommendations: List[Recommendation] = Field(default_factory=list)


class CoverageResponse(BaseModel):
    coverage: CoverageAnalysis
    checklist: List[ChecklistItem] = Field(default_factory=list)


class ChampionResponse(BaseModel):
    champion: Optional[ContactEngagement] = None
    strength: ChampionStrength
    potentialChampions: List[ContactEngagement] = Field(default_factory=list)


class RiskResponse(BaseModel):
    prediction: RiskPrediction
    velocity: StageVelocity


class AlertsResponse(BaseModel):
    alerts: List[Alert] = Field(default_factory=list)
    dispatch: Optional[Dict[str, List[Dict[str, Any]]]] = None
