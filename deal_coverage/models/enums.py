"""
Enumeration definitions for the Deal Coverage scoring service.

All enums inherit from both `str` and `Enum` so they serialize cleanly inside
Pydantic models and round-trip through the JSON API unchanged.

Groups:
- Buying roles, seniority and role provenance (role inference)
- Score bands, recommendation priorities and recommendation types (scoring)
- Engagement levels, champion reliability and checklist categories (coverage)
- Sub-model and overall risk labels, stage velocity status (risk prediction)
- Lifecycle change types and alert types (lifecycle tracking + alerting)
- Workflow action types and results (workflow actions)
"""

from enum import Enum


# =============================================================================
# Role Inference
# =============================================================================


class BuyingRole(str, Enum):
    """
    Buying role a stakeholder plays in an opportunity.

    Values mirror the CRM buying-role property. DECISION_MAKER, BUDGET_HOLDER
    and CHAMPION are the key roles a well-covered deal needs; LEGAL and
    PROCUREMENT usually appear only late in the cycle. OTHER is the fallback
    when nothing can be inferred.
    """
    DECISION_MAKER = "DECISION_MAKER"
    BUDGET_HOLDER = "BUDGET_HOLDER"
    CHAMPION = "CHAMPION"
    INFLUENCER = "INFLUENCER"
    END_USER = "END_USER"
    LEGAL = "LEGAL"
    PROCUREMENT = "PROCUREMENT"
    BLOCKER = "BLOCKER"
    OTHER = "OTHER"


class SeniorityLevel(str, Enum):
    """
    Seniority tier derived from job title text alone.

    Checked from most to least senior; the first tier whose keywords match
    wins. UNKNOWN when the title is empty or matches nothing.
    """
    EXECUTIVE = "EXECUTIVE"
    SENIOR = "SENIOR"
    MID = "MID"
    JUNIOR = "JUNIOR"
    UNKNOWN = "UNKNOWN"


class RoleSource(str, Enum):
    """
    Where a contact's effective role came from.

    - explicit: set on the CRM record (confidence 100)
    - inferred: derived from title/behavior/language signals (capped at 95)
    - default: no signal available, role is OTHER with confidence 0
    """
    EXPLICIT = "explicit"
    INFERRED = "inferred"
    DEFAULT = "default"


class InferenceSource(str, Enum):
    """Signal family that produced a single role inference."""
    JOB_TITLE = "job_title"
    BEHAVIOR = "behavior"
    LANGUAGE = "language"


# =============================================================================
# Scoring
# =============================================================================


class ScoreRiskLevel(str, Enum):
    """
    Risk band for the overall multi-threading score.

    - LOW: overall score >= 70
    - MEDIUM: overall score 40-69
    - HIGH: overall score < 40, or no contacts at all
    """
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Priority(str, Enum):
    """Priority / severity shared by recommendations, checklist items and alerts."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class RecommendationType(str, Enum):
    """Kinds of recommendation produced from a score snapshot."""
    SINGLE_THREAD_RISK = "SINGLE_THREAD_RISK"
    MISSING_ROLES = "MISSING_ROLES"
    LOW_ENGAGEMENT = "LOW_ENGAGEMENT"
    NO_CHAMPION = "NO_CHAMPION"
    STRONG_POSITION = "STRONG_POSITION"
    CRITICAL_COVERAGE = "CRITICAL_COVERAGE"


# =============================================================================
# Coverage Analysis
# =============================================================================


class EngagementLevel(str, Enum):
    """
    Depth label for a single role group.

    - HIGH: depth >= 70
    - MEDIUM: depth 40-69
    - LOW: depth 1-39
    - NONE: depth 0
    """
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    NONE = "NONE"


class ChampionReliability(str, Enum):
    """Reliability label derived from the 0-100 champion strength score."""
    STRONG = "STRONG"
    MODERATE = "MODERATE"
    DEVELOPING = "DEVELOPING"
    WEAK = "WEAK"
    NONE = "NONE"


class ChecklistCategory(str, Enum):
    """Category of a "what's missing" checklist item."""
    MISSING_ROLE = "MISSING_ROLE"
    RECOMMENDED_ROLE = "RECOMMENDED_ROLE"
    LOW_ENGAGEMENT = "LOW_ENGAGEMENT"
    SENIORITY = "SENIORITY"
    FINANCE = "FINANCE"


# =============================================================================
# Risk Prediction
# =============================================================================


class SubModelRisk(str, Enum):
    """
    Label reported by an individual risk sub-model.

    UNKNOWN is only used by the champion-churn model when the deal has no
    champion to evaluate.
    """
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    NONE = "NONE"
    UNKNOWN = "UNKNOWN"


class OverallRiskLevel(str, Enum):
    """Composite deal risk label."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    HEALTHY = "HEALTHY"


class VelocityStatus(str, Enum):
    """
    Stage velocity status.

    - STUCK: days in stage exceed the stage's maximum
    - SLOWING: days in stage exceed the expected duration
    - ON_TRACK: within expectations
    - UNKNOWN: stage entry date missing or unparseable
    """
    STUCK = "STUCK"
    SLOWING = "SLOWING"
    ON_TRACK = "ON_TRACK"
    UNKNOWN = "UNKNOWN"


# =============================================================================
# Lifecycle Tracking & Alerts
# =============================================================================


class ChangeType(str, Enum):
    """Change detected between two consecutive score snapshots."""
    NEW_STAKEHOLDER = "NEW_STAKEHOLDER"
    STAKEHOLDER_REMOVED = "STAKEHOLDER_REMOVED"
    ENGAGEMENT_DECREASED = "ENGAGEMENT_DECREASED"
    ENGAGEMENT_INCREASED = "ENGAGEMENT_INCREASED"
    SCORE_CHANGE = "SCORE_CHANGE"
    DEPTH_CHANGE = "DEPTH_CHANGE"


class AlertType(str, Enum):
    """
    Alert types raised for a deal.

    Threading alerts (from the current snapshot + coverage):
    SINGLE_THREADED, NO_NEW_CONTACTS, CHAMPION_DISENGAGED, DM_NOT_ENGAGED,
    SCORE_DROPPED, COVERAGE_GAP, STAKEHOLDER_INACTIVE.

    Lifecycle alerts (from snapshot-to-snapshot comparison):
    CHAMPION_COOLING, DM_DISENGAGED, BUDGET_HOLDER_ENGAGED, DM_INACTIVE,
    CHAMPION_INACTIVE.

    Every type has its own cool-down window in the alert throttle.
    """
    SINGLE_THREADED = "SINGLE_THREADED"
    NO_NEW_CONTACTS = "NO_NEW_CONTACTS"
    CHAMPION_DISENGAGED = "CHAMPION_DISENGAGED"
    DM_NOT_ENGAGED = "DM_NOT_ENGAGED"
    SCORE_DROPPED = "SCORE_DROPPED"
    COVERAGE_GAP = "COVERAGE_GAP"
    STAKEHOLDER_INACTIVE = "STAKEHOLDER_INACTIVE"
    CHAMPION_COOLING = "CHAMPION_COOLING"
    DM_DISENGAGED = "DM_DISENGAGED"
    BUDGET_HOLDER_ENGAGED = "BUDGET_HOLDER_ENGAGED"
    DM_INACTIVE = "DM_INACTIVE"
    CHAMPION_INACTIVE = "CHAMPION_INACTIVE"


# =============================================================================
# Workflow Actions
# =============================================================================


class WorkflowActionType(str, Enum):
    """Workflow actions a CRM automation can invoke."""
    CHECK_SCORE_THRESHOLD = "check_score_threshold"
    CHECK_ROLE_COVERAGE = "check_role_coverage"
    CHECK_STAKEHOLDER_COUNT = "check_stakeholder_count"
    NOTIFY_ON_CONDITION = "notify_on_condition"
    CREATE_TASK = "create_task"
    UPDATE_DEAL_PROPERTY = "update_deal_property"
    RECALCULATE_SCORE = "recalculate_score"


class WorkflowResultType(str, Enum):
    """Outcome reported back to the workflow engine."""
    CONDITION_MET = "CONDITION_MET"
    CONDITION_NOT_MET = "CONDITION_NOT_MET"
    ACTION_COMPLETED = "ACTION_COMPLETED"
    ACTION_FAILED = "ACTION_FAILED"


class ScoreComparison(str, Enum):
    """Comparison operator for the score threshold workflow check."""
    LESS_THAN = "LESS_THAN"
    LESS_THAN_OR_EQUAL = "LESS_THAN_OR_EQUAL"
    GREATER_THAN = "GREATER_THAN"
    GREATER_THAN_OR_EQUAL = "GREATER_THAN_OR_EQUAL"
    EQUALS = "EQUALS"
