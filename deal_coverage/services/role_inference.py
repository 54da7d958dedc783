"""
Role Inference Engine - buying role and seniority from weak signals.

Infers a contact's buying role when the CRM record has no usable explicit role,
by combining three independent signal families:

1. JOB TITLE - keyword/phrase rules per role, matched against the lowercased title
2. BEHAVIOR - the shape of the contact's engagement counters and timing
3. LANGUAGE - budget, advocacy and usage vocabulary in free text
   (email bodies, signatures, meeting notes)

Signals are combined with source weights (title 1.5, behavior 1.0,
language 0.8). An explicit, non-placeholder CRM role always wins with
confidence 100; inferred roles are capped at 95.

The rule tables below are declarative: role -> ordered list of TitleRule.
They are compiled once at import and the matching code never references a
specific role, so rules can be extended without touching the algorithm.

Tie-breaking between roles that match the same title is an explicit total
order (`role_inference_rank`), not list position.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Tuple

from deal_coverage.models import (
    BuyingRole,
    Contact,
    EngagementCounts,
    InferenceSource,
    RoleInference,
    RoleSignal,
    RoleSource,
    SeniorityInference,
    SeniorityLevel,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Rule Tables
# =============================================================================


@dataclass(frozen=True)
class TitleRule:
    """A compiled keyword rule and the number of matches it counts for."""
    pattern: Pattern[str]
    weight: int = 1


def _rule(*phrases: str, weight: int = 1) -> TitleRule:
    """Compile a whole-word, case-insensitive alternation of phrases."""
    alternation = "|".join(phrases)
    return TitleRule(re.compile(rf"\b(?:{alternation})\b", re.IGNORECASE), weight)


# Per-role title rules. Each matching rule counts as one match for its role.
JOB_TITLE_RULES: Dict[BuyingRole, List[TitleRule]] = {
    BuyingRole.DECISION_MAKER: [
        _rule("ceo", "chief executive", "president", "owner", "founder",
              "managing director", "general manager", "gm", "principal"),
        _rule("vp", "vice president", "svp", "senior vice president",
              "evp", "executive vice president"),
        _rule("director", "head of", "leader"),
        _rule("c-level", "c-suite", "chief"),
    ],
    BuyingRole.BUDGET_HOLDER: [
        _rule("cfo", "chief financial", "finance director", "controller",
              "treasurer", "finance manager"),
        _rule("vp of finance", "vp finance", "head of finance", "finance lead"),
        _rule("procurement", "purchasing", "buyer", "sourcing"),
        _rule("budget", "financial", "accounts payable"),
    ],
    BuyingRole.CHAMPION: [
        TitleRule(re.compile(
            r"\b(?:senior|sr|lead|principal)\b.*"
            r"\b(?:manager|engineer|developer|consultant|analyst|specialist)\b",
            re.IGNORECASE,
        )),
        _rule("manager", "team lead", "team leader", "supervisor"),
        _rule("project manager", "program manager", "product manager", "pm"),
    ],
    BuyingRole.INFLUENCER: [
        _rule("engineer", "developer", "architect", "designer", "analyst",
              "consultant", "specialist"),
        _rule("scientist", "researcher", "expert", "advisor"),
        _rule("technical", "technology", "it"),
    ],
    BuyingRole.END_USER: [
        _rule("associate", "assistant", "coordinator", "representative",
              "support", "admin"),
        _rule("user", "operator", "technician", "clerk"),
        _rule("intern", "trainee", "junior", "jr", "entry"),
    ],
    BuyingRole.LEGAL: [
        _rule("legal", "counsel", "attorney", "lawyer", "compliance", "regulatory"),
        _rule("general counsel", "chief legal", "legal director"),
    ],
    BuyingRole.PROCUREMENT: [
        _rule("procurement", "purchasing", "vendor", "supplier", "sourcing"),
        _rule("contracts", "contract manager", "vendor manager"),
    ],
}

# Finance vocabulary that triggers the finance override (see infer_role_from_job_title)
FINANCE_VOCABULARY = _rule(
    "cfo", "financial", "finance", "budget", "treasury", "controller",
    "procurement", "purchasing",
).pattern

# Roles the finance override may promote, in precedence order
FINANCE_ROLES: Tuple[BuyingRole, ...] = (BuyingRole.BUDGET_HOLDER, BuyingRole.PROCUREMENT)

# Seniority tiers, checked in order; first match wins
SENIORITY_RULES: List[Tuple[SeniorityLevel, TitleRule]] = [
    (SeniorityLevel.EXECUTIVE, _rule("chief", "c-level", "c-suite", "executive",
                                     "president", "ceo", "cfo", "cto", "coo",
                                     "cmo", "cio")),
    (SeniorityLevel.SENIOR, _rule("senior", "sr", "principal", "lead", "head",
                                  "director", "vp", "vice president")),
    (SeniorityLevel.MID, _rule("manager", "supervisor", "team lead",
                               "specialist", "consultant")),
    (SeniorityLevel.JUNIOR, _rule("junior", "jr", "associate", "assistant",
                                  "entry", "intern", "trainee")),
]

# Free-text vocabulary: role -> rules, each matching rule is one indicator
LANGUAGE_RULES: Dict[BuyingRole, List[TitleRule]] = {
    BuyingRole.BUDGET_HOLDER: [
        _rule("approve", "approval", "authorize", "authorization", "sign off", "sign-off"),
        _rule("budget", "funding", "investment", "spend", "expenditure"),
        _rule(r"i(?:'ll| will) need to (?:approve|check|verify|confirm)"),
        _rule("decision", "decide", "final say", "authority"),
    ],
    BuyingRole.CHAMPION: [
        _rule("excited", "enthusiastic", "love", "great fit", "perfect", "recommend"),
        _rule("advocate", "push for", "support", "champion", "sponsor"),
        _rule(r"let me (?:talk|speak|discuss) with", r"i(?:'ll| will) bring this to"),
    ],
    BuyingRole.END_USER: [
        _rule("use", "using", "daily", "workflow", "task", "feature"),
        _rule(r"how (?:do|does|can|would) (?:i|we)"),
    ],
}

# Weight applied to each signal family when combining
SOURCE_WEIGHTS: Dict[InferenceSource, float] = {
    InferenceSource.JOB_TITLE: 1.5,
    InferenceSource.BEHAVIOR: 1.0,
    InferenceSource.LANGUAGE: 0.8,
}

# Tie-break order for inference; higher rank wins
ROLE_INFERENCE_RANK: Dict[BuyingRole, int] = {
    BuyingRole.END_USER: 1,
    BuyingRole.INFLUENCER: 2,
    BuyingRole.CHAMPION: 3,
    BuyingRole.BUDGET_HOLDER: 4,
    BuyingRole.DECISION_MAKER: 5,
    BuyingRole.LEGAL: 6,
    BuyingRole.PROCUREMENT: 7,
}

# Explicit role values that mean "not set"
PLACEHOLDER_ROLES = frozenset({"", "OTHER", "NOT SPECIFIED", "NOT_SPECIFIED", "NONE", "N/A", "UNKNOWN"})

MAX_TITLE_CONFIDENCE = 90
MAX_LANGUAGE_CONFIDENCE = 60
MAX_INFERRED_CONFIDENCE = 95
EXPLICIT_CONFIDENCE = 100
SENIORITY_CONFIDENCE = 80


def role_inference_rank(role: BuyingRole) -> int:
    """
    Rank of a role for inference tie-breaks.

    END_USER < INFLUENCER < CHAMPION < BUDGET_HOLDER < DECISION_MAKER <
    LEGAL < PROCUREMENT. Roles outside that order (BLOCKER, OTHER) rank 0.
    """
    return ROLE_INFERENCE_RANK.get(role, 0)


def normalize_buying_role(value: Optional[str]) -> Optional[BuyingRole]:
    """
    Parse an explicit CRM buying role.

    Accepts enum values in any case with spaces or hyphens in place of
    underscores ("Decision Maker", "decision-maker").

    Returns:
        The BuyingRole, or None for empty values, placeholders such as
        "OTHER" / "Not specified", and unrecognised strings
    """
    if not value or not isinstance(value, str):
        return None
    key = value.strip().upper()
    if key in PLACEHOLDER_ROLES:
        return None
    key = re.sub(r"[\s\-]+", "_", key)
    try:
        return BuyingRole(key)
    except ValueError:
        return None


# =============================================================================
# Single-Signal Inference
# =============================================================================


def _match_rules(text: str, rules: Iterable[TitleRule]) -> List[str]:
    """Return the matched text for each rule that matches, in rule order."""
    matched: List[str] = []
    for rule in rules:
        found = rule.pattern.search(text)
        if found:
            matched.extend([found.group(0)] * rule.weight)
    return matched


def infer_role_from_job_title(job_title: Optional[str]) -> Optional[RoleSignal]:
    """
    Infer a role from job title text.

    Every matching rule across all roles counts as a match. Confidence is
    min(total_matches * 25 + 25, 90). The winning role maximises
    rank * 10 + match_count.

    Finance override: when the title contains finance vocabulary and any
    BUDGET_HOLDER or PROCUREMENT rule matched, the first such role (in that
    precedence) wins even over a higher-ranked match such as DECISION_MAKER.
    This is a heuristic: "Chief Financial Officer" correctly lands on
    BUDGET_HOLDER, but titles mixing executive and finance vocabulary
    ("CEO & Finance Lead") will also be pulled to BUDGET_HOLDER.

    Args:
        job_title: Raw job title, may be None

    Returns:
        RoleSignal, or None when nothing matched
    """
    if not job_title or not isinstance(job_title, str):
        return None

    title = job_title.lower().strip()
    matches_by_role: Dict[BuyingRole, List[str]] = {}
    for role, rules in JOB_TITLE_RULES.items():
        matched = _match_rules(title, rules)
        if matched:
            matches_by_role[role] = matched

    if not matches_by_role:
        return None

    all_matches = [text for matched in matches_by_role.values() for text in matched]
    confidence = min(len(all_matches) * 25 + 25, MAX_TITLE_CONFIDENCE)

    if FINANCE_VOCABULARY.search(title):
        for finance_role in FINANCE_ROLES:
            if finance_role in matches_by_role:
                return RoleSignal(
                    source=InferenceSource.JOB_TITLE,
                    role=finance_role,
                    confidence=confidence,
                    matches=all_matches,
                )

    best_role = max(
        matches_by_role,
        key=lambda role: role_inference_rank(role) * 10 + len(matches_by_role[role]),
    )

    return RoleSignal(
        source=InferenceSource.JOB_TITLE,
        role=best_role,
        confidence=confidence,
        matches=all_matches,
    )


def infer_seniority_level(job_title: Optional[str]) -> SeniorityInference:
    """
    Classify seniority from title text alone, independent of buying role.

    Tiers are checked EXECUTIVE, SENIOR, MID, JUNIOR; the first match wins
    with confidence 80. Otherwise UNKNOWN with confidence 0.
    """
    if not job_title or not isinstance(job_title, str):
        return SeniorityInference(level=SeniorityLevel.UNKNOWN, confidence=0)

    title = job_title.lower().strip()
    for level, rule in SENIORITY_RULES:
        found = rule.pattern.search(title)
        if found:
            return SeniorityInference(
                level=level,
                confidence=SENIORITY_CONFIDENCE,
                matchedText=found.group(0),
            )

    return SeniorityInference(level=SeniorityLevel.UNKNOWN, confidence=0)


def infer_role_from_behavior(
    engagements: Optional[EngagementCounts],
    engagement_timing: Optional[Dict[str, str]] = None,
) -> Optional[RoleSignal]:
    """
    Infer a role from the shape of a contact's engagement.

    Indicators, evaluated in order:
    - late_stage_joiner: meetingStage == "late" and 1-2 meetings => DECISION_MAKER (50)
    - high_engagement: total >= 10 and meetings >= 3 => CHAMPION (60)
    - email_heavy: emails >= 5 and meetings <= 1 => END_USER (40)
    - early_adopter: firstEngagementWeek == "early" and total >= 5 => INFLUENCER (45)

    The first triggered indicator decides the role and confidence; all
    triggered indicator names are reported.

    Args:
        engagements: Engagement counters
        engagement_timing: Optional {"meetingStage": "early"|"late",
            "firstEngagementWeek": "early"|"late"}

    Returns:
        RoleSignal, or None when no indicator triggered
    """
    counts = engagements or EngagementCounts()
    timing = engagement_timing or {}
    meeting_stage = timing.get("meetingStage")
    first_week = timing.get("firstEngagementWeek")

    indicators: List[Tuple[str, BuyingRole, int]] = []

    if meeting_stage == "late" and 1 <= counts.meetings <= 2:
        indicators.append(("late_stage_joiner", BuyingRole.DECISION_MAKER, 50))

    if counts.total >= 10 and counts.meetings >= 3:
        indicators.append(("high_engagement", BuyingRole.CHAMPION, 60))

    if counts.emails >= 5 and counts.meetings <= 1:
        indicators.append(("email_heavy", BuyingRole.END_USER, 40))

    if first_week == "early" and counts.total >= 5:
        indicators.append(("early_adopter", BuyingRole.INFLUENCER, 45))

    if not indicators:
        return None

    _, role, confidence = indicators[0]
    return RoleSignal(
        source=InferenceSource.BEHAVIOR,
        role=role,
        confidence=confidence,
        matches=[name for name, _, _ in indicators],
    )


def analyze_language_patterns(text: Optional[str]) -> Optional[RoleSignal]:
    """
    Infer a role from free text (emails, signatures, meeting notes).

    Each matching vocabulary rule is one indicator for its role. The role
    with the most indicators wins (first seen on ties) with confidence
    min(count * 20, 60).
    """
    if not text or not isinstance(text, str):
        return None

    normalized = text.lower()
    matches_by_role: Dict[BuyingRole, List[str]] = {}
    for role, rules in LANGUAGE_RULES.items():
        matched = _match_rules(normalized, rules)
        if matched:
            matches_by_role[role] = matched

    if not matches_by_role:
        return None

    best_role = max(matches_by_role, key=lambda role: len(matches_by_role[role]))
    count = len(matches_by_role[best_role])

    return RoleSignal(
        source=InferenceSource.LANGUAGE,
        role=best_role,
        confidence=min(count * 20, MAX_LANGUAGE_CONFIDENCE),
        matches=matches_by_role[best_role],
    )


# =============================================================================
# Combined Inference
# =============================================================================


def combine_role_signals(signals: Sequence[RoleSignal]) -> Tuple[BuyingRole, int]:
    """
    Combine signals into a single role and confidence.

    Each signal contributes confidence * source weight to its role. The
    highest total wins; ties go to the higher inference rank, then to the
    role seen first. Confidence is the weighted total divided by the number
    of signals, rounded and capped at 95.

    Returns:
        (role, confidence); (OTHER, 0) when there are no signals
    """
    if not signals:
        return BuyingRole.OTHER, 0

    role_scores: Dict[BuyingRole, float] = {}
    for signal in signals:
        weight = SOURCE_WEIGHTS.get(signal.source, 1.0)
        role_scores[signal.role] = role_scores.get(signal.role, 0.0) + signal.confidence * weight

    best_role = max(
        role_scores,
        key=lambda role: (role_scores[role], role_inference_rank(role)),
    )
    confidence = min(round(role_scores[best_role] / len(signals)), MAX_INFERRED_CONFIDENCE)
    return best_role, confidence


def infer_contact_role(
    contact: Contact,
    engagement_timing: Optional[Dict[str, str]] = None,
    text_sources: Optional[Sequence[str]] = None,
) -> RoleInference:
    """
    Infer the buying role of a single contact.

    An explicit, non-placeholder CRM role wins with confidence 100. Otherwise
    title, behavior and every supplied text source are analysed and combined.

    Args:
        contact: Contact to classify
        engagement_timing: Optional timing hints for behavior inference
        text_sources: Optional free-text snippets associated with the contact

    Returns:
        RoleInference with the role, confidence, source, per-signal detail
        and title seniority
    """
    seniority = infer_seniority_level(contact.jobTitle)

    explicit_role = normalize_buying_role(contact.buyingRole)
    if explicit_role is not None:
        return RoleInference(
            role=explicit_role,
            confidence=EXPLICIT_CONFIDENCE,
            source=RoleSource.EXPLICIT,
            seniority=seniority,
        )

    signals: List[RoleSignal] = []

    title_signal = infer_role_from_job_title(contact.jobTitle)
    if title_signal:
        signals.append(title_signal)

    behavior_signal = infer_role_from_behavior(contact.engagements, engagement_timing)
    if behavior_signal:
        signals.append(behavior_signal)

    for text in text_sources or []:
        language_signal = analyze_language_patterns(text)
        if language_signal:
            signals.append(language_signal)

    if not signals:
        return RoleInference(
            role=BuyingRole.OTHER,
            confidence=0,
            source=RoleSource.DEFAULT,
            seniority=seniority,
        )

    role, confidence = combine_role_signals(signals)
    return RoleInference(
        role=role,
        confidence=confidence,
        source=RoleSource.INFERRED,
        inferences=signals,
        seniority=seniority,
    )


def apply_role_inference(contact: Contact, inference: RoleInference) -> Contact:
    """Return a copy of the contact decorated with the inferred effective role."""
    return contact.model_copy(update={
        "effectiveRole": inference.role,
        "roleConfidence": inference.confidence,
        "roleSource": inference.source,
    })


def infer_roles_for_contacts(
    contacts: Sequence[Contact],
    engagement_timing: Optional[Dict[str, Dict[str, str]]] = None,
    text_sources: Optional[Dict[str, Sequence[str]]] = None,
) -> List[Contact]:
    """
    Decorate every contact with an effective role.

    Args:
        contacts: Contacts to classify
        engagement_timing: Optional per-contact timing hints keyed by contact id
        text_sources: Optional per-contact text snippets keyed by contact id

    Returns:
        New Contact objects with effectiveRole, roleConfidence and roleSource set
    """
    timing_by_id = engagement_timing or {}
    text_by_id = text_sources or {}

    decorated: List[Contact] = []
    for contact in contacts:
        inference = infer_contact_role(
            contact,
            engagement_timing=timing_by_id.get(contact.id or ""),
            text_sources=text_by_id.get(contact.id or ""),
        )
        decorated.append(apply_role_inference(contact, inference))

    inferred = sum(1 for c in decorated if c.roleSource == RoleSource.INFERRED)
    logger.info(f"Inferred roles for {len(decorated)} contacts ({inferred} from signals)")
    return decorated


def ensure_effective_roles(contacts: Sequence[Contact]) -> List[Contact]:
    """
    Make sure every contact has an effective role.

    Contacts that already carry one are left untouched; the rest are run
    through infer_contact_role without auxiliary signals.
    """
    resolved: List[Contact] = []
    for contact in contacts:
        if contact.effectiveRole is None:
            contact = apply_role_inference(contact, infer_contact_role(contact))
        resolved.append(contact)
    return resolved
