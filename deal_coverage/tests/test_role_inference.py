"""
Tests for role inference (deal_coverage/services/role_inference.py).

Covers:
- Explicit CRM role parsing and placeholder handling
- Job title rules, tie-breaking and the finance override
- Seniority tiers
- Behavior and language signals
- Weighted signal combination and per-contact inference
"""

from typing import Callable

from deal_coverage.models import (
    BuyingRole,
    Contact,
    EngagementCounts,
    InferenceSource,
    RoleSignal,
    RoleSource,
    SeniorityLevel,
)
from deal_coverage.services.role_inference import (
    analyze_language_patterns,
    combine_role_signals,
    ensure_effective_roles,
    infer_contact_role,
    infer_role_from_behavior,
    infer_role_from_job_title,
    infer_roles_for_contacts,
    infer_seniority_level,
    normalize_buying_role,
    role_inference_rank,
)


class TestNormalizeBuyingRole:
    """Parsing of the explicit CRM buying role property."""

    def test_accepts_enum_values_in_any_case(self) -> None:
        assert normalize_buying_role('DECISION_MAKER') == BuyingRole.DECISION_MAKER
        assert normalize_buying_role('budget_holder') == BuyingRole.BUDGET_HOLDER

    def test_accepts_spaces_and_hyphens(self) -> None:
        assert normalize_buying_role('Decision Maker') == BuyingRole.DECISION_MAKER
        assert normalize_buying_role('end-user') == BuyingRole.END_USER

    def test_placeholders_are_not_roles(self) -> None:
        for placeholder in ('', 'Not specified', 'OTHER', 'none', 'N/A'):
            assert normalize_buying_role(placeholder) is None

    def test_unrecognised_values_return_none(self) -> None:
        assert normalize_buying_role('Chief Vibes Officer') is None
        assert normalize_buying_role(None) is None


class TestRoleInferenceRank:

    def test_total_order(self) -> None:
        ordered = [
            BuyingRole.END_USER,
            BuyingRole.INFLUENCER,
            BuyingRole.CHAMPION,
            BuyingRole.BUDGET_HOLDER,
            BuyingRole.DECISION_MAKER,
            BuyingRole.LEGAL,
            BuyingRole.PROCUREMENT,
        ]
        ranks = [role_inference_rank(role) for role in ordered]
        assert ranks == sorted(ranks)
        assert len(set(ranks)) == len(ranks)

    def test_unranked_roles_are_lowest(self) -> None:
        assert role_inference_rank(BuyingRole.OTHER) == 0
        assert role_inference_rank(BuyingRole.BLOCKER) == 0


class TestJobTitleInference:
    """Title keyword rules."""

    def test_vp_is_decision_maker(self) -> None:
        signal = infer_role_from_job_title('VP of Sales')

        assert signal is not None
        assert signal.source == InferenceSource.JOB_TITLE
        assert signal.role == BuyingRole.DECISION_MAKER
        assert signal.confidence == 50

    def test_cfo_lands_on_budget_holder(self) -> None:
        signal = infer_role_from_job_title('Chief Financial Officer')

        # "chief" also matches a decision maker rule; finance wins
        assert signal.role == BuyingRole.BUDGET_HOLDER
        assert signal.confidence == 90

    def test_finance_override_beats_executive_title(self) -> None:
        signal = infer_role_from_job_title('CEO & Finance Lead')

        assert signal.role == BuyingRole.BUDGET_HOLDER

    def test_engineer_is_influencer(self) -> None:
        signal = infer_role_from_job_title('Software Engineer')

        assert signal.role == BuyingRole.INFLUENCER
        assert signal.matches == ['engineer']

    def test_higher_rank_wins_between_matching_roles(self) -> None:
        # Matches both CHAMPION (senior ... engineer) and INFLUENCER (engineer)
        signal = infer_role_from_job_title('Senior Software Engineer')

        assert signal.role == BuyingRole.CHAMPION
        assert signal.confidence == 75

    def test_whole_words_only(self) -> None:
        # "engineering" must not match the "engineer" keyword
        signal = infer_role_from_job_title('VP of Engineering')

        assert signal.role == BuyingRole.DECISION_MAKER
        assert signal.matches == ['vp']

    def test_legal_title(self) -> None:
        assert infer_role_from_job_title('General Counsel').role == BuyingRole.LEGAL

    def test_no_match_returns_none(self) -> None:
        assert infer_role_from_job_title('Barista') is None
        assert infer_role_from_job_title('') is None
        assert infer_role_from_job_title(None) is None


class TestSeniority:

    def test_tiers(self) -> None:
        assert infer_seniority_level('CTO').level == SeniorityLevel.EXECUTIVE
        assert infer_seniority_level('Senior Product Manager').level == SeniorityLevel.SENIOR
        assert infer_seniority_level('Operations Manager').level == SeniorityLevel.MID
        assert infer_seniority_level('Junior Analyst').level == SeniorityLevel.JUNIOR

    def test_first_matching_tier_reports_text(self) -> None:
        result = infer_seniority_level('Chief Financial Officer')

        assert result.level == SeniorityLevel.EXECUTIVE
        assert result.confidence == 80
        assert result.matchedText == 'chief'

    def test_unknown_without_match(self) -> None:
        result = infer_seniority_level('Accountant')

        assert result.level == SeniorityLevel.UNKNOWN
        assert result.confidence == 0


class TestBehaviorInference:

    def test_late_stage_joiner_is_decision_maker(self) -> None:
        signal = infer_role_from_behavior(
            EngagementCounts(meetings=1, total=1),
            {'meetingStage': 'late'},
        )

        assert signal.role == BuyingRole.DECISION_MAKER
        assert signal.confidence == 50

    def test_high_engagement_is_champion(self) -> None:
        signal = infer_role_from_behavior(EngagementCounts(emails=9, meetings=3, total=12))

        assert signal.role == BuyingRole.CHAMPION
        assert signal.confidence == 60
        assert signal.matches == ['high_engagement']

    def test_first_indicator_decides_but_all_are_reported(self) -> None:
        signal = infer_role_from_behavior(
            EngagementCounts(emails=6, total=6),
            {'firstEngagementWeek': 'early'},
        )

        assert signal.role == BuyingRole.END_USER
        assert signal.confidence == 40
        assert signal.matches == ['email_heavy', 'early_adopter']

    def test_quiet_contact_has_no_signal(self) -> None:
        assert infer_role_from_behavior(EngagementCounts(emails=1, total=1)) is None
        assert infer_role_from_behavior(None) is None


class TestLanguagePatterns:

    def test_budget_vocabulary(self) -> None:
        signal = analyze_language_patterns(
            "I'll need to approve the budget before sign-off"
        )

        assert signal.source == InferenceSource.LANGUAGE
        assert signal.role == BuyingRole.BUDGET_HOLDER
        assert signal.confidence == 60

    def test_advocacy_vocabulary(self) -> None:
        signal = analyze_language_patterns(
            "I'm excited about this and will push for it internally"
        )

        assert signal.role == BuyingRole.CHAMPION
        assert signal.confidence == 40

    def test_no_vocabulary(self) -> None:
        assert analyze_language_patterns('Thanks, see attached.') is None
        assert analyze_language_patterns(None) is None


class TestCombineSignals:

    def test_weighted_sum_picks_role(self) -> None:
        signals = [
            RoleSignal(source=InferenceSource.JOB_TITLE, role=BuyingRole.DECISION_MAKER, confidence=50),
            RoleSignal(source=InferenceSource.BEHAVIOR, role=BuyingRole.CHAMPION, confidence=60),
        ]

        role, confidence = combine_role_signals(signals)

        # 50 * 1.5 = 75 beats 60 * 1.0; confidence = 75 / 2 signals
        assert role == BuyingRole.DECISION_MAKER
        assert confidence == 38

    def test_ties_go_to_higher_rank(self) -> None:
        signals = [
            RoleSignal(source=InferenceSource.BEHAVIOR, role=BuyingRole.INFLUENCER, confidence=60),
            RoleSignal(source=InferenceSource.BEHAVIOR, role=BuyingRole.CHAMPION, confidence=60),
        ]

        role, confidence = combine_role_signals(signals)

        assert role == BuyingRole.CHAMPION
        assert confidence == 30

    def test_no_signals(self) -> None:
        assert combine_role_signals([]) == (BuyingRole.OTHER, 0)


class TestInferContactRole:

    def test_explicit_role_wins(self, contact_factory: Callable[..., Contact]) -> None:
        contact = contact_factory('c1', role='Champion', job_title='VP of Sales')

        result = infer_contact_role(contact)

        assert result.role == BuyingRole.CHAMPION
        assert result.confidence == 100
        assert result.source == RoleSource.EXPLICIT
        assert result.seniority.level == SeniorityLevel.SENIOR

    def test_placeholder_role_falls_through_to_title(self, contact_factory: Callable[..., Contact]) -> None:
        contact = contact_factory('c1', role='Not specified', job_title='VP of Sales')

        result = infer_contact_role(contact)

        assert result.role == BuyingRole.DECISION_MAKER
        assert result.confidence == 75
        assert result.source == RoleSource.INFERRED
        assert len(result.inferences) == 1

    def test_inferred_confidence_is_capped(self, contact_factory: Callable[..., Contact]) -> None:
        contact = contact_factory('c1', job_title='Chief Financial Officer')

        result = infer_contact_role(contact)

        assert result.role == BuyingRole.BUDGET_HOLDER
        assert result.confidence == 95

    def test_no_signals_defaults_to_other(self) -> None:
        result = infer_contact_role(Contact(id='x'))

        assert result.role == BuyingRole.OTHER
        assert result.confidence == 0
        assert result.source == RoleSource.DEFAULT

    def test_text_sources_are_keyed_by_contact_id(self, contact_factory: Callable[..., Contact]) -> None:
        contacts = [contact_factory('c1'), contact_factory('c2')]

        decorated = infer_roles_for_contacts(
            contacts,
            text_sources={'c1': ["I'll need to approve the budget before sign-off"]},
        )

        assert decorated[0].effectiveRole == BuyingRole.BUDGET_HOLDER
        assert decorated[0].roleSource == RoleSource.INFERRED
        assert decorated[1].effectiveRole == BuyingRole.OTHER
        assert decorated[1].roleSource == RoleSource.DEFAULT
        # Inputs are not mutated
        assert contacts[0].effectiveRole is None

    def test_ensure_effective_roles_keeps_existing_roles(self, contact_factory: Callable[..., Contact]) -> None:
        preset = contact_factory('c1', job_title='VP of Sales').model_copy(
            update={'effectiveRole': BuyingRole.LEGAL, 'roleConfidence': 100}
        )
        fresh = contact_factory('c2', job_title='VP of Sales')

        resolved = ensure_effective_roles([preset, fresh])

        assert resolved[0].effectiveRole == BuyingRole.LEGAL
        assert resolved[1].effectiveRole == BuyingRole.DECISION_MAKER
