"""
Tests for stage-aware coverage analysis (deal_coverage/services/coverage_analysis.py).

Covers:
- Stage key resolution and the default entry
- Breadth against required and recommended roles
- Recency step function and per-role depth
- Combined coverage against the stage-adjusted threshold
- The "what's missing" checklist
- Champion strength factors and reliability
"""

from datetime import datetime, timedelta
from typing import Callable, List

import pytest

from deal_coverage.models import (
    BuyingRole,
    ChampionReliability,
    ChecklistCategory,
    Contact,
    EngagementLevel,
    Priority,
)
from deal_coverage.services.coverage_analysis import (
    calculate_breadth_score,
    calculate_champion_strength,
    calculate_coverage_analysis,
    calculate_depth_score,
    calculate_recency_score,
    calculate_role_depth_score,
    generate_missing_checklist,
    resolve_stage,
)
from deal_coverage.services.role_inference import ensure_effective_roles


@pytest.fixture
def early_contacts(contact_factory: Callable[..., Contact]) -> List[Contact]:
    """A champion and an influencer, each lightly engaged 40 days ago."""
    return ensure_effective_roles([
        contact_factory('ch', role='CHAMPION', emails=1, days_ago=40),
        contact_factory('inf', role='INFLUENCER', emails=1, days_ago=40),
    ])


class TestStageResolution:

    def test_case_insensitive(self) -> None:
        assert resolve_stage('ContractSent') == 'contractsent'
        assert resolve_stage('  closedwon ') == 'closedwon'

    def test_unknown_and_missing_stages_use_default(self) -> None:
        assert resolve_stage('negotiation') == 'default'
        assert resolve_stage(None) == 'default'
        assert resolve_stage('') == 'default'


class TestBreadth:

    def test_partial_required_coverage(self, early_contacts: List[Contact]) -> None:
        breadth = calculate_breadth_score(early_contacts, 'presentationscheduled')

        # 1 of 2 required: 50 * 0.8 + 1 extra role * 5
        assert breadth.breadthScore == 45
        assert breadth.totalRolesRepresented == 2
        stage = breadth.stageAnalysis
        assert stage.coveredRequired == [BuyingRole.CHAMPION]
        assert stage.missingRequired == [BuyingRole.DECISION_MAKER]
        assert stage.missingRecommended == [BuyingRole.BUDGET_HOLDER]
        assert stage.thresholdMultiplier == 0.8

    def test_contacts_grouped_by_role(self, early_contacts: List[Contact]) -> None:
        breadth = calculate_breadth_score(early_contacts)

        assert [c.id for c in breadth.roleContacts[BuyingRole.CHAMPION]] == ['ch']
        assert breadth.stageAnalysis.dealStage == 'default'

    def test_diversity_bonus_is_capped(self, contact_factory: Callable[..., Contact]) -> None:
        roles = ['CHAMPION', 'INFLUENCER', 'END_USER', 'LEGAL', 'PROCUREMENT', 'BLOCKER', 'DECISION_MAKER']
        contacts = ensure_effective_roles([
            contact_factory(f'c{i}', role=role) for i, role in enumerate(roles)
        ])

        breadth = calculate_breadth_score(contacts, 'default')

        assert breadth.breadthScore == 100


class TestRecency:

    @pytest.mark.parametrize('days_ago, expected', [
        (0, 100),
        (7, 100),
        (8, 80),
        (14, 80),
        (30, 60),
        (60, 40),
        (61, 20),
    ])
    def test_step_function(self, now: datetime, days_ago: int, expected: int) -> None:
        assert calculate_recency_score(now - timedelta(days=days_ago), now) == expected

    def test_unknown_date_scores_zero(self, now: datetime) -> None:
        assert calculate_recency_score(None, now) == 0


class TestDepth:

    def test_role_depth_averages_contacts(
        self, contact_factory: Callable[..., Contact], now: datetime
    ) -> None:
        contacts = [
            contact_factory('a', role='CHAMPION', emails=6, days_ago=3),
            contact_factory('b', role='CHAMPION', emails=12, days_ago=20),
        ]

        depth = calculate_role_depth_score(BuyingRole.CHAMPION, contacts, now)

        # frequency (60 + 100) / 2, recency (100 + 60) / 2
        assert depth.frequencyScore == 80
        assert depth.recencyScore == 80
        assert depth.depthScore == 80
        assert depth.engagementLevel == EngagementLevel.HIGH
        assert depth.activeContacts == 2

    def test_empty_role_group(self, now: datetime) -> None:
        depth = calculate_role_depth_score(BuyingRole.LEGAL, [], now)

        assert depth.depthScore == 0
        assert depth.engagementLevel == EngagementLevel.NONE

    def test_strongest_and_weakest(
        self, contact_factory: Callable[..., Contact], now: datetime
    ) -> None:
        contacts = ensure_effective_roles([
            contact_factory('dm', role='DECISION_MAKER', emails=1, days_ago=90),
            contact_factory('ch', role='CHAMPION', emails=6, days_ago=3),
        ])

        depth = calculate_depth_score(contacts, now)

        assert depth.roleDepths[BuyingRole.DECISION_MAKER].depthScore == 14
        assert depth.roleDepths[BuyingRole.CHAMPION].depthScore == 76
        assert depth.overallDepthScore == 45
        assert depth.strongestRole.role == BuyingRole.CHAMPION
        assert depth.weakestRole.role == BuyingRole.DECISION_MAKER

    def test_ties_keep_first_seen_order(
        self, contact_factory: Callable[..., Contact], now: datetime
    ) -> None:
        contacts = ensure_effective_roles([
            contact_factory('a', role='INFLUENCER', emails=6, days_ago=3),
            contact_factory('b', role='END_USER', emails=6, days_ago=3),
        ])

        depth = calculate_depth_score(contacts, now)

        assert depth.strongestRole.role == BuyingRole.INFLUENCER
        assert depth.weakestRole.role == BuyingRole.END_USER

    def test_no_contacts(self, now: datetime) -> None:
        depth = calculate_depth_score([], now)

        assert depth.overallDepthScore == 0
        assert depth.strongestRole is None
        assert depth.roleCount == 0


class TestCoverageAnalysis:

    def test_meets_default_stage(
        self, well_covered_contacts: List[Contact], now: datetime
    ) -> None:
        analysis = calculate_coverage_analysis(well_covered_contacts[:3], 'default', now=now)

        # breadth 80 + 2 extra roles * 5; depth 60 * 0.6 + 100 * 0.4
        assert analysis.breadth.breadthScore == 90
        assert analysis.depth.overallDepthScore == 76
        assert analysis.coverageScore == 83
        assert analysis.adjustedThreshold == 49
        assert analysis.meetsStageExpectations is True

    def test_late_stage_gap(self, early_contacts: List[Contact], now: datetime) -> None:
        analysis = calculate_coverage_analysis(early_contacts, 'contractsent', now=now)

        assert analysis.breadth.breadthScore == 32
        assert analysis.depth.overallDepthScore == 22
        assert analysis.coverageScore == 27
        assert analysis.adjustedThreshold == 70
        assert analysis.meetsStageExpectations is False

    def test_base_threshold_override(self, early_contacts: List[Contact], now: datetime) -> None:
        analysis = calculate_coverage_analysis(
            early_contacts, 'contractsent', now=now, base_threshold=20
        )

        assert analysis.meetsStageExpectations is True

    def test_no_contacts(self, now: datetime) -> None:
        analysis = calculate_coverage_analysis([], 'qualifiedtobuy', now=now)

        assert analysis.coverageScore == 0
        assert analysis.breadth.stageAnalysis.missingRequired == [
            BuyingRole.CHAMPION,
            BuyingRole.INFLUENCER,
        ]
        assert analysis.meetsStageExpectations is False


class TestMissingChecklist:

    def test_late_stage_gap_checklist(self, early_contacts: List[Contact], now: datetime) -> None:
        analysis = calculate_coverage_analysis(early_contacts, 'contractsent', now=now)

        checklist = generate_missing_checklist(analysis)

        assert [(item.priority, item.category, item.role) for item in checklist] == [
            (Priority.HIGH, ChecklistCategory.MISSING_ROLE, BuyingRole.DECISION_MAKER),
            (Priority.HIGH, ChecklistCategory.MISSING_ROLE, BuyingRole.BUDGET_HOLDER),
            (Priority.HIGH, ChecklistCategory.SENIORITY, None),
            (Priority.MEDIUM, ChecklistCategory.RECOMMENDED_ROLE, BuyingRole.LEGAL),
            (Priority.MEDIUM, ChecklistCategory.RECOMMENDED_ROLE, BuyingRole.PROCUREMENT),
            (Priority.MEDIUM, ChecklistCategory.LOW_ENGAGEMENT, BuyingRole.CHAMPION),
            (Priority.MEDIUM, ChecklistCategory.FINANCE, BuyingRole.BUDGET_HOLDER),
        ]
        assert checklist[0].title == 'Missing decision maker'

    def test_complete_coverage_has_empty_checklist(
        self, well_covered_contacts: List[Contact], now: datetime
    ) -> None:
        analysis = calculate_coverage_analysis(well_covered_contacts, 'qualifiedtobuy', now=now)

        checklist = generate_missing_checklist(analysis)

        # Only the INFLUENCER requirement is unmet
        assert len(checklist) == 1
        assert checklist[0].role == BuyingRole.INFLUENCER


class TestChampionStrength:

    def test_no_champion(self) -> None:
        strength = calculate_champion_strength(None)

        assert strength.strengthScore == 0
        assert strength.reliability == ChampionReliability.NONE
        assert strength.factors == []

    def test_strong_champion_with_observed_behaviour(
        self, contact_factory: Callable[..., Contact]
    ) -> None:
        champion = contact_factory('ch', role='CHAMPION', job_title='Senior Manager')

        strength = calculate_champion_strength(
            champion,
            response_rate=0.8,
            advocacy_indicators=['intro to CFO', 'shared deck', 'internal demo', 'pushed timeline'],
            meeting_attendance=1.0,
        )

        assert [f.name for f in strength.factors] == [
            'Responsiveness', 'Advocacy', 'Meeting Attendance', 'Influence Level',
        ]
        assert [f.score for f in strength.factors] == [20, 25, 25, 25]
        assert strength.strengthScore == 95
        assert strength.reliability == ChampionReliability.STRONG
        assert strength.recommendations == [
            'Champion is performing well - maintain current engagement'
        ]

    def test_weak_champion_estimated_from_engagement(
        self, contact_factory: Callable[..., Contact]
    ) -> None:
        champion = contact_factory(
            'ch', role='CHAMPION', emails=2, meetings=1, job_title='Coordinator'
        )

        strength = calculate_champion_strength(champion)

        assert [f.name for f in strength.factors] == [
            'Responsiveness (estimated)', 'Advocacy', 'Meeting Participation', 'Influence Level',
        ]
        assert [f.score for f in strength.factors] == [6, 5, 5, 10]
        assert strength.strengthScore == 26
        assert strength.reliability == ChampionReliability.WEAK
        assert len(strength.recommendations) == 5
        assert strength.recommendations[-1] == (
            'Consider identifying an additional or alternative champion'
        )

    @pytest.mark.parametrize('title, expected', [
        ('Director of IT', 25),
        ('Sr. Analyst', 25),
        ('Operations Manager', 20),
        ('Data Analyst', 15),
        ('VP-Sales', 25),
        ('Director/IT', 25),
        ('Store-Manager', 20),
        ('Headquarters Coordinator', 10),
        (None, 10),
    ])
    def test_influence_tiers(
        self, contact_factory: Callable[..., Contact], title: str, expected: int
    ) -> None:
        champion = contact_factory('ch', role='CHAMPION', job_title=title)

        strength = calculate_champion_strength(champion)

        assert strength.factors[-1].score == expected
