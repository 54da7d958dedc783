"""
Tests for deal risk prediction (deal_coverage/services/risk_prediction.py).
"""

from datetime import datetime, timedelta
from typing import Callable

import pytest

from deal_coverage.models import (
    BuyingRole,
    Contact,
    ContactEngagement,
    Deal,
    EngagementCounts,
    EngagementHistory,
    MeetingHistory,
    OverallRiskLevel,
    ScoreSnapshot,
    SubModelRisk,
    VelocityStatus,
)
from deal_coverage.services.risk_prediction import (
    analyze_stage_velocity,
    find_champion,
    predict_champion_churn,
    predict_deal_risk,
    predict_economic_buyer_risk,
    predict_meeting_progression_risk,
)
from deal_coverage.services.scoring import calculate_multi_threading_score


@pytest.fixture
def champion_row() -> ContactEngagement:
    """Champion with two engagements and an engagement score of 25."""
    return ContactEngagement(
        contactId='ch',
        name='Casey Champion',
        role=BuyingRole.CHAMPION,
        engagementScore=25,
        engagements=EngagementCounts(meetings=1, emails=1, total=2),
    )


class TestChampionChurn:

    def test_disengaging_champion_is_high_risk(self, champion_row: ContactEngagement) -> None:
        history = EngagementHistory(responseRate=0.2, missedMeetings=3, daysSinceLastContact=21)

        risk = predict_champion_churn(champion_row, history)

        # 25 (response) + 20 (missed meetings) + 25 (silence)
        assert risk.riskScore == 70
        assert risk.churnRisk == SubModelRisk.HIGH
        assert [f.factor for f in risk.factors] == [
            'Low Response Rate', 'Missed Meetings', 'No Recent Contact',
        ]
        assert risk.confidence == 75
        assert risk.recommendation.startswith('Immediate action required')

    def test_engagement_drop(self, champion_row: ContactEngagement) -> None:
        history = EngagementHistory(previousEngagementScore=50)

        risk = predict_champion_churn(champion_row, history)

        assert risk.riskScore == 30
        assert risk.churnRisk == SubModelRisk.MEDIUM
        assert risk.factors[0].value == '-25 points'

    def test_silence_falls_back_to_last_engagement_date(
        self, champion_row: ContactEngagement, now: datetime
    ) -> None:
        champion = champion_row.model_copy(update={'lastEngagementDate': now - timedelta(days=15)})

        risk = predict_champion_churn(champion, EngagementHistory(), now=now)

        assert risk.riskScore == 25
        assert risk.churnRisk == SubModelRisk.LOW
        assert risk.factors[0].value == '15 days'

    def test_healthy_champion(self, champion_row: ContactEngagement) -> None:
        risk = predict_champion_churn(champion_row, EngagementHistory(responseRate=0.9))

        assert risk.riskScore == 0
        assert risk.churnRisk == SubModelRisk.NONE
        assert risk.confidence == 50

    def test_no_champion_is_unknown(self) -> None:
        risk = predict_champion_churn(None)

        assert risk.churnRisk == SubModelRisk.UNKNOWN
        assert risk.confidence == 0
        assert risk.recommendation == 'No champion identified'


class TestEconomicBuyerRisk:

    def test_missing_buyer_at_contract_stage(self) -> None:
        snapshot = ScoreSnapshot(
            contactCount=2,
            coveredRoles=[BuyingRole.CHAMPION, BuyingRole.INFLUENCER],
        )

        risk = predict_economic_buyer_risk(snapshot, 'contractsent')

        assert risk.hasEconomicBuyer is False
        assert risk.riskScore == 60
        assert risk.riskLevel == SubModelRisk.HIGH
        assert risk.factors[0].threshold == 'Required by contractsent'

    @pytest.mark.parametrize('stage, score, level', [
        ('presentationscheduled', 15, SubModelRisk.LOW),
        ('decisionmakerboughtin', 40, SubModelRisk.MEDIUM),
        ('appointmentscheduled', 0, SubModelRisk.NONE),
    ])
    def test_penalty_scales_with_stage(self, stage: str, score: int, level: SubModelRisk) -> None:
        snapshot = ScoreSnapshot(contactCount=1, coveredRoles=[BuyingRole.CHAMPION])

        risk = predict_economic_buyer_risk(snapshot, stage)

        assert risk.riskScore == score
        assert risk.riskLevel == level

    def test_disengaged_buyer(self) -> None:
        snapshot = ScoreSnapshot(
            contactCount=2,
            coveredRoles=[BuyingRole.DECISION_MAKER, BuyingRole.BUDGET_HOLDER],
            contacts=[
                ContactEngagement(contactId='dm', role=BuyingRole.DECISION_MAKER, engagementScore=20),
                ContactEngagement(contactId='bh', role=BuyingRole.BUDGET_HOLDER, engagementScore=30),
            ],
        )

        risk = predict_economic_buyer_risk(snapshot, 'contractsent')

        assert risk.hasEconomicBuyer is True
        assert risk.riskScore == 25
        assert risk.riskLevel == SubModelRisk.MEDIUM
        assert risk.factors[0].value == '25/100'

    def test_covered_buyer_without_contact_rows_is_unengaged(self) -> None:
        snapshot = ScoreSnapshot(contactCount=1, coveredRoles=[BuyingRole.DECISION_MAKER])

        risk = predict_economic_buyer_risk(snapshot, 'contractsent')

        assert risk.hasEconomicBuyer is True
        assert risk.riskScore == 25
        assert risk.factors[0].factor == 'Low Economic Buyer Engagement'
        assert risk.factors[0].value == '0/100'


class TestMeetingProgression:

    def test_all_rules(self) -> None:
        meetings = MeetingHistory(
            totalMeetings=9,
            meetingsSinceStageChange=6,
            daysSinceLastMeeting=20,
            averageAttendees=2.5,
            previousAverageAttendees=5.0,
        )

        risk = predict_meeting_progression_risk(meetings)

        assert risk.riskScore == 80
        assert risk.riskLevel == SubModelRisk.HIGH
        assert risk.factors[-1].value == '-2.5 attendees'
        assert risk.meetingSummary == meetings

    def test_default_history_is_healthy(self) -> None:
        risk = predict_meeting_progression_risk()

        assert risk.riskScore == 0
        assert risk.riskLevel == SubModelRisk.NONE


class TestDealRisk:

    def test_late_stage_without_economic_buyer(
        self, contact_factory: Callable[..., Contact]
    ) -> None:
        deal = Deal(dealId='1', dealStage='contractsent')
        snapshot = calculate_multi_threading_score([
            contact_factory('ch', role='CHAMPION', meetings=2, emails=4),
            contact_factory('inf', role='INFLUENCER', meetings=2, emails=4),
        ])

        prediction = predict_deal_risk(deal, snapshot)

        assert prediction.riskBreakdown.economicBuyer.riskScore == 60
        assert prediction.riskBreakdown.economicBuyer.riskLevel == SubModelRisk.HIGH
        # round(60 * 0.35) = 21 on its own, but any HIGH sub-model makes the deal HIGH
        assert prediction.compositeRiskScore == 21
        assert prediction.overallRiskLevel == OverallRiskLevel.HIGH
        assert [a.action for a in prediction.priorityActions] == ['Economic buyer gap']

    def test_composite_and_actions(self, champion_row: ContactEngagement) -> None:
        deal = Deal(dealId='1', dealStage='contractsent')
        snapshot = ScoreSnapshot(
            contactCount=1,
            coveredRoles=[BuyingRole.CHAMPION],
            contacts=[champion_row],
        )

        prediction = predict_deal_risk(
            deal,
            snapshot,
            engagement_history=EngagementHistory(
                responseRate=0.2, missedMeetings=3, daysSinceLastContact=21
            ),
            meeting_history=MeetingHistory(meetingsSinceStageChange=6, daysSinceLastMeeting=20),
        )

        # 70 * 0.35 + 60 * 0.35 + 60 * 0.30
        assert prediction.compositeRiskScore == 64
        assert prediction.overallRiskLevel == OverallRiskLevel.HIGH
        assert [a.priority for a in prediction.priorityActions] == [1, 2, 3]
        assert prediction.confidence == 72

    def test_healthy_deal(self, well_covered_contacts) -> None:
        snapshot = calculate_multi_threading_score(well_covered_contacts)

        prediction = predict_deal_risk(
            Deal(dealStage='contractsent'),
            snapshot,
            engagement_history=EngagementHistory(responseRate=0.9, daysSinceLastContact=2),
        )

        assert prediction.compositeRiskScore == 0
        assert prediction.overallRiskLevel == OverallRiskLevel.HEALTHY
        assert prediction.priorityActions == []
        assert prediction.prediction == 'Deal appears healthy'

    def test_find_champion(self, champion_row: ContactEngagement) -> None:
        other = ContactEngagement(contactId='x', role=BuyingRole.INFLUENCER)
        snapshot = ScoreSnapshot(contactCount=2, contacts=[other, champion_row])

        assert find_champion(snapshot) == champion_row
        assert find_champion(ScoreSnapshot()) is None


class TestStageVelocity:

    def test_on_track(self, now: datetime) -> None:
        deal = Deal(dealStage='presentationscheduled', stageEnteredAt=now - timedelta(days=10))

        velocity = analyze_stage_velocity(deal, now)

        assert velocity.status == VelocityStatus.ON_TRACK
        assert velocity.daysInStage == 10
        assert (velocity.expectedDays, velocity.maxDays) == (14, 30)

    def test_slowing(self, now: datetime) -> None:
        deal = Deal(dealStage='presentationscheduled', stageEnteredAt=now - timedelta(days=20))

        velocity = analyze_stage_velocity(deal, now)

        assert velocity.status == VelocityStatus.SLOWING
        assert velocity.isSlowing is True
        assert velocity.isStuck is False

    def test_stuck_is_also_slowing(self, now: datetime) -> None:
        deal = Deal(dealStage='contractsent', stageEnteredAt=now - timedelta(days=31))

        velocity = analyze_stage_velocity(deal, now)

        assert velocity.status == VelocityStatus.STUCK
        assert velocity.isStuck is True
        assert velocity.isSlowing is True
        assert 'Escalate or reassess' in velocity.recommendation

    def test_unknown_stage_uses_default_benchmark(self, now: datetime) -> None:
        deal = Deal(dealStage='Negotiation', stageEnteredAt=now - timedelta(days=22))

        velocity = analyze_stage_velocity(deal, now)

        assert velocity.currentStage == 'negotiation'
        assert velocity.status == VelocityStatus.SLOWING
        assert (velocity.expectedDays, velocity.maxDays) == (21, 45)

    def test_missing_entry_date(self, now: datetime) -> None:
        velocity = analyze_stage_velocity(Deal(dealStage='contractsent'), now)

        assert velocity.status == VelocityStatus.UNKNOWN
        assert velocity.isStuck is False
        assert velocity.daysInStage is None

    def test_epoch_millisecond_entry_date(self, now: datetime) -> None:
        entered = now - timedelta(days=5)
        deal = Deal(
            dealStage='qualifiedtobuy',
            stageEnteredAt=str(int(entered.timestamp() * 1000)),
        )

        velocity = analyze_stage_velocity(deal, now)

        assert velocity.daysInStage == 5
        assert velocity.status == VelocityStatus.ON_TRACK
