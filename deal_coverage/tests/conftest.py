"""
Pytest configuration and shared fixtures for the Deal Coverage test suite.

This module provides:
- Marker registration (slow, integration)
- A fixed reference time and an advanceable clock so recency, staleness and
  cool-down rules are deterministic
- Contact and deal factories for the scoring services
- An isolated AlertThrottle per test
- A mocked Slack WebhookClient for the dispatch job and the API

Cached singletons (settings, the process-wide throttle) are cleared around
every test so environment changes in one test never leak into another.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Generator, List, Optional
from unittest.mock import Mock, patch

import pytest

from deal_coverage.core.config import get_settings
from deal_coverage.core.dependencies import get_alert_throttle
from deal_coverage.models import Contact, Deal
from deal_coverage.services.alert_throttle import AlertThrottle, InMemoryAlertHistoryStore


# ============================================================
# PYTEST CONFIGURATION
# ============================================================

def pytest_configure(config) -> None:
    """
    Register custom markers.

    Markers:
        slow: Tests that spin up threads or otherwise take longer
            Usage:
                @pytest.mark.slow
                def test_concurrent_claims():
                    ...

        integration: Tests that exercise the FastAPI app end to end
    """
    config.addinivalue_line(
        'markers',
        'slow: marks tests as slow (deselect with \'-m "not slow"\')'
    )
    config.addinivalue_line(
        'markers',
        'integration: marks tests that run requests through the FastAPI app'
    )


@pytest.fixture(autouse=True)
def reset_cached_singletons(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """
    Clear cached settings and the process-wide throttle around each test.

    SLACK_WEBHOOK_URL is removed from the environment so no test can reach a
    real webhook by accident; tests that need one pass it explicitly.
    """
    monkeypatch.delenv('SLACK_WEBHOOK_URL', raising=False)
    get_settings.cache_clear()
    get_alert_throttle.cache_clear()
    yield
    get_settings.cache_clear()
    get_alert_throttle.cache_clear()


# ============================================================
# TIME FIXTURES
# ============================================================

class FakeClock:
    """Callable clock returning a fixed time that tests can move forward."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
def now() -> datetime:
    """
    Fixed reference time used as `now` by every time-sensitive test.

    Returns:
        datetime: 2026-02-01 12:00 UTC
    """
    return datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(now: datetime) -> FakeClock:
    """
    Advanceable clock starting at `now`.

    Usage:
        def test_cooldown_expires(throttle, clock):
            throttle.record_alert_sent('d1', AlertType.SINGLE_THREADED)
            clock.advance(hours=25)
    """
    return FakeClock(now)


@pytest.fixture
def throttle(clock: FakeClock) -> AlertThrottle:
    """
    Isolated AlertThrottle backed by a fresh in-memory store and the fake clock.

    The fallback cool-down is pinned to 480 minutes so tests do not depend on
    environment configuration.
    """
    return AlertThrottle(InMemoryAlertHistoryStore(), clock=clock, fallback_minutes=480)


# ============================================================
# CONTACT & DEAL FIXTURES
# ============================================================

@pytest.fixture
def contact_factory(now: datetime) -> Callable[..., Contact]:
    """
    Factory building Contact records with engagement counters.

    Args (of the returned callable):
        contact_id: CRM id (also used to derive the email)
        role: Explicit buying role string, or None to leave it for inference
        emails/meetings/calls: Engagement counters; total is their sum
        days_ago: Days before `now` of the last engagement (None for unknown)
        job_title: Job title text
        first_name/last_name: Name parts

    Usage:
        def test_something(contact_factory):
            champion = contact_factory('c1', role='CHAMPION', meetings=2)
    """
    def _make(
        contact_id: str = 'c1',
        role: Optional[str] = None,
        emails: int = 0,
        meetings: int = 0,
        calls: int = 0,
        days_ago: Optional[int] = None,
        job_title: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> Contact:
        last = now - timedelta(days=days_ago) if days_ago is not None else None
        return Contact(
            id=contact_id,
            firstName=first_name if first_name is not None else contact_id.upper(),
            lastName=last_name if last_name is not None else 'Tester',
            email=f'{contact_id}@example.com',
            jobTitle=job_title,
            buyingRole=role,
            engagements={
                'emails': emails,
                'meetings': meetings,
                'calls': calls,
                'total': emails + meetings + calls,
            },
            lastEngagementDate=last,
        )

    return _make


@pytest.fixture
def single_contact(contact_factory: Callable[..., Contact]) -> List[Contact]:
    """One contact with a single email and no role: a single-threaded deal."""
    return [contact_factory('solo', emails=1, days_ago=2)]


@pytest.fixture
def well_covered_contacts(contact_factory: Callable[..., Contact]) -> List[Contact]:
    """
    Four engaged contacts covering DECISION_MAKER, BUDGET_HOLDER, CHAMPION
    and END_USER, each with 2 meetings and 4 emails in the last few days.

    Expected snapshot:
        engagement 60, participation 100, role coverage 100, overall 88
    """
    return [
        contact_factory('dm', role='DECISION_MAKER', meetings=2, emails=4, days_ago=3),
        contact_factory('bh', role='BUDGET_HOLDER', meetings=2, emails=4, days_ago=3),
        contact_factory('ch', role='CHAMPION', meetings=2, emails=4, days_ago=3),
        contact_factory('eu', role='END_USER', meetings=2, emails=4, days_ago=3),
    ]


@pytest.fixture
def sample_deal(now: datetime) -> Deal:
    """Deal in presentationscheduled that entered its stage 10 days ago."""
    return Deal(
        dealId='9001',
        dealName='Acme Renewal',
        dealStage='presentationscheduled',
        amount=48000.0,
        stageEnteredAt=now - timedelta(days=10),
    )


@pytest.fixture
def deal_payload() -> Dict[str, Any]:
    """JSON deal body as the CRM data-fetch layer posts it to the API."""
    return {
        'dealId': 9001,
        'dealName': 'Acme Renewal',
        'dealStage': 'presentationscheduled',
        'amount': 48000,
    }


# ============================================================
# SLACK MOCK
# ============================================================

@pytest.fixture
def mock_slack_client() -> Generator[Mock, None, None]:
    """
    Mock Slack WebhookClient for alert dispatch tests.

    Creates a mock of slack_sdk.webhook.WebhookClient that simulates
    successful webhook posts without actual Slack API calls.

    Yields:
        Mock: Mock WebhookClient instance

    Mocked Methods:
        - client.send(attachments=...): Returns response with status_code=200

    Usage:
        async def test_dispatch(mock_slack_client, throttle):
            await send_alerts(alerts, throttle, 'https://hooks.slack.com/x')
            mock_slack_client.send.assert_called_once()

    Note:
        Patches at 'deal_coverage.jobs.alert_dispatch.WebhookClient' so every
        instantiation inside the job uses the mock.
    """
    client = Mock()

    response = Mock()
    response.status_code = 200
    response.body = 'ok'

    client.send = Mock(return_value=response)

    with patch('deal_coverage.jobs.alert_dispatch.WebhookClient', return_value=client):
        yield client
