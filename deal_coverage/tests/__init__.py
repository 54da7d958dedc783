"""
Deal Coverage Test Suite.

Unit and API tests for the stakeholder coverage scoring service.

Test Modules:
    - conftest.py: Shared fixtures (fixed clock, sample contacts, deals,
      throttle, mock Slack client) and marker registration
    - test_role_inference.py: Title, seniority, behavior and language signals
    - test_scoring.py: Multi-threading score, risk bands, recommendations
    - test_coverage_analysis.py: Stage breadth/depth, checklist, champion strength
    - test_risk_prediction.py: Churn, economic buyer, meeting progression, velocity
    - test_lifecycle.py: Snapshot-to-snapshot changes and lifecycle alerts
    - test_alert_throttle.py: Cool-down windows, history store, atomic claims
    - test_alerts.py: Threading alert rules and Slack payload formatting
    - test_workflow_actions.py: CRM workflow action handlers
    - test_jobs.py: Slack alert dispatch with throttling
    - test_api.py: FastAPI endpoints under /analysis

Test Categories:
    | Category     | Modules                                          |
    |--------------|--------------------------------------------------|
    | Scoring core | role_inference, scoring, coverage_analysis       |
    | Risk         | risk_prediction, lifecycle                       |
    | Alerting     | alert_throttle, alerts, jobs                     |
    | Integration  | workflow_actions, api                            |

Running Tests:
    # Run all tests
    pytest deal_coverage/tests/

    # Run a single module
    pytest deal_coverage/tests/test_scoring.py -v

    # Skip slow concurrency tests
    pytest deal_coverage/tests/ -m "not slow"

Dependencies:
    - pytest: Test framework
    - pytest-asyncio: Async test support for the dispatch job and API
    - httpx: ASGI transport for the API tests
"""
