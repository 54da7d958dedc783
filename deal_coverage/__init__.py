"""
Deal Coverage Package.

FastAPI service and library for scoring how well a sales deal's stakeholder
network is covered ("multi-threaded"), and for deriving risk, lifecycle
changes and throttled alerts from that score.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, time helpers and dependencies
    - models: Pydantic schemas and enums
    - services: Role inference, scoring, coverage, risk, lifecycle and alerts
    - jobs: Slack alert dispatch
"""

__version__ = "1.0.0"
