"""
Alert Throttle - per (deal, alert type) cool-down windows.

An alert of a given type is suppressed for a deal while the time since it was
last sent is shorter than the type's cool-down. Last-sent timestamps live in
an injectable AlertHistoryStore so tests and concurrent callers can isolate or
reset state; the in-memory store serialises read-modify-write per key with a
fixed pool of striped locks, so memory stays bounded and most keys never
contend.

Usage:
    throttle = AlertThrottle(InMemoryAlertHistoryStore())
    claim = throttle.try_acquire(deal_id, AlertType.SINGLE_THREADED)
    if claim:
        ...  # send, and call throttle.release(claim) if the send fails
"""

import logging
import threading
from contextlib import ExitStack
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Protocol

from deal_coverage.core.config import get_settings
from deal_coverage.core.timeutils import ensure_utc, utc_now
from deal_coverage.models import AlertType, Priority

logger = logging.getLogger(__name__)


# =============================================================================
# Alert Configuration
# =============================================================================

HIGH_COLOR = "#f2545b"
MEDIUM_COLOR = "#f5c26b"
LOW_COLOR = "#516f90"


@dataclass(frozen=True)
class AlertConfig:
    """Severity, display title, Slack colour and cool-down for an alert type."""
    severity: Priority
    title: str
    color: str
    cooldown_minutes: int


ALERT_CONFIGS: Dict[AlertType, AlertConfig] = {
    AlertType.SINGLE_THREADED: AlertConfig(
        Priority.HIGH, "Single-Threaded Deal Alert", HIGH_COLOR, 1440
    ),
    AlertType.NO_NEW_CONTACTS: AlertConfig(
        Priority.MEDIUM, "No New Contact Involvement", MEDIUM_COLOR, 720
    ),
    AlertType.CHAMPION_DISENGAGED: AlertConfig(
        Priority.HIGH, "Champion Engagement Drop", HIGH_COLOR, 480
    ),
    AlertType.DM_NOT_ENGAGED: AlertConfig(
        Priority.HIGH, "Decision Maker Not Engaged", HIGH_COLOR, 720
    ),
    AlertType.SCORE_DROPPED: AlertConfig(
        Priority.MEDIUM, "Score Dropped Significantly", MEDIUM_COLOR, 480
    ),
    AlertType.COVERAGE_GAP: AlertConfig(
        Priority.MEDIUM, "Coverage Gap Detected", MEDIUM_COLOR, 1440
    ),
    AlertType.STAKEHOLDER_INACTIVE: AlertConfig(
        Priority.LOW, "Stakeholder Inactive", LOW_COLOR, 1440
    ),
    AlertType.CHAMPION_COOLING: AlertConfig(
        Priority.HIGH, "Champion is cooling off", HIGH_COLOR, 480
    ),
    AlertType.DM_DISENGAGED: AlertConfig(
        Priority.HIGH, "Decision Maker disengaged", HIGH_COLOR, 720
    ),
    AlertType.BUDGET_HOLDER_ENGAGED: AlertConfig(
        Priority.MEDIUM, "Budget Holder engagement increased", MEDIUM_COLOR, 1440
    ),
    AlertType.DM_INACTIVE: AlertConfig(
        Priority.HIGH, "Decision Maker inactive", HIGH_COLOR, 1440
    ),
    AlertType.CHAMPION_INACTIVE: AlertConfig(
        Priority.MEDIUM, "Champion inactive", MEDIUM_COLOR, 1440
    ),
}


def throttle_key(deal_id: Optional[str], alert_type: AlertType) -> str:
    return f"{deal_id}:{AlertType(alert_type).value}"


@dataclass(frozen=True)
class ThrottleClaim:
    """A successful try_acquire: the key, its prior timestamp and the claim time."""
    key: str
    previous: Optional[datetime]
    claimed_at: datetime


# =============================================================================
# History Stores
# =============================================================================

DEFAULT_LOCK_STRIPES = 64


class AlertHistoryStore(Protocol):
    """Key-value store of last-sent timestamps."""

    def get_last_sent(self, key: str) -> Optional[datetime]:
        ...

    def set_last_sent(self, key: str, sent_at: Optional[datetime]) -> None:
        ...

    def compare_and_set(
        self,
        key: str,
        expected: Optional[datetime],
        sent_at: Optional[datetime],
    ) -> bool:
        ...

    def clear(self) -> None:
        ...


class InMemoryAlertHistoryStore:
    """
    Process-local history store.

    Keys hash onto a fixed pool of striped locks, so memory stays bounded no
    matter how many deals are seen. clear() takes every stripe in order and
    waits for in-flight key operations. Setting a key to None removes it.
    """

    def __init__(self, lock_stripes: int = DEFAULT_LOCK_STRIPES) -> None:
        if lock_stripes < 1:
            raise ValueError("lock_stripes must be at least 1")
        self._timestamps: Dict[str, datetime] = {}
        self._locks: List[threading.Lock] = [threading.Lock() for _ in range(lock_stripes)]

    def _lock_for(self, key: str) -> threading.Lock:
        return self._locks[hash(key) % len(self._locks)]

    def _write(self, key: str, sent_at: Optional[datetime]) -> None:
        if sent_at is None:
            self._timestamps.pop(key, None)
        else:
            self._timestamps[key] = ensure_utc(sent_at)

    def get_last_sent(self, key: str) -> Optional[datetime]:
        with self._lock_for(key):
            return self._timestamps.get(key)

    def set_last_sent(self, key: str, sent_at: Optional[datetime]) -> None:
        with self._lock_for(key):
            self._write(key, sent_at)

    def compare_and_set(
        self,
        key: str,
        expected: Optional[datetime],
        sent_at: Optional[datetime],
    ) -> bool:
        """Write sent_at only if the stored value still equals expected."""
        with self._lock_for(key):
            if self._timestamps.get(key) != expected:
                return False
            self._write(key, sent_at)
            return True

    def clear(self) -> None:
        with ExitStack() as stack:
            for lock in self._locks:
                stack.enter_context(lock)
            self._timestamps.clear()


# =============================================================================
# Throttle
# =============================================================================


class AlertThrottle:
    """
    Cool-down decisions over an AlertHistoryStore.

    Args:
        store: History store (a fresh in-memory store when omitted)
        clock: Callable returning the current time (defaults to UTC now)
        fallback_minutes: Cool-down for types without a config entry
            (default from config, 480)
    """

    def __init__(
        self,
        store: Optional[AlertHistoryStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
        fallback_minutes: Optional[int] = None,
    ) -> None:
        self.store = store if store is not None else InMemoryAlertHistoryStore()
        self.clock = clock or utc_now
        if fallback_minutes is None:
            fallback_minutes = get_settings().alert_cooldown_fallback_minutes
        self.fallback_minutes = fallback_minutes

    def cooldown(self, alert_type: AlertType) -> timedelta:
        config = ALERT_CONFIGS.get(alert_type)
        minutes = config.cooldown_minutes if config else self.fallback_minutes
        return timedelta(minutes=minutes)

    def _now(self) -> datetime:
        return ensure_utc(self.clock())

    def _in_cooldown(self, last_sent: Optional[datetime], alert_type: AlertType, now: datetime) -> bool:
        return last_sent is not None and now - last_sent < self.cooldown(alert_type)

    def should_throttle(self, deal_id: Optional[str], alert_type: AlertType) -> bool:
        """True while the alert type is in cool-down for the deal."""
        last_sent = self.store.get_last_sent(throttle_key(deal_id, alert_type))
        return self._in_cooldown(last_sent, alert_type, self._now())

    def record_alert_sent(
        self,
        deal_id: Optional[str],
        alert_type: AlertType,
        sent_at: Optional[datetime] = None,
    ) -> datetime:
        """Record a send; returns the recorded timestamp."""
        timestamp = ensure_utc(sent_at) if sent_at else self._now()
        self.store.set_last_sent(throttle_key(deal_id, alert_type), timestamp)
        return timestamp

    def try_acquire(self, deal_id: Optional[str], alert_type: AlertType) -> Optional[ThrottleClaim]:
        """
        Atomically check the cool-down and record a send.

        Of several concurrent callers for the same key, exactly one wins.

        Returns:
            ThrottleClaim for the winner, None when the alert is throttled
        """
        key = throttle_key(deal_id, alert_type)
        while True:
            now = self._now()
            last_sent = self.store.get_last_sent(key)
            if self._in_cooldown(last_sent, alert_type, now):
                return None
            if self.store.compare_and_set(key, last_sent, now):
                return ThrottleClaim(key=key, previous=last_sent, claimed_at=now)

    def release(self, claim: ThrottleClaim) -> bool:
        """
        Undo a claim from try_acquire after a failed send.

        Restores the previous timestamp only if nobody has written since.
        """
        restored = self.store.compare_and_set(claim.key, claim.claimed_at, claim.previous)
        if restored:
            logger.info(f"Released throttle claim for {claim.key}")
        return restored

    def reset(self) -> None:
        self.store.clear()
