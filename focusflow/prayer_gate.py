"""
Prayer-aware scheduling gate.
Decides whether a work session may start, and for how long, given
today's prayer times. Service errors never block a session.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, List, Optional

from .clients import PrayerTimesClient, parse_prayer_windows
from .errors import ExternalServiceFailure, ValidationFailure
from .models import PrayerTime, SessionConfig, SessionMode

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_MINUTES = 5


class GateOutcome(Enum):
    APPROVE_FULL = "approve-full"
    APPROVE_PARTIAL = "approve-partial"
    DENY = "deny"


@dataclass(frozen=True)
class GateDecision:
    """
    Outcome of a start request.

    `minutes` is the session length on approval (full or shortened) and
    the minutes left before the prayer on denial.
    """
    outcome: GateOutcome
    minutes: int
    prayer: Optional[PrayerTime] = None

    @property
    def needs_confirmation(self) -> bool:
        return self.outcome is GateOutcome.APPROVE_PARTIAL

    @property
    def message(self) -> str:
        if self.outcome is GateOutcome.DENY and self.prayer:
            return (
                f"It's almost time for {self.prayer.name} ({self.minutes} min). "
                f"Too close to start a new session."
            )
        if self.outcome is GateOutcome.APPROVE_PARTIAL and self.prayer:
            return (
                f"{self.prayer.name} is in {self.minutes} minutes. "
                f"Start a shorter {self.minutes}-minute session?"
            )
        return f"Starting a {self.minutes}-minute session."


class PrayerWindowGate:
    """Reconciles a requested work session against upcoming prayers."""

    def __init__(self, client: PrayerTimesClient, now: Callable[[], datetime] = datetime.now):
        self._client = client
        self._now = now

    def evaluate(
        self,
        config: SessionConfig,
        mode: SessionMode = SessionMode.WORK,
        now: Optional[datetime] = None
    ) -> GateDecision:
        full = config.duration_minutes(mode)
        if mode is not SessionMode.WORK or not config.salah_aware or not config.has_location:
            return GateDecision(GateOutcome.APPROVE_FULL, full)

        now = now or self._now()
        try:
            timings = self._client.fetch_timings(config.city, config.country, config.prayer_method)
            windows = parse_prayer_windows(timings, now.date())
        except ExternalServiceFailure as e:
            logger.warning("Prayer check failed, starting full session: %s", e)
            return GateDecision(GateOutcome.APPROVE_FULL, full)

        return decide(windows, now, full, config.salah_buffer_minutes)

    def today_prayers(self, config: SessionConfig, now: Optional[datetime] = None) -> List[PrayerTime]:
        """
        Today's five prayers for the configured location, in canonical order.

        Raises:
            ValidationFailure: if no city and country are configured.
            ExternalServiceFailure: if the timings cannot be fetched.
        """
        if not config.has_location:
            raise ValidationFailure(
                "city", config.city,
                "Please set your city and country in the settings to see prayer times."
            )
        now = now or self._now()
        timings = self._client.fetch_timings(config.city, config.country, config.prayer_method)
        return parse_prayer_windows(timings, now.date())


def next_prayer(windows: Iterable[PrayerTime], now: datetime) -> Optional[PrayerTime]:
    """The earliest prayer still ahead of `now`, if any."""
    upcoming = [p for p in windows if p.time > now]
    return min(upcoming, key=lambda p: p.time) if upcoming else None


def decide(windows, now: datetime, work_minutes: int, buffer_minutes: int) -> GateDecision:
    """Pure decision over a snapshot of today's prayer windows."""
    nxt = next_prayer(windows, now)
    if nxt is None:
        logger.info("No prayers left today, approving %d minutes", work_minutes)
        return GateDecision(GateOutcome.APPROVE_FULL, work_minutes)

    minutes_until = int((nxt.time - now).total_seconds() // 60)
    buffer = buffer_minutes or DEFAULT_BUFFER_MINUTES

    if minutes_until <= buffer:
        decision = GateDecision(GateOutcome.DENY, minutes_until, nxt)
    elif minutes_until < work_minutes:
        decision = GateDecision(GateOutcome.APPROVE_PARTIAL, minutes_until, nxt)
    else:
        decision = GateDecision(GateOutcome.APPROVE_FULL, work_minutes, nxt)

    logger.info("Gate: %s (%s in %d min)", decision.outcome.value, nxt.name, minutes_until)
    return decision
