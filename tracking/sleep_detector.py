"""
Sleep detection from app foreground/background transitions.

When the app leaves the foreground the time is remembered; when it comes back
the gap is measured, and a gap of at least the threshold (2 hours by default)
is reported as an auto-detected sleep session.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Optional

import config
from core.models import SleepRecord, new_id

logger = logging.getLogger(__name__)


class SleepDetector:
    """
    Small state machine over app state changes.

    One instance per process, owned by whoever receives the host's app-state
    notifications. Each background interval yields at most one record.
    """

    def __init__(self, threshold_seconds: Optional[int] = None):
        """
        Args:
            threshold_seconds: Minimum background gap counted as sleep.
                               Defaults to config.SLEEP_DETECTION_THRESHOLD_SECONDS.
        """
        seconds = config.SLEEP_DETECTION_THRESHOLD_SECONDS if threshold_seconds is None else threshold_seconds
        if seconds <= 0:
            raise ValueError("Sleep detection threshold must be positive")
        self.threshold = timedelta(seconds=seconds)
        self.backgrounded_at: Optional[datetime] = None
        self._last_state: str = config.APP_STATE_ACTIVE
        self._lock = threading.Lock()

    def on_app_state_change(self, next_state: str, now: Optional[datetime] = None) -> Optional[SleepRecord]:
        """
        Feed one app state transition into the detector.

        Args:
            next_state: One of config.APP_STATES
            now: Transition time (defaults to the current time)

        Returns:
            A new auto-detected SleepRecord when returning to the foreground
            after a long enough gap, otherwise None.
        """
        if next_state not in config.APP_STATES:
            logger.warning(f"Unknown app state ignored: {next_state}")
            return None

        now = now or datetime.now()

        with self._lock:
            previous = self._last_state
            self._last_state = next_state

            if next_state == config.APP_STATE_ACTIVE:
                started = self.backgrounded_at
                self.backgrounded_at = None
                if started is None:
                    return None
                return self._build_record(started, now)

            if previous == config.APP_STATE_ACTIVE:
                self.backgrounded_at = now
            # background <-> inactive keeps the original timestamp
            return None

    def _build_record(self, started: datetime, now: datetime) -> Optional[SleepRecord]:
        elapsed = now - started
        if elapsed < self.threshold:
            logger.debug(f"Background gap of {elapsed} below sleep threshold")
            return None

        record = SleepRecord(
            id=new_id("sleep"),
            start_time=started,
            end_time=now,
            duration_minutes=int(round(elapsed.total_seconds() / 60)),
            is_auto_detected=True,
        )
        logger.info(f"Sleep session detected: {record.duration_minutes} minutes")
        return record

    def reset(self) -> None:
        """Clear detection state (called at daily rollover)."""
        with self._lock:
            if self.backgrounded_at is not None:
                logger.info("Dropping in-flight background interval on reset")
            self.backgrounded_at = None
            self._last_state = config.APP_STATE_ACTIVE

    @property
    def threshold_seconds(self) -> int:
        return int(self.threshold.total_seconds())
