"""
Once-per-day reset of day-scoped state.

Must run at process start and on every background -> foreground transition,
before anything reads or writes a day-scoped key in the same event.
"""

import logging
import threading
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional

from core.models import DailyAccumulators

if TYPE_CHECKING:
    from storage.repository import WellbeingRepository
    from tracking.sleep_detector import SleepDetector

logger = logging.getLogger(__name__)


def date_tag_for(now: datetime) -> str:
    """Calendar date tag used for day-scoped keys (ISO format, e.g. 2024-01-31)."""
    return now.date().isoformat()


class DailyRolloverCoordinator:
    """
    Decides whether a daily reset is due and performs it idempotently.

    The persisted last-reset tag is authoritative; a tag handed in by the
    caller is only used when nothing readable is stored. After a reset the
    stored tag equals today, so repeated calls the same day are no-ops and
    data written after the first reset is left alone.
    """

    def __init__(
        self,
        repository: "WellbeingRepository",
        sleep_detector: Optional["SleepDetector"] = None,
        on_reset: Optional[Callable[[str], None]] = None,
    ):
        """
        Args:
            repository: Store holding the day-scoped keys and the reset tag
            sleep_detector: Detector whose state is cleared on reset
            on_reset: Called with the new date tag so callers can refresh caches
        """
        self.repository = repository
        self.sleep_detector = sleep_detector
        self.on_reset = on_reset
        self._lock = threading.Lock()

    def check_and_reset(self, last_reset_date_tag: Optional[str], today: str) -> bool:
        """
        Reset day-scoped state if today differs from the last reset day.

        Args:
            last_reset_date_tag: Caller's last known reset tag (may be stale)
            today: Today's date tag

        Returns:
            True if a reset was performed by this call.
        """
        with self._lock:
            stored = self.repository.get_last_reset_date()
            known = stored if stored is not None else last_reset_date_tag
            if known == today:
                return False

            logger.info(f"New day detected ({known} -> {today}). Resetting daily data.")
            self.repository.clear_daily()
            self.repository.save_daily(DailyAccumulators.empty(today))
            self.repository.reset_app_usage()
            if self.sleep_detector is not None:
                self.sleep_detector.reset()
            if not self.repository.save_last_reset_date(today):
                logger.error(f"Failed to persist reset date {today}; reset may repeat")

        if self.on_reset is not None:
            self.on_reset(today)
        return True

    def run(self, now: Optional[datetime] = None) -> bool:
        """Check against the stored tag using the current date."""
        today = date_tag_for(now or datetime.now())
        return self.check_and_reset(self.repository.get_last_reset_date(), today)
