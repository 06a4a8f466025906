"""
Blue-light filter scheduling.

The filter is on between bedtime and wake time when enabled. The scheduler is
pure: every call takes the config and the current clock time, and whoever
hosts it decides how often to re-evaluate.

Suggested intensity curve (percent of full tint), by position inside the
bedtime..wake window:

    window start           20
    60% through window     80   (peak, deep night)
    window end             30   (morning fall-off)

Linear between those points, 0 whenever the filter is not active.
"""

import logging
from datetime import datetime
from typing import Any, Dict

from core.models import BlueLightConfig
from scheduling.time_window import (
    MINUTES_PER_DAY,
    TimeWindow,
    in_window,
    minutes_of_day,
    minutes_until_next_boundary,
)

logger = logging.getLogger(__name__)

RAMP_START_INTENSITY = 20
PEAK_INTENSITY = 80
RAMP_END_INTENSITY = 30
PEAK_POSITION = 0.6  # Fraction of the window where intensity peaks


class BlueLightScheduler:
    """Decides filter on/off and suggested intensity from a BlueLightConfig."""

    def window(self, light_config: BlueLightConfig) -> TimeWindow:
        return TimeWindow(light_config.bedtime, light_config.wake_time)

    def is_active(self, light_config: BlueLightConfig, now: datetime) -> bool:
        """Filter is on iff enabled and now is inside bedtime..wake time."""
        if not light_config.enabled:
            return False
        return in_window(self.window(light_config), now)

    def minutes_until_next_change(self, light_config: BlueLightConfig, now: datetime) -> int:
        """Minutes until the schedule next toggles the filter."""
        return minutes_until_next_boundary(self.window(light_config), now)

    def suggested_intensity(self, light_config: BlueLightConfig, now: datetime) -> int:
        """
        Suggested tint intensity (0-100) for the current time of night.

        Returns:
            0 outside the active window, otherwise a value on the ramp curve
            described in the module docstring.
        """
        if not self.is_active(light_config, now):
            return 0

        window = self.window(light_config)
        length = (window.end_minutes - window.start_minutes) % MINUTES_PER_DAY
        into = (minutes_of_day(now) - window.start_minutes) % MINUTES_PER_DAY
        position = into / length

        if position < PEAK_POSITION:
            value = RAMP_START_INTENSITY + (PEAK_INTENSITY - RAMP_START_INTENSITY) * (
                position / PEAK_POSITION
            )
        else:
            value = PEAK_INTENSITY - (PEAK_INTENSITY - RAMP_END_INTENSITY) * (
                (position - PEAK_POSITION) / (1 - PEAK_POSITION)
            )
        return max(1, min(100, int(round(value))))

    def overlay_state(self, light_config: BlueLightConfig, now: datetime) -> Dict[str, Any]:
        """
        Overlay decision for the presentation layer.

        With auto_schedule off the filter follows the manual enabled flag at
        the user's chosen intensity; otherwise the schedule decides.

        Returns:
            {"active": bool, "intensity": int, "minutes_until_change": int | None}
        """
        if not light_config.auto_schedule:
            active = light_config.enabled
            return {
                "active": active,
                "intensity": light_config.intensity if active else 0,
                "minutes_until_change": None,
            }

        active = self.is_active(light_config, now)
        state = {
            "active": active,
            "intensity": self.suggested_intensity(light_config, now),
            "minutes_until_change": (
                self.minutes_until_next_change(light_config, now) if light_config.enabled else None
            ),
        }
        logger.debug(f"Blue light state at {now:%H:%M}: {state}")
        return state
