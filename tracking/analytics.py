"""Dashboard aggregates, sleep scoring and duration formatting."""

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

import config
from core.models import AppRecord, FocusSession, SleepRecord


def format_duration(seconds: float, full_precision: bool = False) -> str:
    """
    Format a duration in seconds for display.

    Seconds are dropped once the value reaches an hour unless full_precision
    is set.

    Examples:
        >>> format_duration(90)
        '1 min 30 secs'
        >>> format_duration(3725)
        '1 hr 2 mins'
        >>> format_duration(3725, full_precision=True)
        '1 hr 2 mins 5 secs'
        >>> format_duration(0)
        '0 sec'
    """
    total = int(seconds) if seconds > 0 else 0
    hours, rest = divmod(total, 3600)
    mins, secs = divmod(rest, 60)

    parts = []
    if hours:
        parts.append(f"{hours} {'hr' if hours == 1 else 'hrs'}")
    if mins or (full_precision and hours):
        parts.append(f"{mins} {'min' if mins == 1 else 'mins'}")
    if secs or full_precision:
        if not hours or full_precision:
            parts.append(f"{secs} {'sec' if secs == 1 else 'secs'}")

    return " ".join(parts) if parts else "0 sec"


def format_minutes(minutes: float) -> str:
    """Format a minute count, e.g. 75 -> '1 hr 15 mins', 0 -> '0 mins'."""
    if minutes <= 0:
        return "0 mins"
    return format_duration(int(minutes) * 60)


def apps_over_limit(apps: Iterable[AppRecord]) -> List[AppRecord]:
    """Apps whose usage exceeds their own non-zero daily limit."""
    return [app for app in apps if app.is_over_limit]


def dashboard_summary(
    apps: List[AppRecord],
    settings: Dict[str, Any],
    bonus_minutes: int = 0,
) -> Dict[str, Any]:
    """
    Screen-time totals against the daily goal.

    The effective goal is the user's daily goal plus puzzle bonus minutes.

    Returns:
        Dict with total_minutes, total_opens, total_notifications,
        goal_minutes, remaining_minutes, over_by_minutes, over_goal,
        progress (0.0-1.0) and apps_over_limit (list of app ids).
    """
    total = sum(app.usage_minutes for app in apps)
    goal = settings.get("dailyGoalMinutes", config.DEFAULT_SETTINGS["dailyGoalMinutes"]) + bonus_minutes

    return {
        "total_minutes": total,
        "total_opens": sum(app.opens for app in apps),
        "total_notifications": sum(app.notifications for app in apps),
        "goal_minutes": goal,
        "remaining_minutes": max(goal - total, 0),
        "over_by_minutes": max(total - goal, 0),
        "over_goal": total > goal,
        "progress": min(total / goal, 1.0) if goal > 0 else 1.0,
        "apps_over_limit": [app.id for app in apps_over_limit(apps)],
    }


def focus_minutes_on(sessions: Iterable[FocusSession], day: date) -> float:
    """Total finished focus time (minutes) for sessions started on the given day."""
    seconds = sum(
        s.duration_seconds for s in sessions
        if not s.is_active and s.start_time.date() == day
    )
    return seconds / 60.0


def daily_stats(
    apps: List[AppRecord],
    sessions: Iterable[FocusSession],
    bonus_minutes: int,
    today: datetime,
) -> Dict[str, Any]:
    """One-day rollup for history views."""
    return {
        "date": today.date().isoformat(),
        "total_screen_time": sum(app.usage_minutes for app in apps),
        "total_opens": sum(app.opens for app in apps),
        "total_notifications": sum(app.notifications for app in apps),
        "focus_minutes": focus_minutes_on(sessions, today.date()),
        "bonus_minutes_earned": bonus_minutes,
    }


def sleep_score(record: Optional[SleepRecord]) -> int:
    """
    Score a night's sleep 0-100 by distance from the ideal length.

    Each hour away from config.IDEAL_SLEEP_HOURS costs
    config.SLEEP_SCORE_PENALTY_PER_HOUR points.
    """
    if record is None:
        return 0
    diff = abs(record.duration_hours - config.IDEAL_SLEEP_HOURS)
    return max(0, int(round(100 - diff * config.SLEEP_SCORE_PENALTY_PER_HOUR)))


def sleep_quality_label(record: SleepRecord) -> str:
    """Bucket a record by length: excellent (8h+), good (7h+), fair (6h+), poor."""
    hours = record.duration_hours
    if hours >= 8:
        return "excellent"
    if hours >= 7:
        return "good"
    if hours >= 6:
        return "fair"
    return "poor"
