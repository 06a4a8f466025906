"""
Record types shared by the policy engine, trackers and storage.

All records serialize to plain JSON-compatible dicts via to_dict()/from_dict().
Timestamps are stored as ISO-8601 strings.

Duration units:
    FocusSession.duration_seconds  - elapsed focus time in SECONDS
    FocusSession.planned_minutes   - requested focus length in MINUTES
    SleepRecord.duration_minutes   - sleep length in MINUTES
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

import config


def new_id(prefix: str) -> str:
    """Generate an opaque unique record id."""
    return f"{prefix}_{uuid.uuid4().hex}"


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _require_time(data: Dict[str, Any], key: str) -> datetime:
    """Parse a mandatory timestamp field; missing or null raises ValueError."""
    value = data.get(key)
    if value is None:
        raise ValueError(f"Missing required timestamp '{key}'")
    return datetime.fromisoformat(value)


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class AppRecord:
    """Per-app usage snapshot for today."""

    id: str
    name: str
    category: str = "Other"
    usage_minutes: float = 0.0
    daily_limit: int = 0  # 0 = unlimited
    opens: int = 0
    notifications: int = 0
    is_blocked: bool = False
    is_short_form: bool = False

    @property
    def is_over_limit(self) -> bool:
        return self.daily_limit > 0 and self.usage_minutes > self.daily_limit

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "usage_minutes": self.usage_minutes,
            "daily_limit": self.daily_limit,
            "opens": self.opens,
            "notifications": self.notifications,
            "is_blocked": self.is_blocked,
            "is_short_form": self.is_short_form,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AppRecord':
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            category=data.get("category", "Other"),
            usage_minutes=float(data.get("usage_minutes", 0)),
            daily_limit=int(data.get("daily_limit", 0)),
            opens=int(data.get("opens", 0)),
            notifications=int(data.get("notifications", 0)),
            is_blocked=bool(data.get("is_blocked", False)),
            is_short_form=bool(data.get("is_short_form", False)),
        )


@dataclass
class BlockRule:
    """
    Per-app blocking policy.

    Raises:
        ValueError: If mode is unknown, or a time_limit rule has no positive limit.
    """

    app_id: str
    mode: str
    daily_limit_minutes: Optional[int] = None
    app_name: str = ""

    def __post_init__(self):
        if not self.app_id:
            raise ValueError("Block rule needs an app id")
        if self.mode not in config.BLOCK_MODES:
            raise ValueError(f"Unknown block mode: {self.mode}")
        if self.mode == config.MODE_TIME_LIMIT:
            if self.daily_limit_minutes is None or isinstance(self.daily_limit_minutes, bool):
                raise ValueError("time_limit rules need daily_limit_minutes")
            try:
                limit = int(self.daily_limit_minutes)
            except (TypeError, ValueError, OverflowError):
                raise ValueError(f"Non-numeric daily limit: {self.daily_limit_minutes!r}")
            if isinstance(self.daily_limit_minutes, float) and limit != self.daily_limit_minutes:
                raise ValueError(f"Daily limit must be a whole number of minutes: {self.daily_limit_minutes!r}")
            if limit <= 0:
                raise ValueError("Daily limit must be a positive number of minutes")
            self.daily_limit_minutes = limit
        else:
            # Limit only carries meaning for time_limit
            self.daily_limit_minutes = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"app_id": self.app_id, "app_name": self.app_name, "mode": self.mode}
        if self.mode == config.MODE_TIME_LIMIT:
            data["daily_limit_minutes"] = self.daily_limit_minutes
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BlockRule':
        return cls(
            app_id=data["app_id"],
            mode=data["mode"],
            daily_limit_minutes=data.get("daily_limit_minutes"),
            app_name=data.get("app_name", ""),
        )


@dataclass
class FocusSession:
    """A timed focus interval. end_time is None while the session is active."""

    id: str
    start_time: datetime
    planned_minutes: int
    blocked_app_ids: List[str] = field(default_factory=list)
    grayscale_enabled: bool = False
    app_id: Optional[str] = None  # Focus target, exempt from blocking
    app_name: Optional[str] = None
    end_time: Optional[datetime] = None
    duration_seconds: float = 0.0
    completed: bool = False

    @property
    def is_active(self) -> bool:
        return self.end_time is None

    @property
    def planned_seconds(self) -> int:
        return self.planned_minutes * 60

    def elapsed_seconds(self, now: datetime) -> float:
        """Seconds since start, frozen at end_time once finalized."""
        end = self.end_time or now
        return max(0.0, (end - self.start_time).total_seconds())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "start_time": _format_time(self.start_time),
            "end_time": _format_time(self.end_time),
            "planned_minutes": self.planned_minutes,
            "duration_seconds": self.duration_seconds,
            "blocked_app_ids": list(self.blocked_app_ids),
            "grayscale_enabled": self.grayscale_enabled,
            "app_id": self.app_id,
            "app_name": self.app_name,
            "completed": self.completed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FocusSession':
        return cls(
            id=data["id"],
            start_time=_require_time(data, "start_time"),
            end_time=_parse_time(data.get("end_time")),
            planned_minutes=int(data["planned_minutes"]),
            duration_seconds=float(data.get("duration_seconds", 0)),
            blocked_app_ids=list(data.get("blocked_app_ids", [])),
            grayscale_enabled=bool(data.get("grayscale_enabled", False)),
            app_id=data.get("app_id"),
            app_name=data.get("app_name"),
            completed=bool(data.get("completed", False)),
        )


@dataclass
class SleepRecord:
    """An auto-detected or manually logged sleep interval."""

    id: str
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    is_auto_detected: bool = False
    quality_rating: Optional[int] = None  # 1-5, attached by the user later

    @property
    def duration_hours(self) -> float:
        return self.duration_minutes / 60.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "start_time": _format_time(self.start_time),
            "end_time": _format_time(self.end_time),
            "duration_minutes": self.duration_minutes,
            "is_auto_detected": self.is_auto_detected,
            "quality_rating": self.quality_rating,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SleepRecord':
        return cls(
            id=data["id"],
            start_time=_require_time(data, "start_time"),
            end_time=_require_time(data, "end_time"),
            duration_minutes=int(data["duration_minutes"]),
            is_auto_detected=bool(data.get("is_auto_detected", False)),
            quality_rating=data.get("quality_rating"),
        )


@dataclass
class BlueLightConfig:
    """Blue-light filter schedule. Bedtime/wake time are HH:MM strings."""

    bedtime: str = "22:00"
    wake_time: str = "07:00"
    enabled: bool = True
    intensity: int = 50
    auto_schedule: bool = True

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> 'BlueLightConfig':
        """Build the config from the flat user settings dict."""
        return cls(
            bedtime=settings.get("sleepBedtime", config.DEFAULT_SETTINGS["sleepBedtime"]),
            wake_time=settings.get("sleepWakeTime", config.DEFAULT_SETTINGS["sleepWakeTime"]),
            enabled=bool(settings.get("blueLightEnabled", True)),
            intensity=int(settings.get("blueLightIntensity", 50)),
            auto_schedule=bool(settings.get("blueLightAutoSchedule", True)),
        )

    def to_settings(self) -> Dict[str, Any]:
        return {
            "sleepBedtime": self.bedtime,
            "sleepWakeTime": self.wake_time,
            "blueLightEnabled": self.enabled,
            "blueLightIntensity": self.intensity,
            "blueLightAutoSchedule": self.auto_schedule,
        }


@dataclass
class PuzzleExtension:
    """One tier of the daily puzzle unlock chain."""

    tier: int
    puzzles_required: int
    minutes_earned: int
    completed: bool = False
    puzzles_solved: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tier": self.tier,
            "puzzles_required": self.puzzles_required,
            "minutes_earned": self.minutes_earned,
            "completed": self.completed,
            "puzzles_solved": self.puzzles_solved,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PuzzleExtension':
        return cls(
            tier=int(data["tier"]),
            puzzles_required=int(data["puzzles_required"]),
            minutes_earned=int(data["minutes_earned"]),
            completed=bool(data.get("completed", False)),
            puzzles_solved=int(data.get("puzzles_solved", 0)),
        )


def default_puzzle_extensions() -> List[PuzzleExtension]:
    """Fresh tier chain for a new day."""
    return [
        PuzzleExtension(
            tier=t["tier"],
            puzzles_required=t["puzzlesRequired"],
            minutes_earned=t["minutesEarned"],
        )
        for t in config.DEFAULT_PUZZLE_TIERS
    ]


@dataclass
class DailyAccumulators:
    """
    Everything that is scoped to one calendar day, under a single date tag.

    A value loaded for a date other than today must be discarded in favour
    of DailyAccumulators.empty(today).
    """

    date_tag: str
    bonus_minutes: int = 0
    used_puzzle_ids: Set[str] = field(default_factory=set)
    usage_today: Dict[str, float] = field(default_factory=dict)
    puzzle_extensions: List[PuzzleExtension] = field(default_factory=default_puzzle_extensions)

    @classmethod
    def empty(cls, date_tag: str) -> 'DailyAccumulators':
        return cls(date_tag=date_tag)
