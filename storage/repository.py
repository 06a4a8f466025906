"""
Typed entity access over the key-value store.

Reads never raise: missing, unreadable or malformed values come back as
defaults (compiled-in settings and catalog, empty collections). Day-scoped
keys are stored as {"dateTag": ..., "payload": ...} and a tag other than the
requested day reads as the default.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar

import config
from blocking.rules import BlockRuleSet
from core.models import (
    AppRecord,
    DailyAccumulators,
    FocusSession,
    PuzzleExtension,
    SleepRecord,
    default_puzzle_extensions,
)
from scheduling.time_window import parse_hhmm
from storage.kv_store import KeyValueStore
from tracking.catalog import default_apps

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_hhmm(value: Any) -> bool:
    try:
        parse_hhmm(value)
    except ValueError:
        return False
    return True


# Per-key checks for stored settings; a failing value reads as its default
SETTING_VALIDATORS: Dict[str, Callable[[Any], bool]] = {
    "onboardingComplete": lambda v: isinstance(v, bool),
    "warningMessage": lambda v: isinstance(v, str),
    "dailyGoalMinutes": lambda v: _is_int(v) and v > 0,
    "focusReminderEnabled": lambda v: isinstance(v, bool),
    "sleepTrackingEnabled": lambda v: isinstance(v, bool),
    "sleepBedtime": _is_hhmm,
    "sleepWakeTime": _is_hhmm,
    "bedtimeReminderEnabled": lambda v: isinstance(v, bool),
    "autoSleepDetectionEnabled": lambda v: isinstance(v, bool),
    "blueLightEnabled": lambda v: isinstance(v, bool),
    "blueLightIntensity": lambda v: _is_int(v) and 0 <= v <= 100,
    "blueLightAutoSchedule": lambda v: isinstance(v, bool),
}


class WellbeingRepository:
    """Loads and saves every ZenScreen entity through a KeyValueStore."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _decode(self, key: str, decoder: Callable[[Any], T], default: T) -> T:
        raw = self.store.get(key)
        if raw is None:
            return default
        try:
            return decoder(raw)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Malformed value under '{key}', using defaults: {e}")
            return default

    def _decode_entries(self, key: str, decoder: Callable[[Any], T]) -> List[T]:
        """Decode a stored list entry by entry, skipping malformed entries."""
        raw = self.store.get(key)
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning(f"Value under '{key}' is not a list, using defaults")
            return []

        items = []
        for entry in raw:
            try:
                items.append(decoder(entry))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed entry under '{key}': {e}")
        return items

    def _read_daily(self, key: str, date_tag: str, decoder: Callable[[Any], T], default: T) -> T:
        raw = self.store.get(key)
        if not isinstance(raw, dict) or raw.get("dateTag") != date_tag or "payload" not in raw:
            return default
        try:
            return decoder(raw["payload"])
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Malformed daily value under '{key}', using defaults: {e}")
            return default

    def _write_daily(self, key: str, date_tag: str, payload: Any) -> bool:
        return self.store.set(key, {"dateTag": date_tag, "payload": payload})

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_settings(self) -> Dict[str, Any]:
        """
        Stored settings merged over config.DEFAULT_SETTINGS.

        A stored value of the wrong type or format is dropped in favour of
        its default, so callers can rely on every known key being valid.
        """
        stored = self.store.get(config.KEY_SETTINGS)
        settings = dict(config.DEFAULT_SETTINGS)
        if isinstance(stored, dict):
            for key, value in stored.items():
                validator = SETTING_VALIDATORS.get(key)
                if validator is not None and not validator(value):
                    logger.warning(f"Invalid stored setting {key}={value!r}, using default")
                    continue
                settings[key] = value
        elif stored is not None:
            logger.warning("Stored settings are not an object, using defaults")
        return settings

    def save_settings(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Merge updates into the stored settings and return the result."""
        settings = self.get_settings()
        settings.update(updates)
        self.store.set(config.KEY_SETTINGS, settings)
        return settings

    # ------------------------------------------------------------------
    # Apps
    # ------------------------------------------------------------------

    def get_apps(self) -> List[AppRecord]:
        return self._decode(
            config.KEY_APPS,
            lambda raw: [AppRecord.from_dict(entry) for entry in raw],
            default_apps(),
        )

    def save_apps(self, apps: List[AppRecord]) -> bool:
        return self.store.set(config.KEY_APPS, [app.to_dict() for app in apps])

    def reset_app_usage(self) -> bool:
        """Zero today's per-app usage, opens and notifications."""
        apps = self.get_apps()
        for app in apps:
            app.usage_minutes = 0.0
            app.opens = 0
            app.notifications = 0
        return self.save_apps(apps)

    # ------------------------------------------------------------------
    # Block rules
    # ------------------------------------------------------------------

    def get_block_rules(self) -> BlockRuleSet:
        return self._decode(config.KEY_BLOCK_RULES, BlockRuleSet.from_list, BlockRuleSet())

    def save_block_rules(self, rules: BlockRuleSet) -> bool:
        return self.store.set(config.KEY_BLOCK_RULES, rules.to_list())

    # ------------------------------------------------------------------
    # Focus sessions
    # ------------------------------------------------------------------

    def get_active_focus_session(self) -> Optional[FocusSession]:
        return self._decode(config.KEY_ACTIVE_FOCUS_SESSION, FocusSession.from_dict, None)

    def save_active_focus_session(self, session: FocusSession) -> bool:
        return self.store.set(config.KEY_ACTIVE_FOCUS_SESSION, session.to_dict())

    def clear_active_focus_session(self) -> bool:
        return self.store.remove(config.KEY_ACTIVE_FOCUS_SESSION)

    def get_focus_sessions(self) -> List[FocusSession]:
        return self._decode_entries(config.KEY_FOCUS_SESSIONS, FocusSession.from_dict)

    def save_focus_session(self, session: FocusSession) -> bool:
        """Insert or replace a session in the history by id."""
        sessions = self.get_focus_sessions()
        for i, existing in enumerate(sessions):
            if existing.id == session.id:
                sessions[i] = session
                break
        else:
            sessions.append(session)
        return self.store.set(config.KEY_FOCUS_SESSIONS, [s.to_dict() for s in sessions])

    # ------------------------------------------------------------------
    # Sleep records (append-only)
    # ------------------------------------------------------------------

    def get_sleep_records(self) -> List[SleepRecord]:
        return self._decode_entries(config.KEY_SLEEP_RECORDS, SleepRecord.from_dict)

    def add_sleep_record(self, record: SleepRecord) -> bool:
        records = self.get_sleep_records()
        records.append(record)
        return self.store.set(config.KEY_SLEEP_RECORDS, [r.to_dict() for r in records])

    def attach_sleep_quality(self, record_id: str, rating: int) -> bool:
        """
        Set the quality rating on an existing record.

        Returns:
            True if the record was found and saved.
        """
        records = self.get_sleep_records()
        for record in records:
            if record.id == record_id:
                record.quality_rating = rating
                return self.store.set(config.KEY_SLEEP_RECORDS, [r.to_dict() for r in records])
        return False

    # ------------------------------------------------------------------
    # Day-scoped state
    # ------------------------------------------------------------------

    def get_last_reset_date(self) -> Optional[str]:
        value = self.store.get(config.KEY_LAST_RESET_DATE)
        return value if isinstance(value, str) else None

    def save_last_reset_date(self, date_tag: str) -> bool:
        return self.store.set(config.KEY_LAST_RESET_DATE, date_tag)

    def clear_daily(self) -> bool:
        return self.store.clear_keys(config.DAILY_KEYS)

    def load_daily(self, date_tag: str) -> DailyAccumulators:
        """Today's accumulators; anything tagged with another day reads as empty."""
        return DailyAccumulators(
            date_tag=date_tag,
            bonus_minutes=self._read_daily(config.KEY_DAILY_BONUS, date_tag, int, 0),
            used_puzzle_ids=self._read_daily(config.KEY_USED_PUZZLE_IDS, date_tag, set, set()),
            usage_today=self._read_daily(
                config.KEY_APP_USAGE_TODAY,
                date_tag,
                lambda raw: {str(k): float(v) for k, v in raw.items()},
                {},
            ),
            puzzle_extensions=self._read_daily(
                config.KEY_PUZZLE_EXTENSIONS,
                date_tag,
                lambda raw: [PuzzleExtension.from_dict(entry) for entry in raw],
                default_puzzle_extensions(),
            ),
        )

    def save_daily(self, daily: DailyAccumulators) -> bool:
        """Write all day-scoped keys under the aggregate's single date tag."""
        tag = daily.date_tag
        results = [
            self._write_daily(config.KEY_DAILY_BONUS, tag, daily.bonus_minutes),
            self._write_daily(config.KEY_USED_PUZZLE_IDS, tag, sorted(daily.used_puzzle_ids)),
            self._write_daily(config.KEY_APP_USAGE_TODAY, tag, dict(daily.usage_today)),
            self._write_daily(
                config.KEY_PUZZLE_EXTENSIONS, tag, [e.to_dict() for e in daily.puzzle_extensions]
            ),
        ]
        return all(results)

    # ------------------------------------------------------------------
    # Interstitial throttle
    # ------------------------------------------------------------------

    def get_last_interstitial(self, app_id: str) -> Optional[datetime]:
        shown = self.store.get(config.KEY_LAST_INTERSTITIAL)
        if not isinstance(shown, dict) or app_id not in shown:
            return None
        try:
            return datetime.fromisoformat(shown[app_id])
        except (TypeError, ValueError):
            return None

    def save_last_interstitial(self, app_id: str, when: datetime) -> bool:
        shown = self.store.get(config.KEY_LAST_INTERSTITIAL)
        if not isinstance(shown, dict):
            shown = {}
        shown[app_id] = when.isoformat()
        return self.store.set(config.KEY_LAST_INTERSTITIAL, shown)
