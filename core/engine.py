"""
WellbeingEngine - the session controller for ZenScreen.

Hosts the blocking policy, focus session machine, sleep detector, blue-light
scheduler and daily rollover, and keeps a read-through cache of persisted
state. Has no UI and no timers of its own: the host delivers app-state
notifications, launch attempts, timer ticks and user intents, and reads the
resulting decisions.

Public methods take a lock so events are handled one at a time even if the
host calls in from several threads.

Callbacks:
    on_focus_finished(session: FocusSession)
    on_sleep_detected(record: SleepRecord)
    on_daily_reset(date_tag: str)
"""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

import config
from blocking.policy import (
    BlockingContext,
    UNLIMITED,
    blocked_reason,
    grayscale_opacity,
    is_blocked,
    remaining_minutes,
    should_show_interstitial,
)
from blocking.rules import BlockRuleSet
from core.models import AppRecord, BlueLightConfig, FocusSession, SleepRecord, new_id
from scheduling.blue_light import BlueLightScheduler
from scheduling.time_window import parse_hhmm
from storage.kv_store import JsonFileStore, KeyValueStore
from storage.repository import SETTING_VALIDATORS, WellbeingRepository
from tracking import analytics
from tracking.daily_rollover import DailyRolloverCoordinator, date_tag_for
from tracking.focus_session import FocusSessionMachine
from tracking.puzzle_bonus import PuzzleBonusTracker
from tracking.sleep_detector import SleepDetector

logger = logging.getLogger(__name__)


def _ok(**extra) -> Dict[str, Any]:
    result = {"success": True, "error": None, "error_type": None}
    result.update(extra)
    return result


def _error(error_type: str, message: str) -> Dict[str, Any]:
    logger.warning(f"Rejected request ({error_type}): {message}")
    return {"success": False, "error": message, "error_type": error_type}


class WellbeingEngine:
    """
    Core decision engine.

    Handles:
    - Daily rollover at start and on every return to the foreground
    - Sleep detection from app-state transitions
    - Blocking decisions and interstitial throttling for launch attempts
    - Focus session start/stop/completion
    - Blue-light overlay state
    - User edits (block rules, settings, sleep log, puzzles)
    """

    # ------------------------------------------------------------------
    # Initialisation
    # ------------------------------------------------------------------

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep_threshold_seconds: Optional[int] = None,
    ) -> None:
        """
        Args:
            store: Persistence backend (defaults to the JSON store in USER_DATA_DIR)
            clock: Returns the current wall-clock time (defaults to datetime.now)
            sleep_threshold_seconds: Override for the sleep detection threshold
        """
        self.clock: Callable[[], datetime] = clock or datetime.now
        self.repository = WellbeingRepository(store or JsonFileStore(config.STORE_FILE))

        self.sleep_detector = SleepDetector(sleep_threshold_seconds)
        self.scheduler = BlueLightScheduler()
        self.focus = FocusSessionMachine(self.repository)
        self.puzzles = PuzzleBonusTracker()
        self.rollover = DailyRolloverCoordinator(
            self.repository,
            sleep_detector=self.sleep_detector,
            on_reset=self._handle_daily_reset,
        )

        self.app_state: str = config.APP_STATE_ACTIVE
        self._lock = threading.RLock()

        # Read-through cache, refreshed on start and every foreground
        self.settings: Dict[str, Any] = dict(config.DEFAULT_SETTINGS)
        self.apps: List[AppRecord] = []
        self.rules: BlockRuleSet = BlockRuleSet()
        self.daily = None

        # ---- Callbacks (set by the host) ----
        self.on_focus_finished: Optional[Callable[[FocusSession], None]] = None
        self.on_sleep_detected: Optional[Callable[[SleepRecord], None]] = None
        self.on_daily_reset: Optional[Callable[[str], None]] = None

    def start(self) -> None:
        """Process start: roll the day over if needed, load state, restore focus."""
        with self._lock:
            now = self.clock()
            self.rollover.run(now)
            self.refresh()

            stored = self.repository.get_active_focus_session()
            if stored is not None:
                finished = self.focus.restore(stored, now)
                if finished is not None:
                    self._notify_focus_finished(finished)
            logger.info("Wellbeing engine started")

    def refresh(self) -> None:
        """Reload the cached copy of persisted state."""
        with self._lock:
            self.settings = self.repository.get_settings()
            self.apps = self.repository.get_apps()
            self.rules = self.repository.get_block_rules()
            self.daily = self.repository.load_daily(self._today())

    def _today(self) -> str:
        return date_tag_for(self.clock())

    def _ensure_today(self, now: datetime) -> None:
        """Run the rollover ahead of any day-scoped read or write."""
        self.rollover.run(now)
        if self.daily is None or self.daily.date_tag != date_tag_for(now):
            self.daily = self.repository.load_daily(date_tag_for(now))

    def _handle_daily_reset(self, date_tag: str) -> None:
        self.daily = self.repository.load_daily(date_tag)
        self.apps = self.repository.get_apps()
        if self.on_daily_reset:
            self.on_daily_reset(date_tag)

    def _notify_focus_finished(self, session: FocusSession) -> None:
        if self.on_focus_finished:
            self.on_focus_finished(session)

    # ------------------------------------------------------------------
    # Host events
    # ------------------------------------------------------------------

    def on_app_state_change(self, next_state: str) -> Optional[SleepRecord]:
        """
        Handle a foreground/background notification from the host.

        On a return to the foreground the sleep gap is measured first, then
        the daily rollover runs and the cache is re-synced, before anything
        else touches day-scoped state.

        Returns:
            The saved auto-detected SleepRecord, if one was produced.
        """
        if next_state not in config.APP_STATES:
            logger.warning(f"Unknown app state ignored: {next_state}")
            return None

        with self._lock:
            now = self.clock()
            returning = self.app_state != config.APP_STATE_ACTIVE and next_state == config.APP_STATE_ACTIVE
            record = self.sleep_detector.on_app_state_change(next_state, now)
            self.app_state = next_state

            if returning:
                self.rollover.run(now)
                self.refresh()
                finished = self.focus.check_completion(now)
                if finished is not None:
                    self._notify_focus_finished(finished)

            if record is None:
                return None
            if not self.settings.get("autoSleepDetectionEnabled", True):
                logger.debug("Auto sleep detection disabled; discarding detected sleep")
                return None

            self.repository.add_sleep_record(record)
            if self.on_sleep_detected:
                self.on_sleep_detected(record)
            return record

    def on_app_launch_attempt(self, app_id: str) -> Dict[str, Any]:
        """
        Decide what happens when the user tries to open an app.

        Returns:
            {"app_id", "blocked", "reason", "remaining_minutes",
             "show_interstitial", "warning_message"}
            remaining_minutes is None for apps without a time limit.
        """
        with self._lock:
            now = self.clock()
            self._ensure_today(now)
            finished = self.focus.check_completion(now)
            if finished is not None:
                self._notify_focus_finished(finished)

            context = self.blocking_context()
            blocked = is_blocked(app_id, context)
            remaining = remaining_minutes(app_id, context)
            last_shown = self.repository.get_last_interstitial(app_id)
            show = should_show_interstitial(app_id, context, last_shown, now)
            if show:
                self.repository.save_last_interstitial(app_id, now)

            logger.debug(f"Launch attempt {app_id}: blocked={blocked}, interstitial={show}")
            return {
                "app_id": app_id,
                "blocked": blocked,
                "reason": blocked_reason(app_id, context),
                "remaining_minutes": None if remaining == UNLIMITED else remaining,
                "show_interstitial": show,
                "warning_message": self.settings.get("warningMessage", ""),
            }

    def tick(self) -> Dict[str, Any]:
        """
        Host timer hook: enforce the focus completion boundary and report
        the current focus and blue-light state.
        """
        with self._lock:
            now = self.clock()
            finished = self.focus.check_completion(now)
            if finished is not None:
                self._notify_focus_finished(finished)
            return {
                "focus": self.focus_status(),
                "blue_light": self.blue_light_state(),
            }

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def blocking_context(self) -> BlockingContext:
        usage = self.daily.usage_today if self.daily is not None else {}
        return BlockingContext(
            rules=self.rules,
            focus_session=self.focus.active_session,
            usage_today=dict(usage),
        )

    def blue_light_config(self) -> BlueLightConfig:
        return BlueLightConfig.from_settings(self.settings)

    def blue_light_state(self) -> Dict[str, Any]:
        with self._lock:
            return self.scheduler.overlay_state(self.blue_light_config(), self.clock())

    def focus_status(self) -> Dict[str, Any]:
        with self._lock:
            now = self.clock()
            current = self.focus.current
            return {
                "state": self.focus.state,
                "session_id": current.id if current else None,
                "planned_minutes": current.planned_minutes if current else None,
                "elapsed_seconds": self.focus.elapsed_seconds(now),
                "remaining_seconds": self.focus.remaining_seconds(now),
                "allowed_apps": self.focus.allowed_apps(),
                "grayscale_enabled": bool(current and current.grayscale_enabled),
            }

    def grayscale_opacity(self, app_id: Optional[str]) -> float:
        return grayscale_opacity(self.focus.active_session, app_id)

    def dashboard(self) -> Dict[str, Any]:
        """Screen-time summary plus the latest sleep score."""
        with self._lock:
            self._ensure_today(self.clock())
            summary = analytics.dashboard_summary(self.apps, self.settings, self.daily.bonus_minutes)
            records = self.repository.get_sleep_records()
            summary["sleep_score"] = analytics.sleep_score(records[-1] if records else None)
            summary["bonus_minutes"] = self.daily.bonus_minutes
            return summary

    def app_name(self, app_id: str) -> Optional[str]:
        for app in self.apps:
            if app.id == app_id:
                return app.name
        return None

    # ------------------------------------------------------------------
    # Focus intents
    # ------------------------------------------------------------------

    def start_focus(
        self,
        duration_minutes: int,
        blocked_app_ids: Optional[Iterable[str]] = None,
        grayscale: bool = False,
        app_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Start a focus session, aborting any session still running.

        Returns:
            {"success", "error", "error_type", "session"}
        """
        with self._lock:
            now = self.clock()
            previous = self.focus.active_session
            try:
                session = self.focus.start(
                    duration_minutes,
                    blocked_app_ids=blocked_app_ids,
                    grayscale=grayscale,
                    app_id=app_id,
                    app_name=self.app_name(app_id) if app_id else None,
                    now=now,
                )
            except ValueError as e:
                return _error("invalid_input", str(e))

            if previous is not None:
                self._notify_focus_finished(previous)
            return _ok(session=session)

    def stop_focus(self) -> Dict[str, Any]:
        """Manually end the running session (recorded as not completed)."""
        with self._lock:
            session = self.focus.stop(self.clock())
            if session is None:
                return _error("not_running", "No focus session is running")
            self._notify_focus_finished(session)
            return _ok(session=session)

    # ------------------------------------------------------------------
    # Block rule intents
    # ------------------------------------------------------------------

    def set_block_rule(self, app_id: str, mode: str, daily_limit_minutes: Any = None) -> Dict[str, Any]:
        """
        Create or replace the block rule for an app.

        daily_limit_minutes may arrive as text from a form; it is parsed and
        rejected if not a positive whole number. On rejection the previous
        rule stays in place.
        """
        with self._lock:
            name = self.app_name(app_id)
            if name is None:
                return _error("unknown_app", f"Unknown app: {app_id}")

            limit = daily_limit_minutes
            if isinstance(limit, str):
                try:
                    limit = int(limit.strip())
                except ValueError:
                    return _error("invalid_input", f"Daily limit must be a number: {daily_limit_minutes!r}")

            try:
                rule = self.rules.set_rule(app_id, mode, daily_limit_minutes=limit, app_name=name)
            except ValueError as e:
                return _error("invalid_input", str(e))

            self.repository.save_block_rules(self.rules)
            self._mirror_rule_onto_app(app_id)
            return _ok(rule=rule)

    def remove_block_rule(self, app_id: str) -> Dict[str, Any]:
        with self._lock:
            if not self.rules.remove_rule(app_id):
                return _error("not_found", f"No block rule for {app_id}")
            self.repository.save_block_rules(self.rules)
            self._mirror_rule_onto_app(app_id)
            return _ok()

    def _mirror_rule_onto_app(self, app_id: str) -> None:
        """Copy the app's current rule into its AppRecord limit and blocked flag."""
        rule = self.rules.get(app_id)
        for app in self.apps:
            if app.id != app_id:
                continue
            app.is_blocked = rule is not None and rule.mode == config.MODE_FULL_BLOCK
            if rule is not None and rule.mode == config.MODE_TIME_LIMIT:
                app.daily_limit = rule.daily_limit_minutes
            else:
                app.daily_limit = 0
        self.repository.save_apps(self.apps)

    # ------------------------------------------------------------------
    # Settings intents
    # ------------------------------------------------------------------

    def update_settings(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Apply known settings keys after validation; all-or-nothing."""
        with self._lock:
            unknown = set(updates) - set(config.DEFAULT_SETTINGS)
            if unknown:
                return _error("invalid_input", f"Unknown settings: {', '.join(sorted(unknown))}")

            for key, value in updates.items():
                if not SETTING_VALIDATORS[key](value):
                    return _error("invalid_input", f"Invalid value for {key}: {value!r}")

            self.settings = self.repository.save_settings(updates)
            return _ok(settings=dict(self.settings))

    def update_blue_light(self, **changes) -> Dict[str, Any]:
        """
        Edit the blue-light config.

        Accepts bedtime, wake_time, enabled, intensity, auto_schedule.
        """
        with self._lock:
            current = self.blue_light_config()
            allowed = {"bedtime", "wake_time", "enabled", "intensity", "auto_schedule"}
            unknown = set(changes) - allowed
            if unknown:
                return _error("invalid_input", f"Unknown blue light fields: {', '.join(sorted(unknown))}")

            proposed = BlueLightConfig(
                bedtime=changes.get("bedtime", current.bedtime),
                wake_time=changes.get("wake_time", current.wake_time),
                enabled=bool(changes.get("enabled", current.enabled)),
                intensity=changes.get("intensity", current.intensity),
                auto_schedule=bool(changes.get("auto_schedule", current.auto_schedule)),
            )
            try:
                self._validate_blue_light(proposed)
            except ValueError as e:
                return _error("invalid_input", str(e))

            self.settings = self.repository.save_settings(proposed.to_settings())
            return _ok(config=proposed)

    @staticmethod
    def _validate_blue_light(light_config: BlueLightConfig) -> None:
        parse_hhmm(light_config.bedtime)
        parse_hhmm(light_config.wake_time)
        intensity = light_config.intensity
        if isinstance(intensity, bool) or not isinstance(intensity, int) or not 0 <= intensity <= 100:
            raise ValueError(f"Intensity must be a whole number 0-100: {intensity!r}")

    # ------------------------------------------------------------------
    # Sleep intents
    # ------------------------------------------------------------------

    def log_manual_sleep(
        self,
        start_time: datetime,
        end_time: datetime,
        quality_rating: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Record a sleep interval entered by the user."""
        with self._lock:
            if end_time <= start_time:
                return _error("invalid_input", "Sleep end must be after start")
            if quality_rating is not None and not self._valid_rating(quality_rating):
                return _error("invalid_input", "Quality rating must be 1-5")

            record = SleepRecord(
                id=new_id("sleep"),
                start_time=start_time,
                end_time=end_time,
                duration_minutes=int(round((end_time - start_time).total_seconds() / 60)),
                is_auto_detected=False,
                quality_rating=quality_rating,
            )
            self.repository.add_sleep_record(record)
            logger.info(f"Manual sleep logged: {record.duration_minutes} minutes")
            return _ok(record=record)

    def rate_sleep(self, record_id: str, rating: int) -> Dict[str, Any]:
        with self._lock:
            if not self._valid_rating(rating):
                return _error("invalid_input", "Quality rating must be 1-5")
            if not self.repository.attach_sleep_quality(record_id, rating):
                return _error("not_found", f"No sleep record {record_id}")
            return _ok()

    @staticmethod
    def _valid_rating(rating: Any) -> bool:
        return isinstance(rating, int) and not isinstance(rating, bool) and 1 <= rating <= 5

    def sleep_records(self) -> List[SleepRecord]:
        return self.repository.get_sleep_records()

    # ------------------------------------------------------------------
    # Day-scoped intents
    # ------------------------------------------------------------------

    def record_app_usage(self, app_id: str, minutes: float) -> Dict[str, Any]:
        """Usage collector hook: add minutes of use for an app today."""
        with self._lock:
            if isinstance(minutes, bool) or not isinstance(minutes, (int, float)) or minutes < 0:
                return _error("invalid_input", "Usage minutes must be non-negative")

            self._ensure_today(self.clock())
            self.daily.usage_today[app_id] = self.daily.usage_today.get(app_id, 0) + minutes
            for app in self.apps:
                if app.id == app_id:
                    app.usage_minutes += minutes
            self.repository.save_daily(self.daily)
            self.repository.save_apps(self.apps)
            return _ok(usage_today=self.daily.usage_today[app_id])

    def solve_puzzle(self, puzzle_id: str) -> Dict[str, Any]:
        """Mark a puzzle as solved today; repeats the same day are rejected."""
        with self._lock:
            self._ensure_today(self.clock())
            try:
                self.puzzles.record_solved(self.daily, puzzle_id)
            except ValueError as e:
                return _error("invalid_input", str(e))
            self.repository.save_daily(self.daily)
            return _ok()

    def complete_puzzle_tier(self, tier: int, solved_count: int) -> Dict[str, Any]:
        """
        Finish a tier attempt.

        Returns:
            {"success", ..., "minutes_awarded", "bonus_minutes"}
        """
        with self._lock:
            self._ensure_today(self.clock())
            try:
                awarded = self.puzzles.complete_tier(self.daily, tier, solved_count)
            except ValueError as e:
                return _error("invalid_input", str(e))
            self.repository.save_daily(self.daily)
            return _ok(minutes_awarded=awarded, bonus_minutes=self.daily.bonus_minutes)

    def puzzle_status(self) -> Dict[str, Any]:
        with self._lock:
            self._ensure_today(self.clock())
            return {
                "next_tier": self.puzzles.next_available_tier(self.daily),
                "bonus_minutes": self.daily.bonus_minutes,
                "remaining_bonus_minutes": self.puzzles.remaining_bonus_minutes(self.daily),
                "used_puzzle_ids": sorted(self.daily.used_puzzle_ids),
            }
