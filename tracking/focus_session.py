"""Focus session lifecycle: idle -> active -> completed | aborted."""

import logging
import threading
from datetime import datetime
from typing import TYPE_CHECKING, Iterable, List, Optional

from core.models import FocusSession, new_id

if TYPE_CHECKING:
    from storage.repository import WellbeingRepository

logger = logging.getLogger(__name__)

STATE_IDLE = "idle"
STATE_ACTIVE = "active"
STATE_COMPLETED = "completed"
STATE_ABORTED = "aborted"


class FocusSessionMachine:
    """
    Owns the single active focus session.

    The host's ticking timer calls check_completion(); the user's stop button
    calls stop(). Both funnel through _finalize(), which checks and sets the
    state under one lock so only one terminal transition can win.

    Every terminal transition is written to the session history and clears
    the persisted "active session" pointer.
    """

    def __init__(self, repository: Optional["WellbeingRepository"] = None):
        self.repository = repository
        self.state: str = STATE_IDLE
        self.current: Optional[FocusSession] = None
        self._lock = threading.Lock()

    @property
    def active_session(self) -> Optional[FocusSession]:
        """The running session, or None when not in the active state."""
        return self.current if self.state == STATE_ACTIVE else None

    @property
    def is_active(self) -> bool:
        return self.state == STATE_ACTIVE

    def start(
        self,
        duration_minutes: int,
        blocked_app_ids: Optional[Iterable[str]] = None,
        grayscale: bool = False,
        app_id: Optional[str] = None,
        app_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> FocusSession:
        """
        Start a new focus session.

        A session that is still active is first finalized, as completed if it
        already ran its planned length and as aborted otherwise, so two
        sessions are never active at once.

        Args:
            duration_minutes: Planned length in minutes (positive integer)
            blocked_app_ids: Apps the user picked to block
            grayscale: Whether non-focus apps get the grayscale overlay
            app_id: Focus target exempt from blocking
            app_name: Display name of the focus target
            now: Start time (defaults to the current time)

        Returns:
            The new active FocusSession.

        Raises:
            ValueError: If duration_minutes is not a positive integer.
        """
        if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
            raise ValueError(f"Focus duration must be a whole number of minutes: {duration_minutes!r}")
        if duration_minutes <= 0:
            raise ValueError("Focus duration must be positive")

        now = now or datetime.now()

        # A prior session that already reached its length completes; otherwise it is aborted
        if self.check_completion(now) is None:
            previous = self._finalize(completed=False, now=now)
            if previous is not None:
                logger.info(f"Aborted focus session {previous.id} to start a new one")

        session = FocusSession(
            id=new_id("focus"),
            start_time=now,
            planned_minutes=duration_minutes,
            blocked_app_ids=list(blocked_app_ids or []),
            grayscale_enabled=grayscale,
            app_id=app_id,
            app_name=app_name,
        )

        with self._lock:
            self.current = session
            self.state = STATE_ACTIVE

        if self.repository is not None:
            self.repository.save_active_focus_session(session)
        logger.info(f"Focus session started: {duration_minutes} min (id={session.id})")
        return session

    def restore(self, session: FocusSession, now: Optional[datetime] = None) -> Optional[FocusSession]:
        """
        Re-adopt a persisted active session after a process restart.

        Returns:
            The finalized session if it expired while the process was gone,
            otherwise None.
        """
        if not session.is_active:
            logger.warning(f"Ignoring finished session {session.id} stored as active")
            if self.repository is not None:
                self.repository.clear_active_focus_session()
            return None

        with self._lock:
            self.current = session
            self.state = STATE_ACTIVE
        logger.info(f"Restored active focus session {session.id}")
        return self.check_completion(now)

    def check_completion(self, now: Optional[datetime] = None) -> Optional[FocusSession]:
        """
        Completion boundary check, called from the host's timer tick.

        Returns:
            The completed session if this call finished it, otherwise None.
        """
        now = now or datetime.now()
        session = self.active_session
        if session is None:
            return None
        if session.elapsed_seconds(now) < session.planned_seconds:
            return None
        return self._finalize(completed=True, now=now)

    def stop(self, now: Optional[datetime] = None) -> Optional[FocusSession]:
        """
        Stop the running session manually.

        Returns:
            The aborted session, or None if nothing was running.
        """
        return self._finalize(completed=False, now=now or datetime.now())

    def dismiss(self) -> None:
        """Return from a completed/aborted screen to idle."""
        with self._lock:
            if self.state in (STATE_COMPLETED, STATE_ABORTED):
                self.state = STATE_IDLE
                self.current = None

    def _finalize(self, completed: bool, now: datetime) -> Optional[FocusSession]:
        with self._lock:
            if self.state != STATE_ACTIVE or self.current is None:
                return None
            session = self.current
            session.end_time = now
            session.duration_seconds = session.elapsed_seconds(now)
            session.completed = completed
            self.state = STATE_COMPLETED if completed else STATE_ABORTED

        if self.repository is not None:
            self.repository.save_focus_session(session)
            self.repository.clear_active_focus_session()

        outcome = "completed" if completed else "aborted"
        logger.info(
            f"Focus session {outcome}: {session.duration_seconds:.0f}s of "
            f"{session.planned_seconds}s (id={session.id})"
        )
        return session

    def elapsed_seconds(self, now: Optional[datetime] = None) -> float:
        if self.current is None:
            return 0.0
        return self.current.elapsed_seconds(now or datetime.now())

    def remaining_seconds(self, now: Optional[datetime] = None) -> float:
        """Countdown value for display; 0 when nothing is running."""
        session = self.active_session
        if session is None:
            return 0.0
        return max(0.0, session.planned_seconds - session.elapsed_seconds(now or datetime.now()))

    def allowed_apps(self) -> List[str]:
        """Apps usable during focus: only the focus target."""
        session = self.active_session
        if session is None or not session.app_id:
            return []
        return [session.app_id]
