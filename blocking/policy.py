"""
Blocking decisions for app launch attempts.

Pure functions of a BlockingContext. Precedence, shared by every function
here so reason text always agrees with is_blocked():

    1. Active focus session, app is the focus target   -> allowed
    2. Active focus session, any other app             -> blocked
    3. Block rule for the app:
         none / unrestricted                           -> allowed
         full_block                                    -> blocked
         time_limit                                    -> blocked once usage >= limit
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import config
from blocking.rules import BlockRuleSet
from core.models import BlockRule, FocusSession
from tracking.analytics import format_minutes

logger = logging.getLogger(__name__)

UNLIMITED = math.inf  # remaining_minutes() for apps without a time concept
FULLY_BLOCKED = -1  # remaining_minutes() for full_block rules


@dataclass
class BlockingContext:
    """Inputs for one evaluation."""

    rules: BlockRuleSet = field(default_factory=BlockRuleSet)
    focus_session: Optional[FocusSession] = None
    usage_today: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self):
        # Accept a plain list of BlockRule as well
        if not isinstance(self.rules, BlockRuleSet):
            self.rules = BlockRuleSet({rule.app_id: rule for rule in self.rules})

    @property
    def active_focus(self) -> Optional[FocusSession]:
        if self.focus_session is not None and self.focus_session.is_active:
            return self.focus_session
        return None

    def usage_for(self, app_id: str) -> float:
        return self.usage_today.get(app_id, 0)

    def rule_for(self, app_id: str) -> Optional[BlockRule]:
        return self.rules.get(app_id)


def is_focus_target(app_id: str, session: FocusSession) -> bool:
    return session.app_id is not None and session.app_id == app_id


def is_blocked(app_id: str, context: BlockingContext) -> bool:
    """Whether launching app_id should be blocked right now."""
    focus = context.active_focus
    if focus is not None:
        return not is_focus_target(app_id, focus)

    rule = context.rule_for(app_id)
    if rule is None:
        return False
    if rule.mode == config.MODE_FULL_BLOCK:
        return True
    if rule.mode == config.MODE_TIME_LIMIT:
        return context.usage_for(app_id) >= rule.daily_limit_minutes
    return False


def remaining_minutes(app_id: str, context: BlockingContext) -> float:
    """
    Minutes left before the app's time limit blocks it.

    Returns:
        UNLIMITED with no rule or an unrestricted rule, FULLY_BLOCKED for
        full_block, otherwise max(0, limit - usage today).
    """
    rule = context.rule_for(app_id)
    if rule is None or rule.mode == config.MODE_UNRESTRICTED:
        return UNLIMITED
    if rule.mode == config.MODE_FULL_BLOCK:
        return FULLY_BLOCKED
    return max(0, rule.daily_limit_minutes - context.usage_for(app_id))


def blocked_reason(app_id: str, context: BlockingContext) -> str:
    """User-facing explanation for the current decision on app_id."""
    focus = context.active_focus
    if focus is not None:
        focus_name = focus.app_name or focus.app_id or "your focus app"
        if is_focus_target(app_id, focus):
            return f"{focus_name} is your focus app."
        return f"Focus mode active. Only {focus_name} is allowed."

    rule = context.rule_for(app_id)
    name = (rule.app_name if rule else "") or "This app"
    if rule is None:
        return f"{name} has no limits."
    if rule.mode == config.MODE_FULL_BLOCK:
        return f"{name} is blocked."
    if rule.mode == config.MODE_TIME_LIMIT:
        if is_blocked(app_id, context):
            return f"Daily limit reached ({format_minutes(rule.daily_limit_minutes)} used)."
        return f"{format_minutes(remaining_minutes(app_id, context))} remaining today."
    return f"{name} is unrestricted."


def should_show_interstitial(
    app_id: str,
    context: BlockingContext,
    last_shown_at: Optional[datetime],
    now: Optional[datetime] = None,
) -> bool:
    """
    Whether to show the blocking modal for this launch attempt.

    Shown only for blocked apps, and at most once per
    config.INTERSTITIAL_MIN_INTERVAL_SECONDS per app. The caller persists
    last_shown_at when this returns True.
    """
    if not is_blocked(app_id, context):
        return False
    if last_shown_at is None:
        return True
    now = now or datetime.now()
    return now - last_shown_at >= timedelta(seconds=config.INTERSTITIAL_MIN_INTERVAL_SECONDS)


def allowed_apps_for_focus(session: FocusSession) -> List[str]:
    """Apps usable during focus: only the focus target."""
    return [session.app_id] if session.app_id else []


def grayscale_opacity(session: Optional[FocusSession], app_id: Optional[str]) -> float:
    """
    Overlay opacity for the foreground app.

    0.0 (full colour) without an active grayscale focus session or for the
    focus target, config.GRAYSCALE_OPACITY for every other app.
    """
    if session is None or not session.is_active or not session.grayscale_enabled or not app_id:
        return 0.0
    if is_focus_target(app_id, session):
        return 0.0
    return config.GRAYSCALE_OPACITY
