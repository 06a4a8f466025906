"""Unit tests for block rules and the blocking policy."""

import unittest
from datetime import datetime, timedelta
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import config
from blocking.policy import (
    FULLY_BLOCKED,
    UNLIMITED,
    BlockingContext,
    allowed_apps_for_focus,
    blocked_reason,
    grayscale_opacity,
    is_blocked,
    remaining_minutes,
    should_show_interstitial,
)
from blocking.rules import BlockRuleSet
from core.models import BlockRule, FocusSession


def make_session(app_id=None, grayscale=False, ended=False) -> FocusSession:
    start = datetime(2024, 1, 1, 9, 0)
    return FocusSession(
        id="focus_test",
        start_time=start,
        planned_minutes=25,
        grayscale_enabled=grayscale,
        app_id=app_id,
        app_name="Chrome" if app_id == "chrome" else None,
        end_time=start + timedelta(minutes=25) if ended else None,
    )


class TestBlockRule(unittest.TestCase):
    """Test BlockRule validation."""

    def test_time_limit_requires_positive_limit(self):
        for bad in (None, 0, -10, "abc", True):
            with self.assertRaises(ValueError):
                BlockRule("tiktok", config.MODE_TIME_LIMIT, bad)

    def test_unknown_mode(self):
        with self.assertRaises(ValueError):
            BlockRule("tiktok", "sometimes")

    def test_limit_dropped_for_other_modes(self):
        rule = BlockRule("tiktok", config.MODE_FULL_BLOCK, 30)
        self.assertIsNone(rule.daily_limit_minutes)

    def test_fractional_limit_rejected(self):
        for bad in (30.7, float("inf"), float("nan")):
            with self.assertRaises(ValueError):
                BlockRule("tiktok", config.MODE_TIME_LIMIT, bad)

    def test_whole_float_limit_accepted(self):
        rule = BlockRule("tiktok", config.MODE_TIME_LIMIT, 30.0)
        self.assertEqual(rule.daily_limit_minutes, 30)
        self.assertIsInstance(rule.daily_limit_minutes, int)


class TestBlockRuleSet(unittest.TestCase):
    """Test the one-rule-per-app store."""

    def setUp(self):
        self.rules = BlockRuleSet()

    def test_set_replaces_existing_rule(self):
        self.rules.set_rule("tiktok", config.MODE_FULL_BLOCK)
        self.rules.set_rule("tiktok", config.MODE_TIME_LIMIT, 30)
        self.assertEqual(len(self.rules), 1)
        self.assertEqual(self.rules.get("tiktok").mode, config.MODE_TIME_LIMIT)

    def test_rejected_rule_keeps_previous(self):
        self.rules.set_rule("tiktok", config.MODE_TIME_LIMIT, 30)
        with self.assertRaises(ValueError):
            self.rules.set_rule("tiktok", config.MODE_TIME_LIMIT, -1)
        self.assertEqual(self.rules.get("tiktok").daily_limit_minutes, 30)

    def test_remove(self):
        self.rules.set_rule("tiktok", config.MODE_FULL_BLOCK)
        self.assertTrue(self.rules.remove_rule("tiktok"))
        self.assertFalse(self.rules.remove_rule("tiktok"))

    def test_from_list_skips_malformed(self):
        rules = BlockRuleSet.from_list([
            {"app_id": "tiktok", "mode": config.MODE_FULL_BLOCK},
            {"app_id": "reddit", "mode": config.MODE_TIME_LIMIT, "daily_limit_minutes": -3},
            {"mode": config.MODE_FULL_BLOCK},
        ])
        self.assertEqual(len(rules), 1)
        self.assertEqual(rules.fully_blocked_ids(), ["tiktok"])

    def test_from_list_skips_overflowing_limit(self):
        # json.loads turns 1e400 into inf
        rules = BlockRuleSet.from_list([
            {"app_id": "reddit", "mode": config.MODE_TIME_LIMIT, "daily_limit_minutes": float("inf")},
            {"app_id": "youtube", "mode": config.MODE_TIME_LIMIT, "daily_limit_minutes": 45},
        ])
        self.assertIsNone(rules.get("reddit"))
        self.assertEqual(rules.get("youtube").daily_limit_minutes, 45)


class TestIsBlocked(unittest.TestCase):
    """Test blocking decisions and their precedence."""

    def setUp(self):
        self.rules = BlockRuleSet()
        self.rules.set_rule("tiktok", config.MODE_FULL_BLOCK, app_name="TikTok")
        self.rules.set_rule("instagram", config.MODE_TIME_LIMIT, 30, app_name="Instagram")
        self.rules.set_rule("netflix", config.MODE_UNRESTRICTED, app_name="Netflix")

    def context(self, usage=None, session=None) -> BlockingContext:
        return BlockingContext(rules=self.rules, focus_session=session, usage_today=usage or {})

    def test_no_rule_allowed(self):
        ctx = self.context()
        self.assertFalse(is_blocked("gmail", ctx))
        self.assertEqual(remaining_minutes("gmail", ctx), UNLIMITED)

    def test_full_block(self):
        ctx = self.context()
        self.assertTrue(is_blocked("tiktok", ctx))
        self.assertEqual(remaining_minutes("tiktok", ctx), FULLY_BLOCKED)
        self.assertEqual(blocked_reason("tiktok", ctx), "TikTok is blocked.")

    def test_unrestricted(self):
        ctx = self.context()
        self.assertFalse(is_blocked("netflix", ctx))
        self.assertEqual(remaining_minutes("netflix", ctx), UNLIMITED)

    def test_time_limit_boundary(self):
        self.assertFalse(is_blocked("instagram", self.context({"instagram": 29})))
        self.assertTrue(is_blocked("instagram", self.context({"instagram": 30})))
        self.assertTrue(is_blocked("instagram", self.context({"instagram": 45})))

    def test_time_limit_remaining(self):
        self.assertEqual(remaining_minutes("instagram", self.context({"instagram": 20})), 10)
        self.assertEqual(remaining_minutes("instagram", self.context({"instagram": 50})), 0)
        self.assertEqual(
            blocked_reason("instagram", self.context({"instagram": 20})),
            "10 mins remaining today.",
        )
        self.assertEqual(
            blocked_reason("instagram", self.context({"instagram": 30})),
            "Daily limit reached (30 mins used).",
        )

    def test_focus_blocks_everything_but_target(self):
        ctx = self.context(session=make_session(app_id="chrome"))
        self.assertFalse(is_blocked("chrome", ctx))
        self.assertTrue(is_blocked("gmail", ctx))
        self.assertTrue(is_blocked("netflix", ctx))
        self.assertEqual(blocked_reason("gmail", ctx), "Focus mode active. Only Chrome is allowed.")

    def test_focus_target_overrides_full_block(self):
        ctx = self.context(session=make_session(app_id="tiktok"))
        self.assertFalse(is_blocked("tiktok", ctx))

    def test_finished_session_ignored(self):
        ctx = self.context(session=make_session(app_id="chrome", ended=True))
        self.assertFalse(is_blocked("gmail", ctx))

    def test_accepts_rule_list(self):
        ctx = BlockingContext(rules=[BlockRule("tiktok", config.MODE_FULL_BLOCK)])
        self.assertTrue(is_blocked("tiktok", ctx))

    def test_allowed_apps_for_focus(self):
        self.assertEqual(allowed_apps_for_focus(make_session(app_id="chrome")), ["chrome"])
        self.assertEqual(allowed_apps_for_focus(make_session()), [])


class TestInterstitial(unittest.TestCase):
    """Test the per-app interstitial throttle."""

    def setUp(self):
        rules = BlockRuleSet()
        rules.set_rule("tiktok", config.MODE_FULL_BLOCK)
        self.ctx = BlockingContext(rules=rules)
        self.now = datetime(2024, 1, 1, 12, 0)

    def test_first_attempt_shows(self):
        self.assertTrue(should_show_interstitial("tiktok", self.ctx, None, self.now))

    def test_throttle_window(self):
        self.assertFalse(
            should_show_interstitial("tiktok", self.ctx, self.now - timedelta(seconds=59), self.now)
        )
        self.assertTrue(
            should_show_interstitial("tiktok", self.ctx, self.now - timedelta(seconds=61), self.now)
        )

    def test_not_shown_for_allowed_app(self):
        self.assertFalse(should_show_interstitial("gmail", self.ctx, None, self.now))


class TestGrayscale(unittest.TestCase):
    """Test grayscale overlay opacity."""

    def test_no_session(self):
        self.assertEqual(grayscale_opacity(None, "gmail"), 0.0)

    def test_grayscale_off(self):
        self.assertEqual(grayscale_opacity(make_session(app_id="chrome"), "gmail"), 0.0)

    def test_grayscale_on(self):
        session = make_session(app_id="chrome", grayscale=True)
        self.assertEqual(grayscale_opacity(session, "gmail"), config.GRAYSCALE_OPACITY)
        self.assertEqual(grayscale_opacity(session, "chrome"), 0.0)


if __name__ == "__main__":
    unittest.main()
