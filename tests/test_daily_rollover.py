"""Unit tests for the daily rollover and puzzle bonus accounting."""

import unittest
from datetime import datetime
import sys
from pathlib import Path
from unittest.mock import MagicMock

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import config
from core.models import DailyAccumulators
from storage.kv_store import MemoryStore
from storage.repository import WellbeingRepository
from tracking.daily_rollover import DailyRolloverCoordinator, date_tag_for
from tracking.puzzle_bonus import PuzzleBonusTracker


class TestDailyRollover(unittest.TestCase):
    """Test once-per-day reset behaviour."""

    def setUp(self):
        self.store = MemoryStore()
        self.repo = WellbeingRepository(self.store)
        self.detector = MagicMock()
        self.on_reset = MagicMock()
        self.coordinator = DailyRolloverCoordinator(
            self.repo, sleep_detector=self.detector, on_reset=self.on_reset
        )

    def _seed_day(self, tag: str):
        daily = DailyAccumulators.empty(tag)
        daily.bonus_minutes = 10
        daily.used_puzzle_ids.add("p1")
        self.repo.save_daily(daily)
        self.repo.save_last_reset_date(tag)

    def test_date_tag(self):
        self.assertEqual(date_tag_for(datetime(2024, 1, 31, 23, 59)), "2024-01-31")

    def test_first_run_resets(self):
        self.assertTrue(self.coordinator.check_and_reset(None, "2024-01-01"))
        self.assertEqual(self.repo.get_last_reset_date(), "2024-01-01")
        self.on_reset.assert_called_once_with("2024-01-01")

    def test_same_day_twice_resets_once(self):
        self.coordinator.check_and_reset(None, "2024-01-01")
        self.assertFalse(self.coordinator.check_and_reset("2024-01-01", "2024-01-01"))
        self.assertFalse(self.coordinator.check_and_reset("2024-01-01", "2024-01-01"))
        self.assertEqual(self.on_reset.call_count, 1)

    def test_new_day_resets_exactly_once(self):
        self._seed_day("2024-01-01")
        self.assertTrue(self.coordinator.check_and_reset("2024-01-01", "2024-01-02"))
        self.assertFalse(self.coordinator.check_and_reset("2024-01-02", "2024-01-02"))
        self.on_reset.assert_called_once_with("2024-01-02")
        self.detector.reset.assert_called_once()

    def test_reset_clears_daily_state(self):
        self._seed_day("2024-01-01")
        self.coordinator.check_and_reset("2024-01-01", "2024-01-02")
        daily = self.repo.load_daily("2024-01-02")
        self.assertEqual(daily.bonus_minutes, 0)
        self.assertEqual(daily.used_puzzle_ids, set())

    def test_reset_zeroes_app_usage(self):
        self._seed_day("2024-01-01")
        apps = self.repo.get_apps()
        apps[0].usage_minutes = 100
        apps[0].opens = 9
        self.repo.save_apps(apps)

        self.coordinator.check_and_reset("2024-01-01", "2024-01-02")
        for app in self.repo.get_apps():
            self.assertEqual(app.usage_minutes, 0)
            self.assertEqual(app.opens, 0)

    def test_same_day_keeps_app_usage(self):
        self._seed_day("2024-01-01")
        apps = self.repo.get_apps()
        apps[0].usage_minutes = 100
        self.repo.save_apps(apps)

        self.assertFalse(self.coordinator.check_and_reset("2024-01-01", "2024-01-01"))
        self.assertEqual(self.repo.get_apps()[0].usage_minutes, 100)

    def test_stale_caller_tag_does_not_repeat_reset(self):
        self.coordinator.check_and_reset(None, "2024-01-02")
        daily = self.repo.load_daily("2024-01-02")
        daily.bonus_minutes = 5
        self.repo.save_daily(daily)

        # A caller holding yesterday's tag must not wipe today's data
        self.assertFalse(self.coordinator.check_and_reset("2024-01-01", "2024-01-02"))
        self.assertEqual(self.repo.load_daily("2024-01-02").bonus_minutes, 5)

    def test_run_uses_clock_date(self):
        self.assertTrue(self.coordinator.run(datetime(2024, 1, 1, 0, 5)))
        self.assertFalse(self.coordinator.run(datetime(2024, 1, 1, 23, 55)))
        self.assertTrue(self.coordinator.run(datetime(2024, 1, 2, 0, 0)))

    def test_daily_keys_cleared(self):
        self._seed_day("2024-01-01")
        self.coordinator.check_and_reset("2024-01-01", "2024-01-02")
        for key in config.DAILY_KEYS:
            self.assertEqual(self.store.get(key)["dateTag"], "2024-01-02")


class TestPuzzleBonus(unittest.TestCase):
    """Test the tier unlock chain and bonus cap."""

    def setUp(self):
        self.tracker = PuzzleBonusTracker()
        self.daily = DailyAccumulators.empty("2024-01-01")

    def test_tier_chain(self):
        self.assertEqual(self.tracker.next_available_tier(self.daily), 1)
        self.assertTrue(self.tracker.can_attempt(self.daily, 1))
        self.assertFalse(self.tracker.can_attempt(self.daily, 2))

        self.assertEqual(self.tracker.complete_tier(self.daily, 1, 1), 5)
        self.assertEqual(self.tracker.next_available_tier(self.daily), 2)
        self.assertTrue(self.tracker.can_attempt(self.daily, 2))

    def test_locked_tier_rejected(self):
        with self.assertRaises(ValueError):
            self.tracker.complete_tier(self.daily, 3, 3)

    def test_too_few_solved_awards_nothing(self):
        self.tracker.complete_tier(self.daily, 1, 1)
        self.assertEqual(self.tracker.complete_tier(self.daily, 2, 1), 0)
        self.assertEqual(self.tracker.next_available_tier(self.daily), 2)

    def test_bonus_capped(self):
        for tier, solved in ((1, 1), (2, 2), (3, 3)):
            self.tracker.complete_tier(self.daily, tier, solved)
        self.assertEqual(self.daily.bonus_minutes, config.MAX_DAILY_BONUS_MINUTES)
        self.assertIsNone(self.tracker.next_available_tier(self.daily))

        capped = PuzzleBonusTracker(max_bonus_minutes=7)
        daily = DailyAccumulators.empty("2024-01-01")
        capped.complete_tier(daily, 1, 1)
        self.assertEqual(capped.complete_tier(daily, 2, 2), 2)
        self.assertEqual(daily.bonus_minutes, 7)

    def test_completed_tier_not_repeatable(self):
        self.tracker.complete_tier(self.daily, 1, 1)
        with self.assertRaises(ValueError):
            self.tracker.complete_tier(self.daily, 1, 1)

    def test_puzzle_used_once_per_day(self):
        self.tracker.record_solved(self.daily, "p1")
        with self.assertRaises(ValueError):
            self.tracker.record_solved(self.daily, "p1")
        self.assertEqual(self.daily.used_puzzle_ids, {"p1"})


if __name__ == "__main__":
    unittest.main()
