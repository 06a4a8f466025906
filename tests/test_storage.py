"""Unit tests for key-value stores and the entity repository."""

import json
import os
import tempfile
import unittest
from datetime import datetime, timedelta
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import config
from blocking.rules import BlockRuleSet
from core.models import DailyAccumulators, FocusSession, SleepRecord
from storage.kv_store import JsonFileStore, MemoryStore
from storage.repository import WellbeingRepository
from tracking.catalog import DEFAULT_APPS


class TestJsonFileStore(unittest.TestCase):
    """Test the JSON document store."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.path = Path(self.temp_dir.name) / "store.json"
        self.store = JsonFileStore(self.path)

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_missing_file_reads_default(self):
        self.assertIsNone(self.store.get("settings"))
        self.assertEqual(self.store.get("settings", {}), {})

    def test_set_and_get(self):
        self.assertTrue(self.store.set("settings", {"dailyGoalMinutes": 90}))
        self.assertEqual(self.store.get("settings"), {"dailyGoalMinutes": 90})
        # A second store instance sees the same document
        self.assertEqual(JsonFileStore(self.path).get("settings"), {"dailyGoalMinutes": 90})

    def test_no_temp_files_left(self):
        self.store.set("a", 1)
        self.store.set("b", 2)
        leftovers = [f for f in os.listdir(self.temp_dir.name) if f.endswith(".tmp")]
        self.assertEqual(leftovers, [])

    def test_corrupt_file_reads_empty(self):
        self.path.write_text("{not json")
        self.assertIsNone(self.store.get("settings"))
        # Writing recovers the document
        self.assertTrue(self.store.set("settings", {}))
        self.assertEqual(json.loads(self.path.read_text()), {"settings": {}})

    def test_remove_and_clear_keys(self):
        for key in ("a", "b", "c"):
            self.store.set(key, key)
        self.assertTrue(self.store.remove("a"))
        self.assertTrue(self.store.remove("missing"))
        self.assertTrue(self.store.clear_keys(["b"]))
        self.assertIsNone(self.store.get("b"))
        self.assertEqual(self.store.get("c"), "c")


class TestMemoryStore(unittest.TestCase):
    """Test the dict-backed store."""

    def test_values_are_copied(self):
        store = MemoryStore()
        value = {"ids": [1]}
        store.set("k", value)
        value["ids"].append(2)
        self.assertEqual(store.get("k"), {"ids": [1]})
        store.get("k")["ids"].append(3)
        self.assertEqual(store.get("k"), {"ids": [1]})


class TestWellbeingRepository(unittest.TestCase):
    """Test typed entity access and fallbacks."""

    def setUp(self):
        self.store = MemoryStore()
        self.repo = WellbeingRepository(self.store)
        self.now = datetime(2024, 1, 2, 8, 0)

    def test_settings_merged_over_defaults(self):
        self.store.set(config.KEY_SETTINGS, {"dailyGoalMinutes": 90})
        settings = self.repo.get_settings()
        self.assertEqual(settings["dailyGoalMinutes"], 90)
        self.assertEqual(settings["sleepBedtime"], config.DEFAULT_SETTINGS["sleepBedtime"])

    def test_malformed_settings_use_defaults(self):
        self.store.set(config.KEY_SETTINGS, "garbage")
        self.assertEqual(self.repo.get_settings(), config.DEFAULT_SETTINGS)

    def test_invalid_setting_values_fall_back_per_key(self):
        self.store.set(config.KEY_SETTINGS, {
            "blueLightIntensity": "high",
            "sleepBedtime": "late",
            "dailyGoalMinutes": "120",
            "sleepWakeTime": "06:30",
            "blueLightEnabled": True,
        })
        settings = self.repo.get_settings()
        self.assertEqual(settings["blueLightIntensity"], config.DEFAULT_SETTINGS["blueLightIntensity"])
        self.assertEqual(settings["sleepBedtime"], config.DEFAULT_SETTINGS["sleepBedtime"])
        self.assertEqual(settings["dailyGoalMinutes"], config.DEFAULT_SETTINGS["dailyGoalMinutes"])
        # Valid neighbours are kept
        self.assertEqual(settings["sleepWakeTime"], "06:30")
        self.assertTrue(settings["blueLightEnabled"])

    def test_out_of_range_intensity_uses_default(self):
        for bad in (-1, 101, 50.5, True, None):
            self.store.set(config.KEY_SETTINGS, {"blueLightIntensity": bad})
            self.assertEqual(
                self.repo.get_settings()["blueLightIntensity"],
                config.DEFAULT_SETTINGS["blueLightIntensity"],
            )

    def test_apps_fall_back_to_catalog(self):
        self.assertEqual(len(self.repo.get_apps()), len(DEFAULT_APPS))
        self.store.set(config.KEY_APPS, [{"name": "no id"}])
        self.assertEqual(len(self.repo.get_apps()), len(DEFAULT_APPS))

    def test_block_rules_round_trip(self):
        rules = BlockRuleSet()
        rules.set_rule("tiktok", config.MODE_TIME_LIMIT, 30, app_name="TikTok")
        self.repo.save_block_rules(rules)
        loaded = self.repo.get_block_rules()
        self.assertEqual(loaded.get("tiktok").daily_limit_minutes, 30)

    def test_focus_session_history_upserts(self):
        session = FocusSession(id="f1", start_time=self.now, planned_minutes=25)
        self.repo.save_focus_session(session)
        session.end_time = self.now + timedelta(minutes=25)
        session.completed = True
        self.repo.save_focus_session(session)

        history = self.repo.get_focus_sessions()
        self.assertEqual(len(history), 1)
        self.assertTrue(history[0].completed)

    def test_active_focus_session_pointer(self):
        session = FocusSession(id="f1", start_time=self.now, planned_minutes=25)
        self.repo.save_active_focus_session(session)
        self.assertEqual(self.repo.get_active_focus_session().id, "f1")
        self.repo.clear_active_focus_session()
        self.assertIsNone(self.repo.get_active_focus_session())

    def test_active_session_without_start_time_reads_none(self):
        session = FocusSession(id="f1", start_time=self.now, planned_minutes=25).to_dict()
        session["start_time"] = None
        self.store.set(config.KEY_ACTIVE_FOCUS_SESSION, session)
        self.assertIsNone(self.repo.get_active_focus_session())

        del session["start_time"]
        self.store.set(config.KEY_ACTIVE_FOCUS_SESSION, session)
        self.assertIsNone(self.repo.get_active_focus_session())

    def test_malformed_history_entries_skipped(self):
        good = FocusSession(id="f1", start_time=self.now, planned_minutes=25).to_dict()
        no_start = dict(good, id="f2", start_time=None)
        self.store.set(config.KEY_FOCUS_SESSIONS, [good, no_start, "junk"])
        self.assertEqual([s.id for s in self.repo.get_focus_sessions()], ["f1"])

        record = SleepRecord(
            id="s1",
            start_time=self.now - timedelta(hours=8),
            end_time=self.now,
            duration_minutes=480,
        ).to_dict()
        self.store.set(config.KEY_SLEEP_RECORDS, [record, dict(record, id="s2", end_time=None)])
        self.assertEqual([r.id for r in self.repo.get_sleep_records()], ["s1"])

    def test_reset_app_usage(self):
        apps = self.repo.get_apps()
        apps[0].usage_minutes = 75
        apps[0].opens = 12
        apps[0].notifications = 4
        apps[0].daily_limit = 60
        self.repo.save_apps(apps)

        self.assertTrue(self.repo.reset_app_usage())
        stored = self.repo.get_apps()[0]
        self.assertEqual(stored.usage_minutes, 0)
        self.assertEqual(stored.opens, 0)
        self.assertEqual(stored.notifications, 0)
        self.assertEqual(stored.daily_limit, 60)

    def test_sleep_quality_attached(self):
        record = SleepRecord(
            id="s1",
            start_time=self.now - timedelta(hours=8),
            end_time=self.now,
            duration_minutes=480,
        )
        self.repo.add_sleep_record(record)
        self.assertTrue(self.repo.attach_sleep_quality("s1", 4))
        self.assertFalse(self.repo.attach_sleep_quality("missing", 4))
        self.assertEqual(self.repo.get_sleep_records()[0].quality_rating, 4)

    def test_daily_values_scoped_to_tag(self):
        daily = DailyAccumulators.empty("2024-01-01")
        daily.bonus_minutes = 10
        daily.used_puzzle_ids.add("p1")
        daily.usage_today["tiktok"] = 12
        self.repo.save_daily(daily)

        same_day = self.repo.load_daily("2024-01-01")
        self.assertEqual(same_day.bonus_minutes, 10)
        self.assertEqual(same_day.used_puzzle_ids, {"p1"})
        self.assertEqual(same_day.usage_today, {"tiktok": 12.0})

        next_day = self.repo.load_daily("2024-01-02")
        self.assertEqual(next_day.bonus_minutes, 0)
        self.assertEqual(next_day.used_puzzle_ids, set())
        self.assertFalse(any(e.completed for e in next_day.puzzle_extensions))

    def test_untagged_daily_value_ignored(self):
        self.store.set(config.KEY_DAILY_BONUS, 15)
        self.assertEqual(self.repo.load_daily("2024-01-02").bonus_minutes, 0)

    def test_last_interstitial(self):
        self.assertIsNone(self.repo.get_last_interstitial("tiktok"))
        self.repo.save_last_interstitial("tiktok", self.now)
        self.assertEqual(self.repo.get_last_interstitial("tiktok"), self.now)
        self.assertIsNone(self.repo.get_last_interstitial("reddit"))


if __name__ == "__main__":
    unittest.main()
