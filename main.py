#!/usr/bin/env python3
"""
ZenScreen - Main Entry Point

A digital wellbeing engine: per-app block rules and time limits, timed focus
sessions, automatic sleep detection and a scheduled blue-light filter.
Each command starts the engine (which runs the daily rollover), applies one
intent and prints the result.

Usage:
    python main.py status
    python main.py focus start --minutes 25 --app chrome --grayscale
    python main.py block set instagram time_limit --limit 30
    python main.py launch instagram
    python main.py sleep log --start 2024-01-01T23:00 --end 2024-01-02T07:00
    python main.py bluelight --bedtime 22:30 --intensity 60
"""

import argparse
import logging
import sys
from datetime import datetime
from typing import Any, Dict

import config
from core.engine import WellbeingEngine
from storage.kv_store import JsonFileStore
from tracking.analytics import format_duration, format_minutes, sleep_quality_label, sleep_score

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format=config.LOG_FORMAT
)
logger = logging.getLogger(__name__)


def _report(result: Dict[str, Any], success_message: str) -> int:
    """Print an intent result and return the process exit code."""
    if result["success"]:
        print(f"✓ {success_message}")
        return 0
    print(f"❌ {result['error']}")
    return 1


def show_status(engine: WellbeingEngine) -> int:
    """Print the dashboard, focus state and blue-light state."""
    summary = engine.dashboard()
    focus = engine.focus_status()
    light = engine.blue_light_state()

    print("\n" + "=" * 60)
    print("🧘 ZenScreen - Today")
    print("=" * 60)
    print(f"Screen time:   {format_minutes(summary['total_minutes'])} of {format_minutes(summary['goal_minutes'])}")
    if summary["over_goal"]:
        print(f"Over goal by:  {format_minutes(summary['over_by_minutes'])}")
    else:
        print(f"Remaining:     {format_minutes(summary['remaining_minutes'])}")
    print(f"Opens:         {summary['total_opens']}  Notifications: {summary['total_notifications']}")
    if summary["bonus_minutes"]:
        print(f"Puzzle bonus:  +{summary['bonus_minutes']} min")
    if summary["apps_over_limit"]:
        print(f"Over limit:    {', '.join(summary['apps_over_limit'])}")
    print(f"Sleep score:   {summary['sleep_score']}")

    if focus["state"] == "active":
        print(f"\n🎯 Focus active: {format_duration(focus['remaining_seconds'])} left")
        if focus["allowed_apps"]:
            print(f"   Allowed: {', '.join(focus['allowed_apps'])}")
    else:
        print(f"\n🎯 Focus: {focus['state']}")

    if light["active"]:
        print(f"🌙 Blue light filter on ({light['intensity']}%)")
    else:
        print("🌙 Blue light filter off")
    if light["minutes_until_change"] is not None:
        print(f"   Next change in {format_minutes(light['minutes_until_change'])}")
    print("=" * 60)
    return 0


def cmd_focus(engine: WellbeingEngine, args) -> int:
    if args.focus_command == "start":
        blocked = [a for a in (args.block or "").split(",") if a]
        result = engine.start_focus(
            args.minutes,
            blocked_app_ids=blocked,
            grayscale=args.grayscale,
            app_id=args.app,
        )
        return _report(result, f"Focus session started ({args.minutes} min)")

    if args.focus_command == "stop":
        result = engine.stop_focus()
        if result["success"]:
            elapsed = format_duration(result["session"].duration_seconds)
            return _report(result, f"Focus session stopped after {elapsed}")
        return _report(result, "")

    status = engine.focus_status()
    print(f"State: {status['state']}")
    if status["state"] == "active":
        print(f"Elapsed: {format_duration(status['elapsed_seconds'])}")
        print(f"Remaining: {format_duration(status['remaining_seconds'])}")
    return 0


def cmd_block(engine: WellbeingEngine, args) -> int:
    if args.block_command == "set":
        result = engine.set_block_rule(args.app_id, args.mode, args.limit)
        return _report(result, f"Rule saved for {args.app_id}: {args.mode}")

    if args.block_command == "remove":
        return _report(engine.remove_block_rule(args.app_id), f"Rule removed for {args.app_id}")

    if not len(engine.rules):
        print("No block rules set.")
    for rule in engine.rules:
        limit = f" ({format_minutes(rule.daily_limit_minutes)})" if rule.daily_limit_minutes else ""
        print(f"  {rule.app_id}: {rule.mode}{limit}")
    return 0


def cmd_launch(engine: WellbeingEngine, args) -> int:
    """Simulate the user opening an app."""
    decision = engine.on_app_launch_attempt(args.app_id)
    if decision["blocked"]:
        print(f"⛔ {decision['reason']}")
        if decision["show_interstitial"]:
            print(f"   {decision['warning_message']}")
        return 1
    print(f"✓ {decision['reason']}")
    return 0


def cmd_sleep(engine: WellbeingEngine, args) -> int:
    if args.sleep_command == "log":
        try:
            start = datetime.fromisoformat(args.start)
            end = datetime.fromisoformat(args.end)
        except ValueError as e:
            print(f"❌ Invalid time: {e}")
            return 1
        result = engine.log_manual_sleep(start, end, args.rating)
        return _report(result, "Sleep logged")

    if args.sleep_command == "rate":
        return _report(engine.rate_sleep(args.record_id, args.rating), "Rating saved")

    records = engine.sleep_records()
    if not records:
        print("No sleep records yet.")
    for record in records[-getattr(args, "limit", 7):]:
        source = "auto" if record.is_auto_detected else "manual"
        rating = f" rated {record.quality_rating}/5" if record.quality_rating else ""
        print(
            f"  {record.id}  {record.start_time:%Y-%m-%d %H:%M} "
            f"{format_minutes(record.duration_minutes)} ({source}, "
            f"{sleep_quality_label(record)}, score {sleep_score(record)}){rating}"
        )
    return 0


def cmd_puzzle(engine: WellbeingEngine, args) -> int:
    if args.puzzle_command == "solve":
        return _report(engine.solve_puzzle(args.puzzle_id), f"Puzzle {args.puzzle_id} solved")

    if args.puzzle_command == "complete":
        result = engine.complete_puzzle_tier(args.tier, args.solved)
        if result["success"] and not result["minutes_awarded"]:
            print(f"Tier {args.tier} not passed. Try again.")
            return 0
        return _report(result, f"Tier {args.tier} complete: +{result.get('minutes_awarded', 0)} min")

    status = engine.puzzle_status()
    next_tier = status["next_tier"]
    print(f"Next tier: {next_tier if next_tier is not None else 'all done'}")
    print(f"Bonus today: {status['bonus_minutes']} min ({status['remaining_bonus_minutes']} available)")
    return 0


def cmd_bluelight(engine: WellbeingEngine, args) -> int:
    changes = {}
    if args.bedtime:
        changes["bedtime"] = args.bedtime
    if args.wake:
        changes["wake_time"] = args.wake
    if args.intensity is not None:
        changes["intensity"] = args.intensity
    if args.enabled is not None:
        changes["enabled"] = args.enabled
    if args.auto is not None:
        changes["auto_schedule"] = args.auto

    if changes:
        result = engine.update_blue_light(**changes)
        if not result["success"]:
            return _report(result, "")

    state = engine.blue_light_state()
    light = engine.blue_light_config()
    print(f"Schedule: {light.bedtime} - {light.wake_time} ({'auto' if light.auto_schedule else 'manual'})")
    print(f"Filter: {'on' if state['active'] else 'off'} at {state['intensity']}%")
    return 0


def cmd_usage(engine: WellbeingEngine, args) -> int:
    result = engine.record_app_usage(args.app_id, args.minutes)
    return _report(result, f"Recorded {args.minutes} min on {args.app_id}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="ZenScreen - Digital Wellbeing Engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py status                         Today's dashboard
  python main.py focus start --minutes 45       Start a focus session
  python main.py block set tiktok full_block    Block an app
  python main.py launch tiktok                  Check whether an app may open
        """
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("status", help="Show today's dashboard")

    focus = sub.add_parser("focus", help="Focus sessions")
    focus_sub = focus.add_subparsers(dest="focus_command")
    start = focus_sub.add_parser("start", help="Start a focus session")
    start.add_argument("--minutes", type=int, default=config.DEFAULT_FOCUS_MINUTES,
                       help=f"Duration (presets: {config.FOCUS_DURATION_PRESETS})")
    start.add_argument("--app", help="Focus app that stays usable")
    start.add_argument("--block", help="Comma-separated app ids to block")
    start.add_argument("--grayscale", action="store_true", help="Gray out other apps")
    focus_sub.add_parser("stop", help="Stop the running session")
    focus_sub.add_parser("status", help="Show the running session")

    block = sub.add_parser("block", help="Block rules")
    block_sub = block.add_subparsers(dest="block_command")
    block_set = block_sub.add_parser("set", help="Set a rule for an app")
    block_set.add_argument("app_id")
    block_set.add_argument("mode", choices=config.BLOCK_MODES)
    block_set.add_argument("--limit", help="Daily limit in minutes (time_limit only)")
    block_remove = block_sub.add_parser("remove", help="Remove an app's rule")
    block_remove.add_argument("app_id")
    block_sub.add_parser("list", help="List rules")

    launch = sub.add_parser("launch", help="Simulate opening an app")
    launch.add_argument("app_id")

    usage = sub.add_parser("usage", help="Record minutes of app use today")
    usage.add_argument("app_id")
    usage.add_argument("minutes", type=float)

    sleep = sub.add_parser("sleep", help="Sleep records")
    sleep_sub = sleep.add_subparsers(dest="sleep_command")
    sleep_log = sleep_sub.add_parser("log", help="Log sleep manually")
    sleep_log.add_argument("--start", required=True, help="ISO start time")
    sleep_log.add_argument("--end", required=True, help="ISO end time")
    sleep_log.add_argument("--rating", type=int, help="Quality 1-5")
    sleep_rate = sleep_sub.add_parser("rate", help="Rate a sleep record")
    sleep_rate.add_argument("record_id")
    sleep_rate.add_argument("rating", type=int)
    sleep_list = sleep_sub.add_parser("list", help="Show recent records")
    sleep_list.add_argument("--limit", type=int, default=7)

    puzzle = sub.add_parser("puzzle", help="Earn bonus minutes")
    puzzle_sub = puzzle.add_subparsers(dest="puzzle_command")
    solve = puzzle_sub.add_parser("solve", help="Mark a puzzle solved")
    solve.add_argument("puzzle_id")
    complete = puzzle_sub.add_parser("complete", help="Finish a tier attempt")
    complete.add_argument("tier", type=int)
    complete.add_argument("solved", type=int)
    puzzle_sub.add_parser("status", help="Show tier progress")

    light = sub.add_parser("bluelight", help="Blue-light filter schedule")
    light.add_argument("--bedtime", help="HH:MM")
    light.add_argument("--wake", help="HH:MM")
    light.add_argument("--intensity", type=int, help="0-100")
    light.add_argument("--on", dest="enabled", action="store_const", const=True)
    light.add_argument("--off", dest="enabled", action="store_const", const=False)
    light.add_argument("--auto", dest="auto", action="store_const", const=True)
    light.add_argument("--manual", dest="auto", action="store_const", const=False)

    return parser


COMMANDS = {
    "focus": cmd_focus,
    "block": cmd_block,
    "launch": cmd_launch,
    "usage": cmd_usage,
    "sleep": cmd_sleep,
    "puzzle": cmd_puzzle,
    "bluelight": cmd_bluelight,
}


def main():
    """Main entry point: parse arguments, start the engine, run one command."""
    args = build_parser().parse_args()

    try:
        engine = WellbeingEngine(store=JsonFileStore(config.STORE_FILE))
        engine.start()

        handler = COMMANDS.get(args.command)
        code = handler(engine, args) if handler else show_status(engine)
    except KeyboardInterrupt:
        print("\n\nGoodbye!")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        print(f"\nFatal error: {e}")
        sys.exit(1)

    sys.exit(code)


if __name__ == "__main__":
    main()
