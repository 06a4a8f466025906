"""
Bonus screen-time minutes earned by solving puzzles.

Three tiers form an unlock chain: tier n+1 can only be attempted once tier n
is completed. Completing a tier adds its minutes to today's bonus, capped at
config.MAX_DAILY_BONUS_MINUTES. A puzzle id counts once per day.
"""

import logging
from typing import Optional

import config
from core.models import DailyAccumulators, PuzzleExtension

logger = logging.getLogger(__name__)


class PuzzleBonusTracker:
    """Applies puzzle progress to a day's DailyAccumulators in place."""

    def __init__(self, max_bonus_minutes: int = config.MAX_DAILY_BONUS_MINUTES):
        self.max_bonus_minutes = max_bonus_minutes

    def _tier(self, daily: DailyAccumulators, tier: int) -> PuzzleExtension:
        for ext in daily.puzzle_extensions:
            if ext.tier == tier:
                return ext
        raise ValueError(f"Unknown puzzle tier: {tier}")

    def next_available_tier(self, daily: DailyAccumulators) -> Optional[int]:
        """First tier not yet completed, or None when all are done."""
        for ext in sorted(daily.puzzle_extensions, key=lambda e: e.tier):
            if not ext.completed:
                return ext.tier
        return None

    def can_attempt(self, daily: DailyAccumulators, tier: int) -> bool:
        """A tier is open if it is incomplete and every lower tier is complete."""
        target = self._tier(daily, tier)
        if target.completed:
            return False
        return all(e.completed for e in daily.puzzle_extensions if e.tier < tier)

    def record_solved(self, daily: DailyAccumulators, puzzle_id: str) -> None:
        """
        Mark a puzzle as used for today.

        Raises:
            ValueError: If the puzzle was already used today.
        """
        if not puzzle_id:
            raise ValueError("Puzzle id is required")
        if puzzle_id in daily.used_puzzle_ids:
            raise ValueError(f"Puzzle {puzzle_id} was already used today")
        daily.used_puzzle_ids.add(puzzle_id)

    def complete_tier(self, daily: DailyAccumulators, tier: int, solved_count: int) -> int:
        """
        Finish an attempt at a tier.

        Args:
            daily: Today's accumulators (mutated)
            tier: Tier attempted
            solved_count: Puzzles answered correctly in the attempt

        Returns:
            Bonus minutes awarded (0 if too few puzzles were solved).

        Raises:
            ValueError: If the tier is unknown, locked or already completed,
                        or solved_count is negative.
        """
        if solved_count < 0:
            raise ValueError("Solved count must be non-negative")
        if not self.can_attempt(daily, tier):
            raise ValueError(f"Puzzle tier {tier} is not available")

        ext = self._tier(daily, tier)
        if solved_count < ext.puzzles_required:
            logger.info(f"Tier {tier} attempt failed: {solved_count}/{ext.puzzles_required} solved")
            return 0

        ext.completed = True
        ext.puzzles_solved = solved_count
        awarded = min(ext.minutes_earned, self.remaining_bonus_minutes(daily))
        daily.bonus_minutes += awarded
        logger.info(f"Tier {tier} completed: +{awarded} bonus minutes ({daily.bonus_minutes} today)")
        return awarded

    def remaining_bonus_minutes(self, daily: DailyAccumulators) -> int:
        return max(0, self.max_bonus_minutes - daily.bonus_minutes)
