"""
Block rule storage.

Holds at most one BlockRule per app. Rules are edited by user action and only
read by the blocking policy.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import config
from core.models import BlockRule

logger = logging.getLogger(__name__)


@dataclass
class BlockRuleSet:
    """
    Per-app block rules keyed by app id.

    Setting a rule for an app that already has one replaces it, so the
    one-rule-per-app invariant holds by construction.
    """

    rules: Dict[str, BlockRule] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.rules)

    def __iter__(self):
        return iter(self.rules.values())

    def get(self, app_id: str) -> Optional[BlockRule]:
        return self.rules.get(app_id)

    def set_rule(
        self,
        app_id: str,
        mode: str,
        daily_limit_minutes: Optional[int] = None,
        app_name: str = "",
    ) -> BlockRule:
        """
        Create or replace the rule for an app.

        Validation happens before anything is changed, so a rejected rule
        leaves the previous one in place.

        Raises:
            ValueError: If the mode or limit is invalid.
        """
        rule = BlockRule(
            app_id=app_id,
            mode=mode,
            daily_limit_minutes=daily_limit_minutes,
            app_name=app_name,
        )
        self.rules[app_id] = rule
        if rule.daily_limit_minutes:
            logger.info(f"Block rule set: {app_id} -> {mode} ({rule.daily_limit_minutes} min)")
        else:
            logger.info(f"Block rule set: {app_id} -> {mode}")
        return rule

    def remove_rule(self, app_id: str) -> bool:
        """
        Remove the rule for an app.

        Returns:
            True if a rule was removed, False if none existed
        """
        if app_id in self.rules:
            del self.rules[app_id]
            logger.info(f"Block rule removed: {app_id}")
            return True
        return False

    def block_all(self, apps: Iterable[Any]) -> None:
        """Put a full block on every app in the list (AppRecord-like objects)."""
        for app in apps:
            self.set_rule(app.id, config.MODE_FULL_BLOCK, app_name=app.name)

    def fully_blocked_ids(self) -> List[str]:
        return [r.app_id for r in self.rules.values() if r.mode == config.MODE_FULL_BLOCK]

    def to_list(self) -> List[Dict[str, Any]]:
        return [rule.to_dict() for rule in self.rules.values()]

    @classmethod
    def from_list(cls, data: Iterable[Dict[str, Any]]) -> 'BlockRuleSet':
        """
        Build a rule set from stored dicts.

        Malformed entries are skipped; duplicate app ids keep the last rule.
        """
        rule_set = cls()
        for entry in data or []:
            try:
                rule = BlockRule.from_dict(entry)
            except (KeyError, TypeError, ValueError, OverflowError) as e:
                logger.warning(f"Skipping malformed block rule {entry!r}: {e}")
                continue
            rule_set.rules[rule.app_id] = rule
        return rule_set
