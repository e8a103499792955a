"""Pick the single redirect action that applies to a quiz result."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from .actions import Action
from .rules import Rule, is_triggered


def ordered_rules(rules: Iterable[Rule]) -> List[Rule]:
    """Enabled rules by ascending priority; sorted() is stable so ties keep insertion order."""
    return sorted((rule for rule in rules if rule.enabled), key=lambda rule: rule.priority)


def select(
    rules: Iterable[Rule],
    result_data: Mapping[str, Any],
    now: Optional[datetime] = None,
) -> Optional[Tuple[Rule, Action]]:
    """Return the winning rule together with the action it resolves to.

    Schedules only apply when ``now`` is given. A rule outside its working
    hours hands over its fallback action, or is skipped when it has none.
    """
    for rule in ordered_rules(rules):
        if not is_triggered(rule, result_data):
            continue
        schedule = rule.schedule
        if now is not None and schedule is not None and schedule.enabled and not schedule.is_open(now):
            if schedule.fallback_action is None:
                continue
            return rule, schedule.fallback_action
        return rule, rule.action
    return None


def select_rule(
    rules: Iterable[Rule],
    result_data: Mapping[str, Any],
    now: Optional[datetime] = None,
) -> Optional[Rule]:
    selected = select(rules, result_data, now=now)
    return selected[0] if selected else None


def evaluate(
    rules: Iterable[Rule],
    result_data: Mapping[str, Any],
    now: Optional[datetime] = None,
) -> Optional[Action]:
    selected = select(rules, result_data, now=now)
    return selected[1] if selected else None
