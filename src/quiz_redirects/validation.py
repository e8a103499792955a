"""Authoring checks run when a quiz's rules are saved."""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass
from typing import List, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .actions import DESTINATION_LABELS
from .conditions import Operator, to_number
from .rules import WEEKDAYS, Rule, parse_clock

ERROR = "error"
WARNING = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    rule_id: str
    severity: str
    message: str
    condition_id: str = ""

    def to_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "condition_id": self.condition_id,
            "severity": self.severity,
            "message": self.message,
        }


class RuleValidationError(ValueError):
    """Raised when rules with blocking issues are saved."""

    def __init__(self, issues: Sequence[ValidationIssue]) -> None:
        self.issues = list(issues)
        summary = "; ".join(f"{issue.rule_id}: {issue.message}" for issue in self.issues)
        super().__init__(f"Invalid redirect rules: {summary}")


def validate_rule(rule: Rule) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []

    def flag(severity: str, message: str, condition_id: str = "") -> None:
        issues.append(ValidationIssue(rule.id, severity, message, condition_id))

    if not rule.action.destination.strip():
        flag(ERROR, f"Missing {DESTINATION_LABELS[rule.action.kind]} for {rule.action.kind.value}.")

    if not rule.conditions:
        flag(WARNING, "Rule has no conditions and will trigger for every result.")

    for condition in rule.conditions:
        if not condition.field.strip():
            flag(WARNING, "Condition has an empty field name.", condition.id)
        if condition.operator == Operator.BETWEEN:
            value = condition.value
            if not isinstance(value, (list, tuple)) or len(value) != 2:
                flag(ERROR, "'between' needs a [min, max] pair.", condition.id)
            elif to_number(value[0]) > to_number(value[1]):
                flag(ERROR, "'between' bounds are reversed.", condition.id)
            elif any(math.isnan(to_number(bound)) for bound in value):
                flag(ERROR, "'between' bounds must be numeric.", condition.id)
        elif condition.operator == Operator.IN_LIST and not isinstance(condition.value, (list, tuple)):
            flag(ERROR, "'in_list' needs a list value.", condition.id)
        elif condition.operator in (Operator.GREATER_THAN, Operator.LESS_THAN):
            if math.isnan(to_number(condition.value)):
                flag(ERROR, f"'{condition.operator.value}' needs a numeric value.", condition.id)

    schedule = rule.schedule
    if schedule is not None and schedule.enabled:
        try:
            ZoneInfo(schedule.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            flag(ERROR, f"Unknown timezone '{schedule.timezone}'.")
        for label, clock in (("start", schedule.start), ("end", schedule.end)):
            try:
                parse_clock(clock)
            except ValueError:
                flag(ERROR, f"Schedule {label} '{clock}' is not HH:MM.")
        unknown = [day for day in schedule.days if day not in WEEKDAYS]
        if unknown:
            flag(ERROR, f"Unknown schedule days: {', '.join(unknown)}.")
        if schedule.fallback_action is not None and not schedule.fallback_action.destination.strip():
            flag(ERROR, "Fallback action has no destination.")
    return issues


def validate_rules(rules: Sequence[Rule]) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    for rule in rules:
        issues.extend(validate_rule(rule))
    counts = Counter(rule.priority for rule in rules if rule.enabled)
    for rule in rules:
        if rule.enabled and counts[rule.priority] > 1:
            issues.append(
                ValidationIssue(
                    rule.id,
                    WARNING,
                    f"Priority {rule.priority} is shared with another enabled rule; insertion order decides.",
                )
            )
    return issues


def blocking(issues: Sequence[ValidationIssue]) -> List[ValidationIssue]:
    return [issue for issue in issues if issue.severity == ERROR]
