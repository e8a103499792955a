"""Condition-based redirect rules for quiz results."""

from .actions import Action, ActionKind
from .conditions import Condition, Operator, RuleFormatError, matches
from .evaluator import evaluate, select_rule
from .manager import RedirectRuleManager, RuleNotFoundError
from .resolver import ResolvedRedirect, render_template, resolve
from .rules import Rule, RuleStats, Schedule, is_triggered

__all__ = [
    "Action",
    "ActionKind",
    "Condition",
    "Operator",
    "RedirectRuleManager",
    "ResolvedRedirect",
    "Rule",
    "RuleFormatError",
    "RuleNotFoundError",
    "RuleStats",
    "Schedule",
    "evaluate",
    "is_triggered",
    "matches",
    "render_template",
    "resolve",
    "select_rule",
]
