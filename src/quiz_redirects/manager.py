"""Per-quiz rule management tying the engine to a repository."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from .actions import Action, ActionKind
from .analytics import AnalyticsSummary, record_redirect, reset_stats, summarize
from .conditions import Condition, ConditionType, Operator, RuleFormatError, to_number
from .evaluator import select
from .repository import RuleRepository
from .resolver import resolve
from .rules import Rule, RuleStats
from .templates import (
    BUILTIN_TEMPLATE_IDS,
    DEFAULT_TEMPLATES,
    RedirectTemplate,
    find_template,
    new_id,
    rule_from_template,
)
from .validation import RuleValidationError, ValidationIssue, blocking, validate_rules

ActivityLog = Callable[[str, str, Dict[str, Any]], None]

DEFAULT_MESSAGE = "Hi! Thanks for taking our quiz."

TEST_SCENARIOS = (
    ("High scorer", {"total_score": 95, "result_type": "expert", "device": "mobile"}),
    ("Low scorer", {"total_score": 25, "result_type": "beginner", "device": "desktop"}),
    ("Needs help outcome", {"total_score": 60, "result_type": "needs_help", "device": "mobile"}),
)


def _expects_high_scorer(condition: Condition) -> bool:
    return (
        condition.type is ConditionType.SCORE
        and condition.operator is Operator.GREATER_THAN
        and 95 > to_number(condition.value)
    )


def _expects_low_scorer(condition: Condition) -> bool:
    return (
        condition.type is ConditionType.SCORE
        and condition.operator is Operator.LESS_THAN
        and 25 < to_number(condition.value)
    )


def _expects_needs_help(condition: Condition) -> bool:
    return condition.type is ConditionType.OUTCOME and condition.value == "needs_help"


# Which condition shapes each canned scenario is meant to exercise, by position.
_SCENARIO_EXPECTATIONS = (_expects_high_scorer, _expects_low_scorer, _expects_needs_help)

_EDITABLE_RULE_FIELDS = ("name", "description", "enabled", "priority", "action", "schedule", "conditions")


class RuleNotFoundError(KeyError):
    pass


@dataclass(frozen=True)
class RedirectDecision:
    rule_id: str
    url: str
    message: str
    delay_ms: Optional[int]
    show_confirmation: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "url": self.url,
            "message": self.message,
            "delay_ms": self.delay_ms,
            "show_confirmation": self.show_confirmation,
        }


@dataclass(frozen=True)
class ScenarioResult:
    name: str
    data: Dict[str, Any]
    triggered: bool
    url: Optional[str]
    should_trigger: bool = False

    @property
    def passed(self) -> bool:
        return self.triggered == self.should_trigger

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "data": dict(self.data),
            "triggered": self.triggered,
            "should_trigger": self.should_trigger,
            "passed": self.passed,
            "url": self.url,
        }


class RedirectRuleManager:
    def __init__(
        self,
        repository: RuleRepository,
        *,
        activity_log: Optional[ActivityLog] = None,
    ) -> None:
        self.repository = repository
        self.activity_log = activity_log
        self._custom_templates: Dict[str, List[RedirectTemplate]] = {}

    # ─── Rules ───

    def list_rules(self, quiz_id: str) -> List[Rule]:
        return self.repository.load(quiz_id)

    def get_rule(self, quiz_id: str, rule_id: str) -> Rule:
        return self._find(self.repository.load(quiz_id), rule_id)

    def create_rule(self, quiz_id: str, name: str = "New rule") -> Rule:
        rules = self.repository.load(quiz_id)
        rule = Rule(
            id=new_id("rule"),
            name=name,
            priority=len(rules) + 1,
            conditions=[self._default_condition(50)],
            action=Action(
                kind=ActionKind.DIRECT_MESSAGE,
                message_template=DEFAULT_MESSAGE,
                delay_ms=2000,
            ),
        )
        rules.append(rule)
        self._persist(quiz_id, rules, "rule_created", {"rule_id": rule.id})
        return rule

    def update_rule(self, quiz_id: str, rule_id: str, updates: Mapping[str, Any]) -> Rule:
        rules = self.repository.load(quiz_id)
        index = self._index(rules, rule_id)
        document = rules[index].to_dict()
        for key in _EDITABLE_RULE_FIELDS:
            if key not in updates:
                continue
            # An explicit null only clears the schedule; other fields keep their value.
            if updates[key] is None and key != "schedule":
                continue
            if key == "action":
                document["action"] = {**document["action"], **updates["action"]}
            else:
                document[key] = updates[key]
        rules[index] = Rule.from_dict(document)
        self._persist(quiz_id, rules, "rule_updated", {"rule_id": rule_id, "fields": sorted(updates)})
        return rules[index]

    def delete_rule(self, quiz_id: str, rule_id: str) -> None:
        rules = self.repository.load(quiz_id)
        del rules[self._index(rules, rule_id)]
        self._persist(quiz_id, rules, "rule_deleted", {"rule_id": rule_id})

    # ─── Conditions ───

    def add_condition(self, quiz_id: str, rule_id: str, condition: Optional[Mapping[str, Any]] = None) -> Condition:
        rules = self.repository.load(quiz_id)
        rule = self._find(rules, rule_id)
        if condition is None:
            created = self._default_condition(0)
        else:
            created = Condition.from_dict({"type": "custom", **condition})
            created.id = created.id or new_id("condition")
        rule.conditions.append(created)
        self._persist(quiz_id, rules, "condition_added", {"rule_id": rule_id, "condition_id": created.id})
        return created

    def update_condition(
        self, quiz_id: str, rule_id: str, condition_id: str, updates: Mapping[str, Any]
    ) -> Condition:
        rules = self.repository.load(quiz_id)
        rule = self._find(rules, rule_id)
        for index, condition in enumerate(rule.conditions):
            if condition.id == condition_id:
                merged = {**condition.to_dict(), **updates, "id": condition_id}
                rule.conditions[index] = Condition.from_dict(merged)
                self._persist(
                    quiz_id, rules, "condition_updated", {"rule_id": rule_id, "condition_id": condition_id}
                )
                return rule.conditions[index]
        raise RuleNotFoundError(f"Condition {condition_id} not found in rule {rule_id}")

    def remove_condition(self, quiz_id: str, rule_id: str, condition_id: str) -> None:
        rules = self.repository.load(quiz_id)
        rule = self._find(rules, rule_id)
        remaining = [c for c in rule.conditions if c.id != condition_id]
        if len(remaining) == len(rule.conditions):
            raise RuleNotFoundError(f"Condition {condition_id} not found in rule {rule_id}")
        rule.conditions = remaining
        self._persist(quiz_id, rules, "condition_removed", {"rule_id": rule_id, "condition_id": condition_id})

    # ─── Templates ───

    def list_templates(self, quiz_id: Optional[str] = None) -> List[RedirectTemplate]:
        custom = self._custom_templates.get(quiz_id, []) if quiz_id else []
        return [*DEFAULT_TEMPLATES, *custom]

    def apply_template(self, quiz_id: str, template_id: str) -> Rule:
        template = find_template(template_id, self._custom_templates.get(quiz_id))
        if template is None:
            raise RuleNotFoundError(f"Template {template_id} not found")
        rules = self.repository.load(quiz_id)
        rule = rule_from_template(template, priority=len(rules) + 1)
        rules.append(rule)
        self._persist(quiz_id, rules, "template_applied", {"rule_id": rule.id, "template_id": template_id})
        return rule

    # ─── Save / validate ───

    def validate(self, quiz_id: str) -> List[ValidationIssue]:
        return validate_rules(self.repository.load(quiz_id))

    def save_rules(self, quiz_id: str, rules: List[Rule]) -> List[ValidationIssue]:
        """Replace every rule of a quiz. Returns the non-blocking issues."""
        issues = validate_rules(rules)
        errors = blocking(issues)
        if errors:
            self._log(quiz_id, "validation_failed", {"issues": [issue.to_dict() for issue in errors]})
            raise RuleValidationError(errors)
        self._persist(quiz_id, rules, "rules_saved", {"count": len(rules), "warnings": len(issues)})
        return issues

    # ─── Evaluation & analytics ───

    def evaluate(
        self,
        quiz_id: str,
        result_data: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> Optional[RedirectDecision]:
        selected = select(self.repository.load(quiz_id), result_data, now=now)
        if selected is None:
            self._log(quiz_id, "evaluated", {"rule_id": None})
            return None
        rule, action = selected
        resolved = resolve(action, result_data)
        self._log(quiz_id, "evaluated", {"rule_id": rule.id, "url": resolved.url})
        return RedirectDecision(
            rule_id=rule.id,
            url=resolved.url,
            message=resolved.message,
            delay_ms=action.delay_ms,
            show_confirmation=action.show_confirmation,
        )

    def record_redirect(
        self,
        quiz_id: str,
        rule_id: str,
        success: bool,
        *,
        device: Optional[str] = None,
        location: Optional[str] = None,
        response_time_ms: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> RuleStats:
        rules = self.repository.load(quiz_id)
        rule = self._find(rules, rule_id)
        record_redirect(
            rule.analytics,
            success,
            device=device,
            location=location,
            response_time_ms=response_time_ms,
            now=now,
        )
        self._persist(quiz_id, rules, "redirect_recorded", {"rule_id": rule_id, "success": success})
        return rule.analytics

    def reset_stats(self, quiz_id: str, rule_id: str) -> RuleStats:
        rules = self.repository.load(quiz_id)
        rule = self._find(rules, rule_id)
        reset_stats(rule.analytics)
        self._persist(quiz_id, rules, "stats_reset", {"rule_id": rule_id})
        return rule.analytics

    def analytics_summary(self, quiz_id: str) -> AnalyticsSummary:
        return summarize(self.repository.load(quiz_id))

    def test_rule(self, quiz_id: str, rule_id: str) -> List[ScenarioResult]:
        """Run one rule against canned quiz results, ignoring enabled/priority."""
        rule = self.get_rule(quiz_id, rule_id)
        results = []
        for (name, data), expects in zip(TEST_SCENARIOS, _SCENARIO_EXPECTATIONS):
            selected = select([_enabled_copy(rule)], data)
            url = resolve(selected[1], data).url if selected else None
            results.append(
                ScenarioResult(
                    name=name,
                    data=dict(data),
                    triggered=selected is not None,
                    url=url,
                    should_trigger=any(expects(condition) for condition in rule.conditions),
                )
            )
        return results

    # ─── Export / import ───

    def export_config(self, quiz_id: str) -> Dict[str, Any]:
        return {
            "quiz_id": quiz_id,
            "rules": [rule.to_dict() for rule in self.repository.load(quiz_id)],
            "templates": [t.to_dict() for t in self._custom_templates.get(quiz_id, [])],
            "exported_at": datetime.now(timezone.utc).isoformat(),
        }

    def import_config(self, quiz_id: str, document: Mapping[str, Any]) -> List[Rule]:
        if not isinstance(document, Mapping):
            raise RuleFormatError("Import document must be an object.")
        raw_templates = document.get("templates") or []
        if not isinstance(raw_templates, list):
            raise RuleFormatError("'templates' must be a list.")
        templates = []
        for item in raw_templates:
            if not isinstance(item, Mapping):
                raise RuleFormatError("Each template must be an object.")
            if item.get("id") not in BUILTIN_TEMPLATE_IDS:
                templates.append(RedirectTemplate.from_dict(item))

        rules = self.repository.load(quiz_id)
        if document.get("rules") is not None:
            if not isinstance(document["rules"], list):
                raise RuleFormatError("'rules' must be a list.")
            rules = [Rule.from_dict(item) for item in document["rules"]]
            self.save_rules(quiz_id, rules)

        if templates:
            imported = {template.id for template in templates}
            kept = [t for t in self._custom_templates.get(quiz_id, []) if t.id not in imported]
            self._custom_templates[quiz_id] = kept + templates
        self._log(quiz_id, "config_imported", {"rules": len(rules), "templates": len(templates)})
        return rules

    # ─── Helpers ───

    @staticmethod
    def _default_condition(threshold: int) -> Condition:
        return Condition(
            "total_score",
            Operator.GREATER_THAN,
            threshold,
            id=new_id("condition"),
            type=ConditionType.SCORE,
            weight=1,
        )

    @staticmethod
    def _index(rules: List[Rule], rule_id: str) -> int:
        for index, rule in enumerate(rules):
            if rule.id == rule_id:
                return index
        raise RuleNotFoundError(f"Rule {rule_id} not found")

    def _find(self, rules: List[Rule], rule_id: str) -> Rule:
        return rules[self._index(rules, rule_id)]

    def _persist(self, quiz_id: str, rules: List[Rule], event: str, payload: Dict[str, Any]) -> None:
        self.repository.save(quiz_id, rules)
        self._log(quiz_id, event, payload)

    def _log(self, quiz_id: str, action: str, payload: Dict[str, Any]) -> None:
        if self.activity_log is not None:
            self.activity_log(quiz_id, action, payload)


def _enabled_copy(rule: Rule) -> Rule:
    return Rule(
        id=rule.id,
        name=rule.name,
        action=rule.action,
        conditions=rule.conditions,
        enabled=True,
        priority=rule.priority,
        schedule=rule.schedule,
    )
