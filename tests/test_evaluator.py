import sys
import unittest
from datetime import datetime, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from quiz_redirects.actions import Action, ActionKind
from quiz_redirects.conditions import Condition, Operator, RuleFormatError
from quiz_redirects.evaluator import evaluate, ordered_rules, select_rule
from quiz_redirects.rules import Rule, Schedule, is_triggered


def make_rule(rule_id, priority, conditions=(), enabled=True, destination=None):
    return Rule(
        id=rule_id,
        name=rule_id,
        priority=priority,
        enabled=enabled,
        conditions=list(conditions),
        action=Action(kind=ActionKind.CUSTOM_URL, destination=destination or f"https://example.com/{rule_id}"),
    )


HIGH = Condition("total_score", Operator.GREATER_THAN, 80)
EXPERT = Condition("result_type", Operator.EQUALS, "expert")


class IsTriggeredTests(unittest.TestCase):
    def test_all_conditions_must_match(self):
        rule = make_rule("r", 1, [HIGH, EXPERT])
        self.assertTrue(is_triggered(rule, {"total_score": 90, "result_type": "expert"}))
        self.assertFalse(is_triggered(rule, {"total_score": 90, "result_type": "beginner"}))

    def test_empty_conditions_trigger_unconditionally(self):
        self.assertTrue(is_triggered(make_rule("r", 1), {}))


class EvaluatorTests(unittest.TestCase):
    def test_lower_priority_number_wins(self):
        a = make_rule("a", 2, [HIGH])
        b = make_rule("b", 1, [HIGH])
        self.assertIs(evaluate([a, b], {"total_score": 95}), b.action)

    def test_ties_keep_insertion_order(self):
        first = make_rule("first", 1)
        second = make_rule("second", 1)
        self.assertEqual(select_rule([first, second], {}).id, "first")
        self.assertEqual([r.id for r in ordered_rules([second, first])], ["second", "first"])

    def test_disabled_rules_are_skipped(self):
        disabled = make_rule("off", 1, enabled=False)
        fallback = make_rule("x", 2)
        self.assertIs(evaluate([disabled, fallback], {"total_score": 1}), fallback.action)

    def test_no_trigger_returns_none(self):
        self.assertIsNone(evaluate([make_rule("a", 1, [HIGH])], {"total_score": 10}))
        self.assertIsNone(evaluate([], {"total_score": 10}))

    def test_evaluate_is_repeatable(self):
        rules = [make_rule("a", 2, [HIGH]), make_rule("b", 3)]
        data = {"total_score": 99}
        self.assertIs(evaluate(rules, data), evaluate(rules, data))
        self.assertEqual(data, {"total_score": 99})

    def test_malformed_condition_means_no_redirect(self):
        rule = make_rule("a", 1, [Condition("total_score", Operator.BETWEEN, {"min": 1})])
        self.assertIsNone(evaluate([rule], {"total_score": 5}))


class ScheduleTests(unittest.TestCase):
    def setUp(self):
        self.rule = make_rule("hours", 1)
        self.rule.schedule = Schedule(
            enabled=True,
            timezone="UTC",
            start="09:00",
            end="18:00",
            days=["mon", "tue", "wed", "thu", "fri"],
        )
        self.catch_all = make_rule("later", 2)

    def test_schedule_ignored_without_now(self):
        self.assertEqual(select_rule([self.rule], {}).id, "hours")

    def test_inside_working_hours(self):
        # 2024-01-03 is a Wednesday
        now = datetime(2024, 1, 3, 10, 30, tzinfo=timezone.utc)
        self.assertEqual(select_rule([self.rule, self.catch_all], {}, now=now).id, "hours")

    def test_outside_hours_skips_rule_without_fallback(self):
        now = datetime(2024, 1, 3, 20, 0, tzinfo=timezone.utc)
        self.assertEqual(select_rule([self.rule, self.catch_all], {}, now=now).id, "later")
        saturday = datetime(2024, 1, 6, 10, 0, tzinfo=timezone.utc)
        self.assertEqual(select_rule([self.rule, self.catch_all], {}, now=saturday).id, "later")

    def test_outside_hours_uses_fallback_action(self):
        fallback = Action(kind=ActionKind.CUSTOM_URL, destination="https://example.com/after-hours")
        self.rule.schedule.fallback_action = fallback
        now = datetime(2024, 1, 3, 7, 0, tzinfo=timezone.utc)
        self.assertIs(evaluate([self.rule, self.catch_all], {}, now=now), fallback)

    def test_timezone_shifts_the_window(self):
        self.rule.schedule.timezone = "America/Sao_Paulo"
        # 11:00 UTC is 08:00 in Sao Paulo
        now = datetime(2024, 1, 3, 11, 0, tzinfo=timezone.utc)
        self.assertEqual(select_rule([self.rule, self.catch_all], {}, now=now).id, "later")

    def test_overnight_window(self):
        self.rule.schedule.start = "22:00"
        self.rule.schedule.end = "06:00"
        late = datetime(2024, 1, 3, 23, 0, tzinfo=timezone.utc)
        noon = datetime(2024, 1, 3, 12, 0, tzinfo=timezone.utc)
        self.assertEqual(select_rule([self.rule, self.catch_all], {}, now=late).id, "hours")
        self.assertEqual(select_rule([self.rule, self.catch_all], {}, now=noon).id, "later")

    def test_single_day_string_is_one_day(self):
        schedule = Schedule.from_dict({"enabled": True, "days": "Wednesday"})
        self.assertEqual(schedule.days, ["wed"])
        self.rule.schedule = schedule
        now = datetime(2024, 1, 3, 10, 0, tzinfo=timezone.utc)
        self.assertEqual(select_rule([self.rule, self.catch_all], {}, now=now).id, "hours")

    def test_days_must_be_a_list(self):
        with self.assertRaises(RuleFormatError):
            Schedule.from_dict({"enabled": True, "days": 5})


if __name__ == "__main__":
    unittest.main()
