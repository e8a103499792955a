import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from quiz_redirects.actions import Action, ActionKind
from quiz_redirects.conditions import Condition, Operator
from quiz_redirects.rules import Rule, Schedule
from quiz_redirects.validation import ERROR, WARNING, blocking, validate_rule, validate_rules


def rule_with(*conditions, destination="+5511999999999", priority=1, rule_id="r1"):
    return Rule(
        id=rule_id,
        name=rule_id,
        priority=priority,
        conditions=list(conditions),
        action=Action(kind=ActionKind.DIRECT_MESSAGE, destination=destination, message_template="Hi"),
    )


def messages(issues, severity):
    return [issue.message for issue in issues if issue.severity == severity]


class ValidationTests(unittest.TestCase):
    def test_valid_rule_has_no_issues(self):
        rule = rule_with(Condition("total_score", Operator.GREATER_THAN, 50, id="c1"))
        self.assertEqual(validate_rule(rule), [])

    def test_empty_conditions_is_only_a_warning(self):
        issues = validate_rule(rule_with())
        self.assertEqual(blocking(issues), [])
        self.assertEqual(len(messages(issues, WARNING)), 1)

    def test_missing_destination_is_an_error(self):
        issues = validate_rule(rule_with(Condition("x", Operator.EQUALS, 1), destination="  "))
        self.assertIn("Missing phone number for direct_message.", messages(issues, ERROR))

    def test_operator_value_shapes(self):
        rule = rule_with(
            Condition("a", Operator.BETWEEN, 5, id="between"),
            Condition("b", Operator.BETWEEN, [10, 1], id="reversed"),
            Condition("c", Operator.IN_LIST, "x", id="in_list"),
            Condition("d", Operator.GREATER_THAN, "many", id="gt"),
        )
        flagged = {issue.condition_id for issue in blocking(validate_rule(rule))}
        self.assertEqual(flagged, {"between", "reversed", "in_list", "gt"})

    def test_schedule_problems(self):
        rule = rule_with(Condition("x", Operator.EQUALS, 1))
        rule.schedule = Schedule(enabled=True, timezone="Mars/Olympus", start="9am", days=["mon", "xyz"])
        self.assertEqual(len(blocking(validate_rule(rule))), 3)

    def test_duplicate_priorities_warn(self):
        rules = [
            rule_with(Condition("x", Operator.EQUALS, 1), rule_id="a", priority=1),
            rule_with(Condition("x", Operator.EQUALS, 2), rule_id="b", priority=1),
        ]
        issues = validate_rules(rules)
        self.assertEqual(blocking(issues), [])
        self.assertEqual(sorted(issue.rule_id for issue in issues), ["a", "b"])


if __name__ == "__main__":
    unittest.main()
