import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from quiz_redirects.conditions import RuleFormatError
from quiz_redirects.manager import RedirectRuleManager, RuleNotFoundError
from quiz_redirects.repository import InMemoryRuleRepository
from quiz_redirects.rules import Rule
from quiz_redirects.validation import RuleValidationError


class RedirectRuleManagerTests(unittest.TestCase):
    def setUp(self):
        self.events = []
        self.repo = InMemoryRuleRepository()
        self.manager = RedirectRuleManager(
            self.repo,
            activity_log=lambda quiz_id, action, payload: self.events.append((quiz_id, action, payload)),
        )

    def test_create_rule_defaults(self):
        first = self.manager.create_rule("quiz")
        second = self.manager.create_rule("quiz", name="Second")
        self.assertEqual(first.priority, 1)
        self.assertEqual(second.priority, 2)
        self.assertEqual(first.conditions[0].field, "total_score")
        self.assertEqual(first.conditions[0].value, 50)
        self.assertEqual([r.id for r in self.manager.list_rules("quiz")], [first.id, second.id])
        self.assertEqual(self.events[0][:2], ("quiz", "rule_created"))

    def test_update_rule_merges_action(self):
        rule = self.manager.create_rule("quiz")
        updated = self.manager.update_rule(
            "quiz",
            rule.id,
            {"name": "Sales", "action": {"destination": "+55 11 90000-0000"}, "analytics": {"total_triggers": 99}},
        )
        self.assertEqual(updated.name, "Sales")
        self.assertEqual(updated.action.destination, "+55 11 90000-0000")
        self.assertEqual(updated.action.message_template, rule.action.message_template)
        self.assertEqual(updated.analytics.total_triggers, 0)

    def test_update_rule_rejects_bad_operator(self):
        rule = self.manager.create_rule("quiz")
        with self.assertRaises(RuleFormatError):
            self.manager.update_rule("quiz", rule.id, {"conditions": [{"field": "x", "operator": "regex"}]})

    def test_unknown_ids_raise_not_found(self):
        rule = self.manager.create_rule("quiz")
        with self.assertRaises(RuleNotFoundError):
            self.manager.delete_rule("quiz", "missing")
        with self.assertRaises(RuleNotFoundError):
            self.manager.remove_condition("quiz", rule.id, "missing")
        with self.assertRaises(RuleNotFoundError):
            self.manager.apply_template("quiz", "missing")

    def test_condition_lifecycle(self):
        rule = self.manager.create_rule("quiz")
        added = self.manager.add_condition(
            "quiz", rule.id, {"field": "device", "operator": "equals", "value": "mobile"}
        )
        self.assertTrue(added.id)
        changed = self.manager.update_condition("quiz", rule.id, added.id, {"value": "desktop"})
        self.assertEqual(changed.value, "desktop")
        self.manager.remove_condition("quiz", rule.id, added.id)
        self.assertEqual(len(self.manager.get_rule("quiz", rule.id).conditions), 1)

    def test_delete_rule_is_hard_delete(self):
        rule = self.manager.create_rule("quiz")
        self.manager.delete_rule("quiz", rule.id)
        self.assertEqual(self.manager.list_rules("quiz"), [])

    def test_apply_template_and_evaluate(self):
        self.manager.apply_template("quiz", "high_score_sales")
        self.manager.apply_template("quiz", "marketing_nurture")
        decision = self.manager.evaluate("quiz", {"total_score": 92})
        self.assertTrue(decision.url.startswith("https://wa.me/your_business_id?text="))
        self.assertIn("92%20points", decision.url)
        self.assertIn("source=quiz_high_score", decision.url)
        self.assertEqual(decision.delay_ms, 2000)

        nurture = self.manager.evaluate("quiz", {"total_score": 50})
        self.assertTrue(nurture.url.startswith("https://wa.me/5511888888888?text="))
        self.assertIsNone(self.manager.evaluate("quiz", {"total_score": 10}))

    def test_template_rules_get_fresh_ids(self):
        a = self.manager.apply_template("quiz", "lead_qualification")
        b = self.manager.apply_template("quiz", "lead_qualification")
        self.assertNotEqual(a.id, b.id)
        self.assertNotEqual(a.conditions[0].id, b.conditions[0].id)

    def test_record_redirect_persists_stats(self):
        rule = self.manager.apply_template("quiz", "support_needed")
        self.manager.record_redirect("quiz", rule.id, True, device="mobile")
        self.manager.record_redirect("quiz", rule.id, False)
        stored = self.manager.get_rule("quiz", rule.id).analytics
        self.assertEqual(stored.total_triggers, 2)
        self.assertEqual(stored.conversion_rate, 50.0)
        summary = self.manager.analytics_summary("quiz")
        self.assertEqual(summary.total_triggers, 2)
        self.assertEqual(summary.active_rules, 1)
        self.assertEqual(self.manager.reset_stats("quiz", rule.id).total_triggers, 0)

    def test_save_rules_blocks_errors_but_keeps_warnings(self):
        rule = self.manager.create_rule("quiz")
        with self.assertRaises(RuleValidationError) as ctx:
            self.manager.save_rules("quiz", self.manager.list_rules("quiz"))
        self.assertEqual(ctx.exception.issues[0].rule_id, rule.id)
        self.assertEqual(self.events[-1][1], "validation_failed")

        fixed = self.manager.list_rules("quiz")
        fixed[0].action.destination = "+5511999999999"
        fixed[0].conditions = []
        warnings = self.manager.save_rules("quiz", fixed)
        self.assertEqual([w.severity for w in warnings], ["warning"])

    def test_test_rule_runs_scenarios_even_when_disabled(self):
        rule = self.manager.apply_template("quiz", "high_score_sales")
        self.manager.update_rule("quiz", rule.id, {"enabled": False})
        results = self.manager.test_rule("quiz", rule.id)
        self.assertEqual([r.triggered for r in results], [True, False, False])
        self.assertIsNotNone(results[0].url)
        self.assertIsNone(results[1].url)

    def test_export_import_round_trip(self):
        self.manager.apply_template("quiz", "support_needed")
        exported = self.manager.export_config("quiz")
        exported["templates"] = [
            {
                "id": "custom_vip",
                "name": "VIP",
                "category": "sales",
                "conditions": [{"field": "vip", "operator": "equals", "value": True}],
                "action": {"kind": "custom_url", "destination": "https://example.com/vip"},
            },
            {"id": "high_score_sales", "name": "dupe", "action": {"kind": "custom_url"}},
        ]
        rules = self.manager.import_config("copy", exported)
        self.assertEqual([r.to_dict() for r in rules], exported["rules"])
        self.assertEqual([r.name for r in self.manager.list_rules("copy")], ["Support - Help Needed"])
        template_ids = [t.id for t in self.manager.list_templates("copy")]
        self.assertEqual(template_ids.count("high_score_sales"), 1)
        self.assertIn("custom_vip", template_ids)
        vip = self.manager.apply_template("copy", "custom_vip")
        self.assertIsInstance(vip, Rule)

    def test_import_rejects_non_list_rules(self):
        with self.assertRaises(RuleFormatError):
            self.manager.import_config("quiz", {"rules": {"a": 1}})

    def test_bad_template_aborts_import_before_saving_rules(self):
        self.manager.apply_template("quiz", "support_needed")
        rules = self.manager.export_config("quiz")["rules"]
        for templates in (
            [{"name": "no id", "action": {"kind": "custom_url", "destination": "https://example.com"}}],
            [{"id": "no_action", "name": "No action"}],
            ["not-a-template"],
            {"id": "custom_vip"},
        ):
            with self.subTest(templates=templates):
                with self.assertRaises(RuleFormatError):
                    self.manager.import_config("copy", {"rules": rules, "templates": templates})
                self.assertEqual(self.manager.list_rules("copy"), [])

    def test_reimporting_a_template_replaces_it(self):
        template = {
            "id": "custom_vip",
            "name": "VIP",
            "action": {"kind": "custom_url", "destination": "https://example.com/vip"},
        }
        self.manager.import_config("quiz", {"templates": [template]})
        self.manager.import_config("quiz", {"templates": [dict(template, name="VIP v2")]})
        custom = [t for t in self.manager.list_templates("quiz") if t.id == "custom_vip"]
        self.assertEqual([t.name for t in custom], ["VIP v2"])
        self.assertEqual(len(self.manager.export_config("quiz")["templates"]), 1)

    def test_update_rule_ignores_explicit_nulls(self):
        rule = self.manager.apply_template("quiz", "high_score_sales")
        updated = self.manager.update_rule(
            "quiz", rule.id, {"conditions": None, "enabled": None, "name": None, "action": None}
        )
        self.assertEqual(updated.to_dict(), rule.to_dict())
        self.assertIsNone(self.manager.evaluate("quiz", {"total_score": 10}))

    def test_test_rule_reports_expectations(self):
        rule = self.manager.apply_template("quiz", "high_score_sales")
        results = self.manager.test_rule("quiz", rule.id)
        self.assertEqual([r.should_trigger for r in results], [True, False, False])
        self.assertTrue(all(r.passed for r in results))
        self.assertEqual(results[0].to_dict()["passed"], True)

        support = self.manager.apply_template("quiz", "support_needed")
        results = self.manager.test_rule("quiz", support.id)
        self.assertEqual([r.should_trigger for r in results], [False, False, True])
        self.assertTrue(all(r.passed for r in results))

        # score > 50 also fires for the needs-help scenario (score 60)
        draft = self.manager.create_rule("quiz")
        results = self.manager.test_rule("quiz", draft.id)
        self.assertEqual([r.triggered for r in results], [True, False, True])
        self.assertEqual([r.passed for r in results], [True, True, False])


if __name__ == "__main__":
    unittest.main()
