#!/usr/bin/env python3
"""Small CLI demo: build rules for a quiz and evaluate a few results."""

from __future__ import annotations

import argparse
import json
import tempfile

from quiz_redirects.manager import RedirectRuleManager
from quiz_redirects.repository import JsonFileRuleRepository


def main() -> None:
    parser = argparse.ArgumentParser(description="Evaluate redirect rules for sample quiz results.")
    parser.add_argument("--rules-dir", default=tempfile.mkdtemp(prefix="redirect_rules_"))
    parser.add_argument("--quiz-id", default="demo")
    parser.add_argument("--score", type=int, action="append", help="Score(s) to evaluate.")
    args = parser.parse_args()

    manager = RedirectRuleManager(JsonFileRuleRepository(args.rules_dir))
    if not manager.list_rules(args.quiz_id):
        manager.apply_template(args.quiz_id, "high_score_sales")
        manager.apply_template(args.quiz_id, "marketing_nurture")
    print("Rules:", ", ".join(f"{r.priority}:{r.name}" for r in manager.list_rules(args.quiz_id)))

    for score in args.score or [95, 60, 10]:
        decision = manager.evaluate(args.quiz_id, {"total_score": score})
        print(f"score={score}:", json.dumps(decision.to_dict() if decision else None))
        if decision:
            manager.record_redirect(args.quiz_id, decision.rule_id, success=True, device="desktop")

    print("Summary:", json.dumps(manager.analytics_summary(args.quiz_id).to_dict()))
    print("Rules stored under:", args.rules_dir)


if __name__ == "__main__":
    main()
