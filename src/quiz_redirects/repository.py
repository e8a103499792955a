"""Storage seam for a quiz's redirect rules."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Dict, List, Protocol

from .conditions import RuleFormatError
from .rules import Rule, rules_from_dicts, rules_to_dicts


class RuleRepository(Protocol):
    def load(self, quiz_id: str) -> List[Rule]:
        ...

    def save(self, quiz_id: str, rules: List[Rule]) -> None:
        ...


class InMemoryRuleRepository:
    """Keeps deep copies so callers never alias stored rules."""

    def __init__(self) -> None:
        self._rules: Dict[str, List[Rule]] = {}

    def load(self, quiz_id: str) -> List[Rule]:
        return copy.deepcopy(self._rules.get(quiz_id, []))

    def save(self, quiz_id: str, rules: List[Rule]) -> None:
        self._rules[quiz_id] = copy.deepcopy(list(rules))


class JsonFileRuleRepository:
    """One ``redirect_rules_<quiz_id>.json`` document per quiz."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def path_for(self, quiz_id: str) -> Path:
        path = (self.root / f"redirect_rules_{quiz_id}.json").resolve()
        if path.parent != self.root:
            raise ValueError(f"Quiz id escapes rules directory: {quiz_id}")
        return path

    def load(self, quiz_id: str) -> List[Rule]:
        path = self.path_for(quiz_id)
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise RuleFormatError(f"Rules file for quiz {quiz_id} is not valid JSON: {exc}") from exc
        if not isinstance(data, list):
            raise RuleFormatError(f"Rules file for quiz {quiz_id} must hold a list.")
        return rules_from_dicts(data)

    def save(self, quiz_id: str, rules: List[Rule]) -> None:
        path = self.path_for(quiz_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(rules_to_dicts(rules), indent=2), encoding="utf-8")
        tmp_path.replace(path)
