"""Rule repository backed by a PostgREST-style ``redirect_rules`` table."""

from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from typing import Dict, List, Optional

from .conditions import RuleFormatError
from .rules import Rule, rules_from_dicts, rules_to_dicts


class StoreError(RuntimeError):
    pass


class RestRuleRepository:
    """Each quiz is one row: ``{quiz_id, rules}`` where ``rules`` is a JSON array.

    Writes are upserts on ``quiz_id``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        table: str = "redirect_rules",
        timeout_seconds: int = 20,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.table = table
        self.timeout_seconds = timeout_seconds

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _request(self, method: str, path: str, payload: Optional[object] = None, extra_headers: Optional[Dict[str, str]] = None):
        url = f"{self.base_url}{path}"
        body = None
        headers = self._headers()
        if extra_headers:
            headers.update(extra_headers)
        if payload is not None:
            body = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"
        request = urllib.request.Request(url=url, data=body, method=method, headers=headers)
        try:
            with urllib.request.urlopen(request, timeout=self.timeout_seconds) as response:
                raw = response.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8")
            raise StoreError(
                f"{method} {path} failed ({exc.code}): {detail or exc.reason}"
            ) from exc
        except urllib.error.URLError as exc:
            raise StoreError(f"{method} {path} failed: {exc.reason}") from exc
        if not raw:
            return None
        return json.loads(raw)

    def load(self, quiz_id: str) -> List[Rule]:
        query = urllib.parse.urlencode({"quiz_id": f"eq.{quiz_id}", "select": "rules"})
        rows = self._request("GET", f"/{self.table}?{query}") or []
        if not rows:
            return []
        rules = rows[0].get("rules") or []
        if not isinstance(rules, list):
            raise RuleFormatError(f"Stored rules for quiz {quiz_id} must be a list.")
        return rules_from_dicts(rules)

    def save(self, quiz_id: str, rules: List[Rule]) -> None:
        query = urllib.parse.urlencode({"on_conflict": "quiz_id"})
        self._request(
            "POST",
            f"/{self.table}?{query}",
            [{"quiz_id": quiz_id, "rules": rules_to_dicts(rules)}],
            extra_headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )
