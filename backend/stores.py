from __future__ import annotations

import sys
from typing import Optional

from . import config
from .activity_logger import log_event


def _ensure_src_on_path() -> None:
    """Ensure src/ is importable for local runs that skip installation."""
    src_root = config.REPO_ROOT / "src"
    if str(src_root) not in sys.path:
        sys.path.insert(0, str(src_root))


_ensure_src_on_path()

from quiz_redirects.manager import RedirectRuleManager
from quiz_redirects.repository import JsonFileRuleRepository, RuleRepository
from quiz_redirects.rest_repository import RestRuleRepository


def build_repository(store_url: Optional[str] = None) -> RuleRepository:
    url = config.STORE_URL if store_url is None else store_url
    if url:
        return RestRuleRepository(
            url,
            api_key=config.STORE_KEY or None,
            table=config.STORE_TABLE,
            timeout_seconds=config.STORE_TIMEOUT_SECONDS,
        )
    return JsonFileRuleRepository(config.RULES_DIR)


def build_manager(repository: Optional[RuleRepository] = None) -> RedirectRuleManager:
    return RedirectRuleManager(repository or build_repository(), activity_log=log_event)
