import json
from datetime import datetime, timezone
from typing import Any, Dict

from . import config


def ensure_log_dir() -> None:
    config.LOG_DIR.mkdir(parents=True, exist_ok=True)


def log_event(quiz_id: str, action: str, payload: Dict[str, Any]) -> None:
    """
    Append a single-line JSON log entry with the quiz it concerns.
    """
    ensure_log_dir()
    entry = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "quiz_id": quiz_id,
        "action": action,
        "payload": payload,
    }
    with config.LOG_FILE.open("a", encoding="utf-8") as f:
        f.write(json.dumps(entry, ensure_ascii=True, default=str) + "\n")
