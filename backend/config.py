import os
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
BACKEND_ROOT = REPO_ROOT / "backend"

# Storage
RULES_DIR = Path(os.environ.get("REDIRECT_RULES_DIR", BACKEND_ROOT / "data" / "rules"))
STORE_URL = os.environ.get("REDIRECT_STORE_URL", "")
STORE_KEY = os.environ.get("REDIRECT_STORE_KEY", "")
STORE_TABLE = os.environ.get("REDIRECT_STORE_TABLE", "redirect_rules")
STORE_TIMEOUT_SECONDS = 20

# Activity log
LOG_DIR = Path(os.environ.get("REDIRECT_LOG_DIR", BACKEND_ROOT / "logs"))
LOG_FILE = LOG_DIR / "activity.log"

# Request limits
MAX_RULES_PER_QUIZ = 50
MAX_CONDITIONS_PER_RULE = 20
