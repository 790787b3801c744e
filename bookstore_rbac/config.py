"""
Centralised configuration constants and environment helpers.
"""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# ── Data store ───────────────────────────────────────────────────────
DEFAULT_DB_URI = "sqlite:///bookstore.db"

# ── Policy matrix ────────────────────────────────────────────────────
DEFAULT_POLICY_PATH = Path(__file__).resolve().parent / "policies" / "bookstore.json"
RBAC_POLICY_PATH = os.getenv("RBAC_POLICY_PATH", str(DEFAULT_POLICY_PATH))

# ── Preview limits ───────────────────────────────────────────────────
MAX_PREVIEW_ROWS = 20

# ── API server ───────────────────────────────────────────────────────
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
TOKEN_EXPIRY_HOURS = 24
MAX_RESULTS_RETURN = 1000


def get_env(name: str, default: str = None) -> str:
    """Return an environment variable or exit with an error message."""
    value = os.getenv(name) or default
    if not value:
        print(f"ERROR: env var {name} is not set", file=sys.stderr)
        sys.exit(1)
    return value
