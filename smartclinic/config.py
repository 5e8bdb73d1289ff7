"""
Centralised configuration constants and environment helpers.
"""

import os
import sys

from dotenv import load_dotenv

load_dotenv()

# ── Sessions ─────────────────────────────────────────────────────────
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
TOKEN_EXPIRY_HOURS = 24 * 7
TOKEN_ALGORITHM = "HS256"

# ── Pagination ───────────────────────────────────────────────────────
DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100

# ── Pediatric queries ────────────────────────────────────────────────
UPCOMING_VACCINATION_DAYS = 30
MAX_UPCOMING_VACCINATION_DAYS = 365
GROWTH_STATS_NOTE_LIMIT = 10


def get_env(name: str) -> str:
    """Return an environment variable or exit with an error message."""
    value = os.getenv(name)
    if not value:
        print(f"ERROR: env var {name} is not set", file=sys.stderr)
        sys.exit(1)
    return value
