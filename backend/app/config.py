import os
from pathlib import Path

# data/ lives next to the backend/ directory (repo root)
DATA_DIR = Path(__file__).parent.parent.parent / "data"

DATABASE_URL = os.getenv("BUDGETSPACE_DATABASE_URL", f"sqlite:///{DATA_DIR / 'budgetspace.db'}")

LOG_LEVEL = os.getenv("BUDGETSPACE_LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("BUDGETSPACE_CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if o.strip()
]

# Longest analytics window accepted, in calendar days.
MAX_SUMMARY_DAYS = int(os.getenv("BUDGETSPACE_MAX_SUMMARY_DAYS", "731"))

RUN_MIGRATIONS = os.getenv("BUDGETSPACE_RUN_MIGRATIONS", "true").lower() in ("1", "true", "yes")


def _parse_token_table(raw: str) -> dict[str, str]:
    """``"tok1=alice,tok2=bob"`` → ``{"tok1": "alice", "tok2": "bob"}``."""
    table: dict[str, str] = {}
    for pair in raw.split(","):
        token, sep, user_id = pair.strip().partition("=")
        if sep and token.strip() and user_id.strip():
            table[token.strip()] = user_id.strip()
    return table


API_TOKENS = _parse_token_table(os.getenv("BUDGETSPACE_API_TOKENS", ""))
