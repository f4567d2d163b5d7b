"""
Global configuration for the matchday backend.
Values come from the environment where a deployment needs to override them;
everything else is a domain default shared by services and the API.
"""
from __future__ import annotations

import os

# ---------- Runtime settings ----------

# sqlite file for the storage collaborator; persistence.db falls back to data/matchday.db
DB_PATH = os.environ.get("MATCHDAY_DB_PATH", "")

CORS_ORIGINS = [
    o.strip()
    for o in os.environ.get(
        "MATCHDAY_CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173",
    ).split(",")
    if o.strip()
]

# Seconds of real time per clock tick. Only tests and demos should change this.
CLOCK_INTERVAL_SECONDS = float(os.environ.get("MATCHDAY_CLOCK_INTERVAL", "1.0"))

# While the clock runs, live state is written to storage every this many match seconds.
# Every other mutation (pause included) is written immediately.
LIVE_SAVE_INTERVAL_SECONDS = int(os.environ.get("MATCHDAY_LIVE_SAVE_INTERVAL", "15"))

LOG_LEVEL = os.environ.get("MATCHDAY_LOG_LEVEL", "INFO").upper()

# ---------- Competition defaults ----------

DEFAULT_POINTS_FOR_WIN = 3
DEFAULT_POINTS_FOR_TIE_BREAK_WIN = 2  # stored with the competition, not used by standings
DRAW_POINTS = 1

# Fixture dates advance one week per round
ROUND_INTERVAL_DAYS = 7
