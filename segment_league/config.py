"""Central configuration for the weekly segment league engine.

All values are constants imported by the rest of the package. Adjust as needed
for your environment. Values can be overridden through environment variables
(optionally via a local `.env`).
"""

from __future__ import annotations

import os

from dotenv import load_dotenv


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# Load .env from the current directory or any parent folder.
load_dotenv()


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------
# SQLAlchemy URL for the league database. SQLite is the default backend.
DATABASE_URL = os.getenv("SEGMENT_LEAGUE_DATABASE_URL", "sqlite:///segment_league.db")

# Echo SQL statements to the log (very noisy).
DATABASE_ECHO = _env_bool("SEGMENT_LEAGUE_DB_ECHO", False)

# Attempts per week when a commit loses a race on the same week/participant.
COMMIT_MAX_RETRIES = _env_int("SEGMENT_LEAGUE_COMMIT_MAX_RETRIES", 3)

# How long a SQLite connection waits for another writer before giving up.
SQLITE_BUSY_TIMEOUT_MS = _env_int("SEGMENT_LEAGUE_SQLITE_BUSY_TIMEOUT_MS", 5000)


# ---------------------------------------------------------------------------
# Input/Output
# ---------------------------------------------------------------------------
# Workbook holding Seasons / Segments / Weeks / Participants sheets.
INPUT_FILE = os.getenv("SEGMENT_LEAGUE_INPUT_FILE", "league_config.xlsx")
OUTPUT_FILE = os.getenv("SEGMENT_LEAGUE_OUTPUT_FILE", "league_results")

# Append _YYYYMMDD_HHMMSS to the output name when True.
OUTPUT_FILE_TIMESTAMP_ENABLED = _env_bool("OUTPUT_FILE_TIMESTAMP_ENABLED", True)


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------
# Points added before the week multiplier when any effort in the counted
# activity was a personal record.
PR_BONUS_POINTS = _env_int("PR_BONUS_POINTS", 1)

# A week on a segment steeper than this average grade (percent) is a hill
# climb; its winner earns a polka dot win.
HILL_CLIMB_MIN_GRADE = 2.0

# Base URL used to build activity links in hydrated leaderboards.
ACTIVITY_URL_TEMPLATE = "https://www.strava.com/activities/{activity_id}"


# ---------------------------------------------------------------------------
# Excel formatting
# ---------------------------------------------------------------------------
# Keep leaderboard sheets in a fixed column order.
LEADERBOARD_ENFORCE_COLUMN_ORDER = True
LEADERBOARD_COLUMN_ORDER = [
    "Rank",
    "Participant",
    "Time (sec)",
    "Time (h:mm:ss)",
    "Laps",
    "Base Points",
    "PR Bonus",
    "Multiplier",
    "Total Points",
    "Device",
]

# Write a leaderboard sheet even when a week has no results.
LEADERBOARD_CREATE_EMPTY_WEEK_SHEETS = True

# Automatically size columns after writing each sheet (openpyxl only).
EXCEL_AUTOSIZE_COLUMNS = True
EXCEL_AUTOSIZE_MAX_WIDTH = 50  # characters
EXCEL_AUTOSIZE_MIN_WIDTH = 6  # characters
EXCEL_AUTOSIZE_PADDING = 2  # extra characters added to the detected max
EXCEL_AUTOSIZE_MAX_ROWS = (
    5000  # skip autosize for very large sheets (performance guard)
)
