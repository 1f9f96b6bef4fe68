from __future__ import annotations

import os
from pathlib import Path

# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------

# Root of the project (repo root)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Local copy of the exports, laid out as data/<location>/<month>/level<N>_response.csv
DATA_DIR = PROJECT_ROOT / "data"

# ---------------------------------------------------------------------------
# App identity
# ---------------------------------------------------------------------------

APP_NAME = "Quiz Visualizer"
APP_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Source configuration
#
# QUIZ_DATA_BASE may be an http(s) URL (the static host serving the exports)
# or a local directory. Each selection resolves to two files:
#   {base}/{location}/{month}/level{level}_response.csv
#   {base}/{location}/{month}/meta_level{level}.csv
# ---------------------------------------------------------------------------

QUIZ_DATA_BASE = os.getenv("QUIZ_DATA_BASE", str(DATA_DIR)).strip()

HTTP_TIMEOUT_SECONDS = int(os.getenv("QUIZ_HTTP_TIMEOUT_SECONDS", "30"))

LOG_LEVEL = os.getenv("QUIZ_DASHBOARD_LOG_LEVEL", "INFO").strip().upper()

# ---------------------------------------------------------------------------
# Selections
# ---------------------------------------------------------------------------

# level -> label shown in the header
LEVEL_CONFIG = {
    0: "PB",
    1: "Level 1",
    2: "Level 2",
    3: "Level 3",
    4: "Level 4",
}
DEFAULT_LEVEL = 2

LOCATIONS = ["AliJiwani", "Gulshan-e-Noor"]
DEFAULT_LOCATION = "AliJiwani"

MONTHS = ["November25", "December25"]

# Month selected when the user switches to a location
RECENT_MONTH_PER_LOCATION = {
    "AliJiwani": "November25",
    "Gulshan-e-Noor": "November25",
}

# ---------------------------------------------------------------------------
# Scoring / table
# ---------------------------------------------------------------------------

PASSING_THRESHOLD = 50  # percentage

DEFAULT_PAGE_SIZE = 12
PAGE_SIZE_OPTIONS = [12, 24, 48, 96]


def level_label(level: int) -> str:
    return LEVEL_CONFIG.get(int(level), f"Level {level}")


def default_month_for(location: str) -> str:
    return RECENT_MONTH_PER_LOCATION.get(location, MONTHS[0])
