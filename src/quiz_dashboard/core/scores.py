from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from quiz_dashboard.core.text import cell_text

# "7/10", "7.5 / 10", "Score: 3/5"
FRACTION_RE = re.compile(r"(\d+(?:\.\d+)?|\.\d+)\s*/\s*(\d+(?:\.\d+)?|\.\d+)")

# Header spellings seen in the response exports, first present wins
TOTAL_SCORE_KEYS = ("Total score", "Total Score", "TotalScore")


@dataclass(frozen=True)
class ScoreObj:
    score: float
    max: Optional[float]

    @property
    def percent(self) -> float:
        """Percentage against the cell's own maximum, 0 when there is none."""
        if not self.max:
            return 0.0
        return self.score / self.max * 100


NO_SCORE = ScoreObj(score=0.0, max=0.0)


def _to_number(text: str) -> Optional[float]:
    try:
        value = float(text)
    except (TypeError, ValueError):
        return None
    # float() accepts "nan"/"inf"; those are not scores
    if value != value or value in (float("inf"), float("-inf")):
        return None
    return value


def extract_score(cell: Any) -> ScoreObj:
    """
    Parse a score cell.

      - ""           -> ScoreObj(0, 0)
      - "7/10"       -> ScoreObj(7, 10)
      - "5"          -> ScoreObj(5, None)
      - "N/A-text"   -> ScoreObj(0, 0)

    Unparsable text is not an error; it is reported as "no score".
    """
    text = cell_text(cell).strip()
    if not text:
        return NO_SCORE

    m = FRACTION_RE.search(text)
    if m:
        return ScoreObj(score=float(m.group(1)), max=float(m.group(2)))

    value = _to_number(text)
    if value is not None:
        return ScoreObj(score=value, max=None)

    return NO_SCORE


def total_score_cell(row: Dict[str, Any]) -> str:
    """Return the row's total-score cell, tolerating header spelling variants."""
    for key in TOTAL_SCORE_KEYS:
        value = cell_text(row.get(key)).strip()
        if value:
            return value
    return ""
