from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from quiz_dashboard.config import PASSING_THRESHOLD
from quiz_dashboard.core.scores import ScoreObj, extract_score, total_score_cell

PASS = "PASS"
FAIL = "FAIL"

# (label, lower bound, upper bound); first bucket is closed, the rest are
# lower-exclusive, so a row at exactly 20/40/60/80 lands in the lower bucket.
HISTOGRAM_BUCKETS = (
    ("0–20%", 0, 20),
    ("21–40%", 20, 40),
    ("41–60%", 40, 60),
    ("61–80%", 60, 80),
    ("81–100%", 80, 100),
)


@dataclass
class AnalyticsSummary:
    total_students: int = 0
    avg: float = 0.0
    min: float = 0.0
    max: float = 0.0
    pass_count: int = 0
    pass_rate: float = 0.0
    detected_max_score: float = 0.0

    @property
    def fail_count(self) -> int:
        return self.total_students - self.pass_count


@dataclass
class HistogramBucket:
    label: str
    lower: float
    upper: float
    count: int


def total_scores(rows: Sequence[Dict[str, Any]]) -> List[ScoreObj]:
    return [extract_score(total_score_cell(r)) for r in rows]


def detect_max_score(parsed: Sequence[ScoreObj]) -> float:
    """
    Denominator for percentages: the largest explicit maximum seen, or the
    largest raw score when no row carries a maximum.
    """
    if not parsed:
        return 0.0
    maxima = [p.max for p in parsed if p.max]
    if maxima:
        return max(maxima)
    return max(p.score for p in parsed)


def percentages(parsed: Sequence[ScoreObj], detected_max_score: float) -> List[float]:
    if detected_max_score <= 0:
        return [0.0] * len(parsed)
    return [p.score / detected_max_score * 100 for p in parsed]


def compute_summary(rows: Sequence[Dict[str, Any]], had_load_error: bool = False) -> AnalyticsSummary:
    """
    Aggregate statistics over the whole response set.

    Returns an all-zero summary when the load failed or there are no rows.
    avg/min/max are percentages of the detected max score.
    """
    if had_load_error or not rows:
        return AnalyticsSummary()

    parsed = total_scores(rows)
    detected = detect_max_score(parsed)
    pcts = percentages(parsed, detected)

    total = len(rows)
    pass_count = sum(1 for p in pcts if p >= PASSING_THRESHOLD)

    return AnalyticsSummary(
        total_students=total,
        avg=sum(pcts) / total,
        min=min(pcts),
        max=max(pcts),
        pass_count=pass_count,
        pass_rate=pass_count / total * 100,
        detected_max_score=detected,
    )


def _bucket_index(pct: float) -> int:
    """Index into HISTOGRAM_BUCKETS, or -1 when pct is outside 0..100."""
    for i, (_, lower, upper) in enumerate(HISTOGRAM_BUCKETS):
        if i == 0:
            if lower <= pct <= upper:
                return i
        elif lower < pct <= upper:
            return i
    return -1


def score_histogram(rows: Sequence[Dict[str, Any]], had_load_error: bool = False) -> List[HistogramBucket]:
    """
    Distribution of per-row percentages over the full response set.

    Each row is measured against its own maximum; rows without one are left
    out of every bucket.
    """
    counts = [0] * len(HISTOGRAM_BUCKETS)

    if not had_load_error:
        for obj in total_scores(rows):
            if not obj.max:
                continue
            idx = _bucket_index(obj.percent)
            if idx >= 0:
                counts[idx] += 1

    return [
        HistogramBucket(label=label, lower=lower, upper=upper, count=counts[i])
        for i, (label, lower, upper) in enumerate(HISTOGRAM_BUCKETS)
    ]


def pass_fail_status(row: Dict[str, Any]) -> str:
    """Per-row status against the row's own maximum (no maximum counts as 0%)."""
    obj = extract_score(total_score_cell(row))
    return PASS if obj.percent >= PASSING_THRESHOLD else FAIL
