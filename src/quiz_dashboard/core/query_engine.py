from __future__ import annotations

import math
from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import Any, Dict, FrozenSet, List, Optional, Sequence

import logging

from quiz_dashboard.config import DEFAULT_PAGE_SIZE
from quiz_dashboard.core.analytics import pass_fail_status
from quiz_dashboard.core.scores import TOTAL_SCORE_KEYS, extract_score
from quiz_dashboard.core.text import cell_text

logger = logging.getLogger(__name__)

# Synthetic column holding PASS/FAIL, computed from the total score
STATUS_KEY = "__pass_fail__"

SORT_ASC = "asc"
SORT_DESC = "desc"

# Columns compared by parsed score rather than raw text
NUMERIC_KEYS: FrozenSet[str] = frozenset(TOTAL_SCORE_KEYS)

# Columns shown in the main table: (label, key, numeric)
MAIN_TABLE_COLUMNS = [
    ("Username", "Username", False),
    ("Total Score", "Total score", True),
    ("Status", STATUS_KEY, False),
    ("Identity Number", "Identity Number (SO Number)", False),
    ("Contact Number", "Contact Number / Mobile Number", False),
]


class QueryEngineError(Exception):
    """Custom exception for invalid query parameters."""


@dataclass(frozen=True)
class QueryParameters:
    """
    Everything the table view needs to filter, order and page the rows.

    page is 1-indexed and is not clamped here; use clamp_page() first if the
    caller wants to stay in range.
    """
    search_text: str = ""
    sort_key: Optional[str] = None
    sort_dir: str = SORT_DESC
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    numeric_keys: FrozenSet[str] = field(default=NUMERIC_KEYS)


@dataclass
class QueryResult:
    params: QueryParameters
    page_rows: List[Dict[str, Any]]
    total_pages: int
    # Filtered and sorted, not paginated (what export writes out)
    filtered_rows: List[Dict[str, Any]]

    @property
    def total_matches(self) -> int:
        return len(self.filtered_rows)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def row_value(row: Dict[str, Any], key: str) -> str:
    if key == STATUS_KEY:
        return pass_fail_status(row)
    return cell_text(row.get(key))


def _coerce_number(text: str) -> Optional[float]:
    # Blank cells sort as 0, the same as a numeric zero
    if not text.strip():
        return 0.0
    try:
        value = float(text)
    except ValueError:
        return None
    if value != value:
        return None
    return value


def _compare_text(a: str, b: str) -> int:
    ka = (a.casefold(), a)
    kb = (b.casefold(), b)
    return (ka > kb) - (ka < kb)


def _compare_cells(a: str, b: str, numeric: bool) -> int:
    if numeric:
        na: Optional[float] = extract_score(a).score
        nb: Optional[float] = extract_score(b).score
    else:
        na = _coerce_number(a)
        nb = _coerce_number(b)

    if na is not None and nb is not None:
        return (na > nb) - (na < nb)
    return _compare_text(a, b)


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

def filter_rows(rows: Sequence[Dict[str, Any]], search_text: str) -> List[Dict[str, Any]]:
    needle = (search_text or "").strip().lower()
    if not needle:
        return list(rows)
    return [
        r for r in rows
        if any(needle in cell_text(v).lower() for v in r.values())
    ]


def sort_rows(
    rows: Sequence[Dict[str, Any]],
    sort_key: Optional[str],
    sort_dir: str = SORT_DESC,
    numeric_keys: FrozenSet[str] = NUMERIC_KEYS,
) -> List[Dict[str, Any]]:
    """
    Stable sort by one column. Rows with equal values keep their relative order
    in both directions.
    """
    if sort_dir not in (SORT_ASC, SORT_DESC):
        raise QueryEngineError(f"sort_dir must be '{SORT_ASC}' or '{SORT_DESC}', got {sort_dir!r}.")
    if not sort_key:
        return list(rows)

    numeric = sort_key in numeric_keys
    sign = 1 if sort_dir == SORT_ASC else -1

    def cmp(a: Dict[str, Any], b: Dict[str, Any]) -> int:
        return sign * _compare_cells(row_value(a, sort_key), row_value(b, sort_key), numeric)

    return sorted(rows, key=cmp_to_key(cmp))


def total_pages_for(count: int, page_size: int) -> int:
    return max(1, math.ceil(count / page_size))


def paginate(rows: Sequence[Dict[str, Any]], page: int, page_size: int) -> List[Dict[str, Any]]:
    if page < 1:
        return []
    start = (page - 1) * page_size
    return list(rows[start:start + page_size])


def clamp_page(page: int, total_pages: int) -> int:
    return min(max(1, int(page)), max(1, int(total_pages)))


def run_query(rows: Sequence[Dict[str, Any]], params: QueryParameters) -> QueryResult:
    if params.page_size <= 0:
        raise QueryEngineError(f"page_size must be positive, got {params.page_size}.")

    filtered = filter_rows(rows, params.search_text)
    ordered = sort_rows(filtered, params.sort_key, params.sort_dir, params.numeric_keys)
    total_pages = total_pages_for(len(ordered), params.page_size)

    logger.debug(
        "Query search=%r sort=%s/%s page=%s: %s of %s rows match",
        params.search_text, params.sort_key, params.sort_dir, params.page, len(ordered), len(rows),
    )

    return QueryResult(
        params=params,
        page_rows=paginate(ordered, params.page, params.page_size),
        total_pages=total_pages,
        filtered_rows=ordered,
    )

