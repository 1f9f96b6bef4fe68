from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from quiz_dashboard.core.question_groups import QuestionGroup, detect_question_groups
from quiz_dashboard.core.text import normalize_key

logger = logging.getLogger(__name__)

# Meta table columns
QUESTION_COL = "Question"
SECTION_COL = "Section"
TYPE_COL = "Type"
CORRECT_ANSWER_COL = "CorrectAnswer"

PERSONAL_INFO_SECTION = "Personal Info"

# Used only when a question has no meta row
PERSONAL_INFO_KEYWORDS_RE = re.compile(r"name|email|identity|contact|mobile", re.IGNORECASE)

Row = Dict[str, str]
MetaRow = Dict[str, str]


class MetaUnavailable(Exception):
    """Raised when the meta text is missing, HTML-shaped or cannot be parsed."""


class Classification(Enum):
    PERSONAL_INFO = "personal_info"
    QUIZ = "quiz"


@dataclass
class ReconciledDataset:
    """
    Everything derived from one successful load.

    Rebuilt from scratch on every load; nothing here is updated in place.
    """
    rows: List[Row]
    headers: List[str]
    meta_rows: List[MetaRow]
    groups: List[QuestionGroup]
    meta_map: Dict[str, MetaRow]
    info_groups: List[QuestionGroup] = field(default_factory=list)
    quiz_groups: List[QuestionGroup] = field(default_factory=list)

    def meta_for(self, group: QuestionGroup) -> Optional[MetaRow]:
        return self.meta_map.get(group.normalized_name)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def looks_like_html(text: str) -> bool:
    """A static host answers a missing file with its index page."""
    head = (text or "").lstrip()[:20].lower()
    return head.startswith("<!doctype html") or head.startswith("<html")


def looks_like_csv(text: str) -> bool:
    text = text or ""
    return "," in text or text.strip().startswith('"')


def read_csv_text(text: str) -> Tuple[List[str], List[Row]]:
    """
    Tokenize delimited text into (headers, rows).

    Every cell is read as text; missing cells become "". Header names are
    kept verbatim (including stray whitespace) since question matching
    depends on them.

    Rows with more fields than the header are truncated to the header width
    instead of failing the whole table; dropped text is logged. A trailing
    delimiter never turns the first column into an index.
    """
    headers = [str(c) for c in pd.read_csv(io.StringIO(text), nrows=0, dtype=str, index_col=False).columns]
    width = len(headers)

    def _truncate(bad_line: List[str]) -> List[str]:
        extra = [f for f in bad_line[width:] if str(f).strip()]
        if extra:
            logger.warning("Row has %s fields, expected %s; dropping extra values %r", len(bad_line), width, extra)
        return bad_line[:width]

    # Read the header line as data so the first data row can never become an
    # implicit index, and longer rows reach the bad-line callable.
    df = pd.read_csv(
        io.StringIO(text),
        header=None,
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        engine="python",
        on_bad_lines=_truncate,
    ).fillna("")
    df = df.iloc[1:]
    df.columns = headers
    rows: List[Row] = df.to_dict(orient="records")
    return headers, rows


def parse_meta_text(text: Optional[str]) -> List[MetaRow]:
    """
    Parse the meta export into a list of row mappings.

    Expected columns:
      - 'Question'       question text (whitespace may differ from the response headers)
      - 'Section'        optional, 'Personal Info' marks identity/contact questions
      - 'Type'           optional, question type label
      - 'CorrectAnswer'  optional, 'OpenEnded' for free-text questions
    """
    if not text or not text.strip():
        raise MetaUnavailable("Meta text is empty.")
    if looks_like_html(text):
        raise MetaUnavailable("Got an HTML page instead of the meta CSV.")
    if not looks_like_csv(text):
        raise MetaUnavailable("Meta text does not look like CSV.")

    try:
        headers, rows = read_csv_text(text)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise MetaUnavailable(f"Meta CSV could not be parsed: {exc}") from exc

    if QUESTION_COL not in headers:
        raise MetaUnavailable(
            f"Meta CSV does not contain the expected '{QUESTION_COL}' column. Present columns: {headers}"
        )
    return rows


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------

def build_meta_map(meta_rows: Sequence[MetaRow]) -> Dict[str, MetaRow]:
    """
    Index meta rows by normalized question text.

    Duplicate question text is not deduplicated upstream; the last row wins.
    """
    out: Dict[str, MetaRow] = {}
    for m in meta_rows:
        key = normalize_key(m.get(QUESTION_COL))
        if not key:
            continue
        out[key] = m
    return out


def classify_by_keyword(base_name: str) -> Classification:
    """Fallback for questions the meta table does not describe."""
    if PERSONAL_INFO_KEYWORDS_RE.search(base_name or ""):
        return Classification.PERSONAL_INFO
    return Classification.QUIZ


def classify_group(group: QuestionGroup, meta_map: Dict[str, MetaRow]) -> Classification:
    meta = meta_map.get(group.normalized_name)

    if meta is not None:
        if meta.get(SECTION_COL) == PERSONAL_INFO_SECTION:
            return Classification.PERSONAL_INFO
        return Classification.QUIZ

    # Fallback: no meta row for this question
    return classify_by_keyword(group.base_name)


def split_groups(
    groups: Sequence[QuestionGroup],
    meta_map: Dict[str, MetaRow],
) -> Tuple[List[QuestionGroup], List[QuestionGroup]]:
    """Return (info_groups, quiz_groups), each in detection order."""
    info: List[QuestionGroup] = []
    quiz: List[QuestionGroup] = []
    for g in groups:
        if classify_group(g, meta_map) is Classification.PERSONAL_INFO:
            info.append(g)
        else:
            quiz.append(g)
    return info, quiz


def reconcile(
    rows: Sequence[Row],
    headers: Sequence[str],
    meta_rows: Sequence[MetaRow],
) -> ReconciledDataset:
    groups = detect_question_groups(headers)
    meta_map = build_meta_map(meta_rows)
    info, quiz = split_groups(groups, meta_map)

    matched = sum(1 for g in groups if g.normalized_name in meta_map)
    logger.info(
        "Reconciled %s question groups (%s with meta, %s personal info, %s quiz).",
        len(groups), matched, len(info), len(quiz),
    )

    return ReconciledDataset(
        rows=list(rows),
        headers=list(headers),
        meta_rows=list(meta_rows),
        groups=groups,
        meta_map=meta_map,
        info_groups=info,
        quiz_groups=quiz,
    )
