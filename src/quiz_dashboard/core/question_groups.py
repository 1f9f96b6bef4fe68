from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from quiz_dashboard.core.text import normalize_key

logger = logging.getLogger(__name__)

SCORE_SUFFIX_RE = re.compile(r"\[score\]$", re.IGNORECASE)
SCORE_SUFFIX_STRIP_RE = re.compile(r"\s*\[score\]$", re.IGNORECASE)
FEEDBACK_SUFFIX_RE = re.compile(r"\[feedback\]$", re.IGNORECASE)


@dataclass(frozen=True)
class QuestionGroup:
    """
    The columns holding one quiz question in the response table.

    base_name       question text as it appears in the header (display)
    normalized_name whitespace-collapsed base_name, the join key to the meta table
    question_key    header of the answer column
    score_key       header of the "<question> [Score]" column
    feedback_key    header of the "<question> [Feedback]" column, if any
    """
    base_name: str
    normalized_name: str
    question_key: str
    score_key: str
    feedback_key: Optional[str] = None


# A strategy takes (header, base_name) and says whether the header matches.
HeaderStrategy = Callable[[str, str], bool]


def _question_exact(header: str, base_name: str) -> bool:
    return header == base_name


def _question_trimmed(header: str, base_name: str) -> bool:
    return header.strip() == base_name.strip()


def _feedback_exact(header: str, base_name: str) -> bool:
    h = header.strip()
    prefix = f"{base_name} "
    return h.startswith(prefix) and h[len(prefix):].lower() == "[feedback]"


def _feedback_contains(header: str, base_name: str) -> bool:
    return base_name in header and bool(FEEDBACK_SUFFIX_RE.search(header.strip()))


# Tried in order; the first strategy with any hit wins, and within a
# strategy the first header in header order wins.
QUESTION_STRATEGIES: Tuple[HeaderStrategy, ...] = (_question_exact, _question_trimmed)
FEEDBACK_STRATEGIES: Tuple[HeaderStrategy, ...] = (_feedback_exact, _feedback_contains)


def is_score_header(header: str) -> bool:
    return bool(SCORE_SUFFIX_RE.search(header.strip()))


def base_name_of(score_header: str) -> str:
    return SCORE_SUFFIX_STRIP_RE.sub("", score_header.rstrip())


def _find_header(
    headers: Sequence[str],
    base_name: str,
    strategies: Sequence[HeaderStrategy],
    exclude: Sequence[str] = (),
) -> Optional[str]:
    for strategy in strategies:
        for h in headers:
            if h in exclude:
                continue
            if strategy(h, base_name):
                return h
    return None


def detect_question_groups(headers: Sequence[str]) -> List[QuestionGroup]:
    """
    Group response headers into (question, score, feedback) triples.

    Every header ending in "[Score]" (any case) starts a group; the question
    column is the header equal to the text before the suffix. Score columns
    with no question column are dropped. Output follows score column order.
    """
    headers = [str(h) for h in headers]
    groups: List[QuestionGroup] = []

    for score_key in headers:
        if not is_score_header(score_key):
            continue

        base_name = base_name_of(score_key)
        question_key = _find_header(headers, base_name, QUESTION_STRATEGIES, exclude=(score_key,))
        if question_key is None:
            logger.debug("Dropping score column %r: no question column for %r", score_key, base_name)
            continue

        feedback_key = _find_header(headers, base_name, FEEDBACK_STRATEGIES)

        groups.append(
            QuestionGroup(
                base_name=base_name,
                normalized_name=normalize_key(base_name),
                question_key=question_key,
                score_key=score_key,
                feedback_key=feedback_key,
            )
        )

    return groups
