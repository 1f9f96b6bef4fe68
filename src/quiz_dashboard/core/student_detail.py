from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from quiz_dashboard.core.analytics import pass_fail_status
from quiz_dashboard.core.metadata_loader import (
    CORRECT_ANSWER_COL,
    SECTION_COL,
    TYPE_COL,
    ReconciledDataset,
)
from quiz_dashboard.core.scores import total_score_cell
from quiz_dashboard.core.text import cell_text

# Fixed identity columns some exports carry outside any question group
PROFILE_COLUMNS = [
    ("Name", "Name"),
    ("Email", "Email"),
    ("Identity Number", "Identity Number (SO Number)"),
    ("Contact", "Contact Number / Mobile Number"),
]

OPEN_ENDED = "OpenEnded"
NO_FEEDBACK = "--"


@dataclass
class QuizAnswer:
    """
    One quiz question as answered by one student, with meta annotations.
    """
    question: str
    response: str
    score: str
    feedback: Optional[str]
    question_type: Optional[str]
    section: Optional[str]
    correct_answer: Optional[str]


@dataclass
class StudentDetail:
    username: str
    submitted: str
    total_score: str
    status: str
    profile: List[Tuple[str, str]]
    personal_info: List[Tuple[str, str]]
    answers: List[QuizAnswer]


def _optional(value: Any) -> Optional[str]:
    text = cell_text(value).strip()
    return text or None


def build_student_detail(row: Dict[str, Any], dataset: ReconciledDataset) -> StudentDetail:
    """
    Assemble what the detail view shows for one response row.

    Feedback of "--" counts as no feedback; a correct answer of "OpenEnded"
    is not shown.
    """
    profile = [(label, cell_text(row.get(key))) for label, key in PROFILE_COLUMNS if key in row]

    personal_info = [(g.base_name, cell_text(row.get(g.question_key))) for g in dataset.info_groups]

    answers: List[QuizAnswer] = []
    for g in dataset.quiz_groups:
        meta = dataset.meta_for(g) or {}

        feedback = _optional(row.get(g.feedback_key)) if g.feedback_key else None
        if feedback == NO_FEEDBACK:
            feedback = None

        correct = _optional(meta.get(CORRECT_ANSWER_COL))
        if correct == OPEN_ENDED:
            correct = None

        answers.append(
            QuizAnswer(
                question=g.base_name,
                response=cell_text(row.get(g.question_key)),
                score=cell_text(row.get(g.score_key)),
                feedback=feedback,
                question_type=_optional(meta.get(TYPE_COL)),
                section=_optional(meta.get(SECTION_COL)),
                correct_answer=correct,
            )
        )

    return StudentDetail(
        username=cell_text(row.get("Username")) or "Student Details",
        submitted=cell_text(row.get("Timestamp")),
        total_score=total_score_cell(row),
        status=pass_fail_status(row),
        profile=profile,
        personal_info=personal_info,
        answers=answers,
    )
