from __future__ import annotations

import pytest

from quiz_dashboard.core.metadata_loader import (
    Classification,
    MetaUnavailable,
    build_meta_map,
    classify_by_keyword,
    classify_group,
    parse_meta_text,
    reconcile,
    split_groups,
)
from quiz_dashboard.core.question_groups import QuestionGroup, detect_question_groups


def _group(base_name: str) -> QuestionGroup:
    return detect_question_groups([base_name, f"{base_name} [Score]"])[0]


def test_meta_section_wins_over_keywords():
    group = _group("Favourite  colour")
    meta_map = build_meta_map([{"Question": "Favourite colour", "Section": "Personal Info"}])

    assert classify_group(group, meta_map) is Classification.PERSONAL_INFO


def test_meta_other_section_is_quiz_even_with_keyword():
    group = _group("Name the largest planet")
    meta_map = build_meta_map([{"Question": "Name the largest planet", "Section": "Astronomy"}])

    assert classify_group(group, meta_map) is Classification.QUIZ


def test_fallback_keyword_when_no_meta():
    assert classify_group(_group("Your Email"), {}) is Classification.PERSONAL_INFO
    assert classify_group(_group("What is 2+2?"), {}) is Classification.QUIZ


@pytest.mark.parametrize("name", ["Full Name", "EMAIL", "Identity Number", "Contact", "Mobile no."])
def test_classify_by_keyword_matches(name):
    assert classify_by_keyword(name) is Classification.PERSONAL_INFO


def test_build_meta_map_last_write_wins_and_skips_blank_questions():
    rows = [
        {"Question": "Q  1", "Section": "First"},
        {"Question": "", "Section": "Ignored"},
        {"Question": "Q 1\n", "Section": "Second"},
    ]

    meta_map = build_meta_map(rows)

    assert list(meta_map) == ["Q 1"]
    assert meta_map["Q 1"]["Section"] == "Second"


def test_split_groups_keeps_detection_order():
    groups = [_group("Name"), _group("Q1"), _group("Email"), _group("Q2")]

    info, quiz = split_groups(groups, {})

    assert [g.base_name for g in info] == ["Name", "Email"]
    assert [g.base_name for g in quiz] == ["Q1", "Q2"]


def test_parse_meta_text(meta_csv):
    rows = parse_meta_text(meta_csv)

    assert len(rows) == 3
    assert rows[1]["Question"] == "What is 2+2?"
    assert rows[1]["CorrectAnswer"] == "4"


@pytest.mark.parametrize(
    "text",
    [
        None,
        "",
        "<!DOCTYPE html><html><body>Not found</body></html>",
        "<html><head></head></html>",
        "just some words",
        "Section,Type\nA,B\n",
    ],
)
def test_parse_meta_text_rejects_unusable_text(text):
    with pytest.raises(MetaUnavailable):
        parse_meta_text(text)


def test_reconcile_joins_meta_across_whitespace(meta_csv):
    headers = ["Name", "Name [Score]", "Capital of\nFrance", "Capital of\nFrance [Score]", "Email", "Email [Score]"]
    meta_rows = parse_meta_text(meta_csv)

    dataset = reconcile([{"Name": "Ali"}], headers, meta_rows)

    assert [g.base_name for g in dataset.info_groups] == ["Name", "Email"]
    assert [g.normalized_name for g in dataset.quiz_groups] == ["Capital of France"]
    assert dataset.meta_for(dataset.quiz_groups[0])["CorrectAnswer"] == "Paris"
    assert dataset.meta_for(dataset.info_groups[1]) is None
