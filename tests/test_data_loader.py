from __future__ import annotations

import logging

import pytest
import requests

from quiz_dashboard.core import data_loader
from quiz_dashboard.core.data_loader import (
    EmptyDataset,
    LoadRequest,
    SourceUnavailable,
    default_fetcher,
    directory_fetcher,
    http_fetcher,
    load_dataset,
    parse_response_text,
    timed_load_dataset,
)


def test_request_paths(request_nov):
    assert request_nov.response_path() == "AliJiwani/November25/level2_response.csv"
    assert request_nov.meta_path() == "AliJiwani/November25/meta_level2.csv"


def test_parse_response_text_drops_blank_rows(response_csv):
    headers, rows = parse_response_text(response_csv)

    assert len(rows) == 2
    assert headers[:3] == ["Timestamp", "Username", "Total score"]
    assert "What is  2+2? [Score]" in headers
    assert rows[0]["Name [Score]"] == ""


@pytest.mark.parametrize(
    "text",
    [
        None,
        "<!doctype html><html><body>index</body></html>",
        "  <HTML><body>oops</body></HTML>",
        "no delimiters in here",
    ],
)
def test_parse_response_text_source_unavailable(text):
    with pytest.raises(SourceUnavailable):
        parse_response_text(text)


def test_parse_response_text_empty_dataset():
    with pytest.raises(EmptyDataset):
        parse_response_text("Username,Total score\n,\n  ,  \n")


def test_load_dataset_from_directory(data_dir, request_nov):
    dataset = load_dataset(request_nov, fetch=directory_fetcher(data_dir))

    assert len(dataset.rows) == 2
    assert len(dataset.meta_rows) == 3
    assert [g.base_name for g in dataset.info_groups] == ["Name", "Email Address"]
    assert [g.normalized_name for g in dataset.quiz_groups] == ["What is 2+2?", "Capital of France"]
    assert dataset.quiz_groups[0].feedback_key == "What is  2+2? [Feedback]"


def test_missing_meta_degrades_to_empty(data_dir, request_nov, caplog):
    (data_dir / request_nov.meta_path()).unlink()

    with caplog.at_level(logging.WARNING, logger="quiz_dashboard.core.data_loader"):
        dataset = load_dataset(request_nov, fetch=directory_fetcher(data_dir))

    assert dataset.meta_rows == []
    assert dataset.meta_map == {}
    # keyword fallback still finds the personal info questions
    assert [g.base_name for g in dataset.info_groups] == ["Name", "Email Address"]
    assert "proceeding without metadata" in caplog.text


def test_html_meta_degrades_to_empty(data_dir, request_nov):
    (data_dir / request_nov.meta_path()).write_text("<!DOCTYPE html><html></html>", encoding="utf-8")

    dataset = load_dataset(request_nov, fetch=directory_fetcher(data_dir))

    assert dataset.meta_rows == []


def test_missing_response_is_source_unavailable(tmp_path, request_nov):
    with pytest.raises(SourceUnavailable):
        load_dataset(request_nov, fetch=directory_fetcher(tmp_path))


def test_meta_not_fetched_when_response_fails(request_nov):
    fetched = []

    def fetch(path):
        fetched.append(path)
        return None

    with pytest.raises(SourceUnavailable):
        load_dataset(request_nov, fetch=fetch)

    assert fetched == [request_nov.response_path()]


def test_default_fetcher_picks_transport(tmp_path):
    assert default_fetcher(str(tmp_path)).__qualname__.startswith("directory_fetcher")
    assert default_fetcher("https://example.org/data").__qualname__.startswith("http_fetcher")


class _FakeResponse:
    def __init__(self, status_code, text=""):
        self.status_code = status_code
        self.text = text
        self.encoding = None

    @property
    def ok(self):
        return self.status_code < 400


class _FakeSession:
    def __init__(self, responses):
        self.responses = responses
        self.urls = []

    def get(self, url, timeout=None):
        self.urls.append(url)
        result = self.responses[url]
        if isinstance(result, Exception):
            raise result
        return result


def test_http_fetcher(monkeypatch, response_csv, meta_csv, request_nov):
    base = "https://quiz.example.org/"
    session = _FakeSession(
        {
            f"https://quiz.example.org/{request_nov.response_path()}": _FakeResponse(200, response_csv),
            f"https://quiz.example.org/{request_nov.meta_path()}": _FakeResponse(404),
        }
    )
    monkeypatch.setattr(data_loader, "_get_session", lambda: session)

    dataset = load_dataset(request_nov, fetch=http_fetcher(base))

    assert len(dataset.rows) == 2
    assert dataset.meta_rows == []
    assert len(session.urls) == 2


def test_http_fetcher_errors(monkeypatch, request_nov):
    fetch = http_fetcher("http://quiz.example.org")
    url = f"http://quiz.example.org/{request_nov.response_path()}"

    monkeypatch.setattr(data_loader, "_get_session", lambda: _FakeSession({url: _FakeResponse(500)}))
    with pytest.raises(SourceUnavailable):
        fetch(request_nov.response_path())

    monkeypatch.setattr(
        data_loader,
        "_get_session",
        lambda: _FakeSession({url: requests.ConnectionError("refused")}),
    )
    with pytest.raises(SourceUnavailable):
        fetch(request_nov.response_path())


def test_load_request_is_hashable_tag():
    a = LoadRequest(level=1, location="AliJiwani", month="November25")
    b = LoadRequest(level=1, location="AliJiwani", month="November25")

    assert a == b
    assert len({a, b}) == 1


def test_trailing_delimiter_does_not_shift_columns():
    headers, rows = parse_response_text("Username,Total score\nA,3/10,\nB,8/10,\n")

    assert headers == ["Username", "Total score"]
    assert [r["Username"] for r in rows] == ["A", "B"]
    assert [r["Total score"] for r in rows] == ["3/10", "8/10"]


def test_ragged_row_is_truncated_and_logged(caplog):
    text = "Username,Total score\nA,3/10\nB,8/10,extra,more\nC,5/10\n"

    with caplog.at_level(logging.WARNING, logger="quiz_dashboard.core.metadata_loader"):
        headers, rows = parse_response_text(text)

    assert len(rows) == 3
    assert rows[1] == {"Username": "B", "Total score": "8/10"}
    assert rows[2]["Username"] == "C"
    assert any("extra" in rec.getMessage() for rec in caplog.records)


def test_timed_load_dataset(data_dir, request_nov):
    dataset, elapsed = timed_load_dataset(request_nov, fetch=directory_fetcher(data_dir))

    assert len(dataset.rows) == 2
    assert elapsed >= 0
