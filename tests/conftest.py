from __future__ import annotations

from pathlib import Path

import pytest

from quiz_dashboard.core.data_loader import LoadRequest

RESPONSE_CSV = (
    'Timestamp,Username,Total score,Name,Name [Score],Email Address,Email Address [Score],'
    '"What is  2+2?",What is  2+2? [Score],What is  2+2? [Feedback],'
    '"Capital of\nFrance","Capital of\nFrance [Score]"\n'
    '2025/11/01 10:00,ali,3/10,Ali,,ali@example.com,,4,1/1,--,Paris,1/1\n'
    '2025/11/01 10:05,sara,8/10,Sara,,sara@example.com,,5,0/1,Close but no,paris,1/1\n'
    ',,,,,,,,,,,\n'
)

META_CSV = (
    "Question,Section,Type,CorrectAnswer\n"
    "Name,Personal Info,Text,OpenEnded\n"
    '"What is 2+2?",Arithmetic,MCQ,4\n'
    '"Capital of France",Geography,Short,Paris\n'
)


@pytest.fixture
def request_nov() -> LoadRequest:
    return LoadRequest(level=2, location="AliJiwani", month="November25")


@pytest.fixture
def data_dir(tmp_path: Path, request_nov: LoadRequest) -> Path:
    folder = tmp_path / request_nov.location / request_nov.month
    folder.mkdir(parents=True)
    (folder / f"level{request_nov.level}_response.csv").write_text(RESPONSE_CSV, encoding="utf-8")
    (folder / f"meta_level{request_nov.level}.csv").write_text(META_CSV, encoding="utf-8")
    return tmp_path


@pytest.fixture
def score_rows():
    return [
        {"Username": "A", "Total score": "3/10"},
        {"Username": "B", "Total score": "8/10"},
    ]


@pytest.fixture
def response_csv() -> str:
    return RESPONSE_CSV


@pytest.fixture
def meta_csv() -> str:
    return META_CSV
