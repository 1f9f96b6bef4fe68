from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, List

import pandas as pd
import streamlit as st

from quiz_dashboard.config import (
    APP_NAME,
    APP_VERSION,
    DEFAULT_LEVEL,
    DEFAULT_LOCATION,
    DEFAULT_PAGE_SIZE,
    LEVEL_CONFIG,
    LOCATIONS,
    MONTHS,
    PAGE_SIZE_OPTIONS,
    PASSING_THRESHOLD,
    default_month_for,
    level_label,
)
from quiz_dashboard.core.analytics import (
    AnalyticsSummary,
    compute_summary,
    score_histogram,
)
from quiz_dashboard.core.data_loader import LoadRequest, timed_load_dataset
from quiz_dashboard.core.export import export_filename, export_rows_to_csv
from quiz_dashboard.core.load_cycle import LoadCycle, LoadState, run_load
from quiz_dashboard.core.query_engine import (
    MAIN_TABLE_COLUMNS,
    SORT_ASC,
    SORT_DESC,
    QueryParameters,
    QueryResult,
    clamp_page,
    row_value,
    run_query,
)
from quiz_dashboard.core.student_detail import build_student_detail

logger = logging.getLogger(__name__)

NO_SORT = "(original order)"


def _pretty_number(n: Any) -> str:
    try:
        num = float(n)
    except (TypeError, ValueError):
        return "-" if n in (None, "") else str(n)
    return f"{round(num, 2):g}"


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

def _init_state() -> None:
    ss = st.session_state
    ss.setdefault("cycle", LoadCycle())
    ss.setdefault("level", DEFAULT_LEVEL)
    ss.setdefault("location", DEFAULT_LOCATION)
    ss.setdefault("month", default_month_for(DEFAULT_LOCATION))
    ss.setdefault("search", "")
    ss.setdefault("page", 1)


def _on_location_change() -> None:
    st.session_state["month"] = default_month_for(st.session_state["location"])


def _reset_view() -> None:
    st.session_state["search"] = ""
    st.session_state["page"] = 1


def _load_and_log(request: LoadRequest):
    dataset, elapsed = timed_load_dataset(request)
    logger.info(
        "Loaded %s/%s/%s: %s rows in %.2fs",
        request.location, request.month, request.level, len(dataset.rows), elapsed,
    )
    return dataset


def _ensure_loaded(request: LoadRequest) -> LoadCycle:
    cycle: LoadCycle = st.session_state["cycle"]
    if cycle.request == request and cycle.state is not LoadState.LOADING:
        return cycle

    _reset_view()
    with st.spinner(f"Loading {request.location} / {request.month} / {level_label(request.level)}..."):
        run_load(cycle, request, _load_and_log)
    return cycle


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def _render_selectors() -> LoadRequest:
    col1, col2, col3 = st.columns(3)
    with col1:
        st.selectbox(
            "Level",
            options=list(LEVEL_CONFIG.keys()),
            format_func=level_label,
            key="level",
        )
    with col2:
        st.selectbox("Location", options=LOCATIONS, key="location", on_change=_on_location_change)
    with col3:
        st.selectbox("Month", options=MONTHS, key="month")

    ss = st.session_state
    return LoadRequest(level=int(ss["level"]), location=ss["location"], month=ss["month"])


def _render_summary(summary: AnalyticsSummary) -> None:
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total Students", summary.total_students)
    c2.metric("Average Score", f"{summary.avg:.1f}%")
    c3.metric(f"Pass Rate (>={PASSING_THRESHOLD}%)", f"{round(summary.pass_rate)}%")
    c4.metric("Score Range", f"{round(summary.min)}% - {round(summary.max)}%")
    st.caption(f"Detected max score: {_pretty_number(summary.detected_max_score)}")


def _render_controls() -> QueryParameters:
    col1, col2, col3, col4 = st.columns([3, 2, 1, 1])
    with col1:
        search = st.text_input("Search students...", key="search")
    with col2:
        sort_labels = [NO_SORT] + [label for label, _, _ in MAIN_TABLE_COLUMNS]
        sort_label = st.selectbox("Sort by", options=sort_labels, index=0)
    with col3:
        sort_dir = st.radio("Direction", options=[SORT_DESC, SORT_ASC], horizontal=True)
    with col4:
        page_size = st.selectbox(
            "Page size",
            options=PAGE_SIZE_OPTIONS,
            index=PAGE_SIZE_OPTIONS.index(DEFAULT_PAGE_SIZE),
        )

    sort_key = None
    for label, key, _ in MAIN_TABLE_COLUMNS:
        if label == sort_label:
            sort_key = key

    return QueryParameters(
        search_text=search,
        sort_key=sort_key,
        sort_dir=sort_dir,
        page=int(st.session_state["page"]),
        page_size=int(page_size),
    )


def _table_frame(rows: List[Dict[str, Any]]) -> pd.DataFrame:
    records = [
        {label: row_value(r, key) for label, key, _ in MAIN_TABLE_COLUMNS}
        for r in rows
    ]
    return pd.DataFrame.from_records(records, columns=[label for label, _, _ in MAIN_TABLE_COLUMNS])


def _render_table(cycle: LoadCycle, params: QueryParameters) -> QueryResult:
    rows = cycle.dataset.rows if cycle.dataset else []

    first = run_query(rows, params)
    page = clamp_page(params.page, first.total_pages)
    result = first if page == params.page else run_query(rows, replace(params, page=page))

    if result.page_rows:
        st.dataframe(_table_frame(result.page_rows), use_container_width=True, hide_index=True)
    elif cycle.had_load_error:
        st.info(f"No data loaded for {level_label(cycle.request.level)}.")
    else:
        st.info("No students found matching your search.")

    st.session_state["page"] = page
    nav1, nav2 = st.columns([1, 3])
    with nav1:
        st.number_input(
            "Page",
            min_value=1,
            max_value=result.total_pages,
            step=1,
            key="page",
        )
    with nav2:
        st.caption(f"Page {page} of {result.total_pages} ({result.total_matches} matching)")

    if cycle.dataset is not None:
        st.download_button(
            "Export filtered CSV",
            data=export_rows_to_csv(result.filtered_rows, cycle.dataset.headers),
            file_name=export_filename(cycle.request.level),
            mime="text/csv",
        )

    return result


def _render_charts(cycle: LoadCycle, summary: AnalyticsSummary) -> None:
    rows = cycle.dataset.rows if cycle.dataset else []
    buckets = score_histogram(rows, had_load_error=cycle.had_load_error)

    col1, col2 = st.columns(2)
    with col1:
        st.subheader("Score Distribution")
        hist = pd.DataFrame({"Students": [b.count for b in buckets]}, index=[b.label for b in buckets])
        st.bar_chart(hist)
    with col2:
        st.subheader("Pass vs Fail")
        st.bar_chart(pd.DataFrame({"Students": [summary.pass_count, summary.fail_count]}, index=["Pass", "Fail"]))


def _render_student_detail(cycle: LoadCycle, result: QueryResult) -> None:
    if cycle.dataset is None or not result.page_rows:
        return

    options = list(range(len(result.page_rows)))
    choice = st.selectbox(
        "Student details",
        options=options,
        format_func=lambda i: row_value(result.page_rows[i], "Username") or f"Row {i + 1}",
    )
    detail = build_student_detail(result.page_rows[choice], cycle.dataset)

    with st.expander(f"{detail.username}  {detail.total_score}  {detail.status}", expanded=False):
        if detail.submitted:
            st.caption(f"Submitted: {detail.submitted}")

        st.markdown("**Student info**")
        for label, value in detail.profile + detail.personal_info:
            st.write(f"{label}: {value or '-'}")

        st.markdown("**Quiz responses**")
        for i, ans in enumerate(detail.answers, start=1):
            tags = " ".join(f"`{t}`" for t in (ans.question_type, ans.section) if t)
            st.markdown(f"**{i}. {ans.question}** {tags}")
            st.write(f"Response: {ans.response or '-'}  |  Score: {ans.score or '-'}")
            if ans.correct_answer:
                st.write(f"Correct answer: {ans.correct_answer}")
            st.write(f"Feedback: {ans.feedback}" if ans.feedback else "No feedback provided")


def run_app() -> None:
    st.set_page_config(page_title=APP_NAME, page_icon="📊", layout="wide")
    _init_state()

    request = _render_selectors()
    cycle = _ensure_loaded(request)

    st.title(f"{APP_NAME} · {level_label(request.level)}")
    st.caption(f"Version {APP_VERSION}")

    if cycle.had_load_error:
        st.warning(f"No data for {request.location} / {request.month}: {cycle.error}")

    rows = cycle.dataset.rows if cycle.dataset else []
    summary = compute_summary(rows, had_load_error=cycle.had_load_error)
    _render_summary(summary)

    params = _render_controls()
    result = _render_table(cycle, params)
    _render_charts(cycle, summary)
    _render_student_detail(cycle, result)
