from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import pandas as pd
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from quiz_dashboard.config import HTTP_TIMEOUT_SECONDS, QUIZ_DATA_BASE
from quiz_dashboard.core.metadata_loader import (
    MetaRow,
    MetaUnavailable,
    ReconciledDataset,
    Row,
    looks_like_csv,
    looks_like_html,
    parse_meta_text,
    read_csv_text,
    reconcile,
)

logger = logging.getLogger(__name__)


class DataLoaderError(Exception):
    """Raised when the response export cannot be turned into rows."""


class SourceUnavailable(DataLoaderError):
    """Response text missing, unreachable, HTML-shaped or not tabular."""


class EmptyDataset(DataLoaderError):
    """Response text parsed but held no usable rows."""


@dataclass(frozen=True)
class LoadRequest:
    """
    One (level, location, month) selection.

    Also the tag a load result carries, so a result for an older selection
    can be recognised and dropped.
    """
    level: int
    location: str
    month: str

    def response_path(self) -> str:
        return f"{self.location}/{self.month}/level{self.level}_response.csv"

    def meta_path(self) -> str:
        return f"{self.location}/{self.month}/meta_level{self.level}.csv"


# Returns the text at a relative path, or None when the source does not have it.
TextFetcher = Callable[[str], Optional[str]]


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

def _build_retry_session() -> requests.Session:
    """
    Build a requests Session with conservative retries.
    Static hosts can be slow or transiently flaky.
    """
    session = requests.Session()

    retry = Retry(
        total=3,
        connect=3,
        read=3,
        status=3,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset({"GET"}),
        raise_on_status=False,
    )

    adapter = HTTPAdapter(max_retries=retry, pool_connections=4, pool_maxsize=4)
    session.mount("https://", adapter)
    session.mount("http://", adapter)

    return session


_SESSION: Optional[requests.Session] = None


def _get_session() -> requests.Session:
    global _SESSION
    if _SESSION is None:
        _SESSION = _build_retry_session()
    return _SESSION


def _is_url(base: str) -> bool:
    return base.lower().startswith(("http://", "https://"))


def http_fetcher(base_url: str, timeout_seconds: int = HTTP_TIMEOUT_SECONDS) -> TextFetcher:
    base = base_url.rstrip("/")

    def fetch(rel_path: str) -> Optional[str]:
        url = f"{base}/{rel_path}"
        try:
            resp = _get_session().get(url, timeout=timeout_seconds)
        except requests.RequestException as exc:
            raise SourceUnavailable(f"HTTP error while fetching {url}: {exc}") from exc

        if resp.status_code == 404:
            return None
        if not resp.ok:
            raise SourceUnavailable(f"Fetching {url} failed with status {resp.status_code}.")

        # Exports are UTF-8; text/csv without a charset would decode as latin-1
        resp.encoding = "utf-8"
        return resp.text

    return fetch


def directory_fetcher(base_dir: Path) -> TextFetcher:
    root = Path(base_dir)

    def fetch(rel_path: str) -> Optional[str]:
        path = root / rel_path
        if not path.is_file():
            return None
        try:
            return path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as exc:
            raise SourceUnavailable(f"Could not read {path}: {exc}") from exc

    return fetch


def default_fetcher(base: Optional[str] = None) -> TextFetcher:
    base = (base or QUIZ_DATA_BASE or "").strip()
    if not base:
        raise DataLoaderError("Missing data source. Set QUIZ_DATA_BASE to a URL or directory.")
    if _is_url(base):
        return http_fetcher(base)
    return directory_fetcher(Path(base))


# ---------------------------------------------------------------------------
# Response / meta loading
# ---------------------------------------------------------------------------

def _is_blank_row(row: Row) -> bool:
    return not any(str(v if v is not None else "").strip() for v in row.values())


def parse_response_text(text: Optional[str], label: str = "response") -> Tuple[List[str], List[Row]]:
    """
    Turn the response export into (headers, rows).

    Raises:
      - SourceUnavailable when the text is absent, HTML or not CSV-shaped
      - EmptyDataset when no non-blank row survives parsing
    """
    if text is None:
        raise SourceUnavailable(f"The {label} file is missing.")

    if looks_like_html(text):
        raise SourceUnavailable(f"The {label} file is missing. Got an HTML page instead of CSV.")

    if not looks_like_csv(text):
        raise SourceUnavailable(f"The {label} file does not contain valid CSV.")

    try:
        headers, rows = read_csv_text(text)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise SourceUnavailable(f"The {label} file could not be parsed: {exc}") from exc

    rows = [r for r in rows if not _is_blank_row(r)]
    if not rows:
        raise EmptyDataset(f"No valid rows in the {label} file.")

    return headers, rows


def fetch_meta_rows(fetch: TextFetcher, request: LoadRequest) -> List[MetaRow]:
    """
    Load the optional meta table. Any failure degrades to an empty meta set.
    """
    path = request.meta_path()
    try:
        text = fetch(path)
        if text is None:
            raise MetaUnavailable(f"Meta file {path} not found.")
        return parse_meta_text(text)
    except (MetaUnavailable, DataLoaderError) as exc:
        logger.warning("Meta file %s unavailable, proceeding without metadata: %s", path, exc)
        return []


def load_dataset(request: LoadRequest, fetch: Optional[TextFetcher] = None) -> ReconciledDataset:
    """
    Fetch and reconcile the two exports for one selection.

    The response file is fetched first; the meta file is only attempted
    once the response file has produced rows.
    """
    fetch = fetch or default_fetcher()

    rel = request.response_path()
    text = fetch(rel)
    headers, rows = parse_response_text(text, label=f"level {request.level} response")

    meta_rows = fetch_meta_rows(fetch, request)

    dataset = reconcile(rows, headers, meta_rows)
    logger.info(
        "Loaded %s/%s level %s. Responses: %s, Meta: %s",
        request.location, request.month, request.level, len(rows), len(meta_rows),
    )
    return dataset


def timed_load_dataset(
    request: LoadRequest,
    fetch: Optional[TextFetcher] = None,
) -> Tuple[ReconciledDataset, float]:
    """
    Convenience helper for UI timing logs.
    """
    t0 = time.perf_counter()
    dataset = load_dataset(request, fetch=fetch)
    return dataset, (time.perf_counter() - t0)
