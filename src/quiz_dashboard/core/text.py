from __future__ import annotations

import re
from typing import Any

import pandas as pd

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_key(text: Any) -> str:
    """
    Collapse every run of whitespace (newlines included) to a single space
    and trim both ends.

    The response export and the meta export format the same question text
    differently (double spaces, wrapped lines). Both sides of a meta lookup
    must go through this function or the join misses.
    """
    if text is None:
        return ""
    try:
        if pd.isna(text):
            return ""
    except (TypeError, ValueError):
        pass
    return _WHITESPACE_RE.sub(" ", str(text)).strip()


def cell_text(value: Any) -> str:
    """String form of a cell, with None rendered as an empty string."""
    if value is None:
        return ""
    return str(value)
