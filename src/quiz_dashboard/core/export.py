from __future__ import annotations

from typing import Any, Dict, Sequence

import pandas as pd


def export_rows_to_csv(rows: Sequence[Dict[str, Any]], headers: Sequence[str]) -> str:
    """
    Serialize the filtered rows back to CSV with the original headers, in the
    original column order.
    """
    df = pd.DataFrame.from_records(list(rows), columns=list(headers))
    return df.fillna("").to_csv(index=False)


def export_filename(level: int) -> str:
    return f"level{level}_filtered.csv"
