"""
Result formatter -- renders row sets as Markdown pipe tables.

The same text is read by people and handed to the summariser, so the
output must be stable: column order is explicit, dates are normalised to
``M/D/YYYY`` and nulls render as empty cells.
"""
from __future__ import annotations

import datetime
import re
from typing import Any, Mapping, Sequence

NO_RESULTS = "No results found."

_TIMESTAMP_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})"
    r"(?:[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?)?$"
)


def _render_date(d: datetime.date) -> str:
    return f"{d.month}/{d.day}/{d.year}"


def render_value(value: Any) -> str:
    """Render one cell.  Dates and ISO timestamps become ``M/D/YYYY``."""
    if value is None:
        return ""
    if isinstance(value, (datetime.date, datetime.datetime)):
        return _render_date(value)
    if isinstance(value, str):
        m = _TIMESTAMP_RE.match(value.strip())
        if m:
            try:
                d = datetime.date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
            except ValueError:
                pass
            else:
                return _render_date(d)
    text = str(value)
    return text.replace("|", "\\|").replace("\r", " ").replace("\n", " ")


def format_rows(
    rows: Sequence[Mapping[str, Any]],
    columns: Sequence[str] | None = None,
) -> str:
    """Render *rows* as a pipe table, or ``NO_RESULTS`` when empty.

    *columns* pins the column order (e.g. from the query's SELECT list);
    without it the first row's key order is used.
    """
    if not rows:
        return NO_RESULTS

    first_keys = list(rows[0].keys())
    cols = list(columns) if columns else first_keys
    # Some dialects fold result keys to lower case; match pinned names loosely.
    by_lower = {k.lower(): k for k in first_keys}
    keys = [c if c in rows[0] else by_lower.get(c.lower(), c) for c in cols]

    lines = [
        "| " + " | ".join(cols) + " |",
        "| " + " | ".join("---" for _ in cols) + " |",
    ]
    for row in rows:
        lines.append("| " + " | ".join(render_value(row.get(k)) for k in keys) + " |")
    return "\n".join(lines)
