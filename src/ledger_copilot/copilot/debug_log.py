"""
Debug report -- a Markdown view of one request's interpretation and queries.

Returned under ``debug.report`` when ``DEBUG_PAYLOAD`` is enabled.
"""
from __future__ import annotations

import json
from typing import Any


def build_debug_report(
    user_query: str,
    interpretation: dict[str, Any],
    aggregate_sql: str,
    raw_sql: str,
    semantic_matches: str,
) -> str:
    interpretation_block = (
        f"**Query**\n{user_query}\n\n"
        "**Interpretation**\n"
        "```json\n"
        f"{json.dumps(interpretation, indent=2, default=str)}\n"
        "```"
    )
    sql_block = (
        "**SQL Queries**\n"
        "- Aggregated:\n"
        f"```sql\n{aggregate_sql}\n```\n\n"
        "- Raw:\n"
        f"```sql\n{raw_sql}\n```"
    )
    matches_block = f"**Top Semantic Matches**\n{semantic_matches or 'None found.'}"
    return "\n\n".join([interpretation_block, sql_block, matches_block])
