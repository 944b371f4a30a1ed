"""
Deterministic SQL safety checks (non-LLM).

These checks are the final gate before generated SQL reaches the store.
They operate purely on the SQL text, with string literals blanked out first
so that a keyword such as ``'%update%'`` cannot trip them.

Checks performed:
  1. SQL must be a single SELECT statement (no DDL / DML / multi-statement)
  2. No dangerous keywords (DROP, ALTER, TRUNCATE, INSERT, UPDATE, DELETE, GRANT …)
  3. No comments (--, /* */)
  4. Only the configured GL table may appear after FROM / JOIN
  5. LIMIT must be present and ≤ the result cap
"""
from __future__ import annotations

import re

from ledger_copilot.core.logging import get_logger

logger = get_logger(__name__)

# ── Compiled patterns ────────────────────────────────────

_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")

_DANGEROUS_KW = re.compile(
    r"\b(DROP|ALTER|TRUNCATE|INSERT|UPDATE|DELETE|MERGE|GRANT|REVOKE|"
    r"CREATE|REPLACE|EXECUTE|EXEC|CALL|COPY|PUT|SET\s+ROLE|USE)\b",
    re.IGNORECASE,
)

_MULTI_STMT = re.compile(r";\s*\S")  # semicolon followed by non-whitespace

_COMMENT_INLINE = re.compile(r"--")
_COMMENT_BLOCK = re.compile(r"/\*")

_LIMIT_RE = re.compile(r"\bLIMIT\s+(\d+)", re.IGNORECASE)

_FROM_JOIN_RE = re.compile(
    r"(?:FROM|JOIN)\s+([\w$]+(?:\.[\w$]+)*)",
    re.IGNORECASE,
)


def _blank_literals(sql: str) -> str:
    return _STRING_LITERAL.sub("''", sql)


def check_sql_safety(sql: str, table: str, max_rows: int) -> list[str]:
    """Return a list of safety violations (empty list = safe).

    Parameters
    ----------
    sql : str
        The generated SQL.
    table : str
        The only table reference allowed (as written in the SQL).
    max_rows : int
        Upper bound for the LIMIT clause.
    """
    errors: list[str] = []
    stripped = _blank_literals(sql.strip())

    # ── 1. Must start with SELECT ────────────────────
    if not stripped.upper().startswith("SELECT"):
        errors.append("SQL must be a SELECT statement.")

    if _MULTI_STMT.search(stripped):
        errors.append("Multi-statement SQL is not allowed (found ';' followed by another statement).")

    # ── 2. No dangerous keywords ─────────────────────
    m = _DANGEROUS_KW.search(stripped)
    if m:
        errors.append(f"Dangerous keyword detected: '{m.group(1).upper()}'.")

    # ── 3. No SQL comments (injection vector) ────────
    if _COMMENT_INLINE.search(stripped):
        errors.append("Inline comments (--) are not allowed.")
    if _COMMENT_BLOCK.search(stripped):
        errors.append("Block comments (/* */) are not allowed.")

    # ── 4. Only the GL table ─────────────────────────
    for ref in _FROM_JOIN_RE.findall(stripped):
        if ref.lower() != table.lower():
            errors.append(f"Table '{ref}' is not the configured GL table.")

    # ── 5. LIMIT must exist and be ≤ max_rows ────────
    limit_match = _LIMIT_RE.search(stripped)
    if not limit_match:
        errors.append(f"SQL must include a LIMIT clause (max {max_rows}).")
    else:
        limit_val = int(limit_match.group(1))
        if limit_val > max_rows:
            errors.append(f"LIMIT {limit_val} exceeds maximum allowed ({max_rows}).")

    if errors:
        logger.warning("SQL safety violations: %s", errors)
    return errors
