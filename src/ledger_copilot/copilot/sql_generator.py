"""
SQL Generator — turns a parsed Intent into an aggregate + raw query pair.

Identifiers come only from the live column catalog (via the term resolver)
and from settings; every literal goes through ``quote_literal``.  The
generator never invents a column the catalog does not contain.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping

from ledger_copilot.copilot.intent import FilterClause, Intent
from ledger_copilot.core.config import get_settings
from ledger_copilot.core.errors import MalformedIntent, SchemaUnavailable
from ledger_copilot.core.logging import get_logger
from ledger_copilot.core.utils import unique_in_order
from ledger_copilot.governance.term_resolver import ColumnCatalog, resolve_terms

logger = get_logger(__name__)

RESULT_CAP = 100
TOTAL_ALIAS = "TOTAL"
KEYWORD_COLUMNS: tuple[str, ...] = ("DESCRIPTION", "VENDORNAME", "ACCTNAME", "ANNOTATION")


@dataclass(frozen=True)
class QueryPair:
    """Aggregate and raw SQL built from the same intent and catalog."""

    aggregate_query: str
    raw_query: str
    aggregate_columns: tuple[str, ...]
    raw_columns: tuple[str, ...] = ()


# ── Literal escaping ─────────────────────────────────────

def quote_literal(value: object, backslash_escapes: bool = True) -> str:
    """Render a Python scalar as a SQL literal.

    The single place literal values enter query text.  Strings have their
    quotes doubled, and their backslashes doubled too when the target
    dialect reads backslash as an escape character.  Non-finite floats have
    no SQL literal and raise ``ValueError``.
    """
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError(f"No SQL literal for non-finite number {value!r}")
        return repr(value)
    text = str(value)
    if backslash_escapes:
        text = text.replace("\\", "\\\\")
    text = text.replace("'", "''")
    return f"'{text}'"


# ── Predicate builders ───────────────────────────────────

def _keyword_predicate(
    keywords: tuple[str, ...],
    catalog: ColumnCatalog,
    backslash_escapes: bool = True,
) -> str | None:
    """AND across terms, OR across the searchable text columns."""
    terms = [k.strip() for k in keywords if k.strip()]
    if not terms:
        return None

    columns = [c for c in (catalog.lookup(k) for k in KEYWORD_COLUMNS) if c]
    if not columns:
        logger.warning("No searchable text columns in catalog -- keyword filter dropped")
        return None

    per_term: list[str] = []
    for term in terms:
        pattern = quote_literal(f"%{term.lower()}%", backslash_escapes)
        ors = " OR ".join(f"LOWER({col}) LIKE {pattern}" for col in columns)
        per_term.append(f"({ors})")
    return " AND ".join(per_term)


def _clause_predicates(
    column: str,
    clause: FilterClause,
    backslash_escapes: bool = True,
) -> list[str]:
    def q(v):
        return quote_literal(v, backslash_escapes)

    if clause.exclude:
        return [f"{column} != {q(v)}" for v in clause.values]
    if clause.operator == "=" and len(clause.values) > 1:
        vals = ", ".join(q(v) for v in clause.values)
        return [f"{column} IN ({vals})"]
    return [f"{column} {clause.operator} {q(clause.values[0])}"]


def build_predicates(
    intent: Intent,
    catalog: ColumnCatalog,
    aliases: Mapping[str, str] | None = None,
    backslash_escapes: bool = True,
) -> list[str]:
    """Return the ANDed WHERE parts: keyword clause, then filters, then excludes."""
    parts: list[str] = []

    keyword = _keyword_predicate(intent.keyword, catalog, backslash_escapes)
    if keyword:
        parts.append(keyword)

    includes = [c for c in intent.filters if not c.exclude]
    excludes = [c for c in intent.filters if c.exclude]

    for group, kind in ((includes, "filter"), (excludes, "exclude")):
        resolutions = resolve_terms([c.field for c in group], catalog, kind, aliases)
        for clause, res in zip(group, resolutions):
            if res.column is None:
                continue
            parts.extend(_clause_predicates(res.column, clause, backslash_escapes))

    return parts


# ── SQL builder ──────────────────────────────────────────

def synthesize(
    intent: Intent,
    catalog: ColumnCatalog,
    table: str | None = None,
    amount_column: str | None = None,
    aliases: Mapping[str, str] | None = None,
    backslash_escapes: bool | None = None,
) -> QueryPair:
    """Build the aggregate and raw queries for *intent* against *catalog*.

    *backslash_escapes* defaults to what the configured database dialect
    expects of string literals.

    Raises
    ------
    MalformedIntent
        If *intent* is not a parsed ``Intent``.
    SchemaUnavailable
        If the catalog is empty or lacks the amount column.
    """
    if not isinstance(intent, Intent):
        raise MalformedIntent(
            f"Expected a parsed Intent, got {type(intent).__name__}", repr(intent)
        )
    if len(catalog) == 0:
        raise SchemaUnavailable("Column catalog is empty")

    settings = get_settings()
    table = table or settings.gl_table_ref
    if backslash_escapes is None:
        backslash_escapes = settings.backslash_escapes
    amount = catalog.lookup(amount_column or settings.gl_amount_column)
    if amount is None:
        raise SchemaUnavailable(
            f"Amount column '{amount_column or settings.gl_amount_column}' not in catalog"
        )

    # ── GROUP BY ─────────────────────────────────────
    resolutions = resolve_terms(intent.group_by, catalog, "group_by", aliases)
    group_cols = unique_in_order(r.column for r in resolutions if r.column)

    # ── WHERE ────────────────────────────────────────
    where_parts = build_predicates(intent, catalog, aliases, backslash_escapes)
    where_line = "WHERE " + "\n  AND ".join(where_parts) if where_parts else None

    # ── Aggregate ────────────────────────────────────
    if intent.is_balance:
        measure = f"{amount} AS {TOTAL_ALIAS}"
        grouping = unique_in_order(group_cols + [amount]) if group_cols else []
    else:
        measure = f"SUM({amount}) AS {TOTAL_ALIAS}"
        grouping = group_cols

    agg_lines = ["SELECT " + ", ".join(group_cols + [measure]), f"FROM {table}"]
    if where_line:
        agg_lines.append(where_line)
    if grouping:
        agg_lines.append("GROUP BY " + ", ".join(grouping))
    if group_cols:
        agg_lines.append("ORDER BY " + ", ".join(group_cols))
    agg_lines.append(f"LIMIT {RESULT_CAP}")

    # ── Raw ──────────────────────────────────────────
    raw_lines = ["SELECT *", f"FROM {table}"]
    if where_line:
        raw_lines.append(where_line)
    raw_lines.append(f"LIMIT {RESULT_CAP}")

    pair = QueryPair(
        aggregate_query="\n".join(agg_lines),
        raw_query="\n".join(raw_lines),
        aggregate_columns=tuple(group_cols) + (TOTAL_ALIAS,),
        raw_columns=tuple(catalog),
    )
    logger.info("Generated aggregate SQL:\n%s", pair.aggregate_query)
    logger.info("Generated raw SQL:\n%s", pair.raw_query)
    return pair
