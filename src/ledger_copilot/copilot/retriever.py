"""
Fusion retriever -- runs the structured queries and semantic search, then
merges them into the summariser input and the caller's raw payload.

Modes
-----
summary
    Fast path.  Aggregate query only; the formatted table is both the
    summary input and the raw output.  The store is the sole source of
    truth, so a store failure fails the request.
search
    Aggregate + raw queries (sequential on the request connection) run
    concurrently with the semantic search.  Search is supplementary: its
    failure is logged and the answer proceeds from the store.  If the store
    yields nothing (or fails) the answer falls back to search alone and a
    provenance note says so.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Protocol

from ledger_copilot.copilot.formatter import NO_RESULTS, format_rows
from ledger_copilot.copilot.intent import Intent
from ledger_copilot.copilot.semantic_search import SearchIndex, SearchMatch, render_matches
from ledger_copilot.copilot.sql_generator import QueryPair
from ledger_copilot.core.config import get_settings
from ledger_copilot.core.errors import RetrievalFailure
from ledger_copilot.core.logging import get_logger

logger = get_logger(__name__)

SEMANTIC_ONLY_NOTE = (
    "results are based on semantic search only; structured data was unavailable"
)
SEARCH_FAILED_NOTE = "no structured rows matched and semantic search failed"


class Store(Protocol):
    def execute(self, sql: str) -> list[dict[str, Any]]: ...


@dataclass
class FusionResult:
    summary_input: str
    raw_output: str
    provenance_note: str = ""
    matches: list[SearchMatch] = field(default_factory=list)
    aggregate_rows: int = 0
    raw_rows: int = 0
    diagnostics: list[str] = field(default_factory=list)


def _has_data(rows: list[dict[str, Any]]) -> bool:
    """False for no rows, or only all-NULL rows (an ungrouped SUM over nothing)."""
    return any(any(v is not None for v in row.values()) for row in rows)


def _join_blocks(*blocks: str) -> str:
    return "\n\n".join(b for b in blocks if b)


def search_text(query: str, intent: Intent) -> str:
    """Query text sent to the vector index, optionally hinted with the data type."""
    if get_settings().search_type_hint and intent.data_type:
        return f"{intent.data_type}: {query}"
    return query


# ── Mode handlers ────────────────────────────────────────

async def _retrieve_summary(pair: QueryPair, store: Store) -> FusionResult:
    try:
        rows = await asyncio.to_thread(store.execute, pair.aggregate_query)
    except RetrievalFailure:
        raise
    except Exception as exc:
        raise RetrievalFailure(f"Aggregate query failed: {exc}") from exc

    if not _has_data(rows):
        rows = []
    table = format_rows(rows, pair.aggregate_columns)
    return FusionResult(summary_input=table, raw_output=table, aggregate_rows=len(rows))


def _run_structured(pair: QueryPair, store: Store) -> tuple[list[dict], list[dict]]:
    agg = store.execute(pair.aggregate_query)
    raw = store.execute(pair.raw_query)
    return agg, raw


async def _retrieve_search(
    query: str,
    intent: Intent,
    pair: QueryPair,
    store: Store,
    search_index: SearchIndex,
) -> FusionResult:
    structured, searched = await asyncio.gather(
        asyncio.to_thread(_run_structured, pair, store),
        asyncio.to_thread(search_index.search, search_text(query, intent)),
        return_exceptions=True,
    )

    diagnostics: list[str] = []

    matches: list[SearchMatch] = []
    search_error = isinstance(searched, BaseException)
    if search_error:
        logger.warning("Semantic search failed -- continuing with structured data: %s", searched)
        diagnostics.append(f"semantic search failed: {searched}")
    else:
        matches = list(searched)

    agg_rows: list[dict] = []
    raw_rows: list[dict] = []
    if isinstance(structured, BaseException):
        logger.warning("Structured retrieval failed: %s", structured)
        diagnostics.append(f"structured retrieval failed: {structured}")
        if not matches:
            raise RetrievalFailure(
                f"Structured retrieval failed and semantic search returned nothing: {structured}"
            ) from structured
    else:
        agg_rows, raw_rows = structured
        if not _has_data(agg_rows):
            agg_rows = []

    snippets = render_matches(matches)
    if agg_rows:
        note = ""
    elif search_error:
        note = f"{SEARCH_FAILED_NOTE}: {searched}"
    else:
        note = SEMANTIC_ONLY_NOTE
    if note and not search_error:
        logger.warning("No structured rows -- answering from %d semantic matches", len(matches))

    if agg_rows:
        summary_input = _join_blocks(format_rows(agg_rows, pair.aggregate_columns), snippets)
    else:
        summary_input = snippets or NO_RESULTS

    raw_table = format_rows(raw_rows, pair.raw_columns or None) if raw_rows else ""
    raw_output = _join_blocks(snippets, raw_table) or NO_RESULTS

    return FusionResult(
        summary_input=summary_input,
        raw_output=raw_output,
        provenance_note=note,
        matches=matches,
        aggregate_rows=len(agg_rows),
        raw_rows=len(raw_rows),
        diagnostics=diagnostics,
    )


# ── Public API ───────────────────────────────────────────

async def retrieve(
    query: str,
    intent: Intent,
    pair: QueryPair,
    store: Store,
    search_index: SearchIndex | None = None,
) -> FusionResult:
    """Execute *pair* (and, in search mode, semantic search) and fuse the results.

    *search_index* may be ``None`` only in summary mode.
    """
    logger.info("Retrieve | mode=%s | data_type=%s", intent.mode, intent.data_type)
    if intent.mode == "summary":
        return await _retrieve_summary(pair, store)
    if search_index is None:
        raise ValueError("search mode requires a search index")
    return await _retrieve_search(query, intent, pair, store, search_index)
