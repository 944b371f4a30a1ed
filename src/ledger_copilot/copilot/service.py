"""
Copilot service -- orchestrates catalog -> classify -> parse -> synthesize ->
safety -> retrieve -> summarize.

One store connection is held for the catalog lookup and the structured
queries, and released before the summary call.  Blocking collaborator
calls, connection acquire and release included, run on worker threads.

Collaborators (store, search index, classifier, summariser) are passed in
through ``Collaborators``; the HTTP layer builds one per request and tests
substitute fakes.
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, ContextManager, Sequence

from ledger_copilot.copilot.debug_log import build_debug_report
from ledger_copilot.copilot.intent import Intent, parse_intent
from ledger_copilot.copilot.planner import classify as classify_question
from ledger_copilot.copilot.retriever import FusionResult, retrieve
from ledger_copilot.copilot.semantic_search import (
    SearchIndex,
    UnavailableSearchIndex,
    get_search_index,
    render_matches,
)
from ledger_copilot.copilot.sql_generator import RESULT_CAP, QueryPair, synthesize
from ledger_copilot.copilot.summarizer import summarize as summarize_answer
from ledger_copilot.core.config import get_settings
from ledger_copilot.core.errors import InvalidRequest, SchemaUnavailable, UnsafeQuery
from ledger_copilot.core.logging import get_logger
from ledger_copilot.core.utils import timer
from ledger_copilot.db.connection import open_store
from ledger_copilot.governance.sql_safety import check_sql_safety
from ledger_copilot.governance.term_resolver import ColumnCatalog

logger = get_logger(__name__)


@dataclass
class Collaborators:
    store_factory: Callable[[], ContextManager[Any]] = open_store
    search_index: SearchIndex | None = None
    classify: Callable[[str, Sequence[str]], str] = classify_question
    summarize: Callable[[str, str, str], str] = summarize_answer

    def get_search_index(self) -> SearchIndex:
        if self.search_index is None:
            try:
                self.search_index = get_search_index()
            except Exception as exc:
                logger.warning("Search index could not be built: %s", exc)
                self.search_index = UnavailableSearchIndex(exc)
        return self.search_index


@dataclass
class QueryAnswer:
    summary: str
    raw_data: str
    provenance_note: str = ""
    debug: dict[str, Any] | None = None
    intent: Intent | None = None
    queries: QueryPair | None = None
    fusion: FusionResult | None = field(default=None, repr=False)


@asynccontextmanager
async def _acquire_store(factory: Callable[[], ContextManager[Any]]) -> AsyncIterator[Any]:
    """Enter and exit a blocking store context on worker threads."""
    cm = factory()
    store = await asyncio.to_thread(cm.__enter__)
    try:
        yield store
    except BaseException as exc:
        if not await asyncio.to_thread(cm.__exit__, type(exc), exc, exc.__traceback__):
            raise
    else:
        await asyncio.to_thread(cm.__exit__, None, None, None)


def _check_pair(
pair: QueryPair, table: str) -> None:
    violations: list[str] = []
    for sql in (pair.aggregate_query, pair.raw_query):
        violations.extend(check_sql_safety(sql, table, RESULT_CAP))
    if violations:
        raise UnsafeQuery(violations)


def _debug_payload(
    question: str,
    intent: Intent,
    pair: QueryPair,
    fusion: FusionResult,
    elapsed_ms: int,
) -> dict[str, Any]:
    return {
        "intent": intent.describe(),
        "aggregateQuery": pair.aggregate_query,
        "rawQuery": pair.raw_query,
        "aggregateRows": fusion.aggregate_rows,
        "rawRows": fusion.raw_rows,
        "semanticMatches": len(fusion.matches),
        "diagnostics": fusion.diagnostics,
        "latencyMs": elapsed_ms,
        "report": build_debug_report(
            question, intent.describe(), pair.aggregate_query, pair.raw_query,
            render_matches(fusion.matches),
        ),
    }


async def answer_query(
    question: str | None,
    collaborators: Collaborators | None = None,
    debug: bool | None = None,
) -> QueryAnswer:
    """End-to-end: free-text ledger question -> summary + raw data.

    Raises
    ------
    InvalidRequest
        Missing or blank question.
    MalformedIntent
        Classifier output could not be parsed; no store query is run.
    SchemaUnavailable, UnsafeQuery, RetrievalFailure
        See ``ledger_copilot.core.errors``.
    """
    if not isinstance(question, str) or not question.strip():
        raise InvalidRequest("Query is required")
    question = question.strip()

    collab = collaborators or Collaborators()
    settings = get_settings()
    if debug is None:
        debug = settings.debug_payload
    table = settings.gl_table_ref

    logger.info("Copilot.answer | question=%s", question)

    with timer() as t:
        async with _acquire_store(collab.store_factory) as store:
            columns = await asyncio.to_thread(store.list_columns)
            catalog = ColumnCatalog(columns)
            if len(catalog) == 0:
                raise SchemaUnavailable("Column catalog is empty")

            raw_intent = await asyncio.to_thread(collab.classify, question, list(catalog))
            intent = parse_intent(raw_intent)

            pair = synthesize(intent, catalog, table=table)
            _check_pair(pair, table)

            search_index = None
            if intent.mode == "search":
                search_index = await asyncio.to_thread(collab.get_search_index)
            fusion = await retrieve(question, intent, pair, store, search_index)

        summary = await asyncio.to_thread(
            collab.summarize, question, fusion.summary_input, fusion.provenance_note,
        )

    logger.info("Copilot.answer done | mode=%s | agg_rows=%d | raw_rows=%d | %d ms",
                intent.mode, fusion.aggregate_rows, fusion.raw_rows, t["elapsed_ms"])

    return QueryAnswer(
        summary=summary,
        raw_data=fusion.raw_output,
        provenance_note=fusion.provenance_note,
        debug=_debug_payload(question, intent, pair, fusion, t["elapsed_ms"]) if debug else None,
        intent=intent,
        queries=pair,
        fusion=fusion,
    )
