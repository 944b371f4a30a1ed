"""
Unit tests -- copilot service: pipeline orchestration with fake collaborators.
No data store or LLM is needed.
"""
import asyncio
import json
import threading
import time
from contextlib import contextmanager

import pytest
from ledger_copilot.copilot.semantic_search import MockSearchIndex, SearchMatch
from ledger_copilot.copilot.service import Collaborators, QueryAnswer, answer_query
from ledger_copilot.core.errors import (
    InvalidRequest,
    MalformedIntent,
    RetrievalFailure,
    SchemaUnavailable,
)

COLUMNS = ["UTM_ID", "CO_ID", "PER_END_DATE", "VENDORNAME", "ACCTNAME",
           "BALANCE", "DESCRIPTION", "ANNOTATION"]


# ── Fakes ────────────────────────────────────────────────

class FakeStore:
    def __init__(self, columns=COLUMNS, rows=None, error=None):
        self.columns = columns
        self.rows = rows if rows is not None else []
        self.error = error
        self.executed = []
        self.closed = False

    def list_columns(self):
        return list(self.columns)

    def execute(self, sql):
        self.executed.append(sql)
        if self.error:
            raise self.error
        return self.rows


def _collab(store, intent, summary="Expenses were steady.", matches=()):
    seen = {}

    @contextmanager
    def factory():
        try:
            yield store
        finally:
            store.closed = True

    def classify(question, columns):
        seen["columns"] = columns
        return intent if isinstance(intent, str) else json.dumps(intent)

    def summarize(question, data_block, note):
        seen["summary_args"] = (question, data_block, note)
        return summary

    collab = Collaborators(
        store_factory=factory,
        search_index=MockSearchIndex(matches),
        classify=classify,
        summarize=summarize,
    )
    return collab, seen


def _run(coro):
    return asyncio.run(coro)


_MONTHLY = {"data_type": "expenses", "group_by": ["accounting period"], "filters": {}, "mode": "summary"}


# ── Request validation ───────────────────────────────────

@pytest.mark.parametrize("question", [None, "", "   ", 42])
def test_missing_query_rejected(question):
    store = FakeStore()
    collab, _ = _collab(store, _MONTHLY)
    with pytest.raises(InvalidRequest, match="Query is required"):
        _run(answer_query(question, collab))
    assert store.executed == []


# ── Happy paths ──────────────────────────────────────────

def test_monthly_summary():
    rows = [{"PER_END_DATE": "2024-01-31", "TOTAL": 1200.0}]
    store = FakeStore(rows=rows)
    collab, seen = _collab(store, _MONTHLY)

    answer = _run(answer_query("Summarize expenses by month", collab))

    assert isinstance(answer, QueryAnswer)
    assert answer.summary == "Expenses were steady."
    assert answer.raw_data == "| PER_END_DATE | TOTAL |\n| --- | --- |\n| 1/31/2024 | 1200.0 |"
    assert answer.provenance_note == ""
    assert len(store.executed) == 1
    assert "GROUP BY PER_END_DATE" in store.executed[0]
    assert seen["columns"] == COLUMNS
    assert seen["summary_args"] == ("Summarize expenses by month", answer.raw_data, "")


def test_search_mode_uses_index():
    match = SearchMatch(id="a", score=0.9, metadata={"DESCRIPTION": "Pump repair"})
    store = FakeStore(rows=[])
    intent = {"data_type": "expenses", "filters": {"keyword": ["pump"]}, "mode": "search"}
    collab, seen = _collab(store, intent, matches=[match])

    answer = _run(answer_query("pump repairs", collab))

    assert len(store.executed) == 2
    assert answer.raw_data == "Match 1 → DESCRIPTION: Pump repair"
    assert answer.provenance_note.startswith("results are based on semantic search only")
    assert seen["summary_args"][2] == answer.provenance_note


def test_store_released_before_summary():
    store = FakeStore(rows=[{"TOTAL": 1.0}])
    collab, _ = _collab(store, {"data_type": "expenses", "mode": "summary"})

    def summarize(question, data_block, note):
        assert store.closed
        return "ok"

    collab.summarize = summarize
    assert _run(answer_query("total", collab)).summary == "ok"


def test_debug_payload_opt_in():
    store = FakeStore(rows=[{"TOTAL": 5.0}])
    collab, _ = _collab(store, {"data_type": "expenses", "mode": "summary"})

    assert _run(answer_query("total", collab)).debug is None

    answer = _run(answer_query("total", collab, debug=True))
    assert answer.debug["intent"]["data_type"] == "expenses"
    assert answer.debug["aggregateQuery"].startswith("SELECT SUM(BALANCE) AS TOTAL")
    assert answer.debug["rawQuery"].startswith("SELECT *")
    assert answer.debug["aggregateRows"] == 1
    assert "**SQL Queries**" in answer.debug["report"]


# ── Failure paths ────────────────────────────────────────

def test_malformed_intent_runs_no_query():
    store = FakeStore()
    collab, _ = _collab(store, "not json")

    with pytest.raises(MalformedIntent) as exc_info:
        _run(answer_query("total expenses", collab))

    assert exc_info.value.raw_output == "not json"
    assert store.executed == []
    assert store.closed


def test_empty_catalog_raises():
    store = FakeStore(columns=[])
    collab, _ = _collab(store, _MONTHLY)
    with pytest.raises(SchemaUnavailable):
        _run(answer_query("total", collab))


def test_summary_store_failure_releases_connection():
    store = FakeStore(error=RuntimeError("warehouse suspended"))
    collab, seen = _collab(store, _MONTHLY)

    with pytest.raises(RetrievalFailure):
        _run(answer_query("total", collab))
    assert store.closed
    assert "summary_args" not in seen


def test_unresolved_terms_still_answer():
    store = FakeStore(rows=[{"TOTAL": 10.0}])
    intent = {"data_type": "expenses", "group_by": ["region"], "filters": {"territory": "West"},
              "mode": "summary"}
    collab, _ = _collab(store, intent)

    _run(answer_query("total by region", collab))

    sql = store.executed[0]
    assert "GROUP BY" not in sql
    assert "WHERE" not in sql


def test_search_index_build_failure_degrades(monkeypatch):
    def boom(provider=None):
        raise RuntimeError("pinecone_api_key is not set")

    monkeypatch.setattr("ledger_copilot.copilot.service.get_search_index", boom)
    store = FakeStore(rows=[{"VENDORNAME": "Acme", "TOTAL": 3.0}])
    collab, _ = _collab(store, {"data_type": "expenses", "group_by": ["vendor"], "mode": "search"})
    collab.search_index = None

    answer = _run(answer_query("acme spend", collab, debug=True))

    assert answer.provenance_note == ""
    assert any("semantic search failed" in d for d in answer.debug["diagnostics"])


# ── Event loop stays free ────────────────────────────────

def test_slow_connection_does_not_block_loop():
    store = FakeStore(rows=[{"TOTAL": 1.0}])
    collab, _ = _collab(store, {"data_type": "expenses", "mode": "summary"})

    @contextmanager
    def slow_factory():
        time.sleep(0.2)
        try:
            yield store
        finally:
            time.sleep(0.2)
            store.closed = True

    collab.store_factory = slow_factory
    ticks = []

    async def ticker(done):
        while not done.is_set():
            ticks.append(time.monotonic())
            await asyncio.sleep(0.01)

    async def main():
        done = asyncio.Event()
        task = asyncio.create_task(ticker(done))
        try:
            return await answer_query("total", collab)
        finally:
            done.set()
            await task

    answer = _run(main())

    assert answer.summary == "Expenses were steady."
    assert store.closed
    assert len(ticks) >= 10


def test_search_index_built_off_loop(monkeypatch):
    built_on = []

    def build(provider=None):
        built_on.append(threading.get_ident())
        return MockSearchIndex([])

    monkeypatch.setattr("ledger_copilot.copilot.service.get_search_index", build)
    store = FakeStore(rows=[{"TOTAL": 2.0}])
    collab, _ = _collab(store, {"data_type": "expenses", "mode": "search"})
    collab.search_index = None

    _run(answer_query("total", collab))

    assert built_on and built_on[0] != threading.get_ident()
