"""
Planner — classifies a ledger question into raw intent JSON.

Two modes:
  mock     → deterministic keyword extraction (no API key needed, great for tests)
  openai / anthropic → LLM-backed classification via llm_client

Both return *text*.  The classifier is an untrusted producer; turning its
output into an ``Intent`` is ``intent.parse_intent``'s job.
"""
from __future__ import annotations

import json
import re
from typing import Any, Sequence

from ledger_copilot.core.config import get_settings
from ledger_copilot.core.logging import get_logger
from ledger_copilot.governance.term_resolver import load_alias_table

logger = get_logger(__name__)

# ── Keyword maps for mock mode ───────────────────────────

_SUMMARY_KEYWORDS = ("summarize", "summarise", "summary", "total", "how much", "sum of")

_BALANCE_KEYWORDS = ("balance", "balances", "outstanding", "ending")

_QUOTED_RE = re.compile(r"[\"“]([^\"”]{2,})[\"”]")

_COMPANY_RE = re.compile(r"\bcompany\s+([A-Za-z0-9_-]+)", re.IGNORECASE)

_EXCLUDE_RE = re.compile(
    r"\b(?:[Ee]xcluding|[Ee]xcept)\s+(?:vendor\s+)?([A-Z][\w&.-]*(?:\s+[A-Z][\w&.-]*)*)",
)


def _group_terms(q: str, terms: Sequence[str]) -> list[str]:
    """Find ``by <term>`` / ``per <term>`` phrases, longest alias first."""
    found: list[tuple[int, str]] = []
    taken: list[tuple[int, int]] = []
    for term in sorted(terms, key=len, reverse=True):
        for prefix in ("by ", "per "):
            phrase = prefix + term
            pos = q.find(phrase)
            if pos == -1:
                continue
            end = pos + len(phrase)
            if end < len(q) and q[end].isalnum():
                continue
            if any(s <= pos < e for s, e in taken):
                continue
            taken.append((pos, end))
            found.append((pos, term))
            break
    return [term for _, term in sorted(found)]


def _classify_mock(question: str) -> dict[str, Any]:
    """Deterministic keyword-based question → intent dict."""
    q = question.lower().strip()

    data_type = "balances" if any(k in q for k in _BALANCE_KEYWORDS) else "expenses"
    mode = "summary" if any(k in q for k in _SUMMARY_KEYWORDS) else "search"
    group_by = _group_terms(q, list(load_alias_table().keys()))

    filters: dict[str, Any] = {}
    m = _COMPANY_RE.search(question)
    if m:
        company = m.group(1)
        filters["company"] = int(company) if company.isdigit() else company

    m = _EXCLUDE_RE.search(question)
    if m:
        filters["vendor"] = {"exclude": [m.group(1).strip()]}

    keywords = [k.strip() for k in _QUOTED_RE.findall(question) if k.strip()]
    if keywords:
        filters["keyword"] = keywords

    return {
        "data_type": data_type,
        "group_by": group_by,
        "filters": filters,
        "mode": mode,
    }


# ── LLM classifier ───────────────────────────────────────

_LLM_SYSTEM_PROMPT = """\
You are an expert in interpreting financial (general ledger) queries. Given a \
user's query, extract a JSON object with these exact fields:

  data_type : string — 'expenses', 'balances', etc.
  group_by  : list[string] — human-readable field names to group by
  filters   : object — field name → value, [operator, value], or {{"exclude": [values]}};
              put free-text search terms under "keyword" as a list of strings
  mode      : 'summary' for totals / roll-ups, 'search' for finding records

Known field names: {terms}
Table columns: {columns}

Respond ONLY with valid JSON. No markdown, no explanation."""


def build_classifier_prompt(columns: Sequence[str]) -> str:
    terms = sorted(load_alias_table().keys())
    return _LLM_SYSTEM_PROMPT.format(
        terms=", ".join(terms),
        columns=", ".join(columns),
    )


def _classify_llm(question: str, columns: Sequence[str], provider: str) -> str:
    from ledger_copilot.copilot.llm_client import call_llm

    system = build_classifier_prompt(columns)
    return call_llm(question, provider=provider, system=system)


# ── Public API ───────────────────────────────────────────

def classify(
    question: str,
    columns: Sequence[str] = (),
    provider: str | None = None,
) -> str:
    """Classify *question* and return the raw intent JSON text.

    Modes
    -----
    mock              — rule-based keyword extraction (no API key needed)
    openai / anthropic — LLM-backed classification via llm_client
    """
    if provider is None:
        provider = get_settings().llm_provider.lower()

    if provider == "mock":
        text = json.dumps(_classify_mock(question))
    else:
        text = _classify_llm(question, columns, provider)

    logger.info("Classifier[%s] -> %s", provider, text[:500])
    return text
