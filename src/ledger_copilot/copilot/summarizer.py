"""
Summary layer -- turns the fused data block into 2–3 sentences of prose.

The provenance note, when present, is passed to the model verbatim so a
semantic-only answer is framed as lower-confidence.
"""
from __future__ import annotations

from ledger_copilot.copilot.llm_client import call_llm
from ledger_copilot.core.logging import get_logger

logger = get_logger(__name__)

SUMMARY_SYSTEM_PROMPT = "You are a CPA assistant."


def build_summary_prompt(user_query: str, data_block: str, note: str = "") -> str:
    prompt = (
        f"You are a financial assistant. Based on the user's query: '{user_query}', "
        "and the aggregated data below, provide a concise summary (2–3 sentences).\n\n"
        f"Aggregated Data:\n{data_block}"
    )
    if note:
        prompt += f"\n\nNote: {note}"
    return prompt


def summarize(
    user_query: str,
    data_block: str,
    note: str = "",
    provider: str | None = None,
) -> str:
    """Return a short prose summary of *data_block* for *user_query*."""
    prompt = build_summary_prompt(user_query, data_block, note)
    summary = call_llm(prompt, provider=provider, system=SUMMARY_SYSTEM_PROMPT).strip()
    logger.info("Summary generated (%d chars)", len(summary))
    return summary
