"""
Semantic search over the GL corpus.

Providers:
  mock     -- returns no matches (offline dev / tests)
  pinecone -- embeds the query with OpenAI and queries a Pinecone index

Each match carries a flat metadata record; ``render_matches`` turns the
ranked list into the text block the fusion retriever merges with table
output.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from ledger_copilot.core.config import get_settings
from ledger_copilot.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SearchMatch:
    id: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)

    def render(self) -> str:
        return " | ".join(f"{k}: {v}" for k, v in self.metadata.items())


class SearchIndex(Protocol):
    def search(self, text: str) -> list[SearchMatch]: ...


def render_matches(matches: Sequence[SearchMatch]) -> str:
    """``Match i → key: value | ...`` per match, blank line between matches."""
    return "\n\n".join(
        f"Match {i} → {m.render()}" for i, m in enumerate(matches, 1)
    )


# ── Providers ────────────────────────────────────────────

class MockSearchIndex:
    """Returns a fixed list of matches (empty by default)."""

    def __init__(self, matches: Sequence[SearchMatch] = ()):
        self._matches = list(matches)

    def search(self, text: str) -> list[SearchMatch]:
        logger.info("Search mock mode -- %d canned matches", len(self._matches))
        return list(self._matches)


class UnavailableSearchIndex:
    """Stands in for an index whose client could not be built.

    Every search re-raises the construction error, so the retriever treats
    it like any other search failure.
    """

    def __init__(self, error: Exception):
        self._error = error

    def search(self, text: str) -> list[SearchMatch]:
        raise RuntimeError(f"Search index unavailable: {self._error}") from self._error


class PineconeSearchIndex:
    """OpenAI embedding + Pinecone similarity query."""

    def __init__(
        self,
        api_key: str,
        index_name: str,
        namespace: str = "default",
        top_k: int = 5,
    ):
        if not api_key:
            raise RuntimeError(
                "pinecone_api_key is not set.  "
                "Set PINECONE_API_KEY in your .env file or environment."
            )
        if not index_name:
            raise RuntimeError(
                "pinecone_index is not set.  "
                "Set PINECONE_INDEX in your .env file or environment."
            )

        try:
            from pinecone import Pinecone  # type: ignore[import-untyped]
        except ImportError as exc:
            raise RuntimeError(
                "The 'pinecone' package is not installed.  "
                "Run: pip install pinecone"
            ) from exc

        self._index = Pinecone(api_key=api_key).Index(index_name)
        self._namespace = namespace
        self._top_k = top_k

    def search(self, text: str) -> list[SearchMatch]:
        from ledger_copilot.copilot.llm_client import embed_text

        vector = embed_text(text)
        results = self._index.query(
            vector=vector,
            top_k=self._top_k,
            include_metadata=True,
            namespace=self._namespace,
        )
        matches = [
            SearchMatch(
                id=str(getattr(m, "id", "")),
                score=float(getattr(m, "score", 0.0) or 0.0),
                metadata=dict(getattr(m, "metadata", None) or {}),
            )
            for m in (getattr(results, "matches", None) or [])
        ]
        logger.info("Pinecone returned %d matches (namespace=%s)", len(matches), self._namespace)
        return matches


def get_search_index(provider: str | None = None) -> SearchIndex:
    """Build a search index client for this request."""
    settings = get_settings()
    if provider is None:
        provider = settings.search_provider.lower()

    if provider == "mock":
        return MockSearchIndex()
    if provider == "pinecone":
        return PineconeSearchIndex(
            api_key=settings.pinecone_api_key,
            index_name=settings.pinecone_index,
            namespace=settings.pinecone_namespace,
            top_k=settings.search_top_k,
        )
    raise NotImplementedError(
        f"Search provider '{provider}' is not supported.  Choose from: mock, pinecone"
    )
