"""
Term resolver -- maps business vocabulary onto live GL column identifiers.

Two sources are consulted, in order:
  1. the static alias table (``column_aliases.yml``, loaded once, read-only)
  2. case-insensitive equality against the column catalog

Anything else is *unresolved*.  There is no fuzzy or partial matching: an
ambiguous term is dropped and logged, never guessed.  Every resolved value is
returned in the catalog's own spelling, so a stale alias can never leak a
column the table no longer has.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

import yaml

from ledger_copilot.core.logging import get_logger

logger = get_logger(__name__)

_ALIAS_PATH = Path(__file__).resolve().parent / "column_aliases.yml"


def normalise_term(term: str) -> str:
    return term.strip().lower()


# ── Alias table ──────────────────────────────────────────

def _parse_aliases(raw: dict) -> dict[str, str]:
    aliases = raw.get("aliases") or {}
    if not isinstance(aliases, dict):
        raise ValueError("column_aliases.yml: 'aliases' must be a mapping")
    return {normalise_term(str(k)): str(v).strip() for k, v in aliases.items()}


@lru_cache(maxsize=4)
def load_alias_table(path: str | Path | None = None) -> Mapping[str, str]:
    """Load and cache the alias table.  The returned mapping is read-only."""
    p = Path(path) if path else _ALIAS_PATH
    with open(p, encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    table = _parse_aliases(raw)
    logger.info("Alias table loaded  terms=%d  path=%s", len(table), p.name)
    return MappingProxyType(table)


# ── Column catalog ───────────────────────────────────────

class ColumnCatalog:
    """The set of valid column identifiers for the target table.

    Built fresh from the store on every request.  Membership and lookup are
    case-insensitive; ``lookup`` returns the catalog spelling.
    """

    def __init__(self, columns: Iterable[str]):
        self._columns: list[str] = []
        self._by_lower: dict[str, str] = {}
        for col in columns:
            col = str(col).strip()
            if not col or col.lower() in self._by_lower:
                continue
            self._columns.append(col)
            self._by_lower[col.lower()] = col

    def lookup(self, name: str) -> str | None:
        return self._by_lower.get(name.strip().lower())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.lookup(name) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(self._columns)

    def __len__(self) -> int:
        return len(self._columns)

    def __repr__(self) -> str:
        return f"ColumnCatalog({self._columns!r})"


# ── Resolution ───────────────────────────────────────────

@dataclass(frozen=True)
class Resolution:
    """Pairing of a human term with its resolved column (``None`` = unresolved)."""

    term: str
    column: str | None

    @property
    def resolved(self) -> bool:
        return self.column is not None


def resolve(
    term: str,
    catalog: ColumnCatalog,
    aliases: Mapping[str, str] | None = None,
) -> str | None:
    """Resolve one human term to a catalog column, or ``None``."""
    if aliases is None:
        aliases = load_alias_table()

    key = normalise_term(term)
    if not key:
        return None

    target = aliases.get(key)
    if target is not None:
        return catalog.lookup(target)

    return catalog.lookup(key)


def resolve_terms(
    terms: Iterable[str],
    catalog: ColumnCatalog,
    kind: str,
    aliases: Mapping[str, str] | None = None,
) -> list[Resolution]:
    """Resolve a batch of terms, logging each miss as a diagnostic.

    *kind* labels the log line (``group_by``, ``filter``, ``exclude``) so
    operators can see which part of the intent lost a field.
    """
    out: list[Resolution] = []
    for term in terms:
        column = resolve(term, catalog, aliases)
        if column is None:
            logger.warning("Unresolved %s term %r -- dropped from query", kind, term)
        out.append(Resolution(term=term, column=column))
    return out
