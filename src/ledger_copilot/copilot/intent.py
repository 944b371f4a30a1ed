"""
Intent -- the structured interpretation of a free-text ledger question.

The classifier is an untrusted producer: ``parse_intent`` is the only way
raw classifier text becomes an ``Intent``.  It either returns a frozen,
validated object or raises ``MalformedIntent`` with the raw text attached.

Accepted ``filters`` shapes::

    {"vendor": "Acme"}                          equality
    {"vendor": ["Acme", "Basin"]}               membership
    {"balance": [">", 1000]}                    comparison pair
    {"balance": {"operator": ">", "value": 0}}  comparison pair
    {"vendor": {"exclude": ["Acme"]}}           per-field exclusion
    {"exclude": {"vendor": "Acme"}}             exclusion sub-mapping
    {"keyword": ["pump"]}                       lifted into Intent.keyword
"""
from __future__ import annotations

import json
import math
import re
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from ledger_copilot.core.errors import MalformedIntent
from ledger_copilot.core.logging import get_logger

logger = get_logger(__name__)

Scalar = Union[bool, int, float, str]

MODES = ("summary", "search")
DEFAULT_MODE = "search"

OPERATORS: dict[str, str] = {
    "=": "=", "==": "=", "eq": "=",
    "!=": "!=", "<>": "!=", "ne": "!=", "neq": "!=",
    ">": ">", "gt": ">",
    ">=": ">=", "gte": ">=",
    "<": "<", "lt": "<",
    "<=": "<=", "lte": "<=",
}

_KEYWORD_KEYS = ("keyword", "keywords")


class FilterClause(BaseModel):
    """One named-field predicate, still in human vocabulary (pre-resolution)."""

    model_config = ConfigDict(frozen=True)

    field: str
    operator: str = "="
    values: tuple[Scalar, ...]
    exclude: bool = False


class Intent(BaseModel):
    """Validated classifier output.  Immutable once built."""

    model_config = ConfigDict(frozen=True)

    data_type: str = Field(..., description="expenses | balances | ...")
    group_by: tuple[str, ...] = Field(default=(), description="Human field terms, in order")
    filters: tuple[FilterClause, ...] = Field(default=())
    keyword: tuple[str, ...] = Field(default=(), description="Free-text terms, ANDed")
    mode: Literal["summary", "search"] = DEFAULT_MODE

    @property
    def is_balance(self) -> bool:
        """Point-in-time balances are passed through rather than summed."""
        return "balance" in self.data_type

    def describe(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


# ── Parsing helpers ──────────────────────────────────────

def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*", "", text)
        text = re.sub(r"\s*```$", "", text)
    return text


def _scalar(value: Any) -> Scalar | None:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and not math.isfinite(value):
        logger.warning("Non-finite number %r has no SQL literal -- dropped", value)
        return None
    if isinstance(value, (int, float)):
        return value
    return None


def _scalars(value: Any) -> tuple[Scalar, ...]:
    items = value if isinstance(value, (list, tuple)) else [value]
    out = []
    for item in items:
        s = _scalar(item)
        if s is not None:
            out.append(s)
    return tuple(out)


def _string_list(value: Any, field: str, raw: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise MalformedIntent(f"'{field}' must be a string or a list of strings", raw)
    return tuple(str(v).strip() for v in value if isinstance(v, str) and v.strip())


def _operator_pair(value: Any) -> tuple[str, Any] | None:
    """Recognise ``[op, literal]`` or ``{"operator": op, "value": literal}``."""
    if isinstance(value, (list, tuple)) and len(value) == 2 and isinstance(value[0], str):
        if value[0].strip().lower() in OPERATORS:
            return value[0], value[1]
    if isinstance(value, dict):
        op = value.get("operator", value.get("op"))
        if isinstance(op, str) and "value" in value:
            return op, value["value"]
    return None


def _exclusions(field: str, value: Any) -> list[FilterClause]:
    values = _scalars(value)
    if not values:
        logger.warning("Exclude filter on %r has no usable values -- dropped", field)
        return []
    return [FilterClause(field=field, operator="!=", values=values, exclude=True)]


def _parse_filters(raw_filters: Any, raw: str) -> tuple[list[FilterClause], list[str]]:
    """Split classifier filters into clauses and lifted keyword terms."""
    if raw_filters is None:
        return [], []
    if not isinstance(raw_filters, dict):
        raise MalformedIntent("'filters' must be a JSON object", raw)

    clauses: list[FilterClause] = []
    keywords: list[str] = []

    for key, value in raw_filters.items():
        field = str(key).strip()
        lowered = field.lower()

        if lowered in _KEYWORD_KEYS:
            keywords.extend(_string_list(value, "filters.keyword", raw))
            continue

        if lowered == "exclude":
            if not isinstance(value, dict):
                raise MalformedIntent("'filters.exclude' must map fields to values", raw)
            for ex_field, ex_value in value.items():
                clauses.extend(_exclusions(str(ex_field).strip(), ex_value))
            continue

        if isinstance(value, dict) and "exclude" in value:
            clauses.extend(_exclusions(field, value["exclude"]))
            continue

        pair = _operator_pair(value)
        if pair is not None:
            op, literal = pair
            operator = OPERATORS.get(op.strip().lower())
            scalar = _scalar(literal)
            if operator is None or scalar is None:
                logger.warning("Unsupported comparison %r on %r -- dropped", op, field)
                continue
            clauses.append(FilterClause(field=field, operator=operator, values=(scalar,)))
            continue

        values = _scalars(value)
        if not values:
            logger.warning("Filter %r has no usable value -- dropped", field)
            continue
        clauses.append(FilterClause(field=field, operator="=", values=values))

    return clauses, keywords


# ── Public API ───────────────────────────────────────────

def parse_intent(text: Any) -> Intent:
    """Parse raw classifier output into an ``Intent``.

    Raises
    ------
    MalformedIntent
        When the text is not a JSON object, lacks ``data_type``, or carries
        a structurally wrong ``group_by`` / ``filters``.  Optional fields
        that are merely absent fall back to empty defaults.
    """
    if not isinstance(text, str):
        raise MalformedIntent("Classifier returned a non-text response", repr(text))

    try:
        data = json.loads(_strip_fences(text))
    except json.JSONDecodeError as exc:
        raise MalformedIntent(f"Classifier output is not valid JSON: {exc}", text) from exc

    if not isinstance(data, dict):
        raise MalformedIntent("Classifier output must be a JSON object", text)

    data_type = data.get("data_type")
    if not isinstance(data_type, str) or not data_type.strip():
        raise MalformedIntent("Classifier output is missing 'data_type'", text)

    group_by = _string_list(data.get("group_by"), "group_by", text)
    clauses, lifted = _parse_filters(data.get("filters"), text)
    keyword = _string_list(data.get("keyword"), "keyword", text) + tuple(lifted)

    mode = str(data.get("mode") or DEFAULT_MODE).strip().lower()
    if mode not in MODES:
        logger.warning("Unknown mode %r -- using %s", mode, DEFAULT_MODE)
        mode = DEFAULT_MODE

    intent = Intent(
        data_type=data_type.strip().lower(),
        group_by=group_by,
        filters=tuple(clauses),
        keyword=tuple(dict.fromkeys(keyword)),
        mode=mode,
    )
    logger.info("Intent parsed -> %s", intent.model_dump_json())
    return intent
