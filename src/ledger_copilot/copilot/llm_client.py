"""
LLM client abstraction -- provider-agnostic wrapper.

Two jobs go through here: the classifier call (question -> intent JSON)
and the summary call (data block -> prose).  Semantic search also needs
query embeddings, which are OpenAI-only.

Supported providers:
  mock      -- echo back the prompt (for tests / offline dev)
  openai    -- OpenAI Chat Completions (OPENAI_MODEL, gpt-4o-mini default)
  anthropic -- Anthropic Messages (ANTHROPIC_MODEL, claude-3-haiku default)

Keys and model names are read from Settings (env / .env).
"""
from __future__ import annotations

import importlib
from typing import Any, Callable

from ledger_copilot.core.config import get_settings
from ledger_copilot.core.logging import get_logger

logger = get_logger(__name__)

EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_SYSTEM_PROMPT = "You are a CPA assistant."


def _client_module(package: str, key_setting: str) -> tuple[Any, str]:
    """Return ``(module, api_key)`` for a provider SDK, or raise RuntimeError."""
    api_key = getattr(get_settings(), key_setting)
    if not api_key:
        raise RuntimeError(
            f"{key_setting} is not set.  "
            f"Set {key_setting.upper()} in your .env file or environment."
        )
    try:
        module = importlib.import_module(package)
    except ImportError as exc:
        raise RuntimeError(
            f"The '{package}' package is not installed.  Run: pip install {package}"
        ) from exc
    return module, api_key


def _openai_client() -> Any:
    openai, api_key = _client_module("openai", "openai_api_key")
    return openai.OpenAI(api_key=api_key)


# ── Providers ────────────────────────────────────────────

def _call_mock(prompt: str, system: str) -> str:
    logger.info("LLM mock mode -- returning echo")
    return f"[MOCK] {prompt[:200]}"


def _call_openai(prompt: str, system: str) -> str:
    settings = get_settings()
    response = _openai_client().chat.completions.create(
        model=settings.openai_model,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ],
        temperature=0.0,
        max_tokens=settings.llm_max_tokens,
    )
    text = response.choices[0].message.content or ""
    logger.info("OpenAI response (%d chars)", len(text))
    return text


def _call_anthropic(prompt: str, system: str) -> str:
    settings = get_settings()
    anthropic, api_key = _client_module("anthropic", "anthropic_api_key")
    response = anthropic.Anthropic(api_key=api_key).messages.create(
        model=settings.anthropic_model,
        max_tokens=settings.llm_max_tokens,
        system=system,
        messages=[{"role": "user", "content": prompt}],
    )
    text = "".join(getattr(block, "text", "") for block in response.content or [])
    logger.info("Anthropic response (%d chars)", len(text))
    return text


_PROVIDERS: dict[str, Callable[[str, str], str]] = {
    "mock": _call_mock,
    "openai": _call_openai,
    "anthropic": _call_anthropic,
}


# ── Public API ───────────────────────────────────────────

def call_llm(
    prompt: str,
    provider: str | None = None,
    system: str = DEFAULT_SYSTEM_PROMPT,
) -> str:
    """Send *prompt* to the configured (or overridden) LLM provider.

    Parameters
    ----------
    prompt : str
        The user-turn text.
    provider : str, optional
        Override the provider from settings.  One of: mock, openai, anthropic.
    system : str
        System instruction sent alongside the prompt (ignored by mock).
    """
    if provider is None:
        provider = get_settings().llm_provider.lower()

    fn = _PROVIDERS.get(provider)
    if fn is None:
        raise NotImplementedError(
            f"LLM provider '{provider}' is not supported.  "
            f"Choose from: {', '.join(_PROVIDERS)}"
        )

    logger.info("Calling LLM provider=%s  prompt_len=%d", provider, len(prompt))
    return fn(prompt, system)


def embed_text(text: str, model: str = EMBEDDING_MODEL) -> list[float]:
    """Return the OpenAI embedding vector for *text*."""
    response = _openai_client().embeddings.create(input=text, model=model)
    vector = list(response.data[0].embedding)
    logger.info("Embedded text (%d chars) -> %d dims", len(text), len(vector))
    return vector
