"""
FastAPI application entry-point.

    uvicorn ledger_copilot.api.main:app --reload
    python -m ledger_copilot.api.main          # serves on API_PORT
"""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ledger_copilot.api.routers import query
from ledger_copilot.core.config import get_settings
from ledger_copilot.core.logging import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="Ledger Copilot",
    version="0.1.0",
    description="Natural-language questions over general-ledger records",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "GET", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(query.router, prefix="/query", tags=["Copilot"])


@app.get("/health")
def health():
    return {"status": "ok"}


def run() -> None:
    import uvicorn

    settings = get_settings()
    logger.info("Serving Ledger Copilot on :%d (llm=%s, search=%s)",
                settings.api_port, settings.llm_provider, settings.search_provider)
    uvicorn.run(app, host="0.0.0.0", port=settings.api_port)


if __name__ == "__main__":
    run()
