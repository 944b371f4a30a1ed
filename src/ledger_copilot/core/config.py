"""
Centralised application settings loaded from environment / .env file.
"""
from __future__ import annotations

from pathlib import Path
from functools import lru_cache

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load .env from project root (three levels up from this file)
_ENV_PATH = Path(__file__).resolve().parents[3] / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseSettings):
    # ── Snowflake ────────────────────────────────────────
    snowflake_account: str = ""
    snowflake_user: str = ""
    snowflake_password: str = ""
    snowflake_warehouse: str = ""
    snowflake_role: str = ""
    db_url: str = ""  # any SQLAlchemy URL; overrides the Snowflake parts

    # ── General ledger table ─────────────────────────────
    gl_database: str = "STICK_DB"
    gl_schema: str = "FINANCIAL"
    gl_table: str = "S3_GL"
    gl_amount_column: str = "BALANCE"
    query_timeout_ms: int = 10_000

    # ── LLM ──────────────────────────────────────────────
    llm_provider: str = "mock"  # mock | openai | anthropic
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    anthropic_model: str = "claude-3-haiku-20240307"
    llm_max_tokens: int = 512

    # ── Semantic search ──────────────────────────────────
    search_provider: str = "mock"  # mock | pinecone
    pinecone_api_key: str = ""
    pinecone_index: str = ""
    pinecone_namespace: str = "default"
    search_top_k: int = 5
    search_type_hint: bool = True

    # ── App ──────────────────────────────────────────────
    api_port: int = 8000
    log_level: str = "INFO"
    debug_payload: bool = False

    @property
    def database_url(self) -> str:
        if self.db_url:
            return self.db_url
        url = (
            f"snowflake://{self.snowflake_user}:{self.snowflake_password}"
            f"@{self.snowflake_account}/{self.gl_database}/{self.gl_schema}"
            f"?warehouse={self.snowflake_warehouse}"
        )
        if self.snowflake_role:
            url += f"&role={self.snowflake_role}"
        return url

    @property
    def gl_table_ref(self) -> str:
        """Fully-qualified table name used in generated SQL."""
        return ".".join(p for p in (self.gl_database, self.gl_schema, self.gl_table) if p)

    @property
    def backslash_escapes(self) -> bool:
        """Snowflake and MySQL read backslash as an escape inside string literals."""
        backend = self.database_url.split(":", 1)[0].split("+", 1)[0].lower()
        return backend in ("snowflake", "mysql", "mariadb")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
