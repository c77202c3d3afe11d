"""Runtime configuration for the sheetqa FastAPI service."""
from functools import lru_cache
from typing import Optional

from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings pulled from environment variables."""

    app_env: str = "development"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    supabase_url: AnyHttpUrl = "http://supabase:54321"
    supabase_service_role_key: Optional[str] = None
    supabase_match_function: str = "match_chunks"
    supabase_documents_table: str = "spreadsheets"

    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    embed_model: str = "text-embedding-3-small"
    chat_model: str = "gpt-4.1-mini"
    chat_temperature: float = 0.2
    chat_max_tokens: int = 800

    # Answer window (topK) and the wider candidate window requested from the store.
    top_k_default: int = 10
    top_k_min: int = 3
    top_k_max: int = 20
    candidate_multiplier: int = 3
    candidate_min: int = 15
    candidate_max: int = 60

    history_turns: int = 8
    dual_query: bool = True
    snippet_max_chars: int = 1200
    introspection_evidence_limit: int = 50

    langfuse_host: Optional[str] = None
    langfuse_public_key: Optional[str] = None
    langfuse_secret_key: Optional[str] = None
    langfuse_dataset: Optional[str] = "sheetqa_requests"
    telemetry_timeout_seconds: float = 2.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SHEETQA_",
        env_ignore_empty=True,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor used across the codebase."""

    return Settings()  # type: ignore[arg-type]


settings = get_settings()
