"""Centralized dependency providers for infra clients and the ask service.

This keeps construction in one place so the API and the health probes share
consistent configuration and make DI/testing easier.
"""
from __future__ import annotations

from functools import lru_cache

from app.config import settings
from app.infra.chat_client import ChatClient
from app.infra.embedding_client import EmbeddingClient
from app.infra.supabase_client import SupabaseClient
from app.retrieval.services.ask_service import AskConfig, AskService


def _require_openai_key() -> str:
    if not settings.openai_api_key:
        raise RuntimeError("SHEETQA_OPENAI_API_KEY is required for embeddings and chat")
    return settings.openai_api_key


@lru_cache(maxsize=1)
def get_embedding_client() -> EmbeddingClient:
    return EmbeddingClient(
        _require_openai_key(),
        model=settings.embed_model,
        base_url=settings.openai_base_url,
    )


@lru_cache(maxsize=1)
def get_chat_client() -> ChatClient:
    return ChatClient(
        _require_openai_key(),
        model=settings.chat_model,
        base_url=settings.openai_base_url,
    )


@lru_cache(maxsize=1)
def get_supabase_client() -> SupabaseClient:
    if not settings.supabase_service_role_key:
        raise RuntimeError("SHEETQA_SUPABASE_SERVICE_ROLE_KEY is required for retrieval")
    return SupabaseClient(
        str(settings.supabase_url),
        settings.supabase_service_role_key,
        match_function=settings.supabase_match_function,
        documents_table=settings.supabase_documents_table,
    )


@lru_cache(maxsize=1)
def get_ask_service() -> AskService:
    return AskService(
        embedding_client=get_embedding_client(),
        store=get_supabase_client(),
        chat_client=get_chat_client(),
        config=AskConfig.from_settings(settings),
    )
