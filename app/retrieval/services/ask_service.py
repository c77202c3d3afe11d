"""Retrieval + grounded generation pipeline for spreadsheet questions."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Protocol, Sequence

from app.config import Settings
from app.retrieval.errors import ModelError
from app.retrieval.models import Answer, ConversationTurn
from app.retrieval.prompts.sheet_answer import build_answer_prompt
from app.retrieval.services.index_introspection import (
    DEFAULT_EVIDENCE_LIMIT,
    DocumentLister,
    IndexIntrospector,
    QuestionClassifier,
    classify_question,
)
from app.retrieval.utils.answer_shaping import build_sources, not_found_answer, shape_answer
from app.retrieval.utils.query_formulation import DEFAULT_HISTORY_TURNS, formulate_queries
from app.retrieval.utils.rerank import dedupe_passages, rerank
from app.retrieval.utils.retrievers import (
    ChunkSearcher,
    Embedder,
    candidate_width,
    clamp_top_k,
    retrieve_candidates,
)
from app.retrieval.utils.snippets import DEFAULT_MAX_CHARS

logger = logging.getLogger(__name__)


class ChatCompleter(Protocol):
    async def chat(
        self,
        messages: Sequence[Mapping[str, str]],
        *,
        temperature: float = 0.2,
        max_tokens: int = 800,
    ) -> str: ...


class SheetStore(ChunkSearcher, DocumentLister, Protocol):
    pass


@dataclass(slots=True)
class AskConfig:
    top_k_default: int = 10
    top_k_min: int = 3
    top_k_max: int = 20
    candidate_multiplier: int = 3
    candidate_min: int = 15
    candidate_max: int = 60
    history_turns: int = DEFAULT_HISTORY_TURNS
    dual_query: bool = True
    snippet_max_chars: int = DEFAULT_MAX_CHARS
    introspection_evidence_limit: int = DEFAULT_EVIDENCE_LIMIT
    temperature: float = 0.2
    max_tokens: int = 800

    @classmethod
    def from_settings(cls, settings: Settings) -> "AskConfig":
        return cls(
            top_k_default=settings.top_k_default,
            top_k_min=settings.top_k_min,
            top_k_max=settings.top_k_max,
            candidate_multiplier=settings.candidate_multiplier,
            candidate_min=settings.candidate_min,
            candidate_max=settings.candidate_max,
            history_turns=settings.history_turns,
            dual_query=settings.dual_query,
            snippet_max_chars=settings.snippet_max_chars,
            introspection_evidence_limit=settings.introspection_evidence_limit,
            temperature=settings.chat_temperature,
            max_tokens=settings.chat_max_tokens,
        )


@dataclass(slots=True)
class AskResult:
    question: str
    answer: Answer
    queries: List[str] = field(default_factory=list)
    top_k: int = 0
    candidates: int = 0


class AskService:
    """Routes a conversation to index introspection or grounded retrieval."""

    def __init__(
        self,
        embedding_client: Embedder,
        store: SheetStore,
        chat_client: ChatCompleter,
        *,
        config: Optional[AskConfig] = None,
        classifier: QuestionClassifier = classify_question,
    ) -> None:
        self.embedding_client = embedding_client
        self.store = store
        self.chat_client = chat_client
        self.config = config or AskConfig()
        self.classifier = classifier
        self.introspector = IndexIntrospector(
            store, evidence_limit=self.config.introspection_evidence_limit
        )

    def resolve_top_k(self, requested: Optional[int]) -> int:
        cfg = self.config
        return clamp_top_k(
            requested, default=cfg.top_k_default, minimum=cfg.top_k_min, maximum=cfg.top_k_max
        )

    async def ask(
        self,
        conversation: Sequence[ConversationTurn],
        *,
        question: Optional[str] = None,
        top_k: Optional[int] = None,
        filter_spreadsheet_id: Optional[str] = None,
    ) -> AskResult:
        cfg = self.config
        formulated = formulate_queries(
            conversation,
            fallback_question=question,
            history_turns=cfg.history_turns,
            dual_query=cfg.dual_query,
        )

        if self.classifier(formulated.question) == "introspection":
            answer = await self.introspector.answer(filter_spreadsheet_id=filter_spreadsheet_id)
            return AskResult(question=formulated.question, answer=answer)

        window = self.resolve_top_k(top_k)
        width = candidate_width(
            window,
            multiplier=cfg.candidate_multiplier,
            minimum=cfg.candidate_min,
            maximum=cfg.candidate_max,
        )
        raw = await retrieve_candidates(
            formulated.queries,
            width=width,
            filter_spreadsheet_id=filter_spreadsheet_id,
            embedding_client=self.embedding_client,
            store=self.store,
        )
        candidates = dedupe_passages(raw)
        ranked = rerank(candidates, formulated.question, limit=window)
        logger.info(
            "Retrieved %s raw / %s unique candidates, answering from %s (width=%s, queries=%s)",
            len(raw),
            len(candidates),
            len(ranked),
            width,
            len(formulated.queries),
        )

        if not ranked:
            return AskResult(
                question=formulated.question,
                answer=not_found_answer(),
                queries=formulated.queries,
                top_k=window,
            )

        sources = build_sources(ranked, formulated.question, max_chars=cfg.snippet_max_chars)
        messages = build_answer_prompt(
            question=formulated.question,
            history=formulated.history,
            sources=sources,
        )
        try:
            completion = await self.chat_client.chat(
                messages, temperature=cfg.temperature, max_tokens=cfg.max_tokens
            )
        except Exception as exc:
            raise ModelError(str(exc) or exc.__class__.__name__) from exc

        if not (completion or "").strip():
            logger.warning("Model returned a blank answer for %s sources", len(sources))

        return AskResult(
            question=formulated.question,
            answer=shape_answer(completion, sources),
            queries=formulated.queries,
            top_k=window,
            candidates=len(candidates),
        )
