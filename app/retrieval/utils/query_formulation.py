"""Turn a conversation into retrieval queries without an extra model call."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from app.retrieval.errors import MissingInputError
from app.retrieval.models import ConversationTurn

DEFAULT_HISTORY_TURNS = 8

DOMAIN_PREAMBLE = (
    "Answer questions about crew spreadsheets. "
    "Look for names, roles, status, meeting times, leads, crew membership lists, and roster tables."
)


@dataclass(frozen=True, slots=True)
class FormulatedQuery:
    question: str
    history: List[ConversationTurn] = field(default_factory=list)
    queries: List[str] = field(default_factory=list)


def _current_user_index(conversation: Sequence[ConversationTurn]) -> Optional[int]:
    for idx in range(len(conversation) - 1, -1, -1):
        turn = conversation[idx]
        if turn.role == "user" and turn.content.strip():
            return idx
    return None


def history_window(
    turns: Sequence[ConversationTurn], limit: int = DEFAULT_HISTORY_TURNS
) -> List[ConversationTurn]:
    """The last ``limit`` non-empty turns, oldest first."""

    kept = [t for t in turns if t.content.strip()]
    if limit <= 0:
        return []
    return kept[-limit:]


def build_enriched_query(question: str, history: Sequence[ConversationTurn]) -> str:
    lines = [DOMAIN_PREAMBLE]
    if history:
        lines.append("Conversation so far:")
        lines.extend(f"{turn.role}: {turn.content.strip()}" for turn in history)
    lines.append(f"Current question: {question}")
    return "\n".join(lines)


def formulate_queries(
    conversation: Sequence[ConversationTurn],
    *,
    fallback_question: Optional[str] = None,
    history_turns: int = DEFAULT_HISTORY_TURNS,
    dual_query: bool = True,
) -> FormulatedQuery:
    """Resolve the current question and derive the retrieval queries for it.

    The current question is the latest user turn; callers that only send a
    bare ``question`` get that instead. The first query is the context-enriched
    one, the raw question follows when ``dual_query`` is on.
    """

    idx = _current_user_index(conversation)
    if idx is not None:
        question = conversation[idx].content.strip()
        history = history_window(conversation[:idx], history_turns)
    else:
        question = (fallback_question or "").strip()
        history = []

    if not question:
        raise MissingInputError("no user message or question was provided")

    queries = [build_enriched_query(question, history)]
    if dual_query and question not in queries:
        queries.append(question)

    return FormulatedQuery(question=question, history=history, queries=queries)
