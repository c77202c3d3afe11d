"""Prompt builder for grounded answers over spreadsheet sources."""
from __future__ import annotations

from typing import List, Mapping, Sequence

from app.retrieval.models import ConversationTurn, Source

NOT_IN_SOURCES_SENTENCE = "I couldn't find that in the indexed sheets."

SYSTEM_PROMPT = "\n".join(
    [
        "You answer questions using ONLY the Sources from Google Sheets given in the last message.",
        "- Cite every claim with the bracketed number of the source it comes from, like [1] or [2][3].",
        "- Source numbers refer to the order of the Sources block, starting at 1.",
        "- Copy identifiers, names, handles and dates exactly as written in the sources; do not paraphrase them.",
        "- Earlier conversation turns only tell you what the user means. Facts must come from the Sources.",
        f'- If the sources do not contain the answer, reply with exactly: "{NOT_IN_SOURCES_SENTENCE}"',
        "- Never claim to know how many sheets are indexed unless the sources explicitly say so.",
    ]
)


def document_label(source: Source) -> str:
    passage = source.passage
    title = passage.metadata.spreadsheet_title
    spreadsheet_id = passage.identity.spreadsheet_id
    return f"{title} ({spreadsheet_id})" if title else spreadsheet_id


def render_source(source: Source) -> str:
    identity = source.identity
    return "\n".join(
        [
            f"Source [{source.ordinal}]",
            f"Spreadsheet: {document_label(source)}",
            f"Tab: {identity.sheet_name}",
            f"Range: {identity.a1_range}",
            f"Content:\n{source.snippet}",
        ]
    )


def render_sources_block(sources: Sequence[Source]) -> str:
    return "Sources:\n\n" + "\n\n---\n\n".join(render_source(s) for s in sources)


def build_answer_prompt(
    *,
    question: str,
    history: Sequence[ConversationTurn],
    sources: Sequence[Source],
) -> List[Mapping[str, str]]:
    """System instruction, prior turns, the question, then the Sources block last."""

    messages: List[Mapping[str, str]] = [{"role": "system", "content": SYSTEM_PROMPT}]
    messages.extend({"role": turn.role, "content": turn.content} for turn in history)
    messages.append({"role": "user", "content": f"Question: {question}"})
    messages.append({"role": "user", "content": render_sources_block(sources)})
    return messages
