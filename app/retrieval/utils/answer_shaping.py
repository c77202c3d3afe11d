"""Build the source list shown to the model and shape its reply into an Answer."""
from __future__ import annotations

from typing import List, Optional, Sequence

from app.retrieval.models import Answer, Citation, Evidence, RankedPassage, Source
from app.retrieval.utils.keywords import extract_keywords
from app.retrieval.utils.snippets import DEFAULT_MAX_CHARS, extract_snippet

SHEET_URL_TEMPLATE = "https://docs.google.com/spreadsheets/d/{spreadsheet_id}/edit"

NOT_FOUND_ANSWER = (
    "I couldn't find anything relevant in the indexed sheets yet. "
    "(If you expect data exists, the index may not include the right sheets, "
    "or the search may be filtering too aggressively.)"
)
EMPTY_MODEL_ANSWER = "The model returned no answer for these sources."


def sheet_url(spreadsheet_id: str, gid: Optional[int] = None) -> str:
    base = SHEET_URL_TEMPLATE.format(spreadsheet_id=spreadsheet_id)
    return f"{base}#gid={gid}" if gid is not None else base


def build_sources(
    ranked: Sequence[RankedPassage],
    question: str,
    *,
    max_chars: int = DEFAULT_MAX_CHARS,
) -> List[Source]:
    """Number the answer window 1..N and attach each passage's snippet."""

    keywords = extract_keywords(question)
    return [
        Source(
            ordinal=idx,
            passage=item.passage,
            snippet=extract_snippet(item.passage.text, question, max_chars=max_chars, keywords=keywords),
        )
        for idx, item in enumerate(ranked, start=1)
    ]


def to_citation(source: Source) -> Citation:
    passage = source.passage
    identity = passage.identity
    return Citation(
        spreadsheet_id=identity.spreadsheet_id,
        spreadsheet_title=passage.metadata.spreadsheet_title,
        url=sheet_url(identity.spreadsheet_id, passage.metadata.gid),
        sheet_name=identity.sheet_name,
        a1_range=identity.a1_range,
        similarity=passage.similarity,
    )


def to_evidence(source: Source) -> Evidence:
    identity = source.identity
    return Evidence(
        source=source.ordinal,
        spreadsheet_id=identity.spreadsheet_id,
        sheet_name=identity.sheet_name,
        a1_range=identity.a1_range,
        preview=source.snippet,
    )


def shape_answer(completion: Optional[str], sources: Sequence[Source]) -> Answer:
    """Citations and evidence are projections of the same sources, in prompt order."""

    text = (completion or "").strip() or EMPTY_MODEL_ANSWER
    return Answer(
        text=text,
        citations=[to_citation(s) for s in sources],
        evidence=[to_evidence(s) for s in sources],
        route="retrieval",
    )


def not_found_answer() -> Answer:
    return Answer(text=NOT_FOUND_ANSWER, route="empty")
