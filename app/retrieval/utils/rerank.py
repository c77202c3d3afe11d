"""Candidate merging and a cheap lexical rerank on top of vector similarity."""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from app.retrieval.models import RankedPassage, RetrievedPassage
from app.retrieval.utils.keywords import count_keyword_hits, extract_keywords

KEYWORD_BONUS_PER_HIT = 0.02
MAX_KEYWORD_BONUS = 0.1

CandidateSet = Dict[Tuple[str, str, str], RetrievedPassage]


def _replaces(current: RetrievedPassage, challenger: RetrievedPassage) -> bool:
    if challenger.similarity is None:
        return False
    if current.similarity is None:
        return True
    return challenger.similarity > current.similarity


def dedupe_passages(passages: Iterable[RetrievedPassage]) -> CandidateSet:
    """Collapse passages sharing an identity triple.

    The higher similarity wins. On equal or missing similarity the first passage
    seen is kept, so the enriched query's hit wins over the raw query's on a tie.
    """

    merged: CandidateSet = {}
    for passage in passages:
        key = passage.identity.key()
        current = merged.get(key)
        if current is None or _replaces(current, passage):
            merged[key] = passage
    return merged


def keyword_bonus(hits: int) -> float:
    return min(MAX_KEYWORD_BONUS, hits * KEYWORD_BONUS_PER_HIT)


def rerank(
    candidates: CandidateSet,
    question: str,
    *,
    limit: Optional[int] = None,
) -> List[RankedPassage]:
    """Order candidates by similarity plus a capped keyword-overlap bonus.

    Truncation to ``limit`` happens after sorting.
    """

    keywords = extract_keywords(question)
    ranked: List[RankedPassage] = []
    for passage in candidates.values():
        hits = count_keyword_hits(passage.text, keywords)
        ranked.append(
            RankedPassage(
                passage=passage,
                score=passage.similarity_value + keyword_bonus(hits),
                keyword_hits=hits,
            )
        )

    # sort is stable: equal (score, similarity) keep candidate insertion order
    ranked.sort(key=lambda item: (-item.score, -item.passage.similarity_value))
    if limit is not None:
        return ranked[: max(0, limit)]
    return ranked
