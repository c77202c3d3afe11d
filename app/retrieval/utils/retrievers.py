"""Retrieval helpers for the sheet question-answering pipeline."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Mapping, Optional, Protocol, Sequence

from app.retrieval.errors import RetrievalError
from app.retrieval.models import PassageIdentity, RetrievedPassage, SourceMetadata

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    async def embed(self, text: str) -> Sequence[float]: ...


class ChunkSearcher(Protocol):
    async def match_chunks(
        self,
        vector: Sequence[float],
        *,
        match_count: int,
        filter_spreadsheet_id: Optional[str] = None,
    ) -> List[Mapping[str, object]]: ...


def clamp_top_k(requested: Optional[int], *, default: int, minimum: int, maximum: int) -> int:
    """Clamp the caller's answer-window hint into ``[minimum, maximum]``."""

    value = default if requested is None else int(requested)
    return max(minimum, min(maximum, value))


def candidate_width(top_k: int, *, multiplier: int, minimum: int, maximum: int) -> int:
    """How many candidates to pull from the store for an answer window of ``top_k``."""

    return max(minimum, min(maximum, top_k * multiplier))


def _similarity(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def passage_from_row(row: Mapping[str, Any]) -> Optional[RetrievedPassage]:
    """Map one search row to a passage; rows without text or spreadsheet id are dropped."""

    text = row.get("text") or ""
    spreadsheet_id = row.get("spreadsheet_id") or ""
    if not isinstance(text, str) or not text.strip() or not spreadsheet_id:
        return None
    identity = PassageIdentity(
        spreadsheet_id=str(spreadsheet_id),
        sheet_name=str(row.get("sheet_name") or ""),
        a1_range=str(row.get("a1_range") or ""),
    )
    return RetrievedPassage(
        identity=identity,
        text=text,
        similarity=_similarity(row.get("similarity")),
        metadata=SourceMetadata.from_payload(row.get("metadata")),
    )


async def _search_one(
    query: str,
    *,
    width: int,
    filter_spreadsheet_id: Optional[str],
    embedding_client: Embedder,
    store: ChunkSearcher,
) -> List[RetrievedPassage]:
    vector = await embedding_client.embed(query)
    rows = await store.match_chunks(
        vector,
        match_count=width,
        filter_spreadsheet_id=filter_spreadsheet_id,
    )
    out: List[RetrievedPassage] = []
    for row in rows or []:
        if not isinstance(row, Mapping):
            continue
        passage = passage_from_row(row)
        if passage is not None:
            out.append(passage)
    return out


async def retrieve_candidates(
    queries: Sequence[str],
    *,
    width: int,
    filter_spreadsheet_id: Optional[str],
    embedding_client: Embedder,
    store: ChunkSearcher,
) -> List[RetrievedPassage]:
    """Run every query against the store concurrently and pool the raw hits.

    Any failing query fails the whole call and cancels the queries still in
    flight; an empty pool is a normal outcome.
    """

    tasks = [
        asyncio.ensure_future(
            _search_one(
                query,
                width=width,
                filter_spreadsheet_id=filter_spreadsheet_id,
                embedding_client=embedding_client,
                store=store,
            )
        )
        for query in queries
    ]
    try:
        batches = await asyncio.gather(*tasks)
    except Exception as exc:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise RetrievalError(str(exc) or exc.__class__.__name__) from exc

    pooled: List[RetrievedPassage] = []
    for batch in batches:
        pooled.extend(batch)
    logger.debug("Retrieved %s raw candidates for %s queries (width=%s)", len(pooled), len(queries), width)
    return pooled
