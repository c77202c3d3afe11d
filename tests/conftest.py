"""Fake collaborators shared by the pipeline and endpoint tests."""
from __future__ import annotations

from typing import Callable, Dict, List, Mapping, Optional, Sequence

import pytest

from app.retrieval.utils.query_formulation import DOMAIN_PREAMBLE


def chunk_row(
    spreadsheet_id: str,
    sheet_name: str,
    a1_range: str,
    text: str,
    similarity: float,
    metadata: Optional[dict] = None,
) -> dict:
    return {
        "id": f"{spreadsheet_id}:{sheet_name}:{a1_range}",
        "spreadsheet_id": spreadsheet_id,
        "sheet_name": sheet_name,
        "a1_range": a1_range,
        "text": text,
        "metadata": metadata or {},
        "similarity": similarity,
    }


class FakeEmbeddingClient:
    """Enriched queries embed to [1.0], raw questions to [0.0]."""

    def __init__(self) -> None:
        self.calls: List[str] = []

    async def embed(self, text: str) -> Sequence[float]:
        self.calls.append(text)
        return [1.0] if text.startswith(DOMAIN_PREAMBLE) else [0.0]


class FakeSheetStore:
    def __init__(
        self,
        *,
        enriched_rows: Optional[List[dict]] = None,
        raw_rows: Optional[List[dict]] = None,
        documents: Optional[List[dict]] = None,
        search_error: Optional[Exception] = None,
    ) -> None:
        self.enriched_rows = enriched_rows or []
        self.raw_rows = raw_rows if raw_rows is not None else list(self.enriched_rows)
        self.documents = documents or []
        self.search_error = search_error
        self.search_calls: List[Dict[str, object]] = []
        self.document_calls: List[Optional[str]] = []

    async def match_chunks(
        self,
        vector: Sequence[float],
        *,
        match_count: int,
        filter_spreadsheet_id: Optional[str] = None,
    ) -> List[Mapping[str, object]]:
        self.search_calls.append(
            {"vector": list(vector), "match_count": match_count, "filter": filter_spreadsheet_id}
        )
        if self.search_error is not None:
            raise self.search_error
        rows = self.enriched_rows if vector and vector[0] == 1.0 else self.raw_rows
        return rows[:match_count]

    async def list_documents(self, *, spreadsheet_id: Optional[str] = None) -> List[Mapping[str, object]]:
        self.document_calls.append(spreadsheet_id)
        if spreadsheet_id is None:
            return list(self.documents)
        return [d for d in self.documents if d.get("spreadsheet_id") == spreadsheet_id]


class FakeChatClient:
    def __init__(self, reply: str = "Alice leads the Austin crew [1].", error: Optional[Exception] = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: List[List[Mapping[str, str]]] = []

    async def chat(self, messages, *, temperature=0.2, max_tokens=800) -> str:
        self.calls.append(list(messages))
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def row() -> Callable[..., dict]:
    return chunk_row


@pytest.fixture
def embedding_client() -> FakeEmbeddingClient:
    return FakeEmbeddingClient()


@pytest.fixture
def make_store() -> Callable[..., FakeSheetStore]:
    return FakeSheetStore


@pytest.fixture
def make_chat() -> Callable[..., FakeChatClient]:
    return FakeChatClient
