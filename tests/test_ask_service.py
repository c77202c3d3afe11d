from __future__ import annotations

import asyncio

import pytest

from app.retrieval.errors import MissingInputError, ModelError, RetrievalError
from app.retrieval.models import ConversationTurn
from app.retrieval.prompts.sheet_answer import SYSTEM_PROMPT
from app.retrieval.services.ask_service import AskConfig, AskService
from app.retrieval.utils.answer_shaping import EMPTY_MODEL_ANSWER, NOT_FOUND_ANSWER

AUSTIN = [ConversationTurn(role="user", content="who leads the Austin crew?")]


def _service(embedding_client, store, chat, **config):
    return AskService(
        embedding_client=embedding_client,
        store=store,
        chat_client=chat,
        config=AskConfig(**config),
    )


@pytest.mark.asyncio
async def test_single_passage_scenario(embedding_client, make_store, make_chat, row):
    store = make_store(
        enriched_rows=[
            row("doc1", "Roster", "A1:D20", "Crew | Lead\nAustin | Alice", 0.9, {"gid": 42}),
        ]
    )
    chat = make_chat()
    result = await _service(embedding_client, store, chat).ask(AUSTIN)
    answer = result.answer

    assert answer.text == "Alice leads the Austin crew [1]."
    assert len(answer.citations) == 1
    assert answer.citations[0].spreadsheet_id == "doc1"
    assert answer.citations[0].url == "https://docs.google.com/spreadsheets/d/doc1/edit#gid=42"
    assert answer.citations[0].similarity == 0.9
    assert len(answer.evidence) == 1
    assert answer.evidence[0].source == 1
    assert answer.evidence[0].sheet_name == "Roster"
    assert answer.evidence[0].a1_range == "A1:D20"

    # both the enriched and the raw query hit the store
    assert len(embedding_client.calls) == 2
    assert len(store.search_calls) == 2


@pytest.mark.asyncio
async def test_prompt_puts_numbered_sources_last(embedding_client, make_store, make_chat, row):
    store = make_store(
        enriched_rows=[
            row("doc1", "Roster", "A1:D20", "Austin | Alice", 0.9, {"spreadsheet_title": "Crews"}),
            row("doc2", "Leads", "B2:B9", "Austin lead: Alice", 0.8),
        ]
    )
    chat = make_chat()
    conversation = [
        ConversationTurn(role="user", content="hi"),
        ConversationTurn(role="assistant", content="hello"),
        *AUSTIN,
    ]
    result = await _service(embedding_client, store, chat).ask(conversation)

    messages = chat.calls[0]
    assert messages[0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert messages[1] == {"role": "user", "content": "hi"}
    assert messages[2] == {"role": "assistant", "content": "hello"}
    assert messages[3] == {"role": "user", "content": "Question: who leads the Austin crew?"}
    sources_block = messages[-1]["content"]
    assert sources_block.startswith("Sources:")
    assert sources_block.index("Source [1]") < sources_block.index("Source [2]")
    assert "Spreadsheet: Crews (doc1)" in sources_block

    # citation i, evidence i and "Source [i+1]" all name the same passage
    citations, evidence = result.answer.citations, result.answer.evidence
    assert len(citations) == len(evidence) == 2
    for idx, (citation, item) in enumerate(zip(citations, evidence), start=1):
        assert item.source == idx
        assert (citation.spreadsheet_id, citation.sheet_name, citation.a1_range) == (
            item.spreadsheet_id,
            item.sheet_name,
            item.a1_range,
        )
        block = sources_block.split(f"Source [{idx}]")[1]
        assert f"Tab: {citation.sheet_name}" in block.split("---")[0]
    assert citations[0].spreadsheet_title == "Crews"


@pytest.mark.asyncio
async def test_overlapping_queries_keep_best_similarity(embedding_client, make_store, make_chat, row):
    store = make_store(
        enriched_rows=[row("doc2", "Leads", "B2:B9", "enriched copy", 0.85)],
        raw_rows=[row("doc2", "Leads", "B2:B9", "raw copy", 0.7)],
    )
    result = await _service(embedding_client, store, make_chat()).ask(AUSTIN)
    assert result.candidates == 1
    assert [c.similarity for c in result.answer.citations] == [0.85]
    assert result.answer.evidence[0].preview == "enriched copy"


@pytest.mark.asyncio
async def test_empty_search_returns_fallback(embedding_client, make_store, make_chat):
    chat = make_chat()
    result = await _service(embedding_client, make_store(), chat).ask(AUSTIN)
    assert result.answer.text == NOT_FOUND_ANSWER
    assert result.answer.citations == []
    assert result.answer.evidence == []
    assert chat.calls == []


@pytest.mark.asyncio
async def test_introspection_bypasses_retrieval(embedding_client, make_store, make_chat):
    store = make_store(documents=[{"spreadsheet_id": "a", "crawl_status": "indexed"}])
    chat = make_chat()
    result = await _service(embedding_client, store, chat).ask(
        [ConversationTurn(role="user", content="how many sheets are indexed")]
    )
    assert result.answer.route == "introspection"
    assert result.answer.citations == []
    assert len(result.answer.evidence) == 1
    assert store.search_calls == []
    assert embedding_client.calls == []
    assert chat.calls == []


@pytest.mark.asyncio
async def test_classifier_is_pluggable(embedding_client, make_store, make_chat):
    store = make_store(documents=[{"spreadsheet_id": "a", "crawl_status": "indexed"}])
    service = AskService(
        embedding_client, store, make_chat(), classifier=lambda text: "introspection"
    )
    result = await service.ask(AUSTIN)
    assert result.answer.route == "introspection"
    assert store.search_calls == []


@pytest.mark.asyncio
async def test_missing_question_rejected_before_external_calls(embedding_client, make_store, make_chat):
    store = make_store()
    chat = make_chat()
    with pytest.raises(MissingInputError):
        await _service(embedding_client, store, chat).ask(
            [ConversationTurn(role="assistant", content="hello")]
        )
    assert embedding_client.calls == []
    assert store.search_calls == []
    assert store.document_calls == []
    assert chat.calls == []


@pytest.mark.asyncio
async def test_fallback_question_field(embedding_client, make_store, make_chat, row):
    store = make_store(enriched_rows=[row("doc1", "Roster", "A1:D20", "Austin | Alice", 0.9)])
    result = await _service(embedding_client, store, make_chat()).ask([], question="who leads Austin?")
    assert result.question == "who leads Austin?"
    assert len(result.answer.citations) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("requested,expected_window", [(0, 3), (1000, 20), (None, 10), (5, 5)])
async def test_top_k_is_clamped(embedding_client, make_store, make_chat, row, requested, expected_window):
    rows = [row(f"doc{i}", "T", "A1", f"text {i}", 0.9 - i * 0.001) for i in range(100)]
    store = make_store(enriched_rows=rows)
    result = await _service(embedding_client, store, make_chat()).ask(AUSTIN, top_k=requested)
    assert result.top_k == expected_window
    assert len(result.answer.citations) == expected_window
    # candidate width is 3x the window, clamped to [15, 60]
    expected_width = max(15, min(60, expected_window * 3))
    assert {call["match_count"] for call in store.search_calls} == {expected_width}


@pytest.mark.asyncio
async def test_filter_is_forwarded(embedding_client, make_store, make_chat):
    store = make_store()
    await _service(embedding_client, store, make_chat()).ask(AUSTIN, filter_spreadsheet_id="doc9")
    assert [call["filter"] for call in store.search_calls] == ["doc9", "doc9"]


@pytest.mark.asyncio
async def test_single_query_mode(embedding_client, make_store, make_chat):
    store = make_store()
    await _service(embedding_client, store, make_chat(), dual_query=False).ask(AUSTIN)
    assert len(store.search_calls) == 1


@pytest.mark.asyncio
async def test_search_failure_is_not_swallowed(embedding_client, make_store, make_chat):
    store = make_store(search_error=RuntimeError("match_chunks failed"))
    chat = make_chat()
    with pytest.raises(RetrievalError) as excinfo:
        await _service(embedding_client, store, chat).ask(AUSTIN)
    assert "match_chunks failed" in excinfo.value.detail
    assert chat.calls == []


@pytest.mark.asyncio
async def test_search_failure_cancels_sibling_query(embedding_client, make_chat):
    events = []

    class SplitStore:
        async def match_chunks(self, vector, *, match_count, filter_spreadsheet_id=None):
            if vector[0] == 1.0:
                await asyncio.sleep(0)
                raise RuntimeError("enriched search failed")
            events.append("raw-start")
            try:
                await asyncio.sleep(1)
            except asyncio.CancelledError:
                events.append("raw-cancelled")
                raise
            events.append("raw-done")
            return []

        async def list_documents(self, *, spreadsheet_id=None):
            return []

    with pytest.raises(RetrievalError):
        await _service(embedding_client, SplitStore(), make_chat()).ask(AUSTIN)
    assert events == ["raw-start", "raw-cancelled"]

    await asyncio.sleep(0.05)
    assert "raw-done" not in events


@pytest.mark.asyncio
async def test_model_failure_is_surfaced(embedding_client, make_store, make_chat, row):
    store = make_store(enriched_rows=[row("doc1", "Roster", "A1:D20", "Austin | Alice", 0.9)])
    chat = make_chat(error=RuntimeError("rate limited"))
    with pytest.raises(ModelError) as excinfo:
        await _service(embedding_client, store, chat).ask(AUSTIN)
    assert excinfo.value.detail == "rate limited"


@pytest.mark.asyncio
async def test_blank_model_answer_gets_placeholder(embedding_client, make_store, make_chat, row):
    store = make_store(enriched_rows=[row("doc1", "Roster", "A1:D20", "Austin | Alice", 0.9)])
    result = await _service(embedding_client, store, make_chat(reply="   ")).ask(AUSTIN)
    assert result.answer.text == EMPTY_MODEL_ANSWER
    assert len(result.answer.citations) == len(result.answer.evidence) == 1
