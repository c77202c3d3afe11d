"""Tests for retrieval domain models and answer shaping."""
import pytest

from app.retrieval.models import (
    IndexRecord,
    PassageIdentity,
    RetrievedPassage,
    Source,
    SourceMetadata,
)
from app.retrieval.utils.answer_shaping import sheet_url, shape_answer


@pytest.mark.parametrize(
    "payload,gid",
    [
        ({"gid": 42}, 42),
        ({"gid": "17"}, 17),
        ({"gid": 0}, 0),
        ({"gid": "abc"}, None),
        ({"gid": True}, None),
        ({}, None),
        (None, None),
        ("not a mapping", None),
    ],
)
def test_source_metadata_gid(payload, gid):
    assert SourceMetadata.from_payload(payload).gid == gid


def test_source_metadata_title_fallback():
    assert SourceMetadata.from_payload({"title": " Crews "}).spreadsheet_title == "Crews"
    assert SourceMetadata.from_payload({"spreadsheet_title": "A", "title": "B"}).spreadsheet_title == "A"
    assert SourceMetadata.from_payload({"title": ""}).spreadsheet_title is None


def test_sheet_url_with_and_without_gid():
    assert sheet_url("doc1") == "https://docs.google.com/spreadsheets/d/doc1/edit"
    assert sheet_url("doc1", 0) == "https://docs.google.com/spreadsheets/d/doc1/edit#gid=0"


def test_index_record_from_row():
    record = IndexRecord.from_row({"spreadsheet_id": "s1", "crawl_status": "indexed", "error": None})
    assert record.spreadsheet_id == "s1"
    assert record.crawl_status == "indexed"
    assert record.error is None
    assert record.title is None


def test_shaped_citations_and_evidence_line_up():
    sources = [
        Source(
            ordinal=idx,
            passage=RetrievedPassage(
                identity=PassageIdentity(f"doc{idx}", "Roster", f"A{idx}:D{idx}"),
                text="row",
                similarity=0.5,
                metadata=SourceMetadata(gid=idx),
            ),
            snippet=f"snippet {idx}",
        )
        for idx in (1, 2, 3)
    ]
    answer = shape_answer("See [1] and [3].", sources)

    assert len(answer.citations) == len(answer.evidence) == 3
    for idx, (citation, evidence) in enumerate(zip(answer.citations, answer.evidence), start=1):
        assert evidence.source == idx
        assert citation.spreadsheet_id == evidence.spreadsheet_id == f"doc{idx}"
        assert citation.a1_range == evidence.a1_range
        assert citation.url.endswith(f"#gid={idx}")
        assert evidence.preview == f"snippet {idx}"
