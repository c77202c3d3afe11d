"""Answer questions about index coverage straight from crawl metadata."""
from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Callable, Iterable, List, Literal, Mapping, Optional, Protocol, Sequence

from app.retrieval.errors import IndexMetadataError
from app.retrieval.models import Answer, Evidence, IndexRecord

logger = logging.getLogger(__name__)

Route = Literal["introspection", "retrieval"]
QuestionClassifier = Callable[[str], Route]

INTROSPECTION_RE = re.compile(
    r"\b("
    r"what (spread)?sheets|which (spread)?sheets|how many (spread)?sheets"
    r"|indexed|index status|index coverage|coverage"
    r"|crawl[ _]status|crawl errors?|indexing errors?|errors? (while|when) (crawling|indexing)"
    r"|errors?|memory|pending|stuck"
    r")\b",
    re.IGNORECASE,
)

DEFAULT_EVIDENCE_LIMIT = 50


def classify_question(text: str) -> Route:
    """Keyword router: coverage/status questions skip semantic retrieval."""

    return "introspection" if INTROSPECTION_RE.search(text or "") else "retrieval"


class DocumentLister(Protocol):
    async def list_documents(
        self, *, spreadsheet_id: Optional[str] = None
    ) -> List[Mapping[str, object]]: ...


def _status(record: IndexRecord) -> str:
    return (record.crawl_status or "unknown").strip().lower() or "unknown"


def summarize_index(records: Sequence[IndexRecord]) -> str:
    counts = Counter(_status(r) for r in records)
    ordered = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))

    # "skipped" means the crawler checked the sheet and found nothing new
    indexed = counts.get("indexed", 0) + counts.get("skipped", 0)
    lines = [f"Index status: {len(records)} spreadsheets known."]
    if ordered:
        lines.append("Status counts: " + ", ".join(f"{name}: {n}" for name, n in ordered) + ".")
    lines.append(
        f"Indexed/checked: {indexed}. Pending: {counts.get('pending', 0)}. "
        f"In progress: {counts.get('in_progress', 0)}. Errors: {counts.get('error', 0)}."
    )
    return "\n".join(lines)


def _preview(record: IndexRecord) -> str:
    preview = (
        f"status={record.crawl_status or 'unknown'} "
        f"last_indexed_at={record.last_indexed_at or 'NULL'} "
        f"drive_modified_time={record.drive_modified_time or 'NULL'}"
    )
    if record.error:
        preview += f" error={record.error}"
    return preview


def index_evidence(records: Iterable[IndexRecord], *, limit: int = DEFAULT_EVIDENCE_LIMIT) -> List[Evidence]:
    out: List[Evidence] = []
    for idx, record in enumerate(records, start=1):
        if idx > limit:
            break
        out.append(
            Evidence(
                source=idx,
                spreadsheet_id=record.spreadsheet_id,
                sheet_name=record.title or "(unknown title)",
                a1_range="",
                preview=_preview(record),
            )
        )
    return out


class IndexIntrospector:
    """Builds status answers from the spreadsheet index table."""

    def __init__(self, store: DocumentLister, *, evidence_limit: int = DEFAULT_EVIDENCE_LIMIT) -> None:
        self.store = store
        self.evidence_limit = evidence_limit

    async def load_records(self, spreadsheet_id: Optional[str] = None) -> List[IndexRecord]:
        try:
            rows = await self.store.list_documents(spreadsheet_id=spreadsheet_id)
        except Exception as exc:
            raise IndexMetadataError(str(exc) or exc.__class__.__name__) from exc
        records = [IndexRecord.from_row(row) for row in rows or [] if isinstance(row, Mapping)]
        if spreadsheet_id is not None:
            records = [r for r in records if r.spreadsheet_id == spreadsheet_id]
        return records

    async def answer(self, *, filter_spreadsheet_id: Optional[str] = None) -> Answer:
        records = await self.load_records(filter_spreadsheet_id)
        logger.info("Answering index introspection question from %s records", len(records))
        return Answer(
            text=summarize_index(records),
            citations=[],
            evidence=index_evidence(records, limit=self.evidence_limit),
            route="introspection",
        )
