"""Shared retrieval data models."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Literal, Mapping, Optional, Tuple

Role = Literal["user", "assistant"]


@dataclass(frozen=True, slots=True)
class ConversationTurn:
    role: Role
    content: str


@dataclass(frozen=True, slots=True)
class PassageIdentity:
    """Natural key of a retrieved excerpt: spreadsheet, tab and A1 range."""

    spreadsheet_id: str
    sheet_name: str
    a1_range: str

    def key(self) -> Tuple[str, str, str]:
        return (self.spreadsheet_id, self.sheet_name, self.a1_range)


def _coerce_gid(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _coerce_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


@dataclass(frozen=True, slots=True)
class SourceMetadata:
    """Typed view over the loosely shaped chunk metadata stored by the indexer.

    Only the fields the pipeline reads are lifted out; everything else stays in
    ``raw`` untouched.
    """

    gid: Optional[int] = None
    spreadsheet_title: Optional[str] = None
    raw: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> "SourceMetadata":
        if not isinstance(payload, Mapping):
            return cls()
        title = _coerce_str(payload.get("spreadsheet_title")) or _coerce_str(payload.get("title"))
        return cls(gid=_coerce_gid(payload.get("gid")), spreadsheet_title=title, raw=dict(payload))


@dataclass(frozen=True, slots=True)
class RetrievedPassage:
    identity: PassageIdentity
    text: str
    similarity: Optional[float]
    metadata: SourceMetadata = field(default_factory=SourceMetadata)

    @property
    def similarity_value(self) -> float:
        return self.similarity if self.similarity is not None else 0.0


@dataclass(frozen=True, slots=True)
class RankedPassage:
    passage: RetrievedPassage
    score: float
    keyword_hits: int = 0


@dataclass(frozen=True, slots=True)
class Source:
    """A passage placed in the model prompt as ``[ordinal]``."""

    ordinal: int
    passage: RetrievedPassage
    snippet: str

    @property
    def identity(self) -> PassageIdentity:
        return self.passage.identity


@dataclass(frozen=True, slots=True)
class Citation:
    spreadsheet_id: str
    spreadsheet_title: Optional[str]
    url: str
    sheet_name: str
    a1_range: str
    similarity: Optional[float]


@dataclass(frozen=True, slots=True)
class Evidence:
    source: int
    spreadsheet_id: str
    sheet_name: str
    a1_range: str
    preview: str


@dataclass(slots=True)
class Answer:
    text: str
    citations: List[Citation] = field(default_factory=list)
    evidence: List[Evidence] = field(default_factory=list)
    route: str = "retrieval"


@dataclass(frozen=True, slots=True)
class IndexRecord:
    """Crawl status row for one spreadsheet, as written by the indexer."""

    spreadsheet_id: str
    title: Optional[str] = None
    url: Optional[str] = None
    crawl_status: Optional[str] = None
    last_indexed_at: Optional[str] = None
    drive_modified_time: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "IndexRecord":
        def _opt(name: str) -> Optional[str]:
            value = row.get(name)
            return None if value is None else str(value)

        return cls(
            spreadsheet_id=str(row.get("spreadsheet_id") or ""),
            title=_opt("title"),
            url=_opt("url"),
            crawl_status=_opt("crawl_status"),
            last_indexed_at=_opt("last_indexed_at"),
            drive_modified_time=_opt("drive_modified_time"),
            error=_opt("error"),
        )
