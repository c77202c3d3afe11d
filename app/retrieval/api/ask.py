"""Router for the spreadsheet question-answering endpoint."""
from __future__ import annotations

from dataclasses import asdict
from typing import List, Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from app.core.providers import get_ask_service
from app.retrieval.models import ConversationTurn
from app.retrieval.services.ask_service import AskResult, AskService
from app.retrieval.telemetry import retrieval_telemetry

router = APIRouter(tags=["ask"])


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = ""


class AskRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: Optional[List[ChatMessage]] = Field(
        None, description="Conversation so far; the latest user message is the question"
    )
    question: Optional[str] = Field(None, description="Single-turn question for older callers")
    top_k: Optional[int] = Field(None, alias="topK", description="Answer window hint, clamped")
    filter_spreadsheet_id: Optional[str] = Field(
        None, alias="filterSpreadsheetId", description="Restrict retrieval to one spreadsheet"
    )


class CitationItem(BaseModel):
    spreadsheet_id: str
    spreadsheet_title: Optional[str] = None
    url: str
    sheet_name: str
    a1_range: str
    similarity: Optional[float] = None


class EvidenceItem(BaseModel):
    source: int
    spreadsheet_id: str
    sheet_name: str
    a1_range: str
    preview: str


class AskResponse(BaseModel):
    answer: str
    citations: List[CitationItem]
    evidence: List[EvidenceItem]


def _conversation(request: AskRequest) -> List[ConversationTurn]:
    return [ConversationTurn(role=m.role, content=m.content) for m in request.messages or []]


@router.post("/ask", response_model=AskResponse, status_code=status.HTTP_200_OK)
async def ask(
    request: AskRequest,
    background_tasks: BackgroundTasks,
    service: AskService = Depends(get_ask_service),
) -> AskResponse:
    result: AskResult = await service.ask(
        _conversation(request),
        question=request.question,
        top_k=request.top_k,
        filter_spreadsheet_id=request.filter_spreadsheet_id,
    )
    answer = result.answer

    background_tasks.add_task(
        retrieval_telemetry.record_ask,
        trace_id=None,
        route=answer.route,
        question=result.question,
        candidates=result.candidates,
        sources=len(answer.evidence),
        metadata={"filter_spreadsheet_id": request.filter_spreadsheet_id}
        if request.filter_spreadsheet_id
        else None,
    )

    return AskResponse(
        answer=answer.text,
        citations=[CitationItem(**asdict(c)) for c in answer.citations],
        evidence=[EvidenceItem(**asdict(e)) for e in answer.evidence],
    )
