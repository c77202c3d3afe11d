"""Best-effort telemetry hooks for ask requests (LangFuse-ready)."""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import httpx

from app.config import settings

logger = logging.getLogger(__name__)


class RetrievalTelemetry:
    """Publishes per-request retrieval metrics to LangFuse when configured."""

    def __init__(self) -> None:
        self.host = str(settings.langfuse_host).rstrip("/") if settings.langfuse_host else None
        self.public_key = settings.langfuse_public_key
        self.secret_key = settings.langfuse_secret_key
        self.dataset = settings.langfuse_dataset
        self.enabled = bool(self.host and self.public_key and self.secret_key and self.dataset)
        self._endpoint = f"{self.host}/api/public/ingestion/events" if self.host else None

    async def record_ask(
        self,
        *,
        trace_id: Optional[str],
        route: str,
        question: str,
        candidates: int,
        sources: int,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        if not self.enabled or not self._endpoint:
            return

        payload: Dict[str, Any] = {
            "traceId": trace_id,
            "name": "sheetqa_ask",
            "timestamp": int(time.time() * 1000),
            "dataset": self.dataset,
            "metadata": {
                "route": route,
                "question": question,
                "candidates": candidates,
                "sources": sources,
                **(metadata or {}),
            },
        }

        headers = {
            "Content-Type": "application/json",
            "X-Langfuse-Public-Key": self.public_key,
            "X-Langfuse-Secret-Key": self.secret_key,
        }

        try:
            async with httpx.AsyncClient(timeout=settings.telemetry_timeout_seconds) as client:
                await client.post(self._endpoint, json=payload, headers=headers)
        except Exception:
            # Telemetry must never break answering.
            logger.debug("Telemetry post failed", exc_info=True)


retrieval_telemetry = RetrievalTelemetry()
