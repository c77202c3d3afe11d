"""Error taxonomy for the ask pipeline."""
from __future__ import annotations

from typing import Optional


class SheetQAError(Exception):
    """Base error carrying an HTTP status and a short label for the response body."""

    status_code: int = 500
    label: str = "Request failed"

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(detail or self.label)
        self.detail = detail


class MissingInputError(SheetQAError):
    """No current question could be determined from the request."""

    status_code = 400
    label = "Missing question"


class RetrievalError(SheetQAError):
    """Embedding or similarity search failed."""

    label = "Retrieval failed"


class IndexMetadataError(SheetQAError):
    label = "Failed to read index metadata"


class ModelError(SheetQAError):
    """Chat completion call failed."""

    label = "Model call failed"
