"""Entry point for the sheetqa FastAPI application."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import settings
from .core.providers import get_chat_client, get_supabase_client
from .retrieval import api as retrieval_api
from .retrieval.errors import SheetQAError

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="sheetqa API",
    version="0.1.0",
    summary="Grounded question answering over indexed spreadsheets",
)


def _error_body(error: str, detail: Any = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": error}
    if detail is not None:
        body["detail"] = detail
    return body


@app.exception_handler(SheetQAError)
async def sheetqa_error_handler(request: Request, exc: SheetQAError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.label, request.url.path, exc.detail, exc_info=exc)
    else:
        logger.info("%s on %s: %s", exc.label, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.label, exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content=_error_body("Invalid request", str(exc)))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(status_code=500, content=_error_body("Unhandled error", str(exc)))


async def _probe(name: str, check: Callable[[], Awaitable[Any]]) -> Dict[str, Any]:
    """Probe a downstream dependency and normalize the response."""

    try:
        details = await check()
        return {"status": "healthy", "details": details}
    except Exception as exc:  # pragma: no cover - best effort health probe
        return {"status": "unhealthy", "error": f"{name}: {exc}"}


@app.get("/", tags=["meta"])
def index() -> Dict[str, Any]:
    """Basic service descriptor."""

    return {
        "service": "sheetqa-api",
        "environment": settings.app_env,
        "docs": "/docs",
        "health": "/healthz",
        "ask": "/api/v1/ask",
    }


@app.get("/healthz", tags=["meta"])
async def healthz() -> Dict[str, Any]:
    """Aggregate health check for primary dependencies."""

    async def _supabase() -> Any:
        return await get_supabase_client().health()

    async def _openai() -> Any:
        models = await get_chat_client().list_models()
        return {"models": len(models)}

    probes = await asyncio.gather(_probe("supabase", _supabase), _probe("openai", _openai))

    return {
        "status": "ok",
        "environment": settings.app_env,
        "dependencies": {
            "supabase": probes[0],
            "openai": probes[1],
        },
    }


app.include_router(retrieval_api.router, prefix="/api/v1")
