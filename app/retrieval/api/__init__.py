"""Routers for retrieval endpoints."""
from __future__ import annotations

from fastapi import APIRouter

from .ask import router as ask_router

router = APIRouter()
router.include_router(ask_router)

__all__ = ["router"]
