"""Keyword extraction shared by reranking and snippet extraction."""
from __future__ import annotations

import re
from typing import List

TOKEN_RE = re.compile(r"[a-z0-9][a-z0-9_@.-]*")
MIN_KEYWORD_LENGTH = 3

STOPWORDS = frozenset(
    {
        "about", "and", "any", "are", "can", "could", "did", "does", "for", "from",
        "give", "has", "have", "her", "him", "his", "how", "into", "its", "list",
        "me", "please", "she", "show", "tell", "that", "the", "their", "them",
        "there", "these", "they", "this", "was", "were", "what", "when", "where",
        "which", "who", "whom", "whose", "why", "will", "with", "would", "you",
        # filler that shows up in nearly every question about the index
        "sheet", "sheets", "spreadsheet", "spreadsheets", "tab", "tabs", "row",
        "rows", "column", "columns", "table", "data", "info", "information",
    }
)


def extract_keywords(text: str) -> List[str]:
    """Lower-cased, de-duplicated query keywords in order of first appearance."""

    seen: set[str] = set()
    keywords: List[str] = []
    for raw in TOKEN_RE.findall((text or "").lower()):
        token = raw.strip(".-")
        if len(token) < MIN_KEYWORD_LENGTH or token in STOPWORDS or token in seen:
            continue
        seen.add(token)
        keywords.append(token)
    return keywords


def count_keyword_hits(text: str, keywords: List[str]) -> int:
    """Number of distinct keywords that occur in ``text`` (substring, case-insensitive)."""

    if not keywords or not text:
        return 0
    lowered = text.lower()
    return sum(1 for keyword in keywords if keyword in lowered)
