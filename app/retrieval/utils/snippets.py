"""Keyword-focused excerpts of spreadsheet passages."""
from __future__ import annotations

import re
from typing import List, Optional, Sequence

from app.retrieval.utils.keywords import extract_keywords

HEADER_SCAN_LINES = 12
MAX_HEADER_LINES = 3
FALLBACK_LINES = 30
CONTEXT_LINES = 1
MAX_HIT_BLOCKS = 8
DEFAULT_MAX_CHARS = 1200
GAP_MARKER = "..."
TRUNCATION_MARKER = "\n…[truncated]"

COLUMN_SEPARATORS = ("|", "\t")
HEADER_LABEL_RE = re.compile(r"^\s*(headers?|columns?)\s*[:=]", re.IGNORECASE)


def _is_header_line(line: str) -> bool:
    return any(sep in line for sep in COLUMN_SEPARATORS) or bool(HEADER_LABEL_RE.match(line))


def _line_hits(line: str, keywords: Sequence[str]) -> bool:
    lowered = line.lower()
    return any(keyword in lowered for keyword in keywords)


def _collapse_adjacent(lines: List[str]) -> List[str]:
    out: List[str] = []
    for line in lines:
        if out and out[-1] == line:
            continue
        out.append(line)
    return out


def truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars].rstrip() + TRUNCATION_MARKER


def extract_snippet(
    text: str,
    question: str,
    *,
    max_chars: int = DEFAULT_MAX_CHARS,
    keywords: Optional[Sequence[str]] = None,
) -> str:
    """Condense a passage to its header rows plus the lines around keyword hits.

    Falls back to the first lines of the passage when nothing matches, so the
    result is never empty for a non-empty passage.
    """

    lines = [line.rstrip() for line in (text or "").splitlines()]
    lines = [line for line in lines if line.strip()]
    if not lines:
        return ""

    terms = list(keywords) if keywords is not None else extract_keywords(question)

    hit_rows: List[int] = []
    if terms:
        for idx, line in enumerate(lines):
            if _line_hits(line, terms):
                hit_rows.append(idx)
                if len(hit_rows) >= MAX_HIT_BLOCKS:
                    break

    if not hit_rows:
        return truncate("\n".join(lines[:FALLBACK_LINES]), max_chars)

    header_rows = [idx for idx, line in enumerate(lines[:HEADER_SCAN_LINES]) if _is_header_line(line)]
    selected: set[int] = set(header_rows[:MAX_HEADER_LINES])
    for idx in hit_rows:
        start = max(0, idx - CONTEXT_LINES)
        stop = min(len(lines), idx + CONTEXT_LINES + 1)
        selected.update(range(start, stop))

    picked: List[str] = []
    previous: Optional[int] = None
    for idx in sorted(selected):
        if previous is not None and idx != previous + 1:
            picked.append(GAP_MARKER)
        picked.append(lines[idx])
        previous = idx

    return truncate("\n".join(_collapse_adjacent(picked)), max_chars)
