"""Section hygiene helpers for ingestion paths.

Running values through these at the point of entry shrinks the long tail of
variants the matcher has to reconcile; the matcher stays correct without them.
"""
from __future__ import annotations

import math
import re
from typing import Any, Iterable, List, Optional

_BARE_SECTION_RE = re.compile(r"^[A-D]$", re.IGNORECASE)


def clean_target_sections(values: Optional[Iterable[Any]]) -> List[str]:
    """Trim and uppercase targeted sections, dropping blanks and ``None``."""
    if values is None or isinstance(values, (str, bytes)):
        return []
    cleaned: List[str] = []
    for value in values:
        if value is None:
            continue
        text = str(value).strip().upper()
        if text:
            cleaned.append(text)
    return cleaned


def split_section_list(values: Optional[Iterable[Any]]) -> List[str]:
    """Split comma-separated section entries (``"2A, 2B"``) into single labels."""
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    out: List[str] = []
    for value in values:
        if value is None:
            continue
        out.extend(clean_target_sections(str(value).split(",")))
    return out


def expand_bare_section(section: Any, semester: Optional[int] = None) -> str:
    """Give a bare letter section its year prefix.

    ``("A", 3)`` → ``"2A"`` (year = ceil(semester / 2), semester defaults to
    1). Anything that is not a single letter A–D is only trimmed and
    uppercased.
    """
    if section is None:
        return ""
    text = str(section).strip()
    if not _BARE_SECTION_RE.match(text):
        return text.upper()
    try:
        sem = int(semester) if semester else 1
    except (TypeError, ValueError):
        sem = 1
    year = max(1, math.ceil(sem / 2))
    return f"{year}{text.upper()}"
