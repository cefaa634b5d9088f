"""Canonical form of free-text section labels.

Section labels reach the system through several data-entry paths (bulk
imports, manual assignment, form creation) and arrive as ``"A"``, ``"1A"``,
``"01A"``, ``"Section: A"`` or ``" a "``. :func:`normalize` maps all of them to
one comparable token.
"""
from __future__ import annotations

import re
from typing import Any, Optional

# Longest prefix first so "SECTION" is not consumed as "S" + "ECTION".
_PREFIX_RE = re.compile(r"^(?:SECTION|SEC|S)[\s:\-]*")
_WHITESPACE_RE = re.compile(r"\s+")
_LEADING_DIGITS_RE = re.compile(r"^[0-9]+")


def _normalize_once(value: str) -> str:
    value = value.upper().strip()
    value = _PREFIX_RE.sub("", value, count=1)
    value = _WHITESPACE_RE.sub("", value)
    value = value.replace("-", "")
    return value.lstrip("0")


def normalize(raw: Any) -> str:
    """Return the canonical section token for *raw*.

    ``None``, empty and whitespace-only input produce ``""``, which callers
    must treat as "unknown, never matches". Never raises.
    """
    if raw is None:
        return ""
    try:
        value = raw if isinstance(raw, str) else str(raw)
    except Exception:  # noqa: BLE001 – unprintable garbage is simply unknown
        return ""

    # After the first pass every step only shortens the string; running to
    # a fixed point keeps normalize(normalize(x)) == normalize(x) for inputs
    # like "SSA" where one pass exposes another prefix.
    previous = None
    while value != previous:
        previous = value
        value = _normalize_once(value)
    return value


def strip_leading_digits(value: str) -> str:
    """Return *value* without its leading run of ASCII digits."""
    return _LEADING_DIGITS_RE.sub("", value or "")


def year_prefix(value: str) -> Optional[str]:
    """Return the leading digit run of *value* without leading zeros.

    ``"2B"`` → ``"2"``, ``"01A"`` → ``"1"``, ``"B"`` → ``None``.
    """
    match = _LEADING_DIGITS_RE.match(value or "")
    if not match:
        return None
    return match.group(0).lstrip("0") or "0"


# Year assumed for labels entered without one ("B" is "1B")
IMPLICIT_YEAR = "1"


def section_key(raw: Any) -> str:
    """Return the grouping key of *raw*.

    The canonical form with an implicit year-1 prefix folded away, so
    ``"B"``, ``"1B"`` and ``"01B"`` share the key ``"B"`` while ``"2B"`` and
    ``"3B"`` keep their own. ``""`` for unusable labels.
    """
    canonical = normalize(raw)
    if year_prefix(canonical) == IMPLICIT_YEAR:
        return strip_leading_digits(canonical) or canonical
    return canonical
