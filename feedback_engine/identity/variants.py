"""Equivalent spellings of a section label for fast-path matching.

Two data-entry paths historically stored the same physical section either as
a bare letter (``"A"``) or with a year prefix (``"1A"``/``"01A"``). The
variant set bridges both without migrating historical data.
"""
from __future__ import annotations

import re
from typing import Any, FrozenSet, Set

from feedback_engine.identity.normalizer import strip_leading_digits

_STARTS_WITH_DIGIT_RE = re.compile(r"^[0-9]")


def variants(label: Any) -> FrozenSet[str]:
    """Return the set of textual forms treated as equal to *label*.

    Works on the trimmed, uppercased label rather than the canonical form so
    it can match values that never went through full normalization (e.g.
    ``targetSections`` stored as entered).
    """
    if label is None:
        return frozenset()
    base = str(label).strip().upper()
    if not base:
        return frozenset()

    found: Set[str] = {base}
    if not _STARTS_WITH_DIGIT_RE.match(base):
        # Year 1 is the prefix most often left out
        found.add("1" + base)
        found.add("01" + base)
    else:
        stripped = strip_leading_digits(base)
        if stripped:
            found.add(stripped)
        unpadded = base.lstrip("0")
        if unpadded:
            found.add(unpadded)

    out: Set[str] = set()
    for item in found:
        out.add(item.upper())
        out.add(item.lower())
    return frozenset(out)
