"""Decide whether section labels refer to the same section.

Matching runs in two tiers and stops at the first that produces a match:

1. *Direct/variant tier* – a candidate matches when its trimmed, uppercased
   value is one of :func:`~feedback_engine.identity.variants.variants` of the
   subject. This is the cheap path a storage layer can express as a
   membership query.
2. *Normalized fallback tier* – only when tier 1 found nothing across the
   whole candidate set: compare canonical forms, also accepting a candidate
   whose canonical form equals the subject once its leading digits are
   stripped (``"B"`` vs ``"2B"``).

Matching is many-to-many, deterministic and never raises; a label without a
usable canonical form never matches anything.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, List, Optional, Sequence, TypeVar

from feedback_engine import config
from feedback_engine.identity.normalizer import (
    IMPLICIT_YEAR,
    normalize,
    strip_leading_digits,
    year_prefix,
)
from feedback_engine.identity.variants import variants

if TYPE_CHECKING:  # pragma: no cover
    from feedback_engine.models import Form

logger = logging.getLogger(__name__)

_F = TypeVar("_F", bound="Form")


def _raw_key(label: Any) -> str:
    if label is None:
        return ""
    return str(label).strip().upper()


def _strict(strict_year_prefix: Optional[bool]) -> bool:
    if strict_year_prefix is None:
        return config.STRICT_YEAR_PREFIX
    return strict_year_prefix


def _direct_matches(subject_variants: frozenset, candidates: Iterable[Any]) -> List[Any]:
    return [
        candidate
        for candidate in candidates
        if normalize(candidate) and _raw_key(candidate) in subject_variants
    ]


def _normalized_match(subject_canonical: str, candidate: Any, strict: bool) -> bool:
    canonical = normalize(candidate)
    if not canonical:
        return False
    if canonical == subject_canonical:
        return True
    if strip_leading_digits(canonical) != subject_canonical:
        return False
    if strict and year_prefix(canonical) != IMPLICIT_YEAR:
        # "B" may fall back onto "1B" but not onto "2B"/"3B"
        return False
    return True


def matching_candidates(
    subject: Any,
    candidates: Optional[Sequence[Any]],
    *,
    strict_year_prefix: Optional[bool] = None,
) -> List[Any]:
    """Return the members of *candidates* that refer to *subject*'s section."""
    candidates = list(candidates or [])
    subject_canonical = normalize(subject)
    if not subject_canonical or not candidates:
        return []

    direct = _direct_matches(variants(subject), candidates)
    if direct:
        return direct

    strict = _strict(strict_year_prefix)
    return [c for c in candidates if _normalized_match(subject_canonical, c, strict)]


def matches(
    subject: Any,
    candidates: Optional[Sequence[Any]],
    *,
    strict_year_prefix: Optional[bool] = None,
) -> bool:
    """Return *True* if *subject* matches at least one of *candidates*."""
    return bool(
        matching_candidates(
            subject, candidates, strict_year_prefix=strict_year_prefix
        )
    )


def filter_by_subject(
    subject: Any,
    forms: Iterable[_F],
    *,
    strict_year_prefix: Optional[bool] = None,
) -> List[_F]:
    """Return the *forms* whose ``target_sections`` include *subject*.

    Tier 1 runs over every form first; the normalized fallback is only used
    when no form at all matched directly, mirroring a variant query followed
    by an in-memory sweep over the broad result set.
    """
    forms = list(forms)
    subject_canonical = normalize(subject)
    if not subject_canonical:
        logger.debug("filter_by_subject called without a usable section: %r", subject)
        return []

    subject_variants = variants(subject)
    direct = [f for f in forms if _direct_matches(subject_variants, f.target_sections)]
    if direct:
        logger.debug(
            "Section %r matched %d form(s) via variants", subject, len(direct)
        )
        return direct

    strict = _strict(strict_year_prefix)
    fallback = [
        f
        for f in forms
        if any(_normalized_match(subject_canonical, t, strict) for t in f.target_sections)
    ]
    logger.debug(
        "Section %r matched %d form(s) via normalized fallback", subject, len(fallback)
    )
    return fallback
