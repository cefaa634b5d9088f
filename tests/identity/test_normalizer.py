"""Unit tests for identity.normalizer."""
from __future__ import annotations

import pytest

from feedback_engine.identity.normalizer import (
    normalize,
    section_key,
    strip_leading_digits,
    year_prefix,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("A", "A"),
        (" a ", "A"),
        ("1A", "1A"),
        ("01A", "1A"),
        ("Section: A", "A"),
        ("SECTION:A", "A"),
        (" sec-A ", "A"),
        ("S A", "A"),
        ("2-b", "2B"),
        ("1 a", "1A"),
        ("sec 3 c", "3C"),
    ],
)
def test_normalize_common_spellings(raw, expected):
    assert normalize(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "\t\n"])
def test_normalize_unknown_is_empty(raw):
    assert normalize(raw) == ""


def test_normalize_non_string_input():
    assert normalize(12) == "12"


def test_normalize_unprintable_garbage_is_empty():
    class Broken:
        def __str__(self):
            raise RuntimeError("boom")

    assert normalize(Broken()) == ""


@pytest.mark.parametrize(
    "raw", ["A", " 01a ", "Section: B", "SSA", "sec-sec-c", "00", "0A", "S", "--", "1 - A"]
)
def test_normalize_is_idempotent(raw):
    once = normalize(raw)
    assert normalize(once) == once


def test_stacked_prefixes_reach_fixed_point():
    assert normalize("SSA") == "A"


def test_strip_leading_digits():
    assert strip_leading_digits("12B") == "B"
    assert strip_leading_digits("B") == "B"
    assert strip_leading_digits("") == ""


def test_year_prefix():
    assert year_prefix("2B") == "2"
    assert year_prefix("01A") == "1"
    assert year_prefix("B") is None
    assert year_prefix("00A") == "0"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("B", "B"),
        ("1B", "B"),
        ("01B", "B"),
        ("section 1b", "B"),
        ("2B", "2B"),
        ("12B", "12B"),
        ("1", "1"),
        ("", ""),
        (None, ""),
    ],
)
def test_section_key_folds_implicit_year(raw, expected):
    assert section_key(raw) == expected
