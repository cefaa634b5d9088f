"""Unit tests for identity.cleanup."""
from __future__ import annotations

import pytest

from feedback_engine.identity.cleanup import (
    clean_target_sections,
    expand_bare_section,
    split_section_list,
)


def test_clean_target_sections():
    assert clean_target_sections([" a", None, "", "  ", "2b "]) == ["A", "2B"]


def test_clean_target_sections_rejects_non_lists():
    assert clean_target_sections(None) == []
    assert clean_target_sections("A") == []


def test_split_section_list():
    assert split_section_list(["2A, 2B", "3c", None]) == ["2A", "2B", "3C"]
    assert split_section_list("A,B,") == ["A", "B"]
    assert split_section_list(None) == []


@pytest.mark.parametrize(
    "section, semester, expected",
    [
        ("a", None, "1A"),
        ("A", 1, "1A"),
        ("A", 2, "1A"),
        ("A", 3, "2A"),
        ("B", 4, "2B"),
        ("C", 5, "3C"),
        ("D", "7", "4D"),
        ("A", "junk", "1A"),
        ("2A", 3, "2A"),
        (" e ", 3, "E"),
        (None, 3, ""),
    ],
)
def test_expand_bare_section(section, semester, expected):
    assert expand_bare_section(section, semester) == expected
