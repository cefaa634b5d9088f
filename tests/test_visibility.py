"""Tests for the student form listing."""
from __future__ import annotations

import datetime

import pytest

from feedback_engine.models import Form, FormStatus
from feedback_engine.visibility import forms_for_student

UTC = datetime.timezone.utc
NOW = datetime.datetime(2024, 3, 15, tzinfo=UTC)


def _form(form_id, *targets, month=1, **kwargs):
    kwargs.setdefault("status", FormStatus.ACTIVE)
    kwargs.setdefault("faculty_id", "fac1")
    kwargs.setdefault("open_date", datetime.datetime(2024, 3, 1, tzinfo=UTC))
    kwargs.setdefault("close_date", datetime.datetime(2024, 4, 1, tzinfo=UTC))
    return Form(
        form_id=form_id,
        target_sections=list(targets),
        created_at=datetime.datetime(2024, month, 1, tzinfo=UTC),
        **kwargs,
    )


def test_student_sees_open_forms_for_their_section_newest_first():
    forms = [_form("old", "1A", month=1), _form("new", "A", month=2), _form("other", "2B")]
    visible = forms_for_student("1A", forms, now=NOW)
    assert [v.form.form_id for v in visible] == ["new", "old"]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"status": FormStatus.DRAFT},
        {"status": FormStatus.CLOSED},
        {"open_date": datetime.datetime(2024, 3, 20, tzinfo=UTC)},
        {"close_date": datetime.datetime(2024, 3, 10, tzinfo=UTC)},
        {"faculty_id": None},
        {"faculty_active": False},
    ],
)
def test_hidden_forms(kwargs):
    assert forms_for_student("1A", [_form("f1", "1A", **kwargs)], now=NOW) == []


def test_form_without_close_date_stays_open():
    visible = forms_for_student("1A", [_form("f1", "1A", close_date=None)], now=NOW)
    assert len(visible) == 1


def test_submitted_flag():
    forms = [_form("f1", "1A"), _form("f2", "1A")]
    visible = forms_for_student("1A", forms, submitted_form_ids={"f2"}, now=NOW)
    assert {v.form.form_id: v.submitted for v in visible} == {"f1": False, "f2": True}
    assert visible[0].to_dict()["targetSections"] == ["1A"]


@pytest.mark.parametrize("section", [None, "", "  "])
def test_student_without_section_sees_nothing(section):
    assert forms_for_student(section, [_form("f1", "1A")], now=NOW) == []


def test_bare_section_falls_back_onto_year_prefixed_forms():
    forms = [_form("f1", "2C")]
    assert len(forms_for_student("C", forms, now=NOW)) == 1
    assert forms_for_student("C", forms, now=NOW, strict_year_prefix=True) == []
