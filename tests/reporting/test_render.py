"""Unit tests for markdown rendering of rollup views."""
from __future__ import annotations

import datetime

import pytest

from feedback_engine import config
from feedback_engine.models import (
    FeedbackResponse,
    Form,
    GroupBy,
    Question,
    QuestionType,
    RatingAnswer,
    TextAnswer,
    ViewerRole,
)
from feedback_engine.reporting.models import RollupView
from feedback_engine.reporting.render import render_rollup
from feedback_engine.reporting.rollup import rollup


def _form(form_id: str, faculty_id: str, month: int) -> Form:
    return Form(
        form_id=form_id,
        title=f"Feedback {form_id}",
        faculty_id=faculty_id,
        department="CS",
        created_at=datetime.datetime(2024, month, 1, tzinfo=datetime.timezone.utc),
        target_sections=["1A"],
        questions=[
            Question("q1", "Overall", QuestionType.RATING),
            Question("q2", "Comments", QuestionType.TEXT, required=False),
        ],
    )


@pytest.fixture()
def data():
    forms = [_form("f1", "fac1", 1), _form("f2", "fac1", 2)]
    responses = [
        FeedbackResponse("f1", "s1", [RatingAnswer("q1", 2), TextAnswer("q2", "Slow down please")]),
        FeedbackResponse("f1", "s2", [RatingAnswer("q1", 2), TextAnswer("q2", "More examples")]),
        FeedbackResponse("f2", "s1", [RatingAnswer("q1", 1)]),
    ]
    return forms, responses


def test_render_faculty_view(data):
    forms, responses = data
    out = render_rollup(rollup(forms, responses, GroupBy.FACULTY, ViewerRole.FACULTY))
    assert "# Feedback rollup by faculty" in out
    assert "## fac1" in out
    assert "Average rating: **1.50**" in out
    assert "Trend: -1.00" in out
    assert "| Feedback f1 | 2024-01-01 | 2.00 | 2 / 0 | 0.0% |" in out
    assert config.REDACTED_TEXT in out
    assert "Slow down please" not in out
    assert "Confidential" not in out


def test_render_admin_department_view(data):
    forms, responses = data
    view = rollup(
        forms,
        responses,
        GroupBy.DEPARTMENT,
        ViewerRole.DEPARTMENT_ADMIN,
        low_performance_threshold=3.0,
        critical_rating_threshold=2.0,
    )
    out = render_rollup(view)
    assert "## CS" in out
    assert "> Slow down please" in out
    assert "### Confidential" in out
    assert "Low performing faculty fac1 (1.50)" in out
    assert "Critical feedback on f2 (1.00): average rating 1.00" in out
    assert "Insight [critical] Faculty Performance Concern (fac1)" in out


def test_render_caps_text_items(data, monkeypatch):
    forms, responses = data
    monkeypatch.setattr(config, "MAX_TEXT_RESPONSES", 1)
    out = render_rollup(rollup(forms, responses, GroupBy.FACULTY, ViewerRole.SYSTEM_ADMIN))
    assert "> Slow down please" in out
    assert "More examples" not in out


def test_render_empty_view():
    out = render_rollup(RollupView(group_by=GroupBy.COURSE, viewer_role=ViewerRole.FACULTY))
    assert "No forms to report." in out
    assert "0 form(s)" in out
