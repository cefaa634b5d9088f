"""Unit tests for reporting.aggregator."""

from __future__ import annotations

from typing import List

import pytest

from feedback_engine.models import (
    ChoiceAnswer,
    FeedbackResponse,
    Form,
    Question,
    QuestionType,
    RatingAnswer,
    TextAnswer,
)
from feedback_engine.reporting.aggregator import (
    aggregate,
    count_eligible,
    eligible_students,
    mean,
    response_rate,
    round_half_up,
)
from feedback_engine.reporting.models import RatingStats


def _form(*questions: Question) -> Form:
    return Form(
        form_id="f1",
        title="Feedback",
        questions=list(questions) or [Question("q1", "Overall", QuestionType.RATING)],
        target_sections=["1A"],
    )


def _ratings(values: List[int], qid: str = "q1") -> List[FeedbackResponse]:
    return [
        FeedbackResponse("f1", f"s{i}", [RatingAnswer(qid, v)])
        for i, v in enumerate(values)
    ]


def test_round_half_up():
    assert round_half_up(2.675, 2) == 2.68
    assert round_half_up(2.5, 0) == 3.0
    assert round_half_up(33.35, 1) == 33.4


def test_mean():
    assert mean([5, 4, 3, 4, 5]) == 4.2
    assert mean([4, 4, 5]) == 4.33
    assert mean([]) == 0.0


def test_response_rate():
    assert response_rate(7, 20) == 35.0
    assert response_rate(1, 3) == 33.3
    assert response_rate(3, 0) == 0.0


def test_rating_mean_and_distribution():
    stats = aggregate(_form(), _ratings([5, 4, 3, 4, 5]))
    rating = stats.questions[0]
    assert isinstance(rating, RatingStats)
    assert rating.count == 5
    assert rating.average == 4.2
    assert rating.distribution == {1: 0, 2: 0, 3: 1, 4: 2, 5: 2}
    assert stats.average_rating == 4.2
    assert stats.responded_count == 5


def test_zero_responses():
    stats = aggregate(_form(), [])
    assert stats.questions[0].to_dict() == {
        "questionId": "q1",
        "questionText": "Overall",
        "type": "rating",
        "avgRating": 0.0,
        "totalResponses": 0,
        "distribution": {1: 0, 2: 0, 3: 0, 4: 0, 5: 0},
    }
    assert stats.average_rating is None
    assert stats.response_rate == 0.0


def test_response_rate_from_eligible_count():
    stats = aggregate(_form(), _ratings([4] * 7), total_eligible=20)
    assert stats.response_rate == 35.0
    summary = stats.to_dict()["summary"]
    assert summary == {
        "totalStudents": 20,
        "respondedCount": 7,
        "notRespondedCount": 13,
        "responseRate": 35.0,
    }


def test_form_average_pools_rating_questions():
    form = _form(
        Question("q1", "Pace", QuestionType.RATING),
        Question("q2", "Clarity", QuestionType.RATING),
    )
    responses = [
        FeedbackResponse("f1", "s1", [RatingAnswer("q1", 5), RatingAnswer("q2", 4)]),
        FeedbackResponse("f1", "s2", [RatingAnswer("q1", 3)]),
    ]
    stats = aggregate(form, responses)
    assert stats.rating_count == 3
    assert stats.rating_sum == 12
    assert stats.average_rating == 4.0
    assert stats.distribution == {1: 0, 2: 0, 3: 1, 4: 1, 5: 1}


def test_choice_counts_and_percentages():
    form = _form(Question("q1", "Labs?", QuestionType.MULTIPLE_CHOICE, ["Yes", "No", "Unsure"]))
    responses = [
        FeedbackResponse("f1", f"s{i}", [ChoiceAnswer("q1", option)])
        for i, option in enumerate(["Yes", "Yes", "No", "Yes"])
    ]
    stats = aggregate(form, responses).questions[0]
    assert stats.total_answered == 4
    assert stats.counts == {"Yes": 3, "No": 1, "Unsure": 0}
    assert stats.percentages == {"Yes": 75.0, "No": 25.0, "Unsure": 0.0}
    assert stats.to_dict()["distribution"][0] == {"option": "Yes", "count": 3, "percentage": 75.0}


def test_choice_unknown_option_dropped():
    form = _form(Question("q1", "Labs?", QuestionType.MULTIPLE_CHOICE, ["Yes", "No"]))
    responses = [FeedbackResponse("f1", "s1", [ChoiceAnswer("q1", "Maybe")])]
    stats = aggregate(form, responses).questions[0]
    assert stats.counts == {"Yes": 0, "No": 0}
    assert "Maybe" not in stats.percentages


def test_choice_nothing_answered():
    form = _form(Question("q1", "Labs?", QuestionType.MULTIPLE_CHOICE, ["Yes", "No"]))
    stats = aggregate(form, []).questions[0]
    assert stats.percentages == {"Yes": 0.0, "No": 0.0}


def test_text_responses_not_deduplicated():
    form = _form(Question("q1", "Comments", QuestionType.TEXT))
    responses = [
        FeedbackResponse("f1", "s1", [TextAnswer("q1", "Too fast")]),
        FeedbackResponse("f1", "s2", [TextAnswer("q1", "Too fast")]),
        FeedbackResponse("f1", "s3", [TextAnswer("q1", "  ")]),
    ]
    stats = aggregate(form, responses).questions[0]
    assert stats.count == 2
    assert stats.responses == ["Too fast", "Too fast"]
    assert stats.redacted is False


def test_scope_filters_by_student_section():
    responses = _ratings([5, 1, 1, 3])
    sections = {"s0": "1A", "s1": "2A", "s2": None, "s3": "A"}
    stats = aggregate(_form(), responses, "1A", student_sections=sections)
    assert stats.responded_count == 2
    assert stats.average_rating == 4.0
    assert stats.scope == "1A"


def test_scope_without_known_sections_matches_nobody():
    stats = aggregate(_form(), _ratings([5, 4]), "1A")
    assert stats.responded_count == 0


def test_duplicate_student_responses_counted_once(caplog):
    responses = [
        FeedbackResponse("f1", "s1", [RatingAnswer("q1", 5)]),
        FeedbackResponse("f1", "s1", [RatingAnswer("q1", 1)]),
    ]
    with caplog.at_level("WARNING"):
        stats = aggregate(_form(), responses)
    assert stats.responded_count == 1
    assert stats.average_rating == 5.0
    assert stats.skipped_responses == 1
    assert "Duplicate response" in caplog.text


def test_response_for_other_form_skipped():
    responses = _ratings([4]) + [FeedbackResponse("f2", "s9", [RatingAnswer("q1", 1)])]
    stats = aggregate(_form(), responses)
    assert stats.responded_count == 1
    assert stats.skipped_responses == 1


def test_orphaned_answers_counted():
    responses = [
        FeedbackResponse("f1", "s1", [RatingAnswer("q1", 4), RatingAnswer("gone", 1)]),
    ]
    stats = aggregate(_form(), responses)
    assert stats.orphaned_answers == 1
    assert stats.average_rating == 4.0


def test_positional_answers_without_ids():
    form = _form(
        Question("q1", "Pace", QuestionType.RATING),
        Question("q2", "Comments", QuestionType.TEXT),
    )
    responses = [FeedbackResponse("f1", "s1", [RatingAnswer(None, 2), TextAnswer(None, "ok")])]
    stats = aggregate(form, responses)
    assert stats.questions[0].count == 1
    assert stats.questions[1].responses == ["ok"]


def test_answers_with_ids_do_not_fall_back_positionally():
    form = _form(
        Question("q1", "Pace", QuestionType.RATING),
        Question("q2", "Clarity", QuestionType.RATING),
    )
    responses = [FeedbackResponse("f1", "s1", [RatingAnswer("q2", 2)])]
    stats = aggregate(form, responses)
    assert stats.questions[0].count == 0
    assert stats.questions[1].count == 1


def test_aggregate_does_not_mutate_form():
    form = _form()
    aggregate(form, _ratings([4, 5]))
    assert form.response_count == 0


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------


@pytest.fixture()
def roster():
    return {"A": ["s1"], "01A": ["s2", "s1"], "2A": ["s3"], "B": ["s4"]}


def test_eligible_students(roster):
    assert eligible_students(["1A"], roster) == {"s1", "s2"}
    assert count_eligible(["1A", "B"], roster) == 3


def test_eligible_students_without_roster():
    assert count_eligible(["1A"], None) == 0
    assert count_eligible([], {"1A": ["s1"]}) == 0
