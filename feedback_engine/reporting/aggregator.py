"""Aggregate feedback responses into per-question statistics (:class:`FormStats`)."""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from feedback_engine.identity.matcher import matches
from feedback_engine.ingest import RATING_MAX, RATING_MIN
from feedback_engine.models import (
    Answer,
    ChoiceAnswer,
    FeedbackResponse,
    Form,
    Question,
    QuestionType,
    RatingAnswer,
    TextAnswer,
)
from feedback_engine.reporting.models import (
    ChoiceStats,
    FormStats,
    QuestionStats,
    RatingStats,
    TextStats,
    empty_distribution,
)

logger = logging.getLogger(__name__)


def round_half_up(value: float, places: int) -> float:
    """Round *value* to *places* decimals, halves away from zero."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def mean(values: Sequence[float], places: int = 2) -> float:
    """Return the rounded arithmetic mean of *values*, ``0.0`` when empty."""
    if not values:
        return 0.0
    return round_half_up(sum(values) / len(values), places)


def response_rate(responded: int, total_eligible: int) -> float:
    """Return ``responded / total_eligible`` as a percentage with one decimal.

    ``0.0`` when nobody is eligible.
    """
    if total_eligible <= 0:
        return 0.0
    return round_half_up(responded / total_eligible * 100, 1)


def eligible_students(
    target_sections: Sequence[str],
    roster: Optional[Mapping[str, Iterable[str]]],
    *,
    strict_year_prefix: Optional[bool] = None,
) -> Set[str]:
    """Return the students enrolled in any roster section matching *target_sections*."""
    students: Set[str] = set()
    if not roster or not target_sections:
        return students
    for section_name, student_ids in roster.items():
        if matches(section_name, target_sections, strict_year_prefix=strict_year_prefix):
            students.update(str(s) for s in student_ids or [] if s is not None)
    return students


def count_eligible(
    target_sections: Sequence[str],
    roster: Optional[Mapping[str, Iterable[str]]],
    *,
    strict_year_prefix: Optional[bool] = None,
) -> int:
    return len(
        eligible_students(target_sections, roster, strict_year_prefix=strict_year_prefix)
    )


# ---------------------------------------------------------------------------
# Response selection
# ---------------------------------------------------------------------------


def _select_responses(
    form: Form,
    responses: Iterable[FeedbackResponse],
    scope: Optional[str],
    student_sections: Optional[Mapping[str, Optional[str]]],
    strict_year_prefix: Optional[bool],
) -> Tuple[List[FeedbackResponse], int]:
    """Return (responses to aggregate, number skipped as inconsistent)."""
    selected: List[FeedbackResponse] = []
    seen_students: Set[str] = set()
    skipped = 0
    sections = student_sections or {}

    for response in responses:
        if form.form_id and response.form_id != form.form_id:
            logger.warning(
                "Skipping response for form %s while aggregating form %s",
                response.form_id,
                form.form_id,
            )
            skipped += 1
            continue
        if response.student_id is not None:
            if response.student_id in seen_students:
                # Storage should reject this; tolerate a lost race instead
                logger.warning(
                    "Duplicate response from student %s on form %s ignored",
                    response.student_id,
                    form.form_id,
                )
                skipped += 1
                continue
            seen_students.add(response.student_id)
        if scope is not None:
            section = sections.get(response.student_id) if response.student_id else None
            if not matches(section, [scope], strict_year_prefix=strict_year_prefix):
                continue
        selected.append(response)
    return selected, skipped


def _resolve(
    question: Question, index: int, by_id: Mapping[str, Answer], answers: Sequence[Answer]
) -> Optional[Answer]:
    """Find the answer to *question*: by id, positionally only for id-less answers."""
    if question.question_id is not None and question.question_id in by_id:
        return by_id[question.question_id]
    if index < len(answers) and answers[index].question_id is None:
        return answers[index]
    return None


# ---------------------------------------------------------------------------
# Per-type aggregation
# ---------------------------------------------------------------------------


def _rating_stats(question: Question, answers: List[Answer]) -> RatingStats:
    ratings = [
        a.rating
        for a in answers
        if isinstance(a, RatingAnswer) and RATING_MIN <= a.rating <= RATING_MAX
    ]
    distribution = empty_distribution()
    for rating in ratings:
        distribution[rating] += 1
    return RatingStats(
        question_id=question.question_id,
        question_text=question.text,
        count=len(ratings),
        average=mean(ratings),
        distribution=distribution,
    )


def _choice_stats(question: Question, answers: List[Answer]) -> ChoiceStats:
    chosen = [a.option for a in answers if isinstance(a, ChoiceAnswer)]
    counts: Dict[str, int] = {option: 0 for option in question.options}
    for option in chosen:
        # Options removed from the form since submission are dropped
        if option in counts:
            counts[option] += 1
    total = len(chosen)
    percentages = {
        option: round_half_up(count / total * 100, 1) if total else 0.0
        for option, count in counts.items()
    }
    return ChoiceStats(
        question_id=question.question_id,
        question_text=question.text,
        total_answered=total,
        counts=counts,
        percentages=percentages,
    )


def _text_stats(question: Question, answers: List[Answer]) -> TextStats:
    # Repeats are kept on purpose; the same complaint twice is a signal
    texts = [a.text.strip() for a in answers if isinstance(a, TextAnswer) and a.text.strip()]
    return TextStats(
        question_id=question.question_id,
        question_text=question.text,
        count=len(texts),
        responses=texts,
    )


_BUILDERS = {
    QuestionType.RATING: _rating_stats,
    QuestionType.MULTIPLE_CHOICE: _choice_stats,
    QuestionType.TEXT: _text_stats,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def aggregate(
    form: Form,
    responses: Iterable[FeedbackResponse],
    scope: Optional[str] = None,
    *,
    student_sections: Optional[Mapping[str, Optional[str]]] = None,
    total_eligible: int = 0,
    strict_year_prefix: Optional[bool] = None,
) -> FormStats:
    """Compute :class:`FormStats` for *form* from *responses*.

    When *scope* is given only responses from students whose section (looked
    up in *student_sections*) matches it are used. *total_eligible* is the
    response-rate denominator supplied by the caller's enrollment roster.

    The function is read-only; it mutates neither *form* nor *responses*.
    """
    selected, skipped = _select_responses(
        form, responses, scope, student_sections, strict_year_prefix
    )

    known_ids = {q.question_id for q in form.questions if q.question_id is not None}
    per_question: List[List[Answer]] = [[] for _ in form.questions]
    orphaned = 0

    for response in selected:
        by_id: Dict[str, Answer] = {}
        for answer in response.answers:
            if answer.question_id is None:
                continue
            if answer.question_id not in known_ids:
                orphaned += 1
                continue
            by_id.setdefault(answer.question_id, answer)
        for idx, question in enumerate(form.questions):
            answer = _resolve(question, idx, by_id, response.answers)
            if answer is not None:
                per_question[idx].append(answer)

    if orphaned:
        logger.warning(
            "Form %s: %d answer(s) reference questions no longer on the form",
            form.form_id,
            orphaned,
        )

    questions: List[QuestionStats] = [
        _BUILDERS[question.type](question, answers)
        for question, answers in zip(form.questions, per_question)
    ]

    distribution = empty_distribution()
    for stats in questions:
        if isinstance(stats, RatingStats):
            for rating, count in stats.distribution.items():
                distribution[rating] += count
    rating_count = sum(distribution.values())
    rating_sum = sum(rating * count for rating, count in distribution.items())

    responded = len(selected)
    return FormStats(
        form_id=form.form_id,
        title=form.title,
        questions=questions,
        responded_count=responded,
        total_eligible=total_eligible,
        response_rate=response_rate(responded, total_eligible),
        rating_count=rating_count,
        rating_sum=rating_sum,
        average_rating=round_half_up(rating_sum / rating_count, 2) if rating_count else None,
        distribution=distribution,
        scope=scope,
        orphaned_answers=orphaned,
        skipped_responses=skipped,
    )
