"""Turn loosely-shaped answer payloads into tagged answers.

An answer may carry its value in ``rating``, ``selectedOption``,
``textResponse`` or a generic ``answer``/``value`` field depending on the
submission path that produced it. This module is the only place that knows
which field wins; everything downstream works on
:class:`~feedback_engine.models.RatingAnswer`,
:class:`~feedback_engine.models.ChoiceAnswer` and
:class:`~feedback_engine.models.TextAnswer`.

Two entry points:

* :func:`parse_response` – lenient read path for stored data. Malformed
  answers are dropped, never raised.
* :func:`build_submission` – strict write path for a new submission.
  Constraint violations raise :class:`~feedback_engine.exceptions.FeedbackRejectedError`
  subclasses.
"""
from __future__ import annotations

import datetime
import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Sequence

from feedback_engine.exceptions import (
    FormNotActiveError,
    InvalidAnswerError,
    MissingAnswerError,
)
from feedback_engine.models import (
    Answer,
    ChoiceAnswer,
    FeedbackResponse,
    Form,
    FormStatus,
    Question,
    QuestionType,
    RatingAnswer,
    TextAnswer,
    parse_datetime,
    ref_id,
)

logger = logging.getLogger(__name__)

RATING_MIN = 1
RATING_MAX = 5

_RATING_FIELDS = ("rating", "answer", "value", "score")
_CHOICE_FIELDS = ("selectedOption", "answer", "value")
_TEXT_FIELDS = ("textResponse", "answer", "value")


def _pick(raw: Mapping[str, Any], fields: Sequence[str]) -> Any:
    for name in fields:
        value = raw.get(name)
        if value is not None:
            return value
    return None


def coerce_rating(value: Any) -> Optional[int]:
    """Return *value* as an integer rating (rounded half up) or *None*.

    Accepts ints, floats and numeric strings. Booleans, blanks and
    non-finite numbers are rejected. No range check is applied here.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return int(math.floor(number + 0.5))


def _question_id_of(raw: Mapping[str, Any]) -> Optional[str]:
    qid = ref_id(raw.get("questionId"))
    if qid is None and isinstance(raw.get("question"), Mapping):
        qid = ref_id(raw["question"].get("id"))
    return qid


def _infer_type(raw: Mapping[str, Any]) -> Optional[QuestionType]:
    if raw.get("rating") is not None:
        return QuestionType.RATING
    if raw.get("selectedOption") is not None:
        return QuestionType.MULTIPLE_CHOICE
    if raw.get("textResponse") is not None:
        return QuestionType.TEXT
    return None


def coerce_answer(
    raw: Mapping[str, Any],
    question_type: Optional[QuestionType] = None,
    *,
    question_id: Optional[str] = None,
) -> Optional[Answer]:
    """Build a tagged answer from a stored answer payload.

    The type comes from ``raw["type"]``, then *question_type*, then from
    whichever structured field is present. Returns *None* when nothing
    usable is found: ratings outside 1–5, blank choices and blank text are
    not counted.
    """
    if not isinstance(raw, Mapping):
        return None
    qtype = (
        QuestionType.parse(raw.get("type"))
        or question_type
        or _infer_type(raw)
    )
    qid = question_id if question_id is not None else _question_id_of(raw)

    if qtype is QuestionType.RATING:
        rating = coerce_rating(_pick(raw, _RATING_FIELDS))
        if rating is None or not RATING_MIN <= rating <= RATING_MAX:
            return None
        return RatingAnswer(qid, rating)

    if qtype is QuestionType.MULTIPLE_CHOICE:
        option = _pick(raw, _CHOICE_FIELDS)
        if option is None or str(option) == "":
            return None
        return ChoiceAnswer(qid, str(option))

    if qtype is QuestionType.TEXT:
        text = _pick(raw, _TEXT_FIELDS)
        if text is None:
            return None
        text = str(text).strip()
        return TextAnswer(qid, text) if text else None

    return None


def parse_response(
    raw: Mapping[str, Any], form: Optional[Form] = None
) -> FeedbackResponse:
    """Parse a stored response, dropping answers that cannot be coerced.

    When *form* is given, answers without a ``type`` tag borrow the type of
    the question they reference (by id, or by position for legacy answers
    without ids).
    """
    items = raw.get("responses") or raw.get("answers") or []
    answers: List[Answer] = []
    for idx, item in enumerate(items):
        if not isinstance(item, Mapping):
            continue
        qid = _question_id_of(item)
        qtype: Optional[QuestionType] = None
        if form is not None:
            question = form.question(qid)
            if question is None and qid is None and idx < len(form.questions):
                question = form.questions[idx]
            if question is not None:
                qtype = question.type
        answer = coerce_answer(item, qtype, question_id=qid)
        if answer is not None:
            answers.append(answer)

    metadata = raw.get("metadata") or {}
    return FeedbackResponse(
        form_id=ref_id(raw.get("formId")) or (form.form_id if form else ""),
        student_id=ref_id(raw.get("studentId")),
        answers=answers,
        submitted_at=parse_datetime(
            raw.get("submittedAt") or metadata.get("submissionDate")
        ),
        response_id=ref_id(raw.get("_id") or raw.get("id")),
    )


# ---------------------------------------------------------------------------
# Submission (strict) path
# ---------------------------------------------------------------------------


def _index_payload(payload: Sequence[Any]) -> Dict[str, Mapping[str, Any]]:
    """Key incoming answers by question id, embedded question id and position."""
    lookup: Dict[str, Mapping[str, Any]] = {}
    for idx, item in enumerate(payload):
        if not isinstance(item, Mapping):
            continue
        keyed = False
        qid = ref_id(item.get("questionId"))
        if qid is not None:
            lookup.setdefault(qid, item)
            keyed = True
        if isinstance(item.get("question"), Mapping):
            nested = ref_id(item["question"].get("id"))
            if nested is not None:
                lookup.setdefault(nested, item)
                keyed = True
        if not keyed:
            # Legacy payloads only carry their position
            lookup.setdefault(f"#{idx}", item)
    return lookup


def _submitted_answer(
    question: Question, incoming: Optional[Mapping[str, Any]]
) -> Optional[Answer]:
    qid = question.question_id
    label = question.text or qid or "question"

    if question.type is QuestionType.RATING:
        rating = coerce_rating(_pick(incoming, _RATING_FIELDS)) if incoming else None
        if rating is None:
            if question.required:
                raise MissingAnswerError(f'Rating required for question "{label}"', qid)
            return None
        return RatingAnswer(qid, max(RATING_MIN, min(RATING_MAX, rating)))

    if question.type is QuestionType.MULTIPLE_CHOICE:
        raw = _pick(incoming, _CHOICE_FIELDS) if incoming else None
        option = str(raw) if raw is not None else ""
        if not option:
            if question.required:
                raise MissingAnswerError(
                    f'An option must be selected for question "{label}"', qid
                )
            return None
        if question.options and option not in question.options:
            raise InvalidAnswerError(
                f'Invalid option selected for question "{label}"', qid
            )
        return ChoiceAnswer(qid, option)

    raw = _pick(incoming, _TEXT_FIELDS) if incoming else None
    text = str(raw).strip() if raw is not None else ""
    if not text:
        if question.required:
            raise MissingAnswerError(f'Response required for question "{label}"', qid)
        return None
    return TextAnswer(qid, text)


def build_submission(
    form: Form,
    student_id: str,
    payload: Optional[Sequence[Any]],
    *,
    submitted_at: Optional[datetime.datetime] = None,
) -> FeedbackResponse:
    """Validate *payload* against *form* and return the response to store.

    Raises
    ------
    FormNotActiveError
        If the form does not accept submissions.
    MissingAnswerError
        If a required question has no usable answer.
    InvalidAnswerError
        If a multiple-choice answer is not one of the declared options.
    """
    if form.status is not FormStatus.ACTIVE:
        raise FormNotActiveError(form.form_id, form.status.value)

    lookup = _index_payload(list(payload or []))
    answers: List[Answer] = []
    for idx, question in enumerate(form.questions):
        incoming = None
        if question.question_id is not None:
            incoming = lookup.get(question.question_id)
        if incoming is None:
            incoming = lookup.get(f"#{idx}")
        answer = _submitted_answer(question, incoming)
        if answer is not None:
            answers.append(answer)

    return FeedbackResponse(
        form_id=form.form_id,
        student_id=student_id,
        answers=answers,
        submitted_at=submitted_at or datetime.datetime.now(datetime.timezone.utc),
    )
