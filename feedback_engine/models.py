"""Domain entities consumed by the section and aggregation engine.

The engine never owns these records; they are handed over by the storage
collaborator. Each ``from_dict`` accepts the camelCase interchange shape and
tolerates missing keys, because the upstream data is known to be
inconsistent.
"""
from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Union

from feedback_engine.identity.cleanup import clean_target_sections

logger = logging.getLogger(__name__)


class QuestionType(str, Enum):
    """Supported question kinds."""

    RATING = "rating"
    MULTIPLE_CHOICE = "multiple_choice"
    TEXT = "text"

    @classmethod
    def parse(
        cls, value: Any, default: Optional["QuestionType"] = None
    ) -> Optional["QuestionType"]:
        if isinstance(value, cls):
            return value
        if value is None or value == "":
            return default
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default


class FormStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    CLOSED = "closed"
    ARCHIVED = "archived"


class ViewerRole(str, Enum):
    """Who is looking at an aggregated view."""

    STUDENT = "student"
    FACULTY = "faculty"
    DEPARTMENT_ADMIN = "department_admin"
    SYSTEM_ADMIN = "system_admin"

    @property
    def is_admin(self) -> bool:  # noqa: D401 – property
        """*True* for roles allowed to see raw text and confidential data."""
        return self in (ViewerRole.DEPARTMENT_ADMIN, ViewerRole.SYSTEM_ADMIN)


class GroupBy(str, Enum):
    """Dimensions a rollup can be sliced by."""

    FACULTY = "faculty"
    COURSE = "course"
    SECTION = "section"
    DEPARTMENT = "department"


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def parse_datetime(value: Any) -> Optional[datetime.datetime]:
    """Return an aware UTC-based datetime for *value* or *None*.

    Accepts ``datetime``/``date`` objects and ISO-8601 strings (a trailing
    ``Z`` included). Naive values are taken to be UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, datetime.date):
        parsed = datetime.datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.datetime.fromisoformat(text)
        except ValueError:
            logger.debug("Ignoring unparseable date %r", value)
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


def ref_id(value: Any) -> Optional[str]:
    """Return the id of a plain or populated reference (``{"_id": ...}``)."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        value = value.get("_id") or value.get("id")
        if value is None:
            return None
    text = str(value).strip()
    return text or None


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


# ---------------------------------------------------------------------------
# Forms
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class Question:
    """One question on a feedback form."""

    question_id: Optional[str]
    text: str = ""
    type: QuestionType = QuestionType.RATING
    options: List[str] = field(default_factory=list)
    required: bool = True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Question":
        options = data.get("options") or []
        return cls(
            question_id=ref_id(_first(data, "questionId", "_id", "id")),
            text=str(data.get("questionText") or data.get("text") or ""),
            # Missing type defaults to rating; anything unrecognised is free text
            type=QuestionType.parse(data.get("type"), QuestionType.TEXT)
            if data.get("type")
            else QuestionType.RATING,
            options=[str(o) for o in options if o is not None],
            required=bool(data.get("required", True)),
        )


@dataclass(slots=True)
class Form:
    """A feedback form targeting one or more sections."""

    form_id: str
    title: str = ""
    questions: List[Question] = field(default_factory=list)
    target_sections: List[str] = field(default_factory=list)
    faculty_id: Optional[str] = None
    course_offering_id: Optional[str] = None
    course_name: Optional[str] = None
    course_code: Optional[str] = None
    department: Optional[str] = None
    form_type: Optional[str] = None
    status: FormStatus = FormStatus.DRAFT
    open_date: Optional[datetime.datetime] = None
    close_date: Optional[datetime.datetime] = None
    created_at: Optional[datetime.datetime] = None
    is_anonymous: bool = True
    faculty_active: bool = True
    response_count: int = 0

    def question(self, question_id: Optional[str]) -> Optional[Question]:
        """Return the question with *question_id* or *None*."""
        if question_id is None:
            return None
        for question in self.questions:
            if question.question_id == question_id:
                return question
        return None

    def is_open(self, now: Optional[datetime.datetime] = None) -> bool:
        """Return *True* if the form is active and inside its schedule at *now*."""
        if self.status is not FormStatus.ACTIVE:
            return False
        now = now or datetime.datetime.now(datetime.timezone.utc)
        if self.open_date is not None and self.open_date > now:
            return False
        if self.close_date is not None and self.close_date < now:
            return False
        return True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Form":
        schedule = data.get("schedule") or {}
        settings = data.get("settings") or {}
        faculty = data.get("facultyId")
        faculty_active = True
        if isinstance(faculty, Mapping):
            faculty_active = faculty.get("isActive") is not False
        try:
            status = FormStatus(str(data.get("status") or "draft").strip().lower())
        except ValueError:
            status = FormStatus.DRAFT
        return cls(
            form_id=ref_id(_first(data, "_id", "id", "formId")) or "",
            title=str(data.get("title") or ""),
            questions=[Question.from_dict(q) for q in data.get("questions") or []],
            target_sections=clean_target_sections(data.get("targetSections")),
            faculty_id=ref_id(faculty),
            course_offering_id=ref_id(data.get("courseOfferingId")),
            course_name=data.get("courseName"),
            course_code=data.get("courseCode"),
            department=data.get("department"),
            form_type=data.get("type"),
            status=status,
            open_date=parse_datetime(schedule.get("openDate")),
            close_date=parse_datetime(schedule.get("closeDate")),
            created_at=parse_datetime(data.get("createdAt")),
            is_anonymous=bool(settings.get("isAnonymous", True)),
            faculty_active=faculty_active,
            response_count=int(data.get("responseCount") or 0),
        )


# ---------------------------------------------------------------------------
# Answers & responses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RatingAnswer:
    question_id: Optional[str]
    rating: int

    type: ClassVar[QuestionType] = QuestionType.RATING

    @property
    def value(self) -> int:
        return self.rating


@dataclass(frozen=True)
class ChoiceAnswer:
    question_id: Optional[str]
    option: str

    type: ClassVar[QuestionType] = QuestionType.MULTIPLE_CHOICE

    @property
    def value(self) -> str:
        return self.option


@dataclass(frozen=True)
class TextAnswer:
    question_id: Optional[str]
    text: str

    type: ClassVar[QuestionType] = QuestionType.TEXT

    @property
    def value(self) -> str:
        return self.text


Answer = Union[RatingAnswer, ChoiceAnswer, TextAnswer]


@dataclass(slots=True)
class FeedbackResponse:
    """One student's submission for one form."""

    form_id: str
    student_id: Optional[str]
    answers: List[Answer] = field(default_factory=list)
    submitted_at: Optional[datetime.datetime] = None
    response_id: Optional[str] = None

    def ratings(self) -> List[int]:
        """Return every rating carried by this response."""
        return [a.rating for a in self.answers if isinstance(a, RatingAnswer)]

    def to_dict(self) -> Dict[str, Any]:
        items: List[Dict[str, Any]] = []
        for answer in self.answers:
            item: Dict[str, Any] = {
                "questionId": answer.question_id,
                "type": answer.type.value,
                "answer": answer.value,
            }
            if isinstance(answer, RatingAnswer):
                item["rating"] = answer.rating
            elif isinstance(answer, ChoiceAnswer):
                item["selectedOption"] = answer.option
            else:
                item["textResponse"] = answer.text
            items.append(item)
        return {
            "_id": self.response_id,
            "formId": self.form_id,
            "studentId": self.student_id,
            "submittedAt": self.submitted_at.isoformat() if self.submitted_at else None,
            "responses": items,
        }

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], form: Optional[Form] = None
    ) -> "FeedbackResponse":
        from feedback_engine.ingest import parse_response  # local import to avoid cycles

        return parse_response(data, form)


# ---------------------------------------------------------------------------
# Students
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class Student:
    student_id: str
    section: Optional[str] = None
    semester: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Student":
        academic = data.get("academicInfo") or {}
        semester = academic.get("semester", data.get("semester"))
        try:
            semester = int(semester) if semester is not None else None
        except (TypeError, ValueError):
            semester = None
        return cls(
            student_id=ref_id(_first(data, "_id", "id", "studentId")) or "",
            section=academic.get("section", data.get("section")),
            semester=semester,
        )
