"""Chronological performance trends for a faculty member."""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from feedback_engine.models import FeedbackResponse, Form
from feedback_engine.reporting.aggregator import aggregate, round_half_up

logger = logging.getLogger(__name__)

_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


def chronological(forms: Iterable[Form]) -> List[Form]:
    """Return *forms* oldest first; undated forms keep their order at the end."""
    return sorted(forms, key=lambda f: (f.created_at is None, f.created_at or _EPOCH))


def compute_trend(averages: Sequence[float]) -> float:
    """Return ``last - first`` of time-ordered *averages*, 2 decimals.

    ``0.0`` when fewer than two averages exist.
    """
    if len(averages) < 2:
        return 0.0
    return round_half_up(averages[-1] - averages[0], 2)


@dataclass(slots=True)
class TrendPoint:
    form_id: str
    title: str
    form_type: Optional[str]
    course_name: Optional[str]
    created_at: Optional[datetime.datetime]
    average_rating: Optional[float]
    total_responses: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "formId": self.form_id,
            "formTitle": self.title,
            "formType": self.form_type,
            "courseName": self.course_name,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "avgRating": self.average_rating,
            "totalResponses": self.total_responses,
        }


@dataclass(slots=True)
class FacultyTrend:
    faculty_id: str
    points: List[TrendPoint] = field(default_factory=list)
    trend: float = 0.0
    section: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "facultyId": self.faculty_id,
            "filteredSection": self.section,
            "trend": self.trend,
            "trends": [p.to_dict() for p in self.points],
        }


def faculty_trend(
    forms: Iterable[Form],
    responses: Iterable[FeedbackResponse],
    faculty_id: str,
    *,
    section: Optional[str] = None,
    student_sections: Optional[Mapping[str, Optional[str]]] = None,
    course_name: Optional[str] = None,
    form_type: Optional[str] = None,
) -> FacultyTrend:
    """Return the per-form rating history of *faculty_id*.

    Forms can be narrowed by *course_name* (case-insensitive substring) and
    *form_type*; with *section* each form only counts responses from students
    of that section.
    """
    wanted = [f for f in forms if f.faculty_id == faculty_id]
    if course_name:
        needle = course_name.strip().lower()
        wanted = [f for f in wanted if needle in (f.course_name or "").lower()]
    if form_type:
        wanted = [f for f in wanted if f.form_type == form_type]

    by_form: Dict[str, List[FeedbackResponse]] = {}
    for response in responses:
        by_form.setdefault(response.form_id, []).append(response)

    points: List[TrendPoint] = []
    for form in chronological(wanted):
        stats = aggregate(
            form,
            by_form.get(form.form_id, []),
            section,
            student_sections=student_sections,
        )
        points.append(
            TrendPoint(
                form_id=form.form_id,
                title=form.title,
                form_type=form.form_type,
                course_name=form.course_name,
                created_at=form.created_at,
                average_rating=stats.average_rating,
                total_responses=stats.responded_count,
            )
        )

    rated = [p.average_rating for p in points if p.average_rating is not None]
    logger.debug("Faculty %s trend over %d rated form(s)", faculty_id, len(rated))
    return FacultyTrend(
        faculty_id=faculty_id,
        points=points,
        trend=compute_trend(rated),
        section=section,
    )
