"""Data structures produced by the aggregation and rollup pipeline.

All of these are derived values: request-scoped, never persisted and always
recomputable from the underlying responses. ``to_dict`` renders the camelCase
interchange shape handed to the reporting layer.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from feedback_engine.models import GroupBy, QuestionType, ViewerRole


def empty_distribution() -> Dict[int, int]:
    """Return a rating histogram with buckets 1..5 set to zero."""
    return {rating: 0 for rating in range(1, 6)}


def _iso(value: Optional[datetime.datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(slots=True)
class RatingStats:
    """Statistics for a rating question."""

    question_id: Optional[str]
    question_text: str
    count: int = 0
    average: float = 0.0  # 0.0 when nothing was rated
    distribution: Dict[int, int] = field(default_factory=empty_distribution)

    type = QuestionType.RATING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionId": self.question_id,
            "questionText": self.question_text,
            "type": self.type.value,
            "avgRating": self.average,
            "totalResponses": self.count,
            "distribution": dict(self.distribution),
        }


@dataclass(slots=True)
class ChoiceStats:
    """Statistics for a multiple-choice question."""

    question_id: Optional[str]
    question_text: str
    total_answered: int = 0
    counts: Dict[str, int] = field(default_factory=dict)
    percentages: Dict[str, float] = field(default_factory=dict)

    type = QuestionType.MULTIPLE_CHOICE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionId": self.question_id,
            "questionText": self.question_text,
            "type": self.type.value,
            "totalResponses": self.total_answered,
            "distribution": [
                {
                    "option": option,
                    "count": count,
                    "percentage": self.percentages.get(option, 0.0),
                }
                for option, count in self.counts.items()
            ],
        }


@dataclass(slots=True)
class TextStats:
    """Collected free-text answers for a text question."""

    question_id: Optional[str]
    question_text: str
    count: int = 0
    responses: List[str] = field(default_factory=list)
    redacted: bool = False

    type = QuestionType.TEXT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionId": self.question_id,
            "questionText": self.question_text,
            "type": self.type.value,
            "totalResponses": self.count,
            "responses": list(self.responses),
            "redacted": self.redacted,
        }


QuestionStats = Union[RatingStats, ChoiceStats, TextStats]


@dataclass(slots=True)
class FormStats:
    """Per-form aggregate returned by :func:`~feedback_engine.reporting.aggregator.aggregate`."""

    form_id: str
    title: str
    questions: List[QuestionStats] = field(default_factory=list)
    responded_count: int = 0
    total_eligible: int = 0
    response_rate: float = 0.0
    rating_count: int = 0
    rating_sum: int = 0
    average_rating: Optional[float] = None  # None when the form has no ratings
    distribution: Dict[int, int] = field(default_factory=empty_distribution)
    scope: Optional[str] = None
    orphaned_answers: int = 0
    skipped_responses: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "formId": self.form_id,
            "title": self.title,
            "scope": self.scope,
            "summary": {
                "totalStudents": self.total_eligible,
                "respondedCount": self.responded_count,
                "notRespondedCount": max(0, self.total_eligible - self.responded_count),
                "responseRate": self.response_rate,
            },
            "averageRating": self.average_rating,
            "totalRatings": self.rating_count,
            "ratingDistribution": dict(self.distribution),
            "questionAnalytics": [q.to_dict() for q in self.questions],
            "orphanedAnswers": self.orphaned_answers,
            "skippedResponses": self.skipped_responses,
        }


# ---------------------------------------------------------------------------
# Rollups
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class FormSummary:
    """One form's contribution to a rollup group."""

    form_id: str
    title: str
    created_at: Optional[datetime.datetime]
    stats: FormStats

    @property
    def average_rating(self) -> Optional[float]:
        return self.stats.average_rating

    def to_dict(self) -> Dict[str, Any]:
        return {
            "formId": self.form_id,
            "title": self.title,
            "createdAt": _iso(self.created_at),
            "avgRating": self.stats.average_rating,
            "responseCount": self.stats.responded_count,
            "totalStudents": self.stats.total_eligible,
            "responseRate": self.stats.response_rate,
            "stats": self.stats.to_dict(),
        }


@dataclass(slots=True)
class LowPerformingFaculty:
    faculty_id: str
    average_rating: float
    issues: List[str] = field(default_factory=list)
    support_needed: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "facultyId": self.faculty_id,
            "averageRating": self.average_rating,
            "issues": list(self.issues),
            "supportNeeded": list(self.support_needed),
            "visibleToFaculty": False,
        }


@dataclass(slots=True)
class CriticalFeedback:
    form_id: str
    response_id: Optional[str]
    average_rating: float
    issue: str
    student_id: Optional[str] = None  # None for anonymous forms
    action_taken: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "formId": self.form_id,
            "feedbackResponseId": self.response_id,
            "averageRating": self.average_rating,
            "issue": self.issue,
            "actionTaken": self.action_taken,
        }
        if self.student_id is not None:
            out["studentId"] = self.student_id
        return out


@dataclass(slots=True)
class Insight:
    """Admin-only finding with recommended follow-up."""

    type: str
    title: str
    description: str
    severity: str
    faculty_id: Optional[str] = None
    recommended_actions: List[str] = field(default_factory=list)
    source: List[str] = field(default_factory=list)  # response ids

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "severity": self.severity,
            "facultyId": self.faculty_id,
            "recommendedActions": list(self.recommended_actions),
            "source": list(self.source),
            "visibleToFaculty": False,
        }


@dataclass(slots=True)
class ConfidentialData:
    """Admin-only department insight. Never part of a faculty view."""

    low_performing_faculty: List[LowPerformingFaculty] = field(default_factory=list)
    critical_feedback: List[CriticalFeedback] = field(default_factory=list)
    insights: List[Insight] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lowPerformingFaculty": [f.to_dict() for f in self.low_performing_faculty],
            "criticalFeedback": [c.to_dict() for c in self.critical_feedback],
            "insights": [i.to_dict() for i in self.insights],
        }


@dataclass(slots=True)
class GroupSummary:
    """Aggregate for one faculty / course / section / department."""

    key: str
    label: str
    forms: List[FormSummary] = field(default_factory=list)
    average_rating: float = 0.0  # unweighted mean of per-form averages
    pooled_average: float = 0.0  # mean over every individual rating
    trend: float = 0.0
    total_responses: int = 0
    total_eligible: int = 0
    response_rate: float = 0.0
    distribution: Dict[int, int] = field(default_factory=empty_distribution)
    confidential_data: Optional[ConfidentialData] = None

    @property
    def form_count(self) -> int:
        return len(self.forms)

    def to_dict(self, *, include_confidential: bool = False) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "key": self.key,
            "label": self.label,
            "totalForms": self.form_count,
            "totalResponses": self.total_responses,
            "totalStudents": self.total_eligible,
            "responseRate": self.response_rate,
            "averageRating": self.average_rating,
            "pooledAverageRating": self.pooled_average,
            "trend": self.trend,
            "ratingDistribution": dict(self.distribution),
            "forms": [f.to_dict() for f in self.forms],
        }
        if include_confidential and self.confidential_data is not None:
            out["confidentialData"] = self.confidential_data.to_dict()
        return out


@dataclass(slots=True)
class RollupView:
    """Cross-form view returned by :func:`~feedback_engine.reporting.rollup.rollup`."""

    group_by: GroupBy
    viewer_role: ViewerRole
    groups: List[GroupSummary] = field(default_factory=list)
    skipped_forms: int = 0
    orphaned_responses: int = 0

    @property
    def total_forms(self) -> int:
        return len({f.form_id for g in self.groups for f in g.forms})

    @property
    def total_responses(self) -> int:
        seen: Dict[str, int] = {}
        for group in self.groups:
            for form in group.forms:
                # Section groups repeat a form per section; count its
                # respondents once per (form, scope) slice
                seen[f"{form.form_id}:{form.stats.scope}"] = form.stats.responded_count
        return sum(seen.values())

    def to_dict(self) -> Dict[str, Any]:
        # Confidential sub-reports only ever leave through an admin view
        admin = self.viewer_role.is_admin
        return {
            "groupBy": self.group_by.value,
            "viewerRole": self.viewer_role.value,
            "totalForms": self.total_forms,
            "totalResponses": self.total_responses,
            "skippedForms": self.skipped_forms,
            "orphanedResponses": self.orphaned_responses,
            "groups": [g.to_dict(include_confidential=admin) for g in self.groups],
        }
