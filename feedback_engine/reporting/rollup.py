"""Compose per-form aggregates into faculty, course, section and department views.

Group averages are the **unweighted mean of per-form averages**: each form is
one data point, so a single high-volume form cannot dominate a faculty's
overall score. The pooled mean over every individual rating is reported
alongside as ``pooled_average``.

Visibility rules are applied here and nowhere earlier:

* ``faculty`` viewers get numbers and redacted free text, never confidential
  sub-reports;
* ``department_admin``/``system_admin`` viewers get raw free text and, for
  department grouping, the confidential low-performance, critical
  feedback and insight reports (critical feedback never names the student
  of an anonymous form);
* ``student`` viewers are refused.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from feedback_engine import config
from feedback_engine.exceptions import AccessDeniedError
from feedback_engine.identity.normalizer import IMPLICIT_YEAR, section_key
from feedback_engine.models import FeedbackResponse, Form, GroupBy, ViewerRole
from feedback_engine.reporting.aggregator import (
    aggregate,
    count_eligible,
    mean,
    response_rate,
    round_half_up,
)
from feedback_engine.reporting.models import (
    ConfidentialData,
    CriticalFeedback,
    FormSummary,
    GroupSummary,
    Insight,
    LowPerformingFaculty,
    RollupView,
    TextStats,
    empty_distribution,
)
from feedback_engine.reporting.trends import chronological, compute_trend

logger = logging.getLogger(__name__)

# (form, section scope or None)
_Slot = Tuple[Form, Optional[str]]


class _Group:
    __slots__ = ("key", "label", "slots")

    def __init__(self, key: str, label: str) -> None:
        self.key = key
        self.label = label
        self.slots: List[_Slot] = []

    def add(self, form: Form, scope: Optional[str] = None) -> None:
        if any(f.form_id == form.form_id for f, _ in self.slots):
            return
        self.slots.append((form, scope))


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------


def _course_key(form: Form) -> Tuple[Optional[str], str]:
    if form.course_offering_id:
        label = form.course_name or form.course_code or form.course_offering_id
        return form.course_offering_id, label
    name = (form.course_name or "").strip()
    if not name:
        return None, ""
    return name.lower(), name


def _section_scope(key: str) -> str:
    # "B" would also match "2B" students through its variants; "1B" does not
    return key if key[0].isdigit() else IMPLICIT_YEAR + key


def _sections_from_roster(
    roster: Mapping[str, Iterable[str]]
) -> Dict[str, Optional[str]]:
    """Invert a roster into student id → section; the first listing wins."""
    sections: Dict[str, Optional[str]] = {}
    for section_name, student_ids in roster.items():
        for student_id in student_ids or []:
            if student_id is not None:
                sections.setdefault(str(student_id), section_name)
    return sections


def _group_forms(forms: Sequence[Form], group_by: GroupBy) -> Tuple[List[_Group], int]:
    groups: "OrderedDict[str, _Group]" = OrderedDict()
    skipped = 0

    for form in forms:
        if group_by is GroupBy.SECTION:
            placed = False
            for target in form.target_sections:
                key = section_key(target)
                if not key:
                    continue
                group = groups.setdefault(key, _Group(key, key))
                group.add(form, _section_scope(key))
                placed = True
            if not placed:
                logger.warning("Form %s has no usable target section; skipped", form.form_id)
                skipped += 1
            continue

        if group_by is GroupBy.FACULTY:
            key, label = form.faculty_id, form.faculty_id or ""
        elif group_by is GroupBy.COURSE:
            key, label = _course_key(form)
        else:
            department = (form.department or "").strip()
            key, label = (department.lower() or None), department

        if not key:
            logger.warning(
                "Form %s has no %s reference; skipped", form.form_id, group_by.value
            )
            skipped += 1
            continue
        groups.setdefault(key, _Group(key, label)).add(form)

    return list(groups.values()), skipped


# ---------------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------------


def _redact(summary: FormSummary) -> None:
    for question in summary.stats.questions:
        if isinstance(question, TextStats):
            question.responses = [config.REDACTED_TEXT] if question.count else []
            question.redacted = True


# Follow-up attached to every low-performance finding
_SUPPORT_NEEDED = ["Teaching methodology workshop", "Peer mentoring"]
_RECOMMENDED_ACTIONS = ["Schedule one-on-one meeting", "Provide teaching resources"]


def _confidential(
    summaries: Sequence[FormSummary],
    forms: Mapping[str, Form],
    responses: Mapping[str, List[FeedbackResponse]],
    low_threshold: float,
    critical_threshold: float,
    severity_threshold: float,
) -> ConfidentialData:
    by_faculty: "OrderedDict[str, List[float]]" = OrderedDict()
    for summary in summaries:
        faculty_id = forms[summary.form_id].faculty_id
        if faculty_id and summary.average_rating is not None:
            by_faculty.setdefault(faculty_id, []).append(summary.average_rating)

    low: List[LowPerformingFaculty] = []
    insights: List[Insight] = []
    for faculty_id, averages in by_faculty.items():
        average = mean(averages)
        if average >= low_threshold:
            continue
        issues = [f"average rating {average:.2f} below {low_threshold:.2f}"]
        trend = compute_trend(averages)
        if trend < 0:
            issues.append(f"declining trend {trend:+.2f}")
        low.append(
            LowPerformingFaculty(faculty_id, average, issues, list(_SUPPORT_NEEDED))
        )
        insights.append(
            Insight(
                type="faculty_performance",
                title="Faculty Performance Concern",
                description=(
                    f"Faculty member has an average rating of {average:.2f}, "
                    f"below the expected {low_threshold:.2f}"
                ),
                severity="critical" if average < severity_threshold else "high",
                faculty_id=faculty_id,
                recommended_actions=list(_RECOMMENDED_ACTIONS),
                source=[
                    r.response_id
                    for s in summaries
                    if forms[s.form_id].faculty_id == faculty_id
                    for r in responses.get(s.form_id, [])
                    if r.response_id
                ],
            )
        )

    critical: List[CriticalFeedback] = []
    for summary in summaries:
        form = forms[summary.form_id]
        for response in responses.get(summary.form_id, []):
            ratings = response.ratings()
            if not ratings:
                continue
            average = mean(ratings)
            if average > critical_threshold:
                continue
            texts = [a.text for a in response.answers if getattr(a, "text", None)]
            issue = "; ".join(texts) if texts else f"average rating {average:.2f}"
            critical.append(
                CriticalFeedback(
                    form_id=summary.form_id,
                    response_id=response.response_id,
                    average_rating=average,
                    issue=issue,
                    student_id=None if form.is_anonymous else response.student_id,
                )
            )
    return ConfidentialData(
        low_performing_faculty=low, critical_feedback=critical, insights=insights
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def rollup(
    forms: Iterable[Form],
    responses: Iterable[FeedbackResponse],
    group_by: Union[GroupBy, str],
    viewer_role: Union[ViewerRole, str],
    *,
    student_sections: Optional[Mapping[str, Optional[str]]] = None,
    roster: Optional[Mapping[str, Iterable[str]]] = None,
    strict_year_prefix: Optional[bool] = None,
    low_performance_threshold: Optional[float] = None,
    critical_rating_threshold: Optional[float] = None,
    severity_threshold: Optional[float] = None,
) -> RollupView:
    """Group *forms* by *group_by* and aggregate each group for *viewer_role*.

    *student_sections* (student id → section label) enables per-section
    scoping; *roster* (section label → student ids) supplies response-rate
    denominators. When only a roster is given, student sections are read from
    it. Without either, scoping is skipped and rates are ``0.0``.

    Raises
    ------
    AccessDeniedError
        If *viewer_role* is ``student``.
    """
    group_by = GroupBy(group_by)
    viewer_role = ViewerRole(viewer_role)
    if viewer_role is ViewerRole.STUDENT:
        raise AccessDeniedError("Students cannot view aggregated feedback.")

    low_threshold = (
        config.LOW_PERFORMANCE_THRESHOLD
        if low_performance_threshold is None
        else low_performance_threshold
    )
    critical_threshold = (
        config.CRITICAL_RATING_THRESHOLD
        if critical_rating_threshold is None
        else critical_rating_threshold
    )
    severity = (
        config.CRITICAL_SEVERITY_THRESHOLD
        if severity_threshold is None
        else severity_threshold
    )

    forms = list(forms)
    forms_by_id: Dict[str, Form] = {f.form_id: f for f in forms}
    by_form: Dict[str, List[FeedbackResponse]] = {}
    orphaned = 0
    for response in responses:
        if response.form_id not in forms_by_id:
            orphaned += 1
            continue
        by_form.setdefault(response.form_id, []).append(response)
    if orphaned:
        logger.warning("%d response(s) reference unknown forms; skipped", orphaned)

    groups, skipped = _group_forms(forms, group_by)
    if student_sections is None and roster:
        student_sections = _sections_from_roster(roster)
    if group_by is GroupBy.SECTION and student_sections is None:
        logger.debug("No student sections supplied; section groups are not scoped")

    view = RollupView(
        group_by=group_by,
        viewer_role=viewer_role,
        skipped_forms=skipped,
        orphaned_responses=orphaned,
    )

    for group in groups:
        summaries: List[FormSummary] = []
        ordered = chronological(f for f, _ in group.slots)
        scopes = {f.form_id: s for f, s in group.slots}
        for form in ordered:
            scope = scopes[form.form_id] if student_sections is not None else None
            targets = [scope] if scope else form.target_sections
            eligible = count_eligible(targets, roster, strict_year_prefix=strict_year_prefix)
            stats = aggregate(
                form,
                by_form.get(form.form_id, []),
                scope,
                student_sections=student_sections,
                total_eligible=eligible,
                strict_year_prefix=strict_year_prefix,
            )
            summary = FormSummary(form.form_id, form.title, form.created_at, stats)
            if not viewer_role.is_admin:
                _redact(summary)
            summaries.append(summary)

        rated = [s.average_rating for s in summaries if s.average_rating is not None]
        distribution = empty_distribution()
        rating_sum = rating_count = 0
        for summary in summaries:
            rating_sum += summary.stats.rating_sum
            rating_count += summary.stats.rating_count
            for rating, count in summary.stats.distribution.items():
                distribution[rating] += count
        total_responses = sum(s.stats.responded_count for s in summaries)
        total_eligible = sum(s.stats.total_eligible for s in summaries)

        result = GroupSummary(
            key=group.key,
            label=group.label,
            forms=summaries,
            average_rating=mean(rated),
            pooled_average=round_half_up(rating_sum / rating_count, 2) if rating_count else 0.0,
            trend=compute_trend(rated),
            total_responses=total_responses,
            total_eligible=total_eligible,
            response_rate=response_rate(total_responses, total_eligible),
            distribution=distribution,
        )
        if viewer_role.is_admin and group_by is GroupBy.DEPARTMENT:
            result.confidential_data = _confidential(
                summaries,
                forms_by_id,
                by_form,
                low_threshold,
                critical_threshold,
                severity,
            )
        view.groups.append(result)

    logger.debug(
        "Rollup by %s for %s: %d group(s), %d skipped form(s)",
        group_by.value,
        viewer_role.value,
        len(view.groups),
        skipped,
    )
    return view
