"""Which feedback forms a student can currently see."""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from feedback_engine.identity.matcher import filter_by_subject
from feedback_engine.models import Form

logger = logging.getLogger(__name__)

_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


@dataclass(slots=True)
class StudentForm:
    form: Form
    submitted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        form = self.form
        return {
            "_id": form.form_id,
            "title": form.title,
            "courseName": form.course_name,
            "courseCode": form.course_code,
            "facultyId": form.faculty_id,
            "targetSections": list(form.target_sections),
            "closeDate": form.close_date.isoformat() if form.close_date else None,
            "submitted": self.submitted,
        }


def forms_for_student(
    student_section: Optional[str],
    forms: Iterable[Form],
    submitted_form_ids: Iterable[str] = (),
    now: Optional[datetime.datetime] = None,
    *,
    strict_year_prefix: Optional[bool] = None,
) -> List[StudentForm]:
    """Return the open forms targeting *student_section*, newest first.

    A form is visible when it is active, inside its schedule at *now* and
    owned by an active faculty member. Each result says whether the student
    already answered it.
    """
    if not student_section or not str(student_section).strip():
        logger.debug("Student has no section; no forms visible")
        return []

    now = now or datetime.datetime.now(datetime.timezone.utc)
    open_forms = [
        f for f in forms if f.is_open(now) and f.faculty_id and f.faculty_active
    ]
    visible = filter_by_subject(
        student_section, open_forms, strict_year_prefix=strict_year_prefix
    )
    visible.sort(key=lambda f: f.created_at or _EPOCH, reverse=True)

    submitted = set(submitted_form_ids)
    return [StudentForm(form=f, submitted=f.form_id in submitted) for f in visible]
