"""Command-line bootstrap for the feedback rollup.

Loads a JSON snapshot (``forms``, ``responses``, ``students``, ``roster``),
composes a rollup for the requested viewer and prints it as markdown or JSON.
Logging and ``.env`` handling are configured here and nowhere else so the
library modules stay free of import-time side effects.
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Any, Dict, List, Mapping, Optional, Sequence

from dotenv import load_dotenv

# Load environment variables before feedback_engine.config is imported
load_dotenv()

from feedback_engine.exceptions import AccessDeniedError  # noqa: E402
from feedback_engine.models import (  # noqa: E402
    FeedbackResponse,
    Form,
    GroupBy,
    Student,
    ViewerRole,
    ref_id,
)
from feedback_engine.reporting.render import render_rollup  # noqa: E402
from feedback_engine.reporting.rollup import rollup  # noqa: E402

logger = logging.getLogger("feedback_engine.main")


class Snapshot:
    """Parsed contents of a snapshot file."""

    def __init__(
        self,
        forms: List[Form],
        responses: List[FeedbackResponse],
        students: List[Student],
        roster: Dict[str, List[str]],
    ) -> None:
        self.forms = forms
        self.responses = responses
        self.students = students
        self.roster = roster

    @property
    def student_sections(self) -> Dict[str, Optional[str]]:
        return {s.student_id: s.section for s in self.students if s.student_id}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Snapshot":
        """Build a snapshot from parsed JSON.

        Raises ``ValueError`` when the document or one of its entries has the
        wrong shape.
        """
        if not isinstance(data, Mapping):
            raise ValueError("snapshot must be a JSON object")
        raw_forms = _entries(data, "forms")
        raw_responses = _entries(data, "responses")
        raw_students = _entries(data, "students")

        forms = [Form.from_dict(f) for f in raw_forms]
        forms_by_id = {f.form_id: f for f in forms}
        responses = [
            FeedbackResponse.from_dict(r, forms_by_id.get(ref_id(r.get("formId"))))
            for r in raw_responses
        ]
        students = [Student.from_dict(s) for s in raw_students]

        roster_raw = data.get("roster")
        if roster_raw and not isinstance(roster_raw, Mapping):
            raise ValueError("'roster' must be an object of section → student ids")
        if roster_raw:
            roster = {}
            for section, ids in roster_raw.items():
                if ids is not None and not isinstance(ids, list):
                    raise ValueError(f"roster entry {section!r} must be a list")
                roster[str(section)] = [str(s) for s in ids or [] if s is not None]
        else:
            # No explicit roster: derive one from the students' own sections
            roster = {}
            for student in students:
                if student.section and student.student_id:
                    roster.setdefault(student.section, []).append(student.student_id)
        return cls(forms, responses, students, roster)


def _entries(data: Mapping[str, Any], name: str) -> List[Mapping[str, Any]]:
    raw = data.get(name) or []
    if not isinstance(raw, list):
        raise ValueError(f"'{name}' must be a list")
    for index, entry in enumerate(raw):
        if not isinstance(entry, Mapping):
            raise ValueError(f"{name}[{index}] must be an object")
    return raw


def load_snapshot(path: str) -> Snapshot:
    with open(path, encoding="utf-8") as fh:
        return Snapshot.from_dict(json.load(fh))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="feedback-rollup",
        description="Aggregate feedback responses into a grouped rollup report.",
    )
    parser.add_argument("snapshot", help="JSON file with forms, responses, students and roster")
    parser.add_argument(
        "--group-by",
        choices=[g.value for g in GroupBy],
        default=GroupBy.FACULTY.value,
    )
    parser.add_argument(
        "--role",
        choices=[r.value for r in ViewerRole],
        default=ViewerRole.FACULTY.value,
        help="viewer role the report is produced for",
    )
    parser.add_argument("--format", choices=["markdown", "json"], default="markdown")
    parser.add_argument(
        "--strict-year-prefix",
        action="store_true",
        default=None,
        help="only let bare sections fall back onto year 1",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the rollup CLI and return the process exit code."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=os.environ.get("FEEDBACK_LOG_LEVEL", "INFO"),
    )
    args = _build_parser().parse_args(argv)

    try:
        snapshot = load_snapshot(args.snapshot)
    except (OSError, ValueError) as exc:
        logger.error("Could not load snapshot %s: %s", args.snapshot, exc)
        return 1

    try:
        view = rollup(
            snapshot.forms,
            snapshot.responses,
            args.group_by,
            args.role,
            student_sections=snapshot.student_sections,
            roster=snapshot.roster,
            strict_year_prefix=args.strict_year_prefix,
        )
    except AccessDeniedError as exc:
        logger.error("%s", exc)
        return 2

    if args.format == "json":
        print(json.dumps(view.to_dict(), indent=2))
    else:
        print(render_rollup(view))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
