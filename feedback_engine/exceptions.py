"""Project-wide custom exception types.

Everything raised from here is a *rejected operation*: the caller maps it to a
user-facing validation message. None of these signal a system fault.
"""
from __future__ import annotations

from typing import Optional


class FeedbackRejectedError(RuntimeError):
    """Base class for operations the engine refuses to carry out."""

    def __init__(self, message: str) -> None:  # noqa: D401 – simple constructor
        super().__init__(message)


class AlreadySubmittedError(FeedbackRejectedError):
    """Raised when a student attempts to submit feedback for a form more than once."""

    def __init__(self, form_id: str, student_id: str) -> None:
        self.form_id = form_id
        self.student_id = student_id
        super().__init__(
            f"Student {student_id} already submitted feedback for form {form_id}."
        )


class FormNotActiveError(FeedbackRejectedError):
    """Raised when a submission targets a form that is not accepting responses."""

    def __init__(self, form_id: str, status: str) -> None:
        self.form_id = form_id
        self.status = status
        super().__init__(f"Feedback form {form_id} is not active (status={status}).")


class InvalidAnswerError(FeedbackRejectedError):
    """Raised when an answer does not fit its question."""

    def __init__(self, message: str, question_id: Optional[str] = None) -> None:
        self.question_id = question_id
        super().__init__(message)


class MissingAnswerError(InvalidAnswerError):
    """Raised when a required question was left unanswered."""


class AccessDeniedError(FeedbackRejectedError):
    """Raised when a viewer role may not receive the requested view."""
