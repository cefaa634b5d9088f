import logging
import threading
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from feedback_engine.exceptions import AlreadySubmittedError
from feedback_engine.ingest import build_submission
from feedback_engine.models import FeedbackResponse, Form

_Key = Tuple[str, str]


class ThreadSafeResponseStore:
    """A thread-safe in-memory store of feedback responses.

    Enforces the one-response-per-(form, student) constraint. Hosts backed by
    a database enforce the same rule with a unique index; this store is the
    reference collaborator used by callers without one and by the tests.
    """

    def __init__(self) -> None:
        self._responses: Dict[_Key, FeedbackResponse] = {}
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    def add_response(self, response: FeedbackResponse) -> None:
        """
        Adds a response to the store.
        Raises AlreadySubmittedError if the student already answered the form;
        the stored response is never overwritten.
        """
        if not response.student_id:
            raise ValueError("Response has no student id.")
        key = (response.form_id, response.student_id)
        with self._lock:
            if key in self._responses:
                raise AlreadySubmittedError(response.form_id, response.student_id)
            self._responses[key] = response

    def get_response(self, form_id: str, student_id: str) -> Optional[FeedbackResponse]:
        """Retrieves a response by form and student. Returns None if not found."""
        with self._lock:
            return self._responses.get((form_id, student_id))

    def has_submitted(self, form_id: str, student_id: str) -> bool:
        with self._lock:
            return (form_id, student_id) in self._responses

    def remove_response(self, form_id: str, student_id: str) -> Optional[FeedbackResponse]:
        """Removes a response. Returns the removed response or None if not found."""
        with self._lock:
            return self._responses.pop((form_id, student_id), None)

    def responses_for_form(self, form_id: str) -> List[FeedbackResponse]:
        """Returns the responses of *form_id* in submission order."""
        with self._lock:
            return [r for (fid, _), r in self._responses.items() if fid == form_id]

    def all_responses(self) -> List[FeedbackResponse]:
        """Returns a shallow copy of every stored response."""
        with self._lock:
            return list(self._responses.values())

    def submitted_form_ids(self, student_id: str) -> Set[str]:
        """Returns the ids of the forms *student_id* has answered."""
        with self._lock:
            return {fid for (fid, sid) in self._responses if sid == student_id}

    def count(self) -> int:
        """Returns the total number of stored responses."""
        with self._lock:
            return len(self._responses)

    # ------------------------------------------------------------------
    # Submission lifecycle
    # ------------------------------------------------------------------

    def submit_feedback(
        self, form: Form, student_id: str, payload: Optional[Sequence[Any]]
    ) -> FeedbackResponse:
        """Validate and record a student's answers for *form*.

        On success ``form.response_count`` is incremented exactly once.

        Raises
        ------
        AlreadySubmittedError
            If *student_id* has already submitted for *form*.
        FormNotActiveError, InvalidAnswerError, MissingAnswerError
            If the payload is rejected by validation.
        """
        if self.has_submitted(form.form_id, student_id):
            # add_response re-checks under the lock
            raise AlreadySubmittedError(form.form_id, student_id)

        response = build_submission(form, student_id, payload)
        self.add_response(response)
        with self._lock:
            form.response_count += 1

        self._logger.info(
            "feedback_received",
            extra={"form_id": form.form_id, "student_id": student_id},
        )
        return response
