"""Read interface to the host platform's form store.

formgate never owns form or submission data. It consumes the ``FormStore``
protocol below, which the hosting application implements against its own
data layer. ``InMemoryFormStore`` implements the same contract over plain
lists and backs local development, demos and the test suite.

Query Semantics:
    - Form status filter: "all" (or None) disables filtering
    - Submission status filter: same rule; incomplete and spam submissions are excluded
    - Date bounds: inclusive, compared against date_created (naive values are UTC)
    - Submissions are ordered newest first; pagination applies after filtering
    - Totals count every match before pagination
"""

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Optional, Protocol

import structlog

from .models.forms import Form, Submission, SubmissionQuery

logger = structlog.get_logger()


class FormStore(Protocol):
    """Minimal read contract formgate needs from the host form store."""

    def list_forms(self, status: Optional[str], limit: int, offset: int) -> tuple[list[Form], int]:
        ...

    def get_form(self, form_id: int) -> Optional[Form]:
        ...

    def get_form_by_handle(self, handle: str) -> Optional[Form]:
        ...

    def count_submissions(self, form_id: int) -> int:
        ...

    def list_submissions(self, query: SubmissionQuery) -> tuple[list[Submission], int]:
        ...

    def get_submission(self, submission_id: int) -> Optional[Submission]:
        ...


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _status_matches(status: str, wanted: Optional[str]) -> bool:
    return wanted is None or wanted == "all" or status == wanted


class InMemoryFormStore:
    """FormStore implementation over in-memory lists."""

    def __init__(self, forms: Optional[Iterable[Form]] = None, submissions: Optional[Iterable[Submission]] = None):
        self._forms: dict[int, Form] = {}
        self._submissions: dict[int, Submission] = {}
        for form in forms or []:
            self.add_form(form)
        for submission in submissions or []:
            self.add_submission(submission)

    def add_form(self, form: Form) -> None:
        self._forms[form.id] = form

    def add_submission(self, submission: Submission) -> None:
        if submission.form_id not in self._forms:
            logger.warning("Submission references unknown form", submission_id=submission.id, form_id=submission.form_id)
        self._submissions[submission.id] = submission

    def list_forms(self, status: Optional[str] = "enabled", limit: int = 100, offset: int = 0) -> tuple[list[Form], int]:
        matches = [
            form for form in sorted(self._forms.values(), key=lambda f: f.id)
            if _status_matches(form.status, status)
        ]
        return matches[offset:offset + limit], len(matches)

    def get_form(self, form_id: int) -> Optional[Form]:
        return self._forms.get(form_id)

    def get_form_by_handle(self, handle: str) -> Optional[Form]:
        for form in self._forms.values():
            if form.handle == handle:
                return form
        return None

    def count_submissions(self, form_id: int) -> int:
        return sum(1 for s in self._submissions.values() if s.form_id == form_id)

    def list_submissions(self, query: SubmissionQuery) -> tuple[list[Submission], int]:
        date_from = _as_utc(query.date_from) if query.date_from else None
        date_to = _as_utc(query.date_to) if query.date_to else None

        matches = []
        for submission in self._submissions.values():
            if query.form_id is not None and submission.form_id != query.form_id:
                continue
            if submission.is_incomplete or submission.is_spam:
                continue
            if not _status_matches(submission.status, query.status):
                continue
            created = _as_utc(submission.date_created)
            if date_from and created < date_from:
                continue
            if date_to and created > date_to:
                continue
            matches.append(submission)

        matches.sort(key=lambda s: _as_utc(s.date_created), reverse=True)
        return matches[query.offset:query.offset + query.limit], len(matches)

    def get_submission(self, submission_id: int) -> Optional[Submission]:
        return self._submissions.get(submission_id)
