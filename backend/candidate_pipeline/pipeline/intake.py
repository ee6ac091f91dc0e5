"""Candidate Intake Sequencer.

Walks the shortlisted candidates of one search in order, one submission per
candidate. The server owns the cursor: every response overwrites the local
``IntakeProgress``. Shared fields (company, location, HR contact, notice
period, remote and contract flags) are supplied once and locked after the
first successful submission; per-candidate fields reset after each one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping

from ..client.services import MatchingService, QuestionService, UploadFile
from ..core.config import Settings, settings as default_settings
from ..core.errors import (
    FieldValidationError,
    FieldsLockedError,
    InvalidTransitionError,
    PipelineError,
)
from ..domain.models import IntakeProgress
from ..domain.schemas import IntakeSubmitOut
from .navigation import Navigate, Stage
from .notices import NoticeBoard

logger = logging.getLogger(__name__)


class IntakeState(str, Enum):
    LOADING_INITIAL = "loading_initial"
    AWAITING_SUBMISSION = "awaiting_submission"
    SUBMITTING = "submitting"
    ADVANCED = "advanced"
    FINAL_QUESTION = "final_question"
    COMPLETE = "complete"
    FAILED = "failed"


class PrefillState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"


READY_STATES = frozenset(
    {IntakeState.AWAITING_SUBMISSION, IntakeState.ADVANCED, IntakeState.FINAL_QUESTION}
)
BUSY_STATES = frozenset(
    {IntakeState.LOADING_INITIAL, IntakeState.SUBMITTING, IntakeState.COMPLETE, IntakeState.FAILED}
)

# attribute name -> wire names accepted in right_fields (first one is sent)
_SHARED_WIRE_KEYS = {
    "hiring_company": ("hiringCompany", "hiring_company", "hc_name"),
    "company_location": ("companyLocation", "company_location"),
    "hr_company": ("hrCompany", "hr_company"),
    "notice_period": ("noticePeriod", "notice_period"),
    "remote_work": ("remoteWork", "remote_work"),
    "contract_hiring": ("contractHiring", "contract_hiring"),
}
_BOOL_FIELDS = {"remote_work", "contract_hiring"}


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1", "y"}
    return bool(value)


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


@dataclass(frozen=True)
class SharedFields:
    """Criteria entered once per search."""

    hiring_company: str = ""
    company_location: str = ""
    hr_company: str = ""
    notice_period: str = ""
    remote_work: bool = False
    contract_hiring: bool = False

    def merged(self, data: Mapping[str, Any]) -> "SharedFields":
        """Return a copy overridden by whichever known keys ``data`` carries."""
        changes: dict[str, Any] = {}
        for attr, keys in _SHARED_WIRE_KEYS.items():
            for key in keys:
                if key in data:
                    raw = data[key]
                    changes[attr] = _to_bool(raw) if attr in _BOOL_FIELDS else _to_text(raw)
                    break
        return replace(self, **changes)

    def to_wire(self) -> dict[str, Any]:
        return {keys[0]: getattr(self, attr) for attr, keys in _SHARED_WIRE_KEYS.items()}


@dataclass
class CandidateFields:
    """Per-candidate input; reset after every successful submission."""

    resume_text: str = ""
    csv_file: UploadFile | None = None
    custom_question: str = ""


@dataclass(frozen=True)
class IntakeOutcome:
    state: IntakeState
    navigate: Navigate | None = None
    errors: list[str] = field(default_factory=list)


def _is_csv(upload: UploadFile) -> bool:
    return upload.content_type == "text/csv" or upload.filename.lower().endswith(".csv")


class IntakeSequencer:
    """State machine behind the per-candidate intake page for one search."""

    def __init__(
        self,
        matching: MatchingService,
        questions: QuestionService,
        search_id: int,
        notices: NoticeBoard | None = None,
        config: Settings | None = None,
    ) -> None:
        self._matching = matching
        self._questions = questions
        self.search_id = search_id
        self.notices = notices or NoticeBoard(config or default_settings)

        self.state = IntakeState.LOADING_INITIAL
        self.transitions: list[tuple[IntakeState, IntakeState]] = []
        self.prefill = PrefillState.UNINITIALIZED
        self.progress: IntakeProgress | None = None
        self.prev_fields: dict[str, Any] = {}
        self.shared = SharedFields()
        self.shared_locked = False
        self.candidate = CandidateFields()
        self.suggestions: list[str] = []
        self._suggested_at: int | None = None
        self._suggesting = False
        self.errors: list[str] = []
        self.fatal_error: str | None = None
        self.navigate: Navigate | None = None

    # -- derived state ---------------------------------------------------

    @property
    def is_last(self) -> bool:
        return self.progress is not None and self.progress.is_last

    @property
    def controls_disabled(self) -> bool:
        return self.state in BUSY_STATES

    @property
    def shared_fields_disabled(self) -> bool:
        return self.controls_disabled or self.shared_locked

    @property
    def can_generate_suggestions(self) -> bool:
        return (
            self.is_last
            and not self.controls_disabled
            and not self._suggesting
            and self._suggested_at != self._cursor()
        )

    def _cursor(self) -> int | None:
        return self.progress.submitted if self.progress is not None else None

    def _enter(self, state: IntakeState) -> None:
        if state != self.state:
            self.transitions.append((self.state, state))
            logger.info(
                "intake %s -> %s", self.state.value, state.value, extra={"search_id": self.search_id}
            )
        self.state = state

    def _ready_state(self) -> IntakeState:
        return IntakeState.FINAL_QUESTION if self.is_last else IntakeState.AWAITING_SUBMISSION

    # -- loading ---------------------------------------------------------

    async def load(self) -> IntakeProgress | None:
        """Fetch the server cursor; a failure here is fatal for the page."""
        if self.state == IntakeState.SUBMITTING:
            raise InvalidTransitionError("Cannot reload while a submission is in progress.")
        self._enter(IntakeState.LOADING_INITIAL)
        try:
            out = await self._matching.intake_progress(self.search_id)
            progress = out.to_domain()
        except PipelineError as exc:
            return self._fatal(exc.message)
        except ValueError as exc:
            logger.warning("inconsistent intake progress: %s", exc, extra={"search_id": self.search_id})
            return self._fatal("The server reported an inconsistent intake state.")

        self.progress = progress
        self.prev_fields = dict(out.prev_fields or {})
        self._apply_prefill(out.right_fields, progress.submitted)
        if progress.done:
            self.navigate = Navigate(Stage.PROCESSING, self.search_id)
            self._enter(IntakeState.COMPLETE)
        else:
            self._enter(self._ready_state())
        return progress

    def _fatal(self, message: str) -> None:
        self.fatal_error = message
        self.notices.error(message)
        self._enter(IntakeState.FAILED)
        return None

    def _apply_prefill(self, right_fields: Mapping[str, Any] | None, submitted: int) -> None:
        """Copy server-held shared fields into the form, at most once per instance."""
        if self.prefill is PrefillState.INITIALIZED:
            return
        if right_fields:
            self.shared = self.shared.merged(right_fields)
        self.shared_locked = submitted > 0
        self.prefill = PrefillState.INITIALIZED

    # -- editing ---------------------------------------------------------

    def _require_editable(self) -> None:
        if self.controls_disabled:
            raise InvalidTransitionError("The form is not editable right now.")

    def update_shared(self, **changes: Any) -> SharedFields:
        self._require_editable()
        if self.shared_locked:
            raise FieldsLockedError()
        self.shared = replace(self.shared, **changes)
        return self.shared

    def set_resume_text(self, text: str) -> None:
        self._require_editable()
        self.candidate.resume_text = text

    def attach_csv(self, upload: UploadFile | None) -> None:
        self._require_editable()
        if upload is not None and not _is_csv(upload):
            raise FieldValidationError(["Only CSV files can be uploaded."])
        self.candidate.csv_file = upload

    def set_custom_question(self, text: str) -> None:
        self._require_editable()
        if not self.is_last:
            raise InvalidTransitionError("The custom question is only asked for the last candidate.")
        self.candidate.custom_question = text

    def clear(self) -> None:
        """Reset the form; locked shared fields are kept."""
        self._require_editable()
        self.candidate = CandidateFields()
        self.suggestions = []
        if not self.shared_locked:
            self.shared = SharedFields()
        self.errors = []

    # -- question suggestions ---------------------------------------------

    async def generate_suggestions(self) -> list[str]:
        """Fetch suggested questions once per candidate visit; otherwise a no-op."""
        if not self.can_generate_suggestions:
            return list(self.suggestions)
        self._suggesting = True
        self._suggested_at = self._cursor()
        try:
            questions = await self._questions.suggestions(self.search_id)
        except PipelineError as exc:
            logger.warning("question suggestions failed: %s", exc.message)
            self.notices.error(exc.message)
            self._suggested_at = None
            return list(self.suggestions)
        finally:
            self._suggesting = False
        self.suggestions = list(questions)
        return list(self.suggestions)

    def choose_suggestion(self, index: int) -> str:
        if not 0 <= index < len(self.suggestions):
            raise InvalidTransitionError("That suggestion is no longer available.")
        question = self.suggestions[index]
        self.set_custom_question(question)
        return question

    # -- submission ------------------------------------------------------

    def validate(self) -> list[str]:
        errors: list[str] = []
        if not self.candidate.resume_text.strip() and self.candidate.csv_file is None:
            errors.append("Paste the resume text or upload a CSV file.")
        if not self.shared_locked and not self.shared.hiring_company.strip():
            errors.append("Hiring company is required.")
        notice = self.shared.notice_period.strip()
        if not self.shared_locked and notice and not notice.isdigit():
            errors.append("Notice period must be a whole number of days.")
        return errors

    def _payload(self) -> dict[str, Any]:
        assert self.progress is not None
        fields: dict[str, Any] = {"resumeText": self.candidate.resume_text}
        fields.update(self.shared.to_wire())
        if self.progress.current_index is not None:
            fields["candidateIndex"] = self.progress.current_index
        question = self.candidate.custom_question.strip()
        if self.is_last and question:
            fields["customQuestion"] = question
        return fields

    async def submit(self) -> IntakeOutcome:
        """Submit the current candidate and follow the server's answer."""
        if self.state == IntakeState.SUBMITTING:
            raise InvalidTransitionError("A submission is already in progress.")
        if self.state not in READY_STATES:
            raise InvalidTransitionError(f"Cannot submit while {self.state.value}.")
        errors = self.validate()
        if errors:
            self.errors = errors
            return IntakeOutcome(self.state, errors=errors)

        ready_state = self.state
        payload = self._payload()
        self.errors = []
        self._enter(IntakeState.SUBMITTING)
        try:
            out = await self._matching.submit_intake(
                self.search_id, payload, self.candidate.csv_file
            )
        except PipelineError as exc:
            return self._reject(ready_state, list(getattr(exc, "errors", [])) or [exc.message])

        if out.errors:
            return self._reject(ready_state, out.errors)
        if out.redirect:
            return self._complete(out)
        if out.next is not None or out.submitted is not None:
            return self._advance(ready_state, out)
        return self._reject(ready_state, ["The server sent an unexpected response."])

    def _reject(self, ready_state: IntakeState, errors: list[str]) -> IntakeOutcome:
        logger.warning("intake submission rejected: %s", "; ".join(errors), extra={"search_id": self.search_id})
        self.errors = errors
        self.notices.error(errors[0])
        self._enter(ready_state)
        return IntakeOutcome(self.state, errors=list(errors))

    def _complete(self, out: IntakeSubmitOut) -> IntakeOutcome:
        assert self.progress is not None
        target = self.progress.target
        submitted = target if out.submitted is None else min(out.submitted, target)
        self.progress = replace(self.progress, submitted=submitted, current_index=None, is_last=False)
        self.shared_locked = True
        self.candidate = CandidateFields()
        self.suggestions = []
        self.navigate = Navigate(Stage.PROCESSING, self.search_id)
        self._enter(IntakeState.COMPLETE)
        return IntakeOutcome(self.state, navigate=self.navigate)

    def _advance(self, ready_state: IntakeState, out: IntakeSubmitOut) -> IntakeOutcome:
        assert self.progress is not None
        submitted = out.submitted if out.submitted is not None else self.progress.submitted + 1
        try:
            self.progress = replace(
                self.progress,
                submitted=submitted,
                current_index=out.candidate_index,
                is_last=out.is_last,
            )
        except ValueError as exc:
            logger.warning("inconsistent intake cursor: %s", exc, extra={"search_id": self.search_id})
            return self._reject(ready_state, ["The server reported an inconsistent intake state."])
        if out.right_fields and not self.shared_locked:
            self.shared = self.shared.merged(out.right_fields)
        self.shared_locked = True
        self.candidate = CandidateFields()
        self.suggestions = []
        self._suggested_at = None
        self._enter(IntakeState.ADVANCED)
        self._enter(self._ready_state())
        return IntakeOutcome(self.state)
