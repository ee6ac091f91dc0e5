"""Results Review & Action layer for one finished search.

Loads the candidate set and the saved custom question, derives the visible
rows through ``CandidateTable`` and issues single or batched actions against
the matching and calling services. Network failures never escape a public
action: they are logged and published on the notice board.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import Iterable

from pydantic import ValidationError

from ..client.services import CallingService, CandidateDetail, MatchingService, QuestionService
from ..core.config import Settings, settings as default_settings
from ..core.errors import InvalidTransitionError, PipelineError
from ..domain.models import Candidate, CallStatus
from ..domain.schemas import CallCandidate, CandidateIn
from .notices import NoticeBoard
from .table import Column, SortKey, TableView

logger = logging.getLogger(__name__)

HIGH_MATCH_SCORE = 90

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")
PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]+$")

_CALL_STATUSES = frozenset(status.value for status in CallStatus)


class CandidateTable(TableView[Candidate]):
    filters = {
        "all": lambda c: True,
        "liked": lambda c: c.liked,
        "high-match": lambda c: c.match_score >= HIGH_MATCH_SCORE,
    }
    sort_keys = {
        "match_score": SortKey(lambda c: c.match_score, descending=True),
        "name": SortKey(lambda c: c.name.lower()),
        "call_status": SortKey(lambda c: c.call_status),
    }
    columns = (
        Column("Name", lambda c: c.name),
        Column("Email", lambda c: c.email),
        Column("Phone", lambda c: c.phone),
        Column("Skills", lambda c: c.skills),
        Column("Total Experience", lambda c: c.total_experience),
        Column("Relevant Experience", lambda c: c.relevant_work_experience),
        Column("Match Score", lambda c: f"{c.match_score:g}"),
        Column("Call Status", lambda c: c.call_status),
        Column("Liked", lambda c: "Yes" if c.liked else "No"),
        Column("Summary", lambda c: c.summary),
    )

    def row_id(self, row: Candidate) -> int:
        return row.id

    def search_text(self, row: Candidate) -> Iterable[str]:
        return (row.name, row.email, row.skills)

    def predicate_for(self, name: str):
        if name in _CALL_STATUSES:
            return lambda c: c.call_status == name
        return super().predicate_for(name)


@dataclass
class CandidateForm:
    """Add/edit candidate buffer; every field is kept as typed text."""

    name: str = ""
    email: str = ""
    phone: str = ""
    skills: str = ""
    total_experience: str = ""
    relevant_work_experience: str = ""
    match_score: str = ""
    summary: str = ""
    call_status: str = CallStatus.NOT_CALLED.value

    @classmethod
    def from_candidate(cls, candidate: Candidate) -> "CandidateForm":
        return cls(
            name=candidate.name,
            email=candidate.email,
            phone=candidate.phone,
            skills=candidate.skills,
            total_experience=candidate.total_experience,
            relevant_work_experience=candidate.relevant_work_experience,
            match_score=f"{candidate.match_score:g}" if candidate.match_score else "",
            summary=candidate.summary,
            call_status=candidate.call_status,
        )

    def validate(self) -> dict[str, str]:
        """Return field name -> problem for every invalid field."""
        errors: dict[str, str] = {}
        if not self.name.strip():
            errors["name"] = "Name is required"
        if not self.email.strip():
            errors["email"] = "Email is required"
        elif not EMAIL_PATTERN.search(self.email):
            errors["email"] = "Email is invalid"
        if not self.phone.strip():
            errors["phone"] = "Phone is required"
        elif not PHONE_PATTERN.match(self.phone):
            errors["phone"] = "Phone number is invalid"
        if self.match_score.strip():
            try:
                score = float(self.match_score)
            except ValueError:
                score = -1.0
            if not 0 <= score <= 100:
                errors["match_score"] = "Match score must be between 0 and 100"
        return errors

    def to_payload(self, search_id: int, candidate_id: int | None = None) -> CandidateIn:
        return CandidateIn(
            candidate_id=candidate_id,
            search_id=search_id,
            name=self.name.strip(),
            email=self.email.strip(),
            phone=self.phone.strip(),
            skills=self.skills,
            total_experience=self.total_experience,
            relevant_work_experience=self.relevant_work_experience,
            summary=self.summary,
            match_score=float(self.match_score) if self.match_score.strip() else 0.0,
            call_status=self.call_status or CallStatus.NOT_CALLED.value,
        )


@dataclass(frozen=True)
class DeleteConfirmation:
    candidate_id: int
    name: str

    @property
    def prompt(self) -> str:
        return f"Delete {self.name}? This also removes their call records."


class CustomQuestionEditor:
    """Modal for the single screening question saved per search."""

    def __init__(
        self,
        matching: MatchingService,
        questions: QuestionService,
        search_id: int,
        notices: NoticeBoard,
    ) -> None:
        self._matching = matching
        self._questions = questions
        self._search_id = search_id
        self._notices = notices
        self.is_open = False
        self.saved = ""
        self.draft = ""
        self.options: list[str] = []
        self.busy = False

    async def refresh(self) -> str:
        try:
            self.saved = await self._matching.get_custom_question(self._search_id)
        except PipelineError as exc:
            logger.warning("loading custom question failed: %s", exc.message)
            self._notices.error(exc.message)
        return self.saved

    async def open(self) -> str:
        """Open the editor showing the currently saved question."""
        await self.refresh()
        self.draft = self.saved
        self.options = []
        self.is_open = True
        return self.saved

    async def generate(self) -> list[str]:
        self.busy = True
        try:
            self.options = await self._questions.suggestions(self._search_id)
        except PipelineError as exc:
            logger.warning("question suggestions failed: %s", exc.message)
            self._notices.error(exc.message)
        finally:
            self.busy = False
        return list(self.options)

    def pick(self, index: int) -> str:
        if not 0 <= index < len(self.options):
            raise InvalidTransitionError("That suggestion is no longer available.")
        self.draft = self.options[index]
        return self.draft

    def set_draft(self, text: str) -> None:
        self.draft = text

    async def save(self) -> bool:
        question = self.draft.strip()
        if not question:
            self._notices.error("The question cannot be empty.")
            return False
        self.busy = True
        try:
            saved = await self._matching.save_custom_question(self._search_id, question)
        except PipelineError as exc:
            logger.warning("saving custom question failed: %s", exc.message)
            self._notices.error(exc.message)
            return False
        finally:
            self.busy = False
        self.saved = saved or question
        self.is_open = False
        self._notices.success("Custom question saved.")
        return True

    def close(self) -> None:
        self.is_open = False
        self.options = []


class ResultsReview:
    """View model for the results page of one search."""

    def __init__(
        self,
        matching: MatchingService,
        calling: CallingService,
        questions: QuestionService,
        search_id: int,
        notices: NoticeBoard | None = None,
        config: Settings | None = None,
    ) -> None:
        self._matching = matching
        self._calling = calling
        self.search_id = search_id
        self.notices = notices or NoticeBoard(config or default_settings)
        self.table = CandidateTable()
        self.question_editor = CustomQuestionEditor(matching, questions, search_id, self.notices)
        self.loading = False
        self.calling = False
        self.total = 0
        self.calls_scheduled = 0
        self.rescheduled_calls = 0
        self.company = ""
        self.form_errors: dict[str, str] = {}
        self.delete_pending: DeleteConfirmation | None = None
        self._pending_likes: dict[int, bool] = {}
        self._deleting = False

    # -- loading and view state ------------------------------------------

    async def load(self) -> bool:
        self.loading = True
        try:
            page = await self._matching.results(self.search_id)
        except PipelineError as exc:
            logger.warning("loading results failed: %s", exc.message, extra={"search_id": self.search_id})
            self.notices.error(exc.message)
            return False
        finally:
            self.loading = False
        self.table.set_rows(page.candidates)
        self.total = page.total or len(page.candidates)
        self.calls_scheduled = page.calls_scheduled
        self.rescheduled_calls = page.rescheduled_calls
        self.company = page.company
        await self.question_editor.refresh()
        return True

    @property
    def candidates(self) -> list[Candidate]:
        return self.table.rows

    @property
    def custom_question(self) -> str:
        return self.question_editor.saved

    def visible(self) -> list[Candidate]:
        return self.table.visible()

    def set_filter(self, name: str) -> None:
        self.table.set_filter(name)

    def set_search_term(self, term: str) -> None:
        self.table.set_search_term(term)

    def set_sort(self, key: str | None) -> None:
        self.table.set_sort(key)

    def toggle_selected(self, candidate_id: int) -> bool:
        return self.table.toggle_selected(candidate_id)

    def select_all(self) -> None:
        self.table.select_all()

    def selected_ids(self) -> list[int]:
        return self.table.selection.effective(self.table.visible_ids())

    # -- calls -----------------------------------------------------------

    def _call_payload(self, candidate: Candidate) -> CallCandidate:
        return CallCandidate(
            candidate_id=candidate.id,
            name=candidate.name,
            phone=candidate.phone,
            skills=candidate.skills,
            company=self.company,
        )

    async def call_candidate(self, candidate_id: int) -> bool:
        candidate = self.table.get(candidate_id)
        if candidate is None:
            self.notices.error("That candidate is no longer in the list.")
            return False
        if self.calling:
            raise InvalidTransitionError("A call request is already in progress.")
        self.calling = True
        try:
            await self._calling.call_single(self.search_id, self._call_payload(candidate))
        except PipelineError as exc:
            logger.warning("call to candidate %s failed: %s", candidate_id, exc.message)
            self.notices.error(exc.message)
            return False
        finally:
            self.calling = False
        self.notices.success(f"Call initiated for {candidate.name}.")
        return True

    async def call_selected(self) -> bool:
        return await self._call_batch(self.table.selected_visible())

    async def call_all_filtered(self) -> bool:
        return await self._call_batch(self.table.visible())

    async def _call_batch(self, targets: list[Candidate]) -> bool:
        if not targets:
            self.notices.error("There are no candidates to call.")
            return False
        if self.calling:
            raise InvalidTransitionError("A call request is already in progress.")
        self.calling = True
        try:
            await self._calling.call_batch(self.search_id, [self._call_payload(c) for c in targets])
        except PipelineError as exc:
            logger.warning("batch call failed: %s", exc.message, extra={"search_id": self.search_id})
            self.notices.error(exc.message)
            return False
        finally:
            self.calling = False
        self.notices.success(f"Calls initiated for {len(targets)} candidate(s).")
        return True

    # -- like ------------------------------------------------------------

    @property
    def pending_likes(self) -> frozenset[int]:
        return frozenset(self._pending_likes)

    async def toggle_like(self, candidate_id: int) -> bool:
        """Flip ``liked`` now; revert to the confirmed value if the server refuses."""
        candidate = self.table.get(candidate_id)
        if candidate is None:
            self.notices.error("That candidate is no longer in the list.")
            return False
        if candidate_id in self._pending_likes:
            raise InvalidTransitionError("This candidate is still being updated.")
        confirmed = candidate.liked
        self._pending_likes[candidate_id] = confirmed
        self.table.upsert(replace(candidate, liked=not confirmed))
        try:
            await self._matching.like(candidate_id, not confirmed)
        except PipelineError as exc:
            logger.warning("like toggle for %s failed: %s", candidate_id, exc.message)
            current = self.table.get(candidate_id)
            if current is not None:
                self.table.upsert(replace(current, liked=confirmed))
            self.notices.error(exc.message)
            return False
        finally:
            self._pending_likes.pop(candidate_id, None)
        return True

    # -- final selects ---------------------------------------------------

    async def add_selected_to_final(self) -> bool:
        targets = self.table.selected_visible()
        if not targets:
            self.notices.error("Select at least one candidate.")
            return False
        try:
            await self._matching.mutate_final_selects(add=[c.id for c in targets])
        except PipelineError as exc:
            logger.warning("add to final selects failed: %s", exc.message)
            self.notices.error(exc.message)
            return False
        for candidate in targets:
            self.table.upsert(replace(candidate, hiring_status=True))
        self.table.selection.clear()
        self.notices.success(f"Added {len(targets)} candidate(s) to Final Selects.")
        return True

    # -- add / edit ------------------------------------------------------

    async def edit_form(self, candidate_id: int) -> CandidateForm | None:
        try:
            detail = await self._matching.get_candidate(candidate_id)
        except PipelineError as exc:
            logger.warning("loading candidate %s failed: %s", candidate_id, exc.message)
            self.notices.error("Failed to load candidate data")
            return None
        return CandidateForm.from_candidate(detail.candidate)

    async def save_candidate(
        self, form: CandidateForm, candidate_id: int | None = None
    ) -> Candidate | None:
        """Create (no id) or update a candidate and merge the result by id."""
        self.form_errors = form.validate()
        if self.form_errors:
            return None
        try:
            payload = form.to_payload(self.search_id, candidate_id)
        except ValidationError as exc:
            self.form_errors = {
                str(err["loc"][0]) if err["loc"] else "form": err["msg"] for err in exc.errors()
            }
            return None
        try:
            if candidate_id is None:
                saved = await self._matching.create_candidate(payload)
            else:
                saved = await self._matching.update_candidate(payload)
        except PipelineError as exc:
            logger.warning("saving candidate failed: %s", exc.message)
            self.notices.error(exc.message)
            return None
        replaced = self.table.upsert(saved)
        if not replaced:
            self.total += 1
        self.notices.success("Candidate updated." if replaced else "Candidate added.")
        return saved

    # -- delete ----------------------------------------------------------

    def request_delete(self, candidate_id: int) -> DeleteConfirmation:
        if self.delete_pending is not None:
            raise InvalidTransitionError("Another deletion is awaiting confirmation.")
        candidate = self.table.get(candidate_id)
        if candidate is None:
            raise InvalidTransitionError("That candidate is no longer in the list.")
        self.delete_pending = DeleteConfirmation(candidate.id, candidate.name)
        return self.delete_pending

    def cancel_delete(self) -> None:
        if not self._deleting:
            self.delete_pending = None

    async def confirm_delete(self) -> bool:
        pending = self.delete_pending
        if pending is None or self._deleting:
            raise InvalidTransitionError("There is no deletion to confirm.")
        self._deleting = True
        try:
            return await self._delete(pending)
        finally:
            self._deleting = False
            self.delete_pending = None

    async def _delete(self, pending: DeleteConfirmation) -> bool:
        try:
            await self._matching.delete_candidate(pending.candidate_id)
        except PipelineError as exc:
            logger.warning("deleting candidate %s failed: %s", pending.candidate_id, exc.message)
            self.notices.error(exc.message)
            return False
        self.table.remove([pending.candidate_id])
        self.total = max(0, self.total - 1)
        self.notices.success(f"{pending.name} was deleted.")
        return True

    # -- detail and export -----------------------------------------------

    async def candidate_detail(self, candidate_id: int) -> CandidateDetail | None:
        try:
            return await self._matching.get_candidate(candidate_id)
        except PipelineError as exc:
            logger.warning("loading candidate %s failed: %s", candidate_id, exc.message)
            self.notices.error(exc.message)
            return None

    def export_csv(self) -> str:
        return self.table.export_csv()
