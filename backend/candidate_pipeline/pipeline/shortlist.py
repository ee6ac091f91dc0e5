"""Shortlist Submitter: builds and sends the create/update search request."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Awaitable, Callable

from ..client.services import MatchingService, UploadFile
from ..core.config import Settings, settings as default_settings
from ..core.errors import FieldValidationError, InvalidTransitionError, NotMatchedError, PipelineError
from ..domain.models import Search, Task, Urgency
from ..domain.tasks import group_by_urgency
from .navigation import Navigate, Stage
from .notices import NoticeBoard

logger = logging.getLogger(__name__)

MIN_CANDIDATES = 1
MAX_CANDIDATES = 50
DEFAULT_CANDIDATES = 5

FLAG_CHOICES = ("Yes", "No", "")

_TRUTHY = {"yes", "true", "1", "y"}
_FALSY = {"no", "false", "0", "n"}


def normalize_flag(value: Any) -> str:
    """Map a tri-state source value to ``Yes``, ``No`` or blank.

    Example:
        >>> normalize_flag(None), normalize_flag(True), normalize_flag("false")
        ('', 'Yes', 'No')
    """
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if value is None:
        return ""
    text = str(value).strip().lower()
    if text in _TRUTHY:
        return "Yes"
    if text in _FALSY:
        return "No"
    return ""


def _is_pdf(document: UploadFile) -> bool:
    return document.content_type == "application/pdf" or document.filename.lower().endswith(".pdf")


@dataclass
class ShortlistForm:
    """Editable buffer behind the shortlist form."""

    search_name: str = ""
    job_role: str = ""
    skills: str = ""
    raw_data: str = ""
    hiring_company: str = ""
    company_location: str = ""
    notice_period: str = ""
    remote_work: str = ""
    contract_hiring: str = ""
    num_candidates: int = DEFAULT_CANDIDATES
    resume_link: str = ""
    jd_file: UploadFile | None = None
    search_id: int | None = None

    def validate(self, simple: bool = False) -> list[str]:
        """Collect every problem with the form; an empty list means valid."""
        errors: list[str] = []
        if not self.search_name.strip():
            errors.append("Search name is required.")
        if not self.job_role.strip():
            errors.append("Job role is required.")
        if not self.skills.strip():
            errors.append("Required skills are required.")
        if simple:
            if not self.resume_link.strip():
                errors.append("Resume link is required.")
        elif not self.raw_data.strip():
            errors.append("Candidate data is required.")
        if not isinstance(self.num_candidates, int) or not (
            MIN_CANDIDATES <= self.num_candidates <= MAX_CANDIDATES
        ):
            errors.append(
                f"Number of candidates must be between {MIN_CANDIDATES} and {MAX_CANDIDATES}."
            )
        if self.jd_file is None:
            if not simple:
                errors.append("A job description PDF is required.")
        elif not _is_pdf(self.jd_file):
            errors.append("The job description must be a PDF file.")
        notice = self.notice_period.strip()
        if notice and (not notice.isdigit()):
            errors.append("Notice period must be a whole number of days.")
        for label, value in (("Remote work", self.remote_work), ("Contract hiring", self.contract_hiring)):
            if value not in FLAG_CHOICES:
                errors.append(f"{label} must be Yes, No or blank.")
        return errors

    def to_fields(self, simple: bool = False) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "searchName": self.search_name.strip(),
            "jobRole": self.job_role.strip(),
            "skills": self.skills.strip(),
            "numCandidates": self.num_candidates,
        }
        if simple:
            fields["resumeLink"] = self.resume_link.strip()
        else:
            fields.update(
                {
                    "rawData": self.raw_data,
                    "hiringCompany": self.hiring_company.strip(),
                    "companyLocation": self.company_location.strip(),
                    "noticePeriod": self.notice_period.strip(),
                    "remoteWork": self.remote_work,
                    "contractHiring": self.contract_hiring,
                }
            )
        if self.search_id is not None:
            fields["search_id"] = self.search_id
        return fields


@dataclass(frozen=True)
class SubmitOutcome:
    navigate: Navigate | None = None
    is_update: bool = False
    message: str = ""
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.navigate is not None


class ShortlistSubmitter:
    """Validates the shortlist form and hands the new search to processing."""

    def __init__(
        self,
        matching: MatchingService,
        notices: NoticeBoard | None = None,
        config: Settings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._matching = matching
        self._config = config or default_settings
        self._sleep = sleep
        self.notices = notices or NoticeBoard(self._config)
        self.form = ShortlistForm()
        self.busy = False
        self.errors: list[str] = []

    # -- prefill ---------------------------------------------------------

    def prefill_from_search(self, search: Search) -> None:
        """Copy a past search into the form; submitting updates it in place."""
        self.form = ShortlistForm(
            search_name=search.name,
            job_role=search.job_role,
            skills=search.key_skills,
            raw_data=search.raw_data,
            hiring_company=search.hiring_company,
            company_location=search.company_location,
            notice_period=search.notice_period,
            remote_work=normalize_flag(search.remote_work),
            contract_hiring=normalize_flag(search.contract_hiring),
            num_candidates=search.noc or DEFAULT_CANDIDATES,
            search_id=search.id,
        )
        self.errors = []

    def prefill_from_task(self, task: Task) -> None:
        """Seed the form from an assigned task; this always starts a new search."""
        self.form = ShortlistForm(
            search_name=task.title,
            job_role=task.job_role,
            hiring_company=task.company_name,
            company_location=task.job_location,
        )
        self.errors = []

    def reset(self) -> None:
        self.form = ShortlistForm()
        self.errors = []

    async def load_history(self) -> list[Search]:
        try:
            return await self._matching.history()
        except PipelineError as exc:
            logger.warning("loading search history failed: %s", exc.message)
            self.notices.error(exc.message)
            return []

    async def load_inbox_tasks(self) -> list[Task]:
        try:
            return await self._matching.inbox_tasks()
        except PipelineError as exc:
            logger.warning("loading assigned tasks failed: %s", exc.message)
            self.notices.error(exc.message)
            return []

    async def load_inbox_by_urgency(self, now: datetime | None = None) -> dict[Urgency, list[Task]]:
        """Assigned tasks bucketed by deadline urgency in the business time zone."""
        tasks = await self.load_inbox_tasks()
        return group_by_urgency(tasks, now=now, tz_name=self._config.TZ)

    # -- submission ------------------------------------------------------

    async def submit(self, simple: bool = False) -> SubmitOutcome:
        if self.busy:
            raise InvalidTransitionError("A shortlist request is already in progress.")
        errors = self.form.validate(simple=simple)
        if errors:
            self.errors = errors
            failure = FieldValidationError(errors)
            return SubmitOutcome(message=failure.message, errors=errors)

        self.errors = []
        self.busy = True
        form = replace(self.form)
        try:
            send = self._matching.shortlist_simple if simple else self._matching.shortlist
            result = await send(form.to_fields(simple=simple), form.jd_file)
            if result.search_id is None:
                raise PipelineError("The server did not return a search id.")
        except NotMatchedError as exc:
            logger.info("shortlist rejected: %s", exc.message)
            self.notices.error(exc.message)
            return SubmitOutcome(message=exc.message)
        except PipelineError as exc:
            logger.warning("shortlist request failed: %s", exc.message)
            self.notices.error(exc.message)
            return SubmitOutcome(message=exc.message, errors=list(getattr(exc, "errors", [])))
        finally:
            self.busy = False

        logger.info(
            "shortlist %s", "updated" if result.is_update else "created",
            extra={"search_id": result.search_id},
        )
        message = result.message or (
            "Search updated. Re-running matching..." if result.is_update else "Shortlist created."
        )
        if result.is_update:
            self.notices.info(message)
            await self._sleep(self._config.UPDATE_TRANSITION_SECONDS)
        return SubmitOutcome(
            navigate=Navigate(Stage.PROCESSING, result.search_id),
            is_update=result.is_update,
            message=message,
        )
