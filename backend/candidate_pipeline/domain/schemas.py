"""Pydantic models used for request and response bodies.

These data transfer objects mirror the wire contract of the matching
service. Loosely typed fields (JSON-encoded lists, numeric phone numbers,
null booleans) are normalized here, at the boundary, so the rest of the
package only ever sees the domain models.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Annotated, Any, List

from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, field_validator

from . import models

_MAX_DECODE_DEPTH = 3


def parse_shortlisted_indices(value: Any) -> list[int]:
    """Normalize the ``shortlisted_index`` wire value to a list of ints.

    The field is a tagged value: a native list, or a JSON string holding a
    list (sometimes encoded twice).

    Example:
        >>> parse_shortlisted_indices('"[3, 1, 4]"')
        [3, 1, 4]
    """
    depth = 0
    while isinstance(value, str):
        if not value.strip():
            return []
        if depth >= _MAX_DECODE_DEPTH:
            raise ValueError("shortlisted_index is nested too deeply")
        try:
            value = json.loads(value)
        except json.JSONDecodeError as exc:
            raise ValueError(f"shortlisted_index is not valid JSON: {exc}") from exc
        depth += 1
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"shortlisted_index must be a list, got {type(value).__name__}")
    out: list[int] = []
    for item in value:
        if isinstance(item, bool):
            raise ValueError("shortlisted_index entries must be integers")
        out.append(int(item))
    return out


def parse_transcript(value: Any) -> list[dict[str, str]]:
    """Normalize a call transcript (list of turns or JSON string) to turn dicts."""
    if value is None:
        return []
    if isinstance(value, str):
        if not value.strip():
            return []
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return [{"speaker": "", "message": value, "timestamp": ""}]
    if not isinstance(value, list):
        raise ValueError("transcript must be a list of turns")
    turns = []
    for item in value:
        if not isinstance(item, dict):
            raise ValueError("transcript turns must be objects")
        turns.append(
            {
                "speaker": str(item.get("speaker") or item.get("role") or ""),
                "message": str(item.get("message") or item.get("content") or ""),
                "timestamp": str(item.get("timestamp") or ""),
            }
        )
    return turns


def _none_to(default: Any):
    return BeforeValidator(lambda v: default if v is None else v)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


ShortlistedIndices = Annotated[List[int], BeforeValidator(parse_shortlisted_indices)]
Transcript = Annotated[List[dict], BeforeValidator(parse_transcript)]
Text = Annotated[str, BeforeValidator(_as_text)]
Flag = Annotated[bool, _none_to(False)]
Score = Annotated[float, _none_to(0.0)]


class WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ShortlistOut(WireModel):
    """Result of creating or updating a shortlist.

    Example:
        >>> ShortlistOut(success=True, search_id=12, is_update=False)
    """

    success: bool = False
    search_id: int | None = None
    is_update: bool = False
    message: str = ""


class ProcessingStatusOut(WireModel):
    processed: Flag = False
    search_id: int | None = None


class IntakeProgressOut(WireModel):
    """Intake cursor as returned by ``GET /api/process/{searchId}``."""

    submitted: int = 0
    target: int = 0
    current_index: int | None = Field(default=None, alias="currentIndex")
    is_last: Flag = Field(default=False, alias="isLast")
    shortlisted_indices: ShortlistedIndices = Field(default_factory=list)
    prev_fields: dict[str, Any] | None = None
    right_fields: dict[str, Any] | None = None

    def to_domain(self) -> models.IntakeProgress:
        return models.IntakeProgress(
            submitted=self.submitted,
            target=self.target,
            current_index=self.current_index,
            is_last=self.is_last,
            shortlisted_indices=tuple(self.shortlisted_indices),
        )


class IntakeSubmitOut(WireModel):
    """Response to one intake submission: ``redirect``, ``next`` or errors."""

    redirect: str | None = None
    next: Any = None
    submitted: int | None = None
    candidate_index: int | None = Field(default=None, alias="candidateIndex")
    is_last: Flag = Field(default=False, alias="isLast")
    right_fields: dict[str, Any] | None = None
    errors: List[str] = Field(default_factory=list)


class CandidateOut(WireModel):
    id: int
    search_id: int | None = None
    name: Text = ""
    email: Text = ""
    phone: Text = ""
    skills: Text = ""
    total_experience: Text = ""
    relevant_work_experience: Text = ""
    summary: Text = ""
    match_score: Score = 0.0
    call_status: Annotated[str, _none_to(models.CallStatus.NOT_CALLED.value)] = (
        models.CallStatus.NOT_CALLED.value
    )
    liked: Flag = False
    hiring_status: Flag = False
    join_status: Flag = False

    def to_domain(self) -> models.Candidate:
        return models.Candidate(
            id=self.id,
            search_id=self.search_id or 0,
            name=self.name,
            email=self.email,
            phone=self.phone,
            skills=self.skills,
            total_experience=self.total_experience,
            relevant_work_experience=self.relevant_work_experience,
            summary=self.summary,
            match_score=self.match_score,
            call_status=self.call_status,
            liked=self.liked,
            hiring_status=self.hiring_status,
            join_status=self.join_status,
        )


class CallOut(WireModel):
    id: int
    candidate_id: int
    status: Text = ""
    duration: Annotated[int, _none_to(0)] = Field(default=0, alias="call_duration")
    transcript: Transcript = Field(default_factory=list)
    structured_data: Annotated[dict, _none_to({})] = Field(
        default_factory=dict, alias="structured_call_data"
    )
    summary: Text = Field(default="", alias="call_summary")
    evaluation: Text = ""

    def to_domain(self) -> models.Call:
        return models.Call(
            id=self.id,
            candidate_id=self.candidate_id,
            status=self.status,
            duration=self.duration,
            transcript=tuple(models.TranscriptTurn(**turn) for turn in self.transcript),
            structured_data=dict(self.structured_data),
            summary=self.summary,
            evaluation=self.evaluation,
        )


class ResultsOut(WireModel):
    success: bool = True
    candidates: List[CandidateOut] = Field(default_factory=list)
    total: int = 0
    calls_scheduled: int = 0
    rescheduled_calls: int = 0
    company: Text = ""


class CandidateEnvelope(WireModel):
    success: bool = False
    candidate: CandidateOut | None = None
    calls: List[CallOut] = Field(default_factory=list)


class CandidateListOut(WireModel):
    success: bool = True
    candidates: List[CandidateOut] = Field(default_factory=list)


class QuestionsOut(WireModel):
    success: bool = False
    questions: List[str] = Field(default_factory=list)


class CustomQuestionOut(WireModel):
    success: bool = False
    custom_question: Text = ""


class SearchOut(WireModel):
    id: int
    rc_name: Text = ""
    job_role: Text = ""
    key_skills: Text = ""
    raw_data: Text = ""
    hc_name: Text = ""
    company_location: Text = ""
    notice_period: Text = ""
    remote_work: bool | None = None
    contract_hiring: bool | None = None
    noc: Annotated[int, _none_to(0)] = 0
    processed: Flag = False
    shortlisted_index: ShortlistedIndices = Field(default_factory=list)
    custom_question: Text = ""
    created_at: datetime | None = None

    def to_domain(self) -> models.Search:
        return models.Search(
            id=self.id,
            name=self.rc_name,
            job_role=self.job_role,
            key_skills=self.key_skills,
            raw_data=self.raw_data,
            hiring_company=self.hc_name,
            company_location=self.company_location,
            notice_period=self.notice_period,
            remote_work=self.remote_work,
            contract_hiring=self.contract_hiring,
            noc=self.noc,
            processed=self.processed,
            shortlisted_indices=tuple(self.shortlisted_index),
            custom_question=self.custom_question,
            created_at=self.created_at,
        )


class HistoryOut(WireModel):
    success: bool = True
    searches: List[SearchOut] = Field(default_factory=list)


class TaskOut(WireModel):
    id: int
    title: Text = ""
    job_role: Text = ""
    company_name: Text = ""
    job_location: Text = ""
    priority: models.TaskPriority = models.TaskPriority.MEDIUM
    deadline: datetime
    status: Annotated[models.TaskStatus, _none_to(models.TaskStatus.PENDING)] = (
        models.TaskStatus.PENDING
    )
    openings: Annotated[int, _none_to(1)] = 1
    notes: Text = ""
    assignor: str | None = None
    assignee: str | None = None

    def to_domain(self) -> models.Task:
        return models.Task(
            id=self.id,
            title=self.title,
            job_role=self.job_role,
            company_name=self.company_name,
            job_location=self.job_location,
            priority=self.priority,
            deadline=self.deadline,
            status=self.status,
            openings=self.openings,
            notes=self.notes,
            assignor=self.assignor,
            assignee=self.assignee,
        )


class TasksOut(WireModel):
    success: bool = True
    tasks: List[TaskOut] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class CandidateIn(BaseModel):
    """Candidate create/update body for ``/api/candidate``.

    Example:
        >>> CandidateIn(name="Carol", email="carol@acme.io", phone="+1 555 0100")
    """

    candidate_id: int | None = None
    search_id: int | None = None
    name: str = Field(min_length=1)
    email: EmailStr
    phone: str = Field(min_length=1)
    skills: str = ""
    total_experience: str = ""
    relevant_work_experience: str = ""
    summary: str = ""
    match_score: float = Field(default=0.0, ge=0, le=100)
    call_status: str = models.CallStatus.NOT_CALLED.value

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "search_id": 12,
                "name": "Carol Diaz",
                "email": "carol@acme.io",
                "phone": "+1 555 0100",
                "match_score": 91,
            }
        }
    )


class LikeIn(BaseModel):
    candidate_id: int
    liked: bool


class CallCandidate(BaseModel):
    candidate_id: int | None = None
    name: str
    phone: str
    skills: str = ""
    company: str = ""


class CallSingleIn(BaseModel):
    search_id: int
    candidate: CallCandidate


class CallBatchIn(BaseModel):
    search_id: int
    candidates: List[CallCandidate] = Field(min_length=1)


class JoinUpdate(BaseModel):
    candidate_id: int
    joined: bool


class FinalSelectsIn(BaseModel):
    """Batched final-selects mutation; any combination of lists may be sent."""

    joined: List[JoinUpdate] = Field(default_factory=list)
    remove_from_final: List[int] = Field(default_factory=list)
    add_to_final: List[int] = Field(default_factory=list)


class CustomQuestionIn(BaseModel):
    search_id: int
    question: str

    @field_validator("question")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("question must not be empty")
        return value
