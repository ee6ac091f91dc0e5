"""Core domain entities represented as immutable dataclasses.

Each model is intentionally lightweight and independent of the wire
format. Components replace instances (``dataclasses.replace``) instead of
mutating them, so a stale reference never changes under the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Tuple


class CallStatus(str, Enum):
    """Call state of a candidate, as reported by the calling subsystem."""

    NOT_CALLED = "not_called"
    SCHEDULED = "scheduled"
    ANSWERED = "Called & Answered"
    RESCHEDULE = "Re-schedule"
    FAILED = "failed"


class TaskStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class TaskPriority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class Urgency(str, Enum):
    OVERDUE = "overdue"
    URGENT = "urgent"
    SOON = "soon"
    NORMAL = "normal"


@dataclass(frozen=True)
class Search:
    """One job-requisition matching run and its criteria.

    Example:
        >>> Search(id=7, name="Q3 backend", job_role="Backend Engineer")
    """

    id: int
    name: str = ""
    job_role: str = ""
    key_skills: str = ""
    raw_data: str = ""
    hiring_company: str = ""
    company_location: str = ""
    notice_period: str = ""
    remote_work: bool | None = None
    contract_hiring: bool | None = None
    noc: int = 0
    processed: bool = False
    shortlisted_indices: Tuple[int, ...] = ()
    custom_question: str = ""
    created_at: datetime | None = None


@dataclass(frozen=True)
class Candidate:
    """A person record tied to exactly one search.

    Example:
        >>> Candidate(id=1, search_id=7, name="Carol", match_score=91)
    """

    id: int
    search_id: int
    name: str
    email: str = ""
    phone: str = ""
    skills: str = ""
    total_experience: str = ""
    relevant_work_experience: str = ""
    summary: str = ""
    match_score: float = 0.0
    call_status: str = CallStatus.NOT_CALLED.value
    liked: bool = False
    hiring_status: bool = False
    join_status: bool = False


@dataclass(frozen=True)
class TranscriptTurn:
    speaker: str
    message: str
    timestamp: str = ""


@dataclass(frozen=True)
class Call:
    """One attempt to contact a candidate, owned by that candidate.

    Example:
        >>> Call(id=3, candidate_id=1, status="completed", duration=754)
    """

    id: int
    candidate_id: int
    status: str = ""
    duration: int = 0
    transcript: Tuple[TranscriptTurn, ...] = ()
    structured_data: Mapping[str, Any] = field(default_factory=dict)
    summary: str = ""
    evaluation: str = ""


@dataclass(frozen=True)
class Task:
    """Job opening assigned to a recruiter; can seed a new search.

    Example:
        >>> Task(
        ...     id=4,
        ...     title="Hire two SREs",
        ...     job_role="SRE",
        ...     company_name="Acme",
        ...     deadline=datetime(2024, 1, 5),
        ... )
    """

    id: int
    title: str
    job_role: str
    company_name: str
    deadline: datetime
    job_location: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    openings: int = 1
    notes: str = ""
    assignor: str | None = None
    assignee: str | None = None


@dataclass(frozen=True)
class FinalSelect:
    """A candidate escalated out of results, tracked for joining."""

    candidate: Candidate
    joined: bool

    @property
    def id(self) -> int:
        return self.candidate.id

    @classmethod
    def from_candidate(cls, candidate: Candidate) -> "FinalSelect":
        return cls(candidate=candidate, joined=candidate.join_status)


@dataclass(frozen=True)
class IntakeProgress:
    """Server-reported intake cursor for one search.

    ``submitted`` counts completed candidates, ``target`` is the length of
    the shortlisted index list and ``current_index`` is the shortlisted
    ordinal the next submission refers to.
    """

    submitted: int
    target: int
    current_index: int | None
    is_last: bool
    shortlisted_indices: Tuple[int, ...]

    def __post_init__(self) -> None:
        if self.target != len(self.shortlisted_indices):
            raise ValueError(
                f"target {self.target} does not match "
                f"{len(self.shortlisted_indices)} shortlisted indices"
            )
        if not 0 <= self.submitted <= self.target:
            raise ValueError(f"submitted {self.submitted} outside 0..{self.target}")
        if len(set(self.shortlisted_indices)) != len(self.shortlisted_indices):
            raise ValueError("shortlisted indices must be unique")

    @property
    def done(self) -> bool:
        return self.submitted >= self.target
