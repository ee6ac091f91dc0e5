"""In-memory state behind the sandbox matching service.

Matching is a keyword overlap between the required skills and each line of
the candidate corpus. Corpus lines look like
``Name | email | phone | skills | experience``; a line without separators is
treated as a name plus free text.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from ..domain.models import Call, CallStatus, Candidate, Task, TranscriptTurn

logger = logging.getLogger(__name__)

SAMPLE_CORPUS = "\n".join(
    [
        "Alex Rodriguez | alex@hirewire.io | +1 555 123 4567 | React, TypeScript, AWS | 5 years",
        "Sarah Chen | sarah@hirewire.io | +1 555 234 5678 | Vue.js, Python, Docker | 3 years",
        "Michael Johnson | michael@hirewire.io | +1 555 345 6789 | Angular, Node.js, MongoDB | 7 years",
        "Emma Wilson | emma@hirewire.io | +1 555 456 7890 | React Native, iOS, Android | 4 years",
        "Priya Nair | priya@hirewire.io | +91 98450 12345 | Python, Kubernetes, AWS, Go | 6 years",
    ]
)

QUESTION_TEMPLATES = (
    "What is your hands-on experience with {skill}?",
    "Describe a project where you relied on {skill}.",
    "How do you keep your {skill} skills current?",
)
GENERIC_QUESTIONS = (
    "How do you handle tight deadlines and multiple projects?",
    "What's your approach to code review and team collaboration?",
    "Why are you interested in this {role} role?",
)
MAX_SUGGESTIONS = 5

SHARED_KEYS = (
    "hiringCompany",
    "companyLocation",
    "hrCompany",
    "noticePeriod",
    "remoteWork",
    "contractHiring",
)


class SandboxError(Exception):
    """Business failure; rendered as ``{"success": false, ...}`` with ``status_code``."""

    def __init__(
        self,
        status_code: int,
        message: str,
        *,
        errors: list[str] | None = None,
        code: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.errors = list(errors or [])
        self.code = code
        super().__init__(message)

    def body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "error": self.message}
        if self.errors:
            body["errors"] = self.errors
        if self.code:
            body["code"] = self.code
        return body


@dataclass(frozen=True)
class PoolEntry:
    name: str
    email: str = ""
    phone: str = ""
    skills: str = ""
    experience: str = ""
    text: str = ""


def parse_corpus(raw: str) -> list[PoolEntry]:
    entries = []
    for line in raw.splitlines():
        line = line.strip()
        if not line:
            continue
        parts = [part.strip() for part in line.split("|")]
        if len(parts) == 1:
            entries.append(PoolEntry(name=line, skills=line, text=line))
            continue
        parts += [""] * (5 - len(parts))
        name, email, phone, skills, experience = parts[:5]
        entries.append(PoolEntry(name, email, phone, skills, experience, text=line))
    return entries


def split_skills(skills: str) -> list[str]:
    return [s.strip() for s in skills.replace(";", ",").split(",") if s.strip()]


def score_entry(entry: PoolEntry, required: list[str]) -> float:
    if not required:
        return 0.0
    haystack = entry.text.lower()
    hits = sum(1 for skill in required if skill.lower() in haystack)
    return round(100.0 * hits / len(required), 1)


@dataclass
class SearchRecord:
    id: int
    name: str
    job_role: str
    key_skills: str
    raw_data: str
    hiring_company: str = ""
    company_location: str = ""
    notice_period: str = ""
    remote_work: bool | None = None
    contract_hiring: bool | None = None
    noc: int = 0
    processed: bool = False
    shortlisted_index: list[int] = field(default_factory=list)
    scores: dict[int, float] = field(default_factory=dict)
    custom_question: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    submitted: int = 0
    right_fields: dict[str, Any] | None = None
    prev_fields: dict[str, Any] | None = None
    processing_started: float | None = None

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "rc_name": self.name,
            "job_role": self.job_role,
            "key_skills": self.key_skills,
            "raw_data": self.raw_data,
            "hc_name": self.hiring_company,
            "company_location": self.company_location,
            "notice_period": self.notice_period,
            "remote_work": self.remote_work,
            "contract_hiring": self.contract_hiring,
            "noc": self.noc,
            "processed": self.processed,
            "shortlisted_index": json.dumps(self.shortlisted_index),
            "custom_question": self.custom_question,
            "created_at": self.created_at.isoformat(),
        }


def candidate_to_wire(candidate: Candidate) -> dict[str, Any]:
    return asdict(candidate)


def call_to_wire(call: Call) -> dict[str, Any]:
    return {
        "id": call.id,
        "candidate_id": call.candidate_id,
        "status": call.status,
        "call_duration": call.duration,
        "transcript": json.dumps([asdict(turn) for turn in call.transcript]),
        "structured_call_data": dict(call.structured_data),
        "call_summary": call.summary,
        "evaluation": call.evaluation,
    }


def _flag(value: str | None) -> bool | None:
    if value is None:
        return None
    text = value.strip().lower()
    if text in {"yes", "true", "1"}:
        return True
    if text in {"no", "false", "0"}:
        return False
    return None


class SandboxStore:
    """Thread-safe in-memory implementation of the matching service contract."""

    def __init__(
        self,
        *,
        processing_delay: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
        tasks: Iterable[Task] = (),
    ) -> None:
        self._lock = threading.Lock()
        self._delay = processing_delay
        self._clock = clock
        self._searches: dict[int, SearchRecord] = {}
        self._candidates: dict[int, Candidate] = {}
        self._calls: dict[int, Call] = {}
        self._tasks: list[Task] = list(tasks)
        self._current_search: int | None = None
        self._next_search_id = 1
        self._next_candidate_id = 1
        self._next_call_id = 1

    # -- helpers ---------------------------------------------------------

    def _search(self, search_id: int) -> SearchRecord:
        try:
            return self._searches[search_id]
        except KeyError:
            raise SandboxError(404, f"Search {search_id} not found.") from None

    def _candidate(self, candidate_id: int) -> Candidate:
        try:
            return self._candidates[candidate_id]
        except KeyError:
            raise SandboxError(404, f"Candidate {candidate_id} not found.") from None

    def _new_candidate_id(self) -> int:
        candidate_id = self._next_candidate_id
        self._next_candidate_id += 1
        return candidate_id

    def search_count(self) -> int:
        with self._lock:
            return len(self._searches)

    # -- shortlist -------------------------------------------------------

    def shortlist(self, fields: Mapping[str, Any], *, simple: bool = False) -> dict[str, Any]:
        errors = []
        for key, label in (("searchName", "Search name"), ("jobRole", "Job role"), ("skills", "Skills")):
            if not str(fields.get(key) or "").strip():
                errors.append(f"{label} is required.")
        raw_data = SAMPLE_CORPUS if simple else str(fields.get("rawData") or "")
        if not raw_data.strip():
            errors.append("Candidate data is required.")
        try:
            noc = int(fields.get("numCandidates") or 0)
        except ValueError:
            noc = 0
        if not 1 <= noc <= 50:
            errors.append("Number of candidates must be between 1 and 50.")
        if errors:
            raise SandboxError(400, errors[0], errors=errors)

        required = split_skills(str(fields["skills"]))
        scored = [(i, score_entry(entry, required)) for i, entry in enumerate(parse_corpus(raw_data))]
        matched = sorted((pair for pair in scored if pair[1] > 0), key=lambda pair: -pair[1])[:noc]
        if not matched:
            raise SandboxError(422, "No candidates matched the given criteria.", code="no_match")

        with self._lock:
            raw_id = fields.get("search_id")
            is_update = raw_id not in (None, "") and int(raw_id) in self._searches
            if is_update:
                search_id = int(raw_id)
                self._candidates = {
                    cid: c for cid, c in self._candidates.items() if c.search_id != search_id
                }
            else:
                search_id = self._next_search_id
                self._next_search_id += 1
            self._searches[search_id] = SearchRecord(
                id=search_id,
                name=str(fields["searchName"]).strip(),
                job_role=str(fields["jobRole"]).strip(),
                key_skills=str(fields["skills"]).strip(),
                raw_data=raw_data,
                hiring_company=str(fields.get("hiringCompany") or ""),
                company_location=str(fields.get("companyLocation") or ""),
                notice_period=str(fields.get("noticePeriod") or ""),
                remote_work=_flag(fields.get("remoteWork")),
                contract_hiring=_flag(fields.get("contractHiring")),
                noc=noc,
                shortlisted_index=[i for i, _ in matched],
                scores=dict(matched),
            )
            self._current_search = search_id
        logger.info("shortlist %s with %d matches", "updated" if is_update else "created", len(matched))
        return {
            "success": True,
            "search_id": search_id,
            "is_update": is_update,
            "message": f"Found {len(matched)} matching candidates.",
        }

    # -- processing ------------------------------------------------------

    def start_processing(self) -> dict[str, Any]:
        with self._lock:
            if self._current_search is None:
                raise SandboxError(404, "There is no search to process.")
            search = self._searches[self._current_search]
            search.processed = False
            search.processing_started = self._clock()
        return {"success": True}

    def processing_status(self) -> dict[str, Any]:
        with self._lock:
            if self._current_search is None:
                return {"processed": False, "search_id": None}
            search = self._searches[self._current_search]
            started = search.processing_started
            if started is not None and self._clock() - started >= self._delay:
                search.processed = True
            return {"processed": search.processed, "search_id": search.id}

    # -- intake ----------------------------------------------------------

    def intake_progress(self, search_id: int) -> dict[str, Any]:
        with self._lock:
            search = self._search(search_id)
            target = len(search.shortlisted_index)
            current = search.shortlisted_index[search.submitted] if search.submitted < target else None
            return {
                "submitted": search.submitted,
                "target": target,
                "currentIndex": current,
                "isLast": search.submitted == target - 1,
                "shortlisted_indices": json.dumps(search.shortlisted_index),
                "prev_fields": search.prev_fields,
                "right_fields": search.right_fields,
            }

    def submit_intake(
        self, search_id: int, fields: Mapping[str, Any], csv_text: str | None = None
    ) -> dict[str, Any]:
        with self._lock:
            search = self._search(search_id)
            target = len(search.shortlisted_index)
            if search.submitted >= target:
                raise SandboxError(409, "All candidates have already been submitted.")
            expected = search.shortlisted_index[search.submitted]
            index = fields.get("candidateIndex")
            if index not in (None, "") and int(index) != expected:
                raise SandboxError(409, f"Expected candidate {expected}, got {index}.")

            resume_text = str(fields.get("resumeText") or "").strip()
            errors = []
            if not resume_text and not csv_text:
                errors.append("Resume text or a CSV file is required.")
            if search.right_fields is None and not str(fields.get("hiringCompany") or "").strip():
                errors.append("Hiring company is required.")
            if errors:
                raise SandboxError(422, errors[0], errors=errors)

            if search.right_fields is None:
                search.right_fields = {key: fields.get(key, "") for key in SHARED_KEYS}
                search.hiring_company = str(fields.get("hiringCompany") or "")
                search.company_location = str(fields.get("companyLocation") or "")
                search.notice_period = str(fields.get("noticePeriod") or "")
                search.remote_work = _flag(fields.get("remoteWork"))
                search.contract_hiring = _flag(fields.get("contractHiring"))

            entry = parse_corpus(search.raw_data)[expected]
            candidate_id = self._new_candidate_id()
            self._candidates[candidate_id] = Candidate(
                id=candidate_id,
                search_id=search.id,
                name=entry.name,
                email=entry.email,
                phone=entry.phone,
                skills=entry.skills,
                total_experience=entry.experience,
                relevant_work_experience=entry.experience,
                summary=resume_text or (csv_text or "").strip(),
                match_score=search.scores.get(expected, 0.0),
            )
            search.prev_fields = {"resumeText": resume_text, "candidateIndex": expected}
            search.submitted += 1

            if search.submitted == target:
                question = str(fields.get("customQuestion") or "").strip()
                if question:
                    search.custom_question = question
                search.processed = False
                search.processing_started = None
                self._current_search = search.id
                return {"redirect": f"/loading/{search.id}", "submitted": search.submitted}
            return {
                "next": True,
                "submitted": search.submitted,
                "candidateIndex": search.shortlisted_index[search.submitted],
                "isLast": search.submitted == target - 1,
                "right_fields": search.right_fields,
            }

    # -- results and candidates -----------------------------------------

    def results(self, search_id: int) -> dict[str, Any]:
        with self._lock:
            search = self._search(search_id)
            rows = [c for c in self._candidates.values() if c.search_id == search_id]
            rows.sort(key=lambda c: -c.match_score)
            return {
                "success": True,
                "candidates": [candidate_to_wire(c) for c in rows],
                "total": len(rows),
                "calls_scheduled": sum(1 for c in rows if c.call_status == CallStatus.SCHEDULED.value),
                "rescheduled_calls": sum(
                    1 for c in rows if c.call_status == CallStatus.RESCHEDULE.value
                ),
                "company": search.hiring_company,
            }

    def get_candidate(self, candidate_id: int) -> dict[str, Any]:
        with self._lock:
            candidate = self._candidate(candidate_id)
            calls = [call_to_wire(c) for c in self._calls.values() if c.candidate_id == candidate_id]
            return {"success": True, "candidate": candidate_to_wire(candidate), "calls": calls}

    def create_candidate(self, data: Mapping[str, Any]) -> dict[str, Any]:
        with self._lock:
            search_id = data.get("search_id")
            if search_id is None:
                raise SandboxError(400, "search_id is required.")
            self._search(int(search_id))
            candidate = Candidate(
                id=self._new_candidate_id(),
                search_id=int(search_id),
                **self._editable(data),
            )
            self._candidates[candidate.id] = candidate
            return {"success": True, "candidate": candidate_to_wire(candidate)}

    def update_candidate(self, data: Mapping[str, Any]) -> dict[str, Any]:
        with self._lock:
            if data.get("candidate_id") is None:
                raise SandboxError(400, "candidate_id is required.")
            current = self._candidate(int(data["candidate_id"]))
            candidate = replace(current, **self._editable(data))
            self._candidates[candidate.id] = candidate
            return {"success": True, "candidate": candidate_to_wire(candidate)}

    @staticmethod
    def _editable(data: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "name": data["name"],
            "email": data["email"],
            "phone": data["phone"],
            "skills": data.get("skills", ""),
            "total_experience": data.get("total_experience", ""),
            "relevant_work_experience": data.get("relevant_work_experience", ""),
            "summary": data.get("summary", ""),
            "match_score": float(data.get("match_score") or 0.0),
            "call_status": data.get("call_status") or CallStatus.NOT_CALLED.value,
        }

    def delete_candidate(self, candidate_id: int) -> dict[str, Any]:
        with self._lock:
            self._candidate(candidate_id)
            del self._candidates[candidate_id]
            self._calls = {k: c for k, c in self._calls.items() if c.candidate_id != candidate_id}
            return {"success": True}

    def like(self, candidate_id: int, liked: bool) -> dict[str, Any]:
        with self._lock:
            candidate = self._candidate(candidate_id)
            self._candidates[candidate_id] = replace(candidate, liked=liked)
            return {"success": True}

    # -- calls -----------------------------------------------------------

    def schedule_calls(self, search_id: int, candidates: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
        with self._lock:
            self._search(search_id)
            scheduled = 0
            for payload in candidates:
                candidate_id = payload.get("candidate_id")
                if candidate_id is None or candidate_id not in self._candidates:
                    continue
                candidate = self._candidates[candidate_id]
                self._candidates[candidate_id] = replace(
                    candidate, call_status=CallStatus.SCHEDULED.value
                )
                call_id = self._next_call_id
                self._next_call_id += 1
                self._calls[call_id] = Call(
                    id=call_id,
                    candidate_id=candidate_id,
                    status=CallStatus.SCHEDULED.value,
                    transcript=(
                        TranscriptTurn(
                            speaker="assistant",
                            message=f"Hello {candidate.name}, this is a screening call.",
                            timestamp=datetime.now(timezone.utc).isoformat(),
                        ),
                    ),
                )
                scheduled += 1
            if not scheduled:
                raise SandboxError(404, "None of the candidates could be called.")
            return {"success": True, "scheduled": scheduled}

    # -- final selects ---------------------------------------------------

    def final_selects(self) -> dict[str, Any]:
        with self._lock:
            rows = [c for c in self._candidates.values() if c.hiring_status]
            return {"success": True, "candidates": [candidate_to_wire(c) for c in rows]}

    def mutate_final_selects(
        self,
        *,
        joined: Iterable[Mapping[str, Any]] = (),
        remove: Iterable[int] = (),
        add: Iterable[int] = (),
    ) -> dict[str, Any]:
        with self._lock:
            joined, remove, add = list(joined), list(remove), list(add)
            for candidate_id in [u["candidate_id"] for u in joined] + remove + add:
                self._candidate(candidate_id)
            for candidate_id in add:
                self._candidates[candidate_id] = replace(
                    self._candidates[candidate_id], hiring_status=True
                )
            for update in joined:
                candidate_id = update["candidate_id"]
                self._candidates[candidate_id] = replace(
                    self._candidates[candidate_id], join_status=bool(update["joined"])
                )
            for candidate_id in remove:
                self._candidates[candidate_id] = replace(
                    self._candidates[candidate_id], hiring_status=False, join_status=False
                )
            return {"success": True, "status": "ok"}

    # -- questions -------------------------------------------------------

    def custom_question(self, search_id: int) -> dict[str, Any]:
        with self._lock:
            return {"success": True, "custom_question": self._search(search_id).custom_question}

    def save_custom_question(self, search_id: int, question: str) -> dict[str, Any]:
        with self._lock:
            search = self._search(search_id)
            search.custom_question = question
            return {"success": True, "custom_question": search.custom_question}

    def question_suggestions(self, search_id: int) -> dict[str, Any]:
        with self._lock:
            search = self._search(search_id)
        questions = [
            template.format(skill=skill)
            for skill in split_skills(search.key_skills)
            for template in QUESTION_TEMPLATES
        ]
        questions += [q.format(role=search.job_role or "open") for q in GENERIC_QUESTIONS]
        return {"success": True, "questions": questions[:MAX_SUGGESTIONS]}

    # -- prefill sources -------------------------------------------------

    def history(self) -> dict[str, Any]:
        with self._lock:
            rows = sorted(self._searches.values(), key=lambda s: s.id, reverse=True)
            return {"success": True, "searches": [s.to_wire() for s in rows]}

    def add_task(self, task: Task) -> None:
        with self._lock:
            self._tasks.append(task)

    def inbox_tasks(self) -> dict[str, Any]:
        with self._lock:
            tasks = []
            for task in self._tasks:
                data = asdict(task)
                data["priority"] = task.priority.value
                data["status"] = task.status.value
                data["deadline"] = task.deadline.isoformat()
                tasks.append(data)
            return {"success": True, "tasks": tasks}
