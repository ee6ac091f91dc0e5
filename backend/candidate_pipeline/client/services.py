"""Typed facades over the matching, calling and question-suggestion services.

Pipeline components depend on these classes only. Each method sends one
request through ``ApiClient`` and returns domain objects or validated
schema instances; failures surface as ``core.errors`` exceptions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..core.errors import ServiceError, TransportError
from ..domain import models, schemas
from .http import ApiClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadFile:
    """A file attached to a multipart request."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    def as_httpx(self) -> tuple[str, bytes, str]:
        return (self.filename, self.content, self.content_type)


@dataclass(frozen=True)
class ResultsPage:
    candidates: tuple[models.Candidate, ...]
    total: int
    calls_scheduled: int
    rescheduled_calls: int
    company: str = ""


@dataclass(frozen=True)
class CandidateDetail:
    candidate: models.Candidate
    calls: tuple[models.Call, ...]


M = TypeVar("M", bound=BaseModel)


def _parse(model: Type[M], body: Mapping[str, Any]) -> M:
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        logger.warning("unexpected %s payload: %s", model.__name__, exc)
        raise TransportError("The server sent an unexpected response.") from exc


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def _form(fields: Mapping[str, Any]) -> dict[str, str]:
    return {key: _form_value(value) for key, value in fields.items()}


class MatchingService:
    """Search, intake, results, candidate and final-selects endpoints."""

    def __init__(self, client: ApiClient) -> None:
        self._client = client

    # -- shortlist -------------------------------------------------------

    async def shortlist(
        self, fields: Mapping[str, Any], jd_file: UploadFile | None = None
    ) -> schemas.ShortlistOut:
        files = {"jdFile": jd_file.as_httpx()} if jd_file else None
        body = await self._client.post("/api/shortlist", data=_form(fields), files=files)
        return _parse(schemas.ShortlistOut, body)

    async def shortlist_simple(
        self, fields: Mapping[str, Any], jd_file: UploadFile | None = None
    ) -> schemas.ShortlistOut:
        files = {"jdFile": jd_file.as_httpx()} if jd_file else None
        body = await self._client.post("/api/shortlist/simple", data=_form(fields), files=files)
        return _parse(schemas.ShortlistOut, body)

    # -- processing ------------------------------------------------------

    async def trigger_processing(self) -> None:
        await self._client.get("/api/loading")

    async def check_processing(self) -> schemas.ProcessingStatusOut:
        body = await self._client.get("/api/check-processing")
        return _parse(schemas.ProcessingStatusOut, body)

    # -- intake ----------------------------------------------------------

    async def intake_progress(self, search_id: int) -> schemas.IntakeProgressOut:
        body = await self._client.get(f"/api/process/{search_id}")
        return _parse(schemas.IntakeProgressOut, body)

    async def submit_intake(
        self,
        search_id: int,
        fields: Mapping[str, Any],
        csv_file: UploadFile | None = None,
    ) -> schemas.IntakeSubmitOut:
        files = {"csvFile": csv_file.as_httpx()} if csv_file else None
        body = await self._client.post(
            f"/api/process/{search_id}", data=_form(fields), files=files
        )
        return _parse(schemas.IntakeSubmitOut, body)

    # -- results and candidates -----------------------------------------

    async def results(self, search_id: int) -> ResultsPage:
        body = await self._client.get("/api/results", params={"searchID": search_id})
        out = _parse(schemas.ResultsOut, body)
        return ResultsPage(
            candidates=tuple(c.to_domain() for c in out.candidates),
            total=out.total,
            calls_scheduled=out.calls_scheduled,
            rescheduled_calls=out.rescheduled_calls,
            company=out.company,
        )

    async def get_candidate(self, candidate_id: int) -> CandidateDetail:
        body = await self._client.get("/api/candidate", params={"candidate_id": candidate_id})
        out = _parse(schemas.CandidateEnvelope, body)
        if out.candidate is None:
            raise ServiceError(f"Candidate {candidate_id} was not found.")
        return CandidateDetail(
            candidate=out.candidate.to_domain(),
            calls=tuple(call.to_domain() for call in out.calls),
        )

    async def create_candidate(self, payload: schemas.CandidateIn) -> models.Candidate:
        body = await self._client.post("/api/candidate", json=payload.model_dump(mode="json"))
        return self._candidate_from(body)

    async def update_candidate(self, payload: schemas.CandidateIn) -> models.Candidate:
        body = await self._client.put("/api/candidate", json=payload.model_dump(mode="json"))
        return self._candidate_from(body)

    async def delete_candidate(self, candidate_id: int) -> None:
        await self._client.delete("/api/candidate", params={"candidate_id": candidate_id})

    async def like(self, candidate_id: int, liked: bool) -> None:
        payload = schemas.LikeIn(candidate_id=candidate_id, liked=liked)
        await self._client.post("/api/like-candidate", json=payload.model_dump())

    @staticmethod
    def _candidate_from(body: Mapping[str, Any]) -> models.Candidate:
        out = _parse(schemas.CandidateEnvelope, body)
        if out.candidate is None:
            raise ServiceError("The server did not return the candidate.")
        return out.candidate.to_domain()

    # -- custom question -------------------------------------------------

    async def get_custom_question(self, search_id: int) -> str:
        body = await self._client.get("/api/custom-question", params={"search_id": search_id})
        return _parse(schemas.CustomQuestionOut, body).custom_question

    async def save_custom_question(self, search_id: int, question: str) -> str:
        payload = schemas.CustomQuestionIn(search_id=search_id, question=question)
        body = await self._client.post("/api/custom-question", json=payload.model_dump())
        return _parse(schemas.CustomQuestionOut, body).custom_question

    # -- final selects ---------------------------------------------------

    async def final_selects(self) -> list[models.FinalSelect]:
        body = await self._client.get("/api/final-selects")
        out = _parse(schemas.CandidateListOut, body)
        return [models.FinalSelect.from_candidate(c.to_domain()) for c in out.candidates]

    async def mutate_final_selects(
        self,
        *,
        joined: Mapping[int, bool] | None = None,
        remove: Iterable[int] = (),
        add: Iterable[int] = (),
    ) -> None:
        payload = schemas.FinalSelectsIn(
            joined=[
                schemas.JoinUpdate(candidate_id=cid, joined=value)
                for cid, value in (joined or {}).items()
            ],
            remove_from_final=list(remove),
            add_to_final=list(add),
        )
        await self._client.post("/api/final-selects", json=payload.model_dump())

    # -- prefill sources -------------------------------------------------

    async def history(self) -> list[models.Search]:
        body = await self._client.get("/api/history")
        return [s.to_domain() for s in _parse(schemas.HistoryOut, body).searches]

    async def inbox_tasks(self) -> list[models.Task]:
        body = await self._client.get("/api/tasks/inbox")
        return [t.to_domain() for t in _parse(schemas.TasksOut, body).tasks]


class CallingService:
    """Outbound screening calls; status updates arrive out of band."""

    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def call_single(self, search_id: int, candidate: schemas.CallCandidate) -> None:
        payload = schemas.CallSingleIn(search_id=search_id, candidate=candidate)
        await self._client.post("/api/call-single", json=payload.model_dump())

    async def call_batch(
        self, search_id: int, candidates: Sequence[schemas.CallCandidate]
    ) -> None:
        payload = schemas.CallBatchIn(search_id=search_id, candidates=list(candidates))
        logger.info("requesting %d calls", len(payload.candidates), extra={"search_id": search_id})
        await self._client.post("/api/call", json=payload.model_dump())


class QuestionService:
    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def suggestions(self, search_id: int) -> list[str]:
        body = await self._client.get("/api/get-questions", params={"search_id": search_id})
        return _parse(schemas.QuestionsOut, body).questions


@dataclass(frozen=True)
class Services:
    """All service facades sharing one ``ApiClient``."""

    client: ApiClient
    matching: MatchingService
    calling: CallingService
    questions: QuestionService

    @classmethod
    def over(cls, client: ApiClient) -> "Services":
        return cls(client, MatchingService(client), CallingService(client), QuestionService(client))

    async def aclose(self) -> None:
        await self.client.aclose()
