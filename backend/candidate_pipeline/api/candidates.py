"""Results, candidate, call, final-selects and question endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from ..domain.schemas import (
    CallBatchIn,
    CallSingleIn,
    CandidateIn,
    CustomQuestionIn,
    FinalSelectsIn,
    LikeIn,
)
from ..sandbox.store import SandboxStore
from .deps import get_store, require_token

router = APIRouter(prefix="/api", tags=["candidates"], dependencies=[Depends(require_token)])


@router.get("/results")
async def results(
    search_id: int = Query(..., alias="searchID"), store: SandboxStore = Depends(get_store)
) -> dict[str, Any]:
    return store.results(search_id)


@router.get("/candidate")
async def get_candidate(
    candidate_id: int = Query(...), store: SandboxStore = Depends(get_store)
) -> dict[str, Any]:
    """Return a candidate with its call records."""
    return store.get_candidate(candidate_id)


@router.post("/candidate")
async def create_candidate(
    payload: CandidateIn, store: SandboxStore = Depends(get_store)
) -> dict[str, Any]:
    return store.create_candidate(payload.model_dump())


@router.put("/candidate")
async def update_candidate(
    payload: CandidateIn, store: SandboxStore = Depends(get_store)
) -> dict[str, Any]:
    return store.update_candidate(payload.model_dump())


@router.delete("/candidate")
async def delete_candidate(
    candidate_id: int = Query(...), store: SandboxStore = Depends(get_store)
) -> dict[str, Any]:
    """Delete a candidate and every call recorded for it."""
    return store.delete_candidate(candidate_id)


@router.post("/like-candidate")
async def like_candidate(payload: LikeIn, store: SandboxStore = Depends(get_store)) -> dict[str, Any]:
    return store.like(payload.candidate_id, payload.liked)


@router.post("/call-single")
async def call_single(payload: CallSingleIn, store: SandboxStore = Depends(get_store)) -> dict[str, Any]:
    return store.schedule_calls(payload.search_id, [payload.candidate.model_dump()])


@router.post("/call")
async def call_batch(payload: CallBatchIn, store: SandboxStore = Depends(get_store)) -> dict[str, Any]:
    return store.schedule_calls(payload.search_id, [c.model_dump() for c in payload.candidates])


@router.get("/final-selects")
async def final_selects(store: SandboxStore = Depends(get_store)) -> dict[str, Any]:
    return store.final_selects()


@router.post("/final-selects")
async def mutate_final_selects(
    payload: FinalSelectsIn, store: SandboxStore = Depends(get_store)
) -> dict[str, Any]:
    """Apply join-status updates, additions and removals in one request."""
    return store.mutate_final_selects(
        joined=[update.model_dump() for update in payload.joined],
        remove=payload.remove_from_final,
        add=payload.add_to_final,
    )


@router.get("/custom-question")
async def get_custom_question(
    search_id: int = Query(...), store: SandboxStore = Depends(get_store)
) -> dict[str, Any]:
    return store.custom_question(search_id)


@router.post("/custom-question")
async def save_custom_question(
    payload: CustomQuestionIn, store: SandboxStore = Depends(get_store)
) -> dict[str, Any]:
    return store.save_custom_question(payload.search_id, payload.question)


@router.get("/get-questions")
async def question_suggestions(
    search_id: int = Query(...), store: SandboxStore = Depends(get_store)
) -> dict[str, Any]:
    return store.question_suggestions(search_id)
