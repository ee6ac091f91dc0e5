"""Search lifecycle endpoints: shortlist, processing, intake, history, tasks."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from starlette.datastructures import UploadFile

from ..sandbox.store import SandboxError, SandboxStore
from .deps import get_store, require_token

router = APIRouter(prefix="/api", tags=["searches"], dependencies=[Depends(require_token)])


async def _read_form(request: Request) -> tuple[dict[str, str], dict[str, UploadFile]]:
    form = await request.form()
    fields: dict[str, str] = {}
    files: dict[str, UploadFile] = {}
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            files[key] = value
        else:
            fields[key] = value
    return fields, files


def _is_pdf(upload: UploadFile) -> bool:
    return upload.content_type == "application/pdf" or (upload.filename or "").lower().endswith(".pdf")


@router.post("/shortlist")
async def create_shortlist(request: Request, store: SandboxStore = Depends(get_store)) -> dict[str, Any]:
    """Create a search from the full criteria form, or update it when ``search_id`` is sent."""
    fields, files = await _read_form(request)
    jd_file = files.get("jdFile")
    if jd_file is None or not _is_pdf(jd_file):
        raise SandboxError(400, "A job description PDF is required.")
    return store.shortlist(fields)


@router.post("/shortlist/simple")
async def create_simple_shortlist(
    request: Request, store: SandboxStore = Depends(get_store)
) -> dict[str, Any]:
    fields, files = await _read_form(request)
    jd_file = files.get("jdFile")
    if jd_file is not None and not _is_pdf(jd_file):
        raise SandboxError(400, "The job description must be a PDF file.")
    if not fields.get("resumeLink", "").strip():
        raise SandboxError(400, "Resume link is required.")
    return store.shortlist(fields, simple=True)


@router.get("/loading")
async def start_processing(store: SandboxStore = Depends(get_store)) -> dict[str, Any]:
    return store.start_processing()


@router.get("/check-processing")
async def check_processing(store: SandboxStore = Depends(get_store)) -> dict[str, Any]:
    return store.processing_status()


@router.get("/process/{search_id}")
async def intake_progress(search_id: int, store: SandboxStore = Depends(get_store)) -> dict[str, Any]:
    return store.intake_progress(search_id)


@router.post("/process/{search_id}")
async def submit_intake(
    search_id: int, request: Request, store: SandboxStore = Depends(get_store)
) -> dict[str, Any]:
    """Record supplemental data for the next shortlisted candidate."""
    fields, files = await _read_form(request)
    csv_text = None
    csv_file = files.get("csvFile")
    if csv_file is not None:
        csv_text = (await csv_file.read()).decode("utf-8", errors="replace")
    return store.submit_intake(search_id, fields, csv_text)


@router.get("/history")
async def history(store: SandboxStore = Depends(get_store)) -> dict[str, Any]:
    return store.history()


@router.get("/tasks/inbox")
async def inbox_tasks(store: SandboxStore = Depends(get_store)) -> dict[str, Any]:
    return store.inbox_tasks()
