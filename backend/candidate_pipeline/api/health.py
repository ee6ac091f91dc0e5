"""Liveness endpoint of the sandbox matching service."""

from fastapi import APIRouter, Depends

from ..sandbox.store import SandboxStore
from .deps import get_store

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(store: SandboxStore = Depends(get_store)) -> dict[str, object]:
    """Report that the service is up and how many searches it holds."""
    return {"status": "ok", "searches": store.search_count()}
