"""Request dependencies shared by the sandbox routers."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from ..core.config import Settings
from ..sandbox.store import SandboxStore


def get_store(request: Request) -> SandboxStore:
    return request.app.state.store


def require_token(request: Request) -> str:
    """Accept any bearer token, or only ``SANDBOX_TOKEN`` when one is configured."""
    config: Settings = request.app.state.settings
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    if config.SANDBOX_TOKEN and token.strip() != config.SANDBOX_TOKEN:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid bearer token")
    return token.strip()
