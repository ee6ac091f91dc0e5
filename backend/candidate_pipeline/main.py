"""Sandbox matching service entry point."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api import api_router
from .core.config import Settings, settings as default_settings
from .core.logging import RequestIDMiddleware, init_logging
from .sandbox.store import SandboxError, SandboxStore


async def sandbox_error_handler(request: Request, exc: SandboxError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.body())


def create_app(store: SandboxStore | None = None, config: Settings | None = None) -> FastAPI:
    """Create and configure the sandbox FastAPI application."""
    config = config or default_settings
    init_logging(config.LOG_LEVEL)

    app = FastAPI(title="Candidate pipeline sandbox")
    app.state.settings = config
    app.state.store = store or SandboxStore(
        processing_delay=config.SANDBOX_PROCESSING_DELAY_SECONDS
    )
    app.add_middleware(RequestIDMiddleware)
    app.add_exception_handler(SandboxError, sandbox_error_handler)
    app.include_router(api_router)
    return app


app = create_app()
