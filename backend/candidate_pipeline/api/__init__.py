"""Routers of the sandbox matching service."""

from fastapi import APIRouter

from . import candidates, health, searches

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(searches.router)
api_router.include_router(candidates.router)
