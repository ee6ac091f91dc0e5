"""Stage identifiers and the navigation outcome components hand back."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Stage(str, Enum):
    SHORTLIST = "shortlist"
    PROCESSING = "processing"
    INTAKE = "intake"
    RESULTS = "results"
    FINAL_SELECTS = "final_selects"


@dataclass(frozen=True)
class Navigate:
    """Request to move to ``stage`` for ``search_id``; routing is the caller's job."""

    stage: Stage
    search_id: int | None = None
