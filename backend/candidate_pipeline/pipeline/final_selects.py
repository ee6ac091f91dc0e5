"""Final-Selects Curator: joined tracking and removal for escalated candidates."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Mapping

from ..client.services import MatchingService
from ..core.config import Settings, settings as default_settings
from ..core.errors import InvalidTransitionError, PipelineError
from ..domain.models import FinalSelect
from .notices import NoticeBoard
from .table import Column, SortKey, TableView

logger = logging.getLogger(__name__)

HIGH_SCORE = 90


class FinalSelectTable(TableView[FinalSelect]):
    filters = {
        "all": lambda s: True,
        "joined": lambda s: s.joined,
        "pending": lambda s: not s.joined,
        "high-score": lambda s: s.candidate.match_score >= HIGH_SCORE,
    }
    sort_keys = {
        "match_score": SortKey(lambda s: s.candidate.match_score, descending=True),
        "name": SortKey(lambda s: s.candidate.name.lower()),
        "call_status": SortKey(lambda s: s.candidate.call_status),
    }
    columns = (
        Column("Name", lambda s: s.candidate.name),
        Column("Email", lambda s: s.candidate.email),
        Column("Phone", lambda s: s.candidate.phone),
        Column("Skills", lambda s: s.candidate.skills),
        Column("Match Score", lambda s: f"{s.candidate.match_score:g}"),
        Column("Call Status", lambda s: s.candidate.call_status),
        Column("Joined", lambda s: "Yes" if s.joined else "No"),
    )

    def row_id(self, row: FinalSelect) -> int:
        return row.id

    def search_text(self, row: FinalSelect) -> Iterable[str]:
        return (row.candidate.name, row.candidate.email, row.candidate.skills)


@dataclass(frozen=True)
class PendingRemoval:
    ids: tuple[int, ...]

    @property
    def count(self) -> int:
        return len(self.ids)

    @property
    def prompt(self) -> str:
        noun = "candidate" if self.count == 1 else "candidates"
        return f"Remove {self.count} {noun} from Final Selects?"


class FinalSelectsCurator:
    """View model for the final selects page."""

    def __init__(
        self,
        matching: MatchingService,
        notices: NoticeBoard | None = None,
        config: Settings | None = None,
    ) -> None:
        self._matching = matching
        self.notices = notices or NoticeBoard(config or default_settings)
        self.table = FinalSelectTable()
        self.loading = False
        self.busy = False
        self.removal_pending: PendingRemoval | None = None

    async def load(self) -> bool:
        self.loading = True
        try:
            selects = await self._matching.final_selects()
        except PipelineError as exc:
            logger.warning("loading final selects failed: %s", exc.message)
            self.notices.error(exc.message)
            return False
        finally:
            self.loading = False
        self.table.set_rows(selects)
        return True

    def visible(self) -> list[FinalSelect]:
        return self.table.visible()

    def set_filter(self, name: str) -> None:
        self.table.set_filter(name)

    def set_search_term(self, term: str) -> None:
        self.table.set_search_term(term)

    def set_sort(self, key: str | None) -> None:
        self.table.set_sort(key)

    def toggle_selected(self, candidate_id: int) -> bool:
        return self.table.toggle_selected(candidate_id)

    def select_all(self) -> None:
        self.table.select_all()

    @property
    def joined_count(self) -> int:
        return sum(1 for s in self.table.rows if s.joined)

    # -- joined ----------------------------------------------------------

    async def toggle_joined(self, candidate_id: int) -> bool:
        row = self.table.get(candidate_id)
        if row is None:
            self.notices.error("That candidate is no longer in the list.")
            return False
        return await self._set_joined({candidate_id: not row.joined})

    async def set_joined_selected(self, joined: bool) -> bool:
        targets = self.table.selected_visible()
        if not targets:
            self.notices.error("Select at least one candidate.")
            return False
        return await self._set_joined({s.id: joined for s in targets})

    async def _set_joined(self, updates: Mapping[int, bool]) -> bool:
        """Apply ``joined`` locally, then confirm; restore confirmed values on failure."""
        if self.busy:
            raise InvalidTransitionError("Another update is still in progress.")
        confirmed = {}
        for candidate_id, value in updates.items():
            row = self.table.get(candidate_id)
            if row is None:
                continue
            confirmed[candidate_id] = row.joined
            self.table.upsert(self._with_joined(row, value))
        self.busy = True
        try:
            await self._matching.mutate_final_selects(joined=updates)
        except PipelineError as exc:
            logger.warning("join status update failed: %s", exc.message)
            for candidate_id, value in confirmed.items():
                row = self.table.get(candidate_id)
                if row is not None:
                    self.table.upsert(self._with_joined(row, value))
            self.notices.error(exc.message)
            return False
        finally:
            self.busy = False
        if len(updates) > 1:
            self.notices.success(f"Updated join status for {len(updates)} candidates.")
        return True

    @staticmethod
    def _with_joined(row: FinalSelect, joined: bool) -> FinalSelect:
        return FinalSelect(candidate=replace(row.candidate, join_status=joined), joined=joined)

    # -- removal ---------------------------------------------------------

    def request_remove_selected(self) -> PendingRemoval | None:
        if self.removal_pending is not None:
            raise InvalidTransitionError("A removal is already awaiting confirmation.")
        ids = tuple(self.table.selection.effective(self.table.visible_ids()))
        if not ids:
            self.notices.error("Select at least one candidate.")
            return None
        self.removal_pending = PendingRemoval(ids)
        return self.removal_pending

    def cancel_removal(self) -> None:
        if not self.busy:
            self.removal_pending = None

    async def confirm_removal(self) -> bool:
        pending = self.removal_pending
        if pending is None or self.busy:
            raise InvalidTransitionError("There is no removal to confirm.")
        self.busy = True
        try:
            await self._matching.mutate_final_selects(remove=pending.ids)
        except PipelineError as exc:
            logger.warning("removing final selects failed: %s", exc.message)
            self.notices.error(exc.message)
            return False
        finally:
            self.busy = False
            self.removal_pending = None
        self.table.remove(pending.ids)
        self.notices.success(f"Removed {pending.count} candidate(s) from Final Selects.")
        return True

    def export_csv(self) -> str:
        return self.table.export_csv()
