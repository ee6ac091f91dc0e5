"""Filter, search, sort, selection and CSV export shared by the list views.

A ``TableView`` owns the loaded rows and derives the visible rows from the
active category filter AND the free-text search term. Bulk actions must go
through ``selected_visible()`` so a selection made under one filter never
reaches rows that are hidden under another.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Iterable, List, Sequence, Tuple, TypeVar

import pandas as pd

T = TypeVar("T")

Predicate = Callable[[Any], bool]


class Selection:
    """A set of row ids picked by the operator."""

    def __init__(self) -> None:
        self._ids: set[int] = set()

    def __contains__(self, row_id: object) -> bool:
        return row_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    @property
    def ids(self) -> frozenset[int]:
        return frozenset(self._ids)

    def toggle(self, row_id: int) -> bool:
        if row_id in self._ids:
            self._ids.discard(row_id)
            return False
        self._ids.add(row_id)
        return True

    def select(self, row_ids: Iterable[int]) -> None:
        self._ids.update(row_ids)

    def discard(self, row_ids: Iterable[int]) -> None:
        self._ids.difference_update(row_ids)

    def clear(self) -> None:
        self._ids.clear()

    def effective(self, visible_ids: Sequence[int]) -> list[int]:
        """Selected ids that are currently visible, in visible order."""
        return [row_id for row_id in visible_ids if row_id in self._ids]


@dataclass(frozen=True)
class SortKey:
    key: Callable[[Any], Any]
    descending: bool = False


@dataclass(frozen=True)
class Column:
    header: str
    value: Callable[[Any], Any]


class TableView(Generic[T]):
    """Client-side view over a list of rows.

    Subclasses declare ``filters`` (category name to predicate),
    ``sort_keys`` and ``columns`` and implement ``row_id`` and
    ``search_text``. ``predicate_for`` may be overridden to accept
    categories that are not known up front.
    """

    filters: Dict[str, Predicate] = {"all": lambda row: True}
    sort_keys: Dict[str, SortKey] = {}
    columns: Tuple[Column, ...] = ()

    def __init__(self, rows: Iterable[T] = ()) -> None:
        self._rows: List[T] = list(rows)
        self._filter = "all"
        self._search_term = ""
        self._sort: str | None = None
        self.selection = Selection()

    # -- rows ------------------------------------------------------------

    def row_id(self, row: T) -> int:
        raise NotImplementedError

    def search_text(self, row: T) -> Iterable[str]:
        raise NotImplementedError

    @property
    def rows(self) -> list[T]:
        return list(self._rows)

    def set_rows(self, rows: Iterable[T]) -> None:
        self._rows = list(rows)
        self.selection.clear()

    def get(self, row_id: int) -> T | None:
        for row in self._rows:
            if self.row_id(row) == row_id:
                return row
        return None

    def upsert(self, row: T) -> bool:
        """Replace the row with the same id in place, else prepend it.

        Returns True when an existing row was replaced.
        """
        row_id = self.row_id(row)
        for i, existing in enumerate(self._rows):
            if self.row_id(existing) == row_id:
                self._rows[i] = row
                return True
        self._rows.insert(0, row)
        return False

    def remove(self, row_ids: Iterable[int]) -> None:
        doomed = set(row_ids)
        self._rows = [row for row in self._rows if self.row_id(row) not in doomed]
        self.selection.discard(doomed)

    # -- filter, search, sort -------------------------------------------

    @property
    def filter(self) -> str:
        return self._filter

    @property
    def search_term(self) -> str:
        return self._search_term

    @property
    def sort(self) -> str | None:
        return self._sort

    def predicate_for(self, name: str) -> Predicate:
        try:
            return self.filters[name]
        except KeyError:
            raise ValueError(f"unknown filter {name!r}") from None

    def set_filter(self, name: str) -> None:
        self.predicate_for(name)
        self._filter = name
        self.selection.clear()

    def set_search_term(self, term: str) -> None:
        self._search_term = term
        self.selection.clear()

    def set_sort(self, name: str | None) -> None:
        if name is not None and name not in self.sort_keys:
            raise ValueError(f"unknown sort key {name!r}")
        self._sort = name

    def _matches_search(self, row: T) -> bool:
        term = self._search_term.strip().lower()
        if not term:
            return True
        return any(term in (text or "").lower() for text in self.search_text(row))

    def visible(self) -> list[T]:
        predicate = self.predicate_for(self._filter)
        rows = [row for row in self._rows if predicate(row) and self._matches_search(row)]
        if self._sort is not None:
            sort_key = self.sort_keys[self._sort]
            rows.sort(key=sort_key.key, reverse=sort_key.descending)
        return rows

    def visible_ids(self) -> list[int]:
        return [self.row_id(row) for row in self.visible()]

    # -- selection -------------------------------------------------------

    def toggle_selected(self, row_id: int) -> bool:
        return self.selection.toggle(row_id)

    def select_all(self) -> None:
        self.selection.select(self.visible_ids())

    def selected_visible(self) -> list[T]:
        return [row for row in self.visible() if self.row_id(row) in self.selection]

    # -- export ----------------------------------------------------------

    def export_csv(self) -> str:
        """Serialize the visible rows as CSV with standard quoting."""
        headers = [column.header for column in self.columns]
        records = [[column.value(row) for column in self.columns] for row in self.visible()]
        return pd.DataFrame(records, columns=headers).to_csv(index=False)
