"""Operator-facing notices: transient confirmations and persistent errors."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, List

from ..core.config import Settings, settings as default_settings


@dataclass(frozen=True)
class Notice:
    text: str
    kind: str
    expires_at: float | None = None

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class NoticeBoard:
    """Holds the notices a component wants the operator to see.

    Success and info notices auto-dismiss after ``NOTICE_TTL_SECONDS``;
    errors stay until ``dismiss()`` or ``clear()``.
    """

    def __init__(
        self,
        config: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = (config or default_settings).NOTICE_TTL_SECONDS
        self._clock = clock
        self._notices: List[Notice] = []

    def _prune(self, now: float) -> None:
        self._notices = [n for n in self._notices if not n.expired(now)]

    def _push(self, text: str, kind: str, transient: bool) -> Notice:
        now = self._clock()
        self._prune(now)
        notice = Notice(text=text, kind=kind, expires_at=now + self._ttl if transient else None)
        self._notices.append(notice)
        return notice

    def success(self, text: str) -> Notice:
        return self._push(text, "success", transient=True)

    def info(self, text: str) -> Notice:
        return self._push(text, "info", transient=True)

    def error(self, text: str) -> Notice:
        return self._push(text, "error", transient=False)

    def active(self) -> list[Notice]:
        self._prune(self._clock())
        return list(self._notices)

    def errors(self) -> list[str]:
        return [n.text for n in self.active() if n.kind == "error"]

    def latest(self) -> Notice | None:
        active = self.active()
        return active[-1] if active else None

    def dismiss(self, notice: Notice) -> None:
        self._notices = [n for n in self._notices if n is not notice]

    def clear(self) -> None:
        self._notices.clear()
