"""Deadline urgency tiers for assigned tasks.

Urgency is derived on read and never stored. Naive deadlines are read in
the configured business time zone.
"""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import datetime
from typing import Iterable

import pytz

from ..core.config import settings
from .models import Task, TaskPriority, TaskStatus, Urgency

_DAY_SECONDS = 24 * 60 * 60


def _aware(value: datetime, tz: pytz.BaseTzInfo) -> datetime:
    if value.tzinfo is None:
        return tz.localize(value)
    return value


def days_until(deadline: datetime, now: datetime | None = None, tz_name: str | None = None) -> int:
    """Whole days left until ``deadline``, rounded up; negative once overdue."""
    tz = pytz.timezone(tz_name or settings.TZ)
    deadline = _aware(deadline, tz)
    now = _aware(now, tz) if now is not None else datetime.now(pytz.UTC)
    return math.ceil((deadline - now).total_seconds() / _DAY_SECONDS)


def classify_urgency(task: Task, now: datetime | None = None, tz_name: str | None = None) -> Urgency:
    """Return the urgency tier of a task.

    Overdue applies to any priority; urgent (≤ 1 day) and soon (≤ 3 days)
    only to high-priority tasks. Completed tasks are always normal.
    """
    if task.status == TaskStatus.COMPLETED:
        return Urgency.NORMAL
    diff = days_until(task.deadline, now=now, tz_name=tz_name)
    if diff < 0:
        return Urgency.OVERDUE
    if task.priority == TaskPriority.HIGH:
        if diff <= 1:
            return Urgency.URGENT
        if diff <= 3:
            return Urgency.SOON
    return Urgency.NORMAL


def group_by_urgency(
    tasks: Iterable[Task], now: datetime | None = None, tz_name: str | None = None
) -> dict[Urgency, list[Task]]:
    grouped: dict[Urgency, list[Task]] = defaultdict(list)
    for task in tasks:
        grouped[classify_urgency(task, now=now, tz_name=tz_name)].append(task)
    return dict(grouped)
