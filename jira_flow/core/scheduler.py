"""Worklog time-slot scheduling.

Pure helpers with no network dependency: splitting a requested total across
issues, quantizing instants to 5-minute boundaries, and finding the earliest
free slot that avoids worklogs already booked today. All instants are epoch
milliseconds.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime

import pandas as pd
import pytz

from .config import MAX_SLOT_ATTEMPTS, MIN_WORKLOG_MINUTES, SLOT_MILLIS, SLOT_MINUTES
from .models import BusyInterval, WorklogRequest

JIRA_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S.000%z"


def distribute_minutes(total: int, count: int) -> list[int]:
    """Split ``total`` minutes across ``count`` issues.

    Each share is the remaining total divided by the issues left, rounded up
    to a multiple of 5 with a floor of 5. Earlier issues absorb the rounding,
    so the sum can exceed ``total`` but never falls short of it.

    Examples
    --------
    >>> distribute_minutes(17, 3)
    [10, 5, 5]
    >>> distribute_minutes(0, 2)
    [5, 5]
    """
    if count <= 0:
        return []
    allocations: list[int] = []
    remaining = total
    for i in range(count):
        share = remaining / (count - i)
        rounded = math.ceil(share / SLOT_MINUTES) * SLOT_MINUTES
        rounded = max(rounded, MIN_WORKLOG_MINUTES)
        allocations.append(rounded)
        remaining -= rounded
    return allocations


def build_worklog_requests(
    issue_keys: Sequence[str], total_minutes: int, comment: str
) -> list[WorklogRequest]:
    if total_minutes <= 0 or not issue_keys:
        return []
    allocations = distribute_minutes(total_minutes, len(issue_keys))
    return [WorklogRequest(key, minutes, comment) for key, minutes in zip(issue_keys, allocations)]


def round_up_to_5_minutes(millis: int) -> int:
    rem = millis % SLOT_MILLIS
    return millis if rem == 0 else millis + SLOT_MILLIS - rem


def find_free_slot(busy: list[BusyInterval], proposed_start: int, duration: int) -> int:
    """Earliest 5-minute-aligned start at or after ``proposed_start`` clear of ``busy``.

    ``busy`` is sorted in place. On the first overlap the candidate jumps to
    the end of the blocking interval (rounded up) and the scan restarts. After
    ``MAX_SLOT_ATTEMPTS`` hops the proposed start is returned unchanged and the
    overlap is accepted.
    """
    busy.sort(key=lambda iv: iv.start_millis)
    start = proposed_start
    for _ in range(MAX_SLOT_ATTEMPTS):
        end = start + duration
        blocker = next((iv for iv in busy if iv.overlaps(start, end)), None)
        if blocker is None:
            return start
        start = round_up_to_5_minutes(blocker.end_millis)
    return proposed_start


def reserve_slot(busy: list[BusyInterval], anchor: int, minutes: int) -> int:
    """Allocate a slot for ``minutes`` and register it in ``busy``."""
    duration = minutes * 60 * 1000
    start = find_free_slot(busy, anchor, duration)
    busy.append(BusyInterval(start, start + duration))
    return start


def to_epoch_millis(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = pytz.UTC.localize(moment)
    return int(moment.timestamp() * 1000)


def format_jira_datetime(millis: int, timezone: str) -> str:
    """Render ``millis`` as Jira's ``started`` value, e.g. ``2024-09-01T10:05:00.000-0300``."""
    tz = pytz.timezone(timezone)
    moment = datetime.fromtimestamp(millis / 1000, tz=pytz.UTC).astimezone(tz)
    return moment.strftime(JIRA_DATETIME_FORMAT)


def parse_jira_datetime(value) -> int | None:
    if value is None or value == "":
        return None
    try:
        ts = pd.to_datetime(value, errors="coerce", utc=True)
    except (TypeError, ValueError):
        return None
    if not isinstance(ts, pd.Timestamp):
        return None
    return int(ts.value // 1_000_000)
