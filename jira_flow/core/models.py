"""Domain data models for batch transitions, worklogs, and status checks."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class WorklogRequest:
    issue_key: str
    minutes: int
    comment: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> WorklogRequest:
        try:
            minutes = int(data.get("minutes") or 0)
        except (TypeError, ValueError):
            minutes = 0
        return cls(
            issue_key=str(data.get("issueKey") or data.get("issue_key") or ""),
            minutes=minutes,
            comment=str(data.get("comment") or ""),
        )


@dataclass(slots=True)
class TransitionRequest:
    issue_keys: list[str] = field(default_factory=list)
    transition_name: str | None = None


@dataclass(slots=True)
class BatchRequest:
    issue_keys: list[str] = field(default_factory=list)
    transition_name: str | None = None
    worklogs: list[WorklogRequest] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> BatchRequest:
        return cls(
            issue_keys=[str(k) for k in data.get("issueKeys") or []],
            transition_name=data.get("transitionName") or None,
            worklogs=[WorklogRequest.from_mapping(w) for w in data.get("worklogs") or []],
        )

    @property
    def transitions(self) -> TransitionRequest:
        return TransitionRequest(list(self.issue_keys), self.transition_name)


@dataclass(slots=True)
class StatusCheckRequest:
    issue_keys: list[str] = field(default_factory=list)
    target_status: str = ""
    target_statuses: list[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> StatusCheckRequest:
        return cls(
            issue_keys=[str(k) for k in data.get("issueKeys") or []],
            target_status=str(data.get("targetStatus") or ""),
            target_statuses=[str(s) for s in data.get("targetStatuses") or []],
        )

    def acceptable_names(self) -> list[str]:
        names: list[str] = []
        for value in [self.target_status, *self.target_statuses]:
            value = (value or "").strip()
            if value and value not in names:
                names.append(value)
        return names


@dataclass(slots=True, order=True)
class BusyInterval:
    """Half-open ``[start_millis, end_millis)`` span already booked today."""

    start_millis: int
    end_millis: int

    def overlaps(self, start: int, end: int) -> bool:
        return start < self.end_millis and end > self.start_millis


@dataclass(slots=True)
class BatchResult:
    success_count: int = 0
    failed_count: int = 0
    errors: list[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_success(self) -> None:
        with self._lock:
            self.success_count += 1

    def record_failure(self, message: str) -> None:
        with self._lock:
            self.failed_count += 1
            self.errors.append(message)

    @property
    def attempted(self) -> int:
        return self.success_count + self.failed_count

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success_count, "failed": self.failed_count, "errors": list(self.errors)}


@dataclass(slots=True, frozen=True)
class IssueStatus:
    issue_key: str
    current_status: str
    is_in_target: bool


@dataclass(slots=True, frozen=True)
class StatusClassification:
    all_in_target: bool
    per_issue: tuple[IssueStatus, ...] = ()
    errors: tuple[str, ...] = ()

    @property
    def in_target(self) -> list[IssueStatus]:
        return [s for s in self.per_issue if s.is_in_target]

    @property
    def not_in_target(self) -> list[IssueStatus]:
        return [s for s in self.per_issue if not s.is_in_target]

    def to_dict(self) -> dict[str, Any]:
        return {
            "allInTargetStatus": self.all_in_target,
            "statuses": [
                {
                    "issueKey": s.issue_key,
                    "currentStatus": s.current_status,
                    "isInTargetStatus": s.is_in_target,
                }
                for s in self.per_issue
            ],
            "errors": list(self.errors),
        }
