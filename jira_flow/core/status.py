"""Status name helpers and the transition precondition check.

Before moving a set of issues, the caller asks which of them already sit in
the target status. The check fans out one status fetch per issue and folds
the answers into a ``StatusClassification``; deciding whether to warn is left
to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING

from .errors import JiraFlowError
from .models import IssueStatus, StatusCheckRequest, StatusClassification

if TYPE_CHECKING:
    from .jira_client import JiraAPI

NO_KEYS_MESSAGE = "No issue keys provided."


def clean_status_name(value: str | None) -> str:
    """Sanitize status string, converting null-like values to "Unknown".

    Parameters
    ----------
    value : str | None
        Raw status string.

    Returns
    -------
    str
        Cleaned status string or "Unknown" for empty/null values.
    """
    if not value:
        return "Unknown"
    text = str(value).strip()
    if not text:
        return "Unknown"
    if text.lower() in {"nan", "none", "null"}:
        return "Unknown"
    return text


def status_matches(current: str | None, names: Iterable[str]) -> bool:
    """Case-insensitive check of ``current`` against any acceptable name.

    Examples
    --------
    >>> status_matches("In Review", ["Code Review", "in review"])
    True
    >>> status_matches("Unknown", [])
    False
    """
    if not current:
        return False
    wanted = {n.strip().lower() for n in names if n and n.strip()}
    return current.strip().lower() in wanted


class StatusChecker:
    def __init__(self, api: JiraAPI):
        self.api = api

    def check_statuses(self, request: StatusCheckRequest) -> StatusClassification:
        if not request.issue_keys:
            return StatusClassification(all_in_target=False, errors=(NO_KEYS_MESSAGE,))
        logger = logging.getLogger(__name__)
        names = request.acceptable_names()
        slots: list[IssueStatus | None] = [None] * len(request.issue_keys)
        errors: list[str] = []

        with ThreadPoolExecutor(max_workers=len(request.issue_keys)) as pool:
            futures = {
                pool.submit(self.api.get_status, key): idx for idx, key in enumerate(request.issue_keys)
            }
            for fut in as_completed(futures):
                idx = futures[fut]
                key = request.issue_keys[idx]
                try:
                    current = fut.result()
                except JiraFlowError as exc:
                    logger.warning("Status check failed for %s: %s", key, exc)
                    errors.append(str(exc))
                    continue
                except Exception as exc:
                    logger.exception("Unexpected error reading status of %s", key)
                    errors.append(f"{key}: status check failed: {exc!r}")
                    continue
                slots[idx] = IssueStatus(key, current, status_matches(current, names))

        per_issue = tuple(s for s in slots if s is not None)
        all_in_target = not errors and all(s.is_in_target for s in per_issue)
        return StatusClassification(all_in_target=all_in_target, per_issue=per_issue, errors=tuple(errors))
