"""Jira issue-key extraction from merge request titles and descriptions."""

from __future__ import annotations

import re

JIRA_URL_RE = re.compile(r"https?://[^\s/]+/browse/([A-Z][A-Z0-9_]+-\d+)", re.IGNORECASE)
JIRA_KEY_RE = re.compile(r"\b([A-Z][A-Z0-9_]+-\d+)\b")


def extract_issue_keys(text: str | None) -> list[str]:
    """Return unique upper-cased issue keys in order of first appearance.

    Browse links are collected first (any case), then bare keys, which must
    already be upper case.

    Examples
    --------
    >>> extract_issue_keys("Fixes https://jira.example.com/browse/abc-12 and XYZ-3, ABC-12")
    ['ABC-12', 'XYZ-3']
    """
    if not text:
        return []
    seen: dict[str, None] = {}
    for match in JIRA_URL_RE.finditer(text):
        seen.setdefault(match.group(1).upper(), None)
    for match in JIRA_KEY_RE.finditer(text):
        seen.setdefault(match.group(1).upper(), None)
    return list(seen)
