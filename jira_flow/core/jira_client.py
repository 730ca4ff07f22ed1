"""Jira API client wrapper (REST v2 transitions, status, and worklogs)."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

import requests
from jira import JIRA, JIRAError

from .config import (
    REST_API_VERSION,
    TODAY_WORKLOGS_JQL,
    TODAY_WORKLOGS_MAX_RESULTS,
    WORKLOG_FETCH_MAX_WORKERS,
    JiraSettings,
)
from .errors import RemoteError
from .models import BusyInterval
from .scheduler import format_jira_datetime, parse_jira_datetime
from .status import clean_status_name

API_PREFIX = f"/rest/api/{REST_API_VERSION}"

logger = logging.getLogger(__name__)


class JiraAPI:
    def __init__(self, settings: JiraSettings):
        settings.require()
        self.server = settings.server
        self.timezone = settings.timezone
        auth: dict[str, Any]
        if settings.token:
            auth = {"token_auth": settings.token}
        else:
            auth = {"basic_auth": (settings.username, settings.secret)}
        self.client = JIRA(
            options={"server": self.server, "rest_api_version": REST_API_VERSION},
            get_server_info=False,
            max_retries=0,
            **auth,
        )
        self.session = self.client._session

    # ------------------ Transport ------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self.server}{path}"
        logger.debug("%s %s", method, path)
        try:
            resp = self.session.request(method, url, params=params, json=payload)
        except JIRAError as exc:
            raise RemoteError(path, status=exc.status_code, detail=exc.text) from exc
        except requests.RequestException as exc:
            raise RemoteError(path, detail=str(exc)) from exc
        if resp.status_code >= 400:
            raise RemoteError(path, status=resp.status_code, detail=(resp.text or "")[:200])
        content_type = resp.headers.get("content-type") or ""
        if "json" not in content_type:
            return resp.text
        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteError(path, status=resp.status_code, detail="invalid JSON body") from exc

    # ------------------ Issues ------------------
    def list_transitions(self, issue_key: str) -> list[dict[str, str]]:
        data = self._request("GET", f"{API_PREFIX}/issue/{issue_key}/transitions")
        if not isinstance(data, dict):
            return []
        transitions = data.get("transitions") or []
        return [{"id": str(t.get("id")), "name": t.get("name") or ""} for t in transitions]

    def apply_transition(self, issue_key: str, transition_id: str) -> None:
        self._request(
            "POST",
            f"{API_PREFIX}/issue/{issue_key}/transitions",
            payload={"transition": {"id": transition_id}},
        )

    def get_status(self, issue_key: str) -> str:
        data = self._request("GET", f"{API_PREFIX}/issue/{issue_key}", params={"fields": "status"})
        fields = (data.get("fields") if isinstance(data, dict) else None) or {}
        status = fields.get("status") if isinstance(fields, dict) else None
        return clean_status_name(status.get("name") if isinstance(status, dict) else None)

    def whoami(self) -> dict[str, Any]:
        data = self._request("GET", f"{API_PREFIX}/myself")
        return data if isinstance(data, dict) else {}

    def search_issue_keys(self, jql: str, max_results: int = TODAY_WORKLOGS_MAX_RESULTS) -> list[str]:
        data = self._request(
            "GET",
            f"{API_PREFIX}/search",
            params={"jql": jql, "fields": "key", "maxResults": max_results},
        )
        if not isinstance(data, dict):
            return []
        issues = data.get("issues") or []
        return [i["key"] for i in issues if isinstance(i, dict) and i.get("key")]

    # ------------------ Worklogs ------------------
    def get_issue_worklogs(self, issue_key: str) -> list[dict[str, Any]]:
        data = self._request("GET", f"{API_PREFIX}/issue/{issue_key}/worklog")
        if not isinstance(data, dict):
            return []
        return data.get("worklogs") or []

    def post_worklog(self, issue_key: str, start_millis: int, minutes: int, comment: str) -> None:
        self._request(
            "POST",
            f"{API_PREFIX}/issue/{issue_key}/worklog",
            payload={
                "timeSpentSeconds": minutes * 60,
                "started": format_jira_datetime(start_millis, self.timezone),
                "comment": comment,
            },
        )

    def get_today_worklogs_for_current_user(self) -> list[BusyInterval]:
        """Collect today's worklog spans for the authenticated user.

        Conflict detection is best effort: any failure while resolving the user
        or searching degrades to an empty list, and a failing per-issue fetch
        only drops that issue's entries.
        """
        try:
            user = self.whoami()
            uid = user.get("name") or user.get("key") or user.get("accountId") or ""
            keys = self.search_issue_keys(TODAY_WORKLOGS_JQL)
        except Exception as exc:
            logger.warning("Worklog conflict detection unavailable: %s", exc)
            return []
        if not keys:
            return []

        intervals: list[BusyInterval] = []
        with ThreadPoolExecutor(max_workers=min(WORKLOG_FETCH_MAX_WORKERS, len(keys))) as pool:
            futures = {pool.submit(self.get_issue_worklogs, key): key for key in keys}
            for fut in as_completed(futures):
                try:
                    intervals.extend(_own_intervals(fut.result(), uid))
                except Exception as exc:
                    logger.warning("Skipping worklogs of %s: %s", futures[fut], exc)
        logger.debug("Found %s busy interval(s) across %s issue(s)", len(intervals), len(keys))
        return intervals


def _is_author(author: Any, uid: str) -> bool:
    if not uid or not isinstance(author, dict):
        return False
    return uid in (author.get("name"), author.get("key"), author.get("accountId"))


def _own_intervals(worklogs: list[dict[str, Any]], uid: str) -> list[BusyInterval]:
    out: list[BusyInterval] = []
    for wl in worklogs if isinstance(worklogs, list) else []:
        if not isinstance(wl, dict) or not _is_author(wl.get("author"), uid):
            continue
        start = parse_jira_datetime(wl.get("started"))
        if start is None:
            continue
        try:
            seconds = int(wl.get("timeSpentSeconds") or 0)
        except (TypeError, ValueError):
            logger.debug("Ignoring worklog %s with bad duration", wl.get("id"))
            continue
        out.append(BusyInterval(start, start + seconds * 1000))
    return out
