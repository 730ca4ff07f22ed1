"""BatchActionService: runs status transitions and worklogs for a set of issues."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from datetime import datetime

import pytz

from .config import BATCH_DISPATCH_WORKERS, ActionButton, JiraSettings
from .errors import ConfigurationMissing, JiraFlowError, NoOpBatch, TransitionNotFound
from .jira_client import JiraAPI
from .models import (
    BatchRequest,
    BatchResult,
    BusyInterval,
    StatusCheckRequest,
    StatusClassification,
    WorklogRequest,
)
from .scheduler import build_worklog_requests, reserve_slot, round_up_to_5_minutes, to_epoch_millis
from .status import NO_KEYS_MESSAGE as NO_STATUS_KEYS_MESSAGE
from .status import StatusChecker

NO_KEYS_MESSAGE = "No Jira issue keys provided."
NOTHING_TO_DO_MESSAGE = "Nothing to do."

ProgressCallback = Callable[[str, int | None, int | None], None]
ApiFactory = Callable[[JiraSettings], JiraAPI]
Clock = Callable[[], datetime]

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(pytz.UTC)


def build_batch_request(
    issue_keys: Sequence[str], button: ActionButton, total_minutes: int = 0
) -> BatchRequest:
    """The request a clicked action button produces for the given issues."""
    keys = list(issue_keys)
    return BatchRequest(
        issue_keys=keys,
        transition_name=button.transition_name,
        worklogs=build_worklog_requests(keys, total_minutes, button.worklog_comment),
    )


class BatchActionService:
    def __init__(
        self,
        settings: JiraSettings,
        *,
        api_factory: ApiFactory = JiraAPI,
        clock: Clock = _utcnow,
    ):
        self.settings = settings
        self._api_factory = api_factory
        self._clock = clock
        self._dispatcher: ThreadPoolExecutor | None = None

    def reload_settings(self, settings: JiraSettings) -> None:
        """Swap in refreshed settings; the next batch picks them up."""
        self.settings = settings

    def _connect(self) -> JiraAPI:
        return self._api_factory(self.settings.require())

    # ------------------ Status precondition ------------------
    def check_statuses(self, request: StatusCheckRequest) -> StatusClassification:
        if not request.issue_keys:
            return StatusClassification(all_in_target=False, errors=(NO_STATUS_KEYS_MESSAGE,))
        try:
            api = self._connect()
        except ConfigurationMissing as exc:
            return StatusClassification(all_in_target=False, errors=(str(exc),))
        return StatusChecker(api).check_statuses(request)

    # ------------------ Batch execution ------------------
    def submit_batch(self, request: BatchRequest) -> Future[BatchResult]:
        """Queue ``request``; the returned future resolves exactly once with its result."""
        if self._dispatcher is None:
            self._dispatcher = ThreadPoolExecutor(
                max_workers=BATCH_DISPATCH_WORKERS, thread_name_prefix="jira-batch"
            )
        return self._dispatcher.submit(self.run_batch, request)

    def shutdown(self, wait: bool = True) -> None:
        if self._dispatcher is not None:
            self._dispatcher.shutdown(wait=wait)
            self._dispatcher = None

    def run_batch(self, request: BatchRequest, *, progress: ProgressCallback | None = None) -> BatchResult:
        issue_keys = list(request.issue_keys)
        if not issue_keys:
            return BatchResult(errors=[NO_KEYS_MESSAGE])
        try:
            api = self._connect()
        except ConfigurationMissing as exc:
            logger.warning("Batch aborted: %s", exc)
            return BatchResult(failed_count=len(issue_keys), errors=[str(exc)])

        try:
            transition_keys, worklogs = self._plan(request)
        except NoOpBatch as exc:
            return BatchResult(errors=[str(exc)])

        result = BatchResult()
        logger.info(
            "Batch start: %s transition(s) to %r, %s worklog(s)",
            len(transition_keys),
            request.transition_name,
            len(worklogs),
        )
        total = len(transition_keys) + (1 if worklogs else 0)
        done = 0
        with ThreadPoolExecutor(max_workers=total, thread_name_prefix="jira-op") as pool:
            futures: dict[Future, str] = {}
            for key in transition_keys:
                fut = pool.submit(self._transition_issue, api, key, request.transition_name, result)
                futures[fut] = "Applying transitions"
            if worklogs:
                futures[pool.submit(self._log_worklogs, api, worklogs, result)] = "Logging work"
            for fut in as_completed(futures):
                fut.result()
                done += 1
                if progress:
                    progress(futures[fut], done, total)

        logger.info("Batch finished: %s succeeded, %s failed", result.success_count, result.failed_count)
        return result

    # ------------------ Internal Helpers ------------------
    def _plan(self, request: BatchRequest) -> tuple[list[str], list[WorklogRequest]]:
        transitions = request.transitions
        transition_keys = transitions.issue_keys if transitions.transition_name else []
        worklogs = [wl for wl in request.worklogs if wl.minutes > 0]
        if not transition_keys and not worklogs:
            raise NoOpBatch(NOTHING_TO_DO_MESSAGE)
        return transition_keys, worklogs

    def _transition_issue(
        self, api: JiraAPI, issue_key: str, transition_name: str, result: BatchResult
    ) -> None:
        try:
            transitions = api.list_transitions(issue_key)
            wanted = transition_name.lower()
            target = next((t for t in transitions if t["name"] and t["name"].lower() == wanted), None)
            if target is None:
                raise TransitionNotFound(issue_key, transition_name, [t["name"] for t in transitions])
            api.apply_transition(issue_key, target["id"])
        except JiraFlowError as exc:
            logger.warning("Transition of %s failed: %s", issue_key, exc)
            result.record_failure(str(exc))
            return
        except Exception as exc:
            logger.exception("Unexpected error moving %s", issue_key)
            result.record_failure(f"{issue_key}: transition failed: {exc!r}")
            return
        logger.debug("Moved %s via %r", issue_key, target["name"])
        result.record_success()

    def _log_worklogs(self, api: JiraAPI, worklogs: list[WorklogRequest], result: BatchResult) -> None:
        """Post worklogs one after another into non-overlapping slots.

        The busy snapshot is taken once; every reserved slot is appended before
        its post so the next allocation sees it. Conflicts with other clients
        booking concurrently are not detected.
        """
        try:
            busy: list[BusyInterval] = api.get_today_worklogs_for_current_user()
        except Exception as exc:
            logger.warning("Worklog conflict detection unavailable: %s", exc)
            busy = []
        anchor = round_up_to_5_minutes(to_epoch_millis(self._clock()))
        for wl in worklogs:
            start = reserve_slot(busy, anchor, wl.minutes)
            logger.debug("Slot for %s (%s min) starts at %s", wl.issue_key, wl.minutes, start)
            try:
                api.post_worklog(wl.issue_key, start, wl.minutes, wl.comment)
            except JiraFlowError as exc:
                logger.warning("Worklog on %s failed: %s", wl.issue_key, exc)
                result.record_failure(str(exc))
                continue
            except Exception as exc:
                logger.exception("Unexpected error logging work on %s", wl.issue_key)
                result.record_failure(f"{wl.issue_key}: worklog failed: {exc!r}")
                continue
            result.record_success()
