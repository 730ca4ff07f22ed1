import threading
from datetime import datetime

import pytz

from jira_flow.core.config import ActionButton, JiraSettings
from jira_flow.core.errors import RemoteError
from jira_flow.core.jira_client import JiraAPI
from jira_flow.core.models import BatchRequest, BusyInterval, StatusCheckRequest, WorklogRequest
from jira_flow.core.service import BatchActionService, build_batch_request

MIN = 60 * 1000
BASE = 1704067200000  # 2024-01-01T00:00:00Z
SETTINGS = JiraSettings(server="https://jira.example.com", username="alice", secret="s3cret")


class DummyAPI(JiraAPI):
    def __init__(self, transitions=None, statuses=None, busy=None, fail_posts=(), fail_apply=()):
        self.transitions = transitions or {}
        self.statuses = statuses or {}
        self.busy = list(busy or [])
        self.fail_posts = set(fail_posts)
        self.fail_apply = set(fail_apply)
        self.applied = []
        self.posted = []
        self.busy_fetches = 0
        self._lock = threading.Lock()

    def list_transitions(self, issue_key):
        if issue_key not in self.transitions:
            raise RemoteError(f"/rest/api/2/issue/{issue_key}/transitions", status=404)
        return self.transitions[issue_key]

    def apply_transition(self, issue_key, transition_id):
        if issue_key in self.fail_apply:
            raise RemoteError(f"/rest/api/2/issue/{issue_key}/transitions", status=400)
        with self._lock:
            self.applied.append((issue_key, transition_id))

    def get_status(self, issue_key):
        if issue_key not in self.statuses:
            raise RemoteError(f"/rest/api/2/issue/{issue_key}?fields=status", status=404)
        return self.statuses[issue_key]

    def get_today_worklogs_for_current_user(self):
        self.busy_fetches += 1
        return list(self.busy)

    def post_worklog(self, issue_key, start_millis, minutes, comment):
        self.posted.append((issue_key, start_millis, minutes, comment))
        if issue_key in self.fail_posts:
            raise RemoteError(f"/rest/api/2/issue/{issue_key}/worklog", status=500)


def _service(api, settings=SETTINGS):
    # 00:02:30 UTC rounds up to a 00:05 anchor
    clock = lambda: datetime(2024, 1, 1, 0, 2, 30, tzinfo=pytz.UTC)  # noqa: E731
    return BatchActionService(settings, api_factory=lambda s: api, clock=clock)


def _flow(*names):
    return [{"id": str(i + 1), "name": n} for i, n in enumerate(names)]


def test_empty_issue_keys_short_circuit():
    api = DummyAPI()
    result = _service(api).run_batch(BatchRequest([], "Done", [WorklogRequest("A-1", 5)]))
    assert result.to_dict() == {"success": 0, "failed": 0, "errors": ["No Jira issue keys provided."]}
    assert api.busy_fetches == 0


def test_nothing_to_do_when_no_transition_and_no_positive_worklogs():
    api = DummyAPI()
    request = BatchRequest(["A-1", "A-2"], None, [WorklogRequest("A-1", 0), WorklogRequest("A-2", -5)])
    result = _service(api).run_batch(request)
    assert result.to_dict() == {"success": 0, "failed": 0, "errors": ["Nothing to do."]}
    assert api.busy_fetches == 0 and not api.posted


def test_missing_configuration_fails_every_issue_without_remote_calls():
    calls = []
    service = BatchActionService(JiraSettings(), api_factory=lambda s: calls.append(s))
    result = service.run_batch(BatchRequest(["A-1", "A-2"], "Done"))
    assert result.success_count == 0
    assert result.failed_count == 2
    assert len(result.errors) == 1 and "not configured" in result.errors[0]
    assert calls == []


def test_unknown_transition_names_the_issue_and_lists_available():
    api = DummyAPI(transitions={"OBS-1": _flow("To Do", "In Progress")})
    result = _service(api).run_batch(BatchRequest(["OBS-1"], "Done"))
    assert (result.success_count, result.failed_count) == (0, 1)
    assert result.errors == ['OBS-1: transition "Done" not found. Available: To Do, In Progress']
    assert api.applied == []


def test_transitions_match_case_insensitively_and_run_for_every_key():
    flow = _flow("In Progress", "Done")
    api = DummyAPI(transitions={"A-1": flow, "A-2": flow, "A-3": flow})
    result = _service(api).run_batch(BatchRequest(["A-1", "A-2", "A-3"], "done"))
    assert result.to_dict() == {"success": 3, "failed": 0, "errors": []}
    assert sorted(api.applied) == [("A-1", "2"), ("A-2", "2"), ("A-3", "2")]
    assert api.busy_fetches == 0


def test_worklogs_only_post_sequentially_in_input_order():
    api = DummyAPI()
    request = BatchRequest(
        ["A-1", "A-2", "A-3"],
        None,
        [WorklogRequest("A-1", 5, "dev"), WorklogRequest("A-2", 5, "dev"), WorklogRequest("A-3", 5, "dev")],
    )
    result = _service(api).run_batch(request)
    assert result.to_dict() == {"success": 3, "failed": 0, "errors": []}
    assert api.applied == []
    assert api.posted == [
        ("A-1", BASE + 5 * MIN, 5, "dev"),
        ("A-2", BASE + 10 * MIN, 5, "dev"),
        ("A-3", BASE + 15 * MIN, 5, "dev"),
    ]
    assert api.busy_fetches == 1


def test_worklogs_avoid_busy_snapshot_and_each_other():
    busy = [BusyInterval(BASE + 4 * MIN, BASE + 12 * MIN), BusyInterval(BASE + 20 * MIN, BASE + 25 * MIN)]
    api = DummyAPI(busy=busy)
    request = BatchRequest(["A-1", "A-2"], None, [WorklogRequest("A-1", 5), WorklogRequest("A-2", 10)])
    result = _service(api).run_batch(request)
    assert result.success_count == 2
    starts = [(key, start) for key, start, _, _ in api.posted]
    # 15-20 fits A-1; A-2 needs 10 minutes and skips past the 20-25 booking
    assert starts == [("A-1", BASE + 15 * MIN), ("A-2", BASE + 25 * MIN)]


def test_partial_failures_are_counted_and_siblings_continue():
    flow = _flow("Done")
    api = DummyAPI(
        transitions={"A-1": flow, "A-2": flow},
        fail_apply={"A-2"},
        fail_posts={"A-1"},
    )
    request = BatchRequest(
        ["A-1", "A-2", "A-3"],
        "Done",
        [WorklogRequest("A-1", 5), WorklogRequest("A-2", 5), WorklogRequest("A-3", 0)],
    )
    result = _service(api).run_batch(request)
    # 3 transitions (A-3 has no transitions endpoint) + 2 positive worklogs
    assert result.attempted == 5
    assert (result.success_count, result.failed_count) == (2, 3)
    assert sorted(result.errors) == [
        "/rest/api/2/issue/A-1/worklog failed: HTTP 500",
        "/rest/api/2/issue/A-2/transitions failed: HTTP 400",
        "/rest/api/2/issue/A-3/transitions failed: HTTP 404",
    ]
    assert [p[0] for p in api.posted] == ["A-1", "A-2"]
    # The failed post still holds its slot, so A-2 lands after it
    assert api.posted[1][1] == BASE + 10 * MIN


def test_duplicate_keys_are_processed_independently():
    api = DummyAPI(transitions={"A-1": _flow("Done")})
    result = _service(api).run_batch(BatchRequest(["A-1", "A-1"], "Done"))
    assert result.success_count == 2
    assert api.applied == [("A-1", "1"), ("A-1", "1")]


def test_progress_reports_each_finished_group():
    api = DummyAPI(transitions={"A-1": _flow("Done"), "A-2": _flow("Done")})
    events = []
    request = BatchRequest(["A-1", "A-2"], "Done", [WorklogRequest("A-1", 5)])
    _service(api).run_batch(request, progress=lambda msg, cur, total: events.append((msg, cur, total)))
    assert [e[1:] for e in events] == [(1, 3), (2, 3), (3, 3)]
    assert {e[0] for e in events} == {"Applying transitions", "Logging work"}


def test_submit_batch_resolves_future_once():
    api = DummyAPI(transitions={"A-1": _flow("Done")})
    service = _service(api)
    try:
        request = BatchRequest.from_mapping({"issueKeys": ["A-1"], "transitionName": "Done"})
        future = service.submit_batch(request)
        assert future.result(timeout=5).to_dict() == {"success": 1, "failed": 0, "errors": []}
    finally:
        service.shutdown()


def test_reload_settings_applies_to_next_batch():
    api = DummyAPI(transitions={"A-1": _flow("Done")})
    service = _service(api, settings=JiraSettings())
    assert service.run_batch(BatchRequest(["A-1"], "Done")).failed_count == 1
    service.reload_settings(SETTINGS)
    assert service.run_batch(BatchRequest(["A-1"], "Done")).success_count == 1


def test_build_batch_request_from_button():
    button = ActionButton("Review", transition_name="Code Review", worklog_comment="CR")
    request = build_batch_request(["A-1", "A-2", "A-3"], button, total_minutes=17)
    assert request.transition_name == "Code Review"
    assert [(w.issue_key, w.minutes, w.comment) for w in request.worklogs] == [
        ("A-1", 10, "CR"),
        ("A-2", 5, "CR"),
        ("A-3", 5, "CR"),
    ]
    assert build_batch_request(["A-1"], ActionButton("Log Work")).transition_name is None


def test_check_statuses_through_service():
    api = DummyAPI(statuses={"A-1": "Done", "A-2": "In Progress"})
    classification = _service(api).check_statuses(StatusCheckRequest(["A-1", "A-2"], "Done"))
    assert classification.all_in_target is False
    assert [s.issue_key for s in classification.per_issue if s.is_in_target] == ["A-1"]


def test_check_statuses_without_configuration():
    classification = BatchActionService(JiraSettings()).check_statuses(StatusCheckRequest(["A-1"], "Done"))
    assert classification.all_in_target is False
    assert "not configured" in classification.errors[0]


def test_invalid_timezone_fails_every_issue_without_remote_calls():
    calls = []
    settings = JiraSettings(
        server="https://jira.example.com", username="alice", secret="s3cret", timezone="Europe/Kiyv"
    )
    service = BatchActionService(settings, api_factory=lambda s: calls.append(s))
    result = service.run_batch(BatchRequest(["A-1", "A-2"], None, [WorklogRequest("A-1", 5)]))
    assert (result.success_count, result.failed_count) == (0, 2)
    assert "Europe/Kiyv" in result.errors[0]
    assert calls == []


class UnexpectedFailureAPI(DummyAPI):
    def list_transitions(self, issue_key):
        if issue_key == "A-2":
            raise KeyError("transitions")
        return super().list_transitions(issue_key)

    def get_today_worklogs_for_current_user(self):
        raise ValueError("bad worklog payload")

    def post_worklog(self, issue_key, start_millis, minutes, comment):
        super().post_worklog(issue_key, start_millis, minutes, comment)
        if issue_key == "A-1":
            raise KeyError("started")


def test_unexpected_errors_are_recorded_and_the_batch_continues():
    api = UnexpectedFailureAPI(transitions={"A-1": _flow("Done"), "A-2": _flow("Done")})
    request = BatchRequest(
        ["A-1", "A-2"], "Done", [WorklogRequest("A-1", 5, "Merge"), WorklogRequest("A-2", 5, "Merge")]
    )
    result = _service(api).run_batch(request)
    assert (result.success_count, result.failed_count) == (2, 2)
    assert sorted(result.errors) == [
        "A-1: worklog failed: KeyError('started')",
        "A-2: transition failed: KeyError('transitions')",
    ]
    assert api.applied == [("A-1", "1")]
    # busy lookup failed, so slots start at the anchor with no known conflicts
    assert [(k, s) for k, s, _, _ in api.posted] == [("A-1", BASE + 5 * MIN), ("A-2", BASE + 10 * MIN)]
