from jira_flow.core.keys import extract_issue_keys
from jira_flow.core.polling import poll_until


def test_extract_issue_keys_links_first_then_bare_keys():
    text = (
        "OBS-12: tidy scheduler\n"
        "See https://jira.example.com/browse/dm-7 and http://jira/browse/OBS-12\n"
        "Also touches SITCOM-300, obs-13 and OBS-12 again."
    )
    assert extract_issue_keys(text) == ["DM-7", "OBS-12", "SITCOM-300"]


def test_extract_issue_keys_empty():
    assert extract_issue_keys("") == []
    assert extract_issue_keys(None) == []
    assert extract_issue_keys("no keys here, not-a-key A-") == []


def test_poll_until_returns_first_answer():
    answers = iter([None, None, "merged"])
    sleeps = []
    assert poll_until(lambda: next(answers), retries=5, interval=0.5, sleep=sleeps.append) == "merged"
    assert sleeps == [0.5, 0.5]


def test_poll_until_falls_back_to_default():
    calls = []
    sleeps = []

    def check():
        calls.append(1)
        return None

    assert poll_until(check, retries=3, interval=0.1, default="open", sleep=sleeps.append) == "open"
    assert len(calls) == 4
    assert len(sleeps) == 3
