"""Batch actions page.

Paste a merge request title and description, pick an action button, and the
linked Jira issues are moved to the button's status and get the requested
time logged. Transitions are pre-checked so the user is warned when some or
all issues already sit in the target status.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, MutableMapping
from typing import Any

import streamlit as st

from jira_flow.app import register_page
from jira_flow.core.config import SETTINGS, ActionButton, load_action_buttons
from jira_flow.core.keys import extract_issue_keys
from jira_flow.core.models import BatchResult, StatusCheckRequest, StatusClassification
from jira_flow.core.service import BatchActionService, build_batch_request
from jira_flow.visual.progress import ProgressReporter
from jira_flow.visual.tables import render_status_table

logger = logging.getLogger(__name__)

WORKLOG_HELP = (
    "Time will be logged to each linked Jira issue.\n"
    "If multiple issues are found, minutes are distributed evenly (rounded up to 5 min each)."
)


def action_buttons(
    state: MutableMapping[str, Any], secrets: Mapping[str, Any] | None = None
) -> list[ActionButton]:
    """Buttons loaded into this session; read from ``secrets`` on first use."""
    if state.get("action_buttons") is None:
        state["action_buttons"] = load_action_buttons(secrets)
    return state["action_buttons"]


def worklog_enabled(state: Mapping[str, Any]) -> bool:
    return bool(state.get("worklog_enabled", SETTINGS.worklog_enabled))


def confirmation_level(classification: StatusClassification) -> str:
    """Three-way decision for a status pre-check: "proceed", "partial", or "all"."""
    if classification.all_in_target:
        return "all"
    if classification.in_target:
        return "partial"
    return "proceed"


def format_result_message(label: str, result: BatchResult) -> str:
    parts: list[str] = []
    if result.success_count > 0:
        parts.append(f"✓ {label} - Success: {result.success_count}")
    if result.failed_count > 0:
        parts.append(f"Failed: {result.failed_count}")
    message = " | ".join(parts)
    if result.errors:
        message = "\n".join([message, *result.errors]) if message else "\n".join(result.errors)
    return message


def _warning_text(level: str, button: ActionButton, classification: StatusClassification) -> str:
    already = ", ".join(s.issue_key for s in classification.in_target)
    if level == "all":
        return f"All linked issues are already in '{button.target_status}' status: {already}. Proceed anyway?"
    pending = ", ".join(f"{s.issue_key} ({s.current_status})" for s in classification.not_in_target)
    return (
        f"Some issues are already in '{button.target_status}' status: {already}. "
        f"Issues that will be transitioned: {pending}. Proceed?"
    )


def _run(service: BatchActionService, keys: list[str], button: ActionButton, minutes: int) -> None:
    enabled = worklog_enabled(st.session_state)
    request = build_batch_request(keys, button, minutes if enabled else 0)
    reporter = ProgressReporter(f"Running '{button.label}' on {len(keys)} issue(s)")
    try:
        result = service.run_batch(request, progress=reporter.callback)
    except Exception as exc:
        reporter.error(f"Batch failed: {exc}")
        raise
    reporter.complete(format_result_message(button.label, result), failed=result.failed_count > 0)
    st.session_state.pop("status_check", None)


@register_page("Batch Actions")
def batch_actions_page():
    st.title("Batch Actions")
    service: BatchActionService | None = st.session_state.get("batch_service")
    if service is None:
        st.warning("Initialize connection on Setup page first.")
        return

    text = st.text_area("Merge request title / description", height=160)
    keys = extract_issue_keys(text)
    if keys:
        st.caption(f"Linked issues: {', '.join(keys)}")

    buttons = action_buttons(st.session_state, st.secrets)
    if not buttons:
        st.info("No action buttons configured.")
        return
    labels = [b.label for b in buttons]
    button = buttons[labels.index(st.selectbox("Action", labels))]
    minutes = 0
    if worklog_enabled(st.session_state):
        minutes = int(
            st.number_input(
                "Minutes to worklog",
                min_value=0,
                step=5,
                value=SETTINGS.default_worklog_minutes,
                help=WORKLOG_HELP,
            )
        )
    elif not button.transition_name:
        st.info("This action only logs work; enable worklogs on the Setup page.")
        return

    if not st.button(button.label, type="primary"):
        pending = st.session_state.get("status_check")
        if pending and pending["label"] == button.label and pending["keys"] == keys:
            st.warning(pending["warning"])
            render_status_table(pending["classification"], st.session_state.get("jira_server", ""))
            if st.button("Proceed anyway"):
                _run(service, keys, button, minutes)
        return

    if not keys:
        st.error("No Jira issue keys found in MR description / title.")
        return

    if button.transition_name:
        classification = service.check_statuses(
            StatusCheckRequest(keys, button.target_status, button.target_status_names())
        )
        if classification.errors:
            st.error("Status check failed: " + ", ".join(classification.errors))
            return
        level = confirmation_level(classification)
        if level != "proceed":
            logger.debug(
                "Pre-check for %s: %s issue(s) already in target", button.label, len(classification.in_target)
            )
            st.session_state["status_check"] = {
                "label": button.label,
                "keys": keys,
                "classification": classification,
                "warning": _warning_text(level, button, classification),
            }
            st.rerun()

    _run(service, keys, button, minutes)
