"""Connection setup page: collect Jira credentials and initialize BatchActionService."""

from __future__ import annotations

import streamlit as st

from jira_flow.app import register_page
from jira_flow.core.config import JiraSettings
from jira_flow.core.errors import JiraFlowError
from jira_flow.core.jira_client import JiraAPI
from jira_flow.core.service import BatchActionService
from jira_flow.pages.batch_actions import worklog_enabled


def apply_settings(settings: JiraSettings) -> BatchActionService:
    """Install ``settings`` on the session's service, creating it on first use."""
    service: BatchActionService | None = st.session_state.get("batch_service")
    if service is None:
        service = BatchActionService(settings)
        st.session_state["batch_service"] = service
    else:
        service.reload_settings(settings)
    st.session_state["jira_server"] = settings.server
    return service


@register_page("Setup / Connection")
def setup_page():
    st.title("Jira Connection Setup")
    st.caption("Enter credentials (use secrets manager in production).")

    # Pre-fill from secrets if available (user can override)
    secrets = JiraSettings.from_mapping(st.secrets)

    server = st.text_input(
        "Jira Server URL",
        value=st.session_state.get("jira_server") or secrets.server,
    )
    username = st.text_input(
        "Email / Username",
        value=st.session_state.get("jira_username") or secrets.username,
    )
    secret = st.text_input("API Token / Password", type="password", value=secrets.secret)
    token = st.text_input(
        "Personal Access Token (optional, replaces the above)",
        type="password",
        value=secrets.token,
    )
    timezone = st.text_input("Worklog timezone", value=secrets.timezone)
    st.session_state["worklog_enabled"] = st.checkbox(
        "Log work when running actions", value=worklog_enabled(st.session_state)
    )
    init_btn = st.button("Save & Test Connection", type="primary")

    if init_btn:
        settings = JiraSettings(
            server=server, username=username, secret=secret, token=token, timezone=timezone
        )
        try:
            user = JiraAPI(settings).whoami()
        except JiraFlowError as exc:
            st.error(f"Connection failed: {exc}")
            return
        apply_settings(settings)
        st.session_state["jira_username"] = settings.username
        st.success(f"Connected as {user.get('displayName') or user.get('name') or settings.username}")

    if "batch_service" in st.session_state:
        st.info("BatchActionService ready.")
