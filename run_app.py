"""Convenience launcher for the Streamlit app.

Usage:
  streamlit run run_app.py

Automatically imports every module in ``jira_flow/pages`` so each page
decorated with ``@register_page`` registers itself without manual edits here.
"""

import logging
from importlib import import_module
from pathlib import Path

import streamlit as st

from jira_flow.app import main
from jira_flow.core.config import JiraSettings, load_action_buttons
from jira_flow.core.service import BatchActionService

st.set_page_config(layout="wide")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _auto_init_batch_service():
    """Initialize the batch service from Streamlit secrets if available."""
    if "action_buttons" not in st.session_state:
        st.session_state["action_buttons"] = load_action_buttons(st.secrets)
    if "batch_service" in st.session_state:
        return
    settings = JiraSettings.from_mapping(st.secrets)
    if settings.is_complete():
        st.session_state["jira_server"] = settings.server
        st.session_state["batch_service"] = BatchActionService(settings)
        st.sidebar.success("Jira settings loaded from secrets.")
    else:
        st.sidebar.warning("Jira secrets not found. Please use the Setup page.")


_auto_init_batch_service()

PAGES_DIR = Path(__file__).parent / "jira_flow" / "pages"
for py in sorted(PAGES_DIR.glob("[!_]*.py")):
    mod_name = f"jira_flow.pages.{py.stem}"
    try:
        import_module(mod_name)
    except Exception as e:  # pragma: no cover - defensive
        print(f"Failed importing page {mod_name}: {e}")

if __name__ == "__main__":
    main()
