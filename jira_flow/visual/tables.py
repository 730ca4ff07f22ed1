"""Table helpers for status pre-check results."""

from __future__ import annotations

import pandas as pd
import streamlit as st

from jira_flow.core.models import StatusClassification

STATUS_COLUMNS = ["Ticket", "current_status", "in_target"]


def add_ticket_link(df: pd.DataFrame, server: str, key_col: str = "key", label: str = "Ticket"):
    if df.empty or key_col not in df.columns:
        return df, {}
    out = df.copy()
    base = server.rstrip("/")
    out[label] = out[key_col].astype(str).apply(lambda k: f"{base}/browse/{k}" if k and k != "nan" else "")
    cfg = {
        label: st.column_config.LinkColumn(
            label,
            display_text=r"browse/(.*)$",
            help="Open in Jira",
            width="medium",
        )
    }
    return out, cfg


def status_frame(classification: StatusClassification) -> pd.DataFrame:
    rows = [
        {"key": s.issue_key, "current_status": s.current_status, "in_target": s.is_in_target}
        for s in classification.per_issue
    ]
    return pd.DataFrame(rows, columns=["key", "current_status", "in_target"])


def render_status_table(classification: StatusClassification, server: str) -> None:
    df = status_frame(classification)
    if df.empty:
        st.info("No statuses to show.")
        return
    linked, cfg = add_ticket_link(df, server)
    st.dataframe(linked[STATUS_COLUMNS], hide_index=True, column_config=cfg)
