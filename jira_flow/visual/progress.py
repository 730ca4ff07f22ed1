"""Progress banner for long-running batch calls."""

from __future__ import annotations

import streamlit as st


class ProgressReporter:
    """Simple progress helper that renders a banner + progress bar in Streamlit."""

    def __init__(self, title: str):
        self._container = st.container()
        self._container.info(title)
        self._message_placeholder = self._container.empty()
        self._progress_placeholder = self._container.progress(0.0)
        self._finalized = False

    def callback(self, message: str, current: int | None = None, total: int | None = None) -> None:
        """Signature compatible with BatchActionService progress callbacks."""
        if self._finalized:
            return
        self._message_placeholder.write(message)
        if current is not None and total:
            self._progress_placeholder.progress(min(max(current / total, 0.0), 1.0))

    def complete(self, message: str, *, failed: bool = False) -> None:
        if self._finalized:
            return
        self._progress_placeholder.progress(1.0)
        if failed:
            self._container.warning(message)
        else:
            self._container.success(message)
        self._finalized = True

    def error(self, message: str) -> None:
        if self._finalized:
            return
        self._container.error(message)
        self._finalized = True
