"""Error kinds raised by the Jira client and batch service."""

from __future__ import annotations

from collections.abc import Sequence


class JiraFlowError(RuntimeError):
    """Base class for every error this package raises on purpose."""


class ConfigurationMissing(JiraFlowError):
    def __init__(self, missing: Sequence[str]):
        self.missing = list(missing)
        super().__init__(f"Jira connection is not configured (missing {', '.join(self.missing)}).")


class RemoteError(JiraFlowError):
    """A remote call returned a non-success status or never completed."""

    def __init__(self, path: str, status: int | None = None, detail: str | None = None):
        self.path = path
        self.status = status
        self.detail = detail
        if status is not None:
            message = f"{path} failed: HTTP {status}"
        else:
            message = f"{path} failed: {detail or 'no response'}"
        super().__init__(message)


class TransitionNotFound(JiraFlowError):
    def __init__(self, issue_key: str, transition_name: str, available: Sequence[str]):
        self.issue_key = issue_key
        self.transition_name = transition_name
        self.available = list(available)
        super().__init__(
            f'{issue_key}: transition "{transition_name}" not found. Available: {", ".join(self.available)}'
        )


class NoOpBatch(JiraFlowError):
    """Raised internally when a batch carries nothing to attempt."""
