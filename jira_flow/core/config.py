"""Central configuration, constants, connection settings, and action buttons."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import pytz

from .errors import ConfigurationMissing

# =============================================================================
# Jira Connection Settings
# =============================================================================
TIMEZONE = "UTC"
REST_API_VERSION = "2"

# Secret names accepted for each connection field, checked in order.
SERVER_KEYS: Sequence[str] = ("JIRA_SERVER", "JIRA_BASE_URL")
USERNAME_KEYS: Sequence[str] = ("JIRA_EMAIL", "JIRA_USERNAME")
SECRET_KEYS: Sequence[str] = ("JIRA_API_TOKEN", "JIRA_TOKEN", "JIRA_PASSWORD")
PAT_KEYS: Sequence[str] = ("JIRA_PAT",)
TIMEZONE_KEYS: Sequence[str] = ("JIRA_TIMEZONE",)

# =============================================================================
# Worklog Scheduling
# =============================================================================
SLOT_MINUTES: int = 5
SLOT_MILLIS: int = SLOT_MINUTES * 60 * 1000
# One day's worth of 5-minute steps
MAX_SLOT_ATTEMPTS: int = 288
MIN_WORKLOG_MINUTES: int = SLOT_MINUTES

# Issues that already carry worklogs by the current user today
TODAY_WORKLOGS_JQL = "worklogAuthor = currentUser() AND worklogDate >= startOfDay()"
TODAY_WORKLOGS_MAX_RESULTS: int = 100
WORKLOG_FETCH_MAX_WORKERS: int = 8

# =============================================================================
# Status Polling
# =============================================================================
STATUS_CHECK_RETRIES_MAX: int = 20
STATUS_CHECK_RETRY_SECONDS: float = 0.5

# =============================================================================
# Batch dispatch
# =============================================================================
BATCH_DISPATCH_WORKERS: int = 4

DEFAULT_BUTTON_COLOR = "rgb(99, 166, 233)"


@dataclass(slots=True)
class JiraSettings:
    """Resolved connection settings handed to the batch service at call time."""

    server: str = ""
    username: str = ""
    secret: str = ""
    token: str = ""
    timezone: str = TIMEZONE

    def __post_init__(self) -> None:
        self.server = (self.server or "").strip().rstrip("/")
        self.username = (self.username or "").strip()
        self.timezone = (self.timezone or "").strip() or TIMEZONE

    @classmethod
    def from_mapping(cls, source: Mapping[str, Any] | None) -> JiraSettings:
        """Build settings from a secrets-like mapping.

        A nested ``jira`` section wins over top-level keys, mirroring the
        layout of ``.streamlit/secrets.toml``.
        """
        source = source or {}
        section = source.get("jira") or {}

        def pick(keys: Iterable[str]) -> str:
            for key in keys:
                value = section.get(key) or source.get(key)
                if value:
                    return str(value)
            return ""

        return cls(
            server=pick(SERVER_KEYS),
            username=pick(USERNAME_KEYS),
            secret=pick(SECRET_KEYS),
            token=pick(PAT_KEYS),
            timezone=pick(TIMEZONE_KEYS) or TIMEZONE,
        )

    def missing_fields(self) -> list[str]:
        missing: list[str] = []
        if not self.server:
            missing.append("base URL")
        if not self.token and not (self.username and self.secret):
            missing.append("credentials")
        if self.timezone not in pytz.all_timezones_set:
            missing.append(f"valid timezone, got '{self.timezone}'")
        return missing

    def is_complete(self) -> bool:
        return not self.missing_fields()

    def require(self) -> JiraSettings:
        missing = self.missing_fields()
        if missing:
            raise ConfigurationMissing(missing)
        return self


@dataclass(slots=True)
class ActionButton:
    label: str
    transition_name: str | None = None
    target_status: str = ""
    worklog_comment: str = ""
    color: str = DEFAULT_BUTTON_COLOR

    def __post_init__(self) -> None:
        self.label = (self.label or "").strip()
        self.transition_name = (self.transition_name or "").strip() or None
        self.target_status = (self.target_status or self.transition_name or self.label or "").strip()

    def target_status_names(self) -> list[str]:
        """Ordered unique names that count as "already there" for this button."""
        names: list[str] = []
        for value in (self.target_status, self.transition_name, self.label):
            value = (value or "").strip()
            if value and value not in names:
                names.append(value)
        return names


def parse_action_buttons(rows: Iterable[Mapping[str, Any]] | None) -> list[ActionButton]:
    buttons: list[ActionButton] = []
    for row in rows or []:
        buttons.append(
            ActionButton(
                label=row.get("label") or "",
                transition_name=row.get("transitionName") or row.get("transition_name"),
                target_status=row.get("targetStatus") or row.get("target_status") or "",
                worklog_comment=row.get("worklogComment") or row.get("worklog_comment") or "",
                color=row.get("color") or DEFAULT_BUTTON_COLOR,
            )
        )
    return buttons


DEFAULT_ACTION_BUTTONS: Sequence[ActionButton] = (
    ActionButton("Code Review", transition_name="Code Review", worklog_comment="Code review"),
    ActionButton("Testing", transition_name="Testing", worklog_comment="Testing"),
    ActionButton("Done", transition_name="Done", worklog_comment="Merge"),
    ActionButton("Log Work", worklog_comment="Development", color="rgb(120, 120, 120)"),
)


@dataclass(slots=True)
class AppSettings:
    worklog_enabled: bool = True
    default_worklog_minutes: int = 5
    buttons: list[ActionButton] = field(default_factory=lambda: list(DEFAULT_ACTION_BUTTONS))


SETTINGS = AppSettings()


def load_action_buttons(source: Mapping[str, Any] | None) -> list[ActionButton]:
    """Buttons from a ``[[buttons]]`` array in ``source``, else the defaults.

    The array may sit at the top level or inside the ``jira`` section, the same
    lookup order ``JiraSettings.from_mapping`` uses.
    """
    source = source or {}
    section = source.get("jira") or {}
    rows = section.get("buttons") or source.get("buttons")
    buttons = [b for b in parse_action_buttons(rows) if b.label]
    return buttons or list(SETTINGS.buttons)
