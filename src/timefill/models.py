"""
Pure data models — no sqlite or rich imports.
"""

import uuid
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from enum import Enum
from pathlib import Path

DEFAULT_DB = Path.home() / ".local/share/timefill/events.db"
DEFAULT_SNAPSHOT = Path.home() / ".local/share/timefill/snapshot.json"
DEFAULT_CONFIG = Path.home() / ".config/timefill.conf"

DEFAULT_COLOR = "#36C2FF"
DEFAULT_ICON = "calendar"


class TimefillError(Exception):
    """Base exception for countdown tracking errors."""

    pass


class RepeatKind(str, Enum):
    """Repeat cadence. Values are the strings kept in the record store."""

    NONE = "None"
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"


class YearlyRepeatStyle(str, Enum):
    """How a yearly repeat lands: same calendar date, or same Nth weekday of the month."""

    FIXED_DATE = "fixedDate"
    RELATIVE_WEEKDAY = "relativeWeekday"


class EventStatus(str, Enum):
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COUNTING_UP = "counting-up"
    COMPLETED = "completed"


def new_event_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Event:
    """A single countdown record.

    ``created_date`` is the countdown start, not the insertion time; the
    latter is kept in ``added_to_app_date`` and is never touched by the
    repeat logic.
    """

    name: str
    target_date: datetime
    created_date: datetime
    id: str = field(default_factory=new_event_id)
    added_to_app_date: datetime = field(default_factory=datetime.now)
    color_hex: str = DEFAULT_COLOR
    icon_name: str = DEFAULT_ICON
    repeat_kind: RepeatKind = RepeatKind.NONE
    repeat_interval: int = 1
    yearly_repeat_style: YearlyRepeatStyle = YearlyRepeatStyle.FIXED_DATE
    is_repeat_occurrence: bool = False


@dataclass(frozen=True)
class TimeBreakdown:
    """Non-negative day/hour/minute/second components of a duration."""

    days: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: int = 0


@dataclass
class ResetResult:
    """Outcome of one reconciliation pass."""

    reset: list[Event] = field(default_factory=list)
    suppressed: list[str] = field(default_factory=list)  # ids skipped by the debounce
    failed: list[str] = field(default_factory=list)  # ids with no computable next occurrence


@dataclass
class NotificationPreferences:
    """Reminder offsets; times are minutes from midnight (0-1439)."""

    enabled: bool = True
    on_event_day: bool = True
    one_day_before: bool = True
    one_week_before: bool = True
    one_month_before: bool = False
    event_day_time: int = 9 * 60
    one_day_before_time: int = 18 * 60
    one_week_before_time: int = 18 * 60
    one_month_before_time: int = 18 * 60


@dataclass
class AppConfig:
    """Resolved configuration for one host invocation."""

    db_path: Path = DEFAULT_DB
    snapshot_path: Path = DEFAULT_SNAPSHOT
    auto_delete_completed: bool = False
    notifications: NotificationPreferences = field(default_factory=NotificationPreferences)
    dry_run: bool = False
    verbose: bool = False


@dataclass
class LifecycleStats:
    """Statistics for one trigger-point run."""

    checked: int = 0
    reset: int = 0
    deleted: int = 0
    notifications: int = 0
    errors: int = 0
