"""
Reminder planning — turns event dates and user offsets into fire times.

Only the plan is produced here; handing requests to a platform notification
service is up to the host.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from datetime import timedelta

from dateutil.relativedelta import relativedelta

from timefill.countdown import is_scheduled
from timefill.models import Event
from timefill.models import NotificationPreferences
from timefill.models import TimefillError

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE = "Time Fill"

# Scheduled events get a heads-up on their start day at this time.
START_DAY_TIME = 9 * 60


@dataclass(frozen=True)
class NotificationRequest:
    identifier: str
    fire_at: datetime
    title: str
    subtitle: str
    body: str


def parse_time_of_day(value: str) -> int:
    """Parse ``HH:MM`` into minutes from midnight."""
    try:
        hour_text, minute_text = value.strip().split(":")
        hour, minute = int(hour_text), int(minute_text)
    except ValueError:
        raise TimefillError(f"Invalid time of day {value!r} (expected HH:MM)") from None
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise TimefillError(f"Invalid time of day {value!r} (expected HH:MM)")
    return hour * 60 + minute


def format_time_of_day(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _at_time_of_day(day: datetime, minutes: int) -> datetime:
    return day.replace(hour=minutes // 60, minute=minutes % 60, second=0, microsecond=0)


def _fire_times(event: Event, prefs: NotificationPreferences, now: datetime) -> list[datetime]:
    target = event.target_date
    candidates = []

    if is_scheduled(event, now):
        candidates.append(_at_time_of_day(event.created_date, START_DAY_TIME))
    if prefs.on_event_day:
        candidates.append(_at_time_of_day(target, prefs.event_day_time))
    candidates.append(target)
    if prefs.one_day_before:
        candidates.append(_at_time_of_day(target - timedelta(days=1), prefs.one_day_before_time))
    if prefs.one_week_before:
        candidates.append(_at_time_of_day(target - timedelta(days=7), prefs.one_week_before_time))
    if prefs.one_month_before:
        candidates.append(
            _at_time_of_day(target - relativedelta(months=1), prefs.one_month_before_time)
        )

    return [when for when in candidates if when > now]


def _body_for(event: Event, fire_at: datetime, now: datetime) -> str:
    if fire_at.date() == event.created_date.date() and event.created_date > now:
        return "Your countdown begins today!"
    if (
        fire_at.date() == event.target_date.date()
        and abs((fire_at - event.target_date).total_seconds()) < 60
    ):
        return "The moment has arrived! Your countdown is complete!"

    # Calendar days, so an evening reminder the day before reads as "tomorrow".
    days_until = (event.target_date.date() - fire_at.date()).days
    if days_until == 0:
        return "Today is the day!"
    if days_until == 1:
        return "Tomorrow is the big day!"
    if days_until == 7:
        return "One week to go!"
    if 28 <= days_until <= 31:
        return "One month away!"
    return f"{days_until} days to go"


def plan_notifications(
    event: Event, prefs: NotificationPreferences, now: datetime
) -> list[NotificationRequest]:
    """Return the reminder requests for one event, in the order they were planned.

    Identifiers are ``<event id>-<index>`` so a host can cancel everything
    belonging to an event by prefix before scheduling the new plan.
    """
    if not prefs.enabled:
        return []

    requests = [
        NotificationRequest(
            identifier=f"{event.id}-{index}",
            fire_at=fire_at,
            title=NOTIFICATION_TITLE,
            subtitle=event.name,
            body=_body_for(event, fire_at, now),
        )
        for index, fire_at in enumerate(_fire_times(event, prefs, now))
    ]
    logger.debug(f"Planned {len(requests)} notification(s) for '{event.name}'")
    return requests


def plan_all(
    events: list[Event], prefs: NotificationPreferences, now: datetime
) -> list[NotificationRequest]:
    requests: list[NotificationRequest] = []
    for event in events:
        requests.extend(plan_notifications(event, prefs, now))
    return requests
