"""
Derived countdown state and next-occurrence arithmetic.

Every function here is a pure function of an Event and a reference instant.
Nothing mutates the event it reads; advancing a repeating event is done by
the scheduler.
"""

from datetime import datetime
from datetime import timedelta

from dateutil.relativedelta import relativedelta

from timefill.models import Event
from timefill.models import EventStatus
from timefill.models import RepeatKind
from timefill.models import TimeBreakdown
from timefill.models import TimefillError
from timefill.models import YearlyRepeatStyle

# Length of the "just completed" display phase of a repeating event. The
# scheduler will not reset an event before this has elapsed.
COUNT_UP_SECONDS = 120

# Repeating events keep their completed badge for this long after completion.
COMPLETED_BADGE_HOURS = 24

_SECONDS_PER_DAY = 86400


def _breakdown(start: datetime, end: datetime) -> TimeBreakdown:
    """Split ``end - start`` into floored components; all zero when not positive."""
    delta = end - start
    if delta <= timedelta(0):
        return TimeBreakdown()
    total = int(delta.total_seconds())
    days, rest = divmod(total, _SECONDS_PER_DAY)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    return TimeBreakdown(days=days, hours=hours, minutes=minutes, seconds=seconds)


def _whole_days(start: datetime, end: datetime) -> int:
    # Truncates toward zero, so a negative span of less than a day is 0.
    return int((end - start).total_seconds() / _SECONDS_PER_DAY)


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


def is_scheduled(event: Event, now: datetime) -> bool:
    """True while the countdown has not started yet."""
    return now < event.created_date


def is_completed(event: Event, now: datetime) -> bool:
    return now >= event.target_date


def repeats(event: Event) -> bool:
    return event.repeat_kind is not RepeatKind.NONE


def should_reset_repeat(event: Event, now: datetime) -> bool:
    """True once a completed repeating event has finished its count-up phase.

    The boundary is inclusive: an event becomes eligible exactly
    ``COUNT_UP_SECONDS`` after its target date.
    """
    if not repeats(event) or not is_completed(event, now):
        return False
    return now >= event.target_date + timedelta(seconds=COUNT_UP_SECONDS)


def status(event: Event, now: datetime) -> EventStatus:
    if is_scheduled(event, now):
        return EventStatus.SCHEDULED
    if not is_completed(event, now):
        return EventStatus.ACTIVE
    if repeats(event) and not should_reset_repeat(event, now):
        return EventStatus.COUNTING_UP
    return EventStatus.COMPLETED


def should_show_completed_badge(event: Event, now: datetime) -> bool:
    """Whether list views should mark the event as completed.

    Non-repeating events keep the badge forever once completed; repeating
    events only during the first day after completion.
    """
    if not (repeats(event) and is_completed(event, now)):
        return is_completed(event, now)
    hours_since = (now - event.target_date).total_seconds() / 3600
    return 0 <= hours_since < COMPLETED_BADGE_HOURS


# ---------------------------------------------------------------------------
# Remaining / elapsed units
# ---------------------------------------------------------------------------


def remaining(event: Event, now: datetime) -> TimeBreakdown:
    return _breakdown(now, event.target_date)


def until_start(event: Event, now: datetime) -> TimeBreakdown:
    """Time left before a scheduled event starts counting down."""
    return _breakdown(now, event.created_date)


def hours_until_start(event: Event, now: datetime) -> int:
    if not is_scheduled(event, now):
        return 0
    return int((event.created_date - now).total_seconds() // 3600)


def starts_today(event: Event, now: datetime) -> bool:
    return is_scheduled(event, now) and 0 <= hours_until_start(event, now) < 24


def progress(event: Event, now: datetime) -> float:
    """Fraction of the countdown elapsed, always within [0.0, 1.0].

    A record whose target is not after its start date has no meaningful
    duration; it reads as complete once the target has passed and as
    untouched before that.
    """
    if is_scheduled(event, now):
        return 0.0
    total = (event.target_date - event.created_date).total_seconds()
    if total <= 0:
        return 1.0 if is_completed(event, now) else 0.0
    elapsed = (now - event.created_date).total_seconds()
    return min(max(elapsed / total, 0.0), 1.0)


def count_up(event: Event, now: datetime) -> tuple[int, int]:
    """(minutes, seconds) since the target date, capped at the count-up window."""
    if not is_completed(event, now):
        return 0, 0
    elapsed = min(int((now - event.target_date).total_seconds()), COUNT_UP_SECONDS)
    return divmod(elapsed, 60)


def total_days(event: Event) -> int:
    return max(_whole_days(event.created_date, event.target_date), 1)


def days_since_start(event: Event, now: datetime) -> int:
    """Whole days since the start, never more than :func:`total_days`."""
    days = max(_whole_days(event.created_date, now), 0)
    return min(days, total_days(event))


# ---------------------------------------------------------------------------
# Next occurrence
# ---------------------------------------------------------------------------


def _nth_weekday_in_later_year(after: datetime, years: int) -> datetime:
    """Land on the same ordinal weekday of the same month, ``years`` later.

    2025-11-02 is the first Sunday of November 2025, so one year later this
    returns the first Sunday of November 2026. When the ordinal does not
    exist in the target month (a fifth Friday, say) the day count runs on
    into the following month.
    """
    ordinal = (after.day - 1) // 7 + 1
    first_of_month = after.replace(year=after.year + years, day=1)
    offset = (after.weekday() - first_of_month.weekday()) % 7
    return first_of_month + timedelta(days=offset + (ordinal - 1) * 7)


def next_occurrence_date(event: Event, after: datetime) -> datetime | None:
    """Return the occurrence following ``after`` for the event's repeat rule.

    Month and year steps use ``relativedelta``, which clamps to the end of
    shorter months (Jan 31 + 1 month = Feb 28). Time of day is preserved in
    every case. Returns None for events that do not repeat.
    """
    kind = event.repeat_kind
    interval = event.repeat_interval

    if kind is RepeatKind.NONE:
        return None
    if kind is RepeatKind.DAILY:
        return after + relativedelta(days=interval)
    if kind is RepeatKind.WEEKLY:
        return after + relativedelta(weeks=interval)
    if kind is RepeatKind.MONTHLY:
        return after + relativedelta(months=interval)
    if kind is RepeatKind.YEARLY:
        if event.yearly_repeat_style is YearlyRepeatStyle.RELATIVE_WEEKDAY:
            return _nth_weekday_in_later_year(after, interval)
        return after + relativedelta(years=interval)
    raise TimefillError(f"Unhandled repeat kind: {kind!r}")


_REPEAT_UNITS = {
    RepeatKind.DAILY: ("Daily", "Days"),
    RepeatKind.WEEKLY: ("Weekly", "Weeks"),
    RepeatKind.MONTHLY: ("Monthly", "Months"),
    RepeatKind.YEARLY: ("Yearly", "Years"),
}


def repeat_display_text(event: Event) -> str | None:
    """Human label for the repeat rule, e.g. "Repeats Every 3 Days"."""
    if not repeats(event):
        return None
    adverb, unit = _REPEAT_UNITS[event.repeat_kind]
    if event.repeat_interval == 1:
        text = f"Repeats {adverb}"
    else:
        text = f"Repeats Every {event.repeat_interval} {unit}"
    if (
        event.repeat_kind is RepeatKind.YEARLY
        and event.yearly_repeat_style is YearlyRepeatStyle.RELATIVE_WEEKDAY
    ):
        text += " (Relative)"
    return text
