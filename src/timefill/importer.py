"""
Calendar import — maps external calendar entries onto countdown events.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from dateutil.relativedelta import relativedelta

from timefill.models import DEFAULT_COLOR
from timefill.models import Event
from timefill.models import TimefillError

logger = logging.getLogger(__name__)

UNTITLED = "Untitled Event"
IMPORT_HORIZON_MONTHS = 12

# First matching keyword group wins, so more specific words come first.
_COLOR_KEYWORDS = (
    (("birthday", "bday"), "#36C2FF"),
    (("wedding", "anniversary"), "#FF006E"),
    (("trip", "vacation", "travel"), "#8338EC"),
    (("meeting", "work"), "#FB5607"),
)

_ICON_KEYWORDS = (
    (("birthday", "bday"), "birthday.cake.fill"),
    (("party",), "party.popper.fill"),
    (("wedding",), "heart.fill"),
    (("anniversary",), "heart.circle.fill"),
    (("date",), "heart.fill"),
    (("flight", "fly"), "airplane.departure"),
    (("trip", "vacation", "travel"), "suitcase.fill"),
    (("hotel",), "bed.double.fill"),
    (("meeting", "conference"), "person.2.fill"),
    (("deadline", "due"), "clock.fill"),
    (("presentation",), "presentation.fill"),
    (("doctor", "appointment"), "cross.fill"),
    (("dentist",), "cross.case.fill"),
    (("concert", "show"), "music.note"),
    (("movie",), "film.fill"),
    (("game", "match"), "sportscourt.fill"),
)
_DEFAULT_IMPORT_ICON = "calendar.badge.clock"


@dataclass(frozen=True)
class CalendarEntry:
    """An entry read from an external calendar.

    ``calendar_color`` holds RGB components in the 0..1 range, as calendar
    APIs usually report them.
    """

    title: str | None
    start: datetime
    calendar_color: tuple[float, float, float] | None = None


def rgb_to_hex(rgb: tuple[float, ...]) -> str:
    if len(rgb) < 3:
        return DEFAULT_COLOR
    r, g, b = (int(min(max(c, 0.0), 1.0) * 255) for c in rgb[:3])
    return f"#{r:02X}{g:02X}{b:02X}"


def _match_keywords(title: str, table, default: str) -> str:
    lowered = title.lower()
    for keywords, value in table:
        if any(word in lowered for word in keywords):
            return value
    return default


def color_for(entry: CalendarEntry) -> str:
    if entry.calendar_color is not None:
        return rgb_to_hex(entry.calendar_color)
    return _match_keywords(entry.title or "", _COLOR_KEYWORDS, DEFAULT_COLOR)


def icon_for(entry: CalendarEntry) -> str:
    return _match_keywords(entry.title or "", _ICON_KEYWORDS, _DEFAULT_IMPORT_ICON)


def to_event(entry: CalendarEntry, now: datetime) -> Event:
    """Countdown from ``now`` to the entry's start."""
    return Event(
        name=entry.title or UNTITLED,
        target_date=entry.start,
        created_date=now,
        added_to_app_date=now,
        color_hex=color_for(entry),
        icon_name=icon_for(entry),
    )


def import_entries(
    entries: list[CalendarEntry], now: datetime, months: int = IMPORT_HORIZON_MONTHS
) -> list[Event]:
    """Map entries to events, keeping those that start within the next ``months`` months."""
    horizon = now + relativedelta(months=months)
    events = []
    for entry in entries:
        if entry.start <= now:
            logger.warning(
                f"Skipping '{entry.title or UNTITLED}': starts {entry.start.isoformat()}, "
                f"which is not in the future"
            )
            continue
        if entry.start > horizon:
            logger.info(
                f"Skipping '{entry.title or UNTITLED}': starts {entry.start.isoformat()}, "
                f"more than {months} month(s) ahead"
            )
            continue
        events.append(to_event(entry, now))
    logger.info(f"Mapped {len(events)} of {len(entries)} calendar entries")
    return events


def load_entries(path: Path) -> list[CalendarEntry]:
    """
    Read entries from a JSON file.

    Expected shape: a list of objects with ``title``, ``start`` (ISO-8601)
    and an optional ``color`` of three 0..1 floats.
    """
    try:
        with path.open(encoding="utf-8") as fh:
            raw = json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        raise TimefillError(f"Cannot read calendar entries from {path}: {e}") from e

    if not isinstance(raw, list):
        raise TimefillError(f"{path}: expected a JSON list of entries")

    entries = []
    for index, item in enumerate(raw):
        try:
            color = item.get("color")
            entries.append(
                CalendarEntry(
                    title=item.get("title"),
                    start=datetime.fromisoformat(item["start"]),
                    calendar_color=tuple(float(c) for c in color) if color else None,
                )
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise TimefillError(f"{path}: entry {index} is invalid: {e}") from e
    return entries
