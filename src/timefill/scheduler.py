"""
Repeat scheduler — advances completed repeating events to their next cycle.
"""

import dataclasses
import logging
import sqlite3
from datetime import datetime
from datetime import timedelta
from typing import TYPE_CHECKING

from timefill.countdown import next_occurrence_date
from timefill.countdown import should_reset_repeat
from timefill.models import Event
from timefill.models import ResetResult
from timefill.models import TimefillError
from timefill.models import new_event_id

if TYPE_CHECKING:
    from timefill.db import EventStore

# Overlapping invocations within this window never reset the same event twice.
DEBOUNCE_WINDOW = timedelta(seconds=5)


def reset_in_place(event: Event, next_date: datetime, now: datetime) -> None:
    """Start the event's next cycle immediately.

    The new cycle runs from ``now`` to ``next_date``; its length is not the
    length of the previous cycle.
    """
    event.target_date = next_date
    event.created_date = now
    event.is_repeat_occurrence = True


def chain_next_occurrence(event: Event, now: datetime) -> Event | None:
    """Build the record for the cycle after ``event``, keeping the cycle length.

    Used right after an event is created by hand. Unlike :func:`reset_in_place`
    the original record is left alone and the new record starts exactly one
    previous-cycle duration before its target. Returns None when the event
    does not repeat.
    """
    next_date = next_occurrence_date(event, event.target_date)
    if next_date is None:
        return None
    duration = event.target_date - event.created_date
    return dataclasses.replace(
        event,
        id=new_event_id(),
        target_date=next_date,
        created_date=next_date - duration,
        added_to_app_date=now,
        is_repeat_occurrence=True,
    )


class RepeatScheduler:
    """Reconciles a snapshot of events against the current instant.

    One instance is created per process and handed to every trigger point;
    callers must not invoke it concurrently.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._recently_reset: set[str] = set()
        self._last_reset_at: datetime | None = None

    def _debounce_expired(self, now: datetime) -> bool:
        return self._last_reset_at is None or now - self._last_reset_at > DEBOUNCE_WINDOW

    def reconcile(self, events: list[Event], now: datetime) -> ResetResult:
        """Reset every event whose count-up phase has ended, at most once per completion."""
        result = ResetResult()

        for event in events:
            if not should_reset_repeat(event, now):
                continue

            if self._debounce_expired(now):
                self._recently_reset.clear()

            if event.id in self._recently_reset:
                self.logger.debug(f"Skipping '{event.name}' ({event.id}): recently reset")
                result.suppressed.append(event.id)
                continue

            next_date = next_occurrence_date(event, event.target_date)
            if next_date is None:
                self.logger.warning(
                    f"Could not calculate next occurrence for '{event.name}' ({event.id})"
                )
                result.failed.append(event.id)
                continue

            previous_target = event.target_date
            reset_in_place(event, next_date, now)
            self._recently_reset.add(event.id)
            self._last_reset_at = now
            result.reset.append(event)

            self.logger.info(
                f"Reset '{event.name}' from {previous_target.isoformat()} "
                f"to {next_date.isoformat()}"
            )
            self.logger.debug(
                f"New cycle for {event.id}: {(next_date - now).days} day(s) starting now"
            )

        return result

    def run(self, store: "EventStore", now: datetime) -> ResetResult:
        """Fetch, reconcile and persist.

        A failed read counts as an empty event set; the next trigger point
        will try again. A failed write is logged and the result still
        returned so callers can refresh notifications and snapshots.
        """
        try:
            events = store.fetch_all_events()
        except (sqlite3.Error, TimefillError) as e:
            self.logger.error(f"Failed to fetch events: {e}")
            return ResetResult()

        result = self.reconcile(events, now)

        if result.reset:
            try:
                store.save(result.reset)
                store.commit()
            except (sqlite3.Error, TimefillError) as e:
                self.logger.error(f"Failed to save {len(result.reset)} reset event(s): {e}")

        return result
