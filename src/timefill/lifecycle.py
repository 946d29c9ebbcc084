"""
EventLifecycle — thin orchestrator run at each host trigger point.
"""

import copy
import logging
import sqlite3
from datetime import datetime

from timefill.countdown import status
from timefill.db import EventStore
from timefill.models import AppConfig
from timefill.models import Event
from timefill.models import EventStatus
from timefill.models import LifecycleStats
from timefill.models import ResetResult
from timefill.models import TimefillError
from timefill.notifications import NotificationRequest
from timefill.notifications import plan_all
from timefill.scheduler import RepeatScheduler
from timefill.snapshot import write_snapshot

# App launch, return to foreground, periodic timer.
TRIGGERS = ("launch", "foreground", "tick")


def completed_for_deletion(events: list[Event], now: datetime) -> list[Event]:
    """Completed events the auto-delete policy may remove.

    Repeating events still in their count-up phase are left for the
    scheduler to advance.
    """
    return [
        event
        for event in events
        if event.target_date < now and status(event, now) is not EventStatus.COUNTING_UP
    ]


class EventLifecycle:
    """Reconcile repeats, apply the auto-delete policy, re-plan reminders, refresh the snapshot."""

    def __init__(self, config: AppConfig, scheduler: RepeatScheduler):
        self.config = config
        self.scheduler = scheduler
        self.logger = logging.getLogger(__name__)
        self.stats = LifecycleStats()
        self.reset_result = ResetResult()
        self.notifications: list[NotificationRequest] = []

    def run(self, trigger: str = "tick", now: datetime | None = None) -> LifecycleStats:
        """Execute one trigger-point pass."""
        if trigger not in TRIGGERS:
            raise TimefillError(f"Unknown trigger {trigger!r} (expected one of {TRIGGERS})")

        now = now or datetime.now()
        self.stats = LifecycleStats()
        self.reset_result = ResetResult()
        self.notifications = []
        self.logger.debug(f"Trigger '{trigger}' at {now.isoformat()}")

        events = self._reconcile(now)
        if events is None:
            # Leave the previous snapshot and reminder plan in place.
            self.logger.warning("Event store unreadable; snapshot and reminders not refreshed")
            return self.stats

        self.notifications = plan_all(events, self.config.notifications, now)
        self.stats.notifications = len(self.notifications)

        if self.config.dry_run:
            self.logger.info(f"[DRY RUN] Would write snapshot of {len(events)} event(s)")
        else:
            try:
                write_snapshot(self.config.snapshot_path, events, now)
            except OSError as e:
                self.logger.error(f"Failed to write snapshot {self.config.snapshot_path}: {e}")
                self.stats.errors += 1

        return self.stats

    def _reconcile(self, now: datetime) -> list[Event] | None:
        """Advance repeats and apply auto-delete; None when the store cannot be read."""
        try:
            with EventStore(self.config.db_path) as store:
                if self.config.dry_run:
                    events = self._dry_run_reconcile(store, now)
                else:
                    self.reset_result = self.scheduler.run(store, now)
                    events = self._fetch(store)

                self.stats.reset = len(self.reset_result.reset)
                self.stats.errors += len(self.reset_result.failed)
                if events is None:
                    return None
                self.stats.checked = len(events)

                if self.config.auto_delete_completed:
                    events = self._sweep_completed(store, events, now)
                return events
        except sqlite3.Error as e:
            self.logger.error(f"Cannot open event store {self.config.db_path}: {e}")
            self.stats.errors += 1
            return None

    def _fetch(self, store: EventStore) -> list[Event] | None:
        try:
            return store.fetch_all_events()
        except (sqlite3.Error, TimefillError) as e:
            self.logger.error(f"Failed to fetch events: {e}")
            self.stats.errors += 1
            return None

    def _dry_run_reconcile(self, store: EventStore, now: datetime) -> list[Event] | None:
        # Reconcile copies with a throwaway scheduler so neither the store nor
        # the real debounce state is touched.
        events = self._fetch(store)
        if events is None:
            return None
        events = copy.deepcopy(events)
        self.reset_result = RepeatScheduler().reconcile(events, now)
        for event in self.reset_result.reset:
            self.logger.info(
                f"[DRY RUN] Would reset '{event.name}' to {event.target_date.isoformat()}"
            )
        return events

    def _sweep_completed(self, store: EventStore, events: list[Event], now: datetime) -> list[Event]:
        doomed = completed_for_deletion(events, now)
        if not doomed:
            return events

        doomed_ids = {event.id for event in doomed}
        if self.config.dry_run:
            self.logger.info(f"[DRY RUN] Would auto-delete {len(doomed)} completed event(s)")
            self.stats.deleted = len(doomed)
            for event in doomed:
                self.logger.debug(f"[DRY RUN] Would delete: {event.name} ({event.id})")
        else:
            try:
                self.stats.deleted = store.delete_many(sorted(doomed_ids))
                store.commit()
                self.logger.info(f"Auto-deleted {self.stats.deleted} completed event(s)")
            except sqlite3.Error as e:
                self.logger.error(f"Failed to auto-delete completed events: {e}")
                self.stats.errors += 1
                return events

        return [event for event in events if event.id not in doomed_ids]
