"""
Read-only JSON snapshot of the event set for display surfaces without store access.
"""

import json
import logging
import os
import tempfile
from dataclasses import asdict
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from timefill.models import Event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotEvent:
    id: str
    name: str
    targetDate: str
    createdDate: str
    colorHex: str
    iconName: str

    @classmethod
    def from_event(cls, event: Event) -> "SnapshotEvent":
        return cls(
            id=event.id,
            name=event.name,
            targetDate=event.target_date.isoformat(),
            createdDate=event.created_date.isoformat(),
            colorHex=event.color_hex,
            iconName=event.icon_name,
        )


def next_upcoming(events: list[Event], now: datetime) -> Event | None:
    """The event whose target is soonest among those not yet reached."""
    upcoming = [event for event in events if event.target_date > now]
    return min(upcoming, key=lambda event: event.target_date, default=None)


def build_snapshot(events: list[Event], now: datetime) -> dict:
    """
    Build the snapshot document.

    ``nextEvent`` is the soonest upcoming event (or None), ``allEvents``
    carries the full display fields and ``eventList`` a lightweight list for
    selection menus.
    """
    next_event = next_upcoming(events, now)
    return {
        "generatedAt": now.isoformat(),
        "nextEvent": asdict(SnapshotEvent.from_event(next_event)) if next_event else None,
        "allEvents": [asdict(SnapshotEvent.from_event(event)) for event in events],
        "eventList": [
            {"id": event.id, "name": event.name, "targetDate": event.target_date.isoformat()}
            for event in events
        ],
    }


def write_snapshot(path: Path, events: list[Event], now: datetime) -> dict:
    """Write the snapshot atomically so readers never see a partial file."""
    document = build_snapshot(events, now)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(document, fh, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    logger.debug(f"Snapshot written to {path} ({len(events)} event(s))")
    return document


def read_snapshot(path: Path) -> dict:
    if not path.exists():
        return {}
    with path.open(encoding="utf-8") as fh:
        return json.load(fh)
