"""
Shared pytest fixtures and event helpers.
"""

from datetime import datetime
from datetime import timedelta

import pytest

from timefill.db import EventStore
from timefill.models import AppConfig
from timefill.models import Event
from timefill.models import RepeatKind
from timefill.models import YearlyRepeatStyle

# Fixed reference instant so nothing depends on the wall clock.
NOW = datetime(2025, 6, 15, 12, 0, 0)


def make_event(
    name: str = "Test Event",
    target: datetime | None = None,
    created: datetime | None = None,
    repeat: RepeatKind = RepeatKind.NONE,
    interval: int = 1,
    style: YearlyRepeatStyle = YearlyRepeatStyle.FIXED_DATE,
    **kwargs,
) -> Event:
    """Return an event running from ``created`` (default NOW - 10 days) to ``target`` (NOW + 10 days)."""
    return Event(
        name=name,
        target_date=target if target is not None else NOW + timedelta(days=10),
        created_date=created if created is not None else NOW - timedelta(days=10),
        added_to_app_date=kwargs.pop("added", NOW - timedelta(days=10)),
        repeat_kind=repeat,
        repeat_interval=interval,
        yearly_repeat_style=style,
        **kwargs,
    )


def make_completed_repeating(
    name: str = "Daily Standup", seconds_ago: int = 600, repeat: RepeatKind = RepeatKind.DAILY
) -> Event:
    """A repeating event whose target passed ``seconds_ago`` seconds before NOW."""
    target = NOW - timedelta(seconds=seconds_ago)
    return make_event(name, target=target, created=target - timedelta(days=1), repeat=repeat)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "events.db"


@pytest.fixture
def store(db_path):
    with EventStore(db_path) as db:
        yield db


@pytest.fixture
def app_config(tmp_path, db_path):
    return AppConfig(db_path=db_path, snapshot_path=tmp_path / "snapshot.json")
