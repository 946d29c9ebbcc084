"""
SQLite record store for countdown events.
"""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from timefill.models import Event
from timefill.models import RepeatKind
from timefill.models import TimefillError
from timefill.models import YearlyRepeatStyle

_COLUMNS = (
    "id",
    "name",
    "target_date",
    "created_date",
    "added_to_app_date",
    "color_hex",
    "icon_name",
    "repeat_kind",
    "repeat_interval",
    "yearly_repeat_style",
    "is_repeat_occurrence",
)

# Columns introduced with repeat support, and the SQL used to backfill them on
# databases written before they existed.
_REPEAT_COLUMNS = {
    "added_to_app_date": "TEXT NOT NULL DEFAULT ''",
    "repeat_kind": "TEXT NOT NULL DEFAULT 'None'",
    "repeat_interval": "INTEGER NOT NULL DEFAULT 1",
    "yearly_repeat_style": "TEXT NOT NULL DEFAULT 'fixedDate'",
    "is_repeat_occurrence": "INTEGER NOT NULL DEFAULT 0",
}


def _to_row(event: Event) -> tuple:
    return (
        event.id,
        event.name,
        event.target_date.isoformat(),
        event.created_date.isoformat(),
        event.added_to_app_date.isoformat(),
        event.color_hex,
        event.icon_name,
        event.repeat_kind.value,
        event.repeat_interval,
        event.yearly_repeat_style.value,
        int(event.is_repeat_occurrence),
    )


def _from_row(row: sqlite3.Row) -> Event:
    """Decode a stored row, raising TimefillError for values the model cannot hold."""
    try:
        return Event(
            id=row["id"],
            name=row["name"],
            target_date=datetime.fromisoformat(row["target_date"]),
            created_date=datetime.fromisoformat(row["created_date"]),
            added_to_app_date=datetime.fromisoformat(row["added_to_app_date"]),
            color_hex=row["color_hex"],
            icon_name=row["icon_name"],
            repeat_kind=RepeatKind(row["repeat_kind"]),
            repeat_interval=row["repeat_interval"],
            yearly_repeat_style=YearlyRepeatStyle(row["yearly_repeat_style"]),
            is_repeat_occurrence=bool(row["is_repeat_occurrence"]),
        )
    except (TypeError, ValueError) as e:
        raise TimefillError(f"Undecodable event record {row['id']!r}: {e}") from e


class EventStore:
    """Durable event records keyed by event id."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.conn: sqlite3.Connection | None = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def connect(self):
        """Open the database, creating the file and schema as needed."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path))
        self.conn.row_factory = sqlite3.Row  # Enable column access by name
        self._init_schema()
        self.migrate_if_needed()

    def _init_schema(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS events (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                target_date TEXT NOT NULL,
                created_date TEXT NOT NULL,
                added_to_app_date TEXT NOT NULL,
                color_hex TEXT NOT NULL,
                icon_name TEXT NOT NULL,
                repeat_kind TEXT NOT NULL DEFAULT 'None',
                repeat_interval INTEGER NOT NULL DEFAULT 1,
                yearly_repeat_style TEXT NOT NULL DEFAULT 'fixedDate',
                is_repeat_occurrence INTEGER NOT NULL DEFAULT 0
            )
        """)
        self.conn.commit()

    def migrate_if_needed(self) -> list[str]:
        """
        Bring a database written before repeat support up to the current schema.

        Missing columns are added with their "does not repeat" defaults, and
        ``added_to_app_date`` is backfilled from ``created_date`` because the
        old schema did not distinguish the two.

        Returns the names of the columns that were added.
        """
        logger = logging.getLogger(__name__)

        cursor = self.conn.execute("PRAGMA table_info(events)")
        columns = {row["name"] for row in cursor.fetchall()}
        missing = [name for name in _REPEAT_COLUMNS if name not in columns]
        if not missing:
            return []

        logger.info(f"Migrating event store: adding {', '.join(missing)}")
        for name in missing:
            self.conn.execute(f"ALTER TABLE events ADD COLUMN {name} {_REPEAT_COLUMNS[name]}")
        if "added_to_app_date" in missing:
            self.conn.execute(
                "UPDATE events SET added_to_app_date = created_date WHERE added_to_app_date = ''"
            )
        self.conn.commit()
        return missing

    # ------------------------------------------------------------------ #
    # Queries                                                             #
    # ------------------------------------------------------------------ #

    def fetch_all_events(self) -> list[Event]:
        """Return every stored event, ordered by target date."""
        cursor = self.conn.execute(
            f"SELECT {', '.join(_COLUMNS)} FROM events ORDER BY target_date, id"
        )
        return [_from_row(row) for row in cursor.fetchall()]

    def get(self, event_id: str) -> Event | None:
        cursor = self.conn.execute(
            f"SELECT {', '.join(_COLUMNS)} FROM events WHERE id = ? LIMIT 1", (event_id,)
        )
        row = cursor.fetchone()
        return _from_row(row) if row else None

    def find(self, prefix: str) -> Event | None:
        """Look up an event by id or unambiguous id prefix."""
        exact = self.get(prefix)
        if exact or not prefix:
            return exact
        # Wildcards in the prefix match literally.
        escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        cursor = self.conn.execute(
            f"SELECT {', '.join(_COLUMNS)} FROM events WHERE id LIKE ? ESCAPE '\\' LIMIT 2",
            (escaped + "%",),
        )
        rows = cursor.fetchall()
        if len(rows) > 1:
            raise TimefillError(f"Event id prefix {prefix!r} is ambiguous")
        return _from_row(rows[0]) if rows else None

    # ------------------------------------------------------------------ #
    # Mutations                                                           #
    # ------------------------------------------------------------------ #

    def insert(self, event: Event):
        """Insert a new record; an existing id raises sqlite3.IntegrityError."""
        placeholders = ", ".join("?" for _ in _COLUMNS)
        self.conn.execute(
            f"INSERT INTO events ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
            _to_row(event),
        )

    def save(self, events: list[Event]):
        """Upsert the given events, keeping the original ``added_to_app_date``."""
        placeholders = ", ".join("?" for _ in _COLUMNS)
        updates = ", ".join(
            f"{name} = excluded.{name}"
            for name in _COLUMNS
            if name not in ("id", "added_to_app_date")
        )
        self.conn.executemany(
            f"INSERT INTO events ({', '.join(_COLUMNS)}) VALUES ({placeholders}) "
            f"ON CONFLICT(id) DO UPDATE SET {updates}",
            [_to_row(event) for event in events],
        )

    def delete(self, event_id: str) -> bool:
        """Delete one event; returns False when no such id was stored."""
        cursor = self.conn.execute("DELETE FROM events WHERE id = ?", (event_id,))
        return cursor.rowcount > 0

    def delete_many(self, event_ids: list[str]) -> int:
        deleted = 0
        for event_id in event_ids:
            if self.delete(event_id):
                deleted += 1
        return deleted

    def commit(self):
        """Commit pending transactions."""
        if self.conn:
            self.conn.commit()

    def close(self):
        """Close the database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None


def query_summary(db_path: Path) -> dict[str, int]:
    """
    Return per-repeat-kind event counts plus a ``total`` key.

    Returns an empty dict when the DB file does not exist or has no events
    table yet.
    """
    if not db_path.exists():
        return {}
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        tables = {
            row["name"] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
        if "events" not in tables:
            return {}
        columns = {row["name"] for row in conn.execute("PRAGMA table_info(events)")}
        if "repeat_kind" not in columns:
            total = conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]
            return {"total": total}
        summary = {
            row["repeat_kind"]: row["count"]
            for row in conn.execute(
                "SELECT repeat_kind, COUNT(*) AS count FROM events GROUP BY repeat_kind"
            )
        }
        summary["total"] = sum(summary.values())
        return summary
    finally:
        conn.close()
