"""
INI configuration loading.

    [timefill]
    db_path = ~/.local/share/timefill/events.db
    snapshot_path = ~/.local/share/timefill/snapshot.json
    auto_delete_completed = false

    [notifications]
    enabled = true
    on_event_day = true
    event_day_time = 09:00
    one_day_before = true
    one_day_before_time = 18:00
    ...
"""

from configparser import ConfigParser
from configparser import Error as ConfigParserError
from pathlib import Path

from timefill.models import DEFAULT_DB
from timefill.models import DEFAULT_SNAPSHOT
from timefill.models import AppConfig
from timefill.models import NotificationPreferences
from timefill.models import TimefillError
from timefill.notifications import parse_time_of_day

MAIN_SECTION = "timefill"
NOTIFICATIONS_SECTION = "notifications"

_PREF_TOGGLES = ("enabled", "on_event_day", "one_day_before", "one_week_before", "one_month_before")
_PREF_TIMES = (
    "event_day_time",
    "one_day_before_time",
    "one_week_before_time",
    "one_month_before_time",
)


def _read_parser(config_path: Path) -> ConfigParser:
    parser = ConfigParser()
    if config_path.exists():
        try:
            parser.read(config_path)
        except ConfigParserError as e:
            raise TimefillError(f"Cannot parse config file {config_path}: {e}") from e
    return parser


def _load_preferences(parser: ConfigParser) -> NotificationPreferences:
    prefs = NotificationPreferences()
    if NOTIFICATIONS_SECTION not in parser:
        return prefs
    section = parser[NOTIFICATIONS_SECTION]
    try:
        for key in _PREF_TOGGLES:
            if key in section:
                setattr(prefs, key, section.getboolean(key))
    except ValueError as e:
        raise TimefillError(f"[{NOTIFICATIONS_SECTION}] {e}") from e
    for key in _PREF_TIMES:
        if key in section:
            setattr(prefs, key, parse_time_of_day(section[key]))
    return prefs


def load_config(
    config_path: Path,
    db_path: Path | None = None,
    snapshot_path: Path | None = None,
    verbose: bool = False,
    dry_run: bool = False,
) -> AppConfig:
    """Resolve configuration; explicit arguments override file values, which override defaults."""
    parser = _read_parser(config_path)
    main = parser[MAIN_SECTION] if MAIN_SECTION in parser else {}

    try:
        auto_delete = parser.getboolean(MAIN_SECTION, "auto_delete_completed", fallback=False)
    except ValueError as e:
        raise TimefillError(f"[{MAIN_SECTION}] auto_delete_completed: {e}") from e

    return AppConfig(
        db_path=db_path or Path(main.get("db_path", str(DEFAULT_DB))).expanduser(),
        snapshot_path=snapshot_path
        or Path(main.get("snapshot_path", str(DEFAULT_SNAPSHOT))).expanduser(),
        auto_delete_completed=auto_delete,
        notifications=_load_preferences(parser),
        dry_run=dry_run,
        verbose=verbose,
    )
