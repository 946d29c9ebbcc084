"""
Command-line host for the TimeFill countdown core.
"""

import logging
import sqlite3
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from timefill import countdown
from timefill.config import load_config
from timefill.db import EventStore
from timefill.db import query_summary
from timefill.importer import IMPORT_HORIZON_MONTHS
from timefill.importer import import_entries
from timefill.importer import load_entries
from timefill.lifecycle import TRIGGERS
from timefill.lifecycle import EventLifecycle
from timefill.models import DEFAULT_COLOR
from timefill.models import DEFAULT_CONFIG
from timefill.models import DEFAULT_ICON
from timefill.models import AppConfig
from timefill.models import Event
from timefill.models import EventStatus
from timefill.models import RepeatKind
from timefill.models import TimefillError
from timefill.models import YearlyRepeatStyle
from timefill.notifications import format_time_of_day
from timefill.notifications import plan_all
from timefill.scheduler import RepeatScheduler
from timefill.scheduler import chain_next_occurrence
from timefill.snapshot import write_snapshot

# ---------------------------------------------------------------------------
# Typer app
# ---------------------------------------------------------------------------

app = typer.Typer(
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Countdowns with progress tracking, reminders and automatic repeats.",
)

console = Console()

_DATETIME_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M:%S"]

_STATUS_STYLES = {
    EventStatus.SCHEDULED: "yellow",
    EventStatus.ACTIVE: "cyan",
    EventStatus.COUNTING_UP: "bold magenta",
    EventStatus.COMPLETED: "green",
}


# ---------------------------------------------------------------------------
# Global state shared across subcommands
# ---------------------------------------------------------------------------


@dataclass
class _State:
    config_path: Path = field(default_factory=lambda: DEFAULT_CONFIG)
    db_path: Path | None = None
    snapshot_path: Path | None = None
    verbose: bool = False


state = _State()


@app.callback()
def _global(
    config: Annotated[
        Path,
        typer.Option("--config", "-c", help=f"Config file path (default: {DEFAULT_CONFIG})"),
    ] = DEFAULT_CONFIG,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Event database path (overrides config)"),
    ] = None,
    snapshot: Annotated[
        Path | None,
        typer.Option("--snapshot", help="Snapshot JSON path (overrides config)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose debug output"),
    ] = False,
) -> None:
    state.config_path = config
    state.db_path = db
    state.snapshot_path = snapshot
    state.verbose = verbose
    _setup_logging(verbose)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False, console=console)],
        force=True,
    )


def _config(dry_run: bool = False) -> AppConfig:
    try:
        return load_config(
            state.config_path,
            db_path=state.db_path,
            snapshot_path=state.snapshot_path,
            verbose=state.verbose,
            dry_run=dry_run,
        )
    except TimefillError as e:
        console.print(f"[bold red]Error:[/] {e}")
        raise typer.Exit(1) from None


def _fail(message: str) -> None:
    console.print(f"[bold red]Error:[/] {message}")
    raise typer.Exit(1)


def _lookup(store: EventStore, event_id: str) -> Event:
    try:
        event = store.find(event_id)
    except TimefillError as e:
        _fail(str(e))
    if event is None:
        _fail(f"No event with id {event_id!r}")
    return event


def _fetch_all(store: EventStore) -> list[Event]:
    try:
        return store.fetch_all_events()
    except (sqlite3.Error, TimefillError) as e:
        _fail(f"Cannot read events: {e}")


def _format_breakdown(event: Event, now: datetime) -> str:
    if countdown.is_scheduled(event, now):
        left = countdown.until_start(event, now)
        prefix = "starts in "
    else:
        left = countdown.remaining(event, now)
        prefix = ""
    return f"{prefix}{left.days}d {left.hours:02d}:{left.minutes:02d}:{left.seconds:02d}"


def _progress_bar(value: float, width: int = 20) -> Text:
    filled = round(value * width)
    bar = Text("█" * filled, style="cyan")
    bar.append("░" * (width - filled), style="dim")
    bar.append(f" {value * 100:5.1f}%")
    return bar


def _status_text(event: Event, now: datetime) -> Text:
    current = countdown.status(event, now)
    label = current.value
    if current is EventStatus.SCHEDULED and countdown.starts_today(event, now):
        label = "starts today"
    elif current is EventStatus.COUNTING_UP:
        minutes, seconds = countdown.count_up(event, now)
        label = f"+{minutes}:{seconds:02d}"
    return Text(label, style=_STATUS_STYLES[current])


# ---------------------------------------------------------------------------
# Subcommands: events
# ---------------------------------------------------------------------------

_DRY_RUN = Annotated[bool, typer.Option("--dry-run", "-n", help="Preview changes without applying")]
_YES = Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")]


@app.command()
def add(
    name: Annotated[str, typer.Argument(help="Event name")],
    target: Annotated[
        datetime,
        typer.Option("--target", "-t", formats=_DATETIME_FORMATS, help="When the countdown ends"),
    ],
    start: Annotated[
        datetime | None,
        typer.Option("--start", "-s", formats=_DATETIME_FORMATS, help="Countdown start (default: now)"),
    ] = None,
    color: Annotated[str, typer.Option("--color", help="Hex colour")] = DEFAULT_COLOR,
    icon: Annotated[str, typer.Option("--icon", help="Icon name")] = DEFAULT_ICON,
    repeat: Annotated[
        RepeatKind,
        typer.Option("--repeat", "-r", case_sensitive=False, help="Repeat cadence"),
    ] = RepeatKind.NONE,
    every: Annotated[int, typer.Option("--every", help="Repeat every N units")] = 1,
    relative: Annotated[
        bool,
        typer.Option(
            "--relative",
            help="Yearly repeats land on the same Nth weekday of the month (e.g. 1st Sunday)",
        ),
    ] = False,
    chain: Annotated[
        bool,
        typer.Option("--chain", help="Also create the next occurrence, keeping the cycle length"),
    ] = False,
) -> None:
    """Create a countdown event."""
    now = datetime.now()
    created = start or now

    if target <= created:
        raise typer.BadParameter("target must be after the start date", param_hint="--target")
    if every < 1:
        raise typer.BadParameter("must be at least 1", param_hint="--every")
    if relative and repeat is not RepeatKind.YEARLY:
        raise typer.BadParameter("only applies to --repeat yearly", param_hint="--relative")

    event = Event(
        name=name,
        target_date=target,
        created_date=created,
        added_to_app_date=now,
        color_hex=color,
        icon_name=icon,
        repeat_kind=repeat,
        repeat_interval=every,
        yearly_repeat_style=(
            YearlyRepeatStyle.RELATIVE_WEEKDAY if relative else YearlyRepeatStyle.FIXED_DATE
        ),
    )
    created_events = [event]
    if chain:
        follower = chain_next_occurrence(event, now)
        if follower is None:
            console.print("[yellow]Warning:[/] --chain ignored for an event that does not repeat")
        else:
            created_events.append(follower)

    cfg = _config()
    with EventStore(cfg.db_path) as store:
        for item in created_events:
            store.insert(item)
        store.commit()

    for item in created_events:
        console.print(
            f"[green]Added[/] [bold]{item.name}[/] → {item.target_date.isoformat(sep=' ')}"
            f" [dim]({item.id})[/dim]"
        )


@app.command("list")
def list_events(
    all_events: Annotated[
        bool, typer.Option("--all", "-a", help="Include completed events")
    ] = False,
) -> None:
    """List events with progress and time remaining."""
    cfg = _config()
    now = datetime.now()
    with EventStore(cfg.db_path) as store:
        events = _fetch_all(store)

    if not all_events:
        events = [e for e in events if countdown.status(e, now) is not EventStatus.COMPLETED]

    if not events:
        console.print("[yellow]No events to show.[/]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Target")
    table.add_column("Status")
    table.add_column("Remaining", justify="right")
    table.add_column("Progress")
    table.add_column("Repeat", style="dim")
    for event in events:
        table.add_row(
            event.id[:8],
            event.name,
            event.target_date.isoformat(sep=" ", timespec="minutes"),
            _status_text(event, now),
            _format_breakdown(event, now),
            _progress_bar(countdown.progress(event, now)),
            countdown.repeat_display_text(event) or "",
        )
    console.print(table)


@app.command()
def show(event_id: Annotated[str, typer.Argument(help="Event id or id prefix")]) -> None:
    """Show everything known about one event."""
    cfg = _config()
    now = datetime.now()
    with EventStore(cfg.db_path) as store:
        event = _lookup(store, event_id)

    info = Text()
    info.append("  Target:    ", style="bold")
    info.append(f"{event.target_date.isoformat(sep=' ')}\n")
    info.append("  Start:     ", style="bold")
    info.append(f"{event.created_date.isoformat(sep=' ')}\n")
    info.append("  Added:     ", style="bold")
    info.append(f"{event.added_to_app_date.isoformat(sep=' ')}\n", style="dim")
    info.append("  Status:    ", style="bold")
    info.append_text(_status_text(event, now))
    info.append("\n  Remaining: ", style="bold")
    info.append(f"{_format_breakdown(event, now)}\n")
    info.append("  Progress:  ", style="bold")
    info.append_text(_progress_bar(countdown.progress(event, now)))
    info.append("\n  Days:      ", style="bold")
    info.append(f"{countdown.days_since_start(event, now)} of {countdown.total_days(event)}\n")
    info.append("  Repeat:    ", style="bold")
    info.append(countdown.repeat_display_text(event) or "never")
    if event.is_repeat_occurrence:
        info.append(" (auto-repeated)", style="dim")
    next_date = countdown.next_occurrence_date(event, event.target_date)
    if next_date:
        info.append("\n  Next:      ", style="bold")
        info.append(next_date.isoformat(sep=" "))

    console.print(Panel(info, title=f"[bold]{event.name}[/bold] [dim]{event.id}[/dim]"))


@app.command()
def delete(
    event_id: Annotated[str, typer.Argument(help="Event id or id prefix")],
    yes: _YES = False,
) -> None:
    """Delete one event."""
    cfg = _config()
    with EventStore(cfg.db_path) as store:
        event = _lookup(store, event_id)
        if not yes:
            typer.confirm(f"Delete '{event.name}'?", abort=True)
        store.delete(event.id)
        store.commit()
    console.print(f"[green]Deleted[/] [bold]{event.name}[/]")


# ---------------------------------------------------------------------------
# Subcommand: tick (repeat reconciliation)
# ---------------------------------------------------------------------------


@app.command()
def tick(
    trigger: Annotated[
        str,
        typer.Option("--trigger", help=f"Trigger point: {', '.join(TRIGGERS)}"),
    ] = "tick",
    dry_run: _DRY_RUN = False,
) -> None:
    """Advance completed repeating events, apply auto-delete, re-plan reminders."""
    cfg = _config(dry_run=dry_run)
    lifecycle = EventLifecycle(cfg, RepeatScheduler())
    try:
        stats = lifecycle.run(trigger)
    except TimefillError as e:
        console.print(f"[bold red]Tick failed:[/] {e}")
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted by user[/]")
        raise typer.Exit(130) from None
    except Exception as e:
        console.print_exception()
        console.print(f"[bold red]Unexpected error:[/] {e}")
        raise typer.Exit(1) from e

    results = Table.grid(padding=(0, 2))
    results.add_column(style="bold")
    results.add_column(justify="right")
    results.add_row("Checked", str(stats.checked))
    results.add_row("Reset", str(stats.reset))
    results.add_row("Deleted", str(stats.deleted))
    results.add_row("Reminders", str(stats.notifications))
    error_val = Text(str(stats.errors))
    if stats.errors == 0:
        error_val.append(" ✓", style="green")
    else:
        error_val.stylize("bold red")
    results.add_row("Errors", error_val)

    title = "[bold]Results[/bold]" + (" [magenta](dry run)[/magenta]" if dry_run else "")
    console.print(Panel(results, title=title, expand=False))

    if stats.errors:
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Subcommands: notifications / snapshot / import
# ---------------------------------------------------------------------------


@app.command()
def notifications(
    event_id: Annotated[
        str | None, typer.Argument(help="Restrict to one event (id or prefix)")
    ] = None,
) -> None:
    """Show the reminders that would be scheduled."""
    cfg = _config()
    now = datetime.now()
    with EventStore(cfg.db_path) as store:
        events = [_lookup(store, event_id)] if event_id else _fetch_all(store)

    prefs = cfg.notifications
    if not prefs.enabled:
        console.print("[yellow]Notifications are disabled in the config file.[/]")
        return

    requests = sorted(plan_all(events, prefs, now), key=lambda r: r.fire_at)
    if not requests:
        console.print("[yellow]No upcoming reminders.[/]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("When")
    table.add_column("Event", style="bold")
    table.add_column("Message")
    table.add_column("ID", style="dim", overflow="fold")
    for request in requests:
        table.add_row(
            request.fire_at.isoformat(sep=" ", timespec="minutes"),
            request.subtitle,
            request.body,
            request.identifier,
        )
    console.print(table)


@app.command()
def snapshot() -> None:
    """Write the display snapshot for read-only consumers."""
    cfg = _config()
    now = datetime.now()
    with EventStore(cfg.db_path) as store:
        events = _fetch_all(store)
    try:
        document = write_snapshot(cfg.snapshot_path, events, now)
    except OSError as e:
        _fail(f"Cannot write snapshot: {e}")

    next_event = document["nextEvent"]
    console.print(f"Wrote [cyan]{cfg.snapshot_path}[/] ({len(events)} event(s))")
    if next_event:
        console.print(f"  Next: [bold]{next_event['name']}[/] at {next_event['targetDate']}")


@app.command("import")
def import_calendar(
    path: Annotated[Path, typer.Argument(help="JSON file of calendar entries")],
    months: Annotated[
        int, typer.Option("--months", min=1, help="Only import entries starting within N months")
    ] = IMPORT_HORIZON_MONTHS,
    dry_run: _DRY_RUN = False,
    yes: _YES = False,
) -> None:
    """Import calendar entries as countdowns."""
    cfg = _config(dry_run=dry_run)
    now = datetime.now()
    try:
        events = import_entries(load_entries(path), now, months=months)
    except TimefillError as e:
        _fail(str(e))

    if not events:
        console.print("[yellow]Nothing to import.[/]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Name", style="bold")
    table.add_column("Target")
    table.add_column("Colour")
    table.add_column("Icon", style="dim")
    for event in events:
        table.add_row(
            event.name,
            event.target_date.isoformat(sep=" ", timespec="minutes"),
            Text(event.color_hex, style=event.color_hex),
            event.icon_name,
        )
    console.print(table)

    if dry_run:
        console.print(f"[magenta][DRY RUN][/] Would import {len(events)} event(s)")
        return
    if not yes:
        typer.confirm(f"Import {len(events)} event(s)?", abort=True)

    with EventStore(cfg.db_path) as store:
        for event in events:
            store.insert(event)
        store.commit()
    console.print(f"[green]Imported {len(events)} event(s)[/]")


# ---------------------------------------------------------------------------
# Subcommand: status
# ---------------------------------------------------------------------------


@app.command()
def status() -> None:
    """Show configuration and event database summary."""
    cfg = _config()
    config_exists = state.config_path.exists()
    db_exists = cfg.db_path.exists()

    info = Text()
    info.append("  Config:   ", style="bold")
    info.append(str(state.config_path) + " ")
    info.append("✓" if config_exists else "(not found)", style="green" if config_exists else "red")
    info.append("\n  Database: ", style="bold")
    info.append(str(cfg.db_path) + " ")
    info.append("✓" if db_exists else "(not found)", style="green" if db_exists else "yellow")
    info.append("\n  Snapshot: ", style="bold")
    info.append(str(cfg.snapshot_path))
    info.append("\n  Auto-delete completed: ", style="bold")
    info.append("on" if cfg.auto_delete_completed else "off")

    prefs = cfg.notifications
    info.append("\n  Reminders: ", style="bold")
    if not prefs.enabled:
        info.append("disabled", style="yellow")
    else:
        offsets = [
            (prefs.on_event_day, "event day", prefs.event_day_time),
            (prefs.one_day_before, "1 day before", prefs.one_day_before_time),
            (prefs.one_week_before, "1 week before", prefs.one_week_before_time),
            (prefs.one_month_before, "1 month before", prefs.one_month_before_time),
        ]
        enabled = [f"{label} {format_time_of_day(t)}" for on, label, t in offsets if on]
        info.append(", ".join(enabled) or "exact time only")

    console.print(Panel(info, title="[bold]TimeFill — Status[/bold]"))

    summary = query_summary(cfg.db_path)
    if not summary:
        console.print("[yellow]No events yet — run[/] [cyan]timefill add[/] [yellow]to create one.[/]")
        return

    table = Table(show_header=True, header_style="bold cyan", box=None, padding=(0, 2))
    table.add_column("Repeat")
    table.add_column("Events", justify="right")
    for kind, count in sorted(summary.items()):
        if kind != "total":
            table.add_row(kind, str(count))
    table.add_row(Text("Total", style="bold"), Text(str(summary["total"]), style="bold"))
    console.print(table)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    app()
