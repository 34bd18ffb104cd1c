from __future__ import annotations

import argparse
from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional, Sequence
from zoneinfo import ZoneInfo

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from village_weather.application.services.weather_service import WeatherService
from village_weather.domain.models.climate import Candidate
from village_weather.domain.models.weather import PeriodBounds, ScheduledSpecial, Village, WeatherReading


_BORDER_CURRENT = "cyan"
_BORDER_SCHEDULED = "magenta"
_BORDER_BOUNDS = "blue"


def _title(text: str) -> str:
    return f"[bold yellow]{text}[/bold yellow]"


def _local(instant: Optional[datetime], tz_name: str) -> str:
    if instant is None:
        return "-"
    return instant.astimezone(ZoneInfo(tz_name)).strftime("%Y-%m-%d %H:%M %Z")


def render_reading(console: Console, reading: WeatherReading, *, tz_name: str, title: str = "Weather") -> None:
    grid = Table.grid(padding=(0, 1))
    grid.add_column(style="bold yellow", justify="right")
    grid.add_column(style="white")
    grid.add_row("Village", reading.village.value)
    grid.add_row("Season", reading.season.value.title())
    grid.add_row("Period", _local(reading.period_start, tz_name))
    grid.add_row("Temperature", f"{reading.temperature.symbol} {reading.temperature.label}".strip())
    grid.add_row("Wind", f"{reading.wind.symbol} {reading.wind.label}".strip())
    grid.add_row("Precipitation", f"{reading.precipitation.symbol} {reading.precipitation.label}".strip())
    if reading.special is not None:
        grid.add_row(
            "Special",
            f"{reading.special.symbol} {reading.special.label} ({reading.special.probability_descriptor})".strip(),
        )
    grid.add_row("Posted", "yes" if reading.posted else "no")
    console.print(
        Panel.fit(
            grid,
            title=_title(title),
            subtitle=f"[dim]{reading.symbols()}[/dim]",
            subtitle_align="left",
            border_style=_BORDER_CURRENT,
        )
    )


def render_missing(console: Console, village: Village, message: str) -> None:
    console.print(Panel.fit(message, title=_title(village.value), border_style="yellow"))


def render_scheduled(console: Console, scheduled: ScheduledSpecial, *, tz_name: str) -> None:
    special = scheduled.reading.special
    label = special.label if special is not None else "-"
    console.print(
        Panel.fit(
            f"{label} scheduled for {scheduled.reading.village.value}\n"
            f"{_local(scheduled.period.start, tz_name)} to {_local(scheduled.period.end, tz_name)}",
            title=_title("Guaranteed special"),
            border_style=_BORDER_SCHEDULED,
        )
    )


def render_bounds(console: Console, current: PeriodBounds, upcoming: PeriodBounds, *, tz_name: str) -> None:
    table = Table(title=_title("Weather periods"), border_style=_BORDER_BOUNDS)
    table.add_column("Period")
    table.add_column("Start")
    table.add_column("End")
    table.add_row("current", _local(current.start, tz_name), _local(current.end, tz_name))
    table.add_row("next", _local(upcoming.start, tz_name), _local(upcoming.end, tz_name))
    console.print(table)


def render_village_summary(console: Console, readings: Mapping[Village, WeatherReading]) -> None:
    table = Table(title=_title("Village weather"))
    table.add_column("Village", style="bold")
    table.add_column("Temperature")
    table.add_column("Wind")
    table.add_column("Precipitation")
    table.add_column("Special")
    for village, reading in readings.items():
        table.add_row(
            village.value,
            reading.temperature.label,
            reading.wind.label,
            reading.precipitation.label,
            reading.special.label if reading.special is not None else "-",
        )
    console.print(table)


def render_specials(console: Console, specials: Iterable[Candidate]) -> None:
    table = Table(title=_title("Special weather"))
    table.add_column("Symbol")
    table.add_column("Label", style="bold")
    table.add_column("Weight", justify="right")
    for candidate in specials:
        table.add_row(candidate.symbol, candidate.label, f"{candidate.weight:g}")
    console.print(table)


def _parse_now(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"--now must be an ISO-8601 timestamp, got {raw!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="village_weather", description="Village weather operator tooling")
    parser.add_argument("--now", type=_parse_now, default=None, help="Evaluate at this ISO-8601 instant (UTC if naive)")
    commands = parser.add_subparsers(dest="command", required=True)

    current = commands.add_parser("current", help="Show (and create if missing) the current weather")
    current.add_argument("village")
    current.add_argument("--mark-posted", action="store_true", help="Flag the reading as surfaced to players")

    posted = commands.add_parser("posted", help="Show the current weather only if already posted")
    posted.add_argument("village")

    schedule = commands.add_parser("schedule", help="Guarantee a special for the next period")
    schedule.add_argument("village")
    schedule.add_argument("label")

    commands.add_parser("bounds", help="Show current and next period bounds")
    commands.add_parser("warm", help="Generate the current weather for every village")
    commands.add_parser("specials", help="List special weather labels")
    return parser


def run(argv: Optional[Sequence[str]], service: WeatherService, console: Optional[Console] = None) -> int:
    console = console or Console()
    args = build_parser().parse_args(argv)
    tz_name = service.policy.tz_name

    if args.command == "current":
        reading = service.get_current_weather(args.village, args.now)
        if args.mark_posted:
            reading = service.mark_posted(reading, args.now)
        render_reading(console, reading, tz_name=tz_name, title="Current weather")
    elif args.command == "posted":
        village = Village.parse(args.village)
        reading = service.get_posted_weather(village, args.now)
        if reading is None:
            render_missing(console, village, "No weather has been posted for the current period yet.")
            return 1
        render_reading(console, reading, tz_name=tz_name, title="Posted weather")
    elif args.command == "schedule":
        scheduled = service.schedule_guaranteed_special(args.village, args.label, args.now)
        render_scheduled(console, scheduled, tz_name=tz_name)
    elif args.command == "bounds":
        render_bounds(
            console,
            service.period_bounds(args.now),
            service.next_period_bounds(args.now),
            tz_name=tz_name,
        )
    elif args.command == "warm":
        render_village_summary(console, service.warm_villages(args.now))
    elif args.command == "specials":
        render_specials(console, service.generator.climate.catalog.get("special", {}).values())
    return 0
