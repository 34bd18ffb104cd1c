"""Fixed-cutover "weather day" arithmetic.

A period starts at ``cutover_hour:00`` reference-local wall time and lasts
exactly 24 hours. The next period is always the current one shifted by 24
hours so the two can never disagree about where the boundary falls.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from village_weather.domain.errors import ConfigurationError, PeriodArithmeticError
from village_weather.domain.models.weather import PERIOD_LENGTH, PeriodBounds, Season


DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_CUTOVER_HOUR = 8

# (month, day) on which each season begins, in calendar order.
_SEASON_STARTS = (
    ((3, 21), Season.SPRING),
    ((6, 21), Season.SUMMER),
    ((9, 21), Season.FALL),
    ((12, 21), Season.WINTER),
)


@lru_cache(maxsize=16)
def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(str(name))
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(f"Unknown reference timezone: {name!r}") from exc


def _require_aware(instant: object, *, label: str) -> datetime:
    if not isinstance(instant, datetime):
        raise PeriodArithmeticError(f"{label} must be a datetime, got {type(instant).__name__}")
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise PeriodArithmeticError(f"{label} must be timezone-aware: {instant!r}")
    return instant


def _validate(bounds: PeriodBounds) -> PeriodBounds:
    _require_aware(bounds.start, label="period start")
    _require_aware(bounds.end, label="period end")
    if bounds.end <= bounds.start:
        raise PeriodArithmeticError(
            f"Invalid period bounds: end {bounds.end.isoformat()} is not after start {bounds.start.isoformat()}"
        )
    return bounds


def _local_cutover(day: date, cutover_hour: int, zone: ZoneInfo) -> datetime:
    # Offset is resolved for the wall time itself, so DST shifts move the UTC instant.
    return datetime.combine(day, time(hour=cutover_hour), tzinfo=zone).astimezone(timezone.utc)


def period_bounds(
    now: datetime,
    *,
    cutover_hour: int = DEFAULT_CUTOVER_HOUR,
    tz_name: str = DEFAULT_TIMEZONE,
) -> PeriodBounds:
    _require_aware(now, label="now")
    if not 0 <= int(cutover_hour) <= 23:
        raise ConfigurationError(f"Cutover hour must be within 0-23, got {cutover_hour}")

    zone = _zone(tz_name)
    local_now = now.astimezone(zone)
    start_day = local_now.date()
    if local_now.hour < int(cutover_hour):
        start_day -= timedelta(days=1)

    start = _local_cutover(start_day, int(cutover_hour), zone)
    if start > now:
        start = _local_cutover(start_day - timedelta(days=1), int(cutover_hour), zone)

    return _validate(PeriodBounds(start=start, end=start + PERIOD_LENGTH))


def next_period_bounds(
    now: datetime,
    *,
    cutover_hour: int = DEFAULT_CUTOVER_HOUR,
    tz_name: str = DEFAULT_TIMEZONE,
) -> PeriodBounds:
    current = period_bounds(now, cutover_hour=cutover_hour, tz_name=tz_name)
    upcoming = _validate(current.shifted(PERIOD_LENGTH))
    if upcoming.start <= current.start:
        raise PeriodArithmeticError("Invalid next period bounds: next period is not after current period")
    return upcoming


def season_for(instant: datetime, *, tz_name: str = DEFAULT_TIMEZONE) -> Season:
    _require_aware(instant, label="season reference")
    local_day = instant.astimezone(_zone(tz_name)).date()
    month_day = (local_day.month, local_day.day)
    season = Season.WINTER
    for starts_on, candidate in _SEASON_STARTS:
        if month_day >= starts_on:
            season = candidate
    return season


@dataclass(frozen=True)
class PeriodPolicy:
    cutover_hour: int = DEFAULT_CUTOVER_HOUR
    tz_name: str = DEFAULT_TIMEZONE

    def current(self, now: datetime) -> PeriodBounds:
        return period_bounds(now, cutover_hour=self.cutover_hour, tz_name=self.tz_name)

    def next(self, now: datetime) -> PeriodBounds:
        return next_period_bounds(now, cutover_hour=self.cutover_hour, tz_name=self.tz_name)

    def season_for(self, instant: datetime) -> Season:
        return season_for(instant, tz_name=self.tz_name)

    def lookup_bounds(self, period: PeriodBounds) -> PeriodBounds:
        """Read window for ``period``.

        After a fall-back transition the previous period's ``next`` lands an
        hour before this period's cutover; the window starts early enough to
        cover a reading stored under that key.
        """
        carried = self.next(period.start - timedelta(microseconds=1)).start
        return PeriodBounds(start=min(period.start, carried), end=period.end)
