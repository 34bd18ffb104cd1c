from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Tuple

from village_weather.domain.errors import WeatherStoreUnavailableError
from village_weather.domain.models.weather import SpecialCondition, Village, WeatherReading
from village_weather.domain.repositories import WeatherRepository


def _utc(value: datetime) -> datetime:
    return value.astimezone(timezone.utc)


class InMemoryWeatherRepository(WeatherRepository):
    """Dict-backed store; a single lock makes each operation atomic."""

    def __init__(self, *, lock_timeout: float = 5.0) -> None:
        self._readings: Dict[Tuple[Village, datetime], WeatherReading] = {}
        self._lock = threading.Lock()
        self._lock_timeout = float(lock_timeout)

    @contextmanager
    def _locked(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise WeatherStoreUnavailableError(
                f"Timed out after {self._lock_timeout}s waiting for the in-memory weather store"
            )
        try:
            yield
        finally:
            self._lock.release()

    @staticmethod
    def _copy(reading: Optional[WeatherReading]) -> Optional[WeatherReading]:
        return replace(reading) if reading is not None else None

    def get(self, village: Village, period_start: datetime) -> Optional[WeatherReading]:
        with self._locked():
            return self._copy(self._readings.get((village, _utc(period_start))))

    def find_for_period(
        self,
        village: Village,
        start: datetime,
        end: datetime,
        *,
        only_posted: bool = False,
    ) -> Optional[WeatherReading]:
        start, end = _utc(start), _utc(end)
        with self._locked():
            matches = [
                reading
                for (owner, period_start), reading in self._readings.items()
                if owner == village and start <= period_start < end and (reading.posted or not only_posted)
            ]
        if not matches:
            return None
        return self._copy(max(matches, key=lambda reading: reading.period_start))

    def insert_if_absent(self, reading: WeatherReading) -> Tuple[WeatherReading, bool]:
        key = (reading.village, _utc(reading.period_start))
        with self._locked():
            existing = self._readings.get(key)
            if existing is not None:
                return self._copy(existing), False
            stored = replace(
                reading,
                period_start=key[1],
                created_at=reading.created_at or datetime.now(timezone.utc),
            )
            self._readings[key] = stored
            return self._copy(stored), True

    def list_recent(self, village: Village, before: datetime, limit: int = 3) -> List[WeatherReading]:
        before = _utc(before)
        with self._locked():
            rows = [
                reading
                for (owner, period_start), reading in self._readings.items()
                if owner == village and period_start < before
            ]
        rows.sort(key=lambda reading: reading.period_start, reverse=True)
        return [self._copy(reading) for reading in rows[: max(0, int(limit))]]

    def set_guaranteed_special(
        self,
        village: Village,
        period_start: datetime,
        special: SpecialCondition,
    ) -> Optional[WeatherReading]:
        key = (village, _utc(period_start))
        with self._locked():
            existing = self._readings.get(key)
            if existing is None or existing.has_guaranteed_special:
                return None
            updated = existing.with_special(special)
            self._readings[key] = updated
            return self._copy(updated)

    def mark_posted(self, village: Village, period_start: datetime, posted_at: datetime) -> Optional[WeatherReading]:
        key = (village, _utc(period_start))
        with self._locked():
            existing = self._readings.get(key)
            if existing is None:
                return None
            if not existing.posted:
                existing = replace(existing, posted=True, posted_at=_utc(posted_at))
                self._readings[key] = existing
            return self._copy(existing)
