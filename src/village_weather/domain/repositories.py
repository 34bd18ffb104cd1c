from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple

from village_weather.domain.models.weather import SpecialCondition, Village, WeatherReading


class WeatherRepository(ABC):
    """Persistence boundary: exactly one reading per (village, period_start)."""

    @abstractmethod
    def get(self, village: Village, period_start: datetime) -> Optional[WeatherReading]:
        raise NotImplementedError

    @abstractmethod
    def find_for_period(
        self,
        village: Village,
        start: datetime,
        end: datetime,
        *,
        only_posted: bool = False,
    ) -> Optional[WeatherReading]:
        raise NotImplementedError

    @abstractmethod
    def insert_if_absent(self, reading: WeatherReading) -> Tuple[WeatherReading, bool]:
        """Atomically store ``reading`` unless its key exists; returns (stored, created)."""
        raise NotImplementedError

    @abstractmethod
    def list_recent(self, village: Village, before: datetime, limit: int = 3) -> List[WeatherReading]:
        raise NotImplementedError

    @abstractmethod
    def set_guaranteed_special(
        self,
        village: Village,
        period_start: datetime,
        special: SpecialCondition,
    ) -> Optional[WeatherReading]:
        """Conditional update; None when the reading already holds a guaranteed special."""
        raise NotImplementedError

    @abstractmethod
    def mark_posted(self, village: Village, period_start: datetime, posted_at: datetime) -> Optional[WeatherReading]:
        raise NotImplementedError
