from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from village_weather.domain.errors import UnknownVillageError


GUARANTEED = "guaranteed"
PERIOD_LENGTH = timedelta(hours=24)


class Village(str, Enum):
    RUDANIA = "Rudania"
    INARIKO = "Inariko"
    VHINTL = "Vhintl"

    @classmethod
    def parse(cls, value: "Village | str") -> "Village":
        if isinstance(value, Village):
            return value
        key = str(value or "").strip().lower()
        for village in cls:
            if village.value.lower() == key:
                return village
        raise UnknownVillageError(str(value))


class Season(str, Enum):
    SPRING = "spring"
    SUMMER = "summer"
    FALL = "fall"
    WINTER = "winter"

    @classmethod
    def parse(cls, value: "Season | str") -> "Season":
        if isinstance(value, Season):
            return value
        key = str(value or "").strip().lower()
        if key == "autumn":
            key = "fall"
        return cls(key)


@dataclass(frozen=True)
class PeriodBounds:
    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    def shifted(self, delta: timedelta) -> "PeriodBounds":
        return PeriodBounds(start=self.start + delta, end=self.end + delta)


@dataclass(frozen=True)
class WeatherCondition:
    label: str
    symbol: str
    probability_percent: float


@dataclass(frozen=True)
class SpecialCondition:
    label: str
    symbol: str
    probability_descriptor: str

    @property
    def is_guaranteed(self) -> bool:
        return str(self.probability_descriptor or "").strip().lower() == GUARANTEED


@dataclass
class WeatherReading:
    village: Village
    period_start: datetime
    season: Season
    temperature: WeatherCondition
    wind: WeatherCondition
    precipitation: WeatherCondition
    special: Optional[SpecialCondition] = None
    posted: bool = False
    posted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def key(self) -> tuple[Village, datetime]:
        return self.village, self.period_start

    @property
    def period(self) -> PeriodBounds:
        return PeriodBounds(start=self.period_start, end=self.period_start + PERIOD_LENGTH)

    @property
    def has_guaranteed_special(self) -> bool:
        return self.special is not None and self.special.is_guaranteed

    def with_special(self, special: Optional[SpecialCondition]) -> "WeatherReading":
        return replace(self, special=special)

    def symbols(self) -> str:
        parts = [self.temperature.symbol, self.wind.symbol, self.precipitation.symbol]
        if self.special is not None:
            parts.append(self.special.symbol)
        return "".join(part for part in parts if part)


@dataclass(frozen=True)
class ScheduledSpecial:
    reading: WeatherReading
    period: PeriodBounds
