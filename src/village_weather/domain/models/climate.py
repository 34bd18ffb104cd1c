from __future__ import annotations

import operator
import re
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

from village_weather.domain.errors import ClimateConfigurationError
from village_weather.domain.models.weather import Season, Village


_THRESHOLD_PATTERN = re.compile(r"^\s*(<=|>=|<|>|==|=)\s*(-?\d+(?:\.\d+)?)")
_FAHRENHEIT_PATTERN = re.compile(r"(-?\d+(?:\.\d+)?)\s*°\s*F", re.IGNORECASE)
_NUMBER_PATTERN = re.compile(r"-?\d+(?:\.\d+)?")

_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    "<=": operator.le,
    ">=": operator.ge,
    "<": operator.lt,
    ">": operator.gt,
    "==": operator.eq,
    "=": operator.eq,
}


@dataclass(frozen=True)
class Threshold:
    op: str
    value: float

    @classmethod
    def parse(cls, raw: str) -> "Threshold":
        match = _THRESHOLD_PATTERN.match(str(raw or ""))
        if match is None:
            raise ValueError(f"Unparseable threshold condition: {raw!r}")
        return cls(op=match.group(1), value=float(match.group(2)))

    def check(self, measured: Optional[float]) -> bool:
        if measured is None:
            return False
        return _OPERATORS[self.op](float(measured), self.value)


@dataclass(frozen=True)
class CandidateConditions:
    temperature: tuple[Threshold, ...] = ()
    wind: tuple[Threshold, ...] = ()
    precipitation: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.temperature or self.wind or self.precipitation)

    def allows(
        self,
        *,
        temperature_f: Optional[float],
        wind_kmh: Optional[float],
        precipitation_label: Optional[str] = None,
    ) -> bool:
        if not all(rule.check(temperature_f) for rule in self.temperature):
            return False
        if not all(rule.check(wind_kmh) for rule in self.wind):
            return False
        if self.precipitation:
            if precipitation_label is None:
                return False
            return any(precipitation_matches(precipitation_label, category) for category in self.precipitation)
        return True


@dataclass(frozen=True)
class Candidate:
    label: str
    symbol: str = ""
    weight: float = 0.0
    conditions: CandidateConditions = field(default_factory=CandidateConditions)


@dataclass(frozen=True)
class SeasonCandidates:
    """Ordered candidate lists and weight modifiers for one village and season."""

    village: Village
    season: Season
    temperature: tuple[Candidate, ...]
    wind: tuple[Candidate, ...]
    precipitation: tuple[Candidate, ...]
    special: tuple[Candidate, ...] = ()
    modifiers: Mapping[str, Mapping[str, float]] = field(default_factory=dict)

    def modifiers_for(self, axis: str) -> Mapping[str, float]:
        return dict(self.modifiers.get(axis, {}) or {})


@dataclass(frozen=True)
class ClimateTable:
    catalog: Mapping[str, Mapping[str, Candidate]]
    seasons: Mapping[tuple[Village, Season], SeasonCandidates]

    def for_season(self, village: Village, season: Season) -> SeasonCandidates:
        profile = self.seasons.get((village, season))
        if profile is None:
            raise ClimateConfigurationError(f"No season data found for {village.value} in {season.value}")
        return profile

    def find_special(self, label: str) -> Optional[Candidate]:
        key = str(label or "").strip().lower()
        for candidate in self.catalog.get("special", {}).values():
            if candidate.label.lower() == key:
                return candidate
        return None


def parse_fahrenheit(label: Optional[str]) -> Optional[float]:
    if not label:
        return None
    match = _FAHRENHEIT_PATTERN.search(str(label))
    if match is None:
        return None
    return float(match.group(1))


def parse_wind_kmh(label: Optional[str]) -> Optional[float]:
    """Representative speed of a wind band: lower bound, or 0 for "< N" bands."""
    if not label:
        return None
    text = str(label).strip()
    match = _NUMBER_PATTERN.search(text)
    if match is None:
        return None
    if text.startswith("<"):
        return 0.0
    return float(match.group(0))


# Condition categories that cover more than one precipitation label; anything
# else must match the label exactly.
_PRECIPITATION_CATEGORIES: dict[str, frozenset[str]] = {
    "sunny": frozenset({"sunny"}),
    "rain": frozenset({"rain", "light rain", "heavy rain"}),
    "snow": frozenset({"snow", "light snow", "heavy snow", "blizzard"}),
    "fog": frozenset({"fog"}),
    "cloudy": frozenset({"cloudy"}),
}


def precipitation_matches(label: str, category: str) -> bool:
    normalized_label = str(label or "").strip().lower()
    normalized_category = str(category or "").strip().lower()
    if not normalized_label or not normalized_category:
        return False
    members = _PRECIPITATION_CATEGORIES.get(normalized_category)
    if members is not None:
        return normalized_label in members
    return normalized_label == normalized_category
