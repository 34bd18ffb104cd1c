from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from village_weather.application.services.history_smoother import (
    DEFAULT_TEMPERATURE_DELTA,
    smooth_temperatures,
    smooth_winds,
)
from village_weather.application.services.weighted_choice import WeightedPick, format_percent, weighted_choice
from village_weather.domain.errors import ClimateConfigurationError, WeatherGenerationError
from village_weather.domain.models.climate import (
    Candidate,
    ClimateTable,
    SeasonCandidates,
    parse_fahrenheit,
    parse_wind_kmh,
)
from village_weather.domain.models.weather import (
    Season,
    SpecialCondition,
    Village,
    WeatherCondition,
    WeatherReading,
)


logger = logging.getLogger(__name__)

DEFAULT_SPECIAL_RATE = 0.3
NO_REPEAT_SPECIALS = frozenset({"Blight Rain"})


@dataclass(frozen=True)
class GeneratorSettings:
    special_rate: float = DEFAULT_SPECIAL_RATE
    temperature_delta: float = DEFAULT_TEMPERATURE_DELTA
    severe_streak_length: int = 1


@dataclass(frozen=True)
class GeneratedWeather:
    season: Season
    temperature: WeatherCondition
    wind: WeatherCondition
    precipitation: WeatherCondition
    special: Optional[SpecialCondition] = None

    def to_reading(
        self,
        village: Village,
        period_start: datetime,
        *,
        created_at: Optional[datetime] = None,
    ) -> WeatherReading:
        return WeatherReading(
            village=village,
            period_start=period_start,
            season=self.season,
            temperature=self.temperature,
            wind=self.wind,
            precipitation=self.precipitation,
            special=self.special,
            posted=False,
            created_at=created_at,
        )


def _condition(axis: str, pick: Optional[WeightedPick]) -> WeatherCondition:
    if pick is None or not str(pick.label or "").strip():
        raise WeatherGenerationError(f"Could not resolve {axis} for generated weather")
    return WeatherCondition(
        label=pick.label,
        symbol=pick.candidate.symbol,
        probability_percent=round(pick.probability_percent, 1),
    )


class WeatherGenerator:
    """Draws temperature, wind, precipitation and special in that order.

    Later axes are filtered by the values already chosen; filtering is
    best-effort and falls back to the unfiltered season list.
    """

    def __init__(self, climate: ClimateTable, settings: Optional[GeneratorSettings] = None) -> None:
        self.climate = climate
        self.settings = settings or GeneratorSettings()

    def generate(
        self,
        village: Village,
        season: Season,
        history: Sequence[WeatherReading],
        rng: random.Random,
        *,
        roll_special: bool = True,
    ) -> GeneratedWeather:
        profile = self.climate.for_season(village, season)
        for axis in ("temperature", "wind", "precipitation"):
            if not getattr(profile, axis):
                raise ClimateConfigurationError(f"No {axis} candidates for {village.value} in {season.value}")

        temperature_pick = weighted_choice(
            smooth_temperatures(
                profile.temperature,
                history,
                max_delta=self.settings.temperature_delta,
                severe_streak_length=self.settings.severe_streak_length,
            ),
            rng,
            profile.modifiers_for("temperature"),
        )
        wind_pick = weighted_choice(
            smooth_winds(profile.wind, history),
            rng,
            profile.modifiers_for("wind"),
        )
        temperature = _condition("temperature", temperature_pick)
        wind = _condition("wind", wind_pick)

        temperature_f = parse_fahrenheit(temperature.label)
        wind_kmh = parse_wind_kmh(wind.label)
        precipitation = _condition(
            "precipitation",
            weighted_choice(
                self._eligible_precipitation(profile, temperature_f, wind_kmh),
                rng,
                profile.modifiers_for("precipitation"),
            ),
        )

        special = None
        if roll_special and profile.special and rng.random() < self.settings.special_rate:
            special = self._roll_special(profile, temperature_f, wind_kmh, precipitation.label, history, rng)

        return GeneratedWeather(
            season=season,
            temperature=temperature,
            wind=wind,
            precipitation=precipitation,
            special=special,
        )

    @staticmethod
    def _eligible_precipitation(
        profile: SeasonCandidates,
        temperature_f: Optional[float],
        wind_kmh: Optional[float],
    ) -> list[Candidate]:
        eligible = [
            candidate
            for candidate in profile.precipitation
            if candidate.conditions.allows(temperature_f=temperature_f, wind_kmh=wind_kmh)
        ]
        if eligible:
            return eligible
        logger.warning(
            "No precipitation candidates match conditions; using full season list",
            extra={"village": profile.village.value, "season": profile.season.value},
        )
        return list(profile.precipitation)

    def _roll_special(
        self,
        profile: SeasonCandidates,
        temperature_f: Optional[float],
        wind_kmh: Optional[float],
        precipitation_label: str,
        history: Sequence[WeatherReading],
        rng: random.Random,
    ) -> Optional[SpecialCondition]:
        previous_special = history[0].special.label if history and history[0].special is not None else None
        eligible = [
            candidate
            for candidate in profile.special
            if not (candidate.label in NO_REPEAT_SPECIALS and candidate.label == previous_special)
            and candidate.conditions.allows(
                temperature_f=temperature_f,
                wind_kmh=wind_kmh,
                precipitation_label=precipitation_label,
            )
        ]
        if not eligible:
            logger.debug(
                "No special weather matches current conditions",
                extra={"village": profile.village.value, "precipitation": precipitation_label},
            )
            return None

        pick = weighted_choice(eligible, rng, profile.modifiers_for("special"))
        return SpecialCondition(
            label=pick.label,
            symbol=pick.candidate.symbol,
            probability_descriptor=format_percent(pick.probability_percent),
        )
