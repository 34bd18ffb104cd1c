from __future__ import annotations

import logging
from typing import Sequence

from village_weather.domain.models.climate import Candidate, parse_fahrenheit
from village_weather.domain.models.weather import WeatherReading


logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE_DELTA = 20.0
SEVERE_PRECIPITATION = frozenset({"Thunderstorm", "Heavy Rain"})


def has_severe_streak(history: Sequence[WeatherReading], length: int = 1) -> bool:
    """True when the ``length`` most recent readings all had severe precipitation."""
    window = list(history[: max(1, int(length))])
    if len(window) < max(1, int(length)):
        return False
    return all(reading.precipitation.label in SEVERE_PRECIPITATION for reading in window)


def _within(candidate: Candidate, previous_f: float, delta: float) -> bool:
    value = parse_fahrenheit(candidate.label)
    return value is not None and abs(value - previous_f) <= delta


def smooth_temperatures(
    candidates: Sequence[Candidate],
    history: Sequence[WeatherReading],
    *,
    max_delta: float = DEFAULT_TEMPERATURE_DELTA,
    severe_streak_length: int = 1,
) -> list[Candidate]:
    pool = list(candidates)
    if not history:
        return pool

    previous_f = parse_fahrenheit(history[0].temperature.label)
    if previous_f is None:
        return pool

    delta = 0.0 if has_severe_streak(history, severe_streak_length) else float(max_delta)
    narrowed = [candidate for candidate in pool if _within(candidate, previous_f, delta)]
    if not narrowed:
        logger.warning(
            "No temperature candidates within smoothing bound; using full season list",
            extra={"previous": history[0].temperature.label, "max_delta": delta},
        )
        return pool
    return narrowed


def smooth_winds(candidates: Sequence[Candidate], history: Sequence[WeatherReading]) -> list[Candidate]:
    pool = list(candidates)
    if not history:
        return pool

    labels = [candidate.label for candidate in pool]
    previous_label = history[0].wind.label
    if previous_label not in labels:
        logger.warning(
            "Previous wind is not in the season list; using full season list",
            extra={"previous": previous_label},
        )
        return pool

    index = labels.index(previous_label)
    return [pool[i] for i in (index - 1, index, index + 1) if 0 <= i < len(pool)]
