import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from village_weather.application.services.history_smoother import (
    has_severe_streak,
    smooth_temperatures,
    smooth_winds,
)
from village_weather.domain.models.climate import Candidate
from village_weather.domain.models.weather import Season, Village, WeatherCondition, WeatherReading


_START = datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc)


def _reading(temperature: str, wind: str = "< 2(km/h) // Calm", precipitation: str = "Sunny", days_ago: int = 1):
    return WeatherReading(
        village=Village.RUDANIA,
        period_start=_START - timedelta(days=days_ago - 1),
        season=Season.FALL,
        temperature=WeatherCondition(temperature, "", 10.0),
        wind=WeatherCondition(wind, "", 10.0),
        precipitation=WeatherCondition(precipitation, "", 10.0),
    )


def _labels(candidates):
    return [candidate.label for candidate in candidates]


class TemperatureSmoothingTests(unittest.TestCase):
    def setUp(self) -> None:
        self.pool = [
            Candidate(label="60°F / 16°C - Mild", weight=1.0),
            Candidate(label="80°F / 27°C - Warm", weight=1.0),
            Candidate(label="85°F / 29°C - Warm", weight=1.0),
            Candidate(label="150°F / 66°C - Impossible", weight=1.0),
        ]

    def test_candidates_outside_delta_are_dropped(self) -> None:
        narrowed = smooth_temperatures(self.pool, [_reading("80°F / 27°C - Warm")])
        self.assertIn("85°F / 29°C - Warm", _labels(narrowed))
        self.assertIn("60°F / 16°C - Mild", _labels(narrowed))
        self.assertNotIn("150°F / 66°C - Impossible", _labels(narrowed))

    def test_configurable_delta(self) -> None:
        narrowed = smooth_temperatures(self.pool, [_reading("80°F / 27°C - Warm")], max_delta=5)
        self.assertEqual(["80°F / 27°C - Warm", "85°F / 29°C - Warm"], _labels(narrowed))

    def test_severe_weather_forces_same_temperature(self) -> None:
        history = [_reading("80°F / 27°C - Warm", precipitation="Thunderstorm")]
        self.assertEqual(["80°F / 27°C - Warm"], _labels(smooth_temperatures(self.pool, history)))

    def test_streak_length_requires_consecutive_severe_readings(self) -> None:
        history = [
            _reading("80°F / 27°C - Warm", precipitation="Heavy Rain", days_ago=1),
            _reading("80°F / 27°C - Warm", precipitation="Sunny", days_ago=2),
        ]
        narrowed = smooth_temperatures(self.pool, history, severe_streak_length=2)
        self.assertIn("85°F / 29°C - Warm", _labels(narrowed))

    def test_empty_result_falls_back_to_full_list(self) -> None:
        pool = [Candidate(label="150°F / 66°C - Impossible"), Candidate(label="200°F / 93°C - Absurd")]
        with self.assertLogs("village_weather.application.services.history_smoother", level="WARNING"):
            narrowed = smooth_temperatures(pool, [_reading("40°F / 4°C - Cold")])
        self.assertEqual(_labels(pool), _labels(narrowed))

    def test_no_history_returns_full_list(self) -> None:
        self.assertEqual(_labels(self.pool), _labels(smooth_temperatures(self.pool, [])))


class SevereStreakTests(unittest.TestCase):
    def test_single_severe_reading(self) -> None:
        self.assertTrue(has_severe_streak([_reading("80°F", precipitation="Thunderstorm")]))
        self.assertFalse(has_severe_streak([_reading("80°F", precipitation="Rain")]))

    def test_short_history_is_not_a_streak(self) -> None:
        self.assertFalse(has_severe_streak([_reading("80°F", precipitation="Thunderstorm")], length=2))


class WindSmoothingTests(unittest.TestCase):
    def setUp(self) -> None:
        self.pool = [
            Candidate(label="< 2(km/h) // Calm"),
            Candidate(label="2 - 12(km/h) // Breeze"),
            Candidate(label="13 - 30(km/h) // Moderate"),
            Candidate(label="31 - 40(km/h) // Fresh"),
        ]

    def test_keeps_previous_and_adjacent_bands(self) -> None:
        narrowed = smooth_winds(self.pool, [_reading("80°F", wind="2 - 12(km/h) // Breeze")])
        self.assertEqual(
            ["< 2(km/h) // Calm", "2 - 12(km/h) // Breeze", "13 - 30(km/h) // Moderate"],
            _labels(narrowed),
        )

    def test_edge_band_has_one_neighbour(self) -> None:
        narrowed = smooth_winds(self.pool, [_reading("80°F", wind="< 2(km/h) // Calm")])
        self.assertEqual(["< 2(km/h) // Calm", "2 - 12(km/h) // Breeze"], _labels(narrowed))

    def test_unknown_previous_wind_falls_back(self) -> None:
        narrowed = smooth_winds(self.pool, [_reading("80°F", wind=">= 118(km/h) // Hurricane")])
        self.assertEqual(_labels(self.pool), _labels(narrowed))


if __name__ == "__main__":
    unittest.main()
