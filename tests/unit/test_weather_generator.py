import random
import sys
from datetime import datetime, timezone
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from village_weather.application.services.weather_generator import GeneratorSettings, WeatherGenerator
from village_weather.domain.errors import ClimateConfigurationError
from village_weather.domain.models.climate import (
    Candidate,
    CandidateConditions,
    ClimateTable,
    SeasonCandidates,
    Threshold,
)
from village_weather.domain.models.weather import (
    Season,
    SpecialCondition,
    Village,
    WeatherCondition,
    WeatherReading,
)


WARM = Candidate("80°F / 27°C - Warm", "🌡️", 1.0)
COLD = Candidate("40°F / 4°C - Cold", "🧊", 1.0)
SCORCHING = Candidate("150°F / 66°C - Scorching", "🔥", 1.0)
CALM = Candidate("< 2(km/h) // Calm", "😌", 1.0)
SUNNY = Candidate("Sunny", "☀️", 1.0)
RAIN = Candidate(
    "Rain",
    "🌧️",
    1.0,
    CandidateConditions(temperature=(Threshold.parse(">= 44°F"),), wind=(Threshold.parse("< 63 km/h"),)),
)
METEOR = Candidate("Meteor Shower", "☄️", 1.0, CandidateConditions(precipitation=("sunny",)))
BLIGHT = Candidate(
    "Blight Rain",
    "🧪",
    1.0,
    CandidateConditions(temperature=(Threshold.parse(">= 44°F"),), precipitation=("rain",)),
)


def _table(*, temperature=(WARM, COLD), wind=(CALM,), precipitation=(SUNNY, RAIN), special=(METEOR, BLIGHT)):
    profile = SeasonCandidates(
        village=Village.RUDANIA,
        season=Season.SUMMER,
        temperature=tuple(temperature),
        wind=tuple(wind),
        precipitation=tuple(precipitation),
        special=tuple(special),
    )
    catalog = {"special": {candidate.label: candidate for candidate in special}}
    return ClimateTable(catalog=catalog, seasons={(Village.RUDANIA, Season.SUMMER): profile})


def _history(temperature: str, *, precipitation: str = "Sunny", special: str | None = None):
    return [
        WeatherReading(
            village=Village.RUDANIA,
            period_start=datetime(2026, 7, 1, 12, tzinfo=timezone.utc),
            season=Season.SUMMER,
            temperature=WeatherCondition(temperature, "", 50.0),
            wind=WeatherCondition("< 2(km/h) // Calm", "", 100.0),
            precipitation=WeatherCondition(precipitation, "", 50.0),
            special=SpecialCondition(special, "", "10.0%") if special else None,
        )
    ]


class WeatherGeneratorTests(unittest.TestCase):
    def test_same_seed_produces_same_weather(self) -> None:
        generator = WeatherGenerator(_table())
        first = generator.generate(Village.RUDANIA, Season.SUMMER, [], random.Random(7))
        second = generator.generate(Village.RUDANIA, Season.SUMMER, [], random.Random(7))
        self.assertEqual(first, second)

    def test_reading_carries_symbols_and_probabilities(self) -> None:
        generator = WeatherGenerator(_table(temperature=(WARM,), precipitation=(SUNNY,)), GeneratorSettings(special_rate=0))
        weather = generator.generate(Village.RUDANIA, Season.SUMMER, [], random.Random(1))
        self.assertEqual("80°F / 27°C - Warm", weather.temperature.label)
        self.assertEqual("🌡️", weather.temperature.symbol)
        self.assertEqual(100.0, weather.temperature.probability_percent)
        self.assertEqual("Sunny", weather.precipitation.label)

    def test_precipitation_respects_temperature_conditions(self) -> None:
        generator = WeatherGenerator(_table(temperature=(COLD,)), GeneratorSettings(special_rate=0))
        for seed in range(40):
            weather = generator.generate(Village.RUDANIA, Season.SUMMER, [], random.Random(seed))
            self.assertEqual("Sunny", weather.precipitation.label)

    def test_precipitation_falls_back_when_nothing_matches(self) -> None:
        generator = WeatherGenerator(_table(temperature=(COLD,), precipitation=(RAIN,)), GeneratorSettings(special_rate=0))
        weather = generator.generate(Village.RUDANIA, Season.SUMMER, [], random.Random(3))
        self.assertEqual("Rain", weather.precipitation.label)

    def test_special_rate_zero_never_rolls_special(self) -> None:
        generator = WeatherGenerator(_table(), GeneratorSettings(special_rate=0.0))
        for seed in range(40):
            self.assertIsNone(generator.generate(Village.RUDANIA, Season.SUMMER, [], random.Random(seed)).special)

    def test_special_is_filtered_by_precipitation_category(self) -> None:
        generator = WeatherGenerator(
            _table(temperature=(WARM,), precipitation=(RAIN,)),
            GeneratorSettings(special_rate=1.0),
        )
        weather = generator.generate(Village.RUDANIA, Season.SUMMER, [], random.Random(5))
        self.assertIsNotNone(weather.special)
        self.assertEqual("Blight Rain", weather.special.label)
        self.assertEqual("100.0%", weather.special.probability_descriptor)

    def test_blight_rain_does_not_repeat_on_consecutive_days(self) -> None:
        generator = WeatherGenerator(
            _table(temperature=(WARM,), precipitation=(RAIN,)),
            GeneratorSettings(special_rate=1.0),
        )
        history = _history("80°F / 27°C - Warm", precipitation="Rain", special="Blight Rain")
        weather = generator.generate(Village.RUDANIA, Season.SUMMER, history, random.Random(5))
        self.assertIsNone(weather.special)

    def test_roll_special_false_skips_special(self) -> None:
        generator = WeatherGenerator(_table(), GeneratorSettings(special_rate=1.0))
        weather = generator.generate(Village.RUDANIA, Season.SUMMER, [], random.Random(5), roll_special=False)
        self.assertIsNone(weather.special)

    def test_prior_80_never_yields_150(self) -> None:
        generator = WeatherGenerator(_table(temperature=(WARM, SCORCHING)), GeneratorSettings(special_rate=0))
        history = _history("80°F / 27°C - Warm")
        for seed in range(60):
            weather = generator.generate(Village.RUDANIA, Season.SUMMER, history, random.Random(seed))
            self.assertNotEqual("150°F / 66°C - Scorching", weather.temperature.label)

    def test_missing_season_is_configuration_error(self) -> None:
        generator = WeatherGenerator(_table())
        with self.assertRaises(ClimateConfigurationError):
            generator.generate(Village.VHINTL, Season.WINTER, [], random.Random(1))

    def test_empty_axis_is_configuration_error(self) -> None:
        generator = WeatherGenerator(_table(wind=()))
        with self.assertRaises(ClimateConfigurationError):
            generator.generate(Village.RUDANIA, Season.SUMMER, [], random.Random(1))

    def test_to_reading_is_unposted(self) -> None:
        generator = WeatherGenerator(_table())
        start = datetime(2026, 7, 2, 12, tzinfo=timezone.utc)
        reading = generator.generate(Village.RUDANIA, Season.SUMMER, [], random.Random(2)).to_reading(
            Village.RUDANIA, start
        )
        self.assertFalse(reading.posted)
        self.assertEqual(start, reading.period_start)
        self.assertEqual(Season.SUMMER, reading.season)


if __name__ == "__main__":
    unittest.main()
