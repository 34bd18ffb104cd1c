import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from village_weather.application.services.period_calculator import (
    PeriodPolicy,
    next_period_bounds,
    period_bounds,
    season_for,
)
from village_weather.domain.errors import ConfigurationError, PeriodArithmeticError
from village_weather.domain.models.weather import PeriodBounds, Season


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class PeriodBoundsTests(unittest.TestCase):
    def test_after_cutover_period_starts_same_local_day(self) -> None:
        # 10:00 EDT
        bounds = period_bounds(_utc(2026, 10, 17, 14, 0))
        self.assertEqual(_utc(2026, 10, 17, 12, 0), bounds.start)
        self.assertEqual(_utc(2026, 10, 18, 12, 0), bounds.end)

    def test_before_cutover_period_starts_previous_local_day(self) -> None:
        # 07:59 EDT
        bounds = period_bounds(_utc(2026, 10, 17, 11, 59))
        self.assertEqual(_utc(2026, 10, 16, 12, 0), bounds.start)

    def test_exact_cutover_opens_new_period(self) -> None:
        now = _utc(2026, 10, 17, 12, 0)
        self.assertEqual(now, period_bounds(now).start)

    def test_winter_cutover_uses_standard_offset(self) -> None:
        # 10:00 EST; 08:00 EST is 13:00 UTC
        bounds = period_bounds(_utc(2026, 1, 15, 15, 0))
        self.assertEqual(_utc(2026, 1, 15, 13, 0), bounds.start)

    def test_non_utc_aware_input_is_accepted(self) -> None:
        tokyo = timezone(timedelta(hours=9))
        now = datetime(2026, 10, 17, 23, 0, tzinfo=tokyo)
        self.assertEqual(period_bounds(_utc(2026, 10, 17, 14, 0)), period_bounds(now))

    def test_custom_cutover_and_timezone(self) -> None:
        bounds = period_bounds(_utc(2026, 10, 17, 3, 0), cutover_hour=0, tz_name="UTC")
        self.assertEqual(_utc(2026, 10, 17, 0, 0), bounds.start)

    def test_naive_now_is_rejected(self) -> None:
        with self.assertRaises(PeriodArithmeticError):
            period_bounds(datetime(2026, 10, 17, 14, 0))

    def test_unknown_timezone_is_configuration_error(self) -> None:
        with self.assertRaises(ConfigurationError):
            period_bounds(_utc(2026, 10, 17, 14, 0), tz_name="Not/AZone")

    def test_out_of_range_cutover_is_configuration_error(self) -> None:
        with self.assertRaises(ConfigurationError):
            period_bounds(_utc(2026, 10, 17, 14, 0), cutover_hour=24)

    def test_next_period_is_current_shifted_by_a_day(self) -> None:
        now = _utc(2026, 10, 17, 14, 0)
        self.assertEqual(period_bounds(now).start + timedelta(hours=24), next_period_bounds(now).start)
        self.assertEqual(period_bounds(now).end, next_period_bounds(now).start)

    def test_next_period_shift_holds_across_dst_transitions(self) -> None:
        windows = (_utc(2026, 3, 6, 0, 0), _utc(2026, 10, 30, 0, 0))
        for window_start in windows:
            for hour in range(0, 24 * 4):
                now = window_start + timedelta(hours=hour, minutes=17)
                current = period_bounds(now)
                upcoming = next_period_bounds(now)
                with self.subTest(now=now.isoformat()):
                    self.assertLessEqual(current.start, now)
                    self.assertEqual(current.start + timedelta(hours=24), upcoming.start)
                    self.assertEqual(timedelta(hours=24), current.end - current.start)

    def test_spring_forward_day_cutover_follows_local_wall_time(self) -> None:
        # 2026-03-08 is the US spring-forward day; 08:00 EDT is 12:00 UTC.
        bounds = period_bounds(_utc(2026, 3, 8, 14, 0))
        self.assertEqual(_utc(2026, 3, 8, 12, 0), bounds.start)


class SeasonTests(unittest.TestCase):
    def test_season_boundaries(self) -> None:
        cases = {
            _utc(2026, 3, 21, 16, 0): Season.SPRING,
            _utc(2026, 6, 20, 16, 0): Season.SPRING,
            _utc(2026, 6, 21, 16, 0): Season.SUMMER,
            _utc(2026, 9, 21, 16, 0): Season.FALL,
            _utc(2026, 12, 20, 16, 0): Season.FALL,
            _utc(2026, 12, 21, 16, 0): Season.WINTER,
            _utc(2026, 1, 10, 16, 0): Season.WINTER,
            _utc(2026, 3, 20, 16, 0): Season.WINTER,
        }
        for instant, expected in cases.items():
            with self.subTest(instant=instant.isoformat()):
                self.assertEqual(expected, season_for(instant))

    def test_season_uses_reference_local_date(self) -> None:
        # 02:00 UTC on Jun 21 is still Jun 20 in New York.
        self.assertEqual(Season.SPRING, season_for(_utc(2026, 6, 21, 2, 0)))


class PeriodPolicyTests(unittest.TestCase):
    def test_policy_delegates_with_its_settings(self) -> None:
        policy = PeriodPolicy(cutover_hour=6, tz_name="UTC")
        now = _utc(2026, 10, 17, 7, 0)
        self.assertEqual(PeriodBounds(_utc(2026, 10, 17, 6), _utc(2026, 10, 18, 6)), policy.current(now))
        self.assertEqual(_utc(2026, 10, 18, 6), policy.next(now).start)
        self.assertEqual(Season.FALL, policy.season_for(now))

    def test_lookup_bounds_match_period_on_ordinary_days(self) -> None:
        policy = PeriodPolicy()
        for now in (_utc(2026, 10, 17, 14, 0), _utc(2026, 3, 8, 14, 0), _utc(2026, 11, 2, 14, 0)):
            with self.subTest(now=now.isoformat()):
                period = policy.current(now)
                self.assertEqual(period, policy.lookup_bounds(period))

    def test_lookup_bounds_cover_previous_next_key_after_fall_back(self) -> None:
        policy = PeriodPolicy()
        eve = _utc(2026, 10, 31, 20, 0)
        fall_back_day = policy.current(eve + timedelta(days=1))

        self.assertEqual(_utc(2026, 11, 1, 13), fall_back_day.start)
        window = policy.lookup_bounds(fall_back_day)
        self.assertEqual(policy.next(eve).start, window.start)
        self.assertEqual(_utc(2026, 11, 1, 12), window.start)
        self.assertEqual(fall_back_day.end, window.end)

    def test_bounds_contains_is_half_open(self) -> None:
        bounds = period_bounds(_utc(2026, 10, 17, 14, 0))
        self.assertTrue(bounds.contains(bounds.start))
        self.assertFalse(bounds.contains(bounds.end))


if __name__ == "__main__":
    unittest.main()
