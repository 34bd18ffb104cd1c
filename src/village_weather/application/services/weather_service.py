from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from village_weather.application.services.event_bus import EventBus
from village_weather.application.services.period_calculator import PeriodPolicy
from village_weather.application.services.special_weather_scheduler import SpecialWeatherScheduler
from village_weather.application.services.weather_generator import WeatherGenerator
from village_weather.application.services.weather_read_through import (
    RngFactory,
    WeatherReadThrough,
    default_rng_factory,
)
from village_weather.domain.events import WeatherPosted
from village_weather.domain.models.weather import PeriodBounds, ScheduledSpecial, Village, WeatherReading
from village_weather.domain.repositories import WeatherRepository


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WeatherService:
    """Entry point used by the bot layer for reading and scheduling village weather."""

    def __init__(
        self,
        repository: WeatherRepository,
        generator: WeatherGenerator,
        policy: Optional[PeriodPolicy] = None,
        event_bus: Optional[EventBus] = None,
        clock: Optional[Clock] = None,
        rng_factory: Optional[RngFactory] = None,
    ) -> None:
        self.repository = repository
        self.generator = generator
        self.policy = policy or PeriodPolicy()
        self.event_bus = event_bus or EventBus()
        self.clock = clock or _utc_now
        self.rng_factory = rng_factory or default_rng_factory
        self.reader = WeatherReadThrough(
            repository,
            generator,
            self.policy,
            event_bus=self.event_bus,
            rng_factory=self.rng_factory,
        )
        self.scheduler = SpecialWeatherScheduler(
            repository,
            generator,
            self.policy,
            event_bus=self.event_bus,
            rng_factory=self.rng_factory,
        )

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self.clock()

    def period_bounds(self, now: Optional[datetime] = None) -> PeriodBounds:
        return self.policy.current(self._now(now))

    def next_period_bounds(self, now: Optional[datetime] = None) -> PeriodBounds:
        return self.policy.next(self._now(now))

    def get_or_create(self, village: Village | str, now: Optional[datetime] = None) -> WeatherReading:
        village = Village.parse(village)
        moment = self._now(now)
        return self.reader.get_or_create(village, self.policy.current(moment), created_at=moment)

    def get_current_weather(self, village: Village | str, now: Optional[datetime] = None) -> WeatherReading:
        return self.get_or_create(village, now)

    def get_posted_weather(self, village: Village | str, now: Optional[datetime] = None) -> Optional[WeatherReading]:
        village = Village.parse(village)
        return self.reader.find(village, self.period_bounds(now), only_posted=True)

    def schedule_guaranteed_special(
        self,
        village: Village | str,
        label: str,
        now: Optional[datetime] = None,
    ) -> ScheduledSpecial:
        return self.scheduler.schedule_guaranteed(village, label, self._now(now))

    def mark_posted(self, reading: WeatherReading, now: Optional[datetime] = None) -> WeatherReading:
        if reading.posted:
            return reading
        posted_at = self._now(now)
        updated = self.repository.mark_posted(reading.village, reading.period_start, posted_at)
        if updated is None:
            raise LookupError(
                f"No stored weather for {reading.village.value} at {reading.period_start.isoformat()}"
            )
        logger.info(
            "Weather marked as posted",
            extra={"village": updated.village.value, "period_start": updated.period_start.isoformat()},
        )
        self.event_bus.publish(
            WeatherPosted(village=updated.village.value, period_start=updated.period_start, posted_at=posted_at)
        )
        return updated

    def warm_villages(self, now: Optional[datetime] = None) -> Dict[Village, WeatherReading]:
        moment = self._now(now)
        return {village: self.get_current_weather(village, moment) for village in Village}
