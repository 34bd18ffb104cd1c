from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Callable, Optional

from village_weather.application.services.event_bus import EventBus
from village_weather.application.services.period_calculator import PeriodPolicy
from village_weather.application.services.seed_policy import derive_rng
from village_weather.application.services.weather_generator import WeatherGenerator
from village_weather.domain.events import WeatherGenerated
from village_weather.domain.models.weather import PeriodBounds, Village, WeatherReading
from village_weather.domain.repositories import WeatherRepository


logger = logging.getLogger(__name__)

RngFactory = Callable[[Village, PeriodBounds], random.Random]


def default_rng_factory(village: Village, period: PeriodBounds) -> random.Random:
    return derive_rng("weather.generate", {"village": village.value, "period_start": period.start})


class WeatherReadThrough:
    """Find-or-generate for one village and period.

    The store's insert-if-absent decides which generated reading wins; losers
    return the stored one.
    """

    def __init__(
        self,
        repository: WeatherRepository,
        generator: WeatherGenerator,
        policy: PeriodPolicy,
        event_bus: Optional[EventBus] = None,
        rng_factory: Optional[RngFactory] = None,
    ) -> None:
        self.repository = repository
        self.generator = generator
        self.policy = policy
        self.event_bus = event_bus
        self.rng_factory = rng_factory or default_rng_factory

    def find(self, village: Village, period: PeriodBounds, *, only_posted: bool = False) -> Optional[WeatherReading]:
        window = self.policy.lookup_bounds(period)
        return self.repository.find_for_period(village, window.start, window.end, only_posted=only_posted)

    def get_or_create(
        self,
        village: Village,
        period: PeriodBounds,
        *,
        created_at: Optional[datetime] = None,
        roll_special: bool = True,
        publish: bool = True,
    ) -> WeatherReading:
        existing = self.find(village, period)
        if existing is not None:
            logger.debug(
                "Weather found for period",
                extra={"village": village.value, "period_start": period.start.isoformat()},
            )
            return existing

        history = self.repository.list_recent(village, period.start)
        generated = self.generator.generate(
            village,
            self.policy.season_for(period.start),
            history,
            self.rng_factory(village, period),
            roll_special=roll_special,
        )
        stored, created = self.repository.insert_if_absent(
            generated.to_reading(village, period.start, created_at=created_at)
        )
        if not created:
            logger.debug(
                "Concurrent writer stored weather first; using stored reading",
                extra={"village": village.value, "period_start": period.start.isoformat()},
            )
            return stored

        logger.info(
            "Generated weather",
            extra={
                "village": village.value,
                "period_start": period.start.isoformat(),
                "season": stored.season.value,
            },
        )
        if publish and self.event_bus is not None:
            self.event_bus.publish(
                WeatherGenerated(
                    village=village.value,
                    period_start=stored.period_start,
                    season=stored.season.value,
                    special_label=stored.special.label if stored.special is not None else None,
                )
            )
        return stored
