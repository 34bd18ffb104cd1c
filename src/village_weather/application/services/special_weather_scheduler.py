from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from village_weather.application.services.event_bus import EventBus
from village_weather.application.services.period_calculator import PeriodPolicy
from village_weather.application.services.weather_generator import WeatherGenerator
from village_weather.application.services.weather_read_through import RngFactory, WeatherReadThrough
from village_weather.domain.errors import (
    PeriodArithmeticError,
    SpecialWeatherCollisionError,
    UnknownSpecialWeatherError,
)
from village_weather.domain.events import GuaranteedSpecialScheduled
from village_weather.domain.models.weather import (
    GUARANTEED,
    ScheduledSpecial,
    SpecialCondition,
    Village,
)
from village_weather.domain.repositories import WeatherRepository


logger = logging.getLogger(__name__)


class SpecialWeatherScheduler:
    """Forces a named special onto the next weather period.

    The current period's reading is created if missing but never modified.
    A guaranteed special wins over a rolled one; two guaranteed specials for
    the same period collide.
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
        self.reader = WeatherReadThrough(repository, generator, policy, event_bus=event_bus, rng_factory=rng_factory)

    def _resolve_special(self, label: str) -> SpecialCondition:
        candidate = self.generator.climate.find_special(label)
        if candidate is None:
            raise UnknownSpecialWeatherError(label)
        return SpecialCondition(label=candidate.label, symbol=candidate.symbol, probability_descriptor=GUARANTEED)

    def schedule_guaranteed(self, village: Village | str, label: str, now: datetime) -> ScheduledSpecial:
        village = Village.parse(village)
        special = self._resolve_special(label)
        current = self.policy.current(now)
        upcoming = self.policy.next(now)
        if upcoming.start <= current.start:
            raise PeriodArithmeticError(
                f"Refusing to schedule special weather for {village.value} on a period that has already begun: "
                f"{upcoming.start.isoformat()}"
            )

        # Today's reading must exist first so the baseline is smoothed against it.
        self.reader.get_or_create(village, current, created_at=now)
        reading = self.reader.get_or_create(village, upcoming, created_at=now, roll_special=False, publish=False)

        replaced_label = reading.special.label if reading.special is not None else None
        updated = self.repository.set_guaranteed_special(village, reading.period_start, special)
        if updated is None:
            holder = self.repository.get(village, reading.period_start)
            existing_label = holder.special.label if holder is not None and holder.special is not None else special.label
            raise SpecialWeatherCollisionError(village.value, existing_label)

        logger.info(
            "Scheduled guaranteed special weather",
            extra={
                "village": village.value,
                "period_start": updated.period_start.isoformat(),
                "special": special.label,
                "replaced": replaced_label,
            },
        )
        if self.event_bus is not None:
            self.event_bus.publish(
                GuaranteedSpecialScheduled(
                    village=village.value,
                    period_start=updated.period_start,
                    special_label=special.label,
                    replaced_label=replaced_label,
                )
            )
        return ScheduledSpecial(reading=updated, period=upcoming)
