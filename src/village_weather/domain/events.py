from dataclasses import dataclass
from datetime import datetime


@dataclass
class WeatherEvent:
    village: str
    period_start: datetime


@dataclass
class WeatherGenerated(WeatherEvent):
    season: str
    special_label: str | None = None


@dataclass
class GuaranteedSpecialScheduled(WeatherEvent):
    special_label: str
    replaced_label: str | None = None


@dataclass
class WeatherPosted(WeatherEvent):
    posted_at: datetime
