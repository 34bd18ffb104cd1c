import logging
import os
import socket
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from village_weather.application.services.event_bus import EventBus
from village_weather.application.services.history_smoother import DEFAULT_TEMPERATURE_DELTA
from village_weather.application.services.period_calculator import (
    DEFAULT_CUTOVER_HOUR,
    DEFAULT_TIMEZONE,
    PeriodPolicy,
)
from village_weather.application.services.weather_generator import (
    DEFAULT_SPECIAL_RATE,
    GeneratorSettings,
    WeatherGenerator,
)
from village_weather.application.services.weather_service import WeatherService
from village_weather.domain.errors import ConfigurationError
from village_weather.domain.repositories import WeatherRepository
from village_weather.infrastructure.climate_loader import load_climate_table
from village_weather.infrastructure.inmemory.inmemory_weather_repo import InMemoryWeatherRepository


logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return float(default)
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return int(default)
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class WeatherSettings:
    database_url: Optional[str] = None
    store_timeout_s: float = 5.0
    probe_timeout_s: float = 0.35
    timezone: str = DEFAULT_TIMEZONE
    cutover_hour: int = DEFAULT_CUTOVER_HOUR
    special_rate: float = DEFAULT_SPECIAL_RATE
    temperature_delta: float = DEFAULT_TEMPERATURE_DELTA
    severe_streak_length: int = 1
    climate_path: Optional[str] = None

    @classmethod
    def from_env(cls) -> "WeatherSettings":
        settings = cls(
            database_url=os.getenv("VW_DATABASE_URL") or None,
            store_timeout_s=_env_float("VW_STORE_TIMEOUT_S", 5.0),
            probe_timeout_s=_env_float("VW_DB_CONNECT_PROBE_TIMEOUT_S", 0.35),
            timezone=os.getenv("VW_TIMEZONE", DEFAULT_TIMEZONE).strip() or DEFAULT_TIMEZONE,
            cutover_hour=_env_int("VW_CUTOVER_HOUR", DEFAULT_CUTOVER_HOUR),
            special_rate=_env_float("VW_SPECIAL_RATE", DEFAULT_SPECIAL_RATE),
            temperature_delta=_env_float("VW_TEMPERATURE_DELTA", DEFAULT_TEMPERATURE_DELTA),
            severe_streak_length=_env_int("VW_SEVERE_STREAK_LENGTH", 1),
            climate_path=os.getenv("VW_CLIMATE_PATH") or None,
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if not 0 <= self.cutover_hour <= 23:
            raise ConfigurationError(f"VW_CUTOVER_HOUR must be within 0-23, got {self.cutover_hour}")
        if not 0.0 <= self.special_rate <= 1.0:
            raise ConfigurationError(f"VW_SPECIAL_RATE must be within 0-1, got {self.special_rate}")
        if self.temperature_delta < 0:
            raise ConfigurationError(f"VW_TEMPERATURE_DELTA must not be negative, got {self.temperature_delta}")
        if self.severe_streak_length < 1:
            raise ConfigurationError(
                f"VW_SEVERE_STREAK_LENGTH must be at least 1, got {self.severe_streak_length}"
            )
        if self.store_timeout_s <= 0:
            raise ConfigurationError(f"VW_STORE_TIMEOUT_S must be positive, got {self.store_timeout_s}")


def _looks_like_local_mysql_unreachable(database_url: str, timeout: float = 0.35) -> bool:
    if not database_url:
        return False

    parsed = urlparse(database_url)
    if not parsed.scheme.startswith("mysql"):
        return False

    host = (parsed.hostname or "").strip().lower()
    if host not in {"localhost", "127.0.0.1", "::1"}:
        return False

    port = parsed.port or 3306
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return False
    except OSError:
        return True


def _build_sql_repository(settings: WeatherSettings) -> WeatherRepository:
    from village_weather.infrastructure.db.sql import connection
    from village_weather.infrastructure.db.sql.repos import SqlWeatherRepository

    connection.configure(settings.database_url, settings.store_timeout_s)
    return SqlWeatherRepository()


def _build_repository(settings: WeatherSettings) -> WeatherRepository:
    if settings.database_url:
        if _looks_like_local_mysql_unreachable(settings.database_url, settings.probe_timeout_s):
            print("MySQL appears unreachable, falling back to in-memory weather store.")
            return InMemoryWeatherRepository(lock_timeout=settings.store_timeout_s)
        return _build_sql_repository(settings)
    return InMemoryWeatherRepository(lock_timeout=settings.store_timeout_s)


def create_weather_service(
    settings: Optional[WeatherSettings] = None,
    *,
    repository: Optional[WeatherRepository] = None,
    event_bus: Optional[EventBus] = None,
) -> WeatherService:
    settings = settings or WeatherSettings.from_env()
    climate = load_climate_table(settings.climate_path)
    generator = WeatherGenerator(
        climate,
        GeneratorSettings(
            special_rate=settings.special_rate,
            temperature_delta=settings.temperature_delta,
            severe_streak_length=settings.severe_streak_length,
        ),
    )
    policy = PeriodPolicy(cutover_hour=settings.cutover_hour, tz_name=settings.timezone)
    store = repository or _build_repository(settings)
    logger.debug(
        "Weather service configured",
        extra={"store": type(store).__name__, "timezone": settings.timezone, "cutover_hour": settings.cutover_hour},
    )
    return WeatherService(store, generator, policy, event_bus=event_bus or EventBus())
