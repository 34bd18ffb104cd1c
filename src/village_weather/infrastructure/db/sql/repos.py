from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Tuple

from sqlalchemy import Boolean, DateTime, bindparam, text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from village_weather.domain.errors import WeatherStoreUnavailableError
from village_weather.domain.models.weather import (
    GUARANTEED,
    Season,
    SpecialCondition,
    Village,
    WeatherCondition,
    WeatherReading,
)
from village_weather.domain.repositories import WeatherRepository
from .connection import SessionLocal


logger = logging.getLogger(__name__)

_COLUMNS = (
    "village, period_start, season, "
    "temperature_label, temperature_symbol, temperature_probability, "
    "wind_label, wind_symbol, wind_probability, "
    "precipitation_label, precipitation_symbol, precipitation_probability, "
    "special_label, special_symbol, special_probability, "
    "posted, posted_at, created_at"
)
_VALUES = (
    ":village, :period_start, :season, "
    ":temperature_label, :temperature_symbol, :temperature_probability, "
    ":wind_label, :wind_symbol, :wind_probability, "
    ":precipitation_label, :precipitation_symbol, :precipitation_probability, "
    ":special_label, :special_symbol, :special_probability, "
    ":posted, :posted_at, :created_at"
)
_TYPED_PARAMS = {
    "period_start": DateTime(),
    "posted_at": DateTime(),
    "created_at": DateTime(),
    "start": DateTime(),
    "end": DateTime(),
    "before": DateTime(),
    "posted": Boolean(),
    "unposted": Boolean(),
}


def _stmt(sql: str):
    typed = [
        bindparam(name, type_=type_)
        for name, type_ in _TYPED_PARAMS.items()
        if re.search(rf":{name}\b", sql)
    ]
    statement = text(sql)
    return statement.bindparams(*typed) if typed else statement


def _to_db(value: Optional[datetime]) -> Optional[datetime]:
    # Stored as naive UTC; DATETIME columns carry no offset on MySQL or SQLite.
    if value is None:
        return None
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db(value) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _row_to_reading(row) -> WeatherReading:
    special = None
    if getattr(row, "special_label", None):
        special = SpecialCondition(
            label=row.special_label,
            symbol=row.special_symbol or "",
            probability_descriptor=row.special_probability or "",
        )
    return WeatherReading(
        village=Village.parse(row.village),
        period_start=_from_db(row.period_start),
        season=Season.parse(row.season),
        temperature=WeatherCondition(
            label=row.temperature_label,
            symbol=row.temperature_symbol or "",
            probability_percent=float(row.temperature_probability or 0.0),
        ),
        wind=WeatherCondition(
            label=row.wind_label,
            symbol=row.wind_symbol or "",
            probability_percent=float(row.wind_probability or 0.0),
        ),
        precipitation=WeatherCondition(
            label=row.precipitation_label,
            symbol=row.precipitation_symbol or "",
            probability_percent=float(row.precipitation_probability or 0.0),
        ),
        special=special,
        posted=bool(row.posted),
        posted_at=_from_db(row.posted_at),
        created_at=_from_db(row.created_at),
    )


def _reading_params(reading: WeatherReading) -> dict:
    special = reading.special
    return {
        "village": reading.village.value,
        "period_start": _to_db(reading.period_start),
        "season": reading.season.value,
        "temperature_label": reading.temperature.label,
        "temperature_symbol": reading.temperature.symbol,
        "temperature_probability": float(reading.temperature.probability_percent),
        "wind_label": reading.wind.label,
        "wind_symbol": reading.wind.symbol,
        "wind_probability": float(reading.wind.probability_percent),
        "precipitation_label": reading.precipitation.label,
        "precipitation_symbol": reading.precipitation.symbol,
        "precipitation_probability": float(reading.precipitation.probability_percent),
        "special_label": special.label if special is not None else None,
        "special_symbol": special.symbol if special is not None else None,
        "special_probability": special.probability_descriptor if special is not None else None,
        "posted": bool(reading.posted),
        "posted_at": _to_db(reading.posted_at),
        "created_at": _to_db(reading.created_at or datetime.now(timezone.utc)),
    }


class SqlWeatherRepository(WeatherRepository):
    """SQLAlchemy-backed store over the ``weather_reading`` table."""

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except IntegrityError:
            raise
        except (OperationalError, PoolTimeoutError) as exc:
            raise WeatherStoreUnavailableError(f"Weather store unavailable during {operation}: {exc}") from exc
        except DBAPIError as exc:
            if exc.connection_invalidated:
                raise WeatherStoreUnavailableError(f"Weather store connection lost during {operation}: {exc}") from exc
            raise

    def _fetch(self, session, village: Village, period_start: datetime) -> Optional[WeatherReading]:
        row = session.execute(
            _stmt(f"SELECT {_COLUMNS} FROM weather_reading WHERE village = :village AND period_start = :period_start"),
            {"village": village.value, "period_start": _to_db(period_start)},
        ).first()
        return _row_to_reading(row) if row is not None else None

    def get(self, village: Village, period_start: datetime) -> Optional[WeatherReading]:
        with self._guard("get"):
            with SessionLocal() as session:
                return self._fetch(session, village, period_start)

    def find_for_period(
        self,
        village: Village,
        start: datetime,
        end: datetime,
        *,
        only_posted: bool = False,
    ) -> Optional[WeatherReading]:
        posted_clause = " AND posted = :posted" if only_posted else ""
        params = {"village": village.value, "start": _to_db(start), "end": _to_db(end)}
        if only_posted:
            params["posted"] = True
        with self._guard("find_for_period"):
            with SessionLocal() as session:
                row = session.execute(
                    _stmt(
                        f"""
                        SELECT {_COLUMNS}
                        FROM weather_reading
                        WHERE village = :village
                          AND period_start >= :start
                          AND period_start < :end{posted_clause}
                        ORDER BY period_start DESC
                        LIMIT 1
                        """
                    ),
                    params,
                ).first()
        return _row_to_reading(row) if row is not None else None

    def insert_if_absent(self, reading: WeatherReading) -> Tuple[WeatherReading, bool]:
        params = _reading_params(reading)
        created = False
        try:
            with self._guard("insert_if_absent"):
                with SessionLocal.begin() as session:
                    dialect = session.bind.dialect.name if session.bind is not None else "mysql"
                    if dialect in {"sqlite", "postgresql"}:
                        result = session.execute(
                            _stmt(
                                f"INSERT INTO weather_reading ({_COLUMNS}) VALUES ({_VALUES}) "
                                "ON CONFLICT(village, period_start) DO NOTHING"
                            ),
                            params,
                        )
                        created = result.rowcount == 1
                    else:
                        # ON DUPLICATE KEY UPDATE reports a match as one affected row under
                        # CLIENT_FOUND_ROWS, so duplicates surface as IntegrityError instead.
                        session.execute(_stmt(f"INSERT INTO weather_reading ({_COLUMNS}) VALUES ({_VALUES})"), params)
                        created = True
        except IntegrityError:
            logger.warning(
                "Weather insert lost a race; re-fetching stored reading",
                extra={"village": reading.village.value, "period_start": reading.period_start.isoformat()},
            )
            created = False

        stored = self.get(reading.village, reading.period_start)
        if stored is None:
            raise WeatherStoreUnavailableError(
                f"Weather for {reading.village.value} at {reading.period_start.isoformat()} vanished after insert"
            )
        return stored, created

    def list_recent(self, village: Village, before: datetime, limit: int = 3) -> List[WeatherReading]:
        with self._guard("list_recent"):
            with SessionLocal() as session:
                rows = session.execute(
                    _stmt(
                        f"""
                        SELECT {_COLUMNS}
                        FROM weather_reading
                        WHERE village = :village AND period_start < :before
                        ORDER BY period_start DESC
                        LIMIT :limit
                        """
                    ),
                    {"village": village.value, "before": _to_db(before), "limit": max(0, int(limit))},
                ).all()
        return [_row_to_reading(row) for row in rows]

    def set_guaranteed_special(
        self,
        village: Village,
        period_start: datetime,
        special: SpecialCondition,
    ) -> Optional[WeatherReading]:
        with self._guard("set_guaranteed_special"):
            with SessionLocal.begin() as session:
                result = session.execute(
                    _stmt(
                        """
                        UPDATE weather_reading
                        SET special_label = :label,
                            special_symbol = :symbol,
                            special_probability = :probability
                        WHERE village = :village
                          AND period_start = :period_start
                          AND (special_probability IS NULL OR LOWER(special_probability) <> :guaranteed)
                        """
                    ),
                    {
                        "label": special.label,
                        "symbol": special.symbol,
                        "probability": special.probability_descriptor,
                        "village": village.value,
                        "period_start": _to_db(period_start),
                        "guaranteed": GUARANTEED,
                    },
                )
                if result.rowcount != 1:
                    return None
                return self._fetch(session, village, period_start)

    def mark_posted(self, village: Village, period_start: datetime, posted_at: datetime) -> Optional[WeatherReading]:
        with self._guard("mark_posted"):
            with SessionLocal.begin() as session:
                session.execute(
                    _stmt(
                        """
                        UPDATE weather_reading
                        SET posted = :posted, posted_at = :posted_at
                        WHERE village = :village AND period_start = :period_start AND posted = :unposted
                        """
                    ),
                    {
                        "posted": True,
                        "unposted": False,
                        "posted_at": _to_db(posted_at),
                        "village": village.value,
                        "period_start": _to_db(period_start),
                    },
                )
                return self._fetch(session, village, period_start)
