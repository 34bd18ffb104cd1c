from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from village_weather.domain.errors import ClimateConfigurationError
from village_weather.domain.models.climate import (
    Candidate,
    CandidateConditions,
    ClimateTable,
    SeasonCandidates,
    Threshold,
)
from village_weather.domain.models.weather import Season, Village


AXES = ("temperature", "wind", "precipitation", "special")
_REQUIRED_AXES = ("temperature", "wind", "precipitation")
_MISSING_WEIGHT = 0.01


def default_climate_path() -> Path:
    return Path(__file__).resolve().parents[1] / "data" / "climate.json"


def _parse_float(raw_value, *, field_name: str) -> float:
    try:
        return float(raw_value)
    except (TypeError, ValueError) as exc:
        raise ClimateConfigurationError(f"Invalid numeric value for {field_name}: {raw_value!r}") from exc


def _parse_conditions(raw: Mapping[str, Any] | None, *, label: str) -> CandidateConditions:
    if not raw:
        return CandidateConditions()
    try:
        return CandidateConditions(
            temperature=tuple(Threshold.parse(rule) for rule in raw.get("temperature", ()) if rule != "any"),
            wind=tuple(Threshold.parse(rule) for rule in raw.get("wind", ()) if rule != "any"),
            precipitation=tuple(str(rule) for rule in raw.get("precipitation", ()) if rule != "any"),
        )
    except ValueError as exc:
        raise ClimateConfigurationError(f"Invalid conditions for {label!r}: {exc}") from exc


def _load_catalog(raw_conditions: Mapping[str, Any]) -> dict[str, dict[str, Candidate]]:
    catalog: dict[str, dict[str, Candidate]] = {}
    for axis in AXES:
        rows = raw_conditions.get(axis)
        if not isinstance(rows, list):
            raise ClimateConfigurationError(f"Climate catalog is missing the {axis!r} list")
        entries: dict[str, Candidate] = {}
        for row in rows:
            label = str((row or {}).get("label", "") or "").strip()
            if not label:
                raise ClimateConfigurationError(f"Climate catalog {axis!r} has an entry without a label")
            raw_weight = row.get("weight")
            weight = _MISSING_WEIGHT if raw_weight is None else _parse_float(raw_weight, field_name=f"{label} weight")
            entries[label] = Candidate(
                label=label,
                symbol=str(row.get("symbol", "") or ""),
                weight=weight,
                conditions=_parse_conditions(row.get("conditions"), label=label),
            )
        catalog[axis] = entries
    return catalog


def _resolve_axis(
    catalog: Mapping[str, Mapping[str, Candidate]],
    axis: str,
    labels: list[str],
    *,
    village: Village,
    season: Season,
) -> tuple[Candidate, ...]:
    known = catalog[axis]
    resolved: list[Candidate] = []
    for label in labels:
        candidate = known.get(str(label))
        if candidate is None:
            raise ClimateConfigurationError(
                f"{village.value}/{season.value} lists unknown {axis} label {label!r}"
            )
        resolved.append(candidate)
    if axis in _REQUIRED_AXES and not resolved:
        raise ClimateConfigurationError(f"{village.value}/{season.value} has no {axis} candidates")
    return tuple(resolved)


def _parse_modifiers(raw: Mapping[str, Any] | None) -> dict[str, dict[str, float]]:
    parsed: dict[str, dict[str, float]] = {}
    for axis, values in (raw or {}).items():
        if axis not in AXES:
            raise ClimateConfigurationError(f"Unknown modifier axis {axis!r}")
        parsed[axis] = {
            str(label): _parse_float(value, field_name=f"{axis} modifier for {label}")
            for label, value in dict(values or {}).items()
        }
    return parsed


def build_climate_table(payload: Mapping[str, Any]) -> ClimateTable:
    if not isinstance(payload, Mapping):
        raise ClimateConfigurationError("Climate payload must be a JSON object")
    catalog = _load_catalog(payload.get("conditions") or {})

    seasons: dict[tuple[Village, Season], SeasonCandidates] = {}
    villages = payload.get("villages") or {}
    for raw_village, village_data in villages.items():
        village = Village.parse(raw_village)
        modifiers = dict((village_data or {}).get("modifiers") or {})
        for raw_season, axes in dict((village_data or {}).get("seasons") or {}).items():
            try:
                season = Season.parse(raw_season)
            except ValueError as exc:
                raise ClimateConfigurationError(f"Unknown season {raw_season!r} for {village.value}") from exc
            resolved = {
                axis: _resolve_axis(catalog, axis, list((axes or {}).get(axis, []) or []), village=village, season=season)
                for axis in AXES
            }
            seasons[(village, season)] = SeasonCandidates(
                village=village,
                season=season,
                modifiers=_parse_modifiers(modifiers.get(season.value)),
                **resolved,
            )

    missing = [
        f"{village.value}/{season.value}"
        for village in Village
        for season in Season
        if (village, season) not in seasons
    ]
    if missing:
        raise ClimateConfigurationError(f"Climate data is missing seasons: {', '.join(missing)}")
    return ClimateTable(catalog=catalog, seasons=seasons)


def load_climate_table(path: Path | str | None = None) -> ClimateTable:
    climate_path = Path(path) if path else default_climate_path()
    try:
        payload = json.loads(climate_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ClimateConfigurationError(f"Climate data file not found: {climate_path}") from exc
    except json.JSONDecodeError as exc:
        raise ClimateConfigurationError(f"Climate data file is not valid JSON: {climate_path}: {exc}") from exc
    return build_climate_table(payload)
