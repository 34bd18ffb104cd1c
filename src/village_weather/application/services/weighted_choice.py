from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from village_weather.domain.errors import ClimateConfigurationError
from village_weather.domain.models.climate import Candidate


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WeightedPick:
    candidate: Candidate
    probability_percent: float

    @property
    def label(self) -> str:
        return self.candidate.label


def effective_weight(candidate: Candidate, modifiers: Optional[Mapping[str, float]] = None) -> float:
    modifier = float((modifiers or {}).get(candidate.label, 1.0))
    return max(0.0, float(candidate.weight) * modifier)


def weighted_choice(
    candidates: Sequence[Candidate],
    rng: random.Random,
    modifiers: Optional[Mapping[str, float]] = None,
) -> WeightedPick:
    pool = list(candidates)
    if not pool:
        raise ClimateConfigurationError("No candidates provided to weighted choice")

    weights = [effective_weight(candidate, modifiers) for candidate in pool]
    total = sum(weights)
    if total <= 0:
        logger.warning(
            "Total candidate weight is not positive; selecting uniformly",
            extra={"candidates": [candidate.label for candidate in pool]},
        )
        return WeightedPick(candidate=pool[rng.randrange(len(pool))], probability_percent=100.0 / len(pool))

    threshold = rng.random() * total
    cumulative = 0.0
    for candidate, weight in zip(pool, weights):
        cumulative += weight
        if cumulative > threshold:
            return WeightedPick(candidate=candidate, probability_percent=weight / total * 100.0)

    # Float rounding can leave the draw at the very top of the range.
    candidate, weight = next((c, w) for c, w in zip(reversed(pool), reversed(weights)) if w > 0)
    return WeightedPick(candidate=candidate, probability_percent=weight / total * 100.0)


def format_percent(value: float) -> str:
    return f"{float(value):.1f}%"
