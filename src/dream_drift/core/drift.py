"""Drift level progression and prompt-facing drift descriptions."""

from __future__ import annotations

import math
import random
from typing import Final

from dream_drift.domain.ports import RandomSource

DRIFT_INCREMENT_MIN: Final[float] = 0.02
DRIFT_INCREMENT_MAX: Final[float] = 0.05
DRIFT_THRESHOLD: Final[float] = 0.8
DRIFT_REDUCTION_MIN: Final[float] = 0.1
DRIFT_REDUCTION_MAX: Final[float] = 0.2
DRIFT_FLOOR: Final[float] = 0.1

_DRIFT_BANDS: Final[tuple[tuple[float, str], ...]] = (
    (0.2, "very low (realistic, grounded)"),
    (0.4, "low (mostly realistic with subtle oddities)"),
    (0.6, "moderate (noticeable dreamlike elements)"),
    (0.8, "high (strongly dreamlike, surreal)"),
)
_TOP_BAND: Final[str] = "very high (deeply surreal, dream logic)"

_DEFAULT_RNG = random.Random()


def advance_drift(current: float, *, rng: RandomSource | None = None) -> float:
    """Return the next drift level: slow climb, partial reset once past the threshold."""
    source = rng if rng is not None else _DEFAULT_RNG
    if current > DRIFT_THRESHOLD:
        reduction = DRIFT_REDUCTION_MIN + source.random() * (
            DRIFT_REDUCTION_MAX - DRIFT_REDUCTION_MIN
        )
        return _round_drift(max(DRIFT_FLOOR, current - reduction))

    increment = DRIFT_INCREMENT_MIN + source.random() * (
        DRIFT_INCREMENT_MAX - DRIFT_INCREMENT_MIN
    )
    return _round_drift(current + increment)


def describe_drift(level: float) -> str:
    """Describe a drift level in words for prompt conditioning."""
    for upper_bound, label in _DRIFT_BANDS:
        if level < upper_bound:
            return label
    return _TOP_BAND


def _round_drift(value: float) -> float:
    # Half-up rounding to two decimals.
    return math.floor(value * 100 + 0.5) / 100
