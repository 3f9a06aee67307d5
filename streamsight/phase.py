"""Stream phase tagging and half-versus-half trend classification."""

from typing import Callable, Sequence

import numpy as np
import pandas as pd

from streamsight.models import (
    PHASE_EARLY,
    PHASE_LATE,
    PHASE_MID,
    TREND_DECREASING,
    TREND_INCREASING,
    TREND_STABLE,
)


def relative_position(ts: pd.Timestamp, start: pd.Timestamp, end: pd.Timestamp) -> float:
    """Position of ``ts`` within [start, end], clamped to [0, 1].

    A zero-length stream puts everything at 0.
    """
    duration = (end - start).total_seconds()
    if duration <= 0:
        return 0.0
    pos = (ts - start).total_seconds() / duration
    return min(max(pos, 0.0), 1.0)


def stream_phase(position: float) -> str:
    if position < 1 / 3:
        return PHASE_EARLY
    if position < 2 / 3:
        return PHASE_MID
    return PHASE_LATE


def classify_trend(
    values: Sequence[float],
    spread: float,
    multiplier: float = 1.5,
    center: Callable = np.median,
) -> str:
    """Compare the second half of a series against the first.

    The series is split at its midpoint index. The trend is increasing
    when ``center(second) - center(first)`` exceeds ``multiplier * spread``,
    decreasing when it is below the negative of that, otherwise stable.
    ``values`` are the retained readings, the first of which is the
    baseline rather than a change; fewer than two changes is always stable.
    """
    arr = np.asarray(values, dtype=float)
    if arr.size - 1 < 2:
        return TREND_STABLE

    mid = arr.size // 2
    delta = float(center(arr[mid:])) - float(center(arr[:mid]))
    limit = multiplier * spread
    if delta > limit:
        return TREND_INCREASING
    if delta < -limit:
        return TREND_DECREASING
    return TREND_STABLE
