"""Robust and classical summary statistics."""

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from streamsight.models import RobustStats

MAD_SCALE = 0.6745


def median(values: Sequence[float]) -> float:
    """Middle value, or the mean of the two middle values for even length."""
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return 0.0
    return float(np.median(arr))


def mad(values: Sequence[float]) -> float:
    """Median absolute deviation from the median."""
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return 0.0
    return float(np.median(np.abs(arr - np.median(arr))))


def modified_zscore(x: float, center: float, spread: float, scale: float = MAD_SCALE) -> float:
    """Modified Z-score ``scale * (x - median) / mad``.

    Returns 0.0 when ``spread`` is zero: a series with no spread has no
    outliers.
    """
    if spread == 0 or not np.isfinite(spread):
        return 0.0
    return scale * (x - center) / spread


def classical_stats(values: Sequence[float]) -> tuple[float, float]:
    """Mean and sample standard deviation (0.0 for fewer than two values)."""
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return 0.0, 0.0
    mean = float(arr.mean())
    std = float(arr.std(ddof=1)) if arr.size >= 2 else 0.0
    return mean, std


def robust_stats(values: Sequence[float]) -> RobustStats:
    arr = np.asarray(values, dtype=float)
    mean, std = classical_stats(arr)
    return RobustStats(
        median=median(arr),
        mad=mad(arr),
        mean=mean,
        stddev=std,
        count=int(arr.size),
    )


@dataclass(frozen=True)
class ScoreBasis:
    """How a value is standardized before thresholding.

    Viewer counts use median/MAD with the 0.6745 factor; chat rates use
    mean/stddev with a factor of 1.
    """
    center: float
    spread: float
    scale: float = 1.0

    @property
    def degenerate(self) -> bool:
        return self.spread == 0 or not np.isfinite(self.spread)

    def score(self, x: float) -> float:
        return modified_zscore(x, self.center, self.spread, self.scale)

    @classmethod
    def robust(cls, stats: RobustStats, scale: float = MAD_SCALE) -> "ScoreBasis":
        return cls(center=stats.median, spread=stats.mad, scale=scale)

    @classmethod
    def classical(cls, stats: RobustStats) -> "ScoreBasis":
        return cls(center=stats.mean, spread=stats.stddev, scale=1.0)
