"""Record types exchanged with the detection engine."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional

import pandas as pd


TREND_INCREASING = "increasing"
TREND_DECREASING = "decreasing"
TREND_STABLE = "stable"
TRENDS = (TREND_INCREASING, TREND_DECREASING, TREND_STABLE)

PHASE_EARLY = "early"
PHASE_MID = "mid"
PHASE_LATE = "late"
PHASES = (PHASE_EARLY, PHASE_MID, PHASE_LATE)


def to_utc(value) -> pd.Timestamp:
    ts = pd.Timestamp(value)
    return ts.tz_localize("UTC") if ts.tzinfo is None else ts.tz_convert("UTC")


@dataclass(frozen=True)
class Sample:
    """A single reading from the time-series store.

    ``value`` may be None when the feed had no reading for that poll.
    """
    timestamp: datetime
    value: Optional[float]


@dataclass(frozen=True)
class StreamBounds:
    """Start and end of one stream session. ``end`` is None while live."""
    start: pd.Timestamp
    end: Optional[pd.Timestamp] = None
    stream_id: Optional[int] = None

    def __post_init__(self):
        # naive times are taken as UTC
        object.__setattr__(self, "start", to_utc(self.start))
        if self.end is not None:
            object.__setattr__(self, "end", to_utc(self.end))

    def resolved_end(self, last_seen: pd.Timestamp) -> pd.Timestamp:
        return self.end if self.end is not None else last_seen

    def contains(self, ts: pd.Timestamp) -> bool:
        return ts >= self.start and (self.end is None or ts <= self.end)


@dataclass(frozen=True)
class RobustStats:
    median: float = 0.0
    mad: float = 0.0
    mean: float = 0.0
    stddev: float = 0.0
    count: int = 0


@dataclass(frozen=True)
class AnomalyRecord:
    timestamp: pd.Timestamp
    value: float
    previous_value: float
    change_amount: float
    change_rate: Optional[float]  # None when the previous value was zero
    modified_zscore: float
    is_positive: bool
    minutes_from_stream_start: int
    stream_phase: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass(frozen=True)
class TrendStats:
    viewer_median: float = 0.0
    viewer_mad: float = 0.0
    viewer_avg: float = 0.0
    viewer_trend: str = TREND_STABLE
    chat_avg: float = 0.0
    chat_std_dev: float = 0.0
    chat_trend: str = TREND_STABLE


@dataclass(frozen=True)
class Report:
    viewer_anomalies: tuple = ()
    chat_anomalies: tuple = ()
    trend_stats: TrendStats = field(default_factory=TrendStats)

    def to_dict(self) -> dict:
        """JSON-ready representation used by export tooling."""
        return {
            "viewer_anomalies": [a.to_dict() for a in self.viewer_anomalies],
            "chat_anomalies": [a.to_dict() for a in self.chat_anomalies],
            "trend_stats": asdict(self.trend_stats),
        }
