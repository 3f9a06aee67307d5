"""Cleaning and de-duplication of raw platform readings.

Platforms refresh viewer counts every few minutes while the collector
polls more often, so the raw feed repeats the same reading several times
in a row. Only readings where the value actually moved are useful for
statistics; the repeats are collapsed here.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd

from streamsight.models import Sample, to_utc

log = logging.getLogger(__name__)

EPOCH = pd.Timestamp("1970-01-01", tz="UTC")
COLUMNS = ["timestamp", "value"]


@dataclass(frozen=True)
class PreparedSeries:
    """A cleaned series and its change points."""
    valid: pd.DataFrame
    changes: pd.DataFrame

    @property
    def empty(self) -> bool:
        return len(self.valid) == 0


def to_frame(samples: Union[pd.DataFrame, Iterable]) -> pd.DataFrame:
    """Turn samples into a DataFrame with timestamp and value columns.

    Accepts a DataFrame (copied), or an iterable of ``Sample`` objects or
    ``(timestamp, value)`` pairs.
    """
    if isinstance(samples, pd.DataFrame):
        return samples.copy()

    rows = []
    for item in samples:
        if isinstance(item, Sample):
            rows.append({"timestamp": item.timestamp, "value": item.value})
        else:
            ts, value = item
            rows.append({"timestamp": ts, "value": value})
    if not rows:
        return pd.DataFrame(columns=COLUMNS)
    return pd.DataFrame(rows)


def clean_series(
    df: pd.DataFrame,
    drop_zero: bool = True,
    min_timestamp: Optional[str] = None,
) -> pd.DataFrame:
    """Drop samples that cannot take part in detection.

    Removes unparseable timestamps and those not after ``min_timestamp``
    (naive values are taken as UTC), null, infinite and negative values,
    and zero values when ``drop_zero`` is set (zero viewers is a platform
    glitch, zero chat rate is a real reading). Adds a ``minutes`` column:
    minutes since the Unix epoch.

    Raises:
        AssertionError: If the remaining samples are not in
            chronological order.
    """
    result = df.copy()
    if len(result) == 0:
        return pd.DataFrame({
            "timestamp": pd.Series(dtype="datetime64[ns, UTC]"),
            "value": pd.Series(dtype=float),
            "minutes": pd.Series(dtype=float),
        })

    result["timestamp"] = pd.to_datetime(
        result["timestamp"], utc=True, errors="coerce", format="ISO8601"
    )
    result["value"] = pd.to_numeric(result["value"], errors="coerce").astype(float)

    keep = result["timestamp"].notna() & np.isfinite(result["value"]) & (result["value"] >= 0)
    if min_timestamp is not None:
        keep &= result["timestamp"] > to_utc(min_timestamp)
    if drop_zero:
        keep &= result["value"] != 0

    dropped = int((~keep).sum())
    if dropped:
        log.debug("Dropped %d of %d samples during cleaning", dropped, len(result))

    result = result[keep].reset_index(drop=True)
    assert result["timestamp"].is_monotonic_increasing, (
        "samples must be sorted by timestamp before detection"
    )
    result["minutes"] = (result["timestamp"] - EPOCH) / pd.Timedelta(minutes=1)
    return result


def dedupe_changes(df: pd.DataFrame) -> pd.DataFrame:
    """Keep the first sample and every sample whose value differs from
    the one before it."""
    if len(df) == 0:
        return df.copy()
    changed = df["value"].ne(df["value"].shift())
    return df[changed].reset_index(drop=True)


def series_bounds(df: pd.DataFrame) -> Optional[tuple]:
    """First and last timestamp of a cleaned series, or None if empty."""
    if len(df) == 0:
        return None
    return df["timestamp"].iloc[0], df["timestamp"].iloc[-1]


def prepare_series(
    samples: Union[pd.DataFrame, Iterable],
    drop_zero: bool = True,
    min_timestamp: Optional[str] = None,
) -> PreparedSeries:
    """Clean a raw series and extract its change points."""
    valid = clean_series(to_frame(samples), drop_zero=drop_zero, min_timestamp=min_timestamp)
    changes = dedupe_changes(valid)
    log.debug("%d valid samples, %d change points", len(valid), len(changes))
    return PreparedSeries(valid=valid, changes=changes)
