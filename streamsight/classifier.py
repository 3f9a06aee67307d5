"""Flags change points whose standardized value is extreme.

A single forward pass over the change points: each one is compared with
the change point before it, scored against the series-wide statistics,
and kept if the score clears a threshold that depends on how soon it
followed the previous change.
"""

import logging
import math
from typing import Optional, Sequence

import pandas as pd

from streamsight.config import DetectionConfig
from streamsight.models import AnomalyRecord, StreamBounds
from streamsight.phase import relative_position, stream_phase
from streamsight.stats import ScoreBasis

log = logging.getLogger(__name__)


def effective_threshold(gap_minutes: float, config: DetectionConfig) -> float:
    """Base threshold, tightened for changes that follow quickly."""
    if gap_minutes < config.short_gap_minutes:
        return config.z_threshold * config.short_gap_multiplier
    return config.z_threshold


def in_exclusion_window(
    ts: pd.Timestamp, start: pd.Timestamp, end: pd.Timestamp, ratio: float
) -> bool:
    """True if ``ts`` falls in the leading ``ratio`` of the stream."""
    duration = (end - start).total_seconds()
    if duration <= 0:
        return False
    return (ts - start).total_seconds() < ratio * duration


def resolve_bounds(
    ts: pd.Timestamp,
    sessions: Sequence[StreamBounds],
    fallback: StreamBounds,
) -> StreamBounds:
    """Pick the session a timestamp belongs to.

    Prefers a session containing ``ts``, then the latest session that
    started before it, then ``fallback``.
    """
    started = [s for s in sessions if s.start <= ts]
    for session in reversed(started):
        if session.contains(ts):
            return session
    if started:
        return started[-1]
    return fallback


def rank_and_truncate(records: list, limit: int) -> list:
    """Keep the ``limit`` highest absolute scores, returned chronologically."""
    ranked = sorted(records, key=lambda a: abs(a.modified_zscore), reverse=True)
    if len(ranked) > limit:
        log.debug("Truncating %d anomalies to %d", len(ranked), limit)
    kept = ranked[:limit]
    return sorted(kept, key=lambda a: a.timestamp)


def classify_changes(
    changes: pd.DataFrame,
    basis: ScoreBasis,
    config: DetectionConfig,
    sessions: Optional[Sequence[StreamBounds]] = None,
    last_seen: Optional[pd.Timestamp] = None,
) -> list:
    """Build anomaly records for a series of change points.

    Args:
        changes: De-duplicated change points with timestamp, value and
            minutes columns, in chronological order.
        basis: Center and spread the values are standardized against.
        config: Thresholds and limits.
        sessions: Stream sessions used for phase and elapsed time. When
            empty, the span of ``changes`` (up to ``last_seen``) is used.
        last_seen: Timestamp of the last valid sample; the end of any
            session that is still live.

    Returns:
        List of AnomalyRecord in chronological order, at most
        ``config.max_anomalies`` long. Empty when the spread is zero.
    """
    if len(changes) < 2:
        return []
    if basis.degenerate:
        log.debug("Zero spread over %d change points, no anomalies possible", len(changes))
        return []

    sessions = sorted(sessions or [], key=lambda s: s.start)
    if last_seen is None:
        last_seen = changes["timestamp"].iloc[-1]
    fallback = StreamBounds(start=changes["timestamp"].iloc[0], end=last_seen)

    rows = list(changes.itertuples(index=False))
    records = []
    for prev, cur in zip(rows, rows[1:]):
        bounds = resolve_bounds(cur.timestamp, sessions, fallback)
        start = bounds.start
        end = bounds.resolved_end(last_seen)
        if in_exclusion_window(cur.timestamp, start, end, config.early_exclusion_ratio):
            continue

        score = basis.score(cur.value)
        threshold = effective_threshold(cur.minutes - prev.minutes, config)
        if not abs(score) >= threshold:
            continue

        change = float(cur.value - prev.value)
        rate = change / prev.value * 100 if prev.value != 0 else None
        elapsed = (cur.timestamp - start) / pd.Timedelta(minutes=1)
        records.append(AnomalyRecord(
            timestamp=cur.timestamp,
            value=float(cur.value),
            previous_value=float(prev.value),
            change_amount=change,
            change_rate=rate,
            modified_zscore=float(score),
            is_positive=change > 0,
            minutes_from_stream_start=math.floor(elapsed),
            stream_phase=stream_phase(relative_position(cur.timestamp, start, end)),
        ))

    return rank_and_truncate(records, config.max_anomalies)
