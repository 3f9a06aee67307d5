"""Entry points of the anomaly and trend detection engine.

``analyze`` works on series already in memory; ``detect`` pulls a
channel's series from a sample source first. Both are pure with respect
to their inputs and hold no state between calls.
"""

import logging
from dataclasses import replace
from typing import Iterable, Optional, Sequence, Union

import numpy as np
import pandas as pd

from streamsight.classifier import classify_changes
from streamsight.config import DetectionConfig
from streamsight.models import Report, StreamBounds, TrendStats
from streamsight.phase import classify_trend
from streamsight.preprocess import prepare_series
from streamsight.report import build_report, empty_report
from streamsight.stats import ScoreBasis, robust_stats

log = logging.getLogger(__name__)


def _last_seen(*frames: pd.DataFrame) -> Optional[pd.Timestamp]:
    stamps = [f["timestamp"].iloc[-1] for f in frames if len(f) > 0]
    return max(stamps) if stamps else None


def analyze(
    viewer_samples: Union[pd.DataFrame, Iterable],
    chat_samples: Union[pd.DataFrame, Iterable] = (),
    sessions: Union[StreamBounds, Sequence[StreamBounds], None] = None,
    config: Optional[DetectionConfig] = None,
) -> Report:
    """Detect viewer and chat anomalies and classify both trends.

    Args:
        viewer_samples: Chronological viewer-count samples, as a DataFrame
            with timestamp and value columns or an iterable of Sample /
            (timestamp, value) pairs.
        chat_samples: Chronological chat-rate samples, same shapes.
        sessions: Bounds of the stream session(s) the samples came from.
            Defaults to the span of the samples themselves.
        config: Detection settings; defaults to DetectionConfig().

    Returns:
        Report with viewer and chat anomalies and trend statistics.
    """
    config = config or DetectionConfig()
    if isinstance(sessions, StreamBounds):
        sessions = [sessions]

    viewers = prepare_series(
        viewer_samples, drop_zero=True, min_timestamp=config.min_valid_timestamp
    )
    chat = prepare_series(
        chat_samples, drop_zero=False, min_timestamp=config.min_valid_timestamp
    )
    if viewers.empty and chat.empty:
        return empty_report()

    last_seen = _last_seen(viewers.valid, chat.valid)

    # viewer statistics cover change points only; chat covers every valid sample
    viewer_stats = robust_stats(viewers.changes["value"])
    chat_stats = robust_stats(chat.valid["value"])

    viewer_anomalies = classify_changes(
        viewers.changes,
        ScoreBasis.robust(viewer_stats, scale=config.mad_scale),
        config,
        sessions=sessions,
        last_seen=last_seen,
    )
    chat_anomalies = classify_changes(
        chat.changes,
        ScoreBasis.classical(chat_stats),
        config,
        sessions=sessions,
        last_seen=last_seen,
    )

    trend_stats = TrendStats(
        viewer_median=viewer_stats.median,
        viewer_mad=viewer_stats.mad,
        viewer_avg=viewer_stats.mean,
        viewer_trend=classify_trend(
            viewers.changes["value"], viewer_stats.mad, config.trend_multiplier
        ),
        chat_avg=chat_stats.mean,
        chat_std_dev=chat_stats.stddev,
        chat_trend=classify_trend(
            chat.changes["value"], chat_stats.stddev, config.trend_multiplier, center=np.mean
        ),
    )
    log.debug(
        "Detected %d viewer and %d chat anomalies",
        len(viewer_anomalies),
        len(chat_anomalies),
    )
    return build_report(viewer_anomalies, chat_anomalies, trend_stats)


def detect(
    source,
    channel_id: Optional[int],
    stream_id: Optional[int] = None,
    start_time=None,
    end_time=None,
    z_threshold: Optional[float] = None,
    config: Optional[DetectionConfig] = None,
) -> Report:
    """Fetch a channel's series from ``source`` and analyze it.

    Args:
        source: A SampleSource (see streamsight.source).
        channel_id: Channel to analyze. None yields an empty report.
        stream_id: Restrict to one stream session instead of every
            session of the channel in the window.
        start_time: Inclusive lower bound of the window, or None.
        end_time: Inclusive upper bound of the window, or None.
        z_threshold: Overrides ``config.z_threshold`` (3.0 by default).
        config: Detection settings.

    Raises:
        SourceError: If the source cannot supply the samples.
    """
    config = config or DetectionConfig()
    if z_threshold is not None:
        config = replace(config, z_threshold=z_threshold)

    if channel_id is None:
        log.debug("No channel selected, returning empty report")
        return empty_report()

    stats = source.stream_stats(channel_id, stream_id, start_time, end_time)
    if len(stats) == 0:
        return empty_report()
    sessions = source.streams(channel_id, stream_id)

    viewer = stats[["timestamp", "viewer_count"]].rename(columns={"viewer_count": "value"})
    chat = stats[["timestamp", "chat_rate"]].rename(columns={"chat_rate": "value"})
    return analyze(viewer, chat, sessions=sessions, config=config)
