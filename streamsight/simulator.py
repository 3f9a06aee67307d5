"""Simulates a stream's viewer and chat series with injected anomalies."""

from typing import Optional

import numpy as np
import pandas as pd

from streamsight.source import FrameSource


def generate_stream(
    duration_hours: float = 4,
    poll_seconds: int = 60,
    refresh_minutes: float = 3,
    base_viewers: int = 500,
    anomaly_count: int = 3,
    glitch_ratio: float = 0.01,
    start: Optional[str] = None,
    channel_id: int = 1,
    stream_id: int = 1,
    seed: Optional[int] = None,
) -> pd.DataFrame:
    """Generate one stream session worth of polled stats.

    The viewer count only changes every ``refresh_minutes`` (the platform's
    refresh interval) while samples are taken every ``poll_seconds``, so
    consecutive samples repeat. A few zero-viewer glitches are mixed in.

    Args:
        duration_hours: Length of the stream.
        poll_seconds: Seconds between samples.
        refresh_minutes: Minutes between platform viewer-count updates.
        base_viewers: Plateau audience size.
        anomaly_count: Number of raids/drops to inject after the ramp-up.
        glitch_ratio: Fraction of samples reported as zero viewers.
        start: Stream start time (ISO-8601); defaults to 2024-01-01 18:00 UTC.
        channel_id: Channel id written to every row.
        stream_id: Stream id written to every row.
        seed: Random seed for reproducibility.

    Returns:
        DataFrame with columns: channel_id, stream_id, timestamp,
        viewer_count, chat_rate, is_injected_anomaly
    """
    rng = np.random.default_rng(seed)
    n_points = max(2, int(duration_hours * 3600 / poll_seconds))
    start_ts = pd.Timestamp(start or "2024-01-01T18:00:00Z")
    timestamps = start_ts + pd.to_timedelta(np.arange(n_points) * poll_seconds, unit="s")

    t = np.arange(n_points) / n_points
    ramp = np.minimum(t / 0.15, 1.0)  # audience arrives over the first 15%
    drift = 1 + 0.15 * np.sin(2 * np.pi * t)
    tail = np.where(t > 0.9, 1 - (t - 0.9) * 3, 1.0)  # people leave near the end
    viewers = base_viewers * ramp * drift * tail + rng.normal(0, base_viewers * 0.02, n_points)

    # platform only refreshes the count periodically
    hold = max(1, int(refresh_minutes * 60 / poll_seconds))
    viewers = viewers[(np.arange(n_points) // hold) * hold]

    is_anomaly = np.zeros(n_points, dtype=bool)
    first = int(n_points * 0.2)
    candidates = np.arange(first, n_points, hold)
    if anomaly_count > 0 and len(candidates) > 0:
        picks = rng.choice(candidates, size=min(anomaly_count, len(candidates)), replace=False)
        for idx in picks:
            length = min(hold * int(rng.integers(2, 5)), n_points - idx)
            if rng.random() < 0.6:
                viewers[idx : idx + length] *= rng.uniform(2.0, 3.5)  # raid
            else:
                viewers[idx : idx + length] *= rng.uniform(0.2, 0.45)  # drop
            is_anomaly[idx] = True

    viewers = np.clip(np.round(viewers), 1, None)
    chat = rng.poisson(np.maximum(viewers * 0.04, 0.1)).astype(float)

    n_glitches = int(n_points * glitch_ratio)
    if n_glitches:
        viewers[rng.choice(n_points, size=n_glitches, replace=False)] = 0

    return pd.DataFrame({
        "channel_id": channel_id,
        "stream_id": stream_id,
        "timestamp": timestamps,
        "viewer_count": viewers.astype(int),
        "chat_rate": chat,
        "is_injected_anomaly": is_anomaly,
    })


def simulated_source(
    sessions: int = 1,
    duration_hours: float = 4,
    channel_id: int = 1,
    seed: Optional[int] = None,
) -> FrameSource:
    """A FrameSource holding ``sessions`` consecutive simulated streams."""
    rng = np.random.default_rng(seed)
    frames = []
    streams = []
    start = pd.Timestamp("2024-01-01T18:00:00Z")
    for i in range(sessions):
        stream_id = i + 1
        df = generate_stream(
            duration_hours=duration_hours,
            start=start.isoformat(),
            channel_id=channel_id,
            stream_id=stream_id,
            seed=int(rng.integers(0, 2**31)),
        )
        frames.append(df)
        streams.append({
            "stream_id": stream_id,
            "channel_id": channel_id,
            "started_at": start.isoformat(),
            "ended_at": df["timestamp"].iloc[-1].isoformat(),
        })
        start += pd.Timedelta(days=1)
    return FrameSource(pd.concat(frames, ignore_index=True), pd.DataFrame(streams))
