"""Packaging detection output for the dashboard and export tooling."""

from collections import Counter

import pandas as pd

from streamsight.models import PHASES, Report, TrendStats

ANOMALY_COLUMNS = [
    "series",
    "timestamp",
    "value",
    "previous_value",
    "change_amount",
    "change_rate",
    "modified_zscore",
    "is_positive",
    "minutes_from_stream_start",
    "stream_phase",
]


def build_report(viewer_anomalies, chat_anomalies, trend_stats: TrendStats) -> Report:
    return Report(
        viewer_anomalies=tuple(viewer_anomalies),
        chat_anomalies=tuple(chat_anomalies),
        trend_stats=trend_stats,
    )


def empty_report() -> Report:
    """Report for a channel with no usable data: no anomalies, stable trends."""
    return Report()


def anomalies_to_frame(report: Report) -> pd.DataFrame:
    """Flatten both anomaly lists into one DataFrame, viewer rows first."""
    rows = []
    for series, anomalies in (("viewer", report.viewer_anomalies), ("chat", report.chat_anomalies)):
        for anomaly in anomalies:
            row = anomaly.to_dict()
            row["timestamp"] = anomaly.timestamp
            row["series"] = series
            rows.append(row)
    if not rows:
        return pd.DataFrame(columns=ANOMALY_COLUMNS)
    return pd.DataFrame(rows, columns=ANOMALY_COLUMNS)


def get_anomaly_summary(report: Report) -> dict:
    """Counts of anomalies by series, direction and stream phase.

    Returns:
        Dict with viewer_count, chat_count, spikes, drops, by_phase,
        viewer_trend and chat_trend.
    """
    everything = report.viewer_anomalies + report.chat_anomalies
    phases = Counter(a.stream_phase for a in everything)
    spikes = sum(1 for a in everything if a.is_positive)
    return {
        "viewer_count": len(report.viewer_anomalies),
        "chat_count": len(report.chat_anomalies),
        "spikes": spikes,
        "drops": len(everything) - spikes,
        "by_phase": {phase: phases.get(phase, 0) for phase in PHASES},
        "viewer_trend": report.trend_stats.viewer_trend,
        "chat_trend": report.trend_stats.chat_trend,
    }
