"""Plotly chart builders for stream series and detected anomalies."""

from typing import Optional, Sequence

import pandas as pd
import plotly.graph_objects as go


SERIES_LABELS = {
    "viewer": "Viewers",
    "chat": "Chat Messages / min",
}

SPIKE_COLOR = "#10b981"
DROP_COLOR = "#ef4444"


def plot_series_with_anomalies(
    df: pd.DataFrame,
    anomalies: Sequence,
    series: str = "viewer",
    average: Optional[float] = None,
) -> go.Figure:
    """Create an interactive Plotly chart with anomalies highlighted.

    Args:
        df: DataFrame with timestamp and value columns.
        anomalies: AnomalyRecord objects for the same series.
        series: "viewer" or "chat", used for labels.
        average: Optional reference line (e.g., the series average).

    Returns:
        Plotly Figure object.
    """
    label = SERIES_LABELS.get(series, series)

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=df["timestamp"],
        y=df["value"],
        mode="lines",
        name=label,
        line=dict(color="#3b82f6", width=1.5, shape="hv"),
        hovertemplate="%{y:,.0f}<extra></extra>",
    ))

    if average is not None:
        fig.add_hline(y=average, line_dash="dot", line_color="#6b7280",
                      annotation_text="Average", annotation_position="top left")

    for positive, name, color in ((True, "Spike", SPIKE_COLOR), (False, "Drop", DROP_COLOR)):
        subset = [a for a in anomalies if a.is_positive == positive]
        if not subset:
            continue
        fig.add_trace(go.Scatter(
            x=[a.timestamp for a in subset],
            y=[a.value for a in subset],
            mode="markers",
            name=f"{name} ({len(subset)})",
            marker=dict(color=color, size=9, symbol="circle"),
            customdata=[[a.previous_value, a.modified_zscore, a.stream_phase] for a in subset],
            hovertemplate=(
                "%{customdata[0]:,.0f} → %{y:,.0f}<br>"
                "score %{customdata[1]:.2f} (%{customdata[2]})"
                f"<extra>{name}</extra>"
            ),
        ))

    fig.update_layout(
        title=f"{label} - Anomaly Detection",
        xaxis_title="Time",
        yaxis_title=label,
        template="plotly_white",
        height=420,
        margin=dict(l=60, r=30, t=50, b=50),
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1),
        hovermode="closest",
    )

    return fig
