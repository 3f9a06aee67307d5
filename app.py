"""StreamSight - Live Stream Anomaly Dashboard."""

import logging
from datetime import datetime, timedelta, timezone

import pandas as pd
import streamlit as st
from streamlit_autorefresh import st_autorefresh

from streamsight.charts import plot_series_with_anomalies
from streamsight.config import DetectionConfig
from streamsight.engine import detect
from streamsight.report import anomalies_to_frame, get_anomaly_summary
from streamsight.simulator import simulated_source
from streamsight.source import FrameSource, HttpSource, SourceError, check_connection

log = logging.getLogger(__name__)

TREND_ICONS = {"increasing": "📈", "decreasing": "📉", "stable": "➡️"}

st.set_page_config(page_title="StreamSight", page_icon="📺", layout="wide")

st.title("📺 StreamSight")
st.caption("Viewer and chat anomaly detection for live streams")

defaults = DetectionConfig.from_env()

# --- Sidebar controls ---
with st.sidebar:
    st.header("Configuration")

    data_source = st.radio(
        "Data Source",
        ["simulated", "http", "csv_upload"],
        format_func=lambda x: {
            "simulated": "Simulated Streams",
            "http": "Stats API (Live)",
            "csv_upload": "Upload CSV",
        }[x],
    )

    st.divider()

    if data_source != "http":
        st.session_state.pop("api_connected", None)

    threshold = st.slider("Modified Z-Score Threshold", 1.0, 6.0, defaults.z_threshold, 0.1,
                          help="Changes scoring at least this far from the median are flagged")

    channel_id = st.number_input("Channel ID", min_value=1, value=1)
    stream_id = st.number_input("Stream ID (0 = all streams)", min_value=0, value=0)
    window_days = st.selectbox("Time Range", [1, 7, 30, 365], index=3,
                               format_func=lambda x: f"Last {x} days")

    if data_source == "simulated":
        st.divider()
        sessions = st.selectbox("Sessions", [1, 2, 3, 5], index=0)
        seed = st.number_input("Random Seed", min_value=0, max_value=9999, value=42,
                               help="Set seed for reproducible data")
        regenerate = st.button("🔄 Regenerate Data", use_container_width=True)

    if data_source == "http":
        st.divider()
        st.subheader("Stats API")

        api_url = st.text_input("API URL", value="http://localhost:8080",
                                help="Base URL of the dashboard stats API")

        refresh_interval = st.selectbox(
            "Auto-Refresh",
            [0, 30, 60, 300],
            index=0,
            format_func=lambda x: {0: "Off", 30: "Every 30s", 60: "Every 1m", 300: "Every 5m"}[x],
        )

        api_token = st.text_input("Bearer Token", type="password",
                                  help="Leave empty if the API needs no auth")

        if st.button("🔌 Test Connection", use_container_width=True):
            with st.spinner("Connecting..."):
                ok, msg = check_connection(api_url, bearer_token=api_token or None)
            if ok:
                st.success(msg)
            else:
                st.error(msg)

        if st.button("▶ Connect & Analyze", use_container_width=True, type="primary"):
            st.session_state["api_connected"] = True

if data_source == "http" and st.session_state.get("api_connected") and refresh_interval > 0:
    st_autorefresh(interval=refresh_interval * 1000, key="api_refresh")

# --- Build the source ---
source = None

if data_source == "http":
    if not st.session_state.get("api_connected"):
        st.info("Configure the stats API in the sidebar, then click **Connect & Analyze** to start.")
        st.stop()
    source = HttpSource(api_url, bearer_token=api_token or None)

elif data_source == "csv_upload":
    st.subheader("Upload Your Stream Stats")
    st.markdown("""
    Upload a CSV file of polled stream stats. Required columns:
    - **`channel_id`**, **`stream_id`** — integers
    - **`timestamp`** — datetime (e.g., `2024-01-15 20:30:00`)
    - **`viewer_count`**, **`chat_rate`** — numeric readings
    """)
    st.code(
        "channel_id,stream_id,timestamp,viewer_count,chat_rate\n"
        "1,1,2024-01-15 20:00:00,412,18\n1,1,2024-01-15 20:01:00,412,22",
        language="csv",
    )
    uploaded_file = st.file_uploader("Choose a CSV file", type=["csv"])
    if uploaded_file is not None:
        try:
            source = FrameSource(pd.read_csv(uploaded_file))
        except Exception as e:
            st.error(f"Failed to parse CSV: {e}")

else:
    cache_key = f"sim_{sessions}_{seed}"
    if regenerate or cache_key not in st.session_state:
        st.session_state[cache_key] = simulated_source(sessions=sessions, seed=seed)
    source = st.session_state[cache_key]

if source is None:
    st.info("Upload a CSV file to get started, or switch to another data source in the sidebar.")
    st.stop()

end_time = datetime.now(timezone.utc)
start_time = end_time - timedelta(days=window_days)
if data_source == "simulated":
    start_time = end_time = None

try:
    with st.spinner("Analyzing..."):
        report = detect(
            source,
            int(channel_id),
            stream_id=int(stream_id) or None,
            start_time=start_time,
            end_time=end_time,
            z_threshold=threshold,
            config=defaults,
        )
        stats = source.stream_stats(int(channel_id), int(stream_id) or None, start_time, end_time)
except SourceError as e:
    log.warning("Stats source failed: %s", e)
    st.error(f"Stats API error: {e}")
    st.stop()

if len(stats) == 0:
    st.warning("No samples for this channel in the selected range.")
    st.stop()

summary = get_anomaly_summary(report)
trend = report.trend_stats

# --- Trend cards ---
col1, col2 = st.columns(2)
with col1:
    st.subheader(f"Viewer Trend {TREND_ICONS[trend.viewer_trend]} {trend.viewer_trend}")
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Median", f"{trend.viewer_median:,.0f}")
    c2.metric("MAD", f"{trend.viewer_mad:,.0f}")
    c3.metric("Average", f"{trend.viewer_avg:,.0f}")
    c4.metric("Anomalies", summary["viewer_count"])
with col2:
    st.subheader(f"Chat Trend {TREND_ICONS[trend.chat_trend]} {trend.chat_trend}")
    c1, c2, c3 = st.columns(3)
    c1.metric("Average", f"{trend.chat_avg:,.1f}")
    c2.metric("Std Dev", f"{trend.chat_std_dev:,.1f}")
    c3.metric("Anomalies", summary["chat_count"])

# --- Charts ---
viewer_df = stats.rename(columns={"viewer_count": "value"})
viewer_df = viewer_df[viewer_df["value"] > 0]
st.plotly_chart(
    plot_series_with_anomalies(viewer_df, report.viewer_anomalies, "viewer", trend.viewer_avg),
    use_container_width=True,
)
chat_df = stats.rename(columns={"chat_rate": "value"})
st.plotly_chart(
    plot_series_with_anomalies(chat_df, report.chat_anomalies, "chat", trend.chat_avg),
    use_container_width=True,
)

# --- Anomaly table ---
anomaly_df = anomalies_to_frame(report)
with st.expander(f"View Anomalies ({len(anomaly_df)})"):
    if len(anomaly_df) > 0:
        st.dataframe(anomaly_df, use_container_width=True)
        st.download_button(
            "⬇ Download CSV",
            anomaly_df.to_csv(index=False),
            file_name=f"anomalies_channel_{int(channel_id)}.csv",
            mime="text/csv",
        )
    else:
        st.info("No anomalies detected with current settings. Try lowering the threshold.")
