"""StreamSight - Viewer and chat anomaly detection for live streams."""

__version__ = "0.1.0"

from streamsight.config import DetectionConfig
from streamsight.engine import analyze, detect
from streamsight.models import AnomalyRecord, Report, Sample, StreamBounds, TrendStats
from streamsight.report import anomalies_to_frame, get_anomaly_summary
from streamsight.simulator import generate_stream, simulated_source
from streamsight.charts import plot_series_with_anomalies
from streamsight.source import FrameSource, HttpSource, SourceError, check_connection

__all__ = [
    "__version__",
    "DetectionConfig",
    "analyze",
    "detect",
    "AnomalyRecord",
    "Report",
    "Sample",
    "StreamBounds",
    "TrendStats",
    "anomalies_to_frame",
    "get_anomaly_summary",
    "generate_stream",
    "simulated_source",
    "plot_series_with_anomalies",
    "FrameSource",
    "HttpSource",
    "SourceError",
    "check_connection",
]
