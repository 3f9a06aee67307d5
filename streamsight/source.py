"""Suppliers of per-channel viewer and chat series.

A source answers two questions for the engine: the stats samples of a
channel (optionally one stream) in a time window, and the bounds of the
stream sessions those samples belong to.

Stats frames have the columns ``stream_id, timestamp, viewer_count,
chat_rate`` sorted by timestamp.
"""

import logging
from typing import Dict, List, Optional, Protocol, Tuple

import pandas as pd
import requests

from streamsight.models import StreamBounds, to_utc

log = logging.getLogger(__name__)

STATS_COLUMNS = ["stream_id", "timestamp", "viewer_count", "chat_rate"]
STREAM_COLUMNS = ["stream_id", "channel_id", "started_at", "ended_at"]


class SourceError(Exception):
    """Raised when a sample source cannot supply data."""


class SampleSource(Protocol):
    def stream_stats(
        self,
        channel_id: int,
        stream_id: Optional[int] = None,
        start_time=None,
        end_time=None,
    ) -> pd.DataFrame:
        ...

    def streams(self, channel_id: int, stream_id: Optional[int] = None) -> List[StreamBounds]:
        ...


def _parse_time(value) -> pd.Series:
    return pd.to_datetime(value, utc=True, errors="coerce", format="ISO8601")


def _window(df: pd.DataFrame, start_time=None, end_time=None) -> pd.DataFrame:
    """Rows with a parseable timestamp inside [start_time, end_time], sorted."""
    stamps = _parse_time(df["timestamp"])
    keep = stamps.notna()
    if start_time is not None:
        keep &= stamps >= to_utc(start_time)
    if end_time is not None:
        keep &= stamps <= to_utc(end_time)
    result = df[keep].copy()
    result["timestamp"] = stamps[keep]
    return result.sort_values("timestamp", kind="stable").reset_index(drop=True)


def sessions_from_frame(df: pd.DataFrame) -> List[StreamBounds]:
    """Build session bounds, skipping rows whose start cannot be parsed."""
    if len(df) == 0:
        return []
    starts = _parse_time(df["started_at"])
    ends = _parse_time(df["ended_at"])
    sessions = []
    for stream_id, start, end in zip(df["stream_id"], starts, ends):
        if pd.isna(start):
            log.debug("Skipping stream %s with invalid start time", stream_id)
            continue
        sessions.append(StreamBounds(
            start=start,
            end=None if pd.isna(end) else end,
            stream_id=stream_id,
        ))
    return sorted(sessions, key=lambda s: s.start)


class FrameSource:
    """Serves samples from in-memory DataFrames (or loaded CSV files).

    Args:
        stats: Samples with channel_id, stream_id, timestamp,
            viewer_count and chat_rate columns.
        streams: Optional sessions with stream_id, channel_id, started_at
            and ended_at columns.
    """

    def __init__(self, stats: pd.DataFrame, streams: Optional[pd.DataFrame] = None):
        self._stats = stats
        self._streams = streams if streams is not None else pd.DataFrame(columns=STREAM_COLUMNS)

    @classmethod
    def from_csv(cls, stats_path, streams_path=None) -> "FrameSource":
        stats = pd.read_csv(stats_path)
        streams = pd.read_csv(streams_path) if streams_path is not None else None
        return cls(stats, streams)

    def stream_stats(self, channel_id, stream_id=None, start_time=None, end_time=None):
        df = self._stats
        if "channel_id" in df.columns:
            df = df[df["channel_id"] == channel_id]
        if stream_id is not None:
            df = df[df["stream_id"] == stream_id]
        if len(df) == 0:
            return pd.DataFrame(columns=STATS_COLUMNS)
        return _window(df, start_time, end_time).reindex(columns=STATS_COLUMNS)

    def streams(self, channel_id, stream_id=None):
        df = self._streams
        if len(df) == 0:
            return []
        df = df[df["channel_id"] == channel_id]
        if stream_id is not None:
            df = df[df["stream_id"] == stream_id]
        return sessions_from_frame(df)


def _build_auth(
    bearer_token: Optional[str] = None,
    basic_auth: Optional[Tuple[str, str]] = None,
) -> Tuple[Dict, Optional[tuple]]:
    """Build auth headers and auth tuple for requests."""
    headers = {}
    auth = None
    if bearer_token:
        headers["Authorization"] = f"Bearer {bearer_token}"
    elif basic_auth:
        auth = basic_auth
    return headers, auth


def _get_json(url: str, params: dict, timeout: int, headers: dict, auth):
    try:
        resp = requests.get(url, params=params, headers=headers, auth=auth, timeout=timeout)
    except requests.ConnectionError:
        raise SourceError(f"Cannot connect to {url}")
    except requests.Timeout:
        raise SourceError(f"Request timed out after {timeout}s")

    if resp.status_code != 200:
        raise SourceError(f"Stats API returned HTTP {resp.status_code}: {resp.text[:200]}")

    try:
        data = resp.json()
    except ValueError:
        raise SourceError(f"Stats API returned invalid JSON from {url}")
    if not isinstance(data, list):
        raise SourceError(f"Expected a list of records from {url}")
    return data


def _time_param(value) -> Optional[str]:
    return None if value is None else to_utc(value).isoformat()


def query_stream_stats(
    url: str,
    channel_id: int,
    stream_id: Optional[int] = None,
    start_time=None,
    end_time=None,
    timeout: int = 30,
    bearer_token: Optional[str] = None,
    basic_auth: Optional[Tuple[str, str]] = None,
) -> pd.DataFrame:
    """Query the dashboard's stats API and return a stats frame.

    Args:
        url: Base URL of the dashboard API (e.g., http://localhost:8080).
        channel_id: Channel whose samples to fetch.
        stream_id: Optional single stream session.
        start_time: Optional inclusive window start.
        end_time: Optional inclusive window end.
        timeout: HTTP request timeout in seconds.
        bearer_token: Optional bearer token for authentication.
        basic_auth: Optional (username, password) tuple for basic auth.

    Returns:
        DataFrame with columns: stream_id, timestamp, viewer_count, chat_rate

    Raises:
        SourceError: If the request fails or returns unexpected data.
    """
    url = url.rstrip("/")
    params = {
        "channel_id": channel_id,
        "stream_id": stream_id,
        "start_time": _time_param(start_time),
        "end_time": _time_param(end_time),
    }
    params = {k: v for k, v in params.items() if v is not None}
    headers, auth = _build_auth(bearer_token, basic_auth)

    records = _get_json(f"{url}/api/stream_stats", params, timeout, headers, auth)
    if not records:
        return pd.DataFrame(columns=STATS_COLUMNS)

    rows = []
    for record in records:
        rows.append({
            "stream_id": record.get("stream_id"),
            "timestamp": record.get("collected_at"),
            "viewer_count": record.get("viewer_count"),
            "chat_rate": record.get("chat_rate_1min"),
        })
    return _window(pd.DataFrame(rows, columns=STATS_COLUMNS))


def query_streams(
    url: str,
    channel_id: int,
    stream_id: Optional[int] = None,
    timeout: int = 30,
    bearer_token: Optional[str] = None,
    basic_auth: Optional[Tuple[str, str]] = None,
) -> List[StreamBounds]:
    """Query the stream sessions of a channel.

    Raises:
        SourceError: If the request fails or returns unexpected data.
    """
    url = url.rstrip("/")
    params = {"channel_id": channel_id}
    if stream_id is not None:
        params["stream_id"] = stream_id
    headers, auth = _build_auth(bearer_token, basic_auth)

    records = _get_json(f"{url}/api/streams", params, timeout, headers, auth)
    df = pd.DataFrame(
        [
            {
                "stream_id": r.get("id"),
                "channel_id": r.get("channel_id"),
                "started_at": r.get("started_at"),
                "ended_at": r.get("ended_at"),
            }
            for r in records
        ],
        columns=STREAM_COLUMNS,
    )
    return sessions_from_frame(df)


class HttpSource:
    """Sample source backed by the dashboard's HTTP API."""

    def __init__(
        self,
        url: str,
        timeout: int = 30,
        bearer_token: Optional[str] = None,
        basic_auth: Optional[Tuple[str, str]] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.bearer_token = bearer_token
        self.basic_auth = basic_auth

    def stream_stats(self, channel_id, stream_id=None, start_time=None, end_time=None):
        return query_stream_stats(
            self.url,
            channel_id,
            stream_id=stream_id,
            start_time=start_time,
            end_time=end_time,
            timeout=self.timeout,
            bearer_token=self.bearer_token,
            basic_auth=self.basic_auth,
        )

    def streams(self, channel_id, stream_id=None):
        return query_streams(
            self.url,
            channel_id,
            stream_id=stream_id,
            timeout=self.timeout,
            bearer_token=self.bearer_token,
            basic_auth=self.basic_auth,
        )


def check_connection(
    url: str,
    timeout: int = 5,
    bearer_token: Optional[str] = None,
    basic_auth: Optional[Tuple[str, str]] = None,
) -> Tuple[bool, str]:
    """Check if the stats API is reachable.

    Returns:
        Tuple of (is_connected, message).
    """
    url = url.rstrip("/")
    headers, auth = _build_auth(bearer_token, basic_auth)
    try:
        resp = requests.get(
            f"{url}/api/status",
            headers=headers,
            auth=auth,
            timeout=timeout,
        )
        if resp.status_code == 401:
            return False, "Authentication failed (401 Unauthorized)"
        if resp.status_code == 403:
            return False, "Access denied (403 Forbidden)"
        if resp.status_code == 200:
            version = resp.json().get("version", "unknown")
            return True, f"Connected to stats API v{version}"
        return False, f"Unexpected status code: {resp.status_code}"
    except requests.ConnectionError:
        return False, f"Cannot connect to {url}"
    except requests.Timeout:
        return False, "Connection timed out"
    except ValueError as e:
        return False, f"Invalid response: {e}"
