"""Tests for sample sources and the stats API client."""

from unittest.mock import patch, MagicMock

import pandas as pd
import pytest

from streamsight.source import (
    FrameSource,
    HttpSource,
    SourceError,
    check_connection,
    query_stream_stats,
    query_streams,
    sessions_from_frame,
)


def _mock_response(payload, status_code: int = 200):
    """Create a mock stats API response."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    return resp


def _stats_records():
    return [
        {"stream_id": 3, "collected_at": "2024-01-01T18:01:00Z", "viewer_count": 120, "chat_rate_1min": 4},
        {"stream_id": 3, "collected_at": "2024-01-01T18:00:00Z", "viewer_count": 100, "chat_rate_1min": 2},
        {"stream_id": 3, "collected_at": "2024-01-01T18:02:00Z", "viewer_count": None, "chat_rate_1min": 0},
    ]


class TestQueryStreamStats:
    @patch("streamsight.source.requests.get")
    def test_parses_valid_response(self, mock_get):
        mock_get.return_value = _mock_response(_stats_records())

        df = query_stream_stats("http://localhost:8080", channel_id=1)

        assert list(df.columns) == ["stream_id", "timestamp", "viewer_count", "chat_rate"]
        assert len(df) == 3
        # sorted chronologically
        assert df["viewer_count"].iloc[0] == 100
        assert isinstance(df["timestamp"].iloc[0], pd.Timestamp)

    @patch("streamsight.source.requests.get")
    def test_empty_result_returns_empty_df(self, mock_get):
        mock_get.return_value = _mock_response([])

        df = query_stream_stats("http://localhost:8080", channel_id=1)
        assert len(df) == 0
        assert "timestamp" in df.columns
        assert "viewer_count" in df.columns

    @patch("streamsight.source.requests.get")
    def test_drops_unparseable_timestamps(self, mock_get):
        records = _stats_records()
        records[0]["collected_at"] = "yesterday-ish"
        mock_get.return_value = _mock_response(records)

        df = query_stream_stats("http://localhost:8080", channel_id=1)
        assert len(df) == 2

    @patch("streamsight.source.requests.get")
    def test_http_error_raises(self, mock_get):
        resp = _mock_response(None, status_code=500)
        resp.text = "Internal Server Error"
        mock_get.return_value = resp

        with pytest.raises(SourceError, match="HTTP 500"):
            query_stream_stats("http://localhost:8080", channel_id=1)

    @patch("streamsight.source.requests.get")
    def test_non_list_payload_raises(self, mock_get):
        mock_get.return_value = _mock_response({"error": "bad channel"})

        with pytest.raises(SourceError, match="list of records"):
            query_stream_stats("http://localhost:8080", channel_id=1)

    @patch("streamsight.source.requests.get")
    def test_invalid_json_raises(self, mock_get):
        resp = MagicMock()
        resp.status_code = 200
        resp.json.side_effect = ValueError("no json")
        mock_get.return_value = resp

        with pytest.raises(SourceError, match="invalid JSON"):
            query_stream_stats("http://localhost:8080", channel_id=1)

    @patch("streamsight.source.requests.get")
    def test_connection_error_raises(self, mock_get):
        import requests
        mock_get.side_effect = requests.ConnectionError("refused")

        with pytest.raises(SourceError, match="Cannot connect"):
            query_stream_stats("http://localhost:8080", channel_id=1)

    @patch("streamsight.source.requests.get")
    def test_timeout_raises(self, mock_get):
        import requests
        mock_get.side_effect = requests.Timeout("timed out")

        with pytest.raises(SourceError, match="timed out"):
            query_stream_stats("http://localhost:8080", channel_id=1)

    @patch("streamsight.source.requests.get")
    def test_passes_correct_params(self, mock_get):
        mock_get.return_value = _mock_response([])

        query_stream_stats(
            "http://dash:8080/",
            channel_id=4,
            stream_id=9,
            start_time="2024-01-01T00:00:00Z",
        )

        call_args = mock_get.call_args
        assert call_args[0][0] == "http://dash:8080/api/stream_stats"
        params = call_args[1]["params"]
        assert params["channel_id"] == 4
        assert params["stream_id"] == 9
        assert params["start_time"] == "2024-01-01T00:00:00+00:00"
        assert "end_time" not in params

    @patch("streamsight.source.requests.get")
    def test_bearer_token_sent_in_header(self, mock_get):
        mock_get.return_value = _mock_response([])

        query_stream_stats("http://dash:8080", 1, bearer_token="my-secret-token")

        call_args = mock_get.call_args
        assert call_args[1]["headers"]["Authorization"] == "Bearer my-secret-token"
        assert call_args[1]["auth"] is None

    @patch("streamsight.source.requests.get")
    def test_basic_auth_sent(self, mock_get):
        mock_get.return_value = _mock_response([])

        query_stream_stats("http://dash:8080", 1, basic_auth=("admin", "password123"))

        call_args = mock_get.call_args
        assert call_args[1]["auth"] == ("admin", "password123")
        assert call_args[1]["headers"] == {}


class TestQueryStreams:
    @patch("streamsight.source.requests.get")
    def test_builds_sessions(self, mock_get):
        mock_get.return_value = _mock_response([
            {"id": 2, "channel_id": 1, "started_at": "2024-01-02T18:00:00Z", "ended_at": None},
            {"id": 1, "channel_id": 1, "started_at": "2024-01-01T18:00:00Z",
             "ended_at": "2024-01-01T21:00:00Z"},
        ])

        sessions = query_streams("http://dash:8080", 1)

        assert [s.stream_id for s in sessions] == [1, 2]
        assert sessions[0].end == pd.Timestamp("2024-01-01T21:00:00Z")
        assert sessions[1].end is None
        assert mock_get.call_args[0][0] == "http://dash:8080/api/streams"


class TestHttpSource:
    @patch("streamsight.source.requests.get")
    def test_delegates_with_credentials(self, mock_get):
        mock_get.return_value = _mock_response([])
        source = HttpSource("http://dash:8080", timeout=7, bearer_token="tok")

        source.stream_stats(1)
        source.streams(1)

        for call in mock_get.call_args_list:
            assert call[1]["timeout"] == 7
            assert call[1]["headers"]["Authorization"] == "Bearer tok"


class TestFrameSource:
    def _source(self):
        stats = pd.DataFrame({
            "channel_id": [1, 1, 1, 2],
            "stream_id": [10, 10, 11, 20],
            "timestamp": [
                "2024-01-01T18:05:00Z",
                "2024-01-01T18:00:00Z",
                "2024-01-02T18:00:00Z",
                "2024-01-01T18:00:00Z",
            ],
            "viewer_count": [50, 40, 60, 5],
            "chat_rate": [1, 2, 3, 4],
        })
        streams = pd.DataFrame({
            "stream_id": [10, 11, 20],
            "channel_id": [1, 1, 2],
            "started_at": ["2024-01-01T18:00:00Z", "2024-01-02T18:00:00Z", "not a date"],
            "ended_at": ["2024-01-01T20:00:00Z", None, None],
        })
        return FrameSource(stats, streams)

    def test_filters_channel_and_sorts(self):
        df = self._source().stream_stats(1)
        assert df["viewer_count"].tolist() == [40, 50, 60]

    def test_filters_stream(self):
        df = self._source().stream_stats(1, stream_id=11)
        assert df["viewer_count"].tolist() == [60]

    def test_window_is_inclusive(self):
        df = self._source().stream_stats(
            1, start_time="2024-01-01T18:05:00Z", end_time="2024-01-02T18:00:00Z"
        )
        assert df["viewer_count"].tolist() == [50, 60]

    def test_unknown_channel(self):
        assert len(self._source().stream_stats(99)) == 0
        assert self._source().streams(99) == []

    def test_sessions(self):
        sessions = self._source().streams(1)
        assert [s.stream_id for s in sessions] == [10, 11]

    def test_unparseable_session_start_skipped(self):
        assert self._source().streams(2) == []

    def test_from_csv(self, tmp_path):
        stats_path = tmp_path / "stats.csv"
        self._source()._stats.to_csv(stats_path, index=False)
        source = FrameSource.from_csv(stats_path)
        assert len(source.stream_stats(1)) == 3
        assert source.streams(1) == []


class TestSessionsFromFrame:
    def test_empty(self):
        assert sessions_from_frame(pd.DataFrame()) == []


class TestCheckConnection:
    @patch("streamsight.source.requests.get")
    def test_successful_connection(self, mock_get):
        mock_get.return_value = _mock_response({"version": "1.4.0"})

        ok, msg = check_connection("http://localhost:8080")
        assert ok is True
        assert "1.4.0" in msg

    @patch("streamsight.source.requests.get")
    def test_connection_refused(self, mock_get):
        import requests
        mock_get.side_effect = requests.ConnectionError("refused")

        ok, msg = check_connection("http://localhost:8080")
        assert ok is False
        assert "Cannot connect" in msg

    @patch("streamsight.source.requests.get")
    def test_timeout(self, mock_get):
        import requests
        mock_get.side_effect = requests.Timeout()

        ok, msg = check_connection("http://localhost:8080")
        assert ok is False
        assert "timed out" in msg

    @patch("streamsight.source.requests.get")
    def test_401_unauthorized(self, mock_get):
        mock_get.return_value = _mock_response(None, status_code=401)

        ok, msg = check_connection("http://localhost:8080")
        assert ok is False
        assert "401" in msg

    @patch("streamsight.source.requests.get")
    def test_403_forbidden(self, mock_get):
        mock_get.return_value = _mock_response(None, status_code=403)

        ok, msg = check_connection("http://localhost:8080")
        assert ok is False
        assert "403" in msg
