"""CLI entry points: launch the dashboard or print a JSON report."""

import argparse
import json
import logging
import subprocess
import sys
from pathlib import Path

from streamsight.config import DetectionConfig
from streamsight.engine import detect
from streamsight.source import FrameSource, SourceError


def launch_dashboard():
    """Launch the StreamSight Streamlit dashboard."""
    app_path = Path(__file__).resolve().parent.parent / "app.py"

    if not app_path.exists():
        for candidate in [
            Path(sys.prefix) / "app.py",
            Path(__file__).resolve().parent / "app.py",
        ]:
            if candidate.exists():
                app_path = candidate
                break
        else:
            print(
                "Error: Could not find app.py. "
                "Run 'streamlit run app.py' from the project directory instead."
            )
            sys.exit(1)

    cmd = [sys.executable, "-m", "streamlit", "run", str(app_path)]
    try:
        subprocess.run(cmd, check=True)
    except KeyboardInterrupt:
        pass
    except FileNotFoundError:
        print("Error: Streamlit is not installed. Run: pip install streamlit")
        sys.exit(1)


def report_command(args) -> int:
    source = FrameSource.from_csv(args.stats, args.streams)
    try:
        report = detect(
            source,
            args.channel_id,
            stream_id=args.stream_id,
            start_time=args.start,
            end_time=args.end,
            z_threshold=args.threshold,
            config=DetectionConfig.from_env(),
        )
    except SourceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    json.dump(report.to_dict(), sys.stdout, indent=2)
    print()
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(prog="streamsight")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("dashboard", help="Launch the Streamlit dashboard (default)")

    report = sub.add_parser("report", help="Print an anomaly report for CSV data as JSON")
    report.add_argument("stats", help="CSV with channel_id, stream_id, timestamp, viewer_count, chat_rate")
    report.add_argument("--streams", help="CSV with stream_id, channel_id, started_at, ended_at")
    report.add_argument("--channel-id", type=int, required=True)
    report.add_argument("--stream-id", type=int)
    report.add_argument("--start", help="Window start (ISO-8601)")
    report.add_argument("--end", help="Window end (ISO-8601)")
    report.add_argument("--threshold", type=float, help="Modified Z-score threshold")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "report":
        sys.exit(report_command(args))
    launch_dashboard()


if __name__ == "__main__":
    main()
