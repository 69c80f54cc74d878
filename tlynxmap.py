#!/usr/bin/env python3
"""
tlynxmap.py — Render a map of all journeys from a travelynx raw export.

Stages:
  1. Load     — read the exported JSON and the optional exclude list
  2. Process  — filter, decode and trim every journey (journeys.py)
  3. Render   — draw paths and station markers into a PNG (render_map.py)

Usage:
    python3 tlynxmap.py --data data.json --output map.png
    python3 tlynxmap.py --start 2024-01-01 --end 2024-12-31
    python3 tlynxmap.py --exclude excluded.txt --dark
    python3 tlynxmap.py -h                         # show this help

The exclude file holds one station name substring per line; any journey
starting or ending at a station whose name contains one is left out.
"""

import argparse
import json
import logging
import sys
from datetime import date, datetime
from pathlib import Path

from config import DATA_FILE, OUTPUT_FILE, WIDTH, HEIGHT, WORKERS
from journeys import (
    ConfigError, DataFileError, FilterOptions, Journey, TlynxError,
    build_render_requests, process_journeys,
)
from render_map import render_map
from themes import Theme

logger = logging.getLogger(__name__)


# ── Stage 1: Load ────────────────────────────────────────────────────

def parse_date_arg(s: str | None) -> date | None:
    """Parse a YYYY-MM-DD option; empty means no bound."""
    if not s:
        return None
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError as exc:
        raise ConfigError(f"error parsing date {s!r}: {exc}") from exc


def read_exclude_file(path: str | None) -> list[str]:
    if not path:
        return []
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"error reading stations exclude file: {exc}") from exc
    return [line.strip() for line in text.splitlines() if line.strip()]


def load_journeys(path: str) -> list[Journey]:
    """Read a travelynx raw export and return its journeys in file order."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise DataFileError(f"error reading data file: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise DataFileError(f"error parsing data file: {exc}") from exc

    if not isinstance(data, dict):
        raise DataFileError("error parsing data file: top level is not an object")
    # The key is matched case-insensitively ("journeys", "Journeys", ...).
    records = next((v for k, v in data.items() if k.lower() == "journeys"), None)
    if records is None:
        records = []
    if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
        raise DataFileError("error parsing data file: journeys is not a list of objects")

    journeys = [Journey.from_record(r) for r in records]
    logger.info(f"Loaded {len(journeys)} journeys from {path}")
    return journeys


# ── Main ─────────────────────────────────────────────────────────────

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Render a map of travelynx journeys",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    p.add_argument("--width", type=int, default=WIDTH,
                   help="Width of the generated image")
    p.add_argument("--height", type=int, default=HEIGHT,
                   help="Height of the generated image")
    p.add_argument("--dark", action="store_true",
                   help="Render using a dark theme")
    p.add_argument("--hide-attribution", action="store_true",
                   help="Hide the attribution string")
    p.add_argument("--start", default="", metavar="YYYY-MM-DD",
                   help="Include journeys from this date (optional)")
    p.add_argument("--end", default="", metavar="YYYY-MM-DD",
                   help="Include journeys until this date (optional)")
    p.add_argument("--exclude", default="", metavar="FILE",
                   help="File with station name substrings to exclude (optional)")
    p.add_argument("--data", default=DATA_FILE,
                   help="Travelynx raw data file")
    p.add_argument("--output", default=OUTPUT_FILE,
                   help="Output file for the rendered PNG")
    p.add_argument("--workers", type=int, default=WORKERS,
                   help="Threads used to process journeys")
    p.add_argument("-v", "--verbose", action="store_true",
                   help="Log per-journey details")
    return p.parse_args(argv)


def build_filter_options(args: argparse.Namespace) -> FilterOptions:
    return FilterOptions(
        start_date=parse_date_arg(args.start),
        end_date=parse_date_arg(args.end),
        excluded_stations=read_exclude_file(args.exclude),
    )


def run(args: argparse.Namespace) -> int:
    """Run the whole pipeline; returns the process exit status."""
    try:
        options = build_filter_options(args)
        journeys = load_journeys(args.data)
        processed = process_journeys(journeys, options, workers=args.workers)
        requests = build_render_requests(processed)
        render_map(
            requests,
            args.output,
            Theme.from_flag(args.dark),
            args.width,
            args.height,
            hide_attribution=args.hide_attribution,
        )
    except TlynxError as exc:
        logger.error(str(exc))
        return 2
    return 0


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()],
    )
    sys.exit(run(args))


if __name__ == "__main__":
    main()
