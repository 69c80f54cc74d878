"""
journeys.py — Travelynx journey normalization pipeline.

Stages (per journey, journeys are independent):
  1. Filter   — drop journeys touching an excluded station name
  2. Times    — parse the raw real departure / arrival timestamps
  3. Window   — drop journeys outside the configured date window
  4. Decode   — turn the polyline or route field into waypoints
  5. Trim     — keep only the stretch between boarding and alighting
  6. Classify — exact (traced polyline) or beeline (stop list)

build_render_requests() then turns the processed journeys into path and
station-marker requests for render_map.py, in input order.

Importable usage:
    from journeys import Journey, FilterOptions, process_journeys
    processed = process_journeys(journeys, FilterOptions())
    requests = build_render_requests(processed)
"""

import enum
import json
import logging
import math
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone

logger = logging.getLogger(__name__)


# ── Errors ───────────────────────────────────────────────────────────

class TlynxError(Exception):
    """Base class for every error that aborts a tlynxmap run."""


class ConfigError(TlynxError):
    pass


class DataFileError(TlynxError):
    pass


class TimeParseError(TlynxError):
    """A raw departure/arrival timestamp is not numeric."""


class DecodeError(TlynxError):
    """A polyline/route payload or a station code has an unexpected shape."""


class RenderError(TlynxError):
    pass


# ── Data model ───────────────────────────────────────────────────────

class TrajectoryStyle(enum.Enum):
    EXACT = "exact"
    BEELINE = "beeline"


@dataclass(frozen=True)
class Waypoint:
    lat: float
    lon: float
    eva: int | None = None  # most polyline points carry no station code


@dataclass(frozen=True)
class Journey:
    """One recorded trip as found in a travelynx raw export."""
    dep_name: str = ""
    dep_lat: float = 0.0
    dep_lon: float = 0.0
    dep_eva: int = 0

    arr_name: str = ""
    arr_lat: float = 0.0
    arr_lon: float = 0.0
    arr_eva: int = 0

    real_dep_ts: str | float | None = None
    real_arr_ts: str | float | None = None

    # Raw geometry: JSON text (as exported) or an already decoded list.
    polyline: str | list | None = None
    route: str | list | None = None

    @property
    def exact(self) -> bool:
        return bool(self.polyline)

    @property
    def label(self) -> str:
        return f"journey from {self.dep_name} to {self.arr_name}"

    @classmethod
    def from_record(cls, record: dict) -> "Journey":
        # Keys match case-insensitively ("dep_name", "Dep_Name", ...).
        record = {str(k).lower(): v for k, v in record.items()}
        dep_name = record.get("dep_name") or ""
        arr_name = record.get("arr_name") or ""
        if not isinstance(dep_name, str) or not isinstance(arr_name, str):
            raise DataFileError(
                f"journey from {dep_name!r} to {arr_name!r}: station names must be strings"
            )
        partial = cls(dep_name=dep_name, arr_name=arr_name)
        try:
            dep_lat = float(record.get("dep_lat") or 0.0)
            dep_lon = float(record.get("dep_lon") or 0.0)
            arr_lat = float(record.get("arr_lat") or 0.0)
            arr_lon = float(record.get("arr_lon") or 0.0)
        except (TypeError, ValueError) as exc:
            raise DecodeError(f"{partial.label}: invalid station coordinates: {exc}") from exc

        return cls(
            dep_name=partial.dep_name,
            dep_lat=dep_lat,
            dep_lon=dep_lon,
            dep_eva=parse_station_code(record.get("dep_eva") or 0, partial, "dep_eva"),
            arr_name=partial.arr_name,
            arr_lat=arr_lat,
            arr_lon=arr_lon,
            arr_eva=parse_station_code(record.get("arr_eva") or 0, partial, "arr_eva"),
            real_dep_ts=record.get("real_dep_ts"),
            real_arr_ts=record.get("real_arr_ts"),
            polyline=record.get("polyline"),
            route=record.get("route"),
        )


@dataclass
class FilterOptions:
    start_date: date | None = None
    end_date: date | None = None
    excluded_stations: list[str] = field(default_factory=list)


@dataclass
class ProcessedJourney:
    """Everything the pipeline derived for one journey.

    The Journey itself is never mutated; the exclusion decision and the
    decoded geometry live here instead.
    """
    journey: Journey
    excluded: bool = False
    dep_time: datetime | None = None
    arr_time: datetime | None = None
    waypoints: list[Waypoint] = field(default_factory=list)
    segment: list[Waypoint] = field(default_factory=list)
    style: TrajectoryStyle = TrajectoryStyle.BEELINE


@dataclass(frozen=True)
class PathRequest:
    coordinates: list[tuple[float, float]]  # (lat, lon)
    style: TrajectoryStyle


@dataclass(frozen=True)
class MarkerRequest:
    lat: float
    lon: float


@dataclass
class RenderRequests:
    paths: list[PathRequest] = field(default_factory=list)
    markers: list[MarkerRequest] = field(default_factory=list)


# ── Stage 4: Geometry decoding ───────────────────────────────────────

_INT_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(r"[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?")


def parse_station_code(value, journey: Journey, where: str) -> int:
    """Resolve an EVA code that arrives either as decimal text or as a number."""
    if isinstance(value, bool):
        raise DecodeError(f"{journey.label}: eva in {where} has unexpected type: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise DecodeError(f"{journey.label}: eva in {where} is not finite: {value!r}")
        return int(value)
    if isinstance(value, str):
        if not _INT_RE.fullmatch(value):
            raise DecodeError(f"{journey.label}: error parsing string eva in {where}: {value!r}")
        return int(value)
    raise DecodeError(f"{journey.label}: eva in {where} has unexpected type: {value!r}")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _load_geometry(raw, journey: Journey, what: str) -> list:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise DecodeError(f"{journey.label}: error parsing {what}: {exc}") from exc
    if not isinstance(raw, list):
        raise DecodeError(f"{journey.label}: {what} is not a list: {type(raw).__name__}")
    return raw


def _decode_polyline(raw, journey: Journey) -> list[Waypoint]:
    points = []
    for entry in _load_geometry(raw, journey, "polyline"):
        # [lon, lat] or [lon, lat, eva] — longitude comes first
        if not isinstance(entry, list) or len(entry) < 2:
            raise DecodeError(f"{journey.label}: malformed polyline point: {entry!r}")
        lon, lat = entry[0], entry[1]
        if not (_is_number(lat) and _is_number(lon)):
            raise DecodeError(f"{journey.label}: non-numeric polyline coordinates: {entry!r}")
        eva = None
        if len(entry) > 2:
            eva = parse_station_code(entry[2], journey, "polyline")
        points.append(Waypoint(float(lat), float(lon), eva))
    return points


def _decode_route(raw, journey: Journey) -> list[Waypoint]:
    points = []
    for entry in _load_geometry(raw, journey, "route"):
        # [ordinal, eva, {"lat": .., "lon": ..}]
        if not isinstance(entry, list) or len(entry) < 3 or not isinstance(entry[2], dict):
            raise DecodeError(f"{journey.label}: malformed route entry: {entry!r}")
        details = entry[2]
        lat, lon = details.get("lat"), details.get("lon")
        if not (_is_number(lat) and _is_number(lon)):
            raise DecodeError(f"{journey.label}: non-numeric route coordinates: {details!r}")
        eva = parse_station_code(entry[1], journey, "route")
        points.append(Waypoint(float(lat), float(lon), eva))
    return points


def decode_geometry(journey: Journey) -> list[Waypoint]:
    """Decode the polyline field if present, otherwise the route field."""
    if journey.polyline:
        return _decode_polyline(journey.polyline, journey)
    if journey.route:
        return _decode_route(journey.route, journey)
    raise DecodeError(f"{journey.label}: neither polyline nor route present")


# ── Stages 1–3: Filtering ────────────────────────────────────────────

def _parse_ts(raw, journey: Journey, what: str) -> datetime:
    if isinstance(raw, bool) or raw is None:
        raise TimeParseError(f"{journey.label}: error parsing real {what} time: {raw!r}")
    if isinstance(raw, str) and not _FLOAT_RE.fullmatch(raw):
        raise TimeParseError(f"{journey.label}: error parsing real {what} time: {raw!r}")
    try:
        seconds = int(float(raw))
    except (TypeError, ValueError, OverflowError) as exc:
        raise TimeParseError(f"{journey.label}: error parsing real {what} time: {raw!r}") from exc
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise TimeParseError(f"{journey.label}: real {what} time out of range: {raw!r}") from exc


def parse_timestamps(journey: Journey) -> tuple[datetime, datetime]:
    """Return (departure, arrival) as aware UTC datetimes, whole seconds."""
    return (
        _parse_ts(journey.real_dep_ts, journey, "dep."),
        _parse_ts(journey.real_arr_ts, journey, "arr."),
    )


def date_to_instant(d: date) -> datetime:
    """Midnight UTC at the start of a calendar date."""
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def matches_excluded_station(journey: Journey, excluded_stations: list[str]) -> str | None:
    """Return the first exclusion substring found in either station name."""
    for s in excluded_stations:
        if s in journey.arr_name or s in journey.dep_name:
            return s
    return None


def is_excluded(journey: Journey, dep_time: datetime | None, arr_time: datetime | None,
                options: FilterOptions) -> bool:
    """Pure exclusion decision for one journey.

    Times may be None only when they were never parsed, in which case the
    date predicates cannot fire.
    """
    if matches_excluded_station(journey, options.excluded_stations) is not None:
        return True
    excluded = False
    if options.start_date is not None and arr_time is not None:
        if arr_time < date_to_instant(options.start_date):
            excluded = True
    if options.end_date is not None and dep_time is not None:
        if dep_time > date_to_instant(options.end_date):
            excluded = True
    return excluded


# ── Stage 5: Boarding segment ────────────────────────────────────────

def extract_boarding_segment(waypoints: list[Waypoint], dep_eva: int, arr_eva: int) -> list[Waypoint]:
    """Keep the waypoints from the departure stop up to the arrival stop.

    Nothing is kept before a waypoint carrying dep_eva; if none does, the
    result is empty. The first arrival match after boarding ends the
    segment; without one the segment runs to the end.
    """
    segment = []
    boarded = False
    for point in waypoints:
        if boarded or point.eva == dep_eva:
            boarded = True
            segment.append(point)
            if point.eva == arr_eva:
                break
    return segment


# ── Stage 6: Classification ──────────────────────────────────────────

def classify(journey: Journey) -> TrajectoryStyle:
    return TrajectoryStyle.EXACT if journey.exact else TrajectoryStyle.BEELINE


# ── Pipeline ─────────────────────────────────────────────────────────

def process_journey(journey: Journey, options: FilterOptions) -> ProcessedJourney:
    station = matches_excluded_station(journey, options.excluded_stations)
    if station is not None:
        # Station-excluded journeys are neither timed nor decoded.
        logger.debug(f"{journey.label}: excluded by station filter {station!r}")
        return ProcessedJourney(journey=journey, excluded=True, style=classify(journey))

    dep_time, arr_time = parse_timestamps(journey)
    excluded = is_excluded(journey, dep_time, arr_time, options)
    if excluded:
        logger.debug(f"{journey.label}: outside date window")

    waypoints = decode_geometry(journey)
    segment = extract_boarding_segment(waypoints, journey.dep_eva, journey.arr_eva)
    if not segment:
        logger.debug(f"{journey.label}: departure eva {journey.dep_eva} not on trajectory")

    return ProcessedJourney(
        journey=journey,
        excluded=excluded,
        dep_time=dep_time,
        arr_time=arr_time,
        waypoints=waypoints,
        segment=segment,
        style=classify(journey),
    )


def process_journeys(journeys: list[Journey], options: FilterOptions,
                     workers: int = 1) -> list[ProcessedJourney]:
    """Run every journey through the pipeline, keeping input order.

    Any TimeParseError or DecodeError aborts the whole batch.
    """
    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="journey_") as pool:
            processed = list(pool.map(lambda j: process_journey(j, options), journeys))
    else:
        processed = [process_journey(j, options) for j in journeys]

    excluded = sum(1 for p in processed if p.excluded)
    exact = sum(1 for p in processed if not p.excluded and p.style is TrajectoryStyle.EXACT)
    logger.info(
        f"Processed {len(processed)} journeys: {excluded} excluded, "
        f"{exact} exact, {len(processed) - excluded - exact} beeline"
    )
    return processed


def build_render_requests(processed: list[ProcessedJourney]) -> RenderRequests:
    """One path and two station markers per included journey, in input order."""
    requests = RenderRequests()
    for p in processed:
        if p.excluded:
            continue
        requests.paths.append(PathRequest(
            coordinates=[(w.lat, w.lon) for w in p.segment],
            style=p.style,
        ))
    for p in processed:
        if p.excluded:
            continue
        j = p.journey
        requests.markers.append(MarkerRequest(j.dep_lat, j.dep_lon))
        requests.markers.append(MarkerRequest(j.arr_lat, j.arr_lon))
    return requests
