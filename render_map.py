"""
render_map.py — Draw journey paths and station markers into a PNG.

Consumes the RenderRequests built by journeys.py. Coordinates are
projected to spherical Web Mercator; the view is fitted around every
path and marker and widened to the image aspect ratio. No base map
tiles are drawn, only the theme's background colour.
"""

import logging
import math

from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
from matplotlib.patches import Circle, Rectangle
from shapely.geometry import LineString, Point
from shapely.ops import unary_union

from config import (
    DPI, LINE_WIDTH_PX, STATION_RADIUS_M, EXTENT_PADDING, MIN_EXTENT_M,
    ATTRIBUTION, ATTRIBUTION_FONT_SIZE, FLAG_WIDTH_PX,
)
from journeys import RenderError, RenderRequests
from themes import FLAG_STRIPES, Theme

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6378137.0
MAX_LAT = 85.05112878


# ── Projection ───────────────────────────────────────────────────────

def project(lat: float, lon: float) -> tuple[float, float]:
    """WGS84 degrees to Web Mercator metres (EPSG:3857)."""
    lat = max(-MAX_LAT, min(MAX_LAT, lat))
    x = EARTH_RADIUS_M * math.radians(lon)
    y = EARTH_RADIUS_M * math.log(math.tan(math.pi / 4 + math.radians(lat) / 2))
    return x, y


def _request_geometries(requests: RenderRequests) -> list:
    geoms = []
    for path in requests.paths:
        pts = [project(lat, lon) for lat, lon in path.coordinates]
        if len(pts) >= 2:
            geoms.append(LineString(pts))
        elif pts:
            geoms.append(Point(pts[0]))
    for marker in requests.markers:
        geoms.append(Point(project(marker.lat, marker.lon)))
    return geoms


def compute_extent(requests: RenderRequests, width: int, height: int) -> tuple[float, float, float, float]:
    """Return (minx, miny, maxx, maxy) in Mercator metres for the view.

    The extent covers every path and marker plus padding, is never smaller
    than MIN_EXTENT_M in either half-axis, and matches width/height.
    """
    geoms = _request_geometries(requests)
    if geoms:
        minx, miny, maxx, maxy = unary_union(geoms).bounds
    else:
        minx = miny = maxx = maxy = 0.0

    cx, cy = (minx + maxx) / 2, (miny + maxy) / 2
    half_w = max((maxx - minx) / 2 * (1 + 2 * EXTENT_PADDING), MIN_EXTENT_M)
    half_h = max((maxy - miny) / 2 * (1 + 2 * EXTENT_PADDING), MIN_EXTENT_M)

    aspect = width / height
    if half_w / half_h < aspect:
        half_w = half_h * aspect
    else:
        half_h = half_w / aspect
    return cx - half_w, cy - half_h, cx + half_w, cy + half_h


# ── Drawing ──────────────────────────────────────────────────────────

def _px_to_points(px: float) -> float:
    return px * 72 / DPI


def _draw_paths(ax, requests: RenderRequests, theme: Theme) -> None:
    for path in requests.paths:
        if not path.coordinates:
            continue
        xs, ys = zip(*(project(lat, lon) for lat, lon in path.coordinates))
        ax.plot(
            xs, ys,
            color=theme.path_color(path.style),
            linewidth=_px_to_points(LINE_WIDTH_PX),
            solid_capstyle="round",
            solid_joinstyle="round",
        )


def _draw_markers(ax, requests: RenderRequests, theme: Theme) -> None:
    for marker in requests.markers:
        # Mercator stretches distances by 1/cos(lat).
        scale = 1 / max(math.cos(math.radians(marker.lat)), 1e-6)
        ax.add_patch(Circle(
            project(marker.lat, marker.lon),
            radius=STATION_RADIUS_M * scale,
            facecolor=theme.station_color,
            edgecolor="none",
        ))


def _draw_attribution(fig: Figure, theme: Theme, width: int, height: int) -> None:
    box_h = ATTRIBUTION_FONT_SIZE * DPI / 72 * 1.2 + 4
    stripe_h = box_h / len(FLAG_STRIPES)
    x0 = width - FLAG_WIDTH_PX

    fig.text(
        (x0 - 4) / width, 2 / height, ATTRIBUTION,
        ha="right", va="bottom",
        fontsize=ATTRIBUTION_FONT_SIZE,
        color=theme.text_color,
    )

    # Stripes top to bottom, then a dimming veil over the whole flag.
    for i, color in enumerate(FLAG_STRIPES):
        y0 = box_h - stripe_h * (i + 1)
        fig.add_artist(Rectangle(
            (x0 / width, y0 / height), FLAG_WIDTH_PX / width, stripe_h / height,
            transform=fig.transFigure, facecolor=color, edgecolor="none",
        ))
    fig.add_artist(Rectangle(
        (x0 / width, 0), FLAG_WIDTH_PX / width, box_h / height,
        transform=fig.transFigure, facecolor=(0, 0, 0, theme.flag_dim_alpha), edgecolor="none",
    ))


def render_map(requests: RenderRequests, output_file: str, theme: Theme,
               width: int, height: int, hide_attribution: bool = False) -> None:
    """Rasterise paths (below) and station markers (above) to a PNG file."""
    if width <= 0 or height <= 0:
        raise RenderError(f"invalid image size {width}x{height}")

    fig = Figure(figsize=(width / DPI, height / DPI), dpi=DPI)
    FigureCanvasAgg(fig)
    fig.patch.set_facecolor(theme.background_color)

    ax = fig.add_axes([0, 0, 1, 1])
    ax.set_axis_off()
    ax.set_facecolor(theme.background_color)
    minx, miny, maxx, maxy = compute_extent(requests, width, height)
    ax.set_xlim(minx, maxx)
    ax.set_ylim(miny, maxy)
    ax.set_aspect("equal", adjustable="box")

    _draw_paths(ax, requests, theme)
    _draw_markers(ax, requests, theme)

    if not hide_attribution:
        _draw_attribution(fig, theme, width, height)

    logger.info(
        f"Rendering {len(requests.paths)} paths and {len(requests.markers)} "
        f"station markers ({theme.value} theme, {width}x{height})"
    )
    try:
        fig.savefig(output_file, dpi=DPI, facecolor=theme.background_color)
    except OSError as exc:
        raise RenderError(f"error saving PNG: {exc}") from exc
    logger.info(f"Map saved to {output_file}")
