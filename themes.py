"""
themes.py — Light and dark colour schemes for rendered maps.

Colours are RGBA tuples in the 0..1 range, the form matplotlib accepts.
The journey pipeline only tags paths as exact or beeline; a Theme turns
those tags into colours at the rendering boundary.
"""

import enum

from journeys import TrajectoryStyle


def _rgba(hex_rgb: str, alpha: float = 1.0) -> tuple[float, float, float, float]:
    h = hex_rgb.lstrip("#")
    r, g, b = (int(h[i:i + 2], 16) / 255 for i in (0, 2, 4))
    return (r, g, b, alpha)


# Branding flag stripes, top to bottom.
FLAG_STRIPES = [
    _rgba("#fff42f"),
    _rgba("#ffffff"),
    _rgba("#9c59d1"),
    _rgba("#292929"),
]


class Theme(enum.Enum):
    LIGHT = "light"
    DARK = "dark"

    @classmethod
    def from_flag(cls, dark: bool) -> "Theme":
        return cls.DARK if dark else cls.LIGHT

    def path_color(self, style: TrajectoryStyle) -> tuple[float, float, float, float]:
        return _PALETTES[self]["paths"][style]

    @property
    def station_color(self) -> tuple[float, float, float, float]:
        return _PALETTES[self]["station"]

    @property
    def background_color(self) -> tuple[float, float, float, float]:
        return _PALETTES[self]["background"]

    @property
    def text_color(self) -> tuple[float, float, float, float]:
        return _PALETTES[self]["text"]

    @property
    def flag_dim_alpha(self) -> float:
        """Opacity of the black veil laid over the branding flag."""
        return _PALETTES[self]["flag_dim"]


_PALETTES = {
    Theme.LIGHT: {
        "paths": {
            TrajectoryStyle.EXACT: _rgba("#673ab7", 0.8),
            TrajectoryStyle.BEELINE: _rgba("#665577", 0.6),
        },
        "station": _rgba("#ff0033", 0.4),
        "background": _rgba("#f2efe9"),
        "text": _rgba("#333333"),
        "flag_dim": 0x05 / 0xff,
    },
    Theme.DARK: {
        "paths": {
            TrajectoryStyle.EXACT: _rgba("#58309f", 0.8),
            TrajectoryStyle.BEELINE: _rgba("#665577", 0.6),
        },
        "station": _rgba("#aa0022", 0.4),
        "background": _rgba("#262626"),
        "text": _rgba("#cccccc"),
        "flag_dim": 0x20 / 0xff,
    },
}
