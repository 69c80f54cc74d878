# config.py — tlynxmap configuration
# Edit this file to change default image size, file names, marker style, etc.

# ── Input / output files ─────────────────────────────────────────────
# Travelynx raw export ("Rohdaten" JSON), containing a "journeys" list.
DATA_FILE = "data.json"
OUTPUT_FILE = "output.png"

# ── Image size (pixels) ──────────────────────────────────────────────
WIDTH = 1800
HEIGHT = 1000

# Resolution used when rasterising; figure size in inches is WIDTH / DPI.
DPI = 100

# ── Paths and station markers ────────────────────────────────────────
LINE_WIDTH_PX = 2

# Station circles are sized on the ground, not on screen.
STATION_RADIUS_M = 3000

# ── Map extent ───────────────────────────────────────────────────────
# Fraction of the data extent added around every side of the map.
EXTENT_PADDING = 0.05

# Smallest half-extent (Web Mercator metres) so a single station still
# gets a sensible view.
MIN_EXTENT_M = 1000

# ── Attribution ──────────────────────────────────────────────────────
ATTRIBUTION = "rendered using tlynxmap"
ATTRIBUTION_FONT_SIZE = 9

# Width of the branding flag drawn next to the attribution (pixels).
FLAG_WIDTH_PX = 20

# ── Processing ───────────────────────────────────────────────────────
# Journeys are independent; >1 decodes them on a thread pool.
WORKERS = 1
