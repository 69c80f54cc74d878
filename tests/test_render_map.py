import math
import os
import tempfile
import unittest

import matplotlib.image

from journeys import (
    MarkerRequest, PathRequest, RenderError, RenderRequests, TrajectoryStyle,
)
from render_map import EARTH_RADIUS_M, compute_extent, project, render_map
from themes import Theme


def _sample_requests():
    return RenderRequests(
        paths=[
            PathRequest([(50.1, 8.6), (50.15, 8.65), (50.2, 8.7)], TrajectoryStyle.EXACT),
            PathRequest([(50.0, 8.2), (50.1, 8.6)], TrajectoryStyle.BEELINE),
            PathRequest([], TrajectoryStyle.BEELINE),
        ],
        markers=[MarkerRequest(50.1, 8.6), MarkerRequest(50.2, 8.7)],
    )


class TestProject(unittest.TestCase):
    def test_origin(self):
        x, y = project(0.0, 0.0)
        self.assertAlmostEqual(x, 0.0)
        self.assertAlmostEqual(y, 0.0)

    def test_antimeridian(self):
        x, _ = project(0.0, 180.0)
        self.assertAlmostEqual(x, EARTH_RADIUS_M * math.pi)

    def test_poles_are_clamped(self):
        _, y_pole = project(90.0, 0.0)
        _, y_max = project(85.05112878, 0.0)
        self.assertAlmostEqual(y_pole, y_max)

    def test_north_is_up(self):
        self.assertGreater(project(51.0, 8.0)[1], project(50.0, 8.0)[1])


class TestComputeExtent(unittest.TestCase):
    def test_empty_requests(self):
        extent = compute_extent(RenderRequests(), 1800, 1000)
        self.assertEqual(extent, (-1800.0, -1000.0, 1800.0, 1000.0))

    def test_covers_all_geometry(self):
        requests = _sample_requests()
        minx, miny, maxx, maxy = compute_extent(requests, 1800, 1000)
        for lat, lon in [(50.0, 8.2), (50.2, 8.7), (50.1, 8.6)]:
            x, y = project(lat, lon)
            self.assertTrue(minx < x < maxx)
            self.assertTrue(miny < y < maxy)

    def test_matches_aspect_ratio(self):
        for width, height in [(1800, 1000), (400, 900)]:
            minx, miny, maxx, maxy = compute_extent(_sample_requests(), width, height)
            self.assertAlmostEqual((maxx - minx) / (maxy - miny), width / height)

    def test_single_point_path(self):
        requests = RenderRequests(paths=[PathRequest([(50.0, 8.0)], TrajectoryStyle.EXACT)])
        minx, miny, maxx, maxy = compute_extent(requests, 1000, 1000)
        x, y = project(50.0, 8.0)
        self.assertAlmostEqual((minx + maxx) / 2, x)
        self.assertAlmostEqual((miny + maxy) / 2, y)
        self.assertAlmostEqual(maxx - minx, 2000.0)


class TestThemes(unittest.TestCase):
    def test_from_flag(self):
        self.assertIs(Theme.from_flag(True), Theme.DARK)
        self.assertIs(Theme.from_flag(False), Theme.LIGHT)

    def test_exact_and_beeline_differ(self):
        for theme in Theme:
            self.assertNotEqual(
                theme.path_color(TrajectoryStyle.EXACT),
                theme.path_color(TrajectoryStyle.BEELINE),
            )

    def test_light_exact_colour(self):
        r, g, b, a = Theme.LIGHT.path_color(TrajectoryStyle.EXACT)
        self.assertEqual((round(r * 255), round(g * 255), round(b * 255)), (0x67, 0x3a, 0xb7))
        self.assertAlmostEqual(a, 0.8)

    def test_dark_station_colour(self):
        r, g, b, a = Theme.DARK.station_color
        self.assertEqual((round(r * 255), round(g * 255), round(b * 255)), (0xaa, 0x00, 0x22))
        self.assertAlmostEqual(a, 0.4)


class TestRenderMap(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.output_path = os.path.join(self.tmpdir, "map.png")

    def tearDown(self):
        if os.path.exists(self.output_path):
            os.remove(self.output_path)
        os.rmdir(self.tmpdir)

    def test_writes_png_of_requested_size(self):
        render_map(_sample_requests(), self.output_path, Theme.LIGHT, 300, 200)
        with open(self.output_path, "rb") as f:
            self.assertEqual(f.read(8), b"\x89PNG\r\n\x1a\n")
        img = matplotlib.image.imread(self.output_path)
        self.assertEqual(img.shape[:2], (200, 300))

    def test_dark_theme_without_attribution(self):
        render_map(_sample_requests(), self.output_path, Theme.DARK, 300, 200, hide_attribution=True)
        self.assertTrue(os.path.exists(self.output_path))

    def test_empty_requests_still_render(self):
        render_map(RenderRequests(), self.output_path, Theme.LIGHT, 120, 80)
        img = matplotlib.image.imread(self.output_path)
        self.assertEqual(img.shape[:2], (80, 120))

    def test_unwritable_output(self):
        with self.assertRaises(RenderError):
            render_map(_sample_requests(), os.path.join(self.tmpdir, "missing", "map.png"),
                       Theme.LIGHT, 100, 100)

    def test_invalid_size(self):
        with self.assertRaises(RenderError):
            render_map(RenderRequests(), self.output_path, Theme.LIGHT, 0, 100)


if __name__ == "__main__":
    unittest.main()
