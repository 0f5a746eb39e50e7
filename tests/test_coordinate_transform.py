"""
Unit tests for conversions between base, canvas and PDF space.
"""

import unittest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pdf_highlights.core.coordinate_transform import (
    effective_base_size,
    from_pdf_points,
    highlight_rects_to_canvas,
    is_legacy_geometry,
    normalize_base_size,
    to_base,
    to_canvas,
    to_pdf_points,
)
from pdf_highlights.core.models import Highlight, HighlightKind, Rect, Size


def assert_rect_close(test, actual: Rect, expected: Rect, places: int = 6):
    test.assertAlmostEqual(actual.x, expected.x, places=places)
    test.assertAlmostEqual(actual.y, expected.y, places=places)
    test.assertAlmostEqual(actual.width, expected.width, places=places)
    test.assertAlmostEqual(actual.height, expected.height, places=places)


class TestCanvasConversion(unittest.TestCase):

    def test_to_canvas_scales_each_axis(self):
        rect = Rect(10, 20, 30, 40)
        result = to_canvas(rect, Size(100, 200), Size(200, 200))
        assert_rect_close(self, result, Rect(20, 20, 60, 40))

    def test_to_base_inverts_to_canvas(self):
        base_size = Size(612, 792)
        canvas_size = Size(1224 * 1.25, 1584 * 1.25)
        rect = Rect(72.5, 100.25, 200, 14)
        round_trip = to_base(to_canvas(rect, base_size, canvas_size), base_size, canvas_size)
        assert_rect_close(self, round_trip, rect)

    def test_zero_canvas_size_does_not_divide_by_zero(self):
        result = to_base(Rect(10, 10, 10, 10), Size(100, 100), Size(0, 0))
        self.assertEqual(result, Rect(1000, 1000, 1000, 1000))


class TestPdfConversion(unittest.TestCase):

    def test_y_axis_is_flipped(self):
        """A rect at the top-left corner ends up at the top of PDF space"""
        result = to_pdf_points(Rect(0, 0, 10, 10), Size(100, 200), Size(100, 200))
        self.assertEqual(result, Rect(0, 190, 10, 10))

    def test_scaling_to_points(self):
        result = to_pdf_points(Rect(50, 100, 100, 20), Size(306, 396), Size(612, 792))
        assert_rect_close(self, result, Rect(100, 792 - 240, 200, 40))

    def test_from_pdf_points_inverts_to_pdf_points(self):
        base_size = Size(800, 1035.3)
        page_size = Size(612, 792)
        rect = Rect(33.3, 412.7, 250.1, 18.9)
        pdf = to_pdf_points(rect, base_size, page_size)
        assert_rect_close(self, from_pdf_points(pdf, page_size, base_size), rect)


class TestLegacyGeometry(unittest.TestCase):

    def test_rect_within_threshold_is_not_legacy(self):
        self.assertFalse(is_legacy_geometry(Rect(0, 0, 110, 50), Size(100, 100)))

    def test_rect_beyond_threshold_is_legacy(self):
        self.assertTrue(is_legacy_geometry(Rect(0, 0, 130, 50), Size(100, 100)))
        self.assertTrue(is_legacy_geometry(Rect(0, 0, 50, 121), Size(100, 100)))

    def test_missing_base_size_uses_current_size(self):
        current = Size(640, 480)
        self.assertEqual(effective_base_size([Rect(0, 0, 1, 1)], None, current), current)
        self.assertEqual(effective_base_size([Rect(0, 0, 1, 1)], Size(0, 0), current), current)

    def test_oversized_geometry_uses_current_size(self):
        current = Size(1200, 1600)
        rects = [Rect(10, 10, 900, 20)]
        self.assertEqual(effective_base_size(rects, Size(600, 800), current), current)

    def test_reliable_base_size_is_kept(self):
        base = Size(600, 800)
        self.assertEqual(effective_base_size([Rect(10, 10, 300, 20)], base, Size(1200, 1600)), base)

    def test_normalize_base_size_returns_same_object_when_unchanged(self):
        h = Highlight.create("doc", 1, HighlightKind.AREA, [Rect(1, 1, 10, 10)], "yellow", Size(100, 100))
        self.assertIs(normalize_base_size(h, Size(200, 200)), h)

    def test_normalize_base_size_fills_missing_size(self):
        h = Highlight.create("doc", 1, HighlightKind.AREA, [Rect(1, 1, 10, 10)], "yellow", None)
        fixed = normalize_base_size(h, Size(200, 200))
        self.assertEqual(fixed.base_size, Size(200, 200))
        self.assertIsNone(h.base_size)

    def test_legacy_highlight_is_drawn_unscaled(self):
        """Legacy rows hold canvas pixels, so they map 1:1 onto the current canvas"""
        h = Highlight.create("doc", 1, HighlightKind.AREA, [Rect(10, 10, 150, 150)], "yellow", Size(100, 100))
        rects = highlight_rects_to_canvas(h, Size(200, 300))
        self.assertEqual(rects, [Rect(10, 10, 150, 150)])


if __name__ == '__main__':
    unittest.main()
