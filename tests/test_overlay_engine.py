"""
Unit tests for the per-page overlay: area drags, text selection capture,
hit-testing, deletion and the render list.
"""

import unittest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pdf_highlights.core.models import Highlight, HighlightKind, Rect, Size
from pdf_highlights.overlay import OverlayEngine, OverlayMode, StaticPageSurface
from pdf_highlights.storage import HighlightRepository, LocalStore


class OverlayTestCase(unittest.TestCase):

    def setUp(self):
        self.store = LocalStore(":memory:")
        self.repo = HighlightRepository(self.store)
        self.base_size = Size(200, 300)
        self.surface = StaticPageSurface(200, 300, left=50, top=100)
        self.added = []
        self.deleted = []
        self.selection_cleared = 0

    def tearDown(self):
        self.store.close()

    def _clear_selection(self):
        self.selection_cleared += 1

    def make_engine(self, mode=OverlayMode.AREA, confirm=None, page=1):
        return OverlayEngine(
            page=page,
            owner_key="doc",
            repository=self.repo,
            surface=self.surface,
            base_size=self.base_size,
            mode=mode,
            color="green",
            on_added=self.added.append,
            on_deleted=self.deleted.append,
            confirm_delete=confirm,
            clear_selection=self._clear_selection,
        )

    def drag(self, engine, x0, y0, x1, y1):
        engine.pointer_down(x0, y0)
        engine.pointer_move((x0 + x1) / 2, (y0 + y1) / 2)
        engine.pointer_move(x1, y1)
        return engine.pointer_up(x1, y1)

    def store_area(self, rect, created_at, base_size=None):
        h = Highlight.create("doc", 1, HighlightKind.AREA, [rect], "yellow", base_size or self.base_size)
        return self.repo.add(h.with_changes(created_at=created_at))


class TestAreaDrawing(OverlayTestCase):

    def test_small_drag_is_ignored(self):
        engine = self.make_engine()
        self.assertIsNone(self.drag(engine, 10, 10, 15, 15))
        self.assertEqual(self.repo.count_by_page("doc", 1), 0)
        self.assertFalse(engine.is_drawing)

    def test_drag_creates_area_highlight(self):
        engine = self.make_engine()
        h = self.drag(engine, 10, 10, 25, 25)

        self.assertIsNotNone(h)
        self.assertEqual(h.kind, HighlightKind.AREA)
        self.assertEqual(h.area, Rect(10, 10, 15, 15))
        self.assertEqual(h.color, "#00FF00")
        self.assertEqual(h.base_size, self.base_size)
        self.assertEqual(self.added, [h])
        self.assertEqual([x.id for x in engine.highlights], [h.id])

    def test_reverse_drag_is_normalized(self):
        engine = self.make_engine()
        h = self.drag(engine, 40, 60, 20, 20)
        self.assertEqual(h.area, Rect(20, 20, 20, 40))

    def test_canvas_pixels_are_converted_to_base_space(self):
        self.surface.device_pixel_ratio = 2
        engine = self.make_engine()
        h = self.drag(engine, 20, 20, 60, 60)
        self.assertEqual(h.area, Rect(10, 10, 20, 20))

    def test_live_rectangle_while_dragging(self):
        engine = self.make_engine()
        engine.pointer_down(30, 30)
        self.assertEqual(engine.pointer_move(10, 50), Rect(10, 30, 20, 20))
        self.assertTrue(engine.is_drawing)

    def test_pointer_down_ignored_in_text_mode(self):
        engine = self.make_engine(mode=OverlayMode.TEXT)
        self.assertFalse(engine.pointer_down(10, 10))
        self.assertIsNone(engine.pointer_up(50, 50))

    def test_escape_cancels_drag(self):
        engine = self.make_engine()
        engine.pointer_down(10, 10)
        engine.pointer_move(80, 80)

        self.assertTrue(engine.key_down("Escape"))

        self.assertFalse(engine.is_drawing)
        self.assertIsNone(engine.draw_rect)
        self.assertIsNone(engine.pointer_up(80, 80))
        self.assertEqual(self.selection_cleared, 1)
        self.assertEqual(self.repo.count_by_page("doc", 1), 0)

    def test_escape_never_deletes(self):
        engine = self.make_engine()
        self.drag(engine, 10, 10, 50, 50)
        engine.key_down("Escape")
        self.assertEqual(len(engine.highlights), 1)
        self.assertFalse(engine.key_down("Enter"))


class TestTextSelection(OverlayTestCase):

    def test_selection_rects_on_page_become_one_highlight(self):
        engine = self.make_engine(mode=OverlayMode.TEXT)
        client_rects = [
            Rect(60, 110, 50, 10),    # on this page
            Rect(60, 122, 80, 10),    # on this page
            Rect(400, 110, 50, 10),   # beside the page
        ]

        h = engine.text_selection("  selected words ", client_rects)

        self.assertEqual(h.kind, HighlightKind.TEXT)
        self.assertEqual(h.text, "selected words")
        self.assertEqual(h.rects, [Rect(10, 10, 50, 10), Rect(10, 22, 80, 10)])
        self.assertEqual(self.selection_cleared, 1)

    def test_selection_with_zoomed_page(self):
        # page shown at twice its natural size on a 1.5 DPR screen
        self.surface.resize(400, 600, device_pixel_ratio=1.5)
        engine = self.make_engine(mode=OverlayMode.TEXT)

        h = engine.text_selection("zoomed", [Rect(70, 140, 100, 20)])

        self.assertEqual([r.rounded() for r in h.rects], [Rect(10, 20, 50, 10)])

    def test_selection_outside_page_is_ignored(self):
        engine = self.make_engine(mode=OverlayMode.TEXT)
        self.assertIsNone(engine.text_selection("elsewhere", [Rect(500, 500, 40, 10)]))
        self.assertIsNone(engine.text_selection("   ", [Rect(60, 110, 50, 10)]))
        self.assertEqual(self.repo.count_by_page("doc", 1), 0)


class TestHitTestingAndDeletion(OverlayTestCase):

    def test_hit_test_inside_and_outside(self):
        h = self.store_area(Rect(10, 10, 40, 40), created_at=1000)
        engine = self.make_engine()
        self.assertEqual(engine.hit_test(20, 20).id, h.id)
        self.assertIsNone(engine.hit_test(100, 100))

    def test_topmost_highlight_wins(self):
        self.store_area(Rect(10, 10, 40, 40), created_at=1000)
        newer = self.store_area(Rect(30, 30, 40, 40), created_at=2000)
        engine = self.make_engine()
        self.assertEqual(engine.hit_test(35, 35).id, newer.id)

    def test_hit_test_follows_zoom(self):
        h = self.store_area(Rect(10, 10, 40, 40), created_at=1000)
        engine = self.make_engine()
        self.surface.resize(400, 600)
        self.assertEqual(engine.hit_test(90, 90).id, h.id)
        self.assertIsNone(engine.hit_test(30, 110))

    def test_legacy_geometry_is_corrected(self):
        """Geometry far larger than its base size is tested as canvas pixels"""
        h = self.store_area(Rect(10, 10, 150, 150), created_at=1000, base_size=Size(100, 100))
        engine = self.make_engine()
        self.assertEqual(engine.hit_test(15, 15).id, h.id)
        # scaling by the declared 100x100 base would cover this point instead
        self.assertIsNone(engine.hit_test(200, 200))

    def test_context_menu_deletes_after_confirmation(self):
        h = self.store_area(Rect(10, 10, 40, 40), created_at=1000)
        engine = self.make_engine(confirm=lambda target: True)

        deleted = engine.context_menu(20, 20)

        self.assertEqual(deleted.id, h.id)
        self.assertEqual([x.id for x in self.deleted], [h.id])
        self.assertIsNone(self.repo.get(h.id))
        self.assertEqual(engine.highlights, [])

    def test_deleted_highlight_carries_latest_remote_id(self):
        h = self.store_area(Rect(10, 10, 40, 40), created_at=1000)
        engine = self.make_engine(confirm=lambda target: True)
        self.repo.mark_synced(h.id, "srv-5")

        engine.context_menu(20, 20)

        self.assertEqual(self.deleted[0].remote_id, "srv-5")

    def test_context_menu_declined(self):
        h = self.store_area(Rect(10, 10, 40, 40), created_at=1000)
        engine = self.make_engine(confirm=lambda target: False)
        self.assertIsNone(engine.context_menu(20, 20))
        self.assertIsNotNone(self.repo.get(h.id))
        self.assertIsNone(engine.selected)

    def test_context_menu_miss(self):
        engine = self.make_engine(confirm=lambda target: True)
        self.assertIsNone(engine.context_menu(5, 5))


class TestRenderAndResize(OverlayTestCase):

    def test_render_lists_highlights_and_live_drag(self):
        h = self.store_area(Rect(10, 10, 40, 40), created_at=1000)
        engine = self.make_engine()
        engine.pointer_down(100, 100)
        engine.pointer_move(120, 130)

        ops = engine.render()

        self.assertEqual(len(ops), 2)
        self.assertEqual(ops[0].highlight_id, h.id)
        self.assertEqual(ops[0].rect, Rect(10, 10, 40, 40))
        self.assertEqual(ops[0].opacity, 0.4)
        self.assertTrue(ops[0].stroke)
        self.assertIsNone(ops[1].highlight_id)
        self.assertEqual(ops[1].rect, Rect(100, 100, 20, 30))

    def test_resize_rescales_render_and_cancels_drag(self):
        self.store_area(Rect(10, 10, 40, 40), created_at=1000)
        engine = self.make_engine()
        engine.pointer_down(5, 5)

        self.surface.resize(400, 600)

        self.assertFalse(engine.is_drawing)
        self.assertEqual([op.rect for op in engine.render()], [Rect(20, 20, 80, 80)])

    def test_other_pages_are_not_shown(self):
        self.store_area(Rect(10, 10, 40, 40), created_at=1000)
        engine = self.make_engine(page=2)
        self.assertEqual(engine.render(), [])
        self.assertIsNone(engine.hit_test(20, 20))

    def test_detach_stops_resize_handling(self):
        engine = self.make_engine()
        engine.detach()
        engine.pointer_down(5, 5)
        self.surface.resize(400, 600)
        self.assertTrue(engine.is_drawing)


if __name__ == '__main__':
    unittest.main()
