from __future__ import annotations

import unittest
from functools import partial

from PIL import Image, ImageDraw

import helpers_cli  # noqa: F401  (puts src/ on sys.path)
from pdf_autocrop.analyze import analyze_document, analyze_page, partition_pages, reorient_grid
from pdf_autocrop.config import CropSettings
from pdf_autocrop.geometry import Box, BoxVariant, Orientation, RenderedPage


def _grid(*boxes: tuple[int, int, int, int], size: tuple[int, int] = (200, 300)) -> Image.Image:
    grid = Image.new("L", size, 255)
    draw = ImageDraw.Draw(grid)
    for box in boxes:
        draw.rectangle(box, fill=0)
    return grid


# Pillow transposes that display an upright grid the way a page with the
# given /Rotate value is shown.
_DISPLAY = {
    Orientation.ROTATED_90: Image.Transpose.ROTATE_270,
    Orientation.INVERTED: Image.Transpose.ROTATE_180,
    Orientation.ROTATED_270: Image.Transpose.ROTATE_90,
}


class FakeProvider:
    """Serves prepared pages; indexes listed in `broken` raise on render."""

    def __init__(self, pages, broken=()) -> None:
        self.pages = pages
        self.broken = set(broken)
        self.entered = 0

    def __enter__(self) -> "FakeProvider":
        self.entered += 1
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def render(self, page_index, resolution, high_quality) -> RenderedPage:
        if page_index in self.broken:
            raise ValueError("cannot render")
        return self.pages[page_index]


class AnalyzePageTests(unittest.TestCase):
    def test_blank_page_keeps_full_box(self) -> None:
        rendered = RenderedPage(_grid(), width=100, height=150)
        record = analyze_page(3, rendered, CropSettings())
        self.assertTrue(record.blank)
        self.assertEqual(record.box, Box(0, 0, 100, 150))
        self.assertEqual(record.variants[BoxVariant.NO_HEADER], Box(0, 0, 100, 150))

    def test_box_is_scaled_and_flipped(self) -> None:
        # Grid is twice the page size: pixels (40..119, 60..179).
        rendered = RenderedPage(_grid((40, 60, 119, 179)), width=100, height=150)
        record = analyze_page(0, rendered, CropSettings())
        self.assertFalse(record.blank)
        self.assertEqual(record.box, Box(20, 60, 60, 120))
        self.assertEqual(record.header_size, 0.0)
        self.assertEqual(record.variants[BoxVariant.NO_HEADER_FOOTER], Box(20, 60, 60, 120))

    def test_rotated_pages_match_unrotated_result(self) -> None:
        upright = _grid((30, 40, 79, 99), (150, 250, 189, 289))
        expected = analyze_page(0, RenderedPage(upright, 200, 300), CropSettings()).box
        for orientation, transpose in _DISPLAY.items():
            with self.subTest(orientation=orientation):
                displayed = upright.transpose(transpose)
                record = analyze_page(0, RenderedPage(displayed, 200, 300, orientation), CropSettings())
                self.assertEqual(record.box, expected)

    def test_reorient_leaves_input_untouched(self) -> None:
        displayed = _grid(size=(300, 200))
        turned = reorient_grid(displayed, Orientation.ROTATED_90)
        self.assertEqual(displayed.size, (300, 200))
        self.assertEqual(turned.size, (200, 300))
        self.assertIs(reorient_grid(displayed, Orientation.NORMAL), displayed)

    def test_header_and_footer_variants(self) -> None:
        grid = _grid(
            (20, 10, 79, 17),  # header, 8 rows
            (10, 40, 89, 159),  # body
            (30, 180, 69, 185),  # footer, 6 rows
            size=(100, 200),
        )
        settings = CropSettings(crop_header=30, crop_footer=30)
        record = analyze_page(0, RenderedPage(grid, 100, 200), settings)

        self.assertEqual(record.header_size, 8.0)
        self.assertEqual(record.footer_size, 6.0)
        self.assertEqual(record.box, Box(10, 14, 90, 190))
        self.assertEqual(record.variants[BoxVariant.NO_HEADER], Box(10, 14, 90, 160))
        self.assertEqual(record.variants[BoxVariant.NO_FOOTER], Box(10, 40, 90, 190))
        self.assertEqual(record.variants[BoxVariant.NO_HEADER_FOOTER], Box(10, 40, 90, 160))

    def test_band_limit_is_converted_from_points(self) -> None:
        # Grid at twice the page size: a 16 px header is 8 pt, over a 5 pt limit.
        grid = _grid((40, 20, 159, 35), (20, 80, 179, 379), size=(200, 400))
        record = analyze_page(0, RenderedPage(grid, 100, 200), CropSettings(crop_header=5))
        self.assertEqual(record.header_size, 0.0)

        record = analyze_page(0, RenderedPage(grid, 100, 200), CropSettings(crop_header=10))
        self.assertEqual(record.header_size, 8.0)


class PartitionTests(unittest.TestCase):
    def test_even_contiguous_slices(self) -> None:
        self.assertEqual(partition_pages(10, 3), [(0, 4), (4, 7), (7, 10)])

    def test_more_workers_than_pages(self) -> None:
        self.assertEqual(partition_pages(2, 8), [(0, 1), (1, 2)])

    def test_no_pages(self) -> None:
        self.assertEqual(partition_pages(0, 4), [])

    def test_single_worker(self) -> None:
        self.assertEqual(partition_pages(5, 1), [(0, 5)])


class AnalyzeDocumentTests(unittest.TestCase):
    def test_records_keep_page_order(self) -> None:
        pages = [
            RenderedPage(_grid((10 * i, 10, 10 * i + 49, 99)), 200, 300) for i in range(1, 6)
        ]
        records = analyze_document(partial(FakeProvider, pages), len(pages), CropSettings(), workers=1)
        self.assertEqual([record.index for record in records], [0, 1, 2, 3, 4])
        self.assertEqual([record.box.llx for record in records], [10, 20, 30, 40, 50])

    def test_failing_page_does_not_stop_others(self) -> None:
        pages = [RenderedPage(_grid((10, 10, 49, 49)), 200, 300) for _ in range(3)]
        records = analyze_document(
            partial(FakeProvider, pages, broken={1}), 3, CropSettings(), workers=1
        )
        self.assertFalse(records[0].failed)
        self.assertTrue(records[1].failed)
        self.assertIn("cannot render", records[1].error)
        self.assertFalse(records[2].failed)

    def test_settings_workers_used_when_not_given(self) -> None:
        pages = [RenderedPage(_grid(), 200, 300)]
        records = analyze_document(partial(FakeProvider, pages), 1, CropSettings(workers=4))
        self.assertEqual(len(records), 1)
        self.assertTrue(records[0].blank)


if __name__ == "__main__":
    unittest.main()
