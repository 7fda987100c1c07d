from __future__ import annotations

import unittest

import fitz  # PyMuPDF

from helpers_cli import make_pdf, workspace_temp_dir
from pdf_autocrop.geometry import Box, PageRecord
from pdf_autocrop.output import _parse_rect, clip_box, visible_area, write_cropped_pdf


def _record(index: int, box: Box) -> PageRecord:
    return PageRecord(index=index, page_width=200.0, page_height=300.0, box=box)


def _page_box(doc: fitz.Document, index: int, key: str):
    kind, value = doc.xref_get_key(doc.load_page(index).xref, key)
    return _parse_rect(value) if kind == "array" else None


class ClipTests(unittest.TestCase):
    def test_box_inside_area_is_shifted(self) -> None:
        self.assertEqual(clip_box(Box(10, 20, 50, 60), (100, 200, 300, 500)), (110, 220, 150, 260))

    def test_box_outside_area_is_clipped(self) -> None:
        self.assertEqual(clip_box(Box(-5, -5, 205, 305), (0, 0, 200, 300)), (0, 0, 200, 300))

    def test_degenerate_box_keeps_area(self) -> None:
        self.assertEqual(clip_box(Box(250, 10, 260, 20), (0, 0, 200, 300)), (0, 0, 200, 300))

    def test_parse_rect(self) -> None:
        self.assertEqual(_parse_rect("[0 0 595.2 841.9]"), (0.0, 0.0, 595.2, 841.9))
        self.assertEqual(_parse_rect("[10 20 0 0]"), (0.0, 0.0, 10.0, 20.0))
        self.assertIsNone(_parse_rect("[1 2 3]"))
        self.assertIsNone(_parse_rect("null"))


class WriteTests(unittest.TestCase):
    def test_boxes_are_written(self) -> None:
        with workspace_temp_dir("output") as tmp:
            source = make_pdf(tmp / "in.pdf", [(10, 10, 20, 20)] * 2)
            out_pdf = tmp / "out.pdf"
            written = write_cropped_pdf(
                source,
                out_pdf,
                [_record(0, Box(40, 50, 160, 250)), _record(1, Box(-10, -10, 500, 500))],
            )
            self.assertEqual(written, [(0, (40, 50, 160, 250)), (1, (0, 0, 200, 300))])

            with fitz.open(out_pdf) as doc:
                self.assertEqual(_page_box(doc, 0, "CropBox"), (40, 50, 160, 250))
                self.assertEqual(_page_box(doc, 0, "MediaBox"), (40, 50, 160, 250))
                self.assertEqual(_page_box(doc, 1, "CropBox"), (0, 0, 200, 300))
                self.assertIsNone(_page_box(doc, 0, "TrimBox"))

    def test_existing_crop_box_offsets_and_limits(self) -> None:
        with workspace_temp_dir("output") as tmp:
            source = tmp / "in.pdf"
            with fitz.open() as doc:
                page = doc.new_page(width=200, height=300)
                doc.xref_set_key(page.xref, "CropBox", "[20 30 120 230]")
                doc.xref_set_key(page.xref, "TrimBox", "[20 30 120 230]")
                doc.save(source)

            out_pdf = tmp / "out.pdf"
            write_cropped_pdf(source, out_pdf, [_record(0, Box(10, 10, 500, 50))])
            with fitz.open(out_pdf) as doc:
                self.assertEqual(_page_box(doc, 0, "CropBox"), (30, 40, 120, 80))
                self.assertEqual(_page_box(doc, 0, "TrimBox"), (30, 40, 120, 80))

    def test_indirect_crop_box_is_resolved(self) -> None:
        with workspace_temp_dir("output") as tmp:
            source = tmp / "in.pdf"
            with fitz.open() as doc:
                page = doc.new_page(width=200, height=300)
                box_xref = doc.get_new_xref()
                doc.update_object(box_xref, "[20 30 120 230]")
                doc.xref_set_key(page.xref, "CropBox", f"{box_xref} 0 R")
                doc.xref_set_key(page.xref, "TrimBox", f"{box_xref} 0 R")
                self.assertEqual(visible_area(doc, 0), (20, 30, 120, 230))
                doc.save(source)

            out_pdf = tmp / "out.pdf"
            write_cropped_pdf(source, out_pdf, [_record(0, Box(10, 10, 500, 50))])
            with fitz.open(out_pdf) as doc:
                self.assertEqual(_page_box(doc, 0, "CropBox"), (30, 40, 120, 80))
                self.assertEqual(_page_box(doc, 0, "TrimBox"), (30, 40, 120, 80))

    def test_failed_pages_keep_original_boxes(self) -> None:
        with workspace_temp_dir("output") as tmp:
            source = make_pdf(tmp / "in.pdf", [(10, 10, 20, 20)] * 2)
            out_pdf = tmp / "out.pdf"
            written = write_cropped_pdf(
                source,
                out_pdf,
                [_record(0, Box(40, 50, 160, 250)), PageRecord.failure(1, "broken")],
            )
            self.assertEqual([index for index, _ in written], [0])
            with fitz.open(out_pdf) as doc:
                self.assertEqual(doc.load_page(1).mediabox, fitz.Rect(0, 0, 200, 300))

    def test_overwrite_in_place(self) -> None:
        with workspace_temp_dir("output") as tmp:
            source = make_pdf(tmp / "in.pdf", [(10, 10, 20, 20)])
            write_cropped_pdf(source, source, [_record(0, Box(40, 50, 160, 250))])
            with fitz.open(source) as doc:
                self.assertEqual(_page_box(doc, 0, "CropBox"), (40, 50, 160, 250))
            self.assertEqual(sorted(path.name for path in tmp.iterdir()), ["in.pdf"])


if __name__ == "__main__":
    unittest.main()
