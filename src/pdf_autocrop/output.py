"""
Write finalized crop boxes back into a PDF.

Boxes arrive relative to the lower-left corner of each page's visible area
(the area that was rendered). They are clipped to that area, shifted into
PDF user space and written to every page box the page carries.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import fitz  # PyMuPDF

from .geometry import Box, PageRecord
from .utils import UserError, ensure_parent_dir


PdfRect = Tuple[float, float, float, float]

ALWAYS_WRITTEN = ("MediaBox", "CropBox")
WRITTEN_IF_PRESENT = ("BleedBox", "TrimBox", "ArtBox")


def _parse_rect(value: str) -> Optional[PdfRect]:
    """Parse a PDF array string like "[0 0 595.2 841.9]"."""

    parts = value.strip().lstrip("[").rstrip("]").split()
    if len(parts) != 4:
        return None
    try:
        x0, y0, x1, y1 = (float(part) for part in parts)
    except ValueError:
        return None
    return (min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1))


def _format_number(value: float) -> str:
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    return "0" if text in {"", "-0"} else text


def _format_rect(rect: PdfRect) -> str:
    return "[" + " ".join(_format_number(value) for value in rect) + "]"


def _box_entry(doc: fitz.Document, xref: int, key: str) -> Tuple[str, str]:
    """Read a page dictionary entry, resolving one indirect reference."""

    kind, value = doc.xref_get_key(xref, key)
    if kind == "xref":
        value = doc.xref_object(int(value.split()[0]), compressed=True)
        kind = "array" if value.lstrip().startswith("[") else kind
    return kind, value


def _inherited_rect(doc: fitz.Document, xref: int, key: str) -> Optional[PdfRect]:
    """Look up a page box, following /Parent like PDF viewers do."""

    seen = set()
    while xref and xref not in seen:
        seen.add(xref)
        kind, value = _box_entry(doc, xref, key)
        if kind == "array":
            rect = _parse_rect(value)
            if rect is not None:
                return rect
        kind, value = doc.xref_get_key(xref, "Parent")
        if kind != "xref":
            break
        xref = int(value.split()[0])
    return None


def visible_area(doc: fitz.Document, page_index: int) -> PdfRect:
    """The page's visible area in PDF user space (CropBox, else MediaBox)."""

    page = doc.load_page(page_index)
    rect = _inherited_rect(doc, page.xref, "CropBox") or _inherited_rect(
        doc, page.xref, "MediaBox"
    )
    if rect is None:
        media = page.mediabox
        rect = (media.x0, media.y0, media.x1, media.y1)
    return rect


def clip_box(box: Box, area: PdfRect) -> PdfRect:
    """
    Clip a page-relative box to the visible area; never grow past it.

    A box that clips to nothing keeps the whole visible area.
    """

    x0, y0, x1, y1 = area
    width = x1 - x0
    height = y1 - y0
    clipped = (
        min(max(box.llx, 0.0), width) + x0,
        min(max(box.lly, 0.0), height) + y0,
        max(min(box.urx, width), 0.0) + x0,
        max(min(box.ury, height), 0.0) + y0,
    )
    if clipped[2] <= clipped[0] or clipped[3] <= clipped[1]:
        return area
    return clipped


def apply_box(doc: fitz.Document, page_index: int, box: Box) -> PdfRect:
    """Clip `box` and store it in every visible-area box of the page."""

    xref = doc.load_page(page_index).xref
    rect = clip_box(box, visible_area(doc, page_index))
    formatted = _format_rect(rect)
    for key in ALWAYS_WRITTEN:
        doc.xref_set_key(xref, key, formatted)
    for key in WRITTEN_IF_PRESENT:
        kind, _ = _box_entry(doc, xref, key)
        if kind == "array":
            doc.xref_set_key(xref, key, formatted)
    return rect


def write_cropped_pdf(
    pdf_path: Path,
    out_pdf: Path,
    records: Iterable[PageRecord],
) -> List[Tuple[int, PdfRect]]:
    """
    Apply every analyzed page's box and save the result.

    Failed pages keep their original boxes. When out_pdf is the input file we
    write to a temp file first, then replace the original.
    """

    written: List[Tuple[int, PdfRect]] = []
    temp_path: Optional[Path] = None
    try:
        with fitz.open(pdf_path) as doc:
            for record in records:
                if record.failed:
                    continue
                if record.index >= doc.page_count:
                    raise UserError(
                        f"Page {record.index + 1} is out of range. PDF has {doc.page_count} pages."
                    )
                written.append((record.index, apply_box(doc, record.index, record.box)))

            ensure_parent_dir(out_pdf)
            save_path = out_pdf
            if out_pdf.resolve() == pdf_path.resolve():
                handle, temp_name = tempfile.mkstemp(
                    prefix=f"{out_pdf.stem}_tmp_",
                    suffix=out_pdf.suffix,
                    dir=str(out_pdf.parent),
                )
                os.close(handle)
                temp_path = Path(temp_name)
                save_path = temp_path
            doc.save(save_path, garbage=1, deflate=True)
        if temp_path is not None:
            temp_path.replace(out_pdf)
            temp_path = None
    finally:
        if temp_path is not None and temp_path.exists():
            temp_path.unlink(missing_ok=True)
    return written
