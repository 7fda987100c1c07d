"""
Render PDF pages to gray pixel grids.

Why this module exists:
- Keeps PyMuPDF rendering separate from the box analysis.
- Gives each worker process its own document handle (PyMuPDF documents are
  not shared between workers).
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import fitz  # PyMuPDF
from PIL import Image

from .geometry import Orientation, RenderedPage
from .utils import UserError, ensure_file_exists, ensure_pdf_has_pages


# MuPDF anti-aliasing levels: 0 = off, 8 = best.
AA_LEVEL_FAST = 0
AA_LEVEL_HIGH_QUALITY = 8


def count_pages(pdf_path: Path) -> int:
    """
    Open the PDF once to validate it and return its page count.

    This runs before any worker starts, so an unreadable input aborts the
    run without partial work.
    """

    ensure_file_exists(pdf_path, "PDF")
    try:
        with fitz.open(pdf_path) as doc:
            if doc.needs_pass:
                raise UserError(f"PDF is encrypted and needs a password: {pdf_path}")
            total_pages = int(doc.page_count)
    except UserError:
        raise
    except Exception as exc:  # PyMuPDF raises several error types for bad files
        raise UserError(f"Failed to open PDF {pdf_path}: {exc}") from exc
    ensure_pdf_has_pages(total_pages)
    return total_pages


def pixmap_to_grid(pixmap: "fitz.Pixmap") -> Image.Image:
    """Wrap a single-channel pixmap as a Pillow "L" image, honoring its stride."""

    if pixmap.n != 1 or pixmap.alpha:
        pixmap = fitz.Pixmap(fitz.csGRAY, pixmap)
    return Image.frombytes(
        "L",
        (pixmap.width, pixmap.height),
        pixmap.samples,
        "raw",
        "L",
        pixmap.stride,
    )


class PdfRasterProvider:
    """
    Raster provider backed by PyMuPDF.

    Use as a context manager; the document stays open for the whole slice
    of pages a worker analyzes.
    """

    def __init__(self, pdf_path: Path) -> None:
        self.pdf_path = Path(pdf_path)
        self._doc: Optional[fitz.Document] = None

    def __enter__(self) -> "PdfRasterProvider":
        self._doc = fitz.open(self.pdf_path)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._doc is not None:
            self._doc.close()
            self._doc = None

    def render(self, page_index: int, resolution: float, high_quality: bool) -> RenderedPage:
        """
        Render one page as displayed (rotation applied).

        Width/height are the unrotated visible area in points; the analyzer
        turns the pixels back using the reported orientation.
        """

        if self._doc is None:
            raise RuntimeError("PdfRasterProvider used outside of a with-block.")

        # Anti-aliasing is a process-wide MuPDF setting; each worker sets it
        # before rendering.
        fitz.TOOLS.set_aa_level(AA_LEVEL_HIGH_QUALITY if high_quality else AA_LEVEL_FAST)

        page = self._doc.load_page(page_index)
        # DPI -> PDF "zoom" factor. PDFs are 72 DPI by default.
        zoom = resolution / 72.0
        pixmap = page.get_pixmap(
            matrix=fitz.Matrix(zoom, zoom),
            colorspace=fitz.csGRAY,
            alpha=False,
        )
        visible = page.cropbox
        return RenderedPage(
            grid=pixmap_to_grid(pixmap),
            width=float(visible.width),
            height=float(visible.height),
            orientation=Orientation.from_degrees(page.rotation),
        )
