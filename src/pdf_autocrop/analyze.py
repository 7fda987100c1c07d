"""
Per-page analysis: raster -> content box (+ header/footer variants).

Why this module exists:
- Keeps the per-page work pure: one RenderedPage in, one PageRecord out.
- Owns the worker pool that runs that work over the whole document.

Pages are independent, so the page range is cut into contiguous slices and
each worker process analyzes one slice with its own raster provider. Results
land in a list that is sized to the page count before any worker starts.
"""

from __future__ import annotations

import os
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Callable, Dict, List, Optional, Tuple

from PIL import Image

from .bands import detect_footer_size, detect_header_size
from .bounds import get_used_bounds, guess_background_color
from .config import CropSettings
from .geometry import (
    BoxVariant,
    Orientation,
    PageRecord,
    Rect,
    RenderedPage,
    rect_to_box,
)


# Undo the displayed rotation so pixels line up with the unrotated page.
# Pillow's ROTATE_* constants turn counter-clockwise.
_UNDO_ORIENTATION = {
    Orientation.ROTATED_90: Image.Transpose.ROTATE_90,
    Orientation.INVERTED: Image.Transpose.ROTATE_180,
    Orientation.ROTATED_270: Image.Transpose.ROTATE_270,
}

# Called once per page slice; returns a context manager with render().
ProviderFactory = Callable[[], object]


def reorient_grid(grid: Image.Image, orientation: Orientation) -> Image.Image:
    """Return a grid in unrotated page orientation (the input is left as is)."""

    method = _UNDO_ORIENTATION.get(orientation)
    if method is None:
        return grid
    return grid.transpose(method)


def _points_to_pixels(points: float, page_extent: float, grid_extent: int) -> int:
    if points <= 0 or page_extent <= 0:
        return 0
    return int(round(points * grid_extent / page_extent))


def analyze_page(index: int, rendered: RenderedPage, settings: CropSettings) -> PageRecord:
    """
    Build the PageRecord for one rendered page.

    Blank pages fall back to the full page so later steps never see a
    zero-size box.
    """

    grid = rendered.grid if rendered.grid.mode == "L" else rendered.grid.convert("L")
    grid = reorient_grid(grid, rendered.orientation)
    page_width, page_height = rendered.width, rendered.height

    background = guess_background_color(grid)
    bounds = get_used_bounds(grid, Rect.of_image(grid), background)
    if bounds.is_empty:
        return PageRecord.full_page(index, page_width, page_height, blank=True)

    def to_box(rect: Rect):
        return rect_to_box(rect, grid.size, page_width, page_height)

    full = to_box(bounds)
    record = PageRecord(
        index=index,
        page_width=page_width,
        page_height=page_height,
        box=full.copy(),
        variants={variant: full.copy() for variant in BoxVariant},
    )

    if settings.crop_header <= 0 and settings.crop_footer <= 0:
        return record

    grid_height = grid.size[1]
    scale_y = page_height / grid_height
    header_px = 0
    footer_px = 0
    if settings.crop_header > 0:
        header_px = detect_header_size(
            grid,
            bounds,
            _points_to_pixels(settings.crop_header, page_height, grid_height),
            background,
            gap_tolerance=settings.band_gap_px,
        )
    if settings.crop_footer > 0:
        footer_px = detect_footer_size(
            grid,
            bounds,
            _points_to_pixels(settings.crop_footer, page_height, grid_height),
            background,
            gap_tolerance=settings.band_gap_px,
        )
    record.header_size = header_px * scale_y
    record.footer_size = footer_px * scale_y

    # Re-scan the indented regions rather than subtracting band heights, so
    # each variant is tight around what is left.
    wanted: Dict[BoxVariant, Tuple[int, int]] = {
        BoxVariant.NO_HEADER: (header_px, 0),
        BoxVariant.NO_FOOTER: (0, footer_px),
        BoxVariant.NO_HEADER_FOOTER: (header_px, footer_px),
    }
    for variant, (top, bottom) in wanted.items():
        if top == 0 and bottom == 0:
            continue
        remaining = get_used_bounds(grid, bounds.indented(top=top, bottom=bottom), background)
        if not remaining.is_empty:
            record.variants[variant] = to_box(remaining)
    return record


def partition_pages(page_count: int, workers: int) -> List[Tuple[int, int]]:
    """
    Cut [0, page_count) into at most `workers` contiguous, disjoint slices.

    Slice sizes differ by at most one page.
    """

    if page_count <= 0:
        return []
    workers = max(1, min(workers, page_count))
    base, extra = divmod(page_count, workers)
    slices: List[Tuple[int, int]] = []
    start = 0
    for position in range(workers):
        end = start + base + (1 if position < extra else 0)
        slices.append((start, end))
        start = end
    return slices


def _analyze_slice(
    provider_factory: ProviderFactory,
    start: int,
    end: int,
    settings: CropSettings,
) -> List[PageRecord]:
    """
    Analyze pages [start, end) with a provider owned by this call.

    A page that raises gets a failure record; the rest of the slice goes on.
    """

    records: List[PageRecord] = []
    with provider_factory() as provider:
        for index in range(start, end):
            try:
                rendered = provider.render(index, settings.resolution, settings.high_quality)
                records.append(analyze_page(index, rendered, settings))
            except Exception as exc:  # recorded on the page and reported by the caller
                records.append(PageRecord.failure(index, f"{type(exc).__name__}: {exc}"))
    return records


def default_worker_count() -> int:
    return os.cpu_count() or 1


def analyze_document(
    provider_factory: ProviderFactory,
    page_count: int,
    settings: CropSettings,
    workers: Optional[int] = None,
) -> List[PageRecord]:
    """
    Analyze every page, in parallel when more than one worker is used.

    `provider_factory` must be picklable (a module-level class or a
    functools.partial of one) because it is sent to worker processes. It is
    called once per slice and must return a context manager exposing
    render(page_index, resolution, high_quality) -> RenderedPage.
    """

    if workers is None or workers <= 0:
        workers = settings.workers if settings.workers > 0 else default_worker_count()

    slots: List[Optional[PageRecord]] = [None] * page_count
    slices = partition_pages(page_count, workers)

    if len(slices) <= 1:
        for start, end in slices:
            slots[start:end] = _analyze_slice(provider_factory, start, end, settings)
    else:
        with ProcessPoolExecutor(max_workers=len(slices)) as pool:
            futures = {
                pool.submit(_analyze_slice, provider_factory, start, end, settings): (start, end)
                for start, end in slices
            }
            for future in as_completed(futures):
                start, end = futures[future]
                slots[start:end] = future.result()

    records: List[PageRecord] = []
    for index, record in enumerate(slots):
        if record is None:
            record = PageRecord.failure(index, "Page was not analyzed.")
        records.append(record)
    return records
