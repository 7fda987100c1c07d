"""
Find the rectangle that encloses non-background pixels.

The scan shrinks a search rectangle from each side:
- rows from the top down, then from the bottom up
- columns from the left and right, restricted to the rows already kept

Each side stops at the first line holding a pixel that differs from the
background, so a page is visited at most once per side.
"""

from __future__ import annotations

from typing import Optional, Tuple

from PIL import Image

from .geometry import Rect


def guess_background_color(grid: Image.Image) -> int:
    """
    Estimate the page background from the four corners of the full grid.

    The lightest corner wins, so a single dark corner (a scan artifact or a
    bleed image) does not turn the whole page into "content".
    """

    width, height = grid.size
    if width <= 0 or height <= 0:
        return 255
    corners = [
        (0, 0),
        (width - 1, 0),
        (0, height - 1),
        (width - 1, height - 1),
    ]
    return max(int(grid.getpixel(corner)) for corner in corners)


def _is_background(grid: Image.Image, box: Tuple[int, int, int, int], background: int) -> bool:
    """True when every pixel inside the PIL box equals the background."""

    low, high = grid.crop(box).getextrema()
    return low == background and high == background


def get_used_bounds(
    grid: Image.Image,
    search: Optional[Rect] = None,
    background: Optional[int] = None,
) -> Rect:
    """
    Return the minimal rectangle enclosing non-background pixels.

    `search` limits the scan (defaults to the whole grid) and is clipped to
    the grid first. An all-background region returns a zero-size rectangle
    anchored at the search origin.
    """

    if grid.mode != "L":
        grid = grid.convert("L")

    width, height = grid.size
    region = (search or Rect.of_image(grid)).clipped(width, height)
    empty = Rect(region.left, region.top, 0, 0)
    if region.is_empty:
        return empty

    if background is None:
        background = guess_background_color(grid)

    left, right = region.left, region.right
    top, bottom = region.top, region.bottom

    while top < bottom and _is_background(grid, (left, top, right, top + 1), background):
        top += 1
    if top == bottom:
        return empty

    while bottom - 1 > top and _is_background(grid, (left, bottom - 1, right, bottom), background):
        bottom -= 1

    # Some column in [top, bottom) holds content, so left stops before right.
    while left < right and _is_background(grid, (left, top, left + 1, bottom), background):
        left += 1
    while right - 1 > left and _is_background(grid, (right - 1, top, right, bottom), background):
        right -= 1

    return Rect(left, top, right - left, bottom - top)
