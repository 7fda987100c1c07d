"""
Detect a header or footer band above/below the page body.

A plain "first content row" scan stops at the first line of text, whether
that line is a running header or the start of the body. Instead we indent
the content bounds a little more on every probe and re-scan:

- if the re-scan lands further in than the probe line, the probe crossed
  into blank space (a gap), so the probed size is a band candidate and the
  probe jumps just past the content that follows the gap
- once probing runs more than `gap_tolerance` pixels past the last
  candidate without finding another gap, the band is complete

Closely spaced header lines therefore merge into one band, while a band
followed by a clear gap is reported at exactly its own height.
"""

from __future__ import annotations

from PIL import Image

from .bounds import get_used_bounds
from .geometry import Rect


DEFAULT_GAP_TOLERANCE_PX = 5


def detect_header_size(
    grid: Image.Image,
    bounds: Rect,
    max_size: int,
    background: int,
    gap_tolerance: int = DEFAULT_GAP_TOLERANCE_PX,
) -> int:
    """Return the header band height in pixels (0 when none is found)."""

    best = 0
    size = 1
    while size <= max_size:
        probe = bounds.indented(top=size)
        if probe.is_empty:
            break
        found = get_used_bounds(grid, probe, background)
        if found.is_empty:
            break

        reached = found.top - bounds.top
        if reached > size:
            best = size
            size = reached + 1
            continue
        if best and size > best + gap_tolerance:
            break
        size += 1
    return best


def detect_footer_size(
    grid: Image.Image,
    bounds: Rect,
    max_size: int,
    background: int,
    gap_tolerance: int = DEFAULT_GAP_TOLERANCE_PX,
) -> int:
    """Mirror of detect_header_size, probing upwards from the bottom edge."""

    best = 0
    size = 1
    while size <= max_size:
        probe = bounds.indented(bottom=size)
        if probe.is_empty:
            break
        found = get_used_bounds(grid, probe, background)
        if found.is_empty:
            break

        reached = bounds.bottom - found.bottom
        if reached > size:
            best = size
            size = reached + 1
            continue
        if best and size > best + gap_tolerance:
            break
        size += 1
    return best
