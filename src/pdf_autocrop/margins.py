"""
Expand finalized boxes by the configured margins.

Margins move edges outward (keep more of the page). Inner/outer margins model
a bound book: pages 1, 3, 5, ... (indices 0, 2, 4, ...) are right-hand pages
whose spine is on the left; pages 2, 4, 6, ... (indices 1, 3, 5, ...) have it
on the right.
"""

from __future__ import annotations

from typing import Iterable

from .config import CropSettings
from .geometry import PageRecord


def apply_margins(records: Iterable[PageRecord], settings: CropSettings) -> None:
    """Expand every analyzed page's box in place."""

    for record in records:
        if record.failed:
            continue
        if record.parity == 0:
            left = settings.margin_left + settings.margin_inner
            right = settings.margin_right + settings.margin_outer
        else:
            left = settings.margin_left + settings.margin_outer
            right = settings.margin_right + settings.margin_inner
        record.box.expand(
            left=left,
            bottom=settings.margin_bottom,
            right=right,
            top=settings.margin_top,
        )
