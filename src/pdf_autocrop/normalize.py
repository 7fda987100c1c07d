"""
Normalize page boxes across each parity group (odd / even pages).

Two passes per group:
- header/footer substitution: if the group shows a consistent band height,
  pages whose own band matches switch to the box that excludes it
- extent clamping (crop_outlier): left/right edges that reach further out
  than the group's common extent are pulled back in

All statistics use math.fsum and order-free selections, so shuffling the
pages of a group never changes the outcome.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .config import CropSettings
from .geometry import BoxVariant, PageRecord


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; 0.0 for an empty sequence."""

    if len(values) < 1:
        return 0.0
    return math.fsum(values) / len(values)


def standard_deviation(values: Sequence[float], center: float) -> float:
    """Sample standard deviation around `center`; 0.0 below two samples."""

    if len(values) < 2:
        return 0.0
    return math.sqrt(math.fsum((value - center) ** 2 for value in values) / (len(values) - 1))


def trimmed_statistics(values: Sequence[float], iterations: int) -> Tuple[float, float]:
    """
    Mean and deviation after repeatedly dropping samples beyond one deviation.

    A zero deviation means every remaining sample is equal, so nothing is an
    outlier and trimming stops. Trimming also stops if it would drop every
    sample.
    """

    samples = list(values)
    center = mean(samples)
    deviation = standard_deviation(samples, center)
    for _ in range(max(0, iterations)):
        if deviation == 0.0:
            break
        kept = [value for value in samples if abs(value - center) <= deviation]
        if not kept or len(kept) == len(samples):
            break
        samples = kept
        center = mean(samples)
        deviation = standard_deviation(samples, center)
    return center, deviation


@dataclass
class BandStats:
    """Typical band height in a group and whether it is trustworthy."""

    samples: int = 0
    mean: float = 0.0
    deviation: float = 0.0
    significant: bool = False

    @property
    def tolerance(self) -> float:
        # Floor at one point so identical samples still match.
        return max(self.deviation, 1.0)

    def matches(self, size: float) -> bool:
        return self.significant and size > 0 and abs(size - self.mean) <= self.tolerance

    def to_summary(self) -> Dict[str, object]:
        return {
            "samples": self.samples,
            "mean": round(self.mean, 3),
            "deviation": round(self.deviation, 3),
            "significant": self.significant,
        }


def band_statistics(sizes: Sequence[float], iterations: int, significance: float) -> BandStats:
    """Robust statistics over the nonzero band sizes of a group."""

    detected = [size for size in sizes if size > 0]
    if not detected:
        return BandStats()
    center, deviation = trimmed_statistics(detected, iterations)
    if deviation == 0.0:
        significant = center > 0
    else:
        significant = center / deviation > significance
    return BandStats(
        samples=len(detected),
        mean=center,
        deviation=deviation,
        significant=significant,
    )


@dataclass
class GroupSummary:
    """What normalization decided for one parity group."""

    parity: int
    pages: int = 0
    header: BandStats = field(default_factory=BandStats)
    footer: BandStats = field(default_factory=BandStats)
    substituted: int = 0
    common_left: Optional[float] = None
    common_right: Optional[float] = None
    clamped: int = 0

    def to_summary(self) -> Dict[str, object]:
        return {
            "group": "even" if self.parity == 0 else "odd",
            "pages": self.pages,
            "header": self.header.to_summary(),
            "footer": self.footer.to_summary(),
            "substituted": self.substituted,
            "common_left": self.common_left,
            "common_right": self.common_right,
            "clamped": self.clamped,
        }


def substitute_bands(group: List[PageRecord], settings: CropSettings, summary: GroupSummary) -> None:
    """Swap in header/footer-free boxes for pages matching the group's band."""

    samples = [record for record in group if not record.blank]
    if settings.crop_header > 0:
        summary.header = band_statistics(
            [record.header_size for record in samples],
            settings.outlier_iterations,
            settings.band_significance,
        )
    if settings.crop_footer > 0:
        summary.footer = band_statistics(
            [record.footer_size for record in samples],
            settings.outlier_iterations,
            settings.band_significance,
        )

    for record in samples:
        drop_header = summary.header.matches(record.header_size)
        drop_footer = summary.footer.matches(record.footer_size)
        if drop_header and drop_footer:
            record.select_variant(BoxVariant.NO_HEADER_FOOTER)
        elif drop_header:
            record.select_variant(BoxVariant.NO_HEADER)
        elif drop_footer:
            record.select_variant(BoxVariant.NO_FOOTER)
        else:
            continue
        summary.substituted += 1


def _common_edge(
    values: Sequence[float],
    iterations: int,
    tolerance: float,
    outermost: Callable[[Sequence[float]], float],
) -> Optional[float]:
    center, _ = trimmed_statistics(values, iterations)
    typical = [value for value in values if abs(value - center) <= tolerance]
    if not typical:
        return None
    return outermost(typical)


def clamp_extents(group: List[PageRecord], settings: CropSettings, summary: GroupSummary) -> None:
    """
    Pull left/right edges of outlier pages in to the group's common extent.

    Only ever shrinks a box; an undersized page is never grown.
    """

    samples = [record for record in group if not record.blank]
    if not samples:
        return

    common_left = _common_edge(
        [record.box.llx for record in samples],
        settings.outlier_iterations,
        settings.extent_tolerance,
        min,
    )
    common_right = _common_edge(
        [record.box.urx for record in samples],
        settings.outlier_iterations,
        settings.extent_tolerance,
        max,
    )
    summary.common_left = common_left
    summary.common_right = common_right
    if common_left is None or common_right is None or common_left >= common_right:
        return

    for record in group:
        box = record.box
        llx = max(box.llx, common_left)
        urx = min(box.urx, common_right)
        if llx >= urx:
            continue
        if (llx, urx) != (box.llx, box.urx):
            box.llx, box.urx = llx, urx
            summary.clamped += 1


def normalize_boxes(records: List[PageRecord], settings: CropSettings) -> List[GroupSummary]:
    """
    Run both normalization passes on the even and the odd page group.

    Failed pages are skipped entirely; blank pages do not contribute to the
    statistics but are still clamped.
    """

    summaries: List[GroupSummary] = []
    for parity in (0, 1):
        group = [record for record in records if record.parity == parity and not record.failed]
        summary = GroupSummary(parity=parity, pages=len(group))
        if settings.crop_header > 0 or settings.crop_footer > 0:
            substitute_bands(group, settings, summary)
        if settings.crop_outlier:
            clamp_extents(group, settings, summary)
        summaries.append(summary)
    return summaries
