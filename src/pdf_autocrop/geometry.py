"""
Geometry types shared by the scanner, analyzer, normalizer and writer.

Two coordinate spaces meet here:
- pixel space (Rect): origin top-left, rows grow downwards, right/bottom exclusive
- page space (Box): PDF points, origin bottom-left, y grows upwards
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Optional, Tuple

from PIL import Image


@dataclass(frozen=True)
class Rect:
    """A pixel rectangle. A zero width or height means "no content found"."""

    left: int
    top: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    @classmethod
    def of_image(cls, image: Image.Image) -> "Rect":
        width, height = image.size
        return cls(0, 0, width, height)

    def clipped(self, width: int, height: int) -> "Rect":
        """Return this rectangle limited to a width x height grid."""

        left = min(max(0, self.left), width)
        top = min(max(0, self.top), height)
        right = max(left, min(width, self.right))
        bottom = max(top, min(height, self.bottom))
        return Rect(left, top, right - left, bottom - top)

    def indented(self, top: int = 0, bottom: int = 0) -> "Rect":
        """Shrink from the top and/or bottom edge; never below zero height."""

        height = max(0, self.height - top - bottom)
        return Rect(self.left, self.top + top, self.width, height)

    def as_pil_box(self) -> Tuple[int, int, int, int]:
        return (self.left, self.top, self.right, self.bottom)


@dataclass
class Box:
    """A page-space rectangle in points (lower-left origin)."""

    llx: float
    lly: float
    urx: float
    ury: float

    @property
    def width(self) -> float:
        return self.urx - self.llx

    @property
    def height(self) -> float:
        return self.ury - self.lly

    def copy(self) -> "Box":
        return replace(self)

    def expand(self, left: float, bottom: float, right: float, top: float) -> None:
        """Grow outward in place. Negative values shrink."""

        self.llx -= left
        self.lly -= bottom
        self.urx += right
        self.ury += top

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.llx, self.lly, self.urx, self.ury)


class Orientation(Enum):
    """How the raster provider displayed the page, in clockwise degrees."""

    NORMAL = 0
    ROTATED_90 = 90
    INVERTED = 180
    ROTATED_270 = 270

    @classmethod
    def from_degrees(cls, degrees: int) -> "Orientation":
        return cls(int(degrees) % 360)


class BoxVariant(Enum):
    """Which precomputed box a page currently uses."""

    FULL = "full"
    NO_HEADER = "no_header"
    NO_FOOTER = "no_footer"
    NO_HEADER_FOOTER = "no_header_footer"


@dataclass
class RenderedPage:
    """What the raster provider hands to the analyzer for one page."""

    grid: Image.Image
    width: float
    height: float
    orientation: Orientation = Orientation.NORMAL


def rect_to_box(rect: Rect, grid_size: Tuple[int, int], page_width: float, page_height: float) -> Box:
    """
    Convert a pixel rectangle to a page-space box.

    Each axis has its own scale (page dimension / grid dimension) and the
    vertical axis is flipped because grid row 0 is the top of the page.
    """

    grid_width, grid_height = grid_size
    scale_x = page_width / grid_width
    scale_y = page_height / grid_height
    return Box(
        llx=rect.left * scale_x,
        lly=page_height - rect.bottom * scale_y,
        urx=rect.right * scale_x,
        ury=page_height - rect.top * scale_y,
    )


@dataclass
class PageRecord:
    """
    Per-page analysis result.

    `box` is the working box. The analyzer fills it with the full content
    box, the normalizer may swap it for one of `variants` and clamp it, and
    the margin step expands it before the writer consumes it.
    """

    index: int
    page_width: float
    page_height: float
    box: Box
    header_size: float = 0.0
    footer_size: float = 0.0
    variants: Dict[BoxVariant, Box] = field(default_factory=dict)
    variant: BoxVariant = BoxVariant.FULL
    blank: bool = False
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def parity(self) -> int:
        return self.index % 2

    def select_variant(self, variant: BoxVariant) -> None:
        """Replace the working box with a precomputed variant."""

        if variant not in self.variants:
            raise KeyError(f"Page {self.index + 1} has no {variant.value} box.")
        self.box = self.variants[variant].copy()
        self.variant = variant

    @classmethod
    def full_page(cls, index: int, page_width: float, page_height: float, blank: bool = False) -> "PageRecord":
        """A record that keeps the whole page (used for blank pages)."""

        full = Box(0.0, 0.0, page_width, page_height)
        return cls(
            index=index,
            page_width=page_width,
            page_height=page_height,
            box=full.copy(),
            variants={variant: full.copy() for variant in BoxVariant},
            blank=blank,
        )

    @classmethod
    def failure(cls, index: int, message: str) -> "PageRecord":
        """A record for a page whose rendering or analysis raised."""

        return cls(
            index=index,
            page_width=0.0,
            page_height=0.0,
            box=Box(0.0, 0.0, 0.0, 0.0),
            error=message,
        )

    def to_summary(self) -> Dict[str, object]:
        """JSON-friendly view for the run manifest."""

        summary: Dict[str, object] = {
            "page": self.index + 1,
            "box": [round(value, 3) for value in self.box.as_tuple()],
            "variant": self.variant.value,
            "header_size": round(self.header_size, 3),
            "footer_size": round(self.footer_size, 3),
        }
        if self.blank:
            summary["blank"] = True
        if self.error is not None:
            summary["error"] = self.error
        return summary
