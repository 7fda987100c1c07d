"""
Shared utility helpers.

Path checks and numeric validation live here so the raster and box code
never has to format a user-facing message.
"""

from __future__ import annotations

import math
from pathlib import Path


class UserError(Exception):
    """Raised for user-facing problems that should show a clear message."""


OUTPUT_SUFFIX = "-cropped"


def normalize_path(value: str) -> Path:
    """
    Turn a command-line or config value into a Path.

    Relative paths stay relative so messages and manifests show what the
    user typed.
    """

    return Path(value).expanduser()


def default_output_path(input_path: Path) -> Path:
    """
    Insert the output suffix before the extension.

    Example: "book.pdf" -> "book-cropped.pdf", "notes" -> "notes-cropped".
    """

    return input_path.with_name(f"{input_path.stem}{OUTPUT_SUFFIX}{input_path.suffix}")


def ensure_file_exists(path: Path, label: str) -> Path:
    """Validate that a path exists and is a file."""

    if not path.exists():
        raise UserError(f"{label} not found: {path}")
    if not path.is_file():
        raise UserError(f"{label} is not a file: {path}")
    return path


def ensure_parent_dir(path: Path) -> None:
    """Create the folder a file is about to be written into."""

    path.parent.mkdir(parents=True, exist_ok=True)


def ensure_file_path(path: Path, label: str) -> None:
    """Refuse a path that names an existing directory."""

    if path.is_dir():
        raise UserError(f"{label} is a directory, not a file: {path}")


def ensure_pdf_has_pages(total_pages: int) -> None:
    if total_pages <= 0:
        raise UserError("PDF has no pages.")


def validate_positive(value: float, label: str) -> float:
    """Common validation for options like --resolution."""

    if not math.isfinite(value) or value <= 0:
        raise UserError(f"{label} must be a positive number.")
    return value


def validate_non_negative(value: float, label: str) -> float:
    """Validation for sizes that may be zero (band heights, tolerances)."""

    if not math.isfinite(value) or value < 0:
        raise UserError(f"{label} must be >= 0.")
    return value


def validate_finite(value: float, label: str) -> float:
    """Margins may be negative (to crop further) but must be real numbers."""

    if not math.isfinite(value):
        raise UserError(f"{label} must be a finite number.")
    return value
