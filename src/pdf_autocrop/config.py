"""
Configuration helpers for YAML-backed crop options.

Precedence is defaults < YAML config < explicit CLI flags. The merged mapping
is turned into a frozen CropSettings so the analysis code (which also runs in
worker processes) only ever sees validated values.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .utils import (
    UserError,
    ensure_file_exists,
    validate_finite,
    validate_non_negative,
    validate_positive,
)


CONFIG_SECTION = "autocrop"

# Used when -ch/-cf are given without a value.
DEFAULT_BAND_SIZE_PT = 30.0

DEFAULT_AUTOCROP: dict[str, Any] = {
    "output": None,
    "crop_header": 0.0,
    "crop_footer": 0.0,
    "crop_outlier": False,
    "resolution": 72.0,
    "high_quality": False,
    "margin_top": 5.0,
    "margin_bottom": 5.0,
    "margin_left": 5.0,
    "margin_right": 5.0,
    "margin_inner": 0.0,
    "margin_outer": 0.0,
    "band_gap_px": 5,
    "band_significance": 3.0,
    "outlier_iterations": 3,
    "extent_tolerance": 1.0,
    "workers": 0,
    "overwrite": False,
    "dry_run": False,
    "manifest": None,
}


@dataclass(frozen=True)
class CropSettings:
    """Validated options for analysis, normalization and margins."""

    crop_header: float = 0.0
    crop_footer: float = 0.0
    crop_outlier: bool = False
    resolution: float = 72.0
    high_quality: bool = False
    margin_top: float = 5.0
    margin_bottom: float = 5.0
    margin_left: float = 5.0
    margin_right: float = 5.0
    margin_inner: float = 0.0
    margin_outer: float = 0.0
    band_gap_px: int = 5
    band_significance: float = 3.0
    outlier_iterations: int = 3
    extent_tolerance: float = 1.0
    workers: int = 0


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file into a dictionary."""

    ensure_file_exists(path, "Config file")
    try:
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise UserError(f"Failed to parse YAML config {path}: {exc}") from exc
    except OSError as exc:
        raise UserError(f"Failed to read config {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise UserError(f"Config {path} must contain a YAML mapping/object at top level.")
    return loaded


def deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """
    Recursively merge dictionaries where overlay values win.
    """

    merged = deepcopy(base)
    for key, value in overlay.items():
        if (
            key in merged
            and isinstance(merged[key], dict)
            and isinstance(value, dict)
        ):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def validate_keys(cfg: dict[str, Any], allowed: set[str], ctx: str) -> None:
    """
    Validate dictionary keys and fail fast on unknown entries.
    """

    unknown = sorted(key for key in cfg.keys() if key not in allowed)
    if unknown:
        allowed_list = ", ".join(sorted(allowed))
        unknown_list = ", ".join(unknown)
        raise UserError(
            f"Unknown keys in {ctx}: {unknown_list}. Allowed keys: {allowed_list}."
        )


def extract_section(loaded: dict[str, Any]) -> dict[str, Any]:
    """Support either root config keys or an `autocrop:` wrapper."""

    allowed = set(DEFAULT_AUTOCROP.keys())
    if CONFIG_SECTION in loaded:
        section = loaded[CONFIG_SECTION]
        if not isinstance(section, dict):
            raise UserError(f"config.{CONFIG_SECTION} must be a mapping/object.")
        validate_keys(section, allowed, f"config.{CONFIG_SECTION}")
        return section

    validate_keys(loaded, allowed, "config")
    return loaded


def dump_default_config_yaml() -> str:
    """Serialize wrapped defaults as YAML."""

    return yaml.safe_dump({CONFIG_SECTION: DEFAULT_AUTOCROP}, sort_keys=False).rstrip()


def require_bool(value: Any, key: str) -> bool:
    """Require a strict boolean value from config/CLI merge output."""

    if isinstance(value, bool):
        return value
    raise UserError(f"{key} must be true or false.")


def _require_number(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise UserError(f"{key} must be a number.")
    return float(value)


def _require_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise UserError(f"{key} must be an integer.")
    return value


def build_settings(cfg: dict[str, Any]) -> CropSettings:
    """Validate an effective config mapping and freeze it."""

    def number(key: str) -> float:
        return _require_number(cfg[key], f"config.{key}")

    def integer(key: str) -> int:
        value = _require_int(cfg[key], f"config.{key}")
        validate_non_negative(value, f"config.{key}")
        return value

    margins = {
        key: validate_finite(number(key), f"config.{key}")
        for key in (
            "margin_top",
            "margin_bottom",
            "margin_left",
            "margin_right",
            "margin_inner",
            "margin_outer",
        )
    }

    return CropSettings(
        crop_header=validate_non_negative(number("crop_header"), "config.crop_header"),
        crop_footer=validate_non_negative(number("crop_footer"), "config.crop_footer"),
        crop_outlier=require_bool(cfg["crop_outlier"], "config.crop_outlier"),
        resolution=validate_positive(number("resolution"), "config.resolution"),
        high_quality=require_bool(cfg["high_quality"], "config.high_quality"),
        band_gap_px=integer("band_gap_px"),
        band_significance=validate_non_negative(
            number("band_significance"), "config.band_significance"
        ),
        outlier_iterations=integer("outlier_iterations"),
        extent_tolerance=validate_non_negative(
            number("extent_tolerance"), "config.extent_tolerance"
        ),
        workers=integer("workers"),
        **margins,
    )
