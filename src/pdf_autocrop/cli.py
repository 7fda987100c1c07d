"""
Command-line interface for pdf-autocrop.

This file focuses on parsing arguments and dispatching to the real work.
Keeping this separate makes the code easier to read and test.
"""

from __future__ import annotations

import argparse
import subprocess
import sys
from pathlib import Path
from typing import Any, Dict

from . import __version__
from .config import (
    DEFAULT_AUTOCROP,
    DEFAULT_BAND_SIZE_PT,
    build_settings,
    deep_merge,
    dump_default_config_yaml,
    extract_section,
    load_yaml,
    require_bool,
)
from .utils import UserError, default_output_path, normalize_path


EXAMPLES = """Examples:
  pdf-autocrop "book.pdf"
  pdf-autocrop -i "book.pdf" -o "book_small.pdf" --crop-header --crop-footer 40 --crop-outlier
  pdf-autocrop "scan.pdf" -m 10 --margin-inner 20 -r 150 --high-quality
  pdf-autocrop "book.pdf" --dry-run --verbose
  pdf-autocrop --dump-default-config
  pdf-autocrop "book.pdf" --config "configs\\autocrop.yaml" --manifest "book.manifest.json"
"""

CONFIG_KEYS = set(DEFAULT_AUTOCROP.keys())
EDGE_MARGIN_KEYS = ("margin_top", "margin_bottom", "margin_left", "margin_right")


class _BandSizeAction(argparse.Action):
    """
    Store an optional band size for -ch/-cf.

    A following token that is not a number is the input PDF, so
    `pdf-autocrop -ch book.pdf` crops headers of book.pdf at the default size.
    """

    def __call__(self, parser, namespace, values, option_string=None):
        if isinstance(values, str):
            try:
                values = float(values)
            except ValueError:
                namespace.band_flag_input = values
                values = self.const
        setattr(namespace, self.dest, values)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pdf-autocrop",
        description=(
            "Crop the blank margins of every PDF page, using only rendered "
            "page images, and keep facing pages consistent."
        ),
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=__version__)
    verbosity_group = parser.add_mutually_exclusive_group()
    verbosity_group.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress non-error console logs.",
    )
    verbosity_group.add_argument(
        "--verbose",
        action="store_true",
        help="Show debug-level console logs.",
    )

    parser.add_argument("input", nargs="?", help="Input PDF path.")
    parser.add_argument("-i", "--input", dest="input_option", help="Input PDF path.")
    parser.add_argument(
        "-o",
        "--output",
        default=argparse.SUPPRESS,
        help='Output PDF path (default: input with "-cropped" before the extension).',
    )
    parser.add_argument(
        "-ch",
        "--crop-header",
        dest="crop_header",
        action=_BandSizeAction,
        nargs="?",
        const=DEFAULT_BAND_SIZE_PT,
        default=argparse.SUPPRESS,
        metavar="PT",
        help=f"Try to crop page headers up to PT points high (default: {DEFAULT_BAND_SIZE_PT:g}).",
    )
    parser.add_argument(
        "-cf",
        "--crop-footer",
        dest="crop_footer",
        action=_BandSizeAction,
        nargs="?",
        const=DEFAULT_BAND_SIZE_PT,
        default=argparse.SUPPRESS,
        metavar="PT",
        help=f"Try to crop page footers up to PT points high (default: {DEFAULT_BAND_SIZE_PT:g}).",
    )
    parser.add_argument(
        "-co",
        "--crop-outlier",
        dest="crop_outlier",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Crop pages whose extent is larger than their group's common extent.",
    )
    parser.add_argument(
        "-r",
        "--resolution",
        type=float,
        default=argparse.SUPPRESS,
        metavar="DPI",
        help=f"Resolution of the internal rendering (default: {DEFAULT_AUTOCROP['resolution']:g}).",
    )
    parser.add_argument(
        "--high-quality",
        dest="high_quality",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Render with anti-aliasing (slower).",
    )
    parser.add_argument(
        "-m",
        "--margin",
        type=float,
        default=argparse.SUPPRESS,
        metavar="PT",
        help=f"Margin added to each edge of a cropped page (default: {DEFAULT_AUTOCROP['margin_left']:g}).",
    )
    for edge in ("left", "right", "top", "bottom", "inner", "outer"):
        parser.add_argument(
            f"--margin-{edge}",
            dest=f"margin_{edge}",
            type=float,
            default=argparse.SUPPRESS,
            metavar="PT",
            help=f"Margin for the {edge} edge (overrides --margin).",
        )
    parser.add_argument(
        "--workers",
        type=int,
        default=argparse.SUPPRESS,
        help="Worker processes for page analysis (default: one per CPU).",
    )
    parser.add_argument(
        "--config",
        default=argparse.SUPPRESS,
        help="Optional YAML config with autocrop settings.",
    )
    parser.add_argument(
        "--dump-default-config",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Print default YAML config and exit.",
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Overwrite an existing output (or the input itself).",
    )
    parser.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Analyze and report boxes without writing files.",
    )
    parser.add_argument(
        "--manifest",
        default=argparse.SUPPRESS,
        help="Write a JSON manifest of the run to this path.",
    )
    return parser


def _build_effective_config(args: argparse.Namespace) -> tuple[Dict[str, Any], Path | None]:
    """Resolve defaults < YAML config < explicit CLI flags."""

    effective = deep_merge(DEFAULT_AUTOCROP, {})
    config_path: Path | None = None
    if hasattr(args, "config"):
        config_path = normalize_path(args.config)
        effective = deep_merge(effective, extract_section(load_yaml(config_path)))

    raw_args = vars(args)
    cli_overrides: Dict[str, Any] = {}
    if "margin" in raw_args:
        for key in EDGE_MARGIN_KEYS:
            cli_overrides[key] = raw_args["margin"]
    for key in CONFIG_KEYS:
        if key in raw_args:
            cli_overrides[key] = raw_args[key]

    effective = deep_merge(effective, cli_overrides)
    return effective, config_path


def _resolve_input(args: argparse.Namespace) -> Path:
    given = [
        value
        for value in (args.input, args.input_option, getattr(args, "band_flag_input", None))
        if value
    ]
    if len(given) > 1:
        raise UserError("Give the input PDF either positionally or with --input, not both.")
    if not given:
        raise UserError("An input PDF is required (see --help).")
    return normalize_path(given[0])


def _verbosity_from_args(args: argparse.Namespace) -> str:
    """Resolve global verbosity mode from top-level flags."""

    if getattr(args, "quiet", False):
        return "quiet"
    if getattr(args, "verbose", False):
        return "verbose"
    return "normal"


def _command_string(argv: list[str]) -> str:
    """Reconstruct a command string for the manifest."""

    # list2cmdline produces a Windows-friendly command representation.
    return subprocess.list2cmdline(argv)


def _command_argv_for_manifest(argv: list[str] | None) -> list[str]:
    """Choose argv used to record manifest command faithfully."""

    if argv is None:
        return list(sys.argv)
    return [sys.argv[0], *argv]


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        if getattr(args, "dump_default_config", False):
            print(dump_default_config_yaml())
            return 0

        pdf_path = _resolve_input(args)
        effective_cfg, config_path = _build_effective_config(args)
        settings = build_settings(effective_cfg)

        output_value = effective_cfg.get("output")
        out_pdf = (
            normalize_path(str(output_value)) if output_value else default_output_path(pdf_path)
        )
        manifest_value = effective_cfg.get("manifest")
        manifest_path = normalize_path(str(manifest_value)) if manifest_value else None

        options = deep_merge(effective_cfg, {})
        options["version"] = __version__
        options["verbosity"] = _verbosity_from_args(args)
        if config_path is not None:
            options["config_path"] = str(config_path)

        from .crop import autocrop_pdf

        autocrop_pdf(
            pdf_path=pdf_path,
            out_pdf=out_pdf,
            settings=settings,
            overwrite=require_bool(effective_cfg["overwrite"], "config.overwrite"),
            dry_run=require_bool(effective_cfg["dry_run"], "config.dry_run"),
            manifest_path=manifest_path,
            command_string=_command_string(_command_argv_for_manifest(argv)),
            options=options,
        )
        return 0
    except UserError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
