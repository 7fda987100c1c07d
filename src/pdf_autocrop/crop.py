"""
Auto-crop a PDF end to end.

Why this module exists:
- Keeps the run flow (validate -> analyze -> normalize -> margins -> write)
  separate from CLI parsing.
- Owns the manifest recorder, so every step reports through one place.
"""

from __future__ import annotations

from functools import partial
from pathlib import Path
from typing import Dict, List, Optional

from .analyze import analyze_document
from .config import CropSettings
from .geometry import PageRecord
from .manifest import ManifestRecorder
from .margins import apply_margins
from .normalize import normalize_boxes
from .output import write_cropped_pdf
from .render import PdfRasterProvider, count_pages
from .utils import UserError, ensure_file_exists, ensure_file_path


def _format_box(record: PageRecord) -> str:
    return "({:.1f}, {:.1f}, {:.1f}, {:.1f})".format(*record.box.as_tuple())


def _check_output(pdf_path: Path, out_pdf: Path, overwrite: bool) -> None:
    """Refuse to clobber files unless --overwrite was given."""

    ensure_file_path(out_pdf, "Output PDF")
    if out_pdf.resolve() == pdf_path.resolve():
        if not overwrite:
            raise UserError(
                "Output PDF is the same as input. Use --overwrite to replace the input."
            )
        return
    if out_pdf.exists() and not overwrite:
        raise UserError(f"Output PDF already exists: {out_pdf}. Use --overwrite to replace it.")


def _report_pages(recorder: ManifestRecorder, records: List[PageRecord]) -> None:
    for record in records:
        page_number = record.index + 1
        if record.failed:
            recorder.log(f"Page {page_number}: analysis failed: {record.error}", level="error")
            recorder.add_action(
                action="analyze_page", status="failed", page=page_number, error=record.error
            )
            continue
        if record.blank:
            recorder.log(f"Page {page_number}: no content found; keeping full page.", level="warning")
        else:
            recorder.log(
                f"Page {page_number}: content {_format_box(record)} "
                f"header={record.header_size:.1f}pt footer={record.footer_size:.1f}pt",
                level="debug",
            )
        recorder.add_action(
            action="analyze_page",
            status="blank" if record.blank else "ok",
            page=page_number,
            header_size=round(record.header_size, 3),
            footer_size=round(record.footer_size, 3),
        )


def autocrop_pdf(
    pdf_path: Path,
    out_pdf: Path,
    settings: CropSettings,
    overwrite: bool,
    dry_run: bool,
    manifest_path: Optional[Path],
    command_string: str,
    options: Dict[str, object],
) -> List[PageRecord]:
    """
    Compute a crop box for every page and write the cropped PDF.

    Nothing is written when the input cannot be opened or when dry_run is
    set. Returns the finalized page records.
    """

    recorder = ManifestRecorder(
        tool_name="pdf-autocrop",
        tool_version=str(options.get("version", "0.0.0")),
        command=command_string,
        options=options,
        inputs={"pdf": str(pdf_path)},
        outputs={"out_pdf": str(out_pdf)},
        dry_run=dry_run,
        verbosity=str(options.get("verbosity", "normal")),
    )
    if manifest_path is not None:
        recorder.outputs["manifest"] = str(manifest_path)

    total_pages = 0
    records: List[PageRecord] = []
    error_message: str | None = None
    summary: Dict[str, object] = {
        "pages_analyzed": 0,
        "pages_failed": 0,
        "resolution": settings.resolution,
        "output_pdf": str(out_pdf),
    }

    try:
        ensure_file_exists(pdf_path, "PDF")
        _check_output(pdf_path, out_pdf, overwrite)

        total_pages = count_pages(pdf_path)
        recorder.inputs["page_count"] = total_pages
        recorder.log(
            f"Analyzing {total_pages} page(s) from {pdf_path} at {settings.resolution:g} DPI."
        )

        records = analyze_document(
            partial(PdfRasterProvider, pdf_path),
            total_pages,
            settings,
        )
        _report_pages(recorder, records)
        if all(record.failed for record in records):
            raise UserError(f"No page of {pdf_path} could be analyzed.")

        for group in normalize_boxes(records, settings):
            details = group.to_summary()
            recorder.groups.append(details)
            recorder.add_action(action="normalize_group", status="ok", **details)
            recorder.log(
                f"{details['group'].capitalize()} pages: {group.substituted} header/footer "
                f"substitution(s), {group.clamped} clamped edge(s).",
                level="debug",
            )

        apply_margins(records, settings)
        recorder.pages = [record.to_summary() for record in records]

        if dry_run:
            for record in records:
                if not record.failed:
                    recorder.log(
                        f"[dry-run] Page {record.index + 1} would use box {_format_box(record)}"
                    )
            recorder.add_action(action="autocrop", status="dry-run", output=str(out_pdf))
        else:
            written = write_cropped_pdf(pdf_path, out_pdf, records)
            for page_index, rect in written:
                recorder.add_action(
                    action="write_page",
                    status="written",
                    page=page_index + 1,
                    box=[round(value, 3) for value in rect],
                )
            recorder.log(f"Wrote cropped PDF to {out_pdf}")
    except Exception as exc:  # includes validation, PyMuPDF and worker errors
        if isinstance(exc, UserError):
            error_message = str(exc)
        else:
            error_message = f"Failed to crop PDF {pdf_path}: {exc}"
        recorder.log(error_message, level="error")
        recorder.add_action(action="autocrop", status="error", error=error_message)
        if isinstance(exc, UserError):
            raise
        raise UserError(error_message) from exc
    finally:
        failed = sum(1 for record in records if record.failed)
        summary["pages_analyzed"] = len(records) - failed
        summary["pages_failed"] = failed
        if total_pages > 0:
            summary["page_count"] = total_pages
        summary["status"] = "error" if error_message else "ok"
        if error_message is not None:
            summary["error"] = error_message
        recorder.write_manifest(manifest_path, summary)

    return records
