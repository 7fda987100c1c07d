"""
Run logging and the optional JSON manifest.

Why this exists:
- Console messages go through one place so verbosity is handled consistently.
- A run can leave a manifest with options, per-group statistics, per-page
  boxes and the log timeline, but only when one was asked for: by default the
  output PDF is the only file a run writes.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
from pathlib import Path
import sys
from typing import Any, Dict, List, Optional, TextIO

from .utils import ensure_parent_dir


MANIFEST_FORMAT = 1

LEVELS_BY_VERBOSITY = {
    "quiet": ("error",),
    "normal": ("info", "warning", "error"),
    "verbose": ("debug", "info", "warning", "error"),
}


def _utc_stamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ManifestRecorder:
    """
    Timeline of one autocrop run.

    Pages and groups are filled in by the run once normalization is done;
    `log` and `add_action` may be called at any point.
    """

    tool_name: str
    tool_version: str
    command: str
    options: Dict[str, Any]
    inputs: Dict[str, Any]
    outputs: Dict[str, Any]
    dry_run: bool
    verbosity: str = "normal"
    console_stream: TextIO = field(default_factory=lambda: sys.stderr)
    started_at: str = field(default_factory=_utc_stamp)
    logs: List[Dict[str, Any]] = field(default_factory=list)
    actions: List[Dict[str, Any]] = field(default_factory=list)
    groups: List[Dict[str, Any]] = field(default_factory=list)
    pages: List[Dict[str, Any]] = field(default_factory=list)

    def log(self, message: str, level: str = "info") -> None:
        """Keep the message for the manifest; echo it if verbosity allows."""

        self.logs.append({"timestamp": _utc_stamp(), "level": level, "message": message})

        shown = LEVELS_BY_VERBOSITY.get(self.verbosity, LEVELS_BY_VERBOSITY["normal"])
        if level in shown:
            prefix = f"[{level}] " if self.verbosity == "verbose" else ""
            print(f"{prefix}{message}", file=self.console_stream)

    def add_action(self, action: str, status: str, **details: Any) -> None:
        """
        Record one step of the run.

        Actions: analyze_page, normalize_group, write_page, autocrop.
        """

        self.actions.append(
            {"timestamp": _utc_stamp(), "action": action, "status": status, **details}
        )

    def action_counts(self) -> Dict[str, int]:
        """How many actions ended in each status (ok, failed, written, ...)."""

        return dict(Counter(entry.get("status", "unknown") for entry in self.actions))

    def build_manifest(self, summary: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "format": MANIFEST_FORMAT,
            "tool": self.tool_name,
            "version": self.tool_version,
            "command": self.command,
            "started_at": self.started_at,
            "ended_at": _utc_stamp(),
            "options": self.options,
            "inputs": self.inputs,
            "outputs": self.outputs,
            "summary": summary,
            "groups": self.groups,
            "pages": self.pages,
            "action_counts": self.action_counts(),
            "actions": self.actions,
            "logs": self.logs,
        }

    def write_manifest(self, path: Optional[Path], summary: Dict[str, Any]) -> None:
        """Write the manifest when a path was requested. Dry-runs only log."""

        if path is None:
            return
        if self.dry_run:
            self.log(f"[dry-run] Would write manifest to {path}")
            return

        ensure_parent_dir(path)
        with path.open("w", encoding="utf-8") as handle:
            json.dump(self.build_manifest(summary), handle, indent=2, ensure_ascii=True)
