"""JSON export of check reports for external result aggregators."""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path

    from loadcheck.metrics.models import CheckReport


def report_to_dict(report: CheckReport) -> dict[str, Any]:
    """Convert a report to a JSON-compatible dict.

    Adds the derived ``pass_rate`` field next to the stored counters.
    """
    data = asdict(report)
    data["pass_rate"] = report.pass_rate
    return data


def write_report(report: CheckReport, path: Path) -> Path:
    """Write a report as pretty-printed JSON, creating parent directories.

    Args:
        report: The report to write.
        path: Destination file.

    Returns:
        The path written to.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report_to_dict(report), indent=2), encoding="utf-8")
    return path
