# mat_forensics/reporting/json_reporter.py
"""
JSON reporting utilities.
"""

from __future__ import annotations

import json
from typing import Any, Dict

from mat_forensics.analysis.base import AnalysisReport
from mat_forensics.observability import to_dict


def to_json_dict(report: AnalysisReport) -> Dict[str, Any]:
    """Convert AnalysisReport to a JSON-serializable dict, with the overall verdict."""
    d = to_dict(report)
    d["ok"] = report.ok
    return d


def write_json(report: AnalysisReport, path: str) -> None:
    """Write report to a file as pretty JSON."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(to_json_dict(report), f, indent=2)
