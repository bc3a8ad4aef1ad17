# mat_forensics/reporting/mat5_reporter.py
"""
MAT5-specific console reporting functions.
"""
from __future__ import annotations

from typing import List

from rich import box
from rich.table import Table

from mat_forensics.analysis.base import AnalysisReport, Finding
from mat_forensics.reporting.console import (
    console,
    render_generic_table,
    render_reason_matrix,
    render_summary,
)

INVARIANT_SORT_ORDER = [
    "numeric_cardinality",
    "sparse_cardinality",
    "csc_layout",
    "structure_cardinality",
]


def _render_element_table(findings: List[Finding]) -> None:
    """One row per decoded element, nested struct fields included, in file order."""
    table = Table(
        title="Decoded Elements", box=box.ROUNDED, show_lines=False, title_style="bold magenta"
    )
    table.add_column("Index", justify="right", style="dim")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Kind", style="white")
    table.add_column("Class", style="yellow")
    table.add_column("Dimensions", style="green")
    table.add_column("Storage", style="yellow")
    table.add_column("Count", justify="right", style="white")

    for index, f in enumerate(findings, start=1):
        ctx = f.context
        kind = ctx.get("kind", "N/A")
        if ctx.get("complex"):
            kind += " (complex)"
        table.add_row(
            str(index),
            f.name.split(":", 1)[1],
            kind,
            str(ctx.get("class", "N/A")),
            str(ctx.get("dims", "N/A")),
            str(ctx.get("storage", "N/A")),
            str(ctx.get("count", "N/A")),
        )

    console.print(table)


def _render_diagnostics(findings: List[Finding]) -> None:
    table = Table(
        title="Decoder Diagnostics", box=box.SIMPLE_HEAVY, title_style="bold yellow"
    )
    table.add_column("Status", justify="center", width=8)
    table.add_column("Event", style="cyan")
    table.add_column("Offset", justify="right")
    table.add_column("Message")
    for f in findings:
        event = f.name.split(":")[1]
        table.add_row("[yellow]WARN[/yellow]", event, str(f.context.get("offset", "?")), f.details)
    console.print(table)


def render_report(rep: AnalysisReport) -> None:
    """Renders the full console report for a MAT5 file."""
    render_summary(rep)

    if rep.group("parse"):
        render_generic_table("Decode", rep.group("parse"))
    if rep.group("element"):
        _render_element_table(rep.group("element"))
    if rep.group("invariant"):
        render_generic_table(
            "Cardinality Checks", rep.group("invariant"), custom_sort_order=INVARIANT_SORT_ORDER
        )
    if rep.group("diagnostic"):
        _render_diagnostics(rep.group("diagnostic"))

    render_reason_matrix(rep)
