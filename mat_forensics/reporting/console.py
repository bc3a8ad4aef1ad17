# mat_forensics/reporting/console.py
"""
Console reporting building blocks shared by format-specific reporters.
"""
from __future__ import annotations

from typing import List, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from mat_forensics.analysis.base import AnalysisReport, Finding

console = Console()

STATUS_STYLES = {
    True: "[green]PASS[/green]",
    False: "[bold red]FAIL[/bold red]",
}


def render_summary(rep: AnalysisReport) -> None:
    """Render a high-level summary table."""
    t = Table(title="MAT Forensics Summary", box=box.SIMPLE_HEAVY)
    t.add_column("Field", style="bold")
    t.add_column("Value")
    t.add_row("Path", rep.file_path)
    t.add_row("Size (bytes)", str(rep.file_size))
    t.add_row("Format", rep.format)
    t.add_row("SHA-256", rep.sha256_hex)
    for k, v in rep.metadata.items():
        t.add_row(k.replace("_", " ").capitalize(), str(v))
    console.print(t)


def render_generic_table(
    title: str, findings: List[Finding], *, custom_sort_order: Optional[List[str]] = None
) -> None:
    """Generic renderer for finding groups, with optional custom sorting."""
    table = Table(title=title, box=box.ROUNDED, show_lines=False, title_style="bold magenta")
    table.add_column("Status", justify="center", width=8)
    table.add_column("Check", style="cyan", no_wrap=True)
    table.add_column("Details", style="white")

    if custom_sort_order:
        sort_map = {name: i for i, name in enumerate(custom_sort_order)}
        findings = sorted(findings, key=lambda f: sort_map.get(f.name.split(":", 2)[1], 999))

    for f in findings:
        check_name = f.name.split(":", 1)[-1]
        table.add_row(STATUS_STYLES[f.ok], check_name, f.details)

    console.print(table)


def render_reason_matrix(rep: AnalysisReport) -> None:
    """Render the reason matrix table (why decoding failed)."""
    if not rep.reason_matrix:
        return
    rt = Table(
        title="Reason Matrix (Decode Failure Explanations)",
        box=box.SIMPLE_HEAVY,
        show_lines=False,
    )
    rt.add_column("Target", style="bold")
    rt.add_column("Reason")
    for entry in rep.reason_matrix:
        rt.add_row(entry.target, entry.reason)
    console.print(rt)
