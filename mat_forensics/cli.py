# mat_forensics/cli.py
"""
cli.py

Rich console CLI:
- scan:    decode a MAT5 (.mat) file, print summary, decoded elements,
           cardinality checks, diagnostics and reason matrix.
- version: show the package version.
"""
from __future__ import annotations

import argparse
import os
from typing import Optional

from rich.console import Console
from rich.panel import Panel

from mat_forensics import __version__
from mat_forensics.analysis.analyzer import AVAILABLE_STAGES
from mat_forensics.analysis.mat5_analyzer import Mat5Analyzer
from mat_forensics.logging import configure_logging
from mat_forensics.model_formats.mat5.mat5 import ParseOptions
from mat_forensics.reporting import mat5_reporter
from mat_forensics.reporting.json_reporter import write_json

console = Console()


def _positive_int(value: str) -> int:
    n = int(value)
    if n < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {n}")
    return n


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="matfx",
        description="MAT Forensics: MATLAB Level 5 MAT-file decoding with zero-copy IO.",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    sub = p.add_subparsers(dest="cmd", title="Available Commands", metavar="<command>")

    sp_scan = sub.add_parser("scan", help="Decode a local .mat (Level 5) file")
    sp_scan.add_argument("path", help="Path to MAT-file")
    sp_scan.add_argument("--debug", action="store_true", help="Enable debug logging")
    sp_scan.add_argument(
        "--json-logs", action="store_true", help="Emit log records as JSON lines on stderr"
    )
    sp_scan.add_argument(
        "--json-out", type=str, default=None, help="Write JSON report to this path"
    )
    sp_scan.add_argument(
        "--max-depth",
        type=_positive_int,
        default=ParseOptions().max_depth,
        help="Deepest structure/compression nesting to accept (default: %(default)s)",
    )
    sp_scan.add_argument(
        "--stage",
        nargs="+",
        choices=AVAILABLE_STAGES,
        metavar="STAGE",
        help=(
            f"Run only specific analysis stages. Defaults to all stages if not provided.\n"
            f"Available stages: {', '.join(AVAILABLE_STAGES)}.\n"
            f"Can be combined, e.g., --stage sha256 structure"
        ),
    )

    sub.add_parser("version", help="Show the version of mat-forensics")

    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return 1

    if args.cmd == "version":
        console.print(f"MAT Forensics Version {__version__}")
        return 0

    if args.cmd == "scan":
        configure_logging(debug=args.debug, json_logs=args.json_logs)
        path = args.path
        if not os.path.isfile(path):
            console.print(f"[red]File not found:[/red] {path}")
            return 2

        analyzer = Mat5Analyzer(path, options=ParseOptions(max_depth=args.max_depth))
        stages_to_run = args.stage or AVAILABLE_STAGES
        console.print(f"[dim]Running stages: {', '.join(stages_to_run)}...[/dim]")

        rep = analyzer.run(stages=stages_to_run)

        console.print(
            Panel(
                f"[bold]Result:[/bold] {'[green]OK[/green]' if rep.ok else '[red]FAILED[/red]'}",
                style="bold cyan",
            )
        )
        mat5_reporter.render_report(rep)

        if args.json_out:
            write_json(rep, args.json_out)
            console.print(f"[dim]Wrote JSON report → {args.json_out}[/dim]")

        return 0

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
