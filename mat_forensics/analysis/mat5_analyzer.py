# mat_forensics/analysis/mat5_analyzer.py
"""
MAT5 analyzer: decodes the file and re-checks the cardinality invariants of
every decoded element.
"""

from __future__ import annotations

from typing import Iterator, List, Optional, Tuple

from loguru import logger

from mat_forensics.analysis.analyzer import Analyzer
from mat_forensics.analysis.base import AnalysisReport
from mat_forensics.model_formats.mat5.mat5 import (
    HEADER_SIZE,
    DataElement,
    MalformedHeaderError,
    MAT5ParseError,
    NumericMatrix,
    ParseOptions,
    SparseMatrix,
    StructureMatrix,
    Unsupported,
    element_count,
)
from mat_forensics.model_formats.mat5.mat5_parser import parse_mat5
from mat_forensics.observability import Diagnostic, log_diagnostic


def walk_elements(elements: Tuple[DataElement, ...]) -> Iterator[Tuple[str, DataElement]]:
    """Yield ``(path, element)`` depth-first, naming struct fields ``parent.field``."""
    for index, element in enumerate(elements):
        yield from _walk(getattr(element, "name", "") or f"#{index}", element)


def _walk(path: str, element: DataElement) -> Iterator[Tuple[str, DataElement]]:
    yield path, element
    if isinstance(element, StructureMatrix):
        for field_name, field in zip(element.field_names, element.fields):
            yield from _walk(f"{path}.{field_name or '?'}", field)


def describe_element(element: DataElement) -> dict:
    """Flat, JSON-friendly summary used for findings and console tables."""
    if isinstance(element, Unsupported):
        return {
            "kind": "unsupported",
            "class": element.array_class.name if element.array_class else "-",
            "dims": "-",
            "storage": "-",
            "count": 0,
            "reason": element.reason,
        }
    info = {
        "kind": type(element).__name__,
        "class": element.flags.array_class.name,
        "dims": "x".join(str(d) for d in element.dims),
        "complex": element.flags.is_complex,
        "global": element.flags.is_global,
        "logical": element.flags.is_logical,
    }
    if isinstance(element, StructureMatrix):
        info.update(storage="-", count=len(element.fields), field_names=list(element.field_names))
    else:
        info.update(storage=element.real.data_type.name, count=len(element.real))
    if isinstance(element, SparseMatrix):
        info["nzmax"] = element.flags.nzmax
    return info


def _check_invariants(path: str, element: DataElement, report: AnalysisReport) -> None:
    if isinstance(element, NumericMatrix):
        n = element_count(element.dims)
        ok = len(element.real) == n and (element.imag is None or len(element.imag) == n)
        report.add(
            f"invariant:numeric_cardinality:{path}",
            ok,
            f"{len(element.real)} values for dims {element.dims}",
        )
    elif isinstance(element, SparseMatrix):
        nzmax = element.flags.nzmax
        ok = len(element.real) == nzmax and (element.imag is None or len(element.imag) == nzmax)
        report.add(
            f"invariant:sparse_cardinality:{path}", ok, f"{len(element.real)} values, nzmax={nzmax}"
        )
        n_cols = element.dims[1] if len(element.dims) > 1 else 0
        csc_ok = len(element.column_shifts) == n_cols + 1 and all(
            r < element.dims[0] for r in element.row_indices
        )
        report.add(
            f"invariant:csc_layout:{path}",
            csc_ok,
            f"{len(element.row_indices)} row indices, {len(element.column_shifts)} column shifts",
        )
    elif isinstance(element, StructureMatrix):
        n = element_count(element.dims)
        ok = len(element.field_names) == len(element.fields) == n
        report.add(
            f"invariant:structure_cardinality:{path}",
            ok,
            f"{len(element.field_names)} names, {len(element.fields)} fields",
        )


class Mat5Analyzer(Analyzer):
    """Analyzer implementation for MAT5 files."""

    def __init__(self, path: str, options: Optional[ParseOptions] = None):
        super().__init__(path)
        self.options = options or ParseOptions()

    def get_format_name(self) -> str:
        return "mat5"

    def _perform_analysis(self, mv: memoryview, report: AnalysisReport) -> None:
        """Core MAT5 analysis logic."""
        diagnostics: List[Diagnostic] = []

        def collect(diag: Diagnostic) -> None:
            diagnostics.append(diag)
            log_diagnostic(diag)

        try:
            parsed = parse_mat5(mv, options=self.options, on_diagnostic=collect)
        except MAT5ParseError as e:
            logger.debug("MAT5 decode failed: {error!r}", error=e)
            report.add("parse", False, f"MAT5 parse error: {e}")
            in_header = isinstance(e, MalformedHeaderError) or (
                not e.inflated and e.offset is not None and e.offset < HEADER_SIZE
            )
            target = "mat5 header" if in_header else "mat5 elements"
            if e.inflated:
                target += " (inflated)"
            report.add_reason(target, f"{type(e).__name__}: {e}")
            return

        header = parsed.header
        report.metadata.update(
            {
                "description": header.text.rstrip(" \x00"),
                "endian": header.endian,
                "version": f"0x{header.version:04x}",
                "n_elements": len(parsed.elements),
            }
        )
        report.add("parse", True, f"{len(parsed.elements)} top-level elements")

        for path, element in walk_elements(parsed.elements):
            report.add(f"element:{path}", True, "", **describe_element(element))
            _check_invariants(path, element, report)

        for i, diag in enumerate(diagnostics):
            report.add(
                f"diagnostic:{diag.event}:{i}",
                True,
                diag.message,
                offset=diag.offset,
                **diag.context,
            )
