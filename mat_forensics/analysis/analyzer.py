# mat_forensics/analysis/analyzer.py
"""
Base Analyzer class to handle common file operations.
"""
from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from typing import List

from loguru import logger

from mat_forensics.analysis.base import AnalysisReport
from mat_forensics.io.file_reader import LocalFileSource
from mat_forensics.observability import Timer

AVAILABLE_STAGES: List[str] = ["sha256", "structure"]


class Analyzer(ABC):
    """Abstract base class for file format analyzers."""

    def __init__(self, path: str):
        self.path = path
        self.src = LocalFileSource(path)

    def run(self, stages: List[str]) -> AnalysisReport:
        """
        Orchestrates the analysis process, running only the specified stages.

        Args:
            stages: A list of stages to run (e.g., ["sha256", "structure"]).
        """
        with self.src.open() as mf:
            mv = mf.view

            report = AnalysisReport(
                file_path=self.path,
                file_size=mf.size,
                sha256_hex="not_run",
                format=self.get_format_name(),
                metadata={},
            )

            if "sha256" in stages:
                with Timer("sha256") as t_hash:
                    h = hashlib.sha256()
                    h.update(mv)
                    report.sha256_hex = h.hexdigest()
                report.stages_run.append("sha256")
                logger.debug("SHA256 computed in {ms:.2f}ms", ms=t_hash.duration_ms)

            if "structure" in stages:
                with Timer("parse_and_analyze") as t_core:
                    self._perform_analysis(mv, report)
                report.stages_run.append("structure")
                report.metadata["parse_ms"] = round(t_core.duration_ms, 3)
                logger.debug(
                    "{format} analysis completed in {ms:.2f}ms",
                    format=self.get_format_name().upper(),
                    ms=t_core.duration_ms,
                )

            return report

    @abstractmethod
    def _perform_analysis(self, mv: memoryview, report: AnalysisReport) -> None:
        """
        Format-specific analysis logic to be implemented by subclasses.
        This method should populate the given report object.
        """
        raise NotImplementedError

    @abstractmethod
    def get_format_name(self) -> str:
        """Return the string name of the format (e.g., 'mat5')."""
        raise NotImplementedError
