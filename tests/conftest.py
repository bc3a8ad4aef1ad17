"""Pytest configuration for mat_forensics tests."""

from __future__ import annotations

import sys
from typing import List

import pytest
from loguru import logger

from mat5_builder import sparse1_file, sparse2_file
from mat_forensics.observability import Diagnostic


@pytest.fixture(autouse=True)
def _reset_loguru():
    """CLI runs replace loguru sinks; restore the default stderr sink afterwards."""
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def diagnostics() -> List[Diagnostic]:
    return []


@pytest.fixture
def sink(diagnostics):
    return diagnostics.append


@pytest.fixture
def sparse1_bytes() -> bytes:
    return sparse1_file()


@pytest.fixture
def sparse2_bytes() -> bytes:
    return sparse2_file()
