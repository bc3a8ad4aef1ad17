# mat_forensics/__init__.py
"""
mat_forensics
=============

Pure-Python decoder for MATLAB Level 5 MAT-files (numeric, sparse and
structure arrays, including zlib-compressed elements), with zero-copy mmap
input, rich console reporting and JSON export of the decoded layout.
"""
from __future__ import annotations

from importlib.metadata import version as _pkg_version

__all__ = ["__version__"]

try:
    # Read version dynamically from installed package metadata
    __version__: str = _pkg_version("matforensics")
except Exception:  # pragma: no cover - fallback for development environments
    __version__ = "0.0.0-dev"
