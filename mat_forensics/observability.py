# mat_forensics/observability.py
"""
Observability helpers: timers, dataclass → dict conversion and decoder diagnostics.
"""
from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from loguru import logger


@dataclass
class Timer:
    """Context manager for measuring durations in milliseconds."""

    name: str
    start: float = 0.0
    duration_ms: float = 0.0

    def __enter__(self) -> "Timer":
        self.start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.duration_ms = (time.perf_counter() - self.start) * 1000.0


@dataclass(frozen=True)
class Diagnostic:
    """Non-fatal decoder event (unsupported element type or array class)."""

    event: str
    message: str
    offset: Optional[int] = None
    context: Dict[str, Any] = field(default_factory=dict)


DiagnosticSink = Callable[[Diagnostic], None]


def log_diagnostic(diag: Diagnostic) -> None:
    """Default sink: emit the diagnostic as a structured loguru warning."""
    logger.bind(event=diag.event, offset=diag.offset, **diag.context).warning(
        "{event} at offset {offset}: {message}",
        event=diag.event,
        offset=diag.offset,
        message=diag.message,
    )


def to_dict(obj: Any) -> Dict[str, Any] | list[Any] | Any:
    """Recursively convert dataclasses to dicts; enums become their names."""
    if hasattr(obj, "__dataclass_fields__"):
        d = asdict(obj)
        return {k: to_dict(v) for k, v in d.items()}
    if isinstance(obj, Enum):
        return obj.name
    if isinstance(obj, (list, tuple)):
        return [to_dict(x) for x in obj]
    if isinstance(obj, dict):
        return {k: to_dict(v) for k, v in obj.items()}
    return obj
