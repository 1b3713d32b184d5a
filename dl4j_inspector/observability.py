# dl4j_inspector/observability.py
"""
Observability helpers: stage timers and dataclass → dict conversion.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict


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


def to_dict(obj: Any, *, exclude: frozenset = frozenset()) -> Dict[str, Any] | list[Any] | Any:
    """Recursively convert dataclasses to plain JSON-friendly values.

    Field names in ``exclude`` are dropped at every level.
    """
    if hasattr(obj, "__dataclass_fields__"):
        return {
            f.name: to_dict(getattr(obj, f.name), exclude=exclude)
            for f in fields(obj)
            if f.name not in exclude
        }
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [to_dict(x, exclude=exclude) for x in obj]
    if isinstance(obj, dict):
        return {k: to_dict(v, exclude=exclude) for k, v in obj.items()}
    return obj
