"""Utilities for tracing the stages of a pipeline run.

Each stage (detection, tagging, a chart update for one service, the commit)
is wrapped in `trace_context` which logs the nested stage label and elapsed
time at debug level. Timings can also be gathered with `get_trace_collector`.
"""

import contextvars
from contextlib import contextmanager
from dataclasses import dataclass, field
import logging
from time import perf_counter
from typing import Generator


_LOGGER = logging.getLogger(__name__)

__all__ = [
    "trace_context",
    "get_trace_collector",
    "TraceCollector",
]


@dataclass
class TraceCollector:
    """Accumulates the elapsed time of each traced stage."""

    timings: dict[str, float] = field(default_factory=dict)
    counts: dict[str, int] = field(default_factory=dict)

    def add(self, label: str, duration: float) -> None:
        """Record a single stage duration."""
        self.timings[label] = self.timings.get(label, 0.0) + duration
        self.counts[label] = self.counts.get(label, 0) + 1


trace: contextvars.ContextVar[list[str]] = contextvars.ContextVar("trace")
collector: contextvars.ContextVar[TraceCollector | None] = contextvars.ContextVar(
    "collector", default=None
)


@contextmanager
def get_trace_collector() -> Generator[TraceCollector, None, None]:
    """Collect stage timings for the duration of the context."""
    result = TraceCollector()
    token = collector.set(result)
    try:
        yield result
    finally:
        collector.reset(token)


@contextmanager
def trace_context(name: str) -> Generator[None, None, None]:
    stack = trace.get([])
    token = trace.set(stack + [name])
    label = " > ".join(stack + [name])
    start = perf_counter()
    _LOGGER.debug("[Trace] > %s", label)
    try:
        yield
    finally:
        elapsed = perf_counter() - start
        trace.reset(token)
        if (active := collector.get()) is not None:
            active.add(label, elapsed)
        _LOGGER.debug("[Trace] < %s (%0.2fs)", label, elapsed)
