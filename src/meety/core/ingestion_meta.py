"""
Per-run sourcing trace.

Candidate sources report, per activity category, where the venues came from
(`live`, `cache`, `stale`, `offline`) and how many were returned. A live failure is recorded as a
fallback event. The engine attaches the trace to `SuggestionRun.meta` so API callers can
tell a live run from an offline one.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any


@dataclass
class SourcingTrace:
    categories: dict[str, dict[str, Any]] = field(default_factory=dict)
    fallbacks: list[str] = field(default_factory=list)

    def record(self, category: str, *, mode: str, count: int, **details: Any) -> None:
        self.categories[category] = {"mode": mode, "count": int(count), **details}

    def as_dict(self) -> dict[str, Any]:
        return {"categories": dict(self.categories), "fallbacks": list(self.fallbacks)}


_trace_var: contextvars.ContextVar[SourcingTrace | None] = contextvars.ContextVar(
    "meety_sourcing_trace", default=None
)


def record_category_source(category: str, *, mode: str, count: int, **details: Any) -> None:
    trace = _trace_var.get()
    if trace is not None:
        trace.record(category, mode=mode, count=count, **details)


def record_fallback(reason: str) -> None:
    trace = _trace_var.get()
    if trace is not None:
        trace.fallbacks.append(reason)
        # Offline re-sourcing replaces every category entry.
        trace.categories.clear()


@contextmanager
def capture_sourcing_trace():
    trace = SourcingTrace()
    token = _trace_var.set(trace)
    try:
        yield trace
    finally:
        _trace_var.reset(token)
