"""Progress reporting for analysis runs.

The engine reports progress as ``(percent, message)`` pairs to a sink
supplied by the caller.  Sinks are presentation-side: the engine only
calls them and never inspects what they do.

``ProgressReporter`` wraps a sink and guarantees that the percentages it
forwards stay within [0, 100] and never go backwards.  ``ProgressWindow``
maps the 0-1 completion of one stage onto its slice of the overall bar.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger("kml_clip.core.progress")

ProgressSink = Callable[[float, str], None]
"""Callable receiving ``(percent, message)``; percent is in [0, 100]."""


def null_progress(percent: float, message: str) -> None:
    """Sink that discards every update."""


class LoggingProgress:
    """Sink that writes each update to the progress logger at INFO level."""

    def __init__(self, prefix: str = "") -> None:
        self._prefix = prefix

    def __call__(self, percent: float, message: str) -> None:
        logger.info("%sprogress=%.1f%% | %s", self._prefix, percent, message)


class RecordingProgress:
    """Sink that keeps every update, in order.

    Handy for presentation layers that poll rather than get called back.
    """

    def __init__(self) -> None:
        self.events: list[tuple[float, str]] = []

    def __call__(self, percent: float, message: str) -> None:
        self.events.append((percent, message))

    @property
    def percents(self) -> list[float]:
        return [p for p, _ in self.events]

    @property
    def last(self) -> tuple[float, str] | None:
        return self.events[-1] if self.events else None


@dataclass(frozen=True, slots=True)
class ProgressWindow:
    """Slice ``[start, end]`` of the progress bar owned by one stage."""

    start: float = 0.0
    end: float = 100.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.start <= self.end <= 100.0:
            msg = f"Invalid progress window [{self.start}, {self.end}]"
            raise ValueError(msg)

    def at(self, fraction: float) -> float:
        """Percentage reached when the stage is *fraction* (0-1) complete."""
        fraction = min(1.0, max(0.0, fraction))
        return self.start + (self.end - self.start) * fraction


class ProgressReporter:
    """Monotonic front for a progress sink.

    Percentages are clamped to [0, 100] and to the last forwarded value,
    so a sink never sees the bar move backwards.
    """

    def __init__(self, sink: ProgressSink | None = None) -> None:
        self._sink: ProgressSink = sink or null_progress
        self._last = 0.0

    @property
    def last_percent(self) -> float:
        return self._last

    def report(self, percent: float, message: str) -> None:
        percent = max(self._last, min(100.0, max(0.0, percent)))
        self._last = percent
        self._sink(percent, message)

    __call__ = report
