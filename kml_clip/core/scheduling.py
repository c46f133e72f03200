"""Cooperative scheduling primitives.

The intersection engine never runs in parallel.  Instead it scans the
corpus in batches and, between two batches, awaits
``Scheduler.yield_now()`` so the host (a UI event loop, an asyncio
service, a task queue) gets control back.  This is the only suspension
point of a run.

A ``CancellationToken`` is checked at the same batch boundaries; a
cancelled run stops before the next batch and raises
``AnalysisCancelled``.
"""

from __future__ import annotations

import abc
import asyncio

from kml_clip.core.exceptions import PermanentError


class AnalysisCancelled(PermanentError):
    """Raised at a batch boundary when the run's token was cancelled."""

    default_stage = "intersect"
    default_code = "ANALYSIS_CANCELLED"


class Scheduler(abc.ABC):
    """Capability to hand control back to the host between batches."""

    @abc.abstractmethod
    async def yield_now(self) -> None:
        """Suspend until the host scheduler resumes this run."""


class AsyncioScheduler(Scheduler):
    """Yields to the running asyncio event loop for one iteration."""

    async def yield_now(self) -> None:
        await asyncio.sleep(0)


class ImmediateScheduler(Scheduler):
    """Never suspends; counts how often the engine asked to yield.

    Used when the caller has nothing else to run (command line, batch
    jobs) and in tests that assert on yield granularity.
    """

    def __init__(self) -> None:
        self.yields = 0

    async def yield_now(self) -> None:
        self.yields += 1


class CancellationToken:
    """Flag a caller sets to stop a run at the next batch boundary."""

    def __init__(self) -> None:
        self._cancelled = False
        self.reason = ""

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "") -> None:
        self._cancelled = True
        self.reason = reason

    def raise_if_cancelled(self, *, stage: str = "", run_id: str = "") -> None:
        """Raise ``AnalysisCancelled`` if ``cancel()`` has been called."""
        if not self._cancelled:
            return
        detail = f": {self.reason}" if self.reason else ""
        raise AnalysisCancelled(f"Analysis cancelled{detail}", stage=stage, run_id=run_id)
