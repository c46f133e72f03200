"""Batched intersection stage.

Scans a corpus against the clip geometry and returns the features that
intersect it, in corpus order, as the original ``Feature`` objects.

The scan is split into batches.  ``iter_batches`` is the synchronous
core: it yields one ``BatchOutcome`` per batch and owns the matching
logic.  ``intersect`` drives it and, between two batches, reports
progress, hands control back to the host scheduler and checks the
cancellation token.  Batch size therefore only changes how often the
host gets control, never which features match or their order.

Predicate
---------
A bounding-box rejection runs first; features whose box touches the
clip box are then tested with the prepared ``intersects`` predicate
(point in polygon, polygon edge or overlap, any part of a multi-part
geometry).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from kml_clip.core.constants import BATCH_DIVISOR, MIN_BATCH_SIZE
from kml_clip.core.corpus import Corpus
from kml_clip.core.progress import ProgressReporter, ProgressSink, ProgressWindow
from kml_clip.core.scheduling import AsyncioScheduler, CancellationToken, Scheduler
from kml_clip.utils.geometry import bounds_intersect

if TYPE_CHECKING:
    from kml_clip.models.area import EffectiveClip
    from kml_clip.models.feature import Feature

logger = logging.getLogger("kml_clip.stages.intersect")

STAGE = "intersect"


@dataclass(frozen=True, slots=True)
class BatchOutcome:
    """Result of scanning one batch.

    Attributes:
        number: 1-based batch number.
        done: Features scanned so far, this batch included.
        total: Features in the whole scan.
        matches: Features of this batch that intersect the clip, in order.
    """

    number: int
    done: int
    total: int
    matches: tuple[Feature, ...]

    @property
    def fraction(self) -> float:
        """Share of the scan completed after this batch."""
        return self.done / self.total if self.total else 1.0


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def compute_batch_size(
    total: int,
    *,
    floor: int = MIN_BATCH_SIZE,
    divisor: int = BATCH_DIVISOR,
) -> int:
    """Batch size for a corpus of *total* features: ``max(floor, total // divisor)``.

    Raises:
        ValueError: If *floor* or *divisor* is below 1.
    """
    if floor < 1 or divisor < 1:
        msg = f"floor and divisor must be >= 1, got floor={floor}, divisor={divisor}"
        raise ValueError(msg)
    return max(floor, total // divisor)


def feature_intersects(feature: Feature, clip: EffectiveClip) -> bool:
    """Whether *feature*'s geometry intersects the clip geometry."""
    if not bounds_intersect(feature.geometry.bounds, clip.bounds):
        return False
    return bool(clip.prepared.intersects(feature.geometry))


def iter_batches(
    features: Sequence[Feature],
    clip: EffectiveClip,
    batch_size: int,
) -> Iterator[BatchOutcome]:
    """Scan *features* in batches of *batch_size*, yielding each outcome.

    Yields nothing for an empty sequence.

    Raises:
        ValueError: If *batch_size* is below 1.
    """
    if batch_size < 1:
        msg = f"batch_size must be >= 1, got {batch_size}"
        raise ValueError(msg)

    total = len(features)
    for number, start in enumerate(range(0, total, batch_size), start=1):
        batch = features[start : start + batch_size]
        matches = tuple(f for f in batch if feature_intersects(f, clip))
        yield BatchOutcome(
            number=number,
            done=start + len(batch),
            total=total,
            matches=matches,
        )


async def intersect(
    corpus: Corpus | Sequence[Feature],
    clip: EffectiveClip,
    *,
    label: str = "",
    progress: ProgressReporter | ProgressSink | None = None,
    scheduler: Scheduler | None = None,
    cancel: CancellationToken | None = None,
    batch_size: int | None = None,
    min_batch_size: int = MIN_BATCH_SIZE,
    batch_divisor: int = BATCH_DIVISOR,
    window: ProgressWindow | None = None,
    run_id: str = "",
) -> tuple[Feature, ...]:
    """Return the features of *corpus* that intersect *clip*, in corpus order.

    Args:
        corpus: A ``Corpus`` or any sequence of features.
        clip: Effective clip geometry of the run.
        label: Name used in progress messages (defaults to the corpus name).
        progress: Sink or reporter receiving ``(percent, message)`` after
            every batch.
        scheduler: Yielded to after every batch; defaults to an
            ``AsyncioScheduler`` on the running loop.
        cancel: Checked after every batch.
        batch_size: Explicit batch size; computed from the corpus size
            when omitted.
        min_batch_size: Floor of the computed batch size.
        batch_divisor: Divisor of the computed batch size.
        window: Slice of the progress bar this scan owns (default 0-100).
        run_id: Run identifier for logs and errors.

    Returns:
        Matching features; the same objects as in *corpus*.

    Raises:
        AnalysisCancelled: If *cancel* is set when a batch completes.
        ValueError: If a batch size parameter is below 1.
    """
    if isinstance(corpus, Corpus):
        features: Sequence[Feature] = corpus.features
        label = label or corpus.name
    else:
        features = corpus
    label = label or "features"

    reporter = progress if isinstance(progress, ProgressReporter) else ProgressReporter(progress)
    scheduler = scheduler or AsyncioScheduler()
    window = window or ProgressWindow()

    total = len(features)
    if total == 0:
        logger.info("Intersect skipped | run=%s | layer=%s | features=0", run_id, label)
        reporter.report(window.end, f"Processing {label}… 0/0")
        return ()

    size = batch_size if batch_size is not None else compute_batch_size(
        total, floor=min_batch_size, divisor=batch_divisor
    )

    logger.info(
        "Intersect started | run=%s | layer=%s | features=%d | batch_size=%d",
        run_id,
        label,
        total,
        size,
    )
    started = time.monotonic()

    matched: list[Feature] = []
    batches = 0
    for outcome in iter_batches(features, clip, size):
        matched.extend(outcome.matches)
        batches = outcome.number
        logger.debug(
            "Batch scanned | layer=%s | batch=%d | done=%d/%d | matches=%d",
            label,
            outcome.number,
            outcome.done,
            outcome.total,
            len(outcome.matches),
        )
        reporter.report(
            window.at(outcome.fraction),
            f"Processing {label}… {outcome.done}/{outcome.total}",
        )
        await scheduler.yield_now()
        if cancel is not None:
            cancel.raise_if_cancelled(stage=STAGE, run_id=run_id)

    logger.info(
        "Intersect completed | run=%s | layer=%s | matched=%d/%d | batches=%d | elapsed=%.2fs",
        run_id,
        label,
        len(matched),
        total,
        batches,
        time.monotonic() - started,
    )
    return tuple(matched)
