"""Deduplication and provenance stage.

Localities exist in two corpora: a polygon corpus and a point corpus
for localities without a surveyed outline.  The same identifier may
occur in both.  The polygon record wins: a point feature is only tested
when its identifier is not among the polygon matches.  Features with no
identifier are never deduplicated.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from kml_clip.core.constants import BATCH_DIVISOR, MIN_BATCH_SIZE
from kml_clip.core.corpus import Corpus
from kml_clip.models.feature import SourceTag
from kml_clip.models.result import ClassifiedResult
from kml_clip.stages.intersect import intersect

if TYPE_CHECKING:
    from kml_clip.core.progress import ProgressReporter, ProgressSink, ProgressWindow
    from kml_clip.core.scheduling import CancellationToken, Scheduler
    from kml_clip.models.area import EffectiveClip
    from kml_clip.models.feature import Feature

logger = logging.getLogger("kml_clip.stages.classify")


async def classify(
    polygon_matches: Sequence[Feature],
    point_corpus: Corpus | Sequence[Feature] | None,
    clip: EffectiveClip,
    *,
    progress: ProgressReporter | ProgressSink | None = None,
    scheduler: Scheduler | None = None,
    cancel: CancellationToken | None = None,
    batch_size: int | None = None,
    min_batch_size: int = MIN_BATCH_SIZE,
    batch_divisor: int = BATCH_DIVISOR,
    window: ProgressWindow | None = None,
    run_id: str = "",
) -> ClassifiedResult:
    """Split locality matches by provenance, dropping point duplicates.

    Args:
        polygon_matches: Polygon-corpus features already found to
            intersect the clip.
        point_corpus: Point corpus to scan, or ``None`` when the session
            has none.
        clip: Effective clip geometry of the run.

    The remaining keyword arguments are passed to ``intersect`` for the
    point scan.

    Returns:
        ``ClassifiedResult`` with polygon matches tagged
        ``POLYGON_SOURCE`` and surviving point matches tagged
        ``POINT_SOURCE``; no identifier appears in both.
    """
    polygon_sourced = tuple(f.with_origin(SourceTag.POLYGON_SOURCE) for f in polygon_matches)
    if point_corpus is None:
        return ClassifiedResult(polygon_sourced=polygon_sourced)

    known_ids = {f.id for f in polygon_sourced if f.id is not None}
    if isinstance(point_corpus, Corpus):
        label = point_corpus.name
        points: Sequence[Feature] = point_corpus.features
    else:
        label = "points"
        points = point_corpus

    candidates = [f for f in points if f.id is None or f.id not in known_ids]
    duplicates = len(points) - len(candidates)

    matches = await intersect(
        candidates,
        clip,
        label=label,
        progress=progress,
        scheduler=scheduler,
        cancel=cancel,
        batch_size=batch_size,
        min_batch_size=min_batch_size,
        batch_divisor=batch_divisor,
        window=window,
        run_id=run_id,
    )
    point_sourced = tuple(f.with_origin(SourceTag.POINT_SOURCE) for f in matches)

    logger.info(
        "Classified | run=%s | polygon=%d | point=%d | point_duplicates_skipped=%d",
        run_id,
        len(polygon_sourced),
        len(point_sourced),
        duplicates,
    )
    return ClassifiedResult(polygon_sourced=polygon_sourced, point_sourced=point_sourced)
