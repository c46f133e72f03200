"""Analysis run orchestration.

An ``AnalysisSession`` holds the corpora (loaded once, shared read-only
by every run) and the result of the last completed run.  ``run_analysis``
executes one run end to end:

1. **Adapt** the converted KML features into the area of interest.
2. **Prepare** the clip geometry (buffered in core mode).
3. **Intersect** the locality polygon corpus.
4. **Classify** against the locality point corpus (polygon wins).
5. **Context layers**: clip every registered layer with the same geometry.
6. **Colors, navigation index, metrics**, then publish the result.

Progress
--------
3 % area adapted, 8 % clip prepared, 12 % scan starting, 20-75 % polygon
scan, 75-90 % point scan, 90-97 % context layers, 100 % complete.

Any error aborts the run: the session keeps no partial result, the
error is logged once with its structured payload and re-raised.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

from kml_clip.core.config import ClipConfig
from kml_clip.core.constants import LOCALITIES_LAYER
from kml_clip.core.corpus import Corpus, CorpusUnavailable, build_corpus
from kml_clip.core.exceptions import PipelineError, ValidationError
from kml_clip.core.progress import ProgressReporter, ProgressWindow
from kml_clip.models.area import AnalysisMode
from kml_clip.models.feature import SourceTag
from kml_clip.models.result import ClipResult, LayerResult
from kml_clip.stages.adapt_geometry import adapt, adapt_collection
from kml_clip.stages.classify import classify
from kml_clip.stages.colors import assign_colors
from kml_clip.stages.intersect import intersect
from kml_clip.stages.metrics import measure
from kml_clip.stages.navigation import build_index
from kml_clip.stages.prepare_area import prepare

if TYPE_CHECKING:
    from kml_clip.core.progress import ProgressSink
    from kml_clip.core.scheduling import CancellationToken, Scheduler
    from kml_clip.models.area import EffectiveClip
    from kml_clip.models.feature import Feature

logger = logging.getLogger("kml_clip.orchestrators.analysis")

POLYGON_CORPUS_NAME = "localities"
POINT_CORPUS_NAME = "locality points"

# ---------------------------------------------------------------------------
# Progress milestones
# ---------------------------------------------------------------------------

PROGRESS_ADAPTED = 3.0
PROGRESS_PREPARED = 8.0
PROGRESS_SCAN_READY = 12.0
POLYGON_WINDOW = ProgressWindow(20.0, 75.0)
POINT_WINDOW = ProgressWindow(75.0, 90.0)
LAYERS_WINDOW = ProgressWindow(90.0, 97.0)


class AnalysisSession:
    """Caller-owned state shared by successive analysis runs.

    Attributes:
        config: Engine configuration.
        polygon_corpus: Locality polygons; required for a run.
        point_corpus: Locality points; optional.
        layers: Context layers by name, clipped alongside the localities.
        result: Result of the last successful run, ``None`` while a run is
            in progress or after a failed one.
    """

    def __init__(self, config: ClipConfig | None = None) -> None:
        self.config = config or ClipConfig()
        self.polygon_corpus: Corpus | None = None
        self.point_corpus: Corpus | None = None
        self.layers: dict[str, Corpus] = {}
        self.result: ClipResult | None = None

    def register_polygon_corpus(
        self,
        collection: Mapping[str, object] | None,
        *,
        id_property: str | None = None,
    ) -> Corpus:
        """Decode and keep the locality polygon corpus.

        Raises:
            CorpusUnavailable: If *collection* is missing or malformed.
        """
        self.polygon_corpus = build_corpus(
            collection,
            name=POLYGON_CORPUS_NAME,
            id_property=id_property or self.config.id_property,
            origin=SourceTag.POLYGON_SOURCE,
        )
        return self.polygon_corpus

    def register_point_corpus(
        self,
        collection: Mapping[str, object] | None,
        *,
        id_property: str | None = None,
    ) -> Corpus:
        """Decode and keep the locality point corpus.

        Raises:
            CorpusUnavailable: If *collection* is missing or malformed.
        """
        self.point_corpus = build_corpus(
            collection,
            name=POINT_CORPUS_NAME,
            id_property=id_property or self.config.id_property,
            origin=SourceTag.POINT_SOURCE,
        )
        return self.point_corpus

    def register_layer(
        self,
        name: str,
        collection: Mapping[str, object] | None,
        *,
        id_property: str | None = None,
    ) -> Corpus:
        """Decode and keep a named context layer.

        Registering a name twice replaces the earlier layer.

        Raises:
            ValueError: If *name* is empty or is the reserved locality layer.
            CorpusUnavailable: If *collection* is missing or malformed.
        """
        name = name.strip()
        if not name or name == LOCALITIES_LAYER:
            msg = f"Invalid context layer name {name!r}"
            raise ValueError(msg)
        corpus = build_corpus(
            collection,
            name=name,
            id_property=id_property or self.config.id_property,
        )
        self.layers[name] = corpus
        return corpus


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------


async def run_analysis(
    session: AnalysisSession,
    area_features: Mapping[str, object] | Sequence[Mapping[str, object]],
    *,
    mode: AnalysisMode | str | None = None,
    buffer_m: float | None = None,
    progress: ProgressReporter | ProgressSink | None = None,
    scheduler: Scheduler | None = None,
    cancel: CancellationToken | None = None,
    run_id: str = "",
) -> ClipResult:
    """Run one analysis and publish its result on *session*.

    Args:
        session: Session holding the corpora.
        area_features: Converted KML as a FeatureCollection, a single
            Feature, or a list of features.
        mode: Analysis mode; defaults to ``session.config.analysis_mode``.
        buffer_m: Core-mode buffer radius; defaults to
            ``session.config.core_buffer_m``.
        progress: Sink receiving ``(percent, message)`` updates.
        scheduler: Yielded to between intersection batches; defaults to
            an ``AsyncioScheduler``.
        cancel: Checked between batches and stages.
        run_id: Run identifier; generated when empty.

    Returns:
        The ``ClipResult``, also stored as ``session.result``.

    Raises:
        CorpusUnavailable: If no polygon corpus is registered.
        GeometryError: If the area of interest yields no valid polygon.
        AreaBufferError: If core-mode buffering fails.
        AnalysisCancelled: If *cancel* is set during the run.
        ValidationError: If *mode* is not a known analysis mode.
    """
    run_id = run_id or uuid.uuid4().hex
    session.result = None
    config = session.config
    reporter = progress if isinstance(progress, ProgressReporter) else ProgressReporter(progress)
    scan_options = {
        "progress": reporter,
        "scheduler": scheduler,
        "cancel": cancel,
        "min_batch_size": config.min_batch_size,
        "batch_divisor": config.batch_divisor,
        "run_id": run_id,
    }
    started = time.monotonic()

    try:
        polygon_corpus = session.polygon_corpus
        if polygon_corpus is None:
            msg = "No locality polygon corpus is registered on the session"
            raise CorpusUnavailable(msg)

        resolved_mode = _resolve_mode(mode, config)
        radius = config.core_buffer_m if buffer_m is None else buffer_m
        logger.info(
            "Analysis started | run=%s | mode=%s | buffer=%.0f m | polygons=%d | points=%d | layers=%d",
            run_id,
            resolved_mode.value,
            radius if resolved_mode.buffers else 0.0,
            len(polygon_corpus),
            len(session.point_corpus) if session.point_corpus is not None else 0,
            len(session.layers),
        )

        if isinstance(area_features, Mapping):
            area = adapt_collection(area_features, check_overlaps=config.check_overlaps)
        else:
            area = adapt(area_features, check_overlaps=config.check_overlaps)
        reporter.report(PROGRESS_ADAPTED, "Area of interest adapted")

        clip = prepare(area, resolved_mode, buffer_m=radius)
        reporter.report(PROGRESS_PREPARED, "Clip geometry prepared")
        if cancel is not None:
            cancel.raise_if_cancelled(stage="prepare_area", run_id=run_id)
        reporter.report(PROGRESS_SCAN_READY, "Scanning corpora")

        polygon_matches = await intersect(
            polygon_corpus, clip, window=POLYGON_WINDOW, **scan_options
        )
        classified = await classify(
            polygon_matches, session.point_corpus, clip, window=POINT_WINDOW, **scan_options
        )
        layers = await _clip_layers(session.layers, clip, scan_options)

        matched = classified.combined
        colors = assign_colors(matched)
        result = ClipResult(
            matched=matched,
            color_of=_identified_colors(matched, colors),
            index=build_index(matched),
            classified=classified,
            clip=clip,
            layers=layers,
            metrics=measure(clip, matched, layers),
            run_id=run_id,
        )
    except PipelineError as exc:
        exc.run_id = exc.run_id or run_id
        logger.error("Analysis failed | run=%s | error=%s", run_id, exc.to_error_dict())
        raise
    except Exception:
        logger.exception("Analysis failed unexpectedly | run=%s", run_id)
        raise

    session.result = result
    reporter.report(100.0, "Analysis complete")
    logger.info(
        "Analysis completed | run=%s | matched=%d | polygon=%d | point=%d | elapsed=%.2fs",
        run_id,
        len(result.matched),
        len(classified.polygon_sourced),
        len(classified.point_sourced),
        time.monotonic() - started,
    )
    return result


def run_analysis_sync(
    session: AnalysisSession,
    area_features: Mapping[str, object] | Sequence[Mapping[str, object]],
    **kwargs: object,
) -> ClipResult:
    """Run ``run_analysis`` to completion on a fresh event loop.

    For callers without a running loop (command line, scripts, tests).
    """
    return asyncio.run(run_analysis(session, area_features, **kwargs))  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_mode(mode: AnalysisMode | str | None, config: ClipConfig) -> AnalysisMode:
    try:
        return AnalysisMode.parse(mode if mode is not None else config.analysis_mode)
    except ValueError as exc:
        raise ValidationError(str(exc), stage="prepare_area", code="UNKNOWN_MODE") from exc


def _identified_colors(matched: Sequence[Feature], colors: dict[str, str]) -> dict[str, str]:
    """Keep only identifier keys, so every key has a matched feature."""
    return {f.id: colors[f.id] for f in matched if f.id is not None}


async def _clip_layers(
    corpora: Mapping[str, Corpus],
    clip: EffectiveClip,
    scan_options: Mapping[str, object],
) -> dict[str, LayerResult]:
    """Clip every context layer, each in its own slice of the layers window."""
    results: dict[str, LayerResult] = {}
    count = len(corpora)
    span = LAYERS_WINDOW.end - LAYERS_WINDOW.start
    for position, (name, corpus) in enumerate(corpora.items()):
        window = ProgressWindow(
            LAYERS_WINDOW.start + span * position / count,
            LAYERS_WINDOW.start + span * (position + 1) / count,
        )
        features = await intersect(corpus, clip, window=window, **scan_options)  # type: ignore[arg-type]
        colors = assign_colors(features)
        results[name] = LayerResult(
            name=name,
            features=features,
            color_of=_identified_colors(features, colors),
            index=build_index(features),
        )
    return results
