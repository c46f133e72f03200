"""Unit tests for the batched intersection stage.

Covers:
- Batch size computation (floor and divisor)
- Predicate correctness: points, polygon overlap, edge contact, multi-part
- Batch invariance: sizes 1, 500 and the corpus size give the same result
- Progress: one call per batch, non-decreasing, single call for an empty corpus
- Cooperative yielding and cancellation at batch boundaries
"""

from __future__ import annotations

import asyncio

import pytest

from kml_clip.core.corpus import build_corpus
from kml_clip.core.progress import ProgressReporter, ProgressWindow, RecordingProgress
from kml_clip.core.scheduling import AnalysisCancelled, CancellationToken, ImmediateScheduler
from kml_clip.models.area import EffectiveClip
from kml_clip.models.feature import Feature
from kml_clip.stages.intersect import (
    compute_batch_size,
    feature_intersects,
    intersect,
    iter_batches,
)


def _feature(geojson_geometry: dict[str, object], fid: str | None = None) -> Feature:
    feature = Feature.from_geojson(
        {"type": "Feature", "geometry": geojson_geometry, "properties": {"CVEGEO": fid}}
    )
    assert feature is not None
    return feature


def _grid_corpus(count: int) -> list[Feature]:
    """Points on a line crossing the area; every third one is inside."""
    features = []
    for i in range(count):
        lon = -99.005 if i % 3 == 0 else -98.5
        lat = 19.0 + (i % 7) * 0.001
        features.append(_feature({"type": "Point", "coordinates": [lon, lat]}, f"F{i:05d}"))
    return features


# ===========================================================================
# Batch size
# ===========================================================================


class TestComputeBatchSize:
    def test_small_corpus_uses_floor(self) -> None:
        assert compute_batch_size(10) == 500

    def test_large_corpus_uses_divisor(self) -> None:
        assert compute_batch_size(300_000) == 1500

    def test_threshold(self) -> None:
        assert compute_batch_size(100_000) == 500
        assert compute_batch_size(100_200) == 501

    def test_custom_parameters(self) -> None:
        assert compute_batch_size(1000, floor=10, divisor=10) == 100

    def test_invalid_parameters_raise(self) -> None:
        with pytest.raises(ValueError, match="floor"):
            compute_batch_size(100, floor=0)
        with pytest.raises(ValueError, match="divisor"):
            compute_batch_size(100, divisor=0)


# ===========================================================================
# Predicate
# ===========================================================================


class TestFeatureIntersects:
    def test_point_inside(self, exact_clip: EffectiveClip) -> None:
        assert feature_intersects(
            _feature({"type": "Point", "coordinates": [-99.0, 19.0]}), exact_clip
        )

    def test_point_outside(self, exact_clip: EffectiveClip) -> None:
        assert not feature_intersects(
            _feature({"type": "Point", "coordinates": [-98.0, 19.0]}), exact_clip
        )

    def test_point_on_boundary_intersects(self, exact_clip: EffectiveClip) -> None:
        assert feature_intersects(
            _feature({"type": "Point", "coordinates": [-99.0 + 0.01, 19.0]}), exact_clip
        )

    def test_polygon_partial_overlap(self, exact_clip: EffectiveClip) -> None:
        ring = [[-98.995, 18.995], [-98.98, 18.995], [-98.98, 19.005], [-98.995, 19.005], [-98.995, 18.995]]
        assert feature_intersects(_feature({"type": "Polygon", "coordinates": [ring]}), exact_clip)

    def test_polygon_containing_clip(self, exact_clip: EffectiveClip) -> None:
        ring = [[-100.0, 18.0], [-98.0, 18.0], [-98.0, 20.0], [-100.0, 20.0], [-100.0, 18.0]]
        assert feature_intersects(_feature({"type": "Polygon", "coordinates": [ring]}), exact_clip)

    def test_multipolygon_any_part(self, exact_clip: EffectiveClip) -> None:
        far = [[-90.0, 10.0], [-89.9, 10.0], [-89.9, 10.1], [-90.0, 10.1], [-90.0, 10.0]]
        near = [[-99.001, 18.999], [-98.999, 18.999], [-98.999, 19.001], [-99.001, 19.001], [-99.001, 18.999]]
        feature = _feature({"type": "MultiPolygon", "coordinates": [[far], [near]]})
        assert feature_intersects(feature, exact_clip)

    def test_multipoint_outside(self, exact_clip: EffectiveClip) -> None:
        feature = _feature({"type": "MultiPoint", "coordinates": [[-98.0, 19.0], [-97.0, 19.0]]})
        assert not feature_intersects(feature, exact_clip)

    def test_bbox_overlap_but_no_intersection(self, exact_clip: EffectiveClip) -> None:
        """An L-shaped polygon whose box covers the area but whose body does not."""
        ring = [
            [-99.05, 18.95],
            [-98.95, 18.95],
            [-98.95, 18.96],
            [-99.04, 18.96],
            [-99.04, 19.05],
            [-99.05, 19.05],
            [-99.05, 18.95],
        ]
        assert not feature_intersects(_feature({"type": "Polygon", "coordinates": [ring]}), exact_clip)


# ===========================================================================
# Batching core
# ===========================================================================


class TestIterBatches:
    def test_outcomes_cover_corpus(self, exact_clip: EffectiveClip) -> None:
        corpus = _grid_corpus(10)
        outcomes = list(iter_batches(corpus, exact_clip, 4))
        assert [o.number for o in outcomes] == [1, 2, 3]
        assert [o.done for o in outcomes] == [4, 8, 10]
        assert outcomes[-1].fraction == pytest.approx(1.0)

    def test_empty_yields_nothing(self, exact_clip: EffectiveClip) -> None:
        assert list(iter_batches([], exact_clip, 10)) == []

    def test_zero_batch_size_raises(self, exact_clip: EffectiveClip) -> None:
        with pytest.raises(ValueError, match="batch_size"):
            list(iter_batches(_grid_corpus(3), exact_clip, 0))


# ===========================================================================
# Intersect driver
# ===========================================================================


class TestIntersectCorrectness:
    def test_matches_iff_predicate_holds(self, exact_clip: EffectiveClip) -> None:
        corpus = _grid_corpus(50)
        result = asyncio.run(intersect(corpus, exact_clip))
        expected = [f for f in corpus if exact_clip.geometry.intersects(f.geometry)]
        assert list(result) == expected

    def test_returns_original_objects(self, exact_clip: EffectiveClip) -> None:
        corpus = _grid_corpus(9)
        result = asyncio.run(intersect(corpus, exact_clip))
        assert all(any(r is f for f in corpus) for r in result)

    def test_properties_preserved_verbatim(self, exact_clip: EffectiveClip) -> None:
        raw = {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [-99.0, 19.0]},
            "properties": {"CVEGEO": "X", "extra": None, "nested": {"a": 1}},
        }
        feature = Feature.from_geojson(raw)
        assert feature is not None
        (match,) = asyncio.run(intersect([feature], exact_clip))
        assert match.properties == {"CVEGEO": "X", "extra": None, "nested": {"a": 1}}

    def test_accepts_corpus_object(self, exact_clip: EffectiveClip, locality_polygons: dict) -> None:
        corpus = build_corpus(locality_polygons, name="localities")
        result = asyncio.run(intersect(corpus, exact_clip))
        assert [f.id for f in result] == ["A", "C"]


class TestBatchInvariance:
    @pytest.mark.parametrize("batch_size", [1, 500, 1234])
    def test_same_result_for_any_batch_size(self, exact_clip: EffectiveClip, batch_size: int) -> None:
        corpus = _grid_corpus(1234)
        baseline = asyncio.run(intersect(corpus, exact_clip, batch_size=len(corpus)))
        result = asyncio.run(intersect(corpus, exact_clip, batch_size=batch_size))
        assert [id(f) for f in result] == [id(f) for f in baseline]


class TestIntersectProgress:
    def test_one_call_per_batch(self, exact_clip: EffectiveClip) -> None:
        sink = RecordingProgress()
        asyncio.run(intersect(_grid_corpus(10), exact_clip, batch_size=3, progress=sink, label="demo"))
        assert len(sink.events) == 4
        assert sink.events[-1] == (100.0, "Processing demo… 10/10")

    def test_progress_non_decreasing(self, exact_clip: EffectiveClip) -> None:
        sink = RecordingProgress()
        asyncio.run(intersect(_grid_corpus(25), exact_clip, batch_size=2, progress=sink))
        assert sink.percents == sorted(sink.percents)
        assert all(0.0 <= p <= 100.0 for p in sink.percents)

    def test_empty_corpus_single_call_at_100(self, exact_clip: EffectiveClip) -> None:
        sink = RecordingProgress()
        result = asyncio.run(intersect([], exact_clip, progress=sink))
        assert result == ()
        assert len(sink.events) == 1
        assert sink.events[0][0] == 100.0

    def test_window_maps_into_range(self, exact_clip: EffectiveClip) -> None:
        sink = RecordingProgress()
        asyncio.run(
            intersect(
                _grid_corpus(4),
                exact_clip,
                batch_size=2,
                progress=sink,
                window=ProgressWindow(20.0, 60.0),
            )
        )
        assert sink.percents == [pytest.approx(40.0), pytest.approx(60.0)]

    def test_shared_reporter_keeps_last_percent(self, exact_clip: EffectiveClip) -> None:
        sink = RecordingProgress()
        reporter = ProgressReporter(sink)
        reporter.report(50.0, "before")
        asyncio.run(
            intersect(_grid_corpus(4), exact_clip, batch_size=2, progress=reporter, window=ProgressWindow(0, 40))
        )
        assert sink.percents == [50.0, 50.0, 50.0]


class TestIntersectScheduling:
    def test_yields_once_per_batch(self, exact_clip: EffectiveClip) -> None:
        scheduler = ImmediateScheduler()
        asyncio.run(intersect(_grid_corpus(10), exact_clip, batch_size=3, scheduler=scheduler))
        assert scheduler.yields == 4

    def test_default_scheduler_suspends_between_batches(self, exact_clip: EffectiveClip) -> None:
        ticks: list[int] = []

        async def ticker(done: asyncio.Event) -> None:
            while not done.is_set():
                ticks.append(1)
                await asyncio.sleep(0)

        async def scenario() -> int:
            done = asyncio.Event()
            task = asyncio.create_task(ticker(done))
            await asyncio.sleep(0)
            before = len(ticks)
            await intersect(_grid_corpus(10), exact_clip, batch_size=2)
            during = len(ticks) - before
            done.set()
            await task
            return during

        assert asyncio.run(scenario()) >= 4

    def test_default_batching_yields_once_for_small_corpus(self, exact_clip: EffectiveClip) -> None:
        scheduler = ImmediateScheduler()
        asyncio.run(intersect(_grid_corpus(499), exact_clip, scheduler=scheduler))
        assert scheduler.yields == 1

    def test_cancel_stops_at_next_boundary(self, exact_clip: EffectiveClip) -> None:
        token = CancellationToken()
        calls: list[float] = []

        def sink(percent: float, message: str) -> None:
            calls.append(percent)
            token.cancel("user aborted")

        with pytest.raises(AnalysisCancelled, match="user aborted") as exc_info:
            asyncio.run(
                intersect(_grid_corpus(10), exact_clip, batch_size=2, progress=sink, cancel=token, run_id="r1")
            )
        assert len(calls) == 1
        assert exc_info.value.stage == "intersect"
        assert exc_info.value.run_id == "r1"
        assert exc_info.value.retryable is False

    def test_uncancelled_token_completes(self, exact_clip: EffectiveClip) -> None:
        token = CancellationToken()
        result = asyncio.run(intersect(_grid_corpus(6), exact_clip, batch_size=2, cancel=token))
        assert len(result) == 2
