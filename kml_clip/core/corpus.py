"""Boundary to the external corpus loader.

The engine never fetches anything: an external loader hands it decoded
GeoJSON FeatureCollections.  This module turns such a collection into an
immutable ``Corpus`` of ``Feature`` objects, and provides a local-file
loader for the command line and tests.

Any failure to obtain a usable collection is surfaced as
``CorpusUnavailable`` before a run starts any intersection work.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from kml_clip.core.constants import DEFAULT_ID_PROPERTY
from kml_clip.core.exceptions import TransientError
from kml_clip.models.feature import Feature, SourceTag

logger = logging.getLogger("kml_clip.core.corpus")


class CorpusUnavailable(TransientError):
    """Raised when a reference corpus could not be loaded or decoded."""

    default_stage = "load_corpus"
    default_code = "CORPUS_UNAVAILABLE"


@dataclass(frozen=True, slots=True)
class Corpus:
    """A named, read-only reference corpus.

    Safe to share across runs: neither the tuple nor its features are
    ever modified by the engine.

    Attributes:
        name: Layer name (e.g. ``"localities"``, ``"languages"``).
        features: Decoded features in source order.
        id_property: Property the identifiers were read from.
        origin: Provenance tag given to every feature at load time.
        skipped: Source features dropped (no geometry, unsupported or malformed).
    """

    name: str
    features: tuple[Feature, ...]
    id_property: str = DEFAULT_ID_PROPERTY
    origin: SourceTag = SourceTag.UNTAGGED
    skipped: int = 0

    def __len__(self) -> int:
        return len(self.features)


def load_feature_collection(path: Path | str) -> dict[str, object]:
    """Read and decode a GeoJSON FeatureCollection from a local file.

    Raises:
        CorpusUnavailable: If the file cannot be read, is not JSON, or is
            not a FeatureCollection.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Cannot read corpus file {path}: {exc}"
        raise CorpusUnavailable(msg) from exc

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        msg = f"Corpus file {path} is not valid JSON: {exc}"
        raise CorpusUnavailable(msg) from exc

    _check_collection(data, str(path))
    return data


def build_corpus(
    collection: Mapping[str, object] | None,
    *,
    name: str,
    id_property: str = DEFAULT_ID_PROPERTY,
    origin: SourceTag = SourceTag.UNTAGGED,
) -> Corpus:
    """Decode a FeatureCollection into a ``Corpus``.

    Features without geometry, with an unsupported geometry type, or with
    malformed coordinates are skipped and counted, never fatal.

    Raises:
        CorpusUnavailable: If *collection* is missing or not a
            FeatureCollection.
    """
    _check_collection(collection, name)
    raw_features = collection["features"]  # type: ignore[index]

    features: list[Feature] = []
    skipped = 0
    for idx, raw in enumerate(raw_features):  # type: ignore[arg-type]
        if not isinstance(raw, Mapping):
            skipped += 1
            continue
        try:
            feature = Feature.from_geojson(raw, id_property=id_property, origin=origin)
        except (TypeError, ValueError) as exc:
            logger.debug("Skipping malformed feature | corpus=%s | index=%d | %s", name, idx, exc)
            skipped += 1
            continue
        if feature is None:
            skipped += 1
            continue
        features.append(feature)

    if skipped:
        logger.warning(
            "Corpus features skipped | corpus=%s | skipped=%d | kept=%d",
            name,
            skipped,
            len(features),
        )
    logger.info(
        "Corpus loaded | corpus=%s | features=%d | id_property=%s | origin=%s",
        name,
        len(features),
        id_property,
        origin.value,
    )
    return Corpus(
        name=name,
        features=tuple(features),
        id_property=id_property,
        origin=origin,
        skipped=skipped,
    )


def _check_collection(data: object, source: str) -> None:
    if data is None:
        msg = f"Corpus {source} is unavailable"
        raise CorpusUnavailable(msg)
    if not isinstance(data, Mapping):
        msg = f"Corpus {source} must be a JSON object, got {type(data).__name__}"
        raise CorpusUnavailable(msg)
    if not isinstance(data.get("features"), list):
        msg = f"Corpus {source} is not a FeatureCollection (no 'features' list)"
        raise CorpusUnavailable(msg)
