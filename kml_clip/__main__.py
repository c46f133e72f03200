"""Command-line entry point: ``python -m kml_clip``.

Loads the corpora and the converted area of interest from local GeoJSON
files, runs one analysis and prints the result snapshot as JSON on
stdout.  Logs and progress go to stderr.

Example::

    python -m kml_clip area.geojson localities.geojson \\
        --points locality_points.geojson \\
        --layer languages=languages.geojson:CVE_LENGUA \\
        --mode nucleo --buffer-m 500
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from kml_clip import __version__
from kml_clip.core.config import ClipConfig
from kml_clip.core.constants import LOCALITIES_LAYER
from kml_clip.core.corpus import load_feature_collection
from kml_clip.core.exceptions import PipelineError
from kml_clip.core.logging import configure_logging
from kml_clip.core.progress import LoggingProgress
from kml_clip.models.area import AnalysisMode
from kml_clip.orchestrators.analysis import AnalysisSession, run_analysis_sync

logger = logging.getLogger("kml_clip.cli")


def parse_layer(value: str) -> tuple[str, Path, str | None]:
    """Parse ``NAME=PATH[:ID_PROPERTY]`` into its parts.

    Raises:
        argparse.ArgumentTypeError: If the value has no name or no path, or
            names the reserved locality layer.
    """
    name, sep, rest = value.partition("=")
    if not sep or not name.strip() or not rest:
        msg = f"expected NAME=PATH[:ID_PROPERTY], got {value!r}"
        raise argparse.ArgumentTypeError(msg)
    if name.strip() == LOCALITIES_LAYER:
        msg = f"layer name {LOCALITIES_LAYER!r} is reserved for the locality corpora"
        raise argparse.ArgumentTypeError(msg)
    path, _, id_property = rest.rpartition(":") if _has_id_suffix(rest) else (rest, "", "")
    return name.strip(), Path(path), id_property or None


def _has_id_suffix(rest: str) -> bool:
    # A Windows drive letter ("C:\\...") is not an id suffix.
    head, sep, tail = rest.rpartition(":")
    return bool(sep and head and tail and "/" not in tail and "\\" not in tail)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kml_clip",
        description="Clip locality corpora against a KML area of interest (converted to GeoJSON).",
    )
    parser.add_argument("area", type=Path, help="Area of interest as a GeoJSON FeatureCollection")
    parser.add_argument("polygons", type=Path, help="Locality polygon corpus (GeoJSON)")
    parser.add_argument("--points", type=Path, help="Locality point corpus (GeoJSON)")
    parser.add_argument(
        "--layer",
        action="append",
        default=[],
        type=parse_layer,
        metavar="NAME=PATH[:ID_PROPERTY]",
        help="Context layer to clip alongside the localities (repeatable)",
    )
    parser.add_argument(
        "--mode",
        choices=[m.value for m in AnalysisMode],
        help="Analysis mode (default: CLIP_ANALYSIS_MODE or nucleo)",
    )
    parser.add_argument("--buffer-m", type=float, help="Core-mode buffer radius in metres")
    parser.add_argument("--id-property", help="Identifier property of the locality corpora")
    parser.add_argument("--log-file", type=Path, help="Also write DEBUG logs to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)

    try:
        config = ClipConfig.from_env()
        if args.id_property:
            config = replace(config, id_property=args.id_property)

        session = AnalysisSession(config)
        session.register_polygon_corpus(load_feature_collection(args.polygons))
        if args.points is not None:
            session.register_point_corpus(load_feature_collection(args.points))
        for name, path, id_property in args.layer:
            session.register_layer(name, load_feature_collection(path), id_property=id_property)

        area = load_feature_collection(args.area)
        result = run_analysis_sync(
            session,
            area,
            mode=args.mode,
            buffer_m=args.buffer_m,
            progress=LoggingProgress(),
        )
    except PipelineError as exc:
        logger.error("%s [%s/%s]", exc.message, exc.category, exc.code)
        return 1

    json.dump(result.snapshot(), sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
