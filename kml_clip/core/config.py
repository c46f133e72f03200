"""Engine configuration loaded from environment variables.

All values have defaults matching the reference behaviour (core mode,
500 m buffer, batches of at least 500 features).  ``from_env()`` raises
``ConfigValidationError`` if any value is out of range, so a bad setting
fails at startup instead of in the middle of a run.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass

from kml_clip.core.constants import (
    BATCH_DIVISOR,
    CORE_BUFFER_M,
    DEFAULT_ID_PROPERTY,
    MIN_BATCH_SIZE,
)
from kml_clip.core.exceptions import ValidationError
from kml_clip.models.area import AnalysisMode

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


class ConfigValidationError(ValidationError):
    """Raised when configuration values are out of valid range.

    Attributes:
        key: The configuration key that failed validation.
        value: The invalid value.
    """

    default_stage = "config"
    default_code = "CONFIG_VALIDATION_FAILED"

    def __init__(self, key: str, value: object, message: str) -> None:
        self.key = key
        self.value = value
        super().__init__(f"Invalid configuration {key}={value!r}: {message}")


@dataclass(frozen=True, slots=True)
class ClipConfig:
    """Immutable engine configuration.

    Loaded once by the caller and stored on the ``AnalysisSession``.

    Attributes:
        analysis_mode: Default mode for runs that do not pass one.
        core_buffer_m: Buffer radius in metres used in core mode.
        min_batch_size: Floor of the intersection batch size.
        batch_divisor: Corpus size is divided by this to size large batches.
        id_property: Property holding the locality identifier.
        check_overlaps: Run the pairwise overlap diagnostic on the input area.
    """

    analysis_mode: AnalysisMode = AnalysisMode.CORE
    core_buffer_m: float = CORE_BUFFER_M
    min_batch_size: int = MIN_BATCH_SIZE
    batch_divisor: int = BATCH_DIVISOR
    id_property: str = DEFAULT_ID_PROPERTY
    check_overlaps: bool = True

    @classmethod
    def from_env(cls) -> ClipConfig:
        """Load and validate configuration from environment variables.

        Raises:
            ConfigValidationError: If a value is out of range, unparseable,
                or a required string value is empty.
        """
        mode_raw = os.getenv("CLIP_ANALYSIS_MODE", AnalysisMode.CORE.value)
        try:
            mode = AnalysisMode.parse(mode_raw)
        except ValueError as exc:
            raise ConfigValidationError("CLIP_ANALYSIS_MODE", mode_raw, str(exc)) from exc

        config = cls(
            analysis_mode=mode,
            core_buffer_m=_float_env("CLIP_CORE_BUFFER_M", CORE_BUFFER_M),
            min_batch_size=_int_env("CLIP_MIN_BATCH_SIZE", MIN_BATCH_SIZE),
            batch_divisor=_int_env("CLIP_BATCH_DIVISOR", BATCH_DIVISOR),
            id_property=os.getenv("CLIP_ID_PROPERTY", DEFAULT_ID_PROPERTY).strip(),
            check_overlaps=_bool_env("CLIP_CHECK_OVERLAPS", default=True),
        )
        _validate(config)
        return config


def _float_env(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigValidationError(key, raw, "must be a number") from exc


def _int_env(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigValidationError(key, raw, "must be an integer") from exc


def _bool_env(key: str, *, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None:
        return default
    text = raw.strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigValidationError(key, raw, "must be a boolean (true/false)")


def _validate(config: ClipConfig) -> None:
    """Validate configuration ranges.  Raises ``ConfigValidationError``."""
    if not math.isfinite(config.core_buffer_m) or config.core_buffer_m < 0:
        raise ConfigValidationError(
            "CLIP_CORE_BUFFER_M",
            config.core_buffer_m,
            "must be a finite number >= 0 (metres)",
        )

    if config.min_batch_size < 1:
        raise ConfigValidationError(
            "CLIP_MIN_BATCH_SIZE",
            config.min_batch_size,
            "must be >= 1",
        )

    if config.batch_divisor < 1:
        raise ConfigValidationError(
            "CLIP_BATCH_DIVISOR",
            config.batch_divisor,
            "must be >= 1",
        )

    if not config.id_property:
        raise ConfigValidationError(
            "CLIP_ID_PROPERTY",
            config.id_property,
            "must not be empty",
        )
