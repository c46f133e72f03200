"""Clip engine exception taxonomy.

Every error raised by an analysis stage inherits from ``PipelineError``
and carries the stage name, a machine-readable code and the run it
belongs to.  Callers decide whether to retry a run from the error
category; the engine itself never retries.

Taxonomy categories
-------------------
- ``ValidationError``: bad input (area of interest, config), never retryable.
- ``TransientError``: a collaborator failed (corpus loader), retryable by the caller.
- ``PermanentError``: the run cannot complete with this input (buffer, cancellation).

Every exception exposes ``to_error_dict()`` for a stable structured
payload suitable for logging and for the presentation layer.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base exception for all clip-engine errors.

    Attributes:
        message: Human-readable error description.
        stage: Analysis stage where the error occurred
            (e.g. ``"adapt_geometry"``, ``"prepare_area"``).
        code: Machine-readable error code (e.g. ``"NO_POLYGON_FOUND"``).
        retryable: Whether the caller may retry the run unchanged.
        run_id: Identifier of the analysis run that failed.
    """

    #: Default stage for subclasses (override via class attribute or kwarg).
    default_stage: str = ""
    #: Default code for subclasses (override via class attribute or kwarg).
    default_code: str = ""

    def __init__(
        self,
        message: str = "",
        *,
        stage: str = "",
        code: str = "",
        retryable: bool = False,
        run_id: str = "",
    ) -> None:
        self.message = message
        self.stage = stage or self.default_stage
        self.code = code or self.default_code
        self.retryable = retryable
        self.run_id = run_id
        super().__init__(message)

    @property
    def category(self) -> str:
        """Return the error category based on concrete class."""
        if isinstance(self, ValidationError):
            return "validation"
        if isinstance(self, TransientError):
            return "transient"
        if isinstance(self, PermanentError):
            return "permanent"
        return "transient" if self.retryable else "permanent"

    def to_error_dict(self) -> dict[str, object]:
        """Return a structured error payload with stable keys."""
        return {
            "category": self.category,
            "code": self.code,
            "stage": self.stage,
            "message": self.message,
            "retryable": self.retryable,
            "run_id": self.run_id,
        }


# ---------------------------------------------------------------------------
# Category base classes
# ---------------------------------------------------------------------------


class ValidationError(PipelineError):
    """Input or domain-model validation failure. Never retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class TransientError(PipelineError):
    """A collaborator failed; the same run may succeed later."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class PermanentError(PipelineError):
    """The run cannot complete with this input. Not retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]
