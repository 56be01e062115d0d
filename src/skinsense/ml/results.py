"""Prediction result types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from skinsense.ml.errors import PipelineError


@dataclass(frozen=True)
class ClassificationResult:
    """The top prediction for an image."""

    label: str
    confidence: float

    @property
    def ok(self) -> bool:
        return True

    @property
    def confidence_percent(self) -> str:
        """Confidence as a display percentage, e.g. ``"70.0%"``."""
        return f"{self.confidence * 100:.1f}%"


@dataclass(frozen=True)
class ClassificationFailure:
    """A pipeline failure surfaced as a value.

    ``kind`` is the tag of the error class that produced it, for example
    ``"decode_error"`` or ``"no_selection"``.
    """

    error: str
    kind: str

    @property
    def ok(self) -> bool:
        return False

    @classmethod
    def from_error(cls, exc: PipelineError) -> ClassificationFailure:
        return cls(error=str(exc), kind=exc.kind)


PredictionResult = ClassificationResult | ClassificationFailure
