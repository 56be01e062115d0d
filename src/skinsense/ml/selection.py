"""Result selection: pick the top class and format its confidence."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from functools import reduce
from typing import TYPE_CHECKING

from skinsense.ml.errors import InferenceError, NoSelectionError, ShapeMismatchError
from skinsense.ml.results import ClassificationFailure, ClassificationResult

if TYPE_CHECKING:
    from collections.abc import Sequence

    from skinsense.ml.results import PredictionResult

_NO_INDEX = -1
_THRESHOLD = 0.0
_MAX_CONFIDENCE = 1.0


def _keep_best(best: tuple[int, float], candidate: tuple[int, float]) -> tuple[int, float]:
    # Strict comparison: ties keep the earlier index.
    return candidate if candidate[1] > best[1] else best


def argmax(probs: Sequence[float]) -> tuple[int, float]:
    """Return ``(index, value)`` of the first maximum above zero.

    Returns ``(-1, 0.0)`` when no value is strictly greater than zero.
    """
    return reduce(_keep_best, ((i, float(p)) for i, p in enumerate(probs)), (_NO_INDEX, _THRESHOLD))


def round_confidence(value: float, decimals: int = 2) -> float:
    """Round half away from zero on the exact binary value of ``value``."""
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def select(probs: Sequence[float], labels: Sequence[str], *, decimals: int = 2) -> PredictionResult:
    """Map a probability vector to the top label and rounded confidence.

    Returns a failure result, never raises, when the vector holds a
    non-finite value, no class scores above zero, the winning index has no
    label, or the rounded winning score is above 1.
    """
    non_finite = [i for i, p in enumerate(probs) if not math.isfinite(float(p))]
    if non_finite:
        return ClassificationFailure.from_error(
            InferenceError(f"Model returned non-finite scores at indices {non_finite}")
        )
    index, value = argmax(probs)
    if index == _NO_INDEX:
        return ClassificationFailure.from_error(
            NoSelectionError(f"No class scored above {_THRESHOLD} across {len(probs)} outputs")
        )
    if index >= len(labels):
        return ClassificationFailure.from_error(
            ShapeMismatchError(f"Predicted index {index} is out of range for {len(labels)} labels")
        )
    confidence = round_confidence(value, decimals)
    if confidence > _MAX_CONFIDENCE:
        return ClassificationFailure.from_error(
            InferenceError(f"Top score {value} is not a probability; expected a value in [0, 1]")
        )
    return ClassificationResult(label=labels[index], confidence=confidence)
