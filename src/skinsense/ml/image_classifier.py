"""Image classification pipeline.

decode -> resize -> normalize -> invoke model -> select top class.

:class:`ImageClassifier` owns the process-wide model handle and label set.
Create it once with :meth:`ImageClassifier.from_settings` and release it with
:meth:`ImageClassifier.close`.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from skinsense.ml.errors import PipelineError
from skinsense.ml.labels import load_labels
from skinsense.ml.model_manager import load_model, read_model_bytes, resolve_artifacts
from skinsense.ml.preprocessing import normalize
from skinsense.ml.results import ClassificationFailure
from skinsense.ml.selection import select

if TYPE_CHECKING:
    from skinsense.config import Settings
    from skinsense.ml.labels import LabelSet
    from skinsense.ml.model_manager import ModelHandle
    from skinsense.ml.results import PredictionResult

logger = logging.getLogger(__name__)


class ImageClassifier:
    """Runs the full classification pipeline against a shared model and label set."""

    def __init__(self, handle: ModelHandle, labels: LabelSet, settings: Settings) -> None:
        handle.validate(settings.target_side, len(labels))
        self._handle = handle
        self._labels = labels
        self._settings = settings

    @classmethod
    def from_settings(cls, settings: Settings) -> ImageClassifier:
        """Resolve artifacts, load labels and model, and validate their shapes.

        Raises:
            ModelLoadError: If an artifact is missing or corrupt.
            ShapeMismatchError: If the model disagrees with the labels or
                configured input side.
        """
        model_path, labels_path = resolve_artifacts(settings)
        labels = load_labels(labels_path)
        handle = load_model(
            read_model_bytes(model_path),
            intra_op_threads=settings.intra_op_threads,
            inter_op_threads=settings.inter_op_threads,
        )
        try:
            return cls(handle, labels, settings)
        except PipelineError:
            handle.release()
            raise

    @property
    def labels(self) -> LabelSet:
        return self._labels

    @property
    def handle(self) -> ModelHandle:
        return self._handle

    def classify(self, image_bytes: bytes) -> PredictionResult:
        """Classify an encoded image.

        Always returns a result; pipeline errors become a
        :class:`ClassificationFailure`.
        """
        settings = self._settings
        start = time.perf_counter()
        try:
            tensor = normalize(
                image_bytes,
                settings.target_side,
                settings.mean,
                settings.std,
                resample=settings.resample,
                max_image_pixels=settings.max_image_pixels,
            )
            probs = self._handle.predict(tensor)
        except PipelineError as exc:
            logger.warning("Classification failed (%s): %s", exc.kind, exc)
            return ClassificationFailure.from_error(exc)

        result = select(probs, self._labels, decimals=settings.confidence_decimals)
        elapsed_ms = (time.perf_counter() - start) * 1000
        if isinstance(result, ClassificationFailure):
            logger.warning("No prediction (%s): %s", result.kind, result.error)
        else:
            logger.info("Predicted %s (%.2f) in %.1f ms", result.label, result.confidence, elapsed_ms)
        return result

    def close(self) -> None:
        """Release the model handle."""
        self._handle.release()
