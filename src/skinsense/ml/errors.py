"""Error taxonomy for the classification pipeline.

Every stage raises a subclass of :class:`PipelineError`. The pipeline entry
point converts them into a ``ClassificationFailure`` whose ``kind`` is the
class-level tag below.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for all classification pipeline errors."""

    kind: str = "pipeline_error"


class DecodeError(PipelineError):
    """Image bytes could not be decoded."""

    kind = "decode_error"


class ModelLoadError(PipelineError):
    """Model or label asset is missing, corrupt, or unsupported."""

    kind = "model_load_error"


class InferenceError(PipelineError):
    """The inference engine failed to run the model."""

    kind = "inference_error"


class ShapeMismatchError(InferenceError):
    """Tensor, model, and label dimensions disagree."""

    kind = "shape_mismatch"


class ModelReleasedError(InferenceError):
    """The model handle was used after release."""

    kind = "model_released"


class NoSelectionError(PipelineError):
    """No class scored above the selection threshold."""

    kind = "no_selection"
