"""Model manager: locate, load, invoke, and release the ONNX classifier.

Model and label artifacts come from local paths or, when a repo is
configured, from the Hugging Face Hub. The loaded model is wrapped in a
:class:`ModelHandle` that validates tensor shapes, serializes inference, and
releases the ONNX Runtime session exactly once.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
from huggingface_hub import hf_hub_download
from onnxruntime import InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

from skinsense.ml.errors import (
    InferenceError,
    ModelLoadError,
    ModelReleasedError,
    ShapeMismatchError,
)

if TYPE_CHECKING:
    from types import TracebackType

    from numpy.typing import ArrayLike, NDArray

    from skinsense.config import Settings

logger = logging.getLogger(__name__)

_FLOAT_INPUT_TYPE = "tensor(float)"
_CHANNELS = 3


# ---------------------------------------------------------------------------
# Artifact resolution
# ---------------------------------------------------------------------------


def resolve_artifacts(settings: Settings) -> tuple[Path, Path]:
    """Return local ``(model_path, labels_path)``, downloading from the Hub if configured.

    Raises:
        ModelLoadError: If the download fails.
    """
    if settings.model_repo_id is None:
        return settings.model_path, settings.labels_path

    models_dir = Path(settings.models_dir)
    models_dir.mkdir(parents=True, exist_ok=True)
    try:
        model_path = Path(
            hf_hub_download(
                repo_id=settings.model_repo_id,
                filename=settings.model_filename,
                local_dir=str(models_dir),
            )
        )
        labels_path = Path(
            hf_hub_download(
                repo_id=settings.model_repo_id,
                filename=settings.labels_filename,
                local_dir=str(models_dir),
            )
        )
    except Exception as exc:
        raise ModelLoadError(f"Failed to download artifacts from {settings.model_repo_id}: {exc}") from exc

    logger.info("Downloaded %s and %s to %s", settings.model_filename, settings.labels_filename, models_dir)
    return model_path, labels_path


def read_model_bytes(path: Path) -> bytes:
    """Read a serialized model file.

    Raises:
        ModelLoadError: If the file is missing or unreadable.
    """
    try:
        return path.read_bytes()
    except OSError as exc:
        raise ModelLoadError(f"Failed to read model from {path}: {exc}") from exc


# ---------------------------------------------------------------------------
# Model handle
# ---------------------------------------------------------------------------


def _static_dim(dim: object) -> int | None:
    """Return a dimension if it is a fixed integer, else None (symbolic)."""
    return dim if isinstance(dim, int) and dim > 0 else None


class ModelHandle:
    """A loaded classifier with serialized, shape-checked inference.

    At most one :meth:`predict` runs at a time. After :meth:`release`, every
    call to :meth:`predict` raises :class:`ModelReleasedError`.
    """

    def __init__(self, session: InferenceSession) -> None:
        inputs = session.get_inputs()
        outputs = session.get_outputs()
        if len(inputs) != 1 or not outputs:
            raise ModelLoadError(f"Expected one input and at least one output, got {len(inputs)} and {len(outputs)}")

        model_input = inputs[0]
        if model_input.type != _FLOAT_INPUT_TYPE:
            raise ModelLoadError(f"Unsupported input type {model_input.type}, expected {_FLOAT_INPUT_TYPE}")

        shape = list(model_input.shape)
        if len(shape) != 4:
            raise ModelLoadError(f"Expected NHWC input of rank 4, got shape {shape}")
        channels = _static_dim(shape[3])
        if channels is not None and channels != _CHANNELS:
            raise ModelLoadError(f"Expected {_CHANNELS} input channels, got shape {shape}")
        height, width = _static_dim(shape[1]), _static_dim(shape[2])
        if height != width:
            raise ModelLoadError(f"Expected a square input, got shape {shape}")

        num_classes = _static_dim(list(outputs[0].shape)[-1]) if outputs[0].shape else None
        if num_classes is None:
            raise ModelLoadError(f"Output class count is not static: {outputs[0].shape}")

        self._session: InferenceSession | None = session
        self._input_name: str = model_input.name
        self._output_name: str = outputs[0].name
        self._input_side = height
        self._num_classes = num_classes
        self._side: int | None = height
        self._lock = threading.Lock()

    # -- Properties ---------------------------------------------------------

    @property
    def input_side(self) -> int | None:
        """Input side length declared by the model, or None if symbolic."""
        return self._input_side

    @property
    def input_shape(self) -> tuple[int, int, int, int] | None:
        """Resolved ``(1, S, S, 3)`` input shape, once the side is known."""
        if self._side is None:
            return None
        return (1, self._side, self._side, _CHANNELS)

    @property
    def num_classes(self) -> int:
        """Number of classes in the output vector."""
        return self._num_classes

    @property
    def released(self) -> bool:
        return self._session is None

    # -- Public API ---------------------------------------------------------

    def validate(self, target_side: int, num_labels: int) -> None:
        """Check the model against configured input side and label count.

        A model with a symbolic spatial size adopts ``target_side``.

        Raises:
            ShapeMismatchError: If the model disagrees with the configuration.
        """
        if self._input_side is not None and self._input_side != target_side:
            raise ShapeMismatchError(f"Model expects side {self._input_side}, configured target_side is {target_side}")
        if self._num_classes != num_labels:
            raise ShapeMismatchError(f"Model outputs {self._num_classes} classes but {num_labels} labels were loaded")
        self._side = target_side

    def predict(self, tensor: ArrayLike) -> NDArray[np.float32]:
        """Run the model on a normalized tensor and return its probability vector.

        Raises:
            ShapeMismatchError: If the tensor size differs from ``S*S*3``.
            ModelReleasedError: If the handle has been released.
            InferenceError: If the engine fails.
        """
        array = np.asarray(tensor, dtype=np.float32)
        with self._lock:
            if self._session is None:
                raise ModelReleasedError("Model handle has been released")
            shape = self.input_shape
            if shape is None:
                raise ShapeMismatchError("Model input side is unknown; call validate() first")
            expected = shape[1] * shape[2] * shape[3]
            if array.size != expected:
                raise ShapeMismatchError(f"Tensor has {array.size} elements, model expects {expected} {shape}")

            try:
                outputs = self._session.run([self._output_name], {self._input_name: array.reshape(shape)})
            except Exception as exc:
                raise InferenceError(f"Model invocation failed: {exc}") from exc

        probs = np.asarray(outputs[0], dtype=np.float32).reshape(-1)
        if probs.size != self._num_classes:
            raise ShapeMismatchError(f"Model returned {probs.size} values, expected {self._num_classes}")
        return probs

    def release(self) -> None:
        """Free the ONNX Runtime session. Later calls are no-ops."""
        with self._lock:
            if self._session is None:
                return
            self._session = None
        logger.info("Model session released")

    def __enter__(self) -> ModelHandle:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def build_session_options(intra_op_threads: int = 0, inter_op_threads: int = 1) -> SessionOptions:
    opts = SessionOptions()
    opts.intra_op_num_threads = intra_op_threads
    opts.inter_op_num_threads = inter_op_threads
    opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL
    opts.enable_mem_pattern = True
    opts.enable_mem_reuse = True
    return opts


def load_model(model_bytes: bytes, *, intra_op_threads: int = 0, inter_op_threads: int = 1) -> ModelHandle:
    """Create a :class:`ModelHandle` from a serialized ONNX model.

    Raises:
        ModelLoadError: If the bytes are not a loadable model or its
            signature is not a single NHWC float image input.
    """
    if not model_bytes:
        raise ModelLoadError("Empty model buffer")
    try:
        session = InferenceSession(
            model_bytes,
            sess_options=build_session_options(intra_op_threads, inter_op_threads),
            providers=["CPUExecutionProvider"],
        )
    except Exception as exc:
        raise ModelLoadError(f"Failed to load model: {exc}") from exc

    handle = ModelHandle(session)
    logger.info("Loaded model (input side=%s, classes=%d)", handle.input_side, handle.num_classes)
    return handle
