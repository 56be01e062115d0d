"""Shared fixtures: tiny ONNX classifiers, encoded images, and artifact files."""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

import numpy as np
import pytest
from onnx import TensorProto, helper, numpy_helper
from PIL import Image

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

SIDE = 4
LABELS = ("a", "b", "c")


def build_onnx_classifier(
    side: int = SIDE,
    num_classes: int = len(LABELS),
    weights: np.ndarray | None = None,
    symbolic_side: bool = False,
) -> bytes:
    """Serialize ``softmax(flatten(image) @ weights)`` as an ONNX model."""
    flat = side * side * 3
    if weights is None:
        weights = np.zeros((flat, num_classes), dtype=np.float32)
    input_dims: list[int | str] = ["batch", "height", "width", 3] if symbolic_side else [1, side, side, 3]

    graph = helper.make_graph(
        [
            helper.make_node("Reshape", ["image", "flat_shape"], ["flat"]),
            helper.make_node("MatMul", ["flat", "weights"], ["logits"]),
            helper.make_node("Softmax", ["logits"], ["probs"], axis=-1),
        ],
        "tiny_classifier",
        [helper.make_tensor_value_info("image", TensorProto.FLOAT, input_dims)],
        [helper.make_tensor_value_info("probs", TensorProto.FLOAT, [1, num_classes])],
        initializer=[
            numpy_helper.from_array(np.array([1, -1], dtype=np.int64), name="flat_shape"),
            numpy_helper.from_array(weights.astype(np.float32), name="weights"),
        ],
    )
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", 13)])
    model.ir_version = 8
    return model.SerializeToString()


def favor_class(index: int, side: int = SIDE, num_classes: int = len(LABELS)) -> np.ndarray:
    """Weights whose logit for ``index`` is the sum of all input values."""
    weights = np.zeros((side * side * 3, num_classes), dtype=np.float32)
    weights[:, index] = 1.0
    return weights


def encode_image(
    color: tuple[int, ...] | int = (128, 128, 128),
    size: tuple[int, int] = (8, 6),
    mode: str = "RGB",
    fmt: str = "PNG",
) -> bytes:
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture()
def grey_png() -> bytes:
    return encode_image((128, 128, 128))


@pytest.fixture()
def write_artifacts(tmp_path: Path) -> Callable[..., tuple[Path, Path]]:
    """Write a model and label file into ``tmp_path`` and return their paths."""

    def _write(
        model_bytes: bytes | None = None,
        labels_text: str = "\n".join(LABELS) + "\n\n",
    ) -> tuple[Path, Path]:
        model_path = tmp_path / "model.onnx"
        labels_path = tmp_path / "labels.txt"
        model_path.write_bytes(model_bytes if model_bytes is not None else build_onnx_classifier())
        labels_path.write_text(labels_text, encoding="utf-8")
        return model_path, labels_path

    return _write
