"""Image preprocessing: decode, resize, and normalize into a model input tensor.

The tensor layout is NHWC ``(1, S, S, 3)`` float32, rows top-to-bottom,
columns left-to-right, RGB per pixel. Each value is
``(channel - mean) / std`` where ``channel`` is the raw 0-255 intensity.

Resizing stretches the image to ``S x S`` without preserving aspect ratio.
The default resampling filter is nearest-neighbour; the filter changes the
tensor values fed to the model, so it must match what the model was
validated with.
"""

from __future__ import annotations

import io
from typing import TYPE_CHECKING, Literal

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from skinsense.ml.errors import DecodeError

if TYPE_CHECKING:
    from numpy.typing import NDArray

ResampleName = Literal["nearest", "bilinear", "bicubic", "lanczos"]

_RESAMPLE_FILTERS: dict[str, Image.Resampling] = {
    "nearest": Image.Resampling.NEAREST,
    "bilinear": Image.Resampling.BILINEAR,
    "bicubic": Image.Resampling.BICUBIC,
    "lanczos": Image.Resampling.LANCZOS,
}


def decode_image(image_bytes: bytes, max_image_pixels: int | None = None) -> Image.Image:
    """Decode raw image bytes into an RGB Pillow image.

    EXIF orientation is applied before conversion, and alpha is dropped.

    Raises:
        DecodeError: If the bytes are empty, not a supported image, truncated,
            or the image exceeds ``max_image_pixels``.
    """
    if not image_bytes:
        raise DecodeError("Empty image buffer")

    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            width, height = img.size
            if max_image_pixels is not None and width * height > max_image_pixels:
                raise DecodeError(f"Image too large: {width}x{height} exceeds {max_image_pixels} pixels")
            img.load()
            oriented = ImageOps.exif_transpose(img)
            return oriented.convert("RGB")
    except DecodeError:
        raise
    except UnidentifiedImageError as exc:
        raise DecodeError("Unsupported or unrecognized image format") from exc
    except Image.DecompressionBombError as exc:
        raise DecodeError(str(exc)) from exc
    except Exception as exc:
        # Corrupt streams surface as OSError, SyntaxError, struct.error, ...
        raise DecodeError(f"Could not decode image: {exc}") from exc


def to_tensor(image: Image.Image, mean: float, std: float) -> NDArray[np.float32]:
    """Convert an RGB image into a normalized ``(1, H, W, 3)`` float32 tensor."""
    pixels = np.asarray(image.convert("RGB"), dtype=np.float64)
    normalized = (pixels - mean) / std
    return normalized.astype(np.float32)[np.newaxis, ...]


def normalize(
    raw_bytes: bytes,
    target_side: int,
    mean: float,
    std: float,
    *,
    resample: ResampleName = "nearest",
    max_image_pixels: int | None = None,
) -> NDArray[np.float32]:
    """Decode, resize, and normalize an encoded image.

    Args:
        raw_bytes: Encoded image (JPEG, PNG, WebP, ...).
        target_side: Side length ``S`` of the square model input.
        mean: Value subtracted from each raw channel intensity.
        std: Divisor applied after subtracting ``mean``.
        resample: Resampling filter used when resizing.
        max_image_pixels: Optional decoded pixel-count limit.

    Returns:
        float32 array of shape ``(1, S, S, 3)``.

    Raises:
        ValueError: If ``target_side`` is not positive or ``std`` is zero.
        DecodeError: If the bytes cannot be decoded.
    """
    if target_side <= 0:
        raise ValueError(f"target_side must be positive, got {target_side}")
    if std == 0:
        raise ValueError("std must be non-zero")
    try:
        resample_filter = _RESAMPLE_FILTERS[resample]
    except KeyError:
        raise ValueError(f"Unknown resample filter: {resample}") from None

    image = decode_image(raw_bytes, max_image_pixels=max_image_pixels)
    resized = image.resize((target_side, target_side), resample=resample_filter)
    return to_tensor(resized, mean, std)
