"""Label file loading."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from skinsense.ml.errors import ModelLoadError

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

LabelSet = tuple[str, ...]


def parse_labels(text: str) -> LabelSet:
    """Split label text on newlines only, stripping each line and dropping blanks."""
    return tuple(stripped for line in text.split("\n") if (stripped := line.strip()))


def load_labels(path: Path) -> LabelSet:
    """Read a plain-text label file.

    Raises:
        ModelLoadError: If the file is missing, unreadable, or has no labels.
    """
    try:
        text = path.read_bytes().decode("utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise ModelLoadError(f"Failed to read labels from {path}: {exc}") from exc

    labels = parse_labels(text)
    if not labels:
        raise ModelLoadError(f"Label file {path} contains no labels")
    logger.info("Loaded %d labels from %s", len(labels), path)
    return labels
