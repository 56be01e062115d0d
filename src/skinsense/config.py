"""Environment-based configuration for SkinSense."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from SKINSENSE_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SKINSENSE_",
        case_sensitive=False,
        protected_namespaces=("settings_",),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8082
    log_level: str = "INFO"

    # Authentication (None = disabled)
    api_key: str | None = None

    # Model artifacts (local paths, or a Hugging Face Hub repo when set)
    model_path: Path = Path("assets/model.onnx")
    labels_path: Path = Path("assets/labels.txt")
    model_repo_id: str | None = None
    model_filename: str = "model.onnx"
    labels_filename: str = "labels.txt"
    models_dir: Path = Path("models")

    # Preprocessing; must match the deployed model
    target_side: int = Field(default=224, gt=0)
    mean: float = 0.0
    std: float = 255.0
    resample: Literal["nearest", "bilinear", "bicubic", "lanczos"] = "nearest"

    # Result display
    confidence_decimals: int = Field(default=2, ge=0)

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)

    # Concurrency
    max_concurrent: int = Field(default=1, ge=1)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=20_971_520, ge=1)

    @field_validator("std")
    @classmethod
    def _std_nonzero(cls, value: float) -> float:
        if value == 0:
            raise ValueError("std must be non-zero")
        return value


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
