"""Pydantic request/response schemas for the SkinSense API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PredictionResponse(BaseModel):
    """Top prediction for an uploaded image."""

    label: str
    confidence: float = Field(ge=0.0, le=1.0)
    confidence_percent: str = Field(description="Confidence formatted for display, e.g. '70.0%'")


class HealthResponse(BaseModel):
    """Health check response."""

    model_config = ConfigDict(protected_namespaces=())

    status: str = Field(description="'ok', or 'degraded' when the model failed to load")
    model_loaded: bool
    model_error: str | None = None
    concurrent_requests: int
    queue_depth: int


class ModelInfoResponse(BaseModel):
    """Configuration of the loaded classifier."""

    input_side: int
    num_classes: int
    labels: list[str]
    mean: float
    std: float
    resample: str


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    kind: str | None = None
