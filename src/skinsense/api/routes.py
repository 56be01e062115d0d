"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse

from skinsense.api.middleware import require_api_key
from skinsense.api.schemas import (
    ErrorResponse,
    HealthResponse,
    ModelInfoResponse,
    PredictionResponse,
)
from skinsense.ml.results import ClassificationFailure

if TYPE_CHECKING:
    from skinsense.config import Settings
    from skinsense.ml.image_classifier import ImageClassifier
    from skinsense.ml.inference import InferencePool

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(require_api_key)])

# Failures caused by the submitted image map to 422; the rest are server-side.
_FAILURE_STATUS: dict[str, int] = {
    "decode_error": status.HTTP_422_UNPROCESSABLE_CONTENT,
    "no_selection": status.HTTP_422_UNPROCESSABLE_CONTENT,
    "model_released": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


def _get_classifier(request: Request) -> ImageClassifier:
    """Return the loaded classifier, or 503 with the persistent load error."""
    classifier: ImageClassifier | None = request.app.state.classifier
    if classifier is None:
        load_error: str | None = request.app.state.model_error
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Classifier unavailable: {load_error or 'model not loaded'}",
        )
    return classifier


@router.post(
    "/classify-image",
    response_model=PredictionResponse,
    responses={
        status.HTTP_413_CONTENT_TOO_LARGE: {"model": ErrorResponse},
        status.HTTP_422_UNPROCESSABLE_CONTENT: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Classify an image",
)
async def classify_image(request: Request, file: UploadFile) -> PredictionResponse | JSONResponse:
    """Classify an uploaded image and return the top label with its confidence."""
    classifier = _get_classifier(request)
    settings = _get_settings(request)
    pool = _get_inference_pool(request)

    image_bytes = await file.read(settings.max_file_size + 1)
    if len(image_bytes) > settings.max_file_size:
        return JSONResponse(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            content={"detail": f"File exceeds {settings.max_file_size} bytes", "kind": "file_too_large"},
        )

    try:
        result = await pool.run(classifier.classify, image_bytes)
    except TimeoutError:
        logger.warning("Inference queue saturated, rejecting %s", file.filename)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Inference queue is full, retry later", "kind": "busy"},
        )

    if isinstance(result, ClassificationFailure):
        return JSONResponse(
            status_code=_FAILURE_STATUS.get(result.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
            content={"detail": result.error, "kind": result.kind},
        )
    return PredictionResponse(
        label=result.label,
        confidence=result.confidence,
        confidence_percent=result.confidence_percent,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health; 'degraded' while the model is unavailable."""
    pool = _get_inference_pool(request)
    classifier: ImageClassifier | None = request.app.state.classifier
    return HealthResponse(
        status="ok" if classifier is not None else "degraded",
        model_loaded=classifier is not None,
        model_error=request.app.state.model_error,
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )


@router.get(
    "/model",
    response_model=ModelInfoResponse,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse}},
    summary="Describe the loaded model",
)
async def model_info(request: Request) -> ModelInfoResponse:
    """Return input size, labels, and normalization constants of the loaded model."""
    classifier = _get_classifier(request)
    settings = _get_settings(request)
    return ModelInfoResponse(
        input_side=settings.target_side,
        num_classes=classifier.handle.num_classes,
        labels=list(classifier.labels),
        mean=settings.mean,
        std=settings.std,
        resample=settings.resample,
    )
