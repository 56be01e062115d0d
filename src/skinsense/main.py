"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from skinsense.config import Settings

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from skinsense.api.routes import router
from skinsense.config import get_settings
from skinsense.ml.errors import PipelineError
from skinsense.ml.image_classifier import ImageClassifier
from skinsense.ml.inference import InferencePool

logger = logging.getLogger(__name__)


def init_state(app: FastAPI, settings: Settings) -> None:
    """Load the classifier and inference pool into ``app.state``.

    A model that fails to load leaves the app running in a degraded state:
    ``app.state.classifier`` is None and ``app.state.model_error`` holds the
    reason until the process is restarted with working artifacts.
    """
    app.state.settings = settings
    app.state.inference_pool = InferencePool(settings)
    app.state.classifier = None
    app.state.model_error = None
    try:
        app.state.classifier = ImageClassifier.from_settings(settings)
    except PipelineError as exc:
        logger.error("Classifier disabled, failed to load model or labels (%s): %s", exc.kind, exc)
        app.state.model_error = str(exc)


def teardown_state(app: FastAPI) -> None:
    """Release the classifier and shut down the inference pool."""
    classifier: ImageClassifier | None = app.state.classifier
    if classifier is not None:
        classifier.close()
        app.state.classifier = None
    pool: InferencePool = app.state.inference_pool
    pool.shutdown()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting SkinSense (model=%s, target_side=%s, mean=%s, std=%s, resample=%s)",
        settings.model_repo_id or settings.model_path,
        settings.target_side,
        settings.mean,
        settings.std,
        settings.resample,
    )

    init_state(app, settings)

    logger.info("SkinSense ready" if app.state.classifier is not None else "SkinSense started in degraded mode")
    yield

    logger.info("Shutting down SkinSense")
    teardown_state(app)
    logger.info("SkinSense shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="SkinSense",
        description="Photo classification with a pretrained ONNX model: top label and confidence",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Serve the app with uvicorn using the configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("skinsense.main:app", host=settings.host, port=settings.port)
