"""FastAPI application entry point."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from facelens.config import Settings
    from facelens.ml.classifier import CascadeClassifier

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from facelens.api.middleware import error_response, log_requests
from facelens.api.ratelimit import RateLimiterRegistry
from facelens.api.routes import SERVICE_VERSION, health_router, router
from facelens.config import get_settings
from facelens.errors import FaceLensError, InvalidRequestError
from facelens.metrics import ERRORS_TOTAL
from facelens.ml.classifier import load_cascade
from facelens.ml.face_detector import FaceDetector
from facelens.ml.inference import InferencePool
from facelens.services.acquirer import ImageAcquirer
from facelens.services.pipeline import FacePipeline

logger = logging.getLogger(__name__)


def init_state(
    app: FastAPI,
    settings: Settings,
    classifier: CascadeClassifier,
    http_client: httpx.AsyncClient,
) -> None:
    """Wire the shared, request-independent objects onto ``app.state``."""
    pool = InferencePool(settings)
    acquirer = ImageAcquirer(http_client, pool, settings)
    detector = FaceDetector.from_settings(classifier, settings)

    app.state.settings = settings
    app.state.started_at = time.monotonic()
    app.state.http_client = http_client
    app.state.inference_pool = pool
    app.state.rate_limiter = RateLimiterRegistry(settings.rate_limit, settings.rate_burst)
    app.state.pipeline = FacePipeline(acquirer, detector, pool, request_timeout=settings.request_timeout)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting FaceLens (max_concurrent=%s, max_image_size=%s, max_dimensions=%sx%s, min_confidence=%s)",
        settings.max_concurrent,
        settings.max_image_size,
        settings.max_width,
        settings.max_height,
        settings.min_confidence,
    )

    classifier = load_cascade(settings)
    # Internal fetch path: server certificates are not verified.
    http_client = httpx.AsyncClient(verify=False, timeout=settings.download_timeout)  # noqa: S501
    init_state(app, settings, classifier, http_client)

    logger.info("FaceLens ready")
    yield

    logger.info("Shutting down FaceLens")
    await http_client.aclose()
    app.state.inference_pool.shutdown()
    logger.info("FaceLens shutdown complete")


async def _handle_facelens_error(request: Request, exc: FaceLensError) -> JSONResponse:
    logger.warning("%s %s failed with %s: %s", request.method, request.url.path, exc.code, exc.detail)
    return error_response(exc)


async def _handle_validation_error(request: Request, exc: Exception) -> JSONResponse:
    logger.warning("Rejected malformed request to %s: %s", request.url.path, exc)
    return error_response(InvalidRequestError())


async def _handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    status = HTTPStatus(exc.status_code)
    logger.debug("%s %s answered %d", request.method, request.url.path, exc.status_code)
    ERRORS_TOTAL.labels(status.name).inc()
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": status.phrase, "code": status.name},
        headers=exc.headers,
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="FaceLens",
        description="Face detection, selfie validation and annotation for remote images",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )

    application.add_exception_handler(FaceLensError, _handle_facelens_error)  # type: ignore[arg-type]
    application.add_exception_handler(RequestValidationError, _handle_validation_error)
    application.add_exception_handler(StarletteHTTPException, _handle_http_error)  # type: ignore[arg-type]
    application.middleware("http")(log_requests)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=get_settings().cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    application.include_router(router)
    application.include_router(health_router)
    return application


app = create_app()


def run() -> None:
    """Serve the application with uvicorn using the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "facelens.main:app",
        host=settings.host,
        port=settings.port,
        timeout_keep_alive=settings.idle_timeout,
        log_level=settings.log_level.lower(),
    )
