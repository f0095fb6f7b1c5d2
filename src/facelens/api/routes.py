"""API route definitions."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from facelens.api.middleware import enforce_rate_limit
from facelens.api.schemas import (
    ErrorResponse,
    FaceDetectionRequest,
    FaceDetectionResponse,
    HealthResponse,
    LivenessResponse,
    ReadinessResponse,
    SelfieValidationRequest,
    SelfieValidationResponse,
    ServiceInfo,
    VisualDetectionRequest,
    VisualDetectionResponse,
)
from facelens.errors import MissingImageURLError
from facelens.models import RenderOptions
from facelens.services.renderer import DEFAULT_COLOR, parse_color

if TYPE_CHECKING:
    from facelens.ml.inference import InferencePool
    from facelens.services.pipeline import FacePipeline

SERVICE_NAME = "facelens"
SERVICE_VERSION = "0.1.0"
DEFAULT_LINE_WIDTH = 3

_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_429_TOO_MANY_REQUESTS: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}

router = APIRouter(prefix="/api/v1", dependencies=[Depends(enforce_rate_limit)])
health_router = APIRouter()


def _get_pipeline(request: Request) -> FacePipeline:
    pipeline: FacePipeline = request.app.state.pipeline
    return pipeline


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


def _require_url(image_url: str) -> str:
    if not image_url:
        raise MissingImageURLError("request body has no image_url")
    return image_url


@router.post(
    "/detect",
    response_model=FaceDetectionResponse,
    responses=_ERROR_RESPONSES,
    summary="Detect faces in a remote image",
)
async def detect(body: FaceDetectionRequest, request: Request) -> FaceDetectionResponse:
    """Download the image at ``image_url`` and return the detected face boxes."""
    result = await _get_pipeline(request).detect(_require_url(body.image_url))
    return FaceDetectionResponse.from_result(result)


@router.post(
    "/validate",
    response_model=SelfieValidationResponse,
    responses=_ERROR_RESPONSES,
    summary="Validate a remote image as a selfie",
)
async def validate(body: SelfieValidationRequest, request: Request) -> SelfieValidationResponse:
    """Check face count bounds and mean detection confidence."""
    result = await _get_pipeline(request).validate(_require_url(body.image_url), body.min_faces, body.max_faces)
    return SelfieValidationResponse.from_result(result)


@router.post(
    "/detect-visual",
    response_model=VisualDetectionResponse,
    responses=_ERROR_RESPONSES,
    summary="Detect faces and return the image annotated with circles",
)
async def detect_visual(body: VisualDetectionRequest, request: Request) -> VisualDetectionResponse:
    """Detect faces and draw a circle around each one."""
    image_url = _require_url(body.image_url)
    options = RenderOptions(
        color=parse_color(body.circle_color or DEFAULT_COLOR),
        stroke_width=body.line_width or DEFAULT_LINE_WIDTH,
    )
    result = await _get_pipeline(request).detect_visual(image_url, options)
    return VisualDetectionResponse.from_annotated(result)


@health_router.get("/", response_model=ServiceInfo, summary="Service banner")
async def root() -> ServiceInfo:
    return ServiceInfo(service=SERVICE_NAME, version=SERVICE_VERSION)


@health_router.get("/api/v1/health", response_model=HealthResponse, summary="Health check")
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    pool = _get_inference_pool(request)
    return HealthResponse(
        service=SERVICE_NAME,
        version=SERVICE_VERSION,
        uptime_seconds=round(time.monotonic() - request.app.state.started_at, 3),
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )


@health_router.get("/api/v1/ready", response_model=ReadinessResponse, summary="Readiness check")
async def ready(request: Request) -> ReadinessResponse:
    """Report whether the classifier and HTTP client are initialised."""
    state = request.app.state
    checks = {
        "classifier": "ok" if getattr(state, "pipeline", None) is not None else "missing",
        "http_client": "ok" if getattr(state, "http_client", None) is not None else "missing",
    }
    ready_status = "ready" if all(value == "ok" for value in checks.values()) else "not_ready"
    return ReadinessResponse(status=ready_status, checks=checks)


@health_router.get("/api/v1/live", response_model=LivenessResponse, summary="Liveness check")
async def live() -> LivenessResponse:
    return LivenessResponse()


@health_router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Prometheus exposition of the default registry."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
