"""Request pipeline: Acquire -> Detect -> (Score | Render), under one deadline."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from facelens.errors import DetectionFailedError, DownloadFailedError, FaceLensError, RenderFailedError
from facelens.metrics import FACES_DETECTED_TOTAL, REQUESTS_TOTAL, STAGE_DURATION_SECONDS
from facelens.models import AnnotatedImage, DetectionResult
from facelens.services import renderer
from facelens.services.scorer import score_selfie

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from facelens.ml.face_detector import FaceDetector
    from facelens.ml.inference import InferencePool
    from facelens.models import Face, ImageHandle, ImageMetadata, RenderOptions, ValidationResult
    from facelens.services.acquirer import ImageAcquirer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _stage(name: str, deadline: float, error: type[FaceLensError]) -> AsyncIterator[None]:
    """Run a pipeline stage under the request deadline.

    Hitting the deadline raises ``error``, the failure type of the stage in progress.
    """
    start = time.perf_counter()
    try:
        async with asyncio.timeout_at(deadline):
            yield
    except TimeoutError as exc:
        raise error(f"{name} exceeded the request deadline") from exc
    finally:
        STAGE_DURATION_SECONDS.labels(name).observe(time.perf_counter() - start)


@asynccontextmanager
async def _outcome(operation: str) -> AsyncIterator[None]:
    """Count one request of ``operation`` as a success or under its error code."""
    try:
        yield
    except FaceLensError as exc:
        REQUESTS_TOTAL.labels(operation, exc.code).inc()
        raise
    REQUESTS_TOTAL.labels(operation, "success").inc()


class FacePipeline:
    """Runs each stage of a request exactly once, with no retries."""

    def __init__(
        self,
        acquirer: ImageAcquirer,
        detector: FaceDetector,
        pool: InferencePool,
        *,
        request_timeout: float,
    ) -> None:
        self._acquirer = acquirer
        self._detector = detector
        self._pool = pool
        self._request_timeout = request_timeout

    async def detect(self, url: str) -> DetectionResult:
        start = time.perf_counter()
        async with _outcome("detect"):
            _, metadata, faces = await self._acquire_and_detect(url, self._deadline())
        elapsed = _elapsed_ms(start)
        logger.info("Face detection completed: url=%s faces=%d duration_ms=%.1f", url, len(faces), elapsed)
        return DetectionResult(faces=faces, metadata=metadata, processing_time_ms=elapsed)

    async def validate(self, url: str, min_faces: int | None, max_faces: int | None) -> ValidationResult:
        start = time.perf_counter()
        async with _outcome("validate"):
            _, _, faces = await self._acquire_and_detect(url, self._deadline())
        result = score_selfie(faces, min_faces, max_faces)
        logger.info(
            "Selfie validation completed: url=%s faces=%d valid=%s duration_ms=%.1f",
            url,
            result.face_count,
            result.is_valid,
            _elapsed_ms(start),
        )
        return result

    async def detect_visual(self, url: str, options: RenderOptions) -> AnnotatedImage:
        start = time.perf_counter()
        deadline = self._deadline()
        async with _outcome("detect_visual"):
            image, metadata, faces = await self._acquire_and_detect(url, deadline)
            async with _stage("render", deadline, RenderFailedError):
                encoded = await self._pool.run(renderer.render, image, faces, options)

        elapsed = _elapsed_ms(start)
        logger.info(
            "Visual detection completed: url=%s faces=%d color=%s stroke_width=%d duration_ms=%.1f",
            url,
            len(faces),
            options.color,
            options.stroke_width,
            elapsed,
        )
        return AnnotatedImage(image_base64=encoded, faces=faces, metadata=metadata, processing_time_ms=elapsed)

    # -- Internal -----------------------------------------------------------

    def _deadline(self) -> float:
        return asyncio.get_running_loop().time() + self._request_timeout

    async def _acquire_and_detect(self, url: str, deadline: float) -> tuple[ImageHandle, ImageMetadata, list[Face]]:
        async with _stage("download", deadline, DownloadFailedError):
            image, metadata = await self._acquirer.acquire(url)

        async with _stage("detection", deadline, DetectionFailedError):
            faces = await self._pool.run(self._detector.detect, image)

        FACES_DETECTED_TOTAL.inc(len(faces))
        return image, metadata, faces


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
