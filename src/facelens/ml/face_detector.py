"""Face detection: classifier invocation plus detection post-processing.

Raw cascade output contains several overlapping hits per face. They are
merged with a greedy, score-ordered non-max merge and then filtered by the
classifier-native confidence threshold.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from facelens.errors import DetectionFailedError
from facelens.ml.classifier import CascadeParams, RawDetection
from facelens.ml.preprocessing import to_grayscale
from facelens.models import Face

if TYPE_CHECKING:
    from collections.abc import Iterable

    from facelens.config import Settings
    from facelens.ml.classifier import CascadeClassifier
    from facelens.models import ImageHandle

logger = logging.getLogger(__name__)


def iou(a: RawDetection, b: RawDetection) -> float:
    """Intersection over union of two square detection regions."""
    half_a = a.scale / 2
    half_b = b.scale / 2
    overlap_rows = max(0.0, min(a.row + half_a, b.row + half_b) - max(a.row - half_a, b.row - half_b))
    overlap_cols = max(0.0, min(a.col + half_a, b.col + half_b) - max(a.col - half_a, b.col - half_b))
    intersection = overlap_rows * overlap_cols
    union = a.scale * a.scale + b.scale * b.scale - intersection
    if union <= 0:
        return 0.0
    return intersection / union


def _merge_order(detection: RawDetection) -> tuple[float, int, int, int]:
    return (-detection.score, detection.row, detection.col, detection.scale)


def cluster_detections(detections: Iterable[RawDetection], iou_threshold: float) -> list[RawDetection]:
    """Collapse overlapping detections into one representative each.

    Detections are visited from highest to lowest score (ties broken by
    position and size, so input order never matters). Each unclaimed
    detection claims every other unclaimed detection whose IoU with it is
    strictly above ``iou_threshold`` and survives as the representative of
    that group.
    """
    ordered = sorted(detections, key=_merge_order)
    claimed = [False] * len(ordered)
    representatives: list[RawDetection] = []

    for i, candidate in enumerate(ordered):
        if claimed[i]:
            continue
        claimed[i] = True
        for j in range(i + 1, len(ordered)):
            if not claimed[j] and iou(candidate, ordered[j]) > iou_threshold:
                claimed[j] = True
        representatives.append(candidate)

    return representatives


def filter_by_confidence(detections: Iterable[RawDetection], min_confidence: float) -> list[RawDetection]:
    """Keep detections scoring at least ``min_confidence``."""
    return [d for d in detections if d.score >= min_confidence]


def face_from_detection(detection: RawDetection) -> Face:
    """Convert a centre/scale detection into a top-left anchored face box."""
    half = detection.scale // 2
    return Face(
        x=detection.col - half,
        y=detection.row - half,
        width=detection.scale,
        height=detection.scale,
        confidence=detection.score,
    )


class FaceDetector:
    """Runs the shared classifier on one image and post-processes its output.

    Holds only immutable configuration and the read-only classifier handle, so
    a single instance serves all concurrent requests.
    """

    def __init__(
        self,
        classifier: CascadeClassifier,
        params: CascadeParams,
        *,
        iou_threshold: float,
        min_confidence: float,
    ) -> None:
        self._classifier = classifier
        self._params = params
        self._iou_threshold = iou_threshold
        self._min_confidence = min_confidence

    @classmethod
    def from_settings(cls, classifier: CascadeClassifier, settings: Settings) -> FaceDetector:
        params = CascadeParams(
            min_size=settings.min_size,
            max_size=settings.max_size,
            shift_factor=settings.shift_factor,
            scale_factor=settings.scale_factor,
        )
        return cls(
            classifier,
            params,
            iou_threshold=settings.iou_threshold,
            min_confidence=settings.min_confidence,
        )

    @property
    def model_name(self) -> str:
        return self._classifier.model_name

    def detect(self, image: ImageHandle) -> list[Face]:
        """Detect faces in an image.

        Raises:
            DetectionFailedError: If the classifier invocation fails.
        """
        samples = to_grayscale(image)
        try:
            raw = self._classifier.run(samples.ravel(), image.height, image.width, self._params, 0.0)
        except Exception as exc:
            # Backends raise their own native error types.
            raise DetectionFailedError(f"classifier '{self.model_name}' failed: {exc!r}") from exc

        clustered = cluster_detections(raw, self._iou_threshold)
        kept = filter_by_confidence(clustered, self._min_confidence)
        logger.debug(
            "Detections: %d raw, %d after clustering, %d above confidence %.1f",
            len(raw),
            len(clustered),
            len(kept),
            self._min_confidence,
        )
        return [face_from_detection(d) for d in kept]
