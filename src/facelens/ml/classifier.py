"""Cascade classifier capability.

The pipeline only depends on the ``CascadeClassifier`` protocol: a handle
loaded once from model bytes, then ``run`` any number of times from any
thread. ``OpenCVCascade`` is the production backend.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import cv2
import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from facelens.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_CASCADE = "haarcascade_frontalface_default.xml"


@dataclass(frozen=True)
class CascadeParams:
    """Sliding-window parameters passed to the classifier on every run."""

    min_size: int
    max_size: int
    shift_factor: float
    scale_factor: float


@dataclass(frozen=True)
class RawDetection:
    """Raw classifier output before clustering.

    ``row``/``col`` locate the centre of a square region of side ``scale``.
    ``score`` is in the classifier's native units, not a probability.
    """

    row: int
    col: int
    scale: int
    score: float


class CascadeClassifier(Protocol):
    """Protocol for a loaded, reentrant cascade classifier."""

    @property
    def model_name(self) -> str:
        """Return the model identifier string."""
        ...

    def run(
        self,
        samples: NDArray[np.uint8],
        rows: int,
        cols: int,
        params: CascadeParams,
        angle: float = 0.0,
    ) -> list[RawDetection]:
        """Scan a grayscale image for faces.

        Args:
            samples: Row-major grayscale samples, one byte each, ``rows * cols`` long.
            rows: Image height.
            cols: Image width.
            params: Window size and scan step parameters.
            angle: In-plane rotation of the scan in degrees.

        Returns:
            Raw detections in no particular order.
        """
        ...


class OpenCVCascade:
    """Cascade classifier backed by ``cv2.CascadeClassifier``.

    The native classifier keeps scratch buffers between calls, so each worker
    thread builds its own instance from the shared, immutable model text.
    The native score reported for a detection is the number of raw cascade
    windows that were grouped into it.
    """

    def __init__(self, model_xml: str, *, name: str = "cascade", min_neighbors: int = 3) -> None:
        self._model_xml = model_xml
        self._name = name
        self._min_neighbors = min_neighbors
        self._local = threading.local()

    @classmethod
    def load(cls, model_bytes: bytes, *, name: str = "cascade", min_neighbors: int = 3) -> OpenCVCascade:
        """Parse a serialized cascade and return a ready-to-run handle.

        Raises:
            ValueError: If the bytes are not a valid OpenCV cascade.
        """
        try:
            model_xml = model_bytes.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ValueError("cascade model is not UTF-8 XML") from exc

        cascade = cls(model_xml, name=name, min_neighbors=min_neighbors)
        # Parse eagerly so an invalid model is rejected here.
        cascade._classifier()
        return cascade

    @property
    def model_name(self) -> str:
        return self._name

    def run(
        self,
        samples: NDArray[np.uint8],
        rows: int,
        cols: int,
        params: CascadeParams,
        angle: float = 0.0,
    ) -> list[RawDetection]:
        """Run the cascade over the image.

        OpenCV picks its own window stride, so ``params.shift_factor`` has no
        effect on this backend. Only upright scans (``angle == 0``) are supported.
        """
        if angle != 0.0:
            raise ValueError(f"OpenCV cascade does not support rotated scans (angle={angle})")

        image = np.asarray(samples, dtype=np.uint8).reshape(rows, cols)
        rects, neighbours = self._classifier().detectMultiScale2(
            image,
            scaleFactor=params.scale_factor,
            minNeighbors=self._min_neighbors,
            minSize=(params.min_size, params.min_size),
            maxSize=(params.max_size, params.max_size),
        )

        detections: list[RawDetection] = []
        for (x, y, w, h), count in zip(rects, neighbours, strict=True):
            side = int(max(w, h))
            detections.append(
                RawDetection(
                    row=int(y) + side // 2,
                    col=int(x) + side // 2,
                    scale=side,
                    score=float(count),
                )
            )
        return detections

    # -- Internal -----------------------------------------------------------

    def _classifier(self) -> cv2.CascadeClassifier:
        classifier: cv2.CascadeClassifier | None = getattr(self._local, "classifier", None)
        if classifier is not None:
            return classifier

        try:
            storage = cv2.FileStorage(self._model_xml, cv2.FILE_STORAGE_READ | cv2.FILE_STORAGE_MEMORY)
            classifier = cv2.CascadeClassifier()
            loaded = classifier.read(storage.getFirstTopLevelNode())
        except cv2.error as exc:
            raise ValueError(f"Failed to parse cascade model '{self._name}': {exc}") from exc
        if not loaded:
            raise ValueError(f"Failed to parse cascade model '{self._name}'")

        self._local.classifier = classifier
        logger.debug("Built cascade '%s' for thread %s", self._name, threading.current_thread().name)
        return classifier


def resolve_cascade_path(settings: Settings) -> Path:
    """Return the configured cascade file, or OpenCV's bundled frontal face model."""
    if settings.cascade_path:
        return Path(settings.cascade_path)
    return Path(cv2.data.haarcascades) / DEFAULT_CASCADE


def load_cascade(settings: Settings) -> OpenCVCascade:
    """Read the cascade model from disk and load it. Called once at startup."""
    path = resolve_cascade_path(settings)
    model_bytes = path.read_bytes()
    cascade = OpenCVCascade.load(model_bytes, name=path.stem, min_neighbors=settings.min_neighbors)
    logger.info("Loaded cascade %s (%d bytes)", path, len(model_bytes))
    return cascade
