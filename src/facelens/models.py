"""Domain types shared by the acquisition, detection, scoring and rendering stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray


@dataclass(frozen=True)
class ImageHandle:
    """Decoded image owned by a single request.

    ``pixels`` is an HxWx3 RGB uint8 array. It is flagged read-only on
    construction so that no stage can alter the source image in place.
    """

    pixels: NDArray[np.uint8]

    def __post_init__(self) -> None:
        self.pixels.flags.writeable = False

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


@dataclass(frozen=True)
class ImageMetadata:
    """Facts about the fetched image, derived once at acquisition time."""

    width: int
    height: int
    format: str
    size_bytes: int
    url: str


@dataclass(frozen=True)
class Face:
    """A detected face box in pixel coordinates.

    ``confidence`` stays in the classifier's native score units.
    """

    x: int
    y: int
    width: int
    height: int
    confidence: float


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    issues: list[str] = field(default_factory=list)
    confidence: float = 0.0
    face_count: int = 0


@dataclass(frozen=True)
class RenderOptions:
    color: tuple[int, int, int, int]
    stroke_width: int


@dataclass(frozen=True)
class DetectionResult:
    faces: list[Face]
    metadata: ImageMetadata
    processing_time_ms: float


@dataclass(frozen=True)
class AnnotatedImage:
    image_base64: str
    faces: list[Face]
    metadata: ImageMetadata
    processing_time_ms: float
