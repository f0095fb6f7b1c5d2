"""Pydantic request/response schemas for the FaceLens API.

Field names are part of the public contract and must not change.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from facelens.models import AnnotatedImage, DetectionResult, Face, ImageMetadata, ValidationResult


class FaceDetectionRequest(BaseModel):
    image_url: str = ""


class SelfieValidationRequest(BaseModel):
    image_url: str = ""
    min_faces: int = Field(default=0, description="Minimum face count (0 means 1)")
    max_faces: int = Field(default=0, description="Maximum face count (0 means 1)")


class VisualDetectionRequest(BaseModel):
    image_url: str = ""
    circle_color: str = Field(default="", description="Colour name; empty means red, unknown names fall back to red")
    line_width: int = Field(default=0, le=50, description="Stroke width in pixels (0 means 3, negative draws nothing)")


class FaceBox(BaseModel):
    """A detected face in pixel coordinates."""

    x: int
    y: int
    width: int
    height: int
    confidence: float = Field(description="Classifier-native score, not a probability")

    @classmethod
    def from_face(cls, face: Face) -> FaceBox:
        return cls(x=face.x, y=face.y, width=face.width, height=face.height, confidence=face.confidence)


class ImageMetadataResponse(BaseModel):
    width: int
    height: int
    format: str
    size_bytes: int
    url: str

    @classmethod
    def from_metadata(cls, metadata: ImageMetadata) -> ImageMetadataResponse:
        return cls(
            width=metadata.width,
            height=metadata.height,
            format=metadata.format,
            size_bytes=metadata.size_bytes,
            url=metadata.url,
        )


class FaceDetectionResponse(BaseModel):
    faces: list[FaceBox]
    count: int
    image_metadata: ImageMetadataResponse
    processing_time_ms: float

    @classmethod
    def from_result(cls, result: DetectionResult) -> FaceDetectionResponse:
        return cls(
            faces=[FaceBox.from_face(face) for face in result.faces],
            count=len(result.faces),
            image_metadata=ImageMetadataResponse.from_metadata(result.metadata),
            processing_time_ms=result.processing_time_ms,
        )


class VisualDetectionResponse(FaceDetectionResponse):
    image_base64: str

    @classmethod
    def from_annotated(cls, result: AnnotatedImage) -> VisualDetectionResponse:
        return cls(
            image_base64=result.image_base64,
            faces=[FaceBox.from_face(face) for face in result.faces],
            count=len(result.faces),
            image_metadata=ImageMetadataResponse.from_metadata(result.metadata),
            processing_time_ms=result.processing_time_ms,
        )


class SelfieValidationResponse(BaseModel):
    is_valid: bool
    issues: list[str]
    confidence: float
    face_count: int

    @classmethod
    def from_result(cls, result: ValidationResult) -> SelfieValidationResponse:
        return cls(
            is_valid=result.is_valid,
            issues=list(result.issues),
            confidence=result.confidence,
            face_count=result.face_count,
        )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    service: str
    version: str
    uptime_seconds: float
    concurrent_requests: int
    queue_depth: int


class ReadinessResponse(BaseModel):
    status: str
    checks: dict[str, str]


class LivenessResponse(BaseModel):
    status: str = "alive"


class ServiceInfo(BaseModel):
    service: str
    version: str
    status: str = "running"


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    code: str
