"""Error taxonomy for the FaceLens pipeline.

Every failure a request can hit maps to exactly one subclass of
``FaceLensError``. The public ``message`` and ``code`` are what callers see;
``detail`` carries the internal reason and is only ever logged.
"""

from __future__ import annotations

from http import HTTPStatus


class FaceLensError(Exception):
    """Base class for all errors surfaced through the HTTP API."""

    code: str = "INTERNAL_ERROR"
    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    message: str = "Internal server error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.message
        super().__init__(self.detail)

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message, "code": self.code}


class InvalidURLError(FaceLensError):
    code = "INVALID_URL"
    status_code = HTTPStatus.BAD_REQUEST
    message = "Invalid image URL"


class DownloadFailedError(FaceLensError):
    code = "IMAGE_DOWNLOAD_FAILED"
    status_code = HTTPStatus.BAD_REQUEST
    message = "Failed to download image"


class UnsupportedFormatError(FaceLensError):
    code = "UNSUPPORTED_FORMAT"
    status_code = HTTPStatus.BAD_REQUEST
    message = "Unsupported image format"


class ImageTooLargeError(FaceLensError):
    code = "IMAGE_TOO_LARGE"
    status_code = HTTPStatus.BAD_REQUEST
    message = "Image exceeds the configured size limits"


class ImageDecodeError(FaceLensError):
    code = "IMAGE_DECODE_FAILED"
    status_code = HTTPStatus.BAD_REQUEST
    message = "Failed to decode image"


class MissingImageURLError(FaceLensError):
    code = "MISSING_IMAGE_URL"
    status_code = HTTPStatus.BAD_REQUEST
    message = "Image URL is required"


class InvalidRequestError(FaceLensError):
    code = "INVALID_REQUEST"
    status_code = HTTPStatus.BAD_REQUEST
    message = "Invalid JSON request"


class DetectionFailedError(FaceLensError):
    code = "FACE_DETECTION_FAILED"
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    message = "Face detection failed"


class RenderFailedError(FaceLensError):
    code = "IMAGE_PROCESSING_FAILED"
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    message = "Failed to process image"


class RateLimitedError(FaceLensError):
    code = "RATE_LIMIT_EXCEEDED"
    status_code = HTTPStatus.TOO_MANY_REQUESTS
    message = "Too many requests"


class InternalError(FaceLensError):
    """Unexpected runtime fault caught at the request boundary."""
