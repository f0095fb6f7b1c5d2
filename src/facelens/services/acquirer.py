"""Image acquisition: URL validation, bounded download and decoding."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

import httpx

from facelens.errors import (
    DownloadFailedError,
    ImageTooLargeError,
    InvalidURLError,
    UnsupportedFormatError,
)
from facelens.ml.preprocessing import decode_image
from facelens.models import ImageHandle, ImageMetadata

if TYPE_CHECKING:
    from facelens.config import Settings
    from facelens.ml.inference import InferencePool

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = frozenset({"http", "https"})

SUPPORTED_CONTENT_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp")

REQUEST_HEADERS = {
    "User-Agent": "FaceLens/0.1",
    "Accept": ",".join(SUPPORTED_CONTENT_TYPES),
}

# Host-based SSRF policy. Substring matches for loopback/unspecified names,
# prefix matches for private IPv4 ranges.
PRIVATE_HOSTS = ("localhost", "127.0.0.1", "0.0.0.0", "::1")  # noqa: S104
PRIVATE_PREFIXES = ("10.", "192.168.", "172.")


def is_private_host(host: str) -> bool:
    """Return True if the host falls under the private/loopback policy."""
    host = host.lower()
    if any(private in host for private in PRIVATE_HOSTS):
        return True
    return host.startswith(PRIVATE_PREFIXES)


def validate_url(url: str) -> None:
    """Check that a URL is an absolute http(s) URL to a public host.

    Raises:
        InvalidURLError: On any violation.
    """
    if not url:
        raise InvalidURLError("URL cannot be empty")

    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError as exc:
        raise InvalidURLError(f"invalid URL format: {exc}") from exc

    if parts.scheme not in ALLOWED_SCHEMES:
        raise InvalidURLError(f"unsupported URL scheme: {parts.scheme!r}")
    if not host:
        raise InvalidURLError("missing host in URL")
    if is_private_host(host):
        raise InvalidURLError(f"access to private host {host!r} is not allowed")


def is_supported_content_type(content_type: str) -> bool:
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type in SUPPORTED_CONTENT_TYPES


class ImageAcquirer:
    """Fetches and decodes images under size, dimension and time limits.

    The ``httpx.AsyncClient`` is shared across requests for connection reuse;
    no response data is cached.
    """

    def __init__(self, client: httpx.AsyncClient, pool: InferencePool, settings: Settings) -> None:
        self._client = client
        self._pool = pool
        self._max_bytes = settings.max_image_size
        self._max_width = settings.max_width
        self._max_height = settings.max_height
        self._timeout = settings.download_timeout

    async def acquire(self, url: str) -> tuple[ImageHandle, ImageMetadata]:
        """Validate, download and decode the image at ``url``.

        Raises:
            InvalidURLError: If the URL fails validation.
            DownloadFailedError: On transport errors or a non-2xx status.
            UnsupportedFormatError: If the content type is not a supported image type.
            ImageTooLargeError: If the body or the decoded dimensions exceed the limits.
            ImageDecodeError: If the body is not a decodable image.
        """
        validate_url(url)
        body = await self._download(url)
        image, image_format = await self._pool.run(decode_image, body, self._max_width, self._max_height)

        metadata = ImageMetadata(
            width=image.width,
            height=image.height,
            format=image_format,
            size_bytes=len(body),
            url=url,
        )
        logger.info(
            "Image downloaded: url=%s size_bytes=%d dimensions=%dx%d format=%s",
            url,
            metadata.size_bytes,
            metadata.width,
            metadata.height,
            metadata.format,
        )
        return image, metadata

    async def _download(self, url: str) -> bytes:
        try:
            async with self._client.stream(
                "GET",
                url,
                headers=REQUEST_HEADERS,
                timeout=self._timeout,
                follow_redirects=False,
            ) as response:
                if not response.is_success:
                    raise DownloadFailedError(f"HTTP {response.status_code} from {url}")

                content_type = response.headers.get("content-type", "")
                if not is_supported_content_type(content_type):
                    raise UnsupportedFormatError(f"unsupported content type: {content_type!r}")

                declared = response.headers.get("content-length")
                if declared is not None and declared.isdigit() and int(declared) > self._max_bytes:
                    raise ImageTooLargeError(f"image too large: {declared} bytes (max: {self._max_bytes})")

                return await self._read_capped(response)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise DownloadFailedError(f"failed to download {url}: {exc!r}") from exc

    async def _read_capped(self, response: httpx.Response) -> bytes:
        body = bytearray()
        async for chunk in response.aiter_bytes():
            body.extend(chunk)
            if len(body) > self._max_bytes:
                raise ImageTooLargeError(f"image body exceeds {self._max_bytes} bytes")
        return bytes(body)
