"""Blob storage for product, category and flavor images.

Provides the blob store interface used by the catalog services, an
in-memory implementation for development and tests, and an HTTP
implementation for an S3-style object gateway.
"""

import mimetypes
from typing import Protocol
from uuid import uuid4

import httpx
import structlog

from backoffice.domain.exceptions import BlobStoreError
from backoffice.infrastructure.config import settings

logger = structlog.get_logger()


class BlobStore(Protocol):
    """Storage for opaque binary objects addressed by a locator."""

    async def store(self, data: bytes, content_type: str, path_hint: str) -> str:
        """Store bytes and return their locator."""
        ...

    async def delete(self, locator: str) -> None:
        """Delete a blob. Raises BlobStoreError on failure."""
        ...

    def resolve(self, locator: str) -> str:
        """Public URL for a locator."""
        ...


def _object_key(content_type: str, path_hint: str) -> str:
    extension = mimetypes.guess_extension(content_type) or ""
    return f"{path_hint.strip('/')}/{uuid4().hex}{extension}"


# ============================================================================
# In-Memory Store
# ============================================================================


class InMemoryBlobStore:
    """Blob store holding objects in a dict.

    Attributes:
        blobs: Locator to (content type, bytes).
    """

    def __init__(self, public_base_url: str = "memory://blobs") -> None:
        self.public_base_url = public_base_url.rstrip("/")
        self.blobs: dict[str, tuple[str, bytes]] = {}

    async def store(self, data: bytes, content_type: str, path_hint: str) -> str:
        locator = _object_key(content_type, path_hint)
        self.blobs[locator] = (content_type, data)
        logger.debug("Blob stored", locator=locator, size=len(data))
        return locator

    async def delete(self, locator: str) -> None:
        # Deleting an unknown locator is a no-op, like S3
        self.blobs.pop(locator, None)

    def resolve(self, locator: str) -> str:
        return f"{self.public_base_url}/{locator}"


# ============================================================================
# HTTP Store
# ============================================================================


class HttpBlobStore:
    """Blob store backed by an HTTP object gateway.

    Objects are written with ``PUT <base_url>/<key>`` and removed with
    ``DELETE <base_url>/<key>``; the key is the locator.
    """

    def __init__(
        self,
        base_url: str,
        public_base_url: str,
        timeout: float = 10.0,
    ) -> None:
        """Initialize HTTP blob store.

        Args:
            base_url: Gateway URL objects are written to.
            public_base_url: URL prefix clients read objects from.
            timeout: Request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.public_base_url = public_base_url.rstrip("/")
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def store(self, data: bytes, content_type: str, path_hint: str) -> str:
        """Upload bytes.

        Args:
            data: Object content.
            content_type: MIME type.
            path_hint: Key prefix (e.g., "products/<id>").

        Returns:
            Locator of the stored object.

        Raises:
            BlobStoreError: On transport error or non-2xx response.
        """
        locator = _object_key(content_type, path_hint)
        try:
            client = await self._get_client()
            response = await client.put(
                f"/{locator}",
                content=data,
                headers={"Content-Type": content_type},
            )
        except httpx.RequestError as e:
            logger.error("Blob upload request failed", locator=locator, error=str(e))
            raise BlobStoreError(locator, f"Upload request failed: {str(e)}") from e

        if response.status_code not in (200, 201, 204):
            raise BlobStoreError(
                locator,
                f"Upload failed with status {response.status_code}: {response.text}",
            )
        return locator

    async def delete(self, locator: str) -> None:
        """Delete an object; a missing object counts as deleted.

        Raises:
            BlobStoreError: On transport error or unexpected response.
        """
        try:
            client = await self._get_client()
            response = await client.delete(f"/{locator}")
        except httpx.RequestError as e:
            logger.error("Blob delete request failed", locator=locator, error=str(e))
            raise BlobStoreError(locator, f"Delete request failed: {str(e)}") from e

        if response.status_code not in (200, 202, 204, 404):
            raise BlobStoreError(
                locator,
                f"Delete failed with status {response.status_code}: {response.text}",
            )

    def resolve(self, locator: str) -> str:
        return f"{self.public_base_url}/{locator}"


# Global blob store instance
_blob_store: BlobStore | None = None


def get_blob_store() -> BlobStore:
    """Get the blob store singleton.

    Returns:
        Blob store selected by ``settings.blob_store_backend``.
    """
    global _blob_store
    if _blob_store is None:
        if settings.blob_store_backend == "http":
            _blob_store = HttpBlobStore(
                base_url=settings.blob_store_url,
                public_base_url=settings.blob_public_base_url,
                timeout=settings.blob_store_timeout,
            )
        else:
            _blob_store = InMemoryBlobStore(public_base_url=settings.blob_public_base_url)
    return _blob_store
