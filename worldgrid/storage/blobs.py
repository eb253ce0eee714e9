"""Blob storage for worldgrid.

Read-only, fetch-by-URL access to village assets (TMJ maps, TSX tileset
descriptors, tileset images). Two backends:
- FileBlobStore: a local directory (aiofiles)
- HttpBlobStore: an HTTP(S) origin such as a storage bucket (httpx)

Uploading assets is handled elsewhere; there is no write path here.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import urlsplit

import aiofiles
import httpx

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Exceptions
# -----------------------------------------------------------------------------


class BlobStoreError(Exception):
    """Base exception for blob store errors."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class BlobNotFoundError(BlobStoreError):
    """No blob exists at the URL."""

    pass


class BlobFetchError(BlobStoreError):
    """The blob exists (or might) but could not be fetched."""

    pass


# -----------------------------------------------------------------------------
# Interface
# -----------------------------------------------------------------------------


class BlobStore(Protocol):
    """Fetch-by-URL asset access."""

    async def fetch_bytes(self, url: str) -> bytes: ...

    async def fetch_text(self, url: str) -> str: ...

    async def fetch_json(self, url: str) -> Any: ...


def join_url(base: str, path: str) -> str:
    """Join an asset path onto a base URL or directory.

    Leading ``./`` is dropped, absolute URLs are returned unchanged.
    """
    if urlsplit(path).scheme in ("http", "https", "file"):
        return path
    while path.startswith("./"):
        path = path[2:]
    if not base:
        return path
    return f"{base.rstrip('/')}/{path.lstrip('/')}"


class _BaseBlobStore:
    """Text and JSON decoding shared by the backends."""

    async def fetch_bytes(self, url: str) -> bytes:
        raise NotImplementedError

    async def fetch_text(self, url: str) -> str:
        data = await self.fetch_bytes(url)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise BlobFetchError(f"Blob is not UTF-8 text: {url}", url) from e

    async def fetch_json(self, url: str) -> Any:
        text = await self.fetch_text(url)
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise BlobFetchError(f"Blob is not valid JSON: {url} ({e})", url) from e


# -----------------------------------------------------------------------------
# Backends
# -----------------------------------------------------------------------------


class FileBlobStore(_BaseBlobStore):
    """Blobs stored as files under a root directory.

    Accepts ``file://`` URLs, absolute paths, and paths relative to root.
    Query strings are ignored.
    """

    def __init__(self, root: Path | str = "."):
        self.root = Path(root)

    def resolve(self, url: str) -> Path:
        parts = urlsplit(url)
        if parts.scheme == "file":
            return Path(parts.path)
        raw = parts.path if parts.scheme == "" else url
        path = Path(raw)
        if path.is_absolute():
            return path
        return self.root / path

    async def fetch_bytes(self, url: str) -> bytes:
        path = self.resolve(url)
        try:
            async with aiofiles.open(path, "rb") as f:
                data = await f.read()
        except FileNotFoundError as e:
            raise BlobNotFoundError(f"Blob not found: {url}", url) from e
        except OSError as e:
            raise BlobFetchError(f"Failed to read blob {url}: {e}", url) from e
        logger.debug(f"Read blob {path} ({len(data)} bytes)")
        return data


class HttpBlobStore(_BaseBlobStore):
    """Blobs served over HTTP(S).

    Usage:
        async with HttpBlobStore("https://storage.googleapis.com/bucket") as blobs:
            tmj = await blobs.fetch_json("villages/happy-village/map.tmj")
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpBlobStore:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def fetch_bytes(self, url: str) -> bytes:
        full_url = join_url(self.base_url, url)
        try:
            response = await self._client.get(full_url)
        except httpx.HTTPError as e:
            raise BlobFetchError(f"Request for {full_url} failed: {e}", full_url) from e

        if response.status_code == 404:
            raise BlobNotFoundError(f"Blob not found: {full_url}", full_url)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise BlobFetchError(
                f"Fetching {full_url} returned HTTP {response.status_code}", full_url
            ) from e

        logger.debug(f"Fetched {full_url} ({len(response.content)} bytes)")
        return response.content


def open_blob_store(location: str, timeout: float = 10.0) -> FileBlobStore | HttpBlobStore:
    """Pick a backend for a configured asset location (URL or directory)."""
    if urlsplit(location).scheme in ("http", "https"):
        return HttpBlobStore(location, timeout=timeout)
    return FileBlobStore(location)
