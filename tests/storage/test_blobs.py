"""Tests for blob stores."""

from pathlib import Path

import httpx
import pytest

from worldgrid.storage import (
    BlobFetchError,
    BlobNotFoundError,
    FileBlobStore,
    HttpBlobStore,
    join_url,
    open_blob_store,
)


class TestJoinUrl:
    """Tests for join_url."""

    def test_joins_with_single_slash(self):
        assert join_url("villages/a/tilesets/", "/ground.tsx") == "villages/a/tilesets/ground.tsx"

    def test_strips_dot_slash(self):
        assert join_url("base", "./img/ground.png") == "base/img/ground.png"

    def test_absolute_url_unchanged(self):
        assert join_url("base", "https://cdn.example/x.png") == "https://cdn.example/x.png"

    def test_empty_base(self):
        assert join_url("", "map.tmj") == "map.tmj"


class TestFileBlobStore:
    """Tests for the local-directory backend."""

    async def test_fetch_relative(self, asset_root: Path, blobs: FileBlobStore):
        (asset_root / "a.txt").write_text("hello")
        assert await blobs.fetch_text("a.txt") == "hello"
        assert await blobs.fetch_bytes("a.txt") == b"hello"

    async def test_fetch_file_url(self, asset_root: Path, blobs: FileBlobStore):
        path = asset_root / "b.json"
        path.write_text('{"k": [1, 2]}')
        assert await blobs.fetch_json(path.as_uri()) == {"k": [1, 2]}

    async def test_query_string_ignored(self, asset_root: Path, blobs: FileBlobStore):
        (asset_root / "c.txt").write_text("c")
        assert await blobs.fetch_text("c.txt?v=3") == "c"

    async def test_missing(self, blobs: FileBlobStore):
        with pytest.raises(BlobNotFoundError) as exc_info:
            await blobs.fetch_bytes("missing.png")
        assert exc_info.value.url == "missing.png"

    async def test_invalid_json(self, asset_root: Path, blobs: FileBlobStore):
        (asset_root / "bad.json").write_text("{not json")
        with pytest.raises(BlobFetchError):
            await blobs.fetch_json("bad.json")

    async def test_invalid_utf8(self, asset_root: Path, blobs: FileBlobStore):
        (asset_root / "bin.txt").write_bytes(b"\xff\xfe\xfa")
        with pytest.raises(BlobFetchError):
            await blobs.fetch_text("bin.txt")


class TestHttpBlobStore:
    """Tests for the HTTP backend using a mock transport."""

    @staticmethod
    def _client(handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    async def test_fetch_json(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, json={"width": 20})

        async with HttpBlobStore("https://bucket.example/root", client=self._client(handler)) as store:
            assert await store.fetch_json("villages/a/map.tmj") == {"width": 20}
        assert seen == ["https://bucket.example/root/villages/a/map.tmj"]

    async def test_not_found(self):
        store = HttpBlobStore("https://bucket.example", client=self._client(lambda r: httpx.Response(404)))
        with pytest.raises(BlobNotFoundError):
            await store.fetch_bytes("nope.png")

    async def test_server_error(self):
        store = HttpBlobStore("https://bucket.example", client=self._client(lambda r: httpx.Response(503)))
        with pytest.raises(BlobFetchError):
            await store.fetch_bytes("x.png")

    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        store = HttpBlobStore("https://bucket.example", client=self._client(handler))
        with pytest.raises(BlobFetchError):
            await store.fetch_bytes("x.png")


class TestOpenBlobStore:
    """Backend selection."""

    async def test_http_location(self):
        store = open_blob_store("https://bucket.example")
        assert isinstance(store, HttpBlobStore)
        await store.close()

    def test_directory_location(self, asset_root: Path):
        store = open_blob_store(str(asset_root))
        assert isinstance(store, FileBlobStore)
        assert store.root == asset_root
