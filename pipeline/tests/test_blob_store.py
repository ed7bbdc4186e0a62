"""Tests for blob_store.py"""

import os
import sys
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from blob_store import (
    BlobStoreError,
    FileBlobStore,
    HttpBlobStore,
    PostgresBlobStore,
    chunk_key,
    get_blob_store,
)


@pytest.mark.asyncio
async def test_file_store_round_trip_and_missing_key(tmp_path):
    store = FileBlobStore(tmp_path)

    await store.put_json("indexes/opening-by-eco.json", {"B20": [3, 8]})

    assert (tmp_path / "opening-by-eco.json").exists()
    assert await store.get_json("indexes/opening-by-eco.json") == {"B20": [3, 8]}
    assert await store.get("indexes/missing.json") is None
    assert await store.get_json("indexes/missing.json") is None


@pytest.mark.asyncio
async def test_file_store_unparsable_content(tmp_path):
    store = FileBlobStore(tmp_path)
    (tmp_path / "opening-by-name.json").write_bytes(b"\xff\xfe garbage")

    with pytest.raises(BlobStoreError):
        await store.get_json("indexes/opening-by-name.json")


def make_http_store(handler, token=None) -> HttpBlobStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpBlobStore("https://blobs.example.com/master-games/", token=token, client=client)


@pytest.mark.asyncio
async def test_http_store_get_sends_token_and_returns_bytes():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, content=b'{"games": []}')

    store = make_http_store(handler, token="secret")
    data = await store.get_json(chunk_key(3))
    await store.aclose()

    assert data == {"games": []}
    assert seen["url"] == "https://blobs.example.com/master-games/indexes/chunk-3.json"
    assert seen["auth"] == "Bearer secret"


@pytest.mark.asyncio
async def test_http_store_404_is_not_found():
    store = make_http_store(lambda request: httpx.Response(404))
    assert await store.get(chunk_key(0)) is None
    await store.aclose()


@pytest.mark.asyncio
async def test_http_store_server_error_raises():
    store = make_http_store(lambda request: httpx.Response(503))
    with pytest.raises(BlobStoreError, match="503"):
        await store.get(chunk_key(0))
    await store.aclose()


@pytest.mark.asyncio
async def test_http_store_transport_error_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    store = make_http_store(handler)
    with pytest.raises(BlobStoreError):
        await store.get(chunk_key(0))
    await store.aclose()


@pytest.mark.asyncio
async def test_http_store_put():
    received = {}

    def handler(request: httpx.Request) -> httpx.Response:
        received["method"] = request.method
        received["body"] = request.content
        return httpx.Response(201)

    store = make_http_store(handler)
    await store.put_json("indexes/opening-by-eco.json", {"A40": [6]})
    await store.aclose()

    assert received["method"] == "PUT"
    assert received["body"] == b'{"A40": [6]}'


def test_get_blob_store_picks_backend_from_location(tmp_path):
    assert isinstance(get_blob_store(str(tmp_path)), FileBlobStore)
    assert get_blob_store(f"file://{tmp_path}").root == tmp_path
    assert isinstance(get_blob_store("https://blobs.example.com"), HttpBlobStore)
    assert isinstance(get_blob_store("postgresql://localhost/master_games"), PostgresBlobStore)
    assert isinstance(get_blob_store("postgres"), PostgresBlobStore)


def test_get_blob_store_reads_environment(tmp_path):
    with patch.dict(os.environ, {"MASTER_GAMES_STORE": "https://blobs.example.com", "MASTER_GAMES_TOKEN": "t"}):
        store = get_blob_store()
    assert isinstance(store, HttpBlobStore)
    assert store.token == "t"


@pytest.mark.asyncio
async def test_postgres_store_wraps_failures():
    store = PostgresBlobStore("postgresql://localhost/master_games")
    with patch("blob_store.get_connection", side_effect=OSError("no server")):
        with pytest.raises(BlobStoreError):
            await store.get(chunk_key(0))


@pytest.mark.integration
@pytest.mark.asyncio
async def test_postgres_store_round_trip():
    if not os.environ.get("RUN_DB_TESTS"):
        pytest.skip("RUN_DB_TESTS not set — skipping DB integration test")
    store = PostgresBlobStore()
    await store.put_json("indexes/test-blob.json", {"ok": True})
    assert await store.get_json("indexes/test-blob.json") == {"ok": True}
