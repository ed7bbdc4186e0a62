"""
Blob stores holding the index artifacts.

Every artifact is a JSON document addressed by a string key such as
``indexes/chunk-3.json``. Three backends share one async interface:

  FileBlobStore      a directory on local disk (the default)
  HttpBlobStore      a remote object store reached over HTTP
  PostgresBlobStore  a ``blobs`` table in PostgreSQL

A missing key is "not found" (``None``), never an exception. Transport
failures and unparsable content raise ``BlobStoreError``.
"""

import asyncio
import json
import os
from pathlib import Path
from urllib.parse import quote

import httpx

from db import ensure_blob_table, get_blob, get_connection, upsert_blob

DEFAULT_STORE = "data/indexes"

MANIFEST_KEY = "indexes/master-index.json"
NAME_INDEX_KEY = "indexes/opening-by-name.json"
ECO_INDEX_KEY = "indexes/opening-by-eco.json"
GAME_TO_PLAYERS_KEY = "indexes/game-to-players.json"
ANCESTOR_INDEX_KEY = "indexes/ancestor-to-descendants.json"
TRANSITION_GRAPH_KEY = "indexes/from-to-positions.json"


def chunk_key(chunk_id: int) -> str:
    return f"indexes/chunk-{chunk_id}.json"


class BlobStoreError(RuntimeError):
    """Backing store failed or returned content that could not be parsed."""


class BlobStore:
    """Base class: subclasses implement raw ``get`` and ``put``."""

    async def get(self, key: str) -> bytes | None:
        raise NotImplementedError

    async def put(self, key: str, data: bytes) -> None:
        raise NotImplementedError

    async def get_json(self, key: str):
        data = await self.get(key)
        if data is None:
            return None
        try:
            return json.loads(data)
        except (ValueError, UnicodeDecodeError) as e:
            raise BlobStoreError(f"Unparsable blob {key}: {e}") from e

    async def put_json(self, key: str, obj, indent: int | None = None) -> int:
        """Serialize and store; returns the number of bytes written."""
        data = json.dumps(obj, indent=indent).encode("utf-8")
        await self.put(key, data)
        return len(data)

    async def aclose(self) -> None:
        return None


class FileBlobStore(BlobStore):
    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        # Keys are written relative to root; the "indexes/" prefix maps to root itself
        rel = key[len("indexes/"):] if key.startswith("indexes/") else key
        return self.root / rel

    @staticmethod
    def _read_sync(path: Path) -> bytes | None:
        if not path.exists():
            return None
        return path.read_bytes()

    @staticmethod
    def _write_sync(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    # Disk I/O runs on worker threads so concurrent fetches overlap
    async def get(self, key: str) -> bytes | None:
        path = self._path(key)
        try:
            return await asyncio.to_thread(self._read_sync, path)
        except OSError as e:
            raise BlobStoreError(f"Error reading {path}: {e}") from e

    async def put(self, key: str, data: bytes) -> None:
        await asyncio.to_thread(self._write_sync, self._path(key), data)

    def __repr__(self) -> str:
        return f"FileBlobStore({str(self.root)!r})"


class HttpBlobStore(BlobStore):
    """Object store reached over HTTP: GET/PUT ``{base_url}/{key}``."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _url(self, key: str) -> str:
        return f"{self.base_url}/{quote(key)}"

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    async def get(self, key: str) -> bytes | None:
        try:
            resp = await self._client.get(self._url(key), headers=self._headers())
        except httpx.HTTPError as e:
            raise BlobStoreError(f"Fetch failed for {key}: {e}") from e
        if resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise BlobStoreError(f"Fetch failed for {key}: HTTP {resp.status_code}")
        return resp.content

    async def put(self, key: str, data: bytes) -> None:
        headers = {**self._headers(), "Content-Type": "application/json"}
        try:
            resp = await self._client.put(self._url(key), content=data, headers=headers)
        except httpx.HTTPError as e:
            raise BlobStoreError(f"Upload failed for {key}: {e}") from e
        if resp.status_code >= 400:
            raise BlobStoreError(f"Upload failed for {key}: HTTP {resp.status_code}")

    async def aclose(self) -> None:
        await self._client.aclose()

    def __repr__(self) -> str:
        return f"HttpBlobStore({self.base_url!r})"


class PostgresBlobStore(BlobStore):
    """Blobs in a PostgreSQL table; each call runs on a worker thread."""

    def __init__(self, conninfo: str | None = None):
        self.conninfo = conninfo
        self._table_ready = False

    def _get_sync(self, key: str) -> bytes | None:
        with get_connection(self.conninfo) as conn:
            return get_blob(conn, key)

    def _put_sync(self, key: str, data: bytes) -> None:
        with get_connection(self.conninfo) as conn:
            if not self._table_ready:
                ensure_blob_table(conn)
                self._table_ready = True
            upsert_blob(conn, key, data)

    async def get(self, key: str) -> bytes | None:
        try:
            return await asyncio.to_thread(self._get_sync, key)
        except Exception as e:
            raise BlobStoreError(f"Fetch failed for {key}: {e}") from e

    async def put(self, key: str, data: bytes) -> None:
        try:
            await asyncio.to_thread(self._put_sync, key, data)
        except Exception as e:
            raise BlobStoreError(f"Upload failed for {key}: {e}") from e

    def __repr__(self) -> str:
        return "PostgresBlobStore()"


def get_store_location() -> str:
    """Get store location (directory, http(s) URL or postgres DSN) from environment."""
    return os.environ.get("MASTER_GAMES_STORE", DEFAULT_STORE)


def get_blob_store(location: str | None = None) -> BlobStore:
    """Pick a backend from the location's scheme."""
    location = location or get_store_location()
    if location.startswith(("http://", "https://")):
        return HttpBlobStore(location, token=os.environ.get("MASTER_GAMES_TOKEN"))
    if location == "postgres":
        return PostgresBlobStore()
    if location.startswith(("postgresql://", "postgres://")):
        return PostgresBlobStore(location)
    if location.startswith("file://"):
        location = location[len("file://"):]
    return FileBlobStore(location)
