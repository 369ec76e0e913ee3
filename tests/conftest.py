# tests/conftest.py
"""Shared fixtures for vidshelf tests."""

from __future__ import annotations

import io
import itertools
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import httpx
import pytest

from vidshelf.service import VideoLibrary
from vidshelf.sources.hosting import HostingApiSource
from vidshelf.sources.links import LinkTableSource
from vidshelf.sources.storage import ObjectStorageSource

SUPABASE_URL = "https://demo.supabase.co"
API_KEY = "secret-mediacm-key"
BASE_URL = "https://media.cm/api"


class FakeQuery:
    """Just enough of the PostgREST query builder for the links table."""

    def __init__(self, db: "FakeSupabase", table: str) -> None:
        self._db = db
        self._table = table
        self._op = "select"
        self._payload = None
        self._filters: list[tuple[str, str]] = []
        self._order: tuple[str, bool] | None = None

    def select(self, columns: str = "*"):
        self._op = "select"
        return self

    def order(self, column: str, desc: bool = False):
        self._order = (column, desc)
        return self

    def insert(self, payload: dict):
        self._op = "insert"
        self._payload = payload
        return self

    def delete(self):
        self._op = "delete"
        return self

    def eq(self, column: str, value):
        self._filters.append((column, str(value)))
        return self

    def execute(self):
        if self._db.fail_table:
            raise RuntimeError("relation does not exist")
        rows = self._db.tables.setdefault(self._table, [])
        if self._op == "insert":
            row = {
                "id": next(self._db.ids),
                "created_at": self._db.tick().isoformat(),
                **self._payload,
            }
            rows.append(row)
            return SimpleNamespace(data=[row])
        matched = [r for r in rows if all(str(r.get(c)) == v for c, v in self._filters)]
        if self._op == "delete":
            for r in matched:
                rows.remove(r)
            return SimpleNamespace(data=matched)
        if self._order:
            column, desc = self._order
            matched = sorted(matched, key=lambda r: r[column], reverse=desc)
        return SimpleNamespace(data=matched)


class FakeBucket:
    """Just enough of the storage bucket API."""

    def __init__(self, db: "FakeSupabase", name: str) -> None:
        self._db = db
        self._name = name

    @property
    def _objects(self) -> list[dict]:
        return self._db.buckets.setdefault(self._name, [])

    def list(self, path: str = "", options: dict | None = None):
        if self._db.fail_storage:
            raise RuntimeError("bucket not found")
        self._db.list_options = options
        limit = (options or {}).get("limit", 100)
        ordered = sorted(self._objects, key=lambda o: o["created_at"] or "", reverse=True)
        return ordered[:limit]

    def upload(self, path: str, file: bytes, file_options: dict | None = None):
        self._db.upload_calls.append((path, file_options))
        if self._db.fail_storage or any(o["name"] == path for o in self._objects):
            raise RuntimeError("The resource already exists")
        self._objects.append({
            "id": f"obj-{next(self._db.ids)}",
            "name": path,
            "created_at": self._db.tick().isoformat(),
            "metadata": {"mimetype": file_options.get("content-type"), "size": len(file)},
        })
        return SimpleNamespace(path=path)

    def remove(self, paths: list[str]):
        if self._db.fail_storage:
            raise RuntimeError("storage unavailable")
        removed = [o for o in self._objects if o["name"] in paths]
        for o in removed:
            self._objects.remove(o)
        return removed

    def get_public_url(self, path: str) -> str:
        return f"{SUPABASE_URL}/storage/v1/object/public/{self._name}/{path}"


class FakeSupabase:
    """In-memory stand-in for a supabase.Client."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {}
        self.buckets: dict[str, list[dict]] = {}
        self.ids = itertools.count(1)
        self.fail_table = False
        self.fail_storage = False
        self.upload_calls: list = []
        self.list_options = None
        self._clock = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)
        self.storage = SimpleNamespace(from_=lambda name: FakeBucket(self, name))

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def tick(self) -> datetime:
        self._clock += timedelta(minutes=1)
        return self._clock


class UnseekableStream(io.RawIOBase):
    """Readable stream with no seek or tell, like a pipe or a socket."""

    def __init__(self, data: bytes) -> None:
        self._inner = io.BytesIO(data)

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        return self._inner.readinto(buffer)


class FakeMediaCm:
    """Stateful handler for httpx.MockTransport emulating the Media.cm API."""

    def __init__(self) -> None:
        self.files = [
            {
                "file_code": "abc123xyz",
                "title": "Conference talk",
                "link": "https://media.cm/abc123xyz",
                "thumbnail": "https://media.cm/thumbs/abc123xyz.jpg",
                "canplay": 1,
                "length": "321",
                "views": "42",
                "uploaded": "2025-06-14 09:30:00",
                "public": "1",
                "fld_id": "0",
            },
            {
                "file_code": "def456uvw",
                "title": "",
                "link": "https://media.cm/def456uvw",
                "thumbnail": "",
                "canplay": 0,
                "length": "",
                "views": "0",
                "uploaded": "2025-06-15 10:00:00",
                "public": "0",
                "fld_id": "",
            },
        ]
        self.requests: list[httpx.Request] = []
        self.fail_http = False
        self.reject = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_http:
            return httpx.Response(502, text="bad gateway")
        if self.reject:
            return httpx.Response(200, json={"status": 403, "msg": "Wrong API key"})

        path = request.url.path
        params = request.url.params
        if params.get("key") != API_KEY and request.url.host == "media.cm":
            return httpx.Response(200, json={"status": 403, "msg": "Wrong API key"})

        if path == "/api/upload/server":
            return httpx.Response(200, json={"status": 200, "result": "https://s1.media.cm/upload/01"})
        if path == "/api/file/list":
            return httpx.Response(200, json={
                "status": 200,
                "msg": "OK",
                "result": {"files": self.files, "results_total": len(self.files), "pages": 1},
            })
        if path == "/api/upload/url":
            return httpx.Response(200, json={"status": 200, "msg": "OK", "result": {"filecode": "remote789"}})
        if path == "/api/file/delete":
            code = params.get("del_code")
            before = len(self.files)
            self.files = [f for f in self.files if f["file_code"] != code]
            if len(self.files) == before:
                return httpx.Response(200, json={"status": 404, "msg": "File not found"})
            return httpx.Response(200, json={"status": 200, "msg": "OK"})
        if request.url.host == "s1.media.cm":
            body = request.read()
            if f'name="key"\r\n\r\n{API_KEY}'.encode() not in body:
                return httpx.Response(200, json={"status": 403, "msg": "Wrong API key"})
            return httpx.Response(200, json={
                "status": 200,
                "msg": "OK",
                "files": [{"filecode": "new001", "filename": "clip.mp4", "status": "OK"}],
            })
        return httpx.Response(404, json={"status": 404, "msg": "Not found"})


@pytest.fixture
def fake_supabase():
    """In-memory Supabase client with a links table and a videos bucket."""
    return FakeSupabase()


@pytest.fixture
def mediacm():
    return FakeMediaCm()


@pytest.fixture
def http_client(mediacm):
    client = httpx.Client(transport=httpx.MockTransport(mediacm))
    yield client
    client.close()


@pytest.fixture
def link_source(fake_supabase):
    return LinkTableSource(fake_supabase, table="video_links")


@pytest.fixture
def storage_source(fake_supabase):
    return ObjectStorageSource(fake_supabase, bucket="videos", page_size=100, max_upload_bytes=50 * 1024 * 1024)


@pytest.fixture
def hosting_source(http_client):
    return HostingApiSource(http_client, API_KEY, base_url=BASE_URL)


@pytest.fixture
def library(link_source, storage_source, hosting_source):
    """Library wired to all three sources."""
    return VideoLibrary([link_source, storage_source, hosting_source], parent_host="example.com")


@pytest.fixture
def api_key():
    return API_KEY


@pytest.fixture
def unseekable():
    """Factory for streams whose size cannot be measured up front."""
    return UnseekableStream
