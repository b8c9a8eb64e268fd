"""Tests for HttpObjectStore against a local aiohttp server."""

import hashlib
import socket

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from rangefetch.config.settings import Settings
from rangefetch.download.downloader import Downloader
from rangefetch.storage.exceptions import (
    AccessDeniedError, InvalidRangeError, NotFoundError, ObjectStoreError, ProtocolError,
    TransientError
)
from rangefetch.storage.models import ByteRange, DownloadOptions, ObjectLocator
from rangefetch.storage.object_store import HttpObjectStore

from .conftest import make_payload

OBJECT = make_payload(10_000)
ETAG = '"5d41402abc4b2a76"'
REQUESTS = web.AppKey("requests", list)


async def handle_object(request: web.Request) -> web.Response:
    key = request.match_info['key']
    request.app[REQUESTS].append((request.method, key, request.headers.get('Range')))

    if key.startswith('status/'):
        status = int(key.split('/')[1])
        headers = {'Retry-After': '7'} if status == 429 else {}
        return web.Response(status=status, headers=headers)
    if key == 'wrong-offset':
        return web.Response(
            status=206, body=OBJECT[:100], headers={'Content-Range': f"bytes 0-99/{len(OBJECT)}"}
        )
    if key == 'ignores-range' or request.method == 'HEAD' or 'Range' not in request.headers:
        return web.Response(body=OBJECT, headers={'ETag': ETAG})

    requested = request.http_range
    body = OBJECT[requested]
    return web.Response(
        status=206,
        body=body,
        headers={
            'ETag': ETAG,
            'Content-Range': f"bytes {requested.start}-{requested.start + len(body) - 1}/{len(OBJECT)}",
        }
    )


@pytest_asyncio.fixture
async def server():
    app = web.Application()
    app[REQUESTS] = []
    app.router.add_get('/{bucket}/{key:.+}', handle_object)
    async with TestServer(app) as test_server:
        yield test_server


@pytest_asyncio.fixture
async def http_store(server):
    store = HttpObjectStore(str(server.make_url('/')), Settings(request_timeout=5.0))
    yield store
    await store.close()


def requests_seen(server):
    return server.app[REQUESTS]


class TestHead:

    @pytest.mark.asyncio
    async def test_returns_size_and_etag(self, http_store, server):
        metadata = await http_store.head(ObjectLocator("bucket", "data/object.bin"))

        assert metadata.size == len(OBJECT)
        assert metadata.etag == ETAG
        assert requests_seen(server)[0][:2] == ('HEAD', 'data/object.bin')

    @pytest.mark.asyncio
    async def test_missing_object(self, http_store):
        with pytest.raises(NotFoundError):
            await http_store.head(ObjectLocator("bucket", "status/404"))


class TestGetRange:

    @pytest.mark.asyncio
    async def test_sends_inclusive_range_header(self, http_store, server):
        data = await http_store.get_range(ObjectLocator("bucket", "object.bin"), ByteRange(100, 100))

        assert data == OBJECT[100:200]
        assert requests_seen(server)[-1] == ('GET', 'object.bin', 'bytes=100-199')

    @pytest.mark.asyncio
    async def test_tail_range(self, http_store):
        data = await http_store.get_range(ObjectLocator("bucket", "object.bin"), ByteRange(9_000, 1_000))

        assert data == OBJECT[9_000:]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status, expected", [
        (404, NotFoundError),
        (401, AccessDeniedError),
        (403, AccessDeniedError),
        (416, InvalidRangeError),
        (500, TransientError),
        (503, TransientError),
        (400, ObjectStoreError),
    ])
    async def test_status_mapping(self, http_store, status, expected):
        with pytest.raises(ObjectStoreError) as exc_info:
            await http_store.get_range(ObjectLocator("bucket", f"status/{status}"), ByteRange(0, 10))

        assert type(exc_info.value) is expected
        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_throttling_carries_retry_after(self, http_store):
        with pytest.raises(TransientError) as exc_info:
            await http_store.get_range(ObjectLocator("bucket", "status/429"), ByteRange(0, 10))

        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after == 7.0

    @pytest.mark.asyncio
    async def test_response_from_wrong_offset(self, http_store):
        with pytest.raises(ProtocolError):
            await http_store.get_range(ObjectLocator("bucket", "wrong-offset"), ByteRange(500, 100))

    @pytest.mark.asyncio
    async def test_ignored_range_header_returns_extra_bytes(self, http_store):
        data = await http_store.get_range(ObjectLocator("bucket", "ignores-range"), ByteRange(0, 100))

        assert len(data) > 100

    @pytest.mark.asyncio
    async def test_connection_refused_is_transient(self):
        with socket.socket() as sock:
            sock.bind(('127.0.0.1', 0))
            port = sock.getsockname()[1]

        async with HttpObjectStore(f"http://127.0.0.1:{port}", Settings(request_timeout=2.0)) as store:
            with pytest.raises(TransientError) as exc_info:
                await store.get_range(ObjectLocator("bucket", "object.bin"), ByteRange(0, 10))

        assert isinstance(exc_info.value.original_error, aiohttp.ClientError)


class TestHttpObjectStore:

    def test_object_url_quotes_key(self):
        store = HttpObjectStore("http://store.local/")

        url = store.object_url(ObjectLocator("my-bucket", "dir/a file.txt"))

        assert url == "http://store.local/my-bucket/dir/a%20file.txt"

    @pytest.mark.asyncio
    async def test_external_session_is_not_closed(self, server):
        async with aiohttp.ClientSession() as session:
            store = HttpObjectStore(str(server.make_url('/')), session=session)
            await store.head(ObjectLocator("bucket", "object.bin"))
            await store.close()

            assert not session.closed

    @pytest.mark.asyncio
    async def test_full_download_over_http(self, http_store, tmp_path):
        settings = Settings(initial_backoff_seconds=0.0, max_backoff_seconds=0.01)
        options = DownloadOptions(
            chunk_size=1_000,
            concurrency_limit=3,
            expected_digest=hashlib.sha512(OBJECT).hexdigest(),
        )

        result = await Downloader(http_store, settings).download(
            "s3://bucket/object.bin", tmp_path / "object.bin", options
        )

        assert result.chunk_count == 10
        assert (tmp_path / "object.bin").read_bytes() == OBJECT
