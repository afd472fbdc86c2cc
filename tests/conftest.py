"""Shared pytest fixtures for bucketfs tests.

Filesystems are wired to the in-memory object store client, and downloads
go through an httpx.MockTransport. Tests that need a misbehaving server
pass their own MockTransport handler to ``make_fs``.
"""

import gzip

import httpx
import pytest

from bucketfs.config import BucketFSConfig, S3Config
from bucketfs.filesystem import Filesystem
from bucketfs.storage.memory import MemoryObjectStoreClient


@pytest.fixture
def config() -> BucketFSConfig:
    """A config pointing at a fake bucket and endpoint."""
    return BucketFSConfig(
        s3=S3Config(bucket="test-bucket", endpoint="https://s3.example.com"),
    )


@pytest.fixture
def store() -> MemoryObjectStoreClient:
    return MemoryObjectStoreClient()


@pytest.fixture
async def make_fs(config, store):
    """Factory for initialized Filesystems sharing ``store``.

    Called with no argument, downloads are served from the memory store.
    Called with a handler, every GET goes to that MockTransport handler.
    """
    created = []

    async def _make(handler=None) -> Filesystem:
        transport = httpx.MockTransport(handler) if handler is not None else store.transport()
        http = httpx.AsyncClient(transport=transport)
        filesystem = Filesystem(config, client=store, http_client=http)
        await filesystem.init()
        created.append((filesystem, http))
        return filesystem

    yield _make

    for filesystem, http in created:
        await filesystem.close()
        await http.aclose()


@pytest.fixture
async def fs(make_fs) -> Filesystem:
    """An initialized Filesystem backed by the memory store."""
    return await make_fs()


@pytest.fixture
def text() -> bytes:
    return b'"Bob is my name"\n'


@pytest.fixture
def gzipped(text) -> bytes:
    return gzip.compress(text)
