"""The bucketfs filesystem plugin.

``Filesystem`` is the object a host application loads. It maps logical
paths onto an object store and exposes them as streams:

    - create_read_stream(path) -> DownloadHandle
    - create_write_stream(path) -> UploadHandle
    - stat(path[, callback]) -> StatRecord
    - realpath_sync(path) -> str

plus passthrough primitives (exists, unlink, readdir, copy_file) and the
read_file / write_file conveniences built on the streams.

The object store client is injected; by default an S3 client is built from
the configuration.
"""

import asyncio
import logging
import posixpath
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import httpx

from bucketfs import __version__
from bucketfs import metrics as _metrics
from bucketfs.config import BucketFSConfig, load_config
from bucketfs.download import DownloadHandle
from bucketfs.errors import ConfigurationError, FilesystemError, MetadataError, ObjectStoreError
from bucketfs.logging_config import configure_logging
from bucketfs.options import TransferOptions
from bucketfs.paths import Address, realpath, resolve
from bucketfs.records import StatRecord
from bucketfs.storage.backend import ObjectStoreClient
from bucketfs.upload import UploadHandle

logger = logging.getLogger(__name__)

StatCallback = Callable[[FilesystemError | None, StatRecord | None], None]


class Filesystem:
    """Streaming filesystem over an object store bucket.

    Args:
        config: The bucketfs configuration. ``config.s3.bucket`` is required.
        client: Object store client. Defaults to an S3 client built from config.
        http_client: httpx client used for signed-URL downloads. Created by
            ``init()`` when not given; a given client is not closed by ``close()``.

    Raises:
        ConfigurationError: If no bucket is configured.
    """

    type = "filesystem"
    plugin_name = "bucketfs"
    dependencies: list[str] = []
    version = __version__

    def __init__(
        self,
        config: BucketFSConfig,
        client: ObjectStoreClient | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not config.s3.bucket:
            raise ConfigurationError("filesystem.s3.bucket is required")
        self.config = config
        self.bucket = config.s3.bucket
        self.endpoint = config.s3.endpoint
        self.timeout_ms = config.s3.timeout_ms
        if client is None:
            from bucketfs.storage.aws import S3ObjectStoreClient

            client = S3ObjectStoreClient.from_config(config.s3)
        self.client = client
        self._http = http_client
        self._owns_http = http_client is None
        self._callbacks: set[asyncio.Task] = set()

    @classmethod
    def from_config_file(cls, path: Path, **kwargs: Any) -> "Filesystem":
        return cls(load_config(path), **kwargs)

    async def init(self) -> None:
        """Apply logging config, then initialize the client and HTTP pool."""
        configure_logging(self.config.logging.level, self.config.logging.format)
        if self.config.observability.metrics:
            _metrics.init_metrics()
        await self.client.init()
        if self._http is None:
            self._http = httpx.AsyncClient()
        logger.info("Filesystem ready: bucket=%s", self.bucket)

    async def close(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None
        await self.client.close()

    async def __aenter__(self) -> "Filesystem":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def resolve(self, path: str) -> Address:
        return resolve(self.bucket, path)

    # -- Streams ---------------------------------------------------------------

    def create_write_stream(
        self, path: str, options: TransferOptions | Mapping[str, Any] | None = None, **kwargs: Any
    ) -> UploadHandle:
        """Open a write stream; the upload starts immediately.

        Must be called from a running event loop. Content is gzip-compressed
        and stored publicly readable.
        """
        return UploadHandle(self.resolve(path), self.client, TransferOptions.coerce(options, **kwargs))

    def create_read_stream(
        self, path: str, options: TransferOptions | Mapping[str, Any] | None = None, **kwargs: Any
    ) -> DownloadHandle:
        """Open a read stream. Pass ``gunzip=False`` to receive the stored bytes."""
        if self._http is None:
            raise RuntimeError("Filesystem.init() must be called before reading")
        opts = TransferOptions.coerce(options, **kwargs)
        return DownloadHandle(
            self.resolve(path),
            self.client,
            self._http,
            timeout_ms=self.timeout_ms,
            expires=self.config.s3.signed_url_expires,
            gunzip=opts.gunzip,
        )

    # -- Metadata --------------------------------------------------------------

    async def _stat(self, path: str) -> StatRecord:
        address = self.resolve(path)
        try:
            headers = await self.client.head_object(address)
        except ObjectStoreError as e:
            _metrics.record_operation("stat", "error")
            raise MetadataError(e.code, e.http_status) from e
        except Exception as e:
            _metrics.record_operation("stat", "error")
            raise MetadataError(type(e).__name__) from e
        _metrics.record_operation("stat", "ok")
        return StatRecord.from_headers(headers)

    async def _stat_to_callback(self, path: str, callback: StatCallback) -> None:
        try:
            record = await self._stat(path)
        except FilesystemError as e:
            callback(e, None)
            return
        callback(None, record)

    def stat(self, path: str, callback: StatCallback | None = None):
        """Fetch a StatRecord for ``path``.

        Without a callback, returns an awaitable. With a callback, schedules
        the lookup, calls ``callback(error, record)`` once and returns None.

        Raises:
            MetadataError: (awaitable form) ``str(error)`` is the store's
                error classification, e.g. ``"NotFound"``.
        """
        if callback is None:
            return self._stat(path)
        task = asyncio.get_running_loop().create_task(self._stat_to_callback(path, callback))
        self._callbacks.add(task)
        task.add_done_callback(self._callbacks.discard)
        return None

    def realpath_sync(self, path: str) -> str:
        """Return the public URL of ``path``. No I/O."""
        return realpath(self.endpoint, self.bucket, path)

    # -- Passthrough primitives ------------------------------------------------

    async def exists(self, path: str) -> bool:
        return await self.client.exists(self.resolve(path))

    async def unlink(self, path: str) -> None:
        await self.client.delete(self.resolve(path))

    async def readdir(self, path: str = "") -> list[str]:
        """List the entries directly under a directory path."""
        container = self.resolve(posixpath.join(path, "")).container
        return await self.client.list_entries(container)

    async def copy_file(self, source: str, destination: str) -> None:
        await self.client.copy(self.resolve(source), self.resolve(destination))

    async def read_file(self, path: str, **options: Any) -> bytes:
        return await self.create_read_stream(path, **options).read()

    async def write_file(self, path: str, data: bytes, **options: Any) -> dict[str, Any] | None:
        handle = self.create_write_stream(path, **options)
        await handle.end(data)
        return await handle.wait()
