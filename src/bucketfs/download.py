"""Streaming download pipeline.

Signed URL -> httpx GET -> response validation -> gunzip-maybe -> caller.

Three stages can fail independently (transport, response validation,
decompression) and a single fault can trip more than one of them, e.g. a
dropped connection that also truncates the gzip stream. The handle's
``locked`` latch lets only the first failure through; it is recorded on
``error`` and raised from the iterator, anything after it is dropped.
"""

import logging
import time
from collections.abc import AsyncIterator

import httpx

from bucketfs import metrics as _metrics
from bucketfs.compression import gunzip_stream
from bucketfs.errors import (
    BadStatusError,
    EmptyFileError,
    FilesystemError,
    ObjectNotFoundError,
    ObjectStoreError,
    RequestTimeoutError,
    TransportError,
)
from bucketfs.latch import OnceLatch
from bucketfs.paths import Address
from bucketfs.storage.backend import ObjectStoreClient

logger = logging.getLogger(__name__)


class DownloadHandle:
    """Async-iterable byte source for one object.

    Nothing happens until iteration starts. Iterating a handle a second
    time continues (or finishes) the same transfer.

    Breaking out of ``async for`` leaves the response open until the handle
    is closed; use ``async with`` or call ``aclose()`` when stopping early::

        async with fs.create_read_stream("a.txt") as stream:
            async for chunk in stream:
                ...

    Attributes:
        address: The object being read.
        locked: Latch set by the first failure.
        error: The failure delivered to the caller, if any.
        completed: True once the body was read to the end without error.
        status_code: HTTP status of the GET, once received.
        bytes_read: Bytes delivered to the caller.
    """

    def __init__(
        self,
        address: Address,
        client: ObjectStoreClient,
        http: httpx.AsyncClient,
        timeout_ms: int = 3000,
        expires: int = 900,
        gunzip: bool = True,
    ) -> None:
        self.address = address
        self.locked = OnceLatch()
        self.error: FilesystemError | None = None
        self.completed = False
        self.status_code: int | None = None
        self.headers: httpx.Headers | None = None
        self.bytes_read = 0
        self._client = client
        self._http = http
        self._timeout_ms = timeout_ms
        self._expires = expires
        self._gunzip = gunzip
        self._iterator: AsyncIterator[bytes] | None = None

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self._iterator is None:
            self._iterator = self._stream()
        return self._iterator

    async def read(self) -> bytes:
        """Read the whole object."""
        return b"".join([chunk async for chunk in self])

    async def aclose(self) -> None:
        """Stop the transfer and release the connection."""
        if self._iterator is not None:
            await self._iterator.aclose()

    async def __aenter__(self) -> "DownloadHandle":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _fail(self, error: FilesystemError, cause: BaseException | None = None) -> FilesystemError:
        """Record ``error`` if it is the first failure; return the one to raise."""
        if self.locked.trip():
            if cause is not None:
                error.__cause__ = cause
            self.error = error
            _metrics.record_operation("read", "error")
            logger.debug(
                "Download failed: %s",
                error.code,
                extra={
                    "operation": "read",
                    "container": self.address.container,
                    "key": self.address.entry_key,
                    "status": self.status_code,
                },
            )
        return self.error

    def _validate(self, response: httpx.Response) -> None:
        self.status_code = response.status_code
        self.headers = response.headers
        if response.status_code == 404:
            raise ObjectNotFoundError(self.address.entry_key)
        if response.status_code != 200:
            raise BadStatusError(response.status_code)
        length = response.headers.get("content-length")
        if length is not None and length.strip() == "0":
            raise EmptyFileError(self.address.entry_key)

    async def _sign(self) -> str:
        try:
            return await self._client.get_signed_url("get_object", self.address, self._expires)
        except FilesystemError:
            raise
        except Exception as exc:
            # Missing credentials, bad endpoint config and the like.
            raise ObjectStoreError(type(exc).__name__, str(exc)) from exc

    async def _stream(self) -> AsyncIterator[bytes]:
        started = time.monotonic()
        try:
            url = await self._sign()
            async with self._http.stream(
                "GET", url, timeout=self._timeout_ms / 1000
            ) as response:
                self._validate(response)
                # Raw bytes: the stored Content-Encoding is handled below, not by httpx.
                body = response.aiter_raw()
                if self._gunzip:
                    body = gunzip_stream(body)
                async for chunk in body:
                    self.bytes_read += len(chunk)
                    yield chunk
        except httpx.TimeoutException as exc:
            raise self._fail(RequestTimeoutError(self._timeout_ms), exc)
        except httpx.TransportError as exc:
            raise self._fail(TransportError(str(exc) or type(exc).__name__), exc)
        except FilesystemError as exc:
            raise self._fail(exc)
        except Exception as exc:
            # e.g. httpx.InvalidURL for a malformed signed URL.
            raise self._fail(TransportError(str(exc) or type(exc).__name__, code=type(exc).__name__), exc)

        self.completed = True
        _metrics.record_operation("read", "ok")
        _metrics.record_downloaded(self.bytes_read)
        logger.debug(
            "Download finished",
            extra={
                "operation": "read",
                "container": self.address.container,
                "key": self.address.entry_key,
                "status": self.status_code,
                "duration_ms": round((time.monotonic() - started) * 1000, 1),
            },
        )
