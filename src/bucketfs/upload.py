"""Streaming upload pipeline.

Caller writes -> bounded queue -> gzip -> ``ObjectStoreClient.upload``.

The upload task starts as soon as the handle exists and consumes the same
queue the caller writes into, so nothing written before the store is ready
is lost. ``write()`` waits for queue space, which throttles the caller to
the upload's pace.
"""

import asyncio
import logging
import time
from typing import Any

from bucketfs import metrics as _metrics
from bucketfs.compression import gzip_stream
from bucketfs.errors import UploadError
from bucketfs.latch import OnceLatch
from bucketfs.options import TransferOptions
from bucketfs.paths import Address
from bucketfs.storage.backend import ObjectStoreClient

logger = logging.getLogger(__name__)

PUBLIC_READ = "public-read"
CONTENT_ENCODING = "gzip"

# Chunks buffered between the caller and the gzip transform.
_QUEUE_SIZE = 16


class UploadHandle:
    """Writable sink bound to one in-flight upload.

    The handle becomes terminal on the first of: the upload succeeding,
    the upload failing, or ``abort()``. ``wait()`` reports the outcome:
    the client's result on success, ``UploadError`` on failure, ``None``
    after an abort.

    Usable as an async context manager: a clean exit ends the stream and
    waits for the upload, an exception aborts it.

    Attributes:
        address: Where the object is being written.
        aborted: Latch set by the first effective ``abort()`` call.
        bytes_written: Uncompressed bytes accepted from the caller.
    """

    def __init__(
        self,
        address: Address,
        client: ObjectStoreClient,
        options: TransferOptions,
        queue_size: int = _QUEUE_SIZE,
    ) -> None:
        self.address = address
        self.aborted = OnceLatch()
        self.bytes_written = 0
        self._ended = False
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue(maxsize=queue_size)
        loop = asyncio.get_running_loop()
        self._done: asyncio.Future = loop.create_future()
        self._started = time.monotonic()
        self._task = loop.create_task(
            client.upload(
                address,
                gzip_stream(self._chunks()),
                acl=PUBLIC_READ,
                content_encoding=CONTENT_ENCODING,
                content_type=options.content_type,
                metadata=options.metadata,
            )
        )
        self._task.add_done_callback(self._on_upload_done)
        logger.debug(
            "Upload started",
            extra={"operation": "write", "container": address.container, "key": address.entry_key},
        )

    async def _chunks(self):
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                return
            yield chunk

    async def _put(self, item: bytes | None) -> None:
        """Queue an item, giving up if the upload reaches a terminal state first."""
        try:
            self._queue.put_nowait(item)
            return
        except asyncio.QueueFull:
            pass
        putter = asyncio.ensure_future(self._queue.put(item))
        try:
            await asyncio.wait({putter, self._done}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not putter.done():
                putter.cancel()

    def done(self) -> bool:
        return self._done.done()

    async def write(self, data: bytes) -> None:
        """Write a chunk. No-op once the stream is ended or terminal."""
        if self._ended or self._done.done() or not data:
            return
        self.bytes_written += len(data)
        await self._put(bytes(data))

    async def end(self, data: bytes | None = None) -> None:
        """Signal end of stream, writing ``data`` first if given."""
        if data:
            await self.write(data)
        if self._ended or self._done.done():
            return
        self._ended = True
        await self._put(None)

    async def wait(self) -> dict[str, Any] | None:
        """Wait for the upload to reach its terminal state.

        Returns:
            The client's upload result, or None if the upload was aborted.

        Raises:
            UploadError: If the store rejected the upload.
        """
        return await asyncio.shield(self._done)

    def abort(self) -> None:
        """Cancel the upload. Only the first call has any effect.

        The failure the store reports for the cancelled upload is not
        delivered to ``wait()``.
        """
        if self._task.done() or not self.aborted.trip():
            return
        self._ended = True
        logger.info(
            "Upload aborted",
            extra={"operation": "write", "container": self.address.container, "key": self.address.entry_key},
        )
        self._task.cancel()

    def _on_upload_done(self, task: asyncio.Task) -> None:
        duration_ms = round((time.monotonic() - self._started) * 1000, 1)
        extra = {
            "operation": "write",
            "container": self.address.container,
            "key": self.address.entry_key,
            "duration_ms": duration_ms,
        }
        if self.aborted:
            if not task.cancelled():
                task.exception()
            self._done.set_result(None)
            _metrics.record_operation("write", "aborted")
        elif task.cancelled():
            self._done.set_exception(UploadError("Upload cancelled", code="Cancelled"))
            _metrics.record_operation("write", "error")
        elif task.exception() is not None:
            cause = task.exception()
            error = UploadError(str(cause) or type(cause).__name__, code=getattr(cause, "code", "UploadError"))
            error.__cause__ = cause
            self._done.set_exception(error)
            _metrics.record_operation("write", "error")
        else:
            self._done.set_result(task.result())
            _metrics.record_operation("write", "ok")
            _metrics.record_uploaded(self.bytes_written)
            logger.debug("Upload finished", extra=extra)
        self._release()

    def _release(self) -> None:
        self._ended = True
        while not self._queue.empty():
            self._queue.get_nowait()

    async def __aenter__(self) -> "UploadHandle":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.abort()
            return
        await self.end()
        await self.wait()
