"""Streaming gzip transforms over async byte iterators.

``gzip_stream`` compresses everything it is given. ``gunzip_stream`` is a
"gunzip maybe" filter: it decompresses gzip input (including concatenated
members) and passes anything else through untouched, so objects stored
without compression can be read through the same pipeline.
"""

import zlib
from collections.abc import AsyncIterator

from bucketfs.errors import DecompressionError

GZIP_MAGIC = b"\x1f\x8b"

# wbits for the gzip container (header + trailer), see zlib docs.
_GZIP_WBITS = 16 + zlib.MAX_WBITS


async def gzip_stream(
    chunks: AsyncIterator[bytes], level: int = zlib.Z_DEFAULT_COMPRESSION
) -> AsyncIterator[bytes]:
    """Yield the gzip encoding of ``chunks``.

    Byte order is preserved; empty compressor output is not yielded.
    """
    compressor = zlib.compressobj(level, zlib.DEFLATED, _GZIP_WBITS)
    async for chunk in chunks:
        out = compressor.compress(chunk)
        if out:
            yield out
    yield compressor.flush()


class _GzipDecoder:
    """Incremental multi-member gzip decoder."""

    def __init__(self) -> None:
        self._decompressor = zlib.decompressobj(_GZIP_WBITS)
        self._member_open = False

    def feed(self, data: bytes) -> bytes:
        out = []
        while data:
            try:
                out.append(self._decompressor.decompress(data))
            except zlib.error as exc:
                raise DecompressionError(f"Invalid gzip data: {exc}") from exc
            self._member_open = True
            if not self._decompressor.eof:
                break
            # Start the next member with whatever followed this one.
            data = self._decompressor.unused_data
            self._decompressor = zlib.decompressobj(_GZIP_WBITS)
            self._member_open = False
        return b"".join(out)

    def finish(self) -> bytes:
        if self._member_open and not self._decompressor.eof:
            raise DecompressionError("Unexpected end of gzip stream")
        return self._decompressor.flush()


async def gunzip_stream(chunks: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    """Decompress ``chunks`` if they start with the gzip magic, else pass through.

    Raises:
        DecompressionError: If gzip input is malformed or truncated.
    """
    head = b""
    decoder: _GzipDecoder | None = None
    passthrough = False

    async for chunk in chunks:
        if not chunk:
            continue
        if passthrough:
            yield chunk
            continue
        if decoder is None:
            head += chunk
            if len(head) < len(GZIP_MAGIC):
                continue
            if not head.startswith(GZIP_MAGIC):
                passthrough = True
                yield head
                continue
            decoder = _GzipDecoder()
            chunk, head = head, b""
        out = decoder.feed(chunk)
        if out:
            yield out

    if decoder is not None:
        tail = decoder.finish()
        if tail:
            yield tail
    elif head:
        # Input shorter than the magic number cannot be gzip.
        yield head
