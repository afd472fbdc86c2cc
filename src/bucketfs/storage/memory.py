"""In-memory object store client for bucketfs.

Holds objects in a dictionary keyed by (container, entry key). Signed URLs
point at a private host that ``transport()`` serves, so a ``Filesystem``
built with ``httpx.AsyncClient(transport=client.transport())`` exercises the
same download pipeline it uses against S3.

Uploads become visible only once the body is fully consumed; a cancelled
upload stores nothing.
"""

import hashlib
import logging
import urllib.parse
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx

from bucketfs.errors import ObjectStoreError
from bucketfs.paths import Address

logger = logging.getLogger(__name__)

BASE_URL = "http://memory.bucketfs.invalid"


@dataclass
class StoredObject:
    """One object held by the memory client."""

    data: bytes
    etag: str
    acl: str = "private"
    content_encoding: str | None = None
    content_type: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    last_modified: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class MemoryObjectStoreClient:
    """Object store client that keeps everything in memory."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], StoredObject] = {}

    async def init(self) -> None:
        logger.info("Memory object store initialized")

    async def close(self) -> None:
        pass

    def _get(self, address: Address) -> StoredObject:
        try:
            return self.objects[(address.container, address.entry_key)]
        except KeyError:
            raise ObjectStoreError("NotFound", "Not Found", 404) from None

    async def get_signed_url(self, operation: str, address: Address, expires: int = 900) -> str:
        container = urllib.parse.quote(address.container, safe="/")
        key = urllib.parse.quote(address.entry_key, safe="")
        return f"{BASE_URL}/{container}/{key}?X-Amz-Expires={expires}&operation={operation}"

    async def upload(
        self,
        address: Address,
        body: AsyncIterator[bytes],
        *,
        acl: str,
        content_encoding: str,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        chunks = []
        async for chunk in body:
            chunks.append(chunk)
        data = b"".join(chunks)
        etag = hashlib.md5(data).hexdigest()
        self.objects[(address.container, address.entry_key)] = StoredObject(
            data=data,
            etag=etag,
            acl=acl,
            content_encoding=content_encoding,
            content_type=content_type,
            metadata=dict(metadata or {}),
        )
        return {"etag": etag, "location": f"{address.container}/{address.entry_key}"}

    def put_raw(self, address: Address, data: bytes, **headers: Any) -> None:
        """Store bytes as-is, bypassing the upload pipeline."""
        self.objects[(address.container, address.entry_key)] = StoredObject(
            data=data, etag=hashlib.md5(data).hexdigest(), **headers
        )

    async def head_object(self, address: Address) -> dict[str, Any]:
        obj = self._get(address)
        return {
            "size": len(obj.data),
            "last_modified": obj.last_modified,
            "accept_ranges": "bytes",
            "etag": f'"{obj.etag}"',
            "content_type": obj.content_type,
            "content_encoding": obj.content_encoding,
            "metadata": dict(obj.metadata),
        }

    async def exists(self, address: Address) -> bool:
        return (address.container, address.entry_key) in self.objects

    async def delete(self, address: Address) -> None:
        self.objects.pop((address.container, address.entry_key), None)

    async def list_entries(self, container: str) -> list[str]:
        entries = set()
        nested = f"{container}/"
        for obj_container, key in self.objects:
            if obj_container == container:
                entries.add(key)
            elif obj_container.startswith(nested):
                entries.add(obj_container[len(nested):].split("/", 1)[0] + "/")
        return sorted(entries)

    async def copy(self, source: Address, destination: Address) -> None:
        obj = self._get(source)
        self.objects[(destination.container, destination.entry_key)] = StoredObject(
            data=obj.data,
            etag=obj.etag,
            acl=obj.acl,
            content_encoding=obj.content_encoding,
            content_type=obj.content_type,
            metadata=dict(obj.metadata),
        )

    def _handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.lstrip("/")
        container, _, key = path.rpartition("/")
        obj = self.objects.get((container, key))
        if request.method != "GET":
            return httpx.Response(405)
        if obj is None:
            return httpx.Response(
                404,
                headers={"Content-Type": "application/xml"},
                content=(
                    b'<?xml version="1.0" encoding="UTF-8"?>\n'
                    b"<Error><Code>NoSuchKey</Code>"
                    b"<Message>The specified key does not exist.</Message></Error>"
                ),
            )
        headers = {
            "ETag": f'"{obj.etag}"',
            "Accept-Ranges": "bytes",
            # httpx omits Content-Length for an empty body, S3 always sends it.
            "Content-Length": str(len(obj.data)),
        }
        if obj.content_type:
            headers["Content-Type"] = obj.content_type
        if obj.content_encoding:
            headers["Content-Encoding"] = obj.content_encoding
        return httpx.Response(200, headers=headers, content=obj.data)

    def transport(self) -> httpx.MockTransport:
        """Return an httpx transport serving signed URLs from this client."""
        return httpx.MockTransport(self._handle)
