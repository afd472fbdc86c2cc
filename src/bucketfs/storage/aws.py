"""AWS S3 object store client for bucketfs.

Talks to S3 (or any S3-compatible endpoint) via aiobotocore.

Address mapping:
    A container ``{bucket}/{prefix}`` and entry key ``{name}`` address the
    S3 object ``{prefix}/{name}`` in ``{bucket}``. A container without a
    ``/`` addresses the bucket root.

Uploads are streamed: bodies smaller than ``part_size`` are sent with one
``put_object``, larger ones with a native multipart upload that is aborted
on failure or cancellation so no partial object becomes visible.

Credentials are resolved via the standard AWS credential chain
(env vars, ~/.aws/credentials, IAM role, etc.) unless given explicitly.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from aiobotocore.session import AioSession
from botocore.exceptions import BotoCoreError, ClientError

from bucketfs.config import MIN_PART_SIZE, S3Config
from bucketfs.errors import ConfigurationError, ObjectStoreError
from bucketfs.paths import Address

logger = logging.getLogger(__name__)

# HEAD responses carry no error body, botocore reports the bare status.
_STATUS_CODES = {
    "400": "BadRequest",
    "403": "Forbidden",
    "404": "NotFound",
}


def _store_error(exc: ClientError) -> ObjectStoreError:
    """Convert a botocore ClientError into an ObjectStoreError."""
    error = exc.response.get("Error", {})
    code = str(error.get("Code", "")) or "Unknown"
    code = _STATUS_CODES.get(code, code)
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
    return ObjectStoreError(code, error.get("Message", "") or code, status)


class S3ObjectStoreClient:
    """Object store client backed by S3.

    Attributes:
        region: The AWS region of the bucket.
        endpoint_url: Custom S3 endpoint, empty for AWS.
        part_size: Multipart threshold and part size in bytes.
    """

    def __init__(
        self,
        region: str = "us-east-1",
        endpoint_url: str = "",
        use_path_style: bool = False,
        access_key_id: str = "",
        secret_access_key: str = "",
        part_size: int = MIN_PART_SIZE,
        verify_bucket: str = "",
    ) -> None:
        self.region = region
        self.endpoint_url = endpoint_url
        self.use_path_style = use_path_style
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.part_size = part_size
        self.verify_bucket = verify_bucket
        self._session = AioSession()
        self._client = None
        self._client_ctx = None

    @classmethod
    def from_config(cls, config: S3Config) -> "S3ObjectStoreClient":
        return cls(
            region=config.region,
            endpoint_url=config.endpoint,
            use_path_style=config.use_path_style,
            access_key_id=config.access_key_id,
            secret_access_key=config.secret_access_key,
            part_size=config.part_size,
            verify_bucket=config.bucket,
        )

    @staticmethod
    def _locate(address: Address) -> tuple[str, str]:
        """Map an Address to an S3 (bucket, key) pair."""
        bucket, _, prefix = address.container.partition("/")
        key = f"{prefix}/{address.entry_key}" if prefix else address.entry_key
        return bucket, key

    async def init(self) -> None:
        """Create the aiobotocore S3 client and verify the bucket exists.

        Raises:
            ConfigurationError: If the bucket does not exist or is inaccessible.
        """
        client_kwargs: dict = {"region_name": self.region}
        if self.endpoint_url:
            client_kwargs["endpoint_url"] = self.endpoint_url
        if self.use_path_style:
            from botocore.config import Config as BotoConfig
            client_kwargs["config"] = BotoConfig(s3={"addressing_style": "path"})

        if self.access_key_id and self.secret_access_key:
            session = AioSession()
            session.set_credentials(self.access_key_id, self.secret_access_key)
            self._session = session
        self._client_ctx = self._session.create_client("s3", **client_kwargs)
        self._client = await self._client_ctx.__aenter__()

        if self.verify_bucket:
            try:
                await self._client.head_bucket(Bucket=self.verify_bucket)
            except ClientError as e:
                code = _store_error(e).code
                await self.close()
                raise ConfigurationError(
                    f"Cannot access S3 bucket '{self.verify_bucket}': {code}"
                ) from e

        logger.info(
            "S3 client initialized: region=%s endpoint=%s",
            self.region,
            self.endpoint_url or "aws",
        )

    async def close(self) -> None:
        """Close the aiobotocore client session."""
        if self._client_ctx is not None:
            await self._client_ctx.__aexit__(None, None, None)
            self._client = None
            self._client_ctx = None

    async def get_signed_url(self, operation: str, address: Address, expires: int = 900) -> str:
        bucket, key = self._locate(address)
        return await self._client.generate_presigned_url(
            operation,
            Params={"Bucket": bucket, "Key": key},
            ExpiresIn=expires,
        )

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
        """Stream ``body`` to S3.

        Raises:
            ObjectStoreError: If S3 rejects any request.
        """
        bucket, key = self._locate(address)
        extra: dict[str, Any] = {"ACL": acl, "ContentEncoding": content_encoding}
        if content_type:
            extra["ContentType"] = content_type
        if metadata:
            extra["Metadata"] = dict(metadata)

        buffer = bytearray()
        upload_id = None
        parts: list[dict[str, Any]] = []

        try:
            async for chunk in body:
                buffer += chunk
                if len(buffer) < self.part_size:
                    continue
                if upload_id is None:
                    created = await self._client.create_multipart_upload(
                        Bucket=bucket, Key=key, **extra
                    )
                    upload_id = created["UploadId"]
                parts.append(
                    await self._upload_part(bucket, key, upload_id, len(parts) + 1, bytes(buffer))
                )
                buffer.clear()

            if upload_id is None:
                resp = await self._client.put_object(
                    Bucket=bucket, Key=key, Body=bytes(buffer), **extra
                )
            else:
                if buffer:
                    parts.append(
                        await self._upload_part(
                            bucket, key, upload_id, len(parts) + 1, bytes(buffer)
                        )
                    )
                resp = await self._client.complete_multipart_upload(
                    Bucket=bucket,
                    Key=key,
                    UploadId=upload_id,
                    MultipartUpload={"Parts": parts},
                )
        except (Exception, asyncio.CancelledError) as exc:
            if upload_id is not None:
                await self._abort_multipart(bucket, key, upload_id)
            if isinstance(exc, ClientError):
                raise _store_error(exc) from exc
            raise

        return {
            "etag": resp.get("ETag", "").strip('"'),
            "location": f"{bucket}/{key}",
            "parts": len(parts),
        }

    async def _upload_part(
        self, bucket: str, key: str, upload_id: str, part_number: int, data: bytes
    ) -> dict[str, Any]:
        resp = await self._client.upload_part(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_number,
            Body=data,
        )
        return {"ETag": resp["ETag"], "PartNumber": part_number}

    async def _abort_multipart(self, bucket: str, key: str, upload_id: str) -> None:
        try:
            await self._client.abort_multipart_upload(
                Bucket=bucket, Key=key, UploadId=upload_id
            )
        except ClientError:
            logger.warning("Failed to abort multipart upload %s for %s/%s", upload_id, bucket, key)

    async def head_object(self, address: Address) -> dict[str, Any]:
        bucket, key = self._locate(address)
        try:
            resp = await self._client.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            raise _store_error(e) from e
        except BotoCoreError as e:
            # Endpoint, credential and other client-side failures.
            raise ObjectStoreError(type(e).__name__, str(e)) from e
        return {
            "size": resp.get("ContentLength", 0),
            "last_modified": resp.get("LastModified"),
            "accept_ranges": resp.get("AcceptRanges"),
            "etag": resp.get("ETag"),
            "content_type": resp.get("ContentType"),
            "content_encoding": resp.get("ContentEncoding"),
            "metadata": resp.get("Metadata"),
        }

    async def exists(self, address: Address) -> bool:
        try:
            await self.head_object(address)
            return True
        except ObjectStoreError as e:
            if e.code in ("NotFound", "NoSuchKey"):
                return False
            raise

    async def delete(self, address: Address) -> None:
        """Delete an object.

        Idempotent, S3 delete_object does not error on missing keys.
        """
        bucket, key = self._locate(address)
        try:
            await self._client.delete_object(Bucket=bucket, Key=key)
        except ClientError as e:
            raise _store_error(e) from e

    async def list_entries(self, container: str) -> list[str]:
        """List immediate children using a ``/`` delimited listing."""
        bucket, _, prefix = container.partition("/")
        prefix = f"{prefix}/" if prefix else ""
        paginator = self._client.get_paginator("list_objects_v2")

        entries: set[str] = set()
        try:
            async for page in paginator.paginate(Bucket=bucket, Prefix=prefix, Delimiter="/"):
                for obj in page.get("Contents", []):
                    name = obj["Key"][len(prefix):]
                    if name:
                        entries.add(name)
                for common in page.get("CommonPrefixes", []):
                    entries.add(common["Prefix"][len(prefix):])
        except ClientError as e:
            raise _store_error(e) from e
        return sorted(entries)

    async def copy(self, source: Address, destination: Address) -> None:
        src_bucket, src_key = self._locate(source)
        dst_bucket, dst_key = self._locate(destination)
        try:
            await self._client.copy_object(
                Bucket=dst_bucket,
                Key=dst_key,
                CopySource={"Bucket": src_bucket, "Key": src_key},
            )
        except ClientError as e:
            raise _store_error(e) from e
