"""Unit tests for the S3 object store client.

All tests use mocked aiobotocore, no real AWS credentials or network
access required. The mock S3 client is injected directly onto
client._client to bypass session creation.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from bucketfs.config import S3Config
from bucketfs.errors import ConfigurationError, ObjectStoreError
from bucketfs.paths import Address
from bucketfs.storage.aws import S3ObjectStoreClient


def _client_error(code: str, message: str = "error", status: int = 400) -> ClientError:
    """Create a botocore ClientError with the given error code."""
    return ClientError(
        {"Error": {"Code": code, "Message": message}, "ResponseMetadata": {"HTTPStatusCode": status}},
        "TestOperation",
    )


def _make_client(part_size=5 * 1024 * 1024):
    """Create an S3ObjectStoreClient with a mock aiobotocore client (skip init)."""
    client = S3ObjectStoreClient(part_size=part_size)
    client._client = AsyncMock()
    client._client_ctx = AsyncMock()
    return client


async def _body(*chunks):
    for chunk in chunks:
        yield chunk


class TestAddressMapping:
    """Tests for container/key to S3 bucket/key mapping."""

    def test_bucket_root(self):
        assert S3ObjectStoreClient._locate(Address("data", "a.txt")) == ("data", "a.txt")

    def test_prefixed_container(self):
        assert S3ObjectStoreClient._locate(Address("data/x/y", "a.txt")) == ("data", "x/y/a.txt")


class TestInit:
    """Tests for init() and close()."""

    async def test_init_verifies_bucket(self):
        """init() calls head_bucket to verify the configured bucket exists."""
        with patch("bucketfs.storage.aws.AioSession") as mock_session_cls:
            mock_client = AsyncMock()
            mock_ctx = AsyncMock()
            mock_ctx.__aenter__ = AsyncMock(return_value=mock_client)
            mock_ctx.__aexit__ = AsyncMock(return_value=False)
            mock_session_cls.return_value.create_client.return_value = mock_ctx

            client = S3ObjectStoreClient.from_config(
                S3Config(bucket="my-bucket", region="us-west-2", endpoint="http://localhost:9000")
            )
            await client.init()

            mock_client.head_bucket.assert_awaited_once_with(Bucket="my-bucket")
            kwargs = mock_session_cls.return_value.create_client.call_args[1]
            assert kwargs["region_name"] == "us-west-2"
            assert kwargs["endpoint_url"] == "http://localhost:9000"
            await client.close()

    async def test_init_raises_on_missing_bucket(self):
        with patch("bucketfs.storage.aws.AioSession") as mock_session_cls:
            mock_client = AsyncMock()
            mock_client.head_bucket = AsyncMock(side_effect=_client_error("404", "Not Found", 404))
            mock_ctx = AsyncMock()
            mock_ctx.__aenter__ = AsyncMock(return_value=mock_client)
            mock_ctx.__aexit__ = AsyncMock(return_value=False)
            mock_session_cls.return_value.create_client.return_value = mock_ctx

            client = S3ObjectStoreClient(verify_bucket="no-such-bucket")
            with pytest.raises(ConfigurationError, match="NotFound"):
                await client.init()
            assert client._client is None

    async def test_close_exits_context(self):
        client = _make_client()
        ctx_ref = client._client_ctx
        await client.close()
        ctx_ref.__aexit__.assert_awaited_once()
        assert client._client is None

    async def test_close_noop_when_not_initialized(self):
        await S3ObjectStoreClient().close()


class TestSignedUrl:
    """Tests for get_signed_url()."""

    async def test_signs_mapped_address(self):
        client = _make_client()
        client._client.generate_presigned_url = AsyncMock(return_value="https://signed")
        url = await client.get_signed_url("get_object", Address("data/dir", "a.txt"), 60)
        assert url == "https://signed"
        client._client.generate_presigned_url.assert_awaited_once_with(
            "get_object", Params={"Bucket": "data", "Key": "dir/a.txt"}, ExpiresIn=60
        )


class TestUpload:
    """Tests for upload()."""

    async def test_small_body_uses_put_object(self):
        client = _make_client()
        client._client.put_object = AsyncMock(return_value={"ETag": '"abc"'})

        result = await client.upload(
            Address("data/dir", "a.txt"),
            _body(b"he", b"llo"),
            acl="public-read",
            content_encoding="gzip",
            content_type="application/json",
            metadata={"test": "x"},
        )

        assert result["etag"] == "abc"
        assert result["location"] == "data/dir/a.txt"
        client._client.put_object.assert_awaited_once_with(
            Bucket="data",
            Key="dir/a.txt",
            Body=b"hello",
            ACL="public-read",
            ContentEncoding="gzip",
            ContentType="application/json",
            Metadata={"test": "x"},
        )
        client._client.create_multipart_upload.assert_not_awaited()

    async def test_optional_headers_omitted(self):
        client = _make_client()
        client._client.put_object = AsyncMock(return_value={"ETag": '"abc"'})
        await client.upload(Address("b", "k"), _body(b"x"), acl="public-read", content_encoding="gzip")
        kwargs = client._client.put_object.call_args[1]
        assert "ContentType" not in kwargs
        assert "Metadata" not in kwargs

    async def test_large_body_uses_multipart(self):
        client = _make_client(part_size=4)
        client._client.create_multipart_upload = AsyncMock(return_value={"UploadId": "up-1"})
        client._client.upload_part = AsyncMock(side_effect=[{"ETag": '"p1"'}, {"ETag": '"p2"'}])
        client._client.complete_multipart_upload = AsyncMock(return_value={"ETag": '"final-2"'})

        result = await client.upload(
            Address("b", "k"), _body(b"abcd", b"ef"), acl="public-read", content_encoding="gzip"
        )

        assert result["etag"] == "final-2"
        assert result["parts"] == 2
        bodies = [c[1]["Body"] for c in client._client.upload_part.call_args_list]
        assert bodies == [b"abcd", b"ef"]
        client._client.complete_multipart_upload.assert_awaited_once_with(
            Bucket="b",
            Key="k",
            UploadId="up-1",
            MultipartUpload={
                "Parts": [{"ETag": '"p1"', "PartNumber": 1}, {"ETag": '"p2"', "PartNumber": 2}]
            },
        )
        client._client.put_object.assert_not_awaited()

    async def test_put_failure_converted(self):
        client = _make_client()
        client._client.put_object = AsyncMock(side_effect=_client_error("AccessDenied", "denied", 403))
        with pytest.raises(ObjectStoreError) as exc_info:
            await client.upload(Address("b", "k"), _body(b"x"), acl="public-read", content_encoding="gzip")
        assert exc_info.value.code == "AccessDenied"
        assert exc_info.value.http_status == 403

    async def test_part_failure_aborts_multipart(self):
        client = _make_client(part_size=2)
        client._client.create_multipart_upload = AsyncMock(return_value={"UploadId": "up-2"})
        client._client.upload_part = AsyncMock(side_effect=_client_error("InternalError"))

        with pytest.raises(ObjectStoreError):
            await client.upload(Address("b", "k"), _body(b"abcd"), acl="public-read", content_encoding="gzip")

        client._client.abort_multipart_upload.assert_awaited_once_with(
            Bucket="b", Key="k", UploadId="up-2"
        )

    async def test_cancellation_aborts_multipart(self):
        client = _make_client(part_size=2)
        client._client.create_multipart_upload = AsyncMock(return_value={"UploadId": "up-3"})
        client._client.upload_part = AsyncMock(return_value={"ETag": '"p1"'})
        stall = asyncio.Event()

        async def body():
            yield b"abcd"
            await stall.wait()
            yield b"never"

        task = asyncio.ensure_future(
            client.upload(Address("b", "k"), body(), acl="public-read", content_encoding="gzip")
        )
        while not client._client.upload_part.await_count:
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        client._client.abort_multipart_upload.assert_awaited_once_with(
            Bucket="b", Key="k", UploadId="up-3"
        )
        client._client.complete_multipart_upload.assert_not_awaited()


class TestHeadObject:
    """Tests for head_object()."""

    async def test_maps_response_fields(self):
        client = _make_client()
        modified = datetime(2024, 1, 1, tzinfo=timezone.utc)
        client._client.head_object = AsyncMock(
            return_value={
                "ContentLength": 37,
                "LastModified": modified,
                "AcceptRanges": "bytes",
                "ETag": '"abc"',
                "ContentType": "application/json",
                "ContentEncoding": "gzip",
                "Metadata": {"test": "x"},
            }
        )
        headers = await client.head_object(Address("data/dir", "a.txt"))
        client._client.head_object.assert_awaited_once_with(Bucket="data", Key="dir/a.txt")
        assert headers == {
            "size": 37,
            "last_modified": modified,
            "accept_ranges": "bytes",
            "etag": '"abc"',
            "content_type": "application/json",
            "content_encoding": "gzip",
            "metadata": {"test": "x"},
        }

    async def test_bare_404_becomes_not_found(self):
        client = _make_client()
        client._client.head_object = AsyncMock(side_effect=_client_error("404", "Not Found", 404))
        with pytest.raises(ObjectStoreError) as exc_info:
            await client.head_object(Address("b", "k"))
        assert exc_info.value.code == "NotFound"
        assert exc_info.value.http_status == 404

    async def test_connection_error_is_converted(self):
        client = _make_client()
        client._client.head_object = AsyncMock(
            side_effect=EndpointConnectionError(endpoint_url="https://s3.example.com")
        )
        with pytest.raises(ObjectStoreError) as exc_info:
            await client.head_object(Address("b", "k"))
        assert exc_info.value.code == "EndpointConnectionError"
        assert isinstance(exc_info.value.__cause__, EndpointConnectionError)


class TestPassthrough:
    """Tests for exists(), delete(), list_entries() and copy()."""

    async def test_exists_true(self):
        client = _make_client()
        client._client.head_object = AsyncMock(return_value={})
        assert await client.exists(Address("b", "k")) is True

    async def test_exists_false(self):
        client = _make_client()
        client._client.head_object = AsyncMock(side_effect=_client_error("404", status=404))
        assert await client.exists(Address("b", "k")) is False

    async def test_exists_other_error_propagates(self):
        client = _make_client()
        client._client.head_object = AsyncMock(side_effect=_client_error("403", status=403))
        with pytest.raises(ObjectStoreError):
            await client.exists(Address("b", "k"))

    async def test_delete(self):
        client = _make_client()
        await client.delete(Address("b/dir", "k"))
        client._client.delete_object.assert_awaited_once_with(Bucket="b", Key="dir/k")

    async def test_list_entries(self):
        client = _make_client()

        async def pages(**kwargs):
            yield {
                "Contents": [{"Key": "dir/a.txt"}, {"Key": "dir/"}],
                "CommonPrefixes": [{"Prefix": "dir/sub/"}],
            }

        paginator = MagicMock()
        paginator.paginate = MagicMock(side_effect=lambda **kwargs: pages(**kwargs))
        client._client.get_paginator = MagicMock(return_value=paginator)

        entries = await client.list_entries("b/dir")

        assert entries == ["a.txt", "sub/"]
        paginator.paginate.assert_called_once_with(Bucket="b", Prefix="dir/", Delimiter="/")

    async def test_copy(self):
        client = _make_client()
        await client.copy(Address("b", "src"), Address("b/copies", "dst"))
        client._client.copy_object.assert_awaited_once_with(
            Bucket="b", Key="copies/dst", CopySource={"Bucket": "b", "Key": "src"}
        )
