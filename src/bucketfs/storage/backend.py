"""Object store client protocol for bucketfs."""

from typing import Any, AsyncIterator, Protocol

from bucketfs.paths import Address


class ObjectStoreClient(Protocol):
    """Protocol defining the object store capabilities bucketfs depends on.

    Implementations address objects by ``Address`` (container + entry key)
    and raise ``ObjectStoreError`` for any failure reported by the store.
    """

    async def init(self) -> None:
        """Initialize the client (open sessions, verify the bucket, etc.)."""
        ...

    async def close(self) -> None:
        """Release resources held by the client."""
        ...

    async def get_signed_url(self, operation: str, address: Address, expires: int = 900) -> str:
        """Return a pre-authorized URL for one operation on one object.

        Args:
            operation: Client method name, e.g. ``"get_object"``.
            address: The object address.
            expires: Validity of the URL in seconds.

        Returns:
            An absolute URL. Computed locally, no request is made.
        """
        ...

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
        """Store the bytes produced by ``body`` at ``address``.

        Cancelling the awaiting task cancels the upload; the object is then
        left absent unless it existed before.

        Returns:
            A mapping with at least ``etag`` and ``location``.
        """
        ...

    async def head_object(self, address: Address) -> dict[str, Any]:
        """Fetch object headers.

        Returns:
            A mapping with keys ``size``, ``last_modified``, ``accept_ranges``,
            ``etag``, ``content_type``, ``content_encoding``, ``metadata``.
        """
        ...

    async def exists(self, address: Address) -> bool:
        """Check if an object exists."""
        ...

    async def delete(self, address: Address) -> None:
        """Delete an object. Deleting a missing object is not an error."""
        ...

    async def list_entries(self, container: str) -> list[str]:
        """List the immediate children of a container.

        Returns:
            Sorted entry names; nested containers end with ``/``.
        """
        ...

    async def copy(self, source: Address, destination: Address) -> None:
        """Copy an object server-side, keeping its headers and metadata."""
        ...
