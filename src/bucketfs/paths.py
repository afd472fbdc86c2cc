"""Logical path to object-store address mapping.

A logical path ``a/b/c.txt`` under bucket ``data`` maps to container
``data/a/b`` and entry key ``c.txt``. The container keeps the directory part
so that object keys never contain a separator.
"""

import posixpath
from dataclasses import dataclass

# Used by realpath() when no endpoint is configured.
DEFAULT_ENDPOINT = "https://s3.amazonaws.com"


@dataclass(frozen=True)
class Address:
    """Where an object lives in the store.

    Attributes:
        container: Bucket name, optionally followed by ``/``-separated prefix.
        entry_key: Object name inside the container.
    """

    container: str
    entry_key: str


def resolve(bucket: str, logical_path: str) -> Address:
    """Map a logical path to an Address under ``bucket``.

    Leading slashes are ignored and ``.`` components collapse, so
    ``a.txt``, ``/a.txt`` and ``./a.txt`` all resolve to ``(bucket, "a.txt")``.
    ``..`` components are dropped: the container is always ``bucket`` or a
    prefix under it.
    """
    directory, base = posixpath.split(logical_path)
    parts = [part for part in directory.split("/") if part not in ("", ".", "..")]
    container = posixpath.join(bucket, *parts) if parts else bucket
    return Address(container=container, entry_key=base)


def realpath(endpoint: str, bucket: str, logical_path: str) -> str:
    """Return the absolute retrieval URL for a logical path."""
    base = (endpoint or DEFAULT_ENDPOINT).rstrip("/")
    return f"{base}/{bucket}/{logical_path.lstrip('/')}"
