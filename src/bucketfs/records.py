"""Stat records built from object headers."""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True)
class StatRecord:
    """Normalized object metadata.

    The store keeps a single timestamp, so ``atime``, ``mtime`` and ``ctime``
    all report ``last_modified``.
    """

    size: int
    last_modified: datetime | None
    accept_ranges: str | None = None
    etag: str | None = None
    content_type: str | None = None
    content_encoding: str | None = None
    metadata: Mapping[str, str] | None = None

    @property
    def atime(self) -> datetime | None:
        return self.last_modified

    @property
    def mtime(self) -> datetime | None:
        return self.last_modified

    @property
    def ctime(self) -> datetime | None:
        return self.last_modified

    def is_file(self) -> bool:
        return True

    def is_directory(self) -> bool:
        return False

    @classmethod
    def from_headers(cls, headers: Mapping[str, Any]) -> "StatRecord":
        """Build a record from a client ``head_object`` result."""
        metadata = headers.get("metadata")
        return cls(
            size=int(headers.get("size") or 0),
            last_modified=headers.get("last_modified"),
            accept_ranges=headers.get("accept_ranges"),
            etag=headers.get("etag"),
            content_type=headers.get("content_type"),
            content_encoding=headers.get("content_encoding"),
            metadata=MappingProxyType(dict(metadata)) if metadata is not None else None,
        )
