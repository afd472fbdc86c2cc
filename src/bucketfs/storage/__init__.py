"""Object store clients for bucketfs."""

from bucketfs.storage.backend import ObjectStoreClient

__all__ = ["ObjectStoreClient"]
