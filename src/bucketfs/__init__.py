"""bucketfs: streaming filesystem plugin over S3-compatible object storage."""

__version__ = "1.0.0"

from bucketfs.config import BucketFSConfig, S3Config, load_config  # noqa: E402
from bucketfs.filesystem import Filesystem  # noqa: E402

__all__ = ["BucketFSConfig", "Filesystem", "S3Config", "__version__", "load_config"]
